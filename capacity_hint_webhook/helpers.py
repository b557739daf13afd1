import base64
import json
from typing import Any, Literal

from .models import ADMISSION_API_VERSION, ADMISSION_KIND

WorkloadKind = Literal["Deployment", "ReplicaSet", "StatefulSet", "Unowned"]

# Business labels copied into the topology-spread selector, in order
SAFE_LABEL_KEYS = ("app", "version", "component", "tier", "env")
FALLBACK_LABEL_KEY = "topology-group"
FALLBACK_LABEL_VALUE = "default"

DO_NOT_SCHEDULE = "DoNotSchedule"
SCHEDULE_ANYWAY = "ScheduleAnyway"


def preferred_capacity(kind: str, settings: Any) -> str:
    """Map a workload kind to the node capacity class its Pods should prefer.

    Stateful workloads favor stable on-demand nodes; everything else, including
    unresolved ownership, leans toward cost-optimized spot nodes.
    """
    if kind == "StatefulSet":
        return settings.on_demand_capacity_value
    return settings.spot_capacity_value


def when_unsatisfiable(kind: str) -> str:
    return SCHEDULE_ANYWAY if kind == "StatefulSet" else DO_NOT_SCHEDULE


def calculate_max_skew(
    replicas: int, spot_count: int | None, on_demand_count: int | None
) -> int:
    """Size the spread skew from the replica count and the spot/on-demand imbalance.

    Unknown node counts mean the census could not be fetched; the skew then
    fails open to 1. The result is never below 1, since the API server rejects
    a non-positive maxSkew.
    """
    if spot_count is None or on_demand_count is None:
        return 1
    if replicas == 1:
        return 1
    return max(1, replicas - abs(spot_count - on_demand_count))


def safe_labels(pod_labels: dict[str, str] | None) -> dict[str, str]:
    """Reduce pod labels to a non-empty selector built from known business labels."""
    pod_labels = pod_labels or {}
    selected = {key: pod_labels[key] for key in SAFE_LABEL_KEYS if key in pod_labels}
    if selected:
        return selected
    if "app" in pod_labels:
        return {"app": pod_labels["app"]}
    return {FALLBACK_LABEL_KEY: FALLBACK_LABEL_VALUE}


def patch_affinity(settings: Any, capacity: str) -> dict[str, Any]:
    """Produce the JSONPatch op that adds a preferred node affinity toward `capacity`."""
    return {
        "op": "add",
        "path": "/spec/affinity",
        "value": {
            "nodeAffinity": {
                "preferredDuringSchedulingIgnoredDuringExecution": [
                    {
                        "weight": settings.affinity_weight,
                        "preference": {
                            "matchExpressions": [
                                {
                                    "key": settings.capacity_label,
                                    "operator": "In",
                                    "values": [capacity],
                                }
                            ]
                        },
                    }
                ]
            }
        },
    }


def patch_topology_spread(
    settings: Any, max_skew: int, unsatisfiable: str, selector: dict[str, str]
) -> dict[str, Any]:
    """Produce the JSONPatch op that spreads matching Pods across capacity classes."""
    return {
        "op": "add",
        "path": "/spec/topologySpreadConstraints",
        "value": [
            {
                "maxSkew": max_skew,
                "topologyKey": settings.capacity_label,
                "whenUnsatisfiable": unsatisfiable,
                "labelSelector": {"matchLabels": selector},
            }
        ],
    }


def build_pod_patches(
    settings: Any,
    kind: str,
    replicas: int,
    spot_count: int | None,
    on_demand_count: int | None,
    pod_labels: dict[str, str] | None,
) -> list[dict[str, Any]]:
    capacity = preferred_capacity(kind, settings)
    max_skew = calculate_max_skew(replicas, spot_count, on_demand_count)
    return [
        patch_affinity(settings, capacity),
        patch_topology_spread(
            settings, max_skew, when_unsatisfiable(kind), safe_labels(pod_labels)
        ),
    ]


def encode_patch(patch: list[dict[str, Any]]) -> str:
    return base64.b64encode(json.dumps(patch).encode()).decode()


def make_admission_response(
    uid: str,
    allowed: bool = False,
    patch: list[dict[str, Any]] | None = None,
    message: str | None = None,
    api_version: str = ADMISSION_API_VERSION,
    kind: str = ADMISSION_KIND,
) -> dict[str, Any]:
    """Return the AdmissionReview the webhook sends to K8s, optionally carrying a patch and a message."""
    resp: dict[str, Any] = {"uid": uid, "allowed": allowed}

    if patch:
        resp["patchType"] = "JSONPatch"
        resp["patch"] = encode_patch(patch)

    if message:
        resp["status"] = {"message": message}

    return {
        "apiVersion": api_version,
        "kind": kind,
        "response": resp,
    }
