"""
Cluster reads used while deciding on a Pod: the owning workload's replica
count and the current spot/on-demand node census.

Every read is bounded by the per-request deadline and is non-fatal. A failed
or timed-out read is logged and the caller falls back to conservative
defaults (spot, replicas=1, maxSkew=1); admission is never denied over it.
"""
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Iterable

from kubernetes import client, config

from .helpers import WorkloadKind

log = logging.getLogger("capacity-hint")

_TIMEOUT_PARAM = re.compile(r"^(\d+)s$")


@dataclass(frozen=True)
class Workload:
    kind: WorkloadKind
    name: str = ""
    replicas: int = 1


UNOWNED = Workload(kind="Unowned")

# Pod -> ReplicaSet -> Deployment is the longest ownership chain followed
MAX_OWNER_DEPTH = 2


@dataclass(frozen=True)
class NodeCensus:
    spot: int = 0
    on_demand: int = 0


class DeadlineExceeded(Exception):
    pass


def load_clients() -> tuple[Any, Any]:
    """Build (CoreV1Api, AppsV1Api), preferring in-cluster config over the local kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        log.info("Not running in-cluster; loading local kubeconfig")
        config.load_kube_config()
    return client.CoreV1Api(), client.AppsV1Api()


def request_deadline(timeout_param: str | None, default_seconds: int) -> float:
    """Absolute monotonic deadline for cluster reads made on behalf of one admission request.

    The API server appends its own webhook timeout as ``?timeout=10s``; reads
    never outlive the shorter of that and our configured timeout.
    """
    seconds = float(default_seconds)
    match = _TIMEOUT_PARAM.match(timeout_param or "")
    if match:
        seconds = min(seconds, float(match.group(1)))
    return time.monotonic() + seconds


def remaining_timeout(deadline: float | None) -> float | None:
    if deadline is None:
        return None
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise DeadlineExceeded("request deadline exceeded")
    return remaining


def _replicas(obj: Any) -> int:
    replicas = getattr(getattr(obj, "spec", None), "replicas", None)
    return 1 if replicas is None else int(replicas)


def _owners(obj: Any) -> list[Any]:
    return getattr(getattr(obj, "metadata", None), "owner_references", None) or []


def _resolve_replica_set(
    apps: Any, namespace: str, name: str, deadline: float | None
) -> Workload:
    fallback = Workload(kind="ReplicaSet", name=name, replicas=1)
    try:
        rs = apps.read_namespaced_replica_set(
            name, namespace, _request_timeout=remaining_timeout(deadline)
        )
    except Exception as e:
        log.error("Failed to get ReplicaSet %s/%s: %s", namespace, name, e)
        return fallback

    for owner in _owners(rs):
        if owner.kind != "Deployment":
            continue
        try:
            deployment = apps.read_namespaced_deployment(
                owner.name, namespace, _request_timeout=remaining_timeout(deadline)
            )
        except Exception as e:
            log.error("Failed to get Deployment %s/%s: %s", namespace, owner.name, e)
            return fallback
        return Workload(kind="Deployment", name=owner.name, replicas=_replicas(deployment))

    log.info("ReplicaSet %s/%s has no Deployment owner", namespace, name)
    return fallback


def resolve_workload(
    apps: Any,
    namespace: str,
    owner_references: Iterable[Any],
    deadline: float | None = None,
) -> Workload:
    """Find the workload controlling a Pod and its declared replica count.

    Owner references are scanned in order and the first StatefulSet or
    ReplicaSet wins. A ReplicaSet is followed one more hop to its Deployment,
    so the walk never exceeds MAX_OWNER_DEPTH hops. A StatefulSet that cannot
    be fetched is skipped; a ReplicaSet whose chain cannot be completed
    resolves to itself with one replica. Pods with no recognised owner
    resolve to UNOWNED.
    """
    for owner in owner_references:
        if owner.kind == "StatefulSet":
            try:
                sts = apps.read_namespaced_stateful_set(
                    owner.name, namespace, _request_timeout=remaining_timeout(deadline)
                )
            except Exception as e:
                log.error("Failed to get StatefulSet %s/%s: %s", namespace, owner.name, e)
                continue
            return Workload(kind="StatefulSet", name=owner.name, replicas=_replicas(sts))

        if owner.kind == "ReplicaSet":
            return _resolve_replica_set(apps, namespace, owner.name, deadline)

    return UNOWNED


def count_capacity_nodes(
    core: Any, settings: Any, deadline: float | None = None
) -> NodeCensus | None:
    """Count nodes labeled spot and on-demand. Returns None if the nodes cannot be listed."""
    try:
        nodes = core.list_node(
            label_selector=settings.capacity_label,
            _request_timeout=remaining_timeout(deadline),
        ).items
    except Exception as e:
        log.error("Failed to list nodes: %s", e)
        return None

    spot = on_demand = 0
    for node in nodes:
        capacity = (node.metadata.labels or {}).get(settings.capacity_label)
        if capacity == settings.spot_capacity_value:
            spot += 1
        elif capacity == settings.on_demand_capacity_value:
            on_demand += 1
    return NodeCensus(spot=spot, on_demand=on_demand)
