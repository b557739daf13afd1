"""
Minimal models for the Kubernetes AdmissionReview, Pod and Deployment objects
used by this webhook. We parse only the fields we need and ignore unknowns so
that new Kubernetes fields don't break this app.

References:
- AdmissionReview request/response shape:
  https://kubernetes.io/docs/reference/access-authn-authz/extensible-admission-controllers/#request-and-response
- Pod (core/v1) API reference:
  https://kubernetes.io/docs/reference/generated/kubernetes-api/latest/#pod-v1-core
"""

from dataclasses import dataclass
from typing import Any, Optional

ADMISSION_API_VERSION = "admission.k8s.io/v1"
ADMISSION_KIND = "AdmissionReview"


def _get(d: dict[str, Any], key: str, default):
    # Safe nested getter for dicts
    v = d.get(key)
    return v if isinstance(v, type(default)) else default


@dataclass(frozen=True)
class GroupVersionResource:
    group: str
    version: str
    resource: str

    @staticmethod
    def from_dict(d: Any) -> "GroupVersionResource":
        if not isinstance(d, dict):
            d = {}
        return GroupVersionResource(
            group=str(d.get("group") or ""),
            version=str(d.get("version") or ""),
            resource=str(d.get("resource") or ""),
        )

    def __str__(self) -> str:
        return f"{{{self.group} {self.version} {self.resource}}}"


@dataclass(frozen=True)
class OwnerReference:
    kind: str
    name: str


@dataclass
class PodModel:
    name: str
    namespace: str
    labels: dict[str, str]
    owner_references: list[OwnerReference]

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "PodModel":
        meta = _get(d, "metadata", {})
        owners = []
        for ref in _get(meta, "ownerReferences", []):
            if isinstance(ref, dict):
                owners.append(
                    OwnerReference(
                        kind=str(ref.get("kind") or ""), name=str(ref.get("name") or "")
                    )
                )
        return PodModel(
            name=_get(meta, "name", "") or _get(meta, "generateName", ""),
            namespace=_get(meta, "namespace", ""),
            labels=_get(meta, "labels", {}),
            owner_references=owners,
        )


@dataclass
class DeploymentModel:
    name: str
    namespace: str
    replicas: int

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "DeploymentModel":
        meta = _get(d, "metadata", {})
        spec = _get(d, "spec", {})
        replicas = spec.get("replicas")
        if isinstance(replicas, bool) or not isinstance(replicas, int):
            replicas = 1
        return DeploymentModel(
            name=_get(meta, "name", ""),
            namespace=_get(meta, "namespace", ""),
            replicas=replicas,
        )


def decode_object(raw: Any, expected_kind: str) -> dict[str, Any]:
    """Return the raw admission object, raising ValueError if it cannot be a `expected_kind`."""
    if not isinstance(raw, dict) or not raw:
        raise ValueError(f"could not decode {expected_kind}: object is missing or not a JSON object")
    kind = raw.get("kind")
    if kind is not None and kind != expected_kind:
        raise ValueError(f"could not decode {expected_kind}: got object of kind {kind}")
    return raw


@dataclass
class AdmissionRequestModel:
    uid: str
    resource: GroupVersionResource
    obj: dict[str, Any]
    namespace: str = ""
    name: str = ""
    operation: str = "CREATE"

    @staticmethod
    def from_dict(d: dict[str, Any]) -> Optional["AdmissionRequestModel"]:
        if not isinstance(d, dict):
            return None
        uid = d.get("uid")
        if not isinstance(uid, str) or not uid:
            return None
        obj_raw = d.get("object")
        return AdmissionRequestModel(
            uid=uid,
            resource=GroupVersionResource.from_dict(d.get("resource")),
            obj=obj_raw if isinstance(obj_raw, dict) else {},
            namespace=str(d.get("namespace") or ""),
            name=str(d.get("name") or ""),
            operation=str(d.get("operation") or "CREATE"),
        )


@dataclass
class AdmissionReviewModel:
    request: AdmissionRequestModel
    api_version: str = ADMISSION_API_VERSION
    kind: str = ADMISSION_KIND

    @staticmethod
    def from_dict(d: dict[str, Any]) -> Optional["AdmissionReviewModel"]:
        if not isinstance(d, dict):
            return None
        kind = d.get("kind", ADMISSION_KIND)
        if kind != ADMISSION_KIND:
            return None
        req_raw = d.get("request")
        req = (
            AdmissionRequestModel.from_dict(req_raw)
            if isinstance(req_raw, dict)
            else None
        )
        if req is None:
            return None
        return AdmissionReviewModel(
            request=req,
            api_version=str(d.get("apiVersion") or ADMISSION_API_VERSION),
            kind=kind,
        )


@dataclass
class AdmissionDecision:
    # Denied unless an admitter explicitly allows
    allowed: bool = False
    patch: list[dict[str, Any]] | None = None
    message: str | None = None
