import logging
from types import MappingProxyType
from typing import Any, Callable

from flask import Blueprint, jsonify, request

from .helpers import build_pod_patches, make_admission_response, preferred_capacity
from .kube import count_capacity_nodes, request_deadline, resolve_workload
from .models import (
    AdmissionDecision,
    AdmissionRequestModel,
    AdmissionReviewModel,
    DeploymentModel,
    GroupVersionResource,
    PodModel,
    decode_object,
)
from .telemetry import ReplicaCountSink

log = logging.getLogger("capacity-hint")

POD_RESOURCE = GroupVersionResource(group="", version="v1", resource="pods")
DEPLOYMENT_RESOURCE = GroupVersionResource(
    group="apps", version="v1", resource="deployments"
)

Admitter = Callable[[AdmissionRequestModel, float], AdmissionDecision]


def create_routes(core, apps, settings, replica_sink: ReplicaCountSink | None = None):
    bp = Blueprint("webhook", __name__)

    def admit_pods(req: AdmissionRequestModel, deadline: float) -> AdmissionDecision:
        if req.resource != POD_RESOURCE:
            msg = f"expect resource to be {POD_RESOURCE}"
            log.error(msg)
            return AdmissionDecision(message=msg)

        if req.operation != "CREATE":
            return AdmissionDecision(allowed=True)

        pod = PodModel.from_dict(decode_object(req.obj, "Pod"))
        ns = pod.namespace or req.namespace

        workload = resolve_workload(apps, ns, pod.owner_references, deadline)
        census = count_capacity_nodes(core, settings, deadline)
        spot, on_demand = (census.spot, census.on_demand) if census else (None, None)

        patch = build_pod_patches(
            settings, workload.kind, workload.replicas, spot, on_demand, pod.labels
        )
        log.info(
            "Decision inputs: ns=%s pod=%s workload=%s/%s replicas=%s spot=%s on_demand=%s -> capacity=%s maxSkew=%s",
            ns,
            pod.name,
            workload.kind,
            workload.name,
            workload.replicas,
            spot,
            on_demand,
            preferred_capacity(workload.kind, settings),
            patch[1]["value"][0]["maxSkew"],
        )
        return AdmissionDecision(allowed=True, patch=patch)

    def admit_deployments(
        req: AdmissionRequestModel, deadline: float
    ) -> AdmissionDecision:
        if req.resource != DEPLOYMENT_RESOURCE:
            msg = f"expect resource to be {DEPLOYMENT_RESOURCE}"
            log.error(msg)
            return AdmissionDecision(message=msg)

        deployment = DeploymentModel.from_dict(decode_object(req.obj, "Deployment"))
        if replica_sink is not None:
            replica_sink.record(deployment.replicas)
        log.info(
            "Admitting deployment ns=%s name=%s replicas=%s",
            deployment.namespace or req.namespace,
            deployment.name,
            deployment.replicas,
        )
        return AdmissionDecision(allowed=True)

    # Built once; read-only for the lifetime of the blueprint
    admitters: MappingProxyType[str, Admitter] = MappingProxyType(
        {"pods": admit_pods, "deployments": admit_deployments}
    )

    def serve(admit: Admitter):
        if request.mimetype != "application/json":
            log.error("contentType=%s, expect application/json", request.content_type)
            return "", 415

        admission = AdmissionReviewModel.from_dict(request.get_json(silent=True))
        if admission is None:
            msg = "Request could not be decoded as an AdmissionReview"
            log.warning(msg)
            return jsonify(make_admission_response(uid="", message=msg)), 400

        req = admission.request
        deadline = request_deadline(
            request.args.get("timeout"), settings.webhook_timeout_seconds
        )
        try:
            decision = admit(req, deadline)
            body: dict[str, Any] = make_admission_response(
                req.uid,
                decision.allowed,
                decision.patch,
                decision.message,
                api_version=admission.api_version,
                kind=admission.kind,
            )
        except Exception as e:
            log.error("Error admitting uid=%s: %s", req.uid, e, exc_info=True)
            body = make_admission_response(
                req.uid,
                message=str(e) or type(e).__name__,
                api_version=admission.api_version,
                kind=admission.kind,
            )
        return jsonify(body)

    @bp.route("/health", methods=["GET"])
    def health():
        return {"status": "healthy"}, 200

    @bp.route("/pods", methods=["POST"])
    def pods():
        return serve(admitters["pods"])

    @bp.route("/deployments", methods=["POST"])
    def deployments():
        return serve(admitters["deployments"])

    return bp
