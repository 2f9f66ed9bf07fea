"""Version-agnostic desired state and the adapters that produce it.

Every served RuntimeComponent API version is collapsed into one
DesiredState at this boundary, so reconciliation logic never looks at the
API version of the resource it is working on.
"""

import hashlib
import json
import logging
import re
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from rcoperator.crd.registry import CRDRegistry
from rcoperator.errors import ValidationError
from rcoperator.models.runtime_component import KIND
from rcoperator.reconcile.types import ChildKind

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_PORT = 8080
DEFAULT_SERVICE_TYPE = "ClusterIP"
PART_OF_LABEL = "app.kubernetes.io/part-of"

# Kubernetes resource quantity, e.g. 1Gi, 500M, 0.5
_QUANTITY = re.compile(r"^[+]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+|[KMGTPE]i?|[munkMGTPE])?$")


class WorkloadKind(str, Enum):
    DEPLOYMENT = "Deployment"
    STATEFUL_SET = "StatefulSet"
    KNATIVE_SERVICE = "KnativeService"


class AutoscalingBounds(BaseModel):
    min_replicas: Optional[int] = None
    max_replicas: int = 0
    target_cpu: Optional[int] = None

    class Config:
        frozen = True


class DesiredState(BaseModel):
    """Projection of a RuntimeComponent spec used by the reconcilers."""

    name: str
    namespace: str
    uid: Optional[str] = None
    generation: Optional[int] = None
    api_version: str
    application_image: str = ""
    application_name: Optional[str] = None
    application_version: Optional[str] = None
    replicas: Optional[int] = None
    autoscaling: Optional[AutoscalingBounds] = None
    workload_kind: WorkloadKind = WorkloadKind.DEPLOYMENT
    service_port: Optional[int] = None
    service_target_port: Optional[int] = None
    service_type: Optional[str] = None
    expose: bool = False
    storage_size: Optional[str] = None
    storage_mount_path: Optional[str] = None
    env: List[Dict[str, str]] = Field(default_factory=list)
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)

    class Config:
        frozen = True

    @property
    def serverless(self):
        return self.workload_kind == WorkloadKind.KNATIVE_SERVICE


def _common_fields(body, spec):
    metadata = body.get("metadata", {})
    autoscaling = None
    if spec.autoscaling is not None:
        autoscaling = AutoscalingBounds(
            min_replicas=spec.autoscaling.minReplicas,
            max_replicas=spec.autoscaling.maxReplicas,
            target_cpu=spec.autoscaling.targetCPUUtilizationPercentage,
        )
    service = spec.service
    return {
        "name": metadata["name"],
        "namespace": metadata.get("namespace", "default"),
        "uid": metadata.get("uid"),
        "generation": metadata.get("generation"),
        "api_version": body["apiVersion"],
        "application_image": spec.applicationImage,
        "application_name": spec.applicationName,
        "replicas": spec.replicas,
        "autoscaling": autoscaling,
        "service_port": service.port if service else None,
        "service_target_port": service.targetPort if service else None,
        "service_type": service.type if service else None,
        "expose": bool(spec.expose),
        "env": [{"name": e.name, "value": e.value} for e in spec.env],
        "labels": dict(metadata.get("labels") or {}),
        "annotations": dict(metadata.get("annotations") or {}),
    }


def _from_v1beta1(body, spec):
    fields = _common_fields(body, spec)
    fields["application_version"] = spec.version
    if spec.createKnativeService:
        fields["workload_kind"] = WorkloadKind.KNATIVE_SERVICE
    elif spec.storage is not None:
        fields["workload_kind"] = WorkloadKind.STATEFUL_SET
        fields["storage_size"] = spec.storage.size
        fields["storage_mount_path"] = spec.storage.mountPath
    return DesiredState(**fields)


def _from_v1beta2(body, spec):
    fields = _common_fields(body, spec)
    fields["application_version"] = spec.applicationVersion or spec.version

    storage = spec.statefulSet.storage if spec.statefulSet else None
    storage = storage or spec.storage
    if spec.createKnativeService:
        fields["workload_kind"] = WorkloadKind.KNATIVE_SERVICE
    elif spec.statefulSet is not None or storage is not None:
        fields["workload_kind"] = WorkloadKind.STATEFUL_SET
        if storage is not None:
            fields["storage_size"] = storage.size
            fields["storage_mount_path"] = storage.mountPath
    return DesiredState(**fields)


ADAPTERS = {
    "v1beta1": _from_v1beta1,
    "v1beta2": _from_v1beta2,
}


def desired_state_from_resource(body):
    """Adapt a RuntimeComponent body of any served version.

    Raises:
        ValidationError: If the version is not served or the spec is malformed
    """
    api_version = body.get("apiVersion", "")
    version = api_version.rpartition("/")[2]
    model_info = CRDRegistry().get_model_for_api_version(api_version, KIND)
    adapter = ADAPTERS.get(version)
    if model_info is None or adapter is None:
        raise ValidationError(f"Unsupported {KIND} API version: {api_version!r}")

    try:
        spec = model_info["model"].model_validate(body.get("spec") or {})
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid {KIND} spec: {e}") from e

    return adapter(body, spec)


def apply_defaults(desired):
    """Fill in defaulted fields. Pure, returns a new DesiredState."""
    update = {}

    if not desired.application_name:
        update["application_name"] = desired.labels.get(PART_OF_LABEL) or desired.name
    if not desired.service_port:
        update["service_port"] = DEFAULT_SERVICE_PORT
    if not desired.service_type:
        update["service_type"] = DEFAULT_SERVICE_TYPE
    if (
        desired.replicas is None
        and desired.autoscaling is None
        and not desired.serverless
    ):
        update["replicas"] = 1

    return desired.model_copy(update=update) if update else desired


def validate_desired_state(desired):
    """Reject internally inconsistent desired state.

    Raises:
        ValidationError: Describing the first problem found
    """
    if not desired.application_image:
        raise ValidationError("validation failed: spec.applicationImage is required")
    if desired.replicas is not None and desired.replicas < 0:
        raise ValidationError("validation failed: spec.replicas must not be negative")

    bounds = desired.autoscaling
    if bounds is not None:
        if bounds.max_replicas < 1:
            raise ValidationError(
                "validation failed: spec.autoscaling.maxReplicas must be at least 1"
            )
        if bounds.min_replicas is not None:
            if bounds.min_replicas < 1:
                raise ValidationError(
                    "validation failed: spec.autoscaling.minReplicas must be at least 1"
                )
            if bounds.min_replicas > bounds.max_replicas:
                raise ValidationError(
                    "validation failed: spec.autoscaling.minReplicas must not exceed maxReplicas"
                )

    if desired.workload_kind == WorkloadKind.STATEFUL_SET and desired.storage_mount_path:
        if not desired.storage_size:
            raise ValidationError(
                "validation failed: storage size is required when storage is set"
            )
        if not _QUANTITY.match(desired.storage_size):
            raise ValidationError(
                f"validation failed: cannot parse storage size {desired.storage_size!r}"
            )


def desired_state_hash(desired):
    """Stable hash of everything that drives child resource synthesis."""
    data = desired.model_dump(mode="json", exclude={"generation", "uid"})
    serialized = json.dumps(data, sort_keys=True)
    return hashlib.sha256(serialized.encode()).hexdigest()


def child_plan(desired):
    """Ordered child kinds the desired state needs."""
    if desired.serverless:
        return [ChildKind.KNATIVE_SERVICE]

    plan = [ChildKind.SERVICE]
    if desired.workload_kind == WorkloadKind.STATEFUL_SET:
        plan.append(ChildKind.STATEFUL_SET)
    else:
        plan.append(ChildKind.DEPLOYMENT)
    if desired.autoscaling is not None:
        plan.append(ChildKind.HORIZONTAL_POD_AUTOSCALER)
    return plan


def stale_children(desired):
    """Child kinds that may exist from an earlier desired state."""
    plan = child_plan(desired)
    return [kind for kind in ChildKind if kind not in plan]
