"""RuntimeComponent CRD models."""

from pydantic import Field
from typing import List, Optional, Dict, Any

from rcoperator import GROUP
from rcoperator.crd.registry import CRDRegistry
from rcoperator.crd.base import CRDSpec, CRDStatus

KIND = "RuntimeComponent"
PLURAL = "runtimecomponents"


class EnvironmentVariable(CRDSpec):
    """Environment variable specification."""

    name: str = Field(..., description="Environment variable name")
    value: str = Field(default="", description="Environment variable value")


class AutoscalingSpec(CRDSpec):
    """Horizontal pod autoscaler settings."""

    minReplicas: Optional[int] = Field(
        default=None, description="Lower limit for the number of pods"
    )
    maxReplicas: int = Field(
        default=0, description="Upper limit for the number of pods"
    )
    targetCPUUtilizationPercentage: Optional[int] = Field(
        default=None, description="Target average CPU utilization over all pods"
    )


class ServiceSpec(CRDSpec):
    """Service exposing the component pods."""

    port: Optional[int] = Field(default=None, description="Port exposed by the service")
    targetPort: Optional[int] = Field(
        default=None, description="Port the container listens on"
    )
    type: Optional[str] = Field(default=None, description="Kubernetes service type")
    portName: Optional[str] = Field(default=None, description="Name of the port")


class StorageSpec(CRDSpec):
    """Persistent storage for StatefulSet workloads."""

    size: Optional[str] = Field(default=None, description="Size of the volume claim")
    mountPath: Optional[str] = Field(
        default=None, description="Path where the volume is mounted"
    )


class DeploymentSpec(CRDSpec):
    """Deployment-only settings."""

    annotations: Dict[str, str] = Field(default_factory=dict)
    updateStrategy: Optional[Dict[str, Any]] = None


class StatefulSetSpec(CRDSpec):
    """StatefulSet-only settings."""

    annotations: Dict[str, str] = Field(default_factory=dict)
    updateStrategy: Optional[Dict[str, Any]] = None
    storage: Optional[StorageSpec] = None


class RuntimeComponentBaseSpec(CRDSpec):
    """Fields shared by every RuntimeComponent version."""

    applicationImage: str = Field(..., description="Application image to deploy")
    applicationName: Optional[str] = Field(
        default=None, description="Name of the application this component belongs to"
    )
    replicas: Optional[int] = Field(
        default=None,
        description="Number of pods. Not applicable with autoscaling or Knative",
    )
    autoscaling: Optional[AutoscalingSpec] = None
    service: Optional[ServiceSpec] = None
    expose: Optional[bool] = Field(
        default=None, description="Expose the application externally"
    )
    createKnativeService: Optional[bool] = Field(
        default=None, description="Create a Knative service instead of a workload"
    )
    env: List[EnvironmentVariable] = Field(default_factory=list)


@CRDRegistry.register(GROUP, "v1beta1", KIND, PLURAL)
class RuntimeComponentSpecV1Beta1(RuntimeComponentBaseSpec):
    """RuntimeComponent v1beta1 specification.

    A top level storage stanza selects a StatefulSet workload.
    """

    version: Optional[str] = Field(default=None, description="Application version")
    storage: Optional[StorageSpec] = None


@CRDRegistry.register(GROUP, "v1beta2", KIND, PLURAL)
class RuntimeComponentSpecV1Beta2(RuntimeComponentBaseSpec):
    """RuntimeComponent v1beta2 specification.

    The API server stores a single version without a conversion webhook, so
    a v1beta1 object read back as v1beta2 still carries `version` and
    `storage`. Those fields are honoured when their replacements are unset.
    """

    applicationVersion: Optional[str] = Field(
        default=None, description="Application version"
    )
    deployment: Optional[DeploymentSpec] = None
    statefulSet: Optional[StatefulSetSpec] = None
    # Deprecated v1beta1 fields, kept so objects written through v1beta1
    # are not pruned when served as v1beta2
    version: Optional[str] = Field(
        default=None, description="Deprecated, use applicationVersion"
    )
    storage: Optional[StorageSpec] = Field(
        default=None, description="Deprecated, use statefulSet.storage"
    )


class RuntimeComponentStatus(CRDStatus):
    """Status subresource written by the component reconciler."""

    reconcileInterval: Optional[int] = None
    desiredStateHash: Optional[str] = None

    def to_status_dict(self):
        data = super().to_status_dict()
        # Explicit null so a merge patch drops a previously shown interval
        data.setdefault("reconcileInterval", None)
        return data
