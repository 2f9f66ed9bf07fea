"""Value types passed between the reconcilers and their collaborators."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, NamedTuple, Optional


class ResourceKey(NamedTuple):
    namespace: str
    name: str

    def __str__(self):
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class ReconcileOutcome:
    """Result handed back to the host after one invocation."""

    requeue_after: float = 0.0
    requeue: bool = False
    error: Optional[BaseException] = None

    @classmethod
    def done(cls):
        return cls()

    @classmethod
    def after(cls, seconds, error=None):
        return cls(requeue_after=float(seconds), requeue=True, error=error)


class ChildKind(str, Enum):
    """Child resource kinds produced for a RuntimeComponent."""

    SERVICE = "Service"
    DEPLOYMENT = "Deployment"
    STATEFUL_SET = "StatefulSet"
    KNATIVE_SERVICE = "KnativeService"
    HORIZONTAL_POD_AUTOSCALER = "HorizontalPodAutoscaler"


@dataclass(frozen=True)
class LiveWorkload:
    """Observed state of the child workload.

    Replica counts are filled for Deployments and StatefulSets, the ready_*
    fields for Knative services.
    """

    kind: ChildKind
    replicas: int = 0
    ready_replicas: int = 0
    updated_replicas: int = 0
    ready_status: Optional[str] = None
    ready_message: str = ""


@dataclass(frozen=True)
class PodInfo:
    name: str
    namespace: str
    phase: Optional[str] = None
    containers: List[str] = field(default_factory=list)

    @property
    def running(self):
        return self.phase == "Running"
