"""Per-invocation working copies of the primary resources."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from rcoperator.models.runtime_component import RuntimeComponentStatus
from rcoperator.models.runtime_operation import RuntimeOperationSpec, RuntimeOperationStatus
from rcoperator.reconcile.types import ResourceKey


@dataclass
class ComponentState:
    """RuntimeComponent fetched once at the start of an invocation.

    `resource_version` is the optimistic concurrency token for the status
    write and is advanced after every successful write. `persisted_status`
    is the status as last read or written, used to skip no-op writes.
    """

    key: ResourceKey
    body: Dict[str, Any]
    status: RuntimeComponentStatus
    resource_version: Optional[str] = None
    generation: Optional[int] = None
    desired: Any = None
    persisted_status: Optional[Dict[str, Any]] = None

    @classmethod
    def from_body(cls, key, body):
        metadata = body.get("metadata", {})
        status = RuntimeComponentStatus.from_body(body)
        return cls(
            key=key,
            body=body,
            status=status,
            resource_version=metadata.get("resourceVersion"),
            generation=metadata.get("generation"),
            persisted_status=status.to_status_dict(),
        )

    @property
    def conditions(self):
        return self.status.conditions


@dataclass
class OperationState:
    """RuntimeOperation fetched once at the start of an invocation."""

    key: ResourceKey
    body: Dict[str, Any]
    status: RuntimeOperationStatus
    resource_version: Optional[str] = None
    spec: Optional[RuntimeOperationSpec] = None

    @classmethod
    def from_body(cls, key, body):
        return cls(
            key=key,
            body=body,
            status=RuntimeOperationStatus.from_body(body),
            resource_version=body.get("metadata", {}).get("resourceVersion"),
        )

    @property
    def conditions(self):
        return self.status.conditions
