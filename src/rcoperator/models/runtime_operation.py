"""RuntimeOperation CRD models."""

from pydantic import Field
from typing import List

from rcoperator import GROUP
from rcoperator.crd.registry import CRDRegistry
from rcoperator.crd.base import CRDSpec, CRDStatus

KIND = "RuntimeOperation"
PLURAL = "runtimeoperations"
DEFAULT_CONTAINER = "app"


@CRDRegistry.register(GROUP, "v1beta1", KIND, PLURAL)
class RuntimeOperationSpec(CRDSpec):
    """RuntimeOperation CRD specification."""

    podName: str = Field(..., description="Name of the pod the command runs in")
    containerName: str = Field(
        default=DEFAULT_CONTAINER,
        description="Name of the container the command runs in",
    )
    command: List[str] = Field(..., description="Command to run, as an argv list")


class RuntimeOperationStatus(CRDStatus):
    """Status holding the Started and Completed conditions."""
