"""Handler modules for the runtime component operator."""

from . import runtime_component_handler
from . import runtime_operation_handler

__all__ = ["runtime_component_handler", "runtime_operation_handler"]
