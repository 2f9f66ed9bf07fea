"""Pydantic models for all CRDs."""

# Import all models to ensure they're registered
from . import runtime_component
from . import runtime_operation

__all__ = ["runtime_component", "runtime_operation"]
