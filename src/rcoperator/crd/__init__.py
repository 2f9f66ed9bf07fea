"""CRD management system for rcoperator."""

from .registry import CRDRegistry
from .base import CRDSpec, CRDStatus
from .conditions import Condition, ConditionSet, ConditionStatus, ConditionType

__all__ = [
    "CRDRegistry",
    "CRDSpec",
    "CRDStatus",
    "Condition",
    "ConditionSet",
    "ConditionStatus",
    "ConditionType",
]
