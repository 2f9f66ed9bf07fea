"""Reconciliation core for RuntimeComponent and RuntimeOperation."""

from .operation import OperationController
from .orchestrator import ComponentReconciler
from .policy import ConvergencePolicy
from .readiness import ReadinessEvaluator
from .types import ReconcileOutcome, ResourceKey

__all__ = [
    "ComponentReconciler",
    "ConvergencePolicy",
    "OperationController",
    "ReadinessEvaluator",
    "ReconcileOutcome",
    "ResourceKey",
]
