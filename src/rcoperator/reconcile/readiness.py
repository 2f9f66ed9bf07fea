"""Readiness evaluation of the child workload and the Ready aggregate."""

import logging
from dataclasses import dataclass
from typing import Optional

from kubernetes.client.exceptions import ApiException

from rcoperator.crd.conditions import Condition, ConditionStatus, ConditionType
from rcoperator.errors import ReconcileError
from rcoperator.reconcile.desired_state import AutoscalingBounds, WorkloadKind
from rcoperator.reconcile.types import ChildKind

logger = logging.getLogger(__name__)

NOT_CREATED = "NotCreated"
MINIMUM_REPLICAS_AVAILABLE = "MinimumReplicasAvailable"
MINIMUM_REPLICAS_UNAVAILABLE = "MinimumReplicasUnavailable"
REPLICA_SET_UPDATING = "ReplicaSetUpdating"
SERVICE_STATUS_NOT_FOUND = "ServiceStatusNotFound"
APPLICATION_NOT_RECONCILED = "ApplicationNotReconciled"
RESOURCES_NOT_READY = "ResourcesNotReady"

APPLICATION_READY_MESSAGE = "Application is ready."
APPLICATION_NOT_RECONCILED_MESSAGE = "Application is not reconciled."
RESOURCES_NOT_READY_MESSAGE = "Resources are not ready."
REPLICA_SET_PROGRESSING_MESSAGE = "Replica set is progressing"


@dataclass(frozen=True)
class ReadinessInputs:
    """Live replica counts of a Deployment or StatefulSet next to the desired ones."""

    kind: str = ChildKind.DEPLOYMENT.value
    expected_replicas: Optional[int] = None
    autoscaling: Optional[AutoscalingBounds] = None
    live_replicas: int = 0
    live_ready_replicas: int = 0
    live_updated_replicas: int = 0
    resource_exists: bool = False


@dataclass(frozen=True)
class ServerlessInputs:
    """Existence and inner Ready condition of a Knative service."""

    resource_exists: bool = False
    ready_status: Optional[str] = None
    ready_message: str = ""


def _resources_ready(status, reason, message):
    return Condition(
        type=ConditionType.RESOURCES_READY,
        status=status,
        reason=reason,
        message=message,
    )


def evaluate_replicas(inputs):
    """Build the ResourcesReady condition for a replica-based workload."""
    if not inputs.resource_exists or (
        inputs.expected_replicas is None and inputs.autoscaling is None
    ):
        return _resources_ready(
            ConditionStatus.FALSE, NOT_CREATED, f"{inputs.kind} is not ready."
        )

    message = f"{inputs.kind} replicas ready: {inputs.live_ready_replicas}"

    if inputs.autoscaling is not None:
        minimum = inputs.autoscaling.min_replicas or 1
        if inputs.live_ready_replicas < minimum:
            return _resources_ready(
                ConditionStatus.FALSE,
                MINIMUM_REPLICAS_UNAVAILABLE,
                f"{message} < minReplicas: {minimum}",
            )
        return _resources_ready(
            ConditionStatus.TRUE, MINIMUM_REPLICAS_AVAILABLE, message
        )

    expected = inputs.expected_replicas
    message = f"{message}/{expected}"
    if (
        inputs.live_replicas == expected
        and inputs.live_ready_replicas == expected
        and inputs.live_updated_replicas == expected
    ):
        return _resources_ready(
            ConditionStatus.TRUE, MINIMUM_REPLICAS_AVAILABLE, message
        )
    if inputs.live_replicas > expected:
        # Scale down in progress is reported as ready
        return _resources_ready(
            ConditionStatus.TRUE, REPLICA_SET_UPDATING, REPLICA_SET_PROGRESSING_MESSAGE
        )
    return _resources_ready(
        ConditionStatus.FALSE, MINIMUM_REPLICAS_UNAVAILABLE, message
    )


def evaluate_serverless(inputs):
    """Build the ResourcesReady condition for a Knative service."""
    if not inputs.resource_exists:
        return _resources_ready(
            ConditionStatus.FALSE, NOT_CREATED, "Knative service is not ready."
        )
    if inputs.ready_status is None:
        return _resources_ready(
            ConditionStatus.FALSE,
            SERVICE_STATUS_NOT_FOUND,
            "Knative service status not found.",
        )
    status = ConditionStatus.TRUE if inputs.ready_status == "True" else ConditionStatus.FALSE
    return _resources_ready(status, "", inputs.ready_message)


def set_condition_if_changed(conditions, condition, now=None):
    """Upsert only when status or message differ from the stored condition."""
    existing = conditions.get(condition.type)
    if (
        existing is None
        or existing.status != condition.status
        or existing.message != condition.message
    ):
        conditions.upsert(condition, now=now)
        return True
    return False


class ReadinessEvaluator:
    """Refreshes ResourcesReady and Ready on a ComponentState."""

    def __init__(self, workload_reader, clock=None):
        self.workload_reader = workload_reader
        self.clock = clock

    def _now(self):
        return self.clock() if self.clock else None

    def _read_live(self, desired):
        try:
            return self.workload_reader.read_workload(desired)
        except (ReconcileError, ApiException) as e:
            logger.debug(f"Could not read workload {desired.namespace}/{desired.name}: {e}")
            return None

    def evaluate(self, desired):
        """Fetch the live workload and evaluate it against the desired state."""
        live = self._read_live(desired)

        if desired.serverless:
            if live is None:
                return evaluate_serverless(ServerlessInputs())
            return evaluate_serverless(
                ServerlessInputs(
                    resource_exists=True,
                    ready_status=live.ready_status,
                    ready_message=live.ready_message,
                )
            )

        kind = (
            ChildKind.STATEFUL_SET.value
            if desired.workload_kind == WorkloadKind.STATEFUL_SET
            else ChildKind.DEPLOYMENT.value
        )
        if live is None:
            return evaluate_replicas(ReadinessInputs(kind=kind))
        return evaluate_replicas(
            ReadinessInputs(
                kind=kind,
                expected_replicas=desired.replicas,
                autoscaling=desired.autoscaling,
                live_replicas=live.replicas,
                live_ready_replicas=live.ready_replicas,
                live_updated_replicas=live.updated_replicas,
                resource_exists=True,
            )
        )

    def check_resources_status(self, state):
        condition = self.evaluate(state.desired)
        if set_condition_if_changed(state.conditions, condition, now=self._now()):
            logger.debug(
                f"{state.key} ResourcesReady={condition.status.value}: {condition.message}"
            )
        return condition

    def check_application_status(self, state):
        """Recompute Ready from Reconciled and ResourcesReady.

        Resources are only evaluated once the application is reconciled.
        """
        conditions = state.conditions

        if not conditions.is_true(ConditionType.RECONCILED):
            ready = Condition(
                type=ConditionType.READY,
                status=ConditionStatus.FALSE,
                reason=APPLICATION_NOT_RECONCILED,
                message=APPLICATION_NOT_RECONCILED_MESSAGE,
            )
        else:
            self.check_resources_status(state)
            if conditions.is_true(ConditionType.RESOURCES_READY):
                ready = Condition(
                    type=ConditionType.READY,
                    status=ConditionStatus.TRUE,
                    message=APPLICATION_READY_MESSAGE,
                )
            else:
                ready = Condition(
                    type=ConditionType.READY,
                    status=ConditionStatus.FALSE,
                    reason=RESOURCES_NOT_READY,
                    message=RESOURCES_NOT_READY_MESSAGE,
                )

        set_condition_if_changed(conditions, ready, now=self._now())
        return ready.status
