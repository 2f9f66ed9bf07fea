"""Convergence policy: condition updates and requeue timing."""

import logging

from kubernetes.client.exceptions import ApiException

from rcoperator.crd.conditions import Condition, ConditionStatus, ConditionType, utcnow
from rcoperator.errors import ReconcileError, ValidationError, classify, is_conflict
from rcoperator.reconcile.intervals import grow_interval
from rcoperator.reconcile.readiness import (
    RESOURCES_NOT_READY_MESSAGE,
    set_condition_if_changed,
)
from rcoperator.reconcile.types import ReconcileOutcome

logger = logging.getLogger(__name__)

PROCESSING_ERROR = "ProcessingError"
CONFLICT_RETRY_SECONDS = 1
PERSIST_RETRY_SECONDS = 1


class ConvergencePolicy:
    """Turns the result of an invocation into a status write and a requeue.

    Args:
        status_writer: StatusWriter used to persist the status subresource
        evaluator: ReadinessEvaluator refreshing ResourcesReady and Ready
        events: EventRecorder for warning events
        clock: Callable returning the current UTC time
    """

    def __init__(self, status_writer, evaluator, events, clock=utcnow):
        self.status_writer = status_writer
        self.evaluator = evaluator
        self.events = events
        self.clock = clock

    def _elapsed_since_transition(self, state, now):
        latest = state.conditions.latest_transition_time()
        if latest is None:
            return None
        return (now - latest).total_seconds()

    def _show_interval(self, state, config, interval):
        if config.show_reconcile_interval and interval is not None:
            state.status.reconcileInterval = int(interval)
        else:
            state.status.reconcileInterval = None

    def _persist(self, state):
        """Write status, returning an outcome only when the write failed.

        A status equal to the one last read or written is not sent.
        """
        status = state.status.to_status_dict()
        if status == state.persisted_status:
            logger.debug(f"Status of {state.key} unchanged, skipping update")
            return None

        try:
            new_version = self.status_writer.update_status(
                state.key, status, state.resource_version
            )
        except (ReconcileError, ApiException) as e:
            if is_conflict(e):
                logger.info(f"Status of {state.key} changed while reconciling, retrying")
            else:
                logger.error(f"Unable to update status of {state.key}: {e}")
            return ReconcileOutcome.after(PERSIST_RETRY_SECONDS, error=e)

        if new_version:
            state.resource_version = new_version
        state.persisted_status = status
        return None

    def manage_error(self, err, condition_type, state, config):
        """Record a failed invocation on `condition_type` and schedule a retry."""
        now = self.clock()
        conditions = state.conditions

        logger.error(f"Reconcile of {state.key} failed on {condition_type.value}: {err}")
        self.events.warning(state.body, PROCESSING_ERROR, str(err))

        prior = conditions.get(condition_type)
        conditions.upsert(
            Condition(
                type=condition_type,
                status=ConditionStatus.FALSE,
                reason=classify(err),
                message=str(err),
            ),
            now=now,
        )

        if condition_type == ConditionType.RESOURCES_READY:
            for forced in (ConditionType.READY, ConditionType.RECONCILED):
                conditions.upsert(
                    Condition(
                        type=forced,
                        status=ConditionStatus.FALSE,
                        message=RESOURCES_NOT_READY_MESSAGE,
                    ),
                    now=now,
                )
        else:
            self.evaluator.check_application_status(state)

        if isinstance(err, ValidationError):
            outcome = ReconcileOutcome(error=err)
        elif is_conflict(err):
            outcome = ReconcileOutcome.after(CONFLICT_RETRY_SECONDS, error=err)
        elif prior is None or prior.is_true():
            outcome = ReconcileOutcome.after(config.minimum_interval, error=err)
        else:
            interval = grow_interval(
                config.failure_interval,
                config.failure_maximum,
                config.increase_percentage,
                self._elapsed_since_transition(state, now),
            )
            outcome = ReconcileOutcome.after(interval, error=err)

        self._show_interval(
            state, config, outcome.requeue_after if outcome.requeue else None
        )

        failed = self._persist(state)
        return failed or outcome

    def manage_success(self, condition_type, state, config, desired_hash=None):
        """Record a successful invocation and schedule the next periodic check."""
        now = self.clock()
        conditions = state.conditions

        set_condition_if_changed(
            conditions, Condition(type=condition_type, status=ConditionStatus.TRUE), now=now
        )
        self.evaluator.check_application_status(state)

        state.status.observedGeneration = state.generation
        if desired_hash is not None:
            state.status.desiredStateHash = desired_hash

        if not conditions.is_true(ConditionType.RESOURCES_READY):
            interval = config.minimum_interval
        else:
            interval = grow_interval(
                config.reconcile_interval,
                config.success_maximum,
                config.increase_percentage,
                self._elapsed_since_transition(state, now),
            )
        self._show_interval(state, config, interval)

        failed = self._persist(state)
        if failed:
            return failed

        logger.debug(f"Reconciled {state.key}, next check in {interval}s")
        return ReconcileOutcome.after(interval)
