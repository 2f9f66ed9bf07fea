"""One-shot RuntimeOperation controller.

A RuntimeOperation runs its command at most once. Started is persisted
before the command is executed, so a re-delivered or racing invocation
observes Started=True and leaves the operation alone.
"""

import logging

from kubernetes.client.exceptions import ApiException
from pydantic import ValidationError as PydanticValidationError

from rcoperator.crd.conditions import Condition, ConditionStatus, ConditionType, utcnow
from rcoperator.errors import (
    CommandExecutionError,
    NotFoundError,
    PreconditionError,
    ReconcileError,
    is_conflict,
)
from rcoperator.models.runtime_operation import DEFAULT_CONTAINER, RuntimeOperationSpec
from rcoperator.reconcile.intervals import operation_retry_interval
from rcoperator.reconcile.state import OperationState
from rcoperator.reconcile.types import ReconcileOutcome

logger = logging.getLogger(__name__)

PROCESSING_ERROR = "ProcessingError"
ERROR_REASON = "Error"
PERSIST_RETRY_SECONDS = 1


class OperationController:
    """Drives a RuntimeOperation from Pending through Started to Completed."""

    def __init__(self, loader, status_writer, pod_reader, executor, events, clock=utcnow):
        self.loader = loader
        self.status_writer = status_writer
        self.pod_reader = pod_reader
        self.executor = executor
        self.events = events
        self.clock = clock

    def reconcile(self, key):
        logger.info(f"Reconciling RuntimeOperation {key}")

        try:
            body = self.loader.load(key)
        except NotFoundError:
            logger.debug(f"RuntimeOperation {key} no longer exists")
            return ReconcileOutcome.done()
        except ReconcileError as e:
            logger.error(f"Unable to load RuntimeOperation {key}: {e}")
            return ReconcileOutcome.after(PERSIST_RETRY_SECONDS, error=e)

        state = OperationState.from_body(key, body)
        conditions = state.conditions

        if conditions.is_true(ConditionType.COMPLETED):
            message = (
                f"RuntimeOperation '{key.name}' in namespace '{key.namespace}' already "
                f"completed. Create another RuntimeOperation instance to execute the command."
            )
            logger.info(message)
            self.events.warning(body, PROCESSING_ERROR, message)
            return ReconcileOutcome.done()

        if conditions.is_true(ConditionType.STARTED):
            message = (
                f"RuntimeOperation '{key.name}' in namespace '{key.namespace}' already "
                f"started and it can not be modified. Create another RuntimeOperation "
                f"instance to execute the command."
            )
            logger.info(message)
            self.events.warning(body, PROCESSING_ERROR, message)
            return ReconcileOutcome.done()

        try:
            state.spec = RuntimeOperationSpec.model_validate(body.get("spec") or {})
        except PydanticValidationError as e:
            message = f"Invalid RuntimeOperation spec: {e}"
            logger.warning(f"{key}: {message}")
            self.events.warning(body, PROCESSING_ERROR, message)
            return ReconcileOutcome.done()

        container = state.spec.containerName or DEFAULT_CONTAINER

        try:
            self._check_target(state, container)
        except PreconditionError as e:
            return self._start_failed(state, e)

        conditions.upsert(
            Condition(type=ConditionType.STARTED, status=ConditionStatus.TRUE),
            now=self.clock(),
        )
        if not self._persist(state):
            return ReconcileOutcome.after(PERSIST_RETRY_SECONDS)

        try:
            output = self.executor.execute(
                key.namespace, state.spec.podName, container, state.spec.command
            )
        except CommandExecutionError as e:
            logger.error(
                f"Execute command failed for RuntimeOperation {key} "
                f"(command {state.spec.command}): {e}"
            )
            self.events.warning(body, PROCESSING_ERROR, str(e))
            completed = Condition(
                type=ConditionType.COMPLETED,
                status=ConditionStatus.TRUE,
                reason=ERROR_REASON,
                message=str(e),
            )
        else:
            logger.debug(f"RuntimeOperation {key} output: {output}")
            completed = Condition(
                type=ConditionType.COMPLETED, status=ConditionStatus.TRUE
            )

        conditions.upsert(completed, now=self.clock())
        # The command already ran; a failed write here must not cause a rerun
        self._persist(state)
        return ReconcileOutcome.done()

    def _check_target(self, state, container):
        key = state.key
        pod_name = state.spec.podName
        message = f"Failed to find pod '{pod_name}' in namespace '{key.namespace}'"

        try:
            pod = self.pod_reader.read_pod(key.namespace, pod_name)
        except (ReconcileError, ApiException) as e:
            logger.debug(f"Reading pod {key.namespace}/{pod_name} failed: {e}")
            raise PreconditionError(message)

        if pod is None:
            raise PreconditionError(message)
        if not pod.running:
            raise PreconditionError(f"{message} in running state")
        if container not in pod.containers:
            raise PreconditionError(
                f"Failed to find container '{container}' in pod '{pod_name}' "
                f"in namespace '{key.namespace}'"
            )

    def _start_failed(self, state, err):
        now = self.clock()
        message = str(err)

        logger.error(f"RuntimeOperation {state.key}: {message}")
        self.events.warning(state.body, PROCESSING_ERROR, message)

        previous = state.conditions.get(ConditionType.STARTED)
        interval = operation_retry_interval(previous, message, now)

        state.conditions.upsert(
            Condition(
                type=ConditionType.STARTED,
                status=ConditionStatus.FALSE,
                reason=ERROR_REASON,
                message=message,
            ),
            now=now,
        )
        if not self._persist(state):
            return ReconcileOutcome.after(PERSIST_RETRY_SECONDS, error=err)
        return ReconcileOutcome.after(interval, error=err)

    def _persist(self, state):
        try:
            new_version = self.status_writer.update_status(
                state.key, state.status.to_status_dict(), state.resource_version
            )
        except (ReconcileError, ApiException) as e:
            if is_conflict(e):
                logger.info(f"RuntimeOperation {state.key} changed while reconciling")
            else:
                logger.error(f"Unable to update status of RuntimeOperation {state.key}: {e}")
            return False

        if new_version:
            state.resource_version = new_version
        return True
