"""RuntimeComponent reconciliation, one invocation per resource key."""

import logging

from kubernetes.client.exceptions import ApiException

from rcoperator.crd.conditions import ConditionType
from rcoperator.errors import (
    TRANSPORT_ERRORS,
    NotFoundError,
    ReconcileError,
    from_api_exception,
    from_transport_error,
)
from rcoperator.reconcile.desired_state import (
    apply_defaults,
    child_plan,
    desired_state_from_resource,
    desired_state_hash,
    stale_children,
    validate_desired_state,
)
from rcoperator.reconcile.state import ComponentState
from rcoperator.reconcile.types import ReconcileOutcome

logger = logging.getLogger(__name__)


class ComponentReconciler:
    """Sequences one RuntimeComponent invocation.

    Args:
        config_source: Provides a fresh OperatorConfig snapshot per invocation
        loader: ResourceLoader for RuntimeComponents
        synthesizer: ResourceSynthesizer for child resources
        policy: ConvergencePolicy that writes status and picks the requeue
    """

    def __init__(self, config_source, loader, synthesizer, policy):
        self.config_source = config_source
        self.loader = loader
        self.synthesizer = synthesizer
        self.policy = policy

    def reconcile(self, key):
        config = self.config_source.load()
        logger.info(f"Reconciling RuntimeComponent {key}")

        try:
            body = self.loader.load(key)
        except NotFoundError:
            logger.debug(f"RuntimeComponent {key} no longer exists")
            return ReconcileOutcome.done()
        except ReconcileError as e:
            logger.error(f"Unable to load RuntimeComponent {key}: {e}")
            return ReconcileOutcome.after(config.minimum_interval, error=e)

        state = ComponentState.from_body(key, body)

        try:
            desired = apply_defaults(desired_state_from_resource(body))
            validate_desired_state(desired)
        except ReconcileError as e:
            return self.policy.manage_error(e, ConditionType.RECONCILED, state, config)

        state.desired = desired
        desired_hash = desired_state_hash(desired)

        if self._up_to_date(state, desired_hash):
            logger.debug(f"RuntimeComponent {key} unchanged, skipping synthesis")
        else:
            try:
                self._synthesize(desired)
            except ReconcileError as e:
                condition_type = e.condition_type or ConditionType.RECONCILED
                return self.policy.manage_error(e, condition_type, state, config)

        return self.policy.manage_success(
            ConditionType.RECONCILED, state, config, desired_hash=desired_hash
        )

    def _up_to_date(self, state, desired_hash):
        conditions = state.conditions
        return (
            conditions.is_true(ConditionType.RECONCILED)
            and conditions.is_true(ConditionType.RESOURCES_READY)
            and state.status.desiredStateHash == desired_hash
            and state.status.observedGeneration == state.generation
        )

    def _synthesize(self, desired):
        """Apply every planned child and remove the ones no longer planned.

        Raises:
            ReconcileError: On the first child that could not be applied
        """
        try:
            for kind in stale_children(desired):
                self.synthesizer.delete(desired, kind)
            for kind in child_plan(desired):
                logger.debug(f"Applying {kind.value} for {desired.namespace}/{desired.name}")
                self.synthesizer.synthesize_and_apply(desired, kind)
        except ApiException as e:
            raise from_api_exception(e) from e
        except TRANSPORT_ERRORS as e:
            raise from_transport_error(e) from e
