import pytest

from rcoperator.config import OperatorConfig
from rcoperator.crd.conditions import Condition, ConditionStatus, ConditionType
from rcoperator.errors import ConflictError, TransientPlatformError, ValidationError
from rcoperator.reconcile.desired_state import apply_defaults, desired_state_from_resource
from rcoperator.reconcile.intervals import grow_interval
from rcoperator.reconcile.policy import ConvergencePolicy
from rcoperator.reconcile.readiness import ReadinessEvaluator
from rcoperator.reconcile.state import ComponentState
from rcoperator.reconcile.types import ChildKind, LiveWorkload

from conftest import StaticWorkloadReader, make_component

READY_WORKLOAD = LiveWorkload(ChildKind.DEPLOYMENT, 1, 1, 1)


@pytest.fixture
def reader():
    return StaticWorkloadReader()


@pytest.fixture
def policy(store, events, clock, reader):
    evaluator = ReadinessEvaluator(reader, clock=clock)
    return ConvergencePolicy(store, evaluator, events, clock=clock)


def loaded_state(store, key):
    state = ComponentState.from_body(key, store.load(key))
    state.desired = apply_defaults(desired_state_from_resource(state.body))
    return state


@pytest.fixture
def state(store):
    key = store.add(make_component())
    return loaded_state(store, key)


class TestManageError:
    def test_fresh_failure_requeues_at_minimum(self, policy, state, config, store, events):
        err = TransientPlatformError("apiserver unavailable")

        outcome = policy.manage_error(err, ConditionType.RECONCILED, state, config)

        assert outcome.requeue
        assert outcome.requeue_after == 1
        reconciled = store.condition(state.key, "Reconciled")
        assert reconciled["status"] == "False"
        assert reconciled["reason"] == "InternalError"
        assert reconciled["message"] == "apiserver unavailable"
        assert store.condition(state.key, "Ready")["reason"] == "ApplicationNotReconciled"
        assert ("Warning", "ProcessingError", "apiserver unavailable") in events.events

    def test_repeated_failure_requeues_at_failure_interval(self, policy, state, config, clock):
        err = TransientPlatformError("apiserver unavailable")
        policy.manage_error(err, ConditionType.RECONCILED, state, config)
        clock.advance(1)

        outcome = policy.manage_error(err, ConditionType.RECONCILED, state, config)

        assert outcome.requeue_after == 5

    def test_failure_after_success_is_fresh(self, policy, state, config):
        state.conditions.upsert(
            Condition(type=ConditionType.RECONCILED, status=ConditionStatus.TRUE)
        )

        outcome = policy.manage_error(
            TransientPlatformError("boom"), ConditionType.RECONCILED, state, config
        )

        assert outcome.requeue_after == 1

    def test_validation_error_does_not_requeue(self, policy, state, config, store):
        outcome = policy.manage_error(
            ValidationError("bad spec"), ConditionType.RECONCILED, state, config
        )

        assert not outcome.requeue
        assert store.condition(state.key, "Reconciled")["reason"] == "Invalid"

    def test_conflict_requeues_after_one_second(self, policy, state, config):
        state.conditions.upsert(
            Condition(type=ConditionType.RECONCILED, status=ConditionStatus.FALSE)
        )
        outcome = policy.manage_error(
            ConflictError("object was modified"), ConditionType.RECONCILED, state, config
        )
        assert outcome.requeue_after == 1

    def test_resources_ready_failure_forces_ready_and_reconciled(
        self, policy, state, config, store, reader
    ):
        reader.workload = READY_WORKLOAD
        state.conditions.upsert(
            Condition(type=ConditionType.RECONCILED, status=ConditionStatus.TRUE)
        )

        policy.manage_error(
            TransientPlatformError("cannot read deployment"),
            ConditionType.RESOURCES_READY,
            state,
            config,
        )

        for condition_type in ("Ready", "Reconciled"):
            condition = store.condition(state.key, condition_type)
            assert condition["status"] == "False"
            assert condition["message"] == "Resources are not ready."
            assert condition["reason"] == ""
        assert reader.calls == 0

    def test_persist_failure_requeues_after_one_second(self, policy, state, config, store):
        store.fail_next.append(ConflictError("stale resourceVersion"))

        outcome = policy.manage_error(
            ValidationError("bad spec"), ConditionType.RECONCILED, state, config
        )

        assert outcome.requeue
        assert outcome.requeue_after == 1
        assert store.writes == []


class TestManageSuccess:
    def test_polls_fast_until_resources_ready(self, policy, state, config, store):
        outcome = policy.manage_success(ConditionType.RECONCILED, state, config)

        assert outcome.requeue_after == 1
        assert store.condition(state.key, "Reconciled")["status"] == "True"
        assert store.condition(state.key, "ResourcesReady")["reason"] == "NotCreated"
        assert store.condition(state.key, "Ready")["reason"] == "ResourcesNotReady"

    def test_steady_state_interval_once_ready(self, policy, state, config, store, reader):
        reader.workload = READY_WORKLOAD

        outcome = policy.manage_success(
            ConditionType.RECONCILED, state, config, desired_hash="abc"
        )

        assert outcome.requeue_after == 15
        status = store.status(state.key)
        assert status["observedGeneration"] == 1
        assert status["desiredStateHash"] == "abc"
        assert store.condition(state.key, "Ready")["status"] == "True"

    def test_interval_shown_in_status_when_enabled(self, policy, state, store, reader):
        reader.workload = READY_WORKLOAD
        config = OperatorConfig(show_reconcile_interval=True)

        policy.manage_success(ConditionType.RECONCILED, state, config)

        assert store.status(state.key)["reconcileInterval"] == 15

    def test_interval_hidden_by_default(self, policy, state, config, store, reader):
        reader.workload = READY_WORKLOAD
        policy.manage_success(ConditionType.RECONCILED, state, config)

        assert store.writes[-1]["reconcileInterval"] is None
        assert "reconcileInterval" not in store.status(state.key)

    def test_persist_failure(self, policy, state, config, store):
        store.fail_next.append(TransientPlatformError("timeout"))

        outcome = policy.manage_success(ConditionType.RECONCILED, state, config)

        assert outcome.requeue_after == 1
        assert outcome.error is not None

    def test_resource_version_advances(self, policy, state, config):
        before = state.resource_version
        policy.manage_success(ConditionType.RECONCILED, state, config)
        assert state.resource_version != before

    def test_unchanged_status_is_not_rewritten(self, policy, store, config, reader, clock):
        reader.workload = READY_WORKLOAD
        key = store.add(make_component(name="steady"))
        policy.manage_success(ConditionType.RECONCILED, loaded_state(store, key), config)
        reconciled = store.condition(key, "Reconciled")
        writes = len(store.writes)

        clock.advance(30)
        outcome = policy.manage_success(ConditionType.RECONCILED, loaded_state(store, key), config)

        assert outcome.requeue_after == 15
        assert len(store.writes) == writes
        assert store.condition(key, "Reconciled") == reconciled

    def test_recovery_moves_reconciled_transition(self, policy, state, config, store, clock):
        state.conditions.upsert(
            Condition(type=ConditionType.RECONCILED, status=ConditionStatus.FALSE, message="boom"),
            now=clock(),
        )
        clock.advance(10)

        policy.manage_success(ConditionType.RECONCILED, state, config)

        reconciled = store.condition(state.key, "Reconciled")
        assert reconciled["status"] == "True"
        assert reconciled["lastTransitionTime"] == reconciled["lastUpdateTime"]
        assert reconciled["message"] == ""


class TestGrowInterval:
    def test_zero_percentage_keeps_base(self):
        assert grow_interval(15, 240, 0, 1000) == 15

    def test_grows_with_elapsed_time(self):
        assert grow_interval(5, 120, 100, 3) == 5
        assert grow_interval(5, 120, 100, 10) == 10
        assert grow_interval(5, 120, 100, 20) == 20

    def test_capped_at_maximum(self):
        assert grow_interval(5, 120, 100, 100) == 120
        assert grow_interval(5, 120, 100, 500) == 120

    def test_no_transition_keeps_base(self):
        assert grow_interval(5, 120, 50, None) == 5
