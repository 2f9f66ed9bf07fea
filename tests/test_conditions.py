from datetime import timedelta

import pytest

from rcoperator.crd.conditions import (
    Condition,
    ConditionSet,
    ConditionStatus,
    ConditionType,
    parse_condition_type,
)
from rcoperator.errors import UnknownConditionTypeError
from rcoperator.models.runtime_component import RuntimeComponentStatus

from conftest import START


def condition(condition_type, status, reason="", message=""):
    return Condition(type=condition_type, status=status, reason=reason, message=message)


class TestParseConditionType:
    def test_known_values(self):
        assert parse_condition_type("Ready") == ConditionType.READY
        assert parse_condition_type("Completed") == ConditionType.COMPLETED

    def test_unknown_value_raises(self):
        with pytest.raises(UnknownConditionTypeError):
            parse_condition_type("Warning")

    def test_condition_rejects_unknown_type(self):
        with pytest.raises(UnknownConditionTypeError):
            Condition(type="Bogus", status="True")


class TestUpsert:
    def test_append_sets_both_timestamps(self):
        conditions = ConditionSet()
        conditions.upsert(condition(ConditionType.READY, ConditionStatus.FALSE), now=START)

        ready = conditions.get(ConditionType.READY)
        assert ready.lastTransitionTime == START
        assert ready.lastUpdateTime == START

    def test_unchanged_status_only_moves_update_time(self):
        conditions = ConditionSet()
        conditions.upsert(
            condition(ConditionType.READY, ConditionStatus.FALSE, "A", "first"), now=START
        )
        later = START + timedelta(seconds=30)
        conditions.upsert(
            condition(ConditionType.READY, ConditionStatus.FALSE, "B", "second"), now=later
        )

        ready = conditions.get(ConditionType.READY)
        assert ready.lastTransitionTime == START
        assert ready.lastUpdateTime == later
        assert ready.reason == "B"
        assert ready.message == "second"

    def test_changed_status_moves_both_timestamps(self):
        conditions = ConditionSet()
        conditions.upsert(condition(ConditionType.READY, ConditionStatus.FALSE), now=START)
        later = START + timedelta(seconds=30)
        conditions.upsert(condition(ConditionType.READY, ConditionStatus.TRUE), now=later)

        ready = conditions.get(ConditionType.READY)
        assert ready.status == ConditionStatus.TRUE
        assert ready.lastTransitionTime == later
        assert ready.lastUpdateTime == later

    def test_one_entry_per_type_and_order_kept(self):
        conditions = ConditionSet()
        for condition_type in (
            ConditionType.RECONCILED,
            ConditionType.RESOURCES_READY,
            ConditionType.READY,
        ):
            conditions.upsert(condition(condition_type, ConditionStatus.FALSE), now=START)
        conditions.upsert(condition(ConditionType.RECONCILED, ConditionStatus.TRUE), now=START)
        conditions.upsert(condition(ConditionType.READY, ConditionStatus.TRUE), now=START)

        assert [c.type for c in conditions] == [
            ConditionType.RECONCILED,
            ConditionType.RESOURCES_READY,
            ConditionType.READY,
        ]
        assert len(conditions) == 3

    def test_previously_fetched_condition_is_not_mutated(self):
        conditions = ConditionSet()
        conditions.upsert(condition(ConditionType.STARTED, ConditionStatus.FALSE), now=START)
        before = conditions.get(ConditionType.STARTED)

        conditions.upsert(condition(ConditionType.STARTED, ConditionStatus.TRUE), now=START)

        assert before.status == ConditionStatus.FALSE
        assert conditions.get(ConditionType.STARTED).status == ConditionStatus.TRUE


class TestFromList:
    def test_round_trips_status_list(self):
        conditions = ConditionSet()
        conditions.upsert(
            condition(ConditionType.RECONCILED, ConditionStatus.TRUE), now=START
        )

        parsed = ConditionSet.from_list(conditions.to_list())

        assert parsed.get(ConditionType.RECONCILED).lastTransitionTime == START
        assert parsed.to_list()[0]["lastTransitionTime"] == "2024-01-01T12:00:00Z"

    def test_skips_unknown_and_duplicate_types(self):
        parsed = ConditionSet.from_list(
            [
                {"type": "Ready", "status": "True"},
                {"type": "Warning", "status": "True"},
                {"type": "Ready", "status": "False"},
            ]
        )

        assert len(parsed) == 1
        assert parsed.is_true(ConditionType.READY)

    def test_drops_malformed_entries(self):
        parsed = ConditionSet.from_list(
            [
                {"type": "Ready", "status": "unknown"},
                {"type": "Reconciled"},
                {"type": "ResourcesReady", "status": "True", "lastTransitionTime": "yesterday"},
                {"type": "Ready", "status": "False", "message": "kept"},
            ]
        )

        assert len(parsed) == 1
        assert parsed.get(ConditionType.READY).message == "kept"

    def test_malformed_status_fields_keep_conditions(self):
        status = RuntimeComponentStatus.from_body(
            {
                "status": {
                    "observedGeneration": "latest",
                    "conditions": [{"type": "Ready", "status": "True"}],
                }
            }
        )

        assert status.observedGeneration is None
        assert status.conditions.is_true(ConditionType.READY)

    def test_latest_transition_time(self):
        conditions = ConditionSet()
        assert conditions.latest_transition_time() is None

        later = START + timedelta(minutes=1)
        conditions.upsert(condition(ConditionType.READY, ConditionStatus.TRUE), now=START)
        conditions.upsert(condition(ConditionType.RECONCILED, ConditionStatus.TRUE), now=later)

        assert conditions.latest_transition_time() == later
