"""Status conditions and the ordered, unique-by-type condition set."""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, RootModel, ValidationError, field_validator

from rcoperator.errors import UnknownConditionTypeError

logger = logging.getLogger(__name__)


class ConditionType(str, Enum):
    """Every condition type written by this operator."""

    RECONCILED = "Reconciled"
    RESOURCES_READY = "ResourcesReady"
    READY = "Ready"
    STARTED = "Started"
    COMPLETED = "Completed"


class ConditionStatus(str, Enum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


_CONDITION_TYPES = {member.value: member for member in ConditionType}


def parse_condition_type(value):
    """Map a raw condition type onto ConditionType.

    Raises:
        UnknownConditionTypeError: If the value is not a known condition type
    """
    if isinstance(value, ConditionType):
        return value
    try:
        return _CONDITION_TYPES[value]
    except (KeyError, TypeError):
        raise UnknownConditionTypeError(f"Unknown status condition type: {value!r}")


def utcnow():
    """Current time, truncated to the second like Kubernetes timestamps."""
    return datetime.now(timezone.utc).replace(microsecond=0)


class Condition(BaseModel):
    """A timestamped health fact stored under status.conditions."""

    type: ConditionType
    status: ConditionStatus
    reason: str = ""
    message: str = ""
    lastTransitionTime: Optional[datetime] = None
    lastUpdateTime: Optional[datetime] = None

    class Config:
        frozen = True

    @field_validator("type", mode="before")
    @classmethod
    def _known_type(cls, value):
        return parse_condition_type(value)

    def is_true(self):
        return self.status == ConditionStatus.TRUE


class ConditionSet(RootModel[List[Condition]]):
    """Ordered collection holding at most one Condition per type.

    Entries are replaced by index on upsert, existing entries are never
    reordered and unseen types are appended.
    """

    root: List[Condition] = Field(default_factory=list)

    @classmethod
    def from_list(cls, items):
        """Build a set from raw status.conditions, skipping unusable entries."""
        conditions = cls()
        for item in items or []:
            try:
                condition = Condition.model_validate(item)
            except UnknownConditionTypeError as e:
                logger.warning(f"Dropping status condition: {e}")
                continue
            except ValidationError as e:
                logger.warning(f"Dropping malformed status condition {item!r}: {e}")
                continue
            if conditions._index(condition.type) is not None:
                logger.warning(f"Dropping duplicate {condition.type.value} condition")
                continue
            conditions.root.append(condition)
        return conditions

    def __iter__(self):
        return iter(self.root)

    def __len__(self):
        return len(self.root)

    def _index(self, condition_type):
        for i, condition in enumerate(self.root):
            if condition.type == condition_type:
                return i
        return None

    def get(self, condition_type):
        """Return the condition of the given type, or None."""
        index = self._index(parse_condition_type(condition_type))
        if index is None:
            return None
        return self.root[index]

    def is_true(self, condition_type):
        condition = self.get(condition_type)
        return condition is not None and condition.is_true()

    def upsert(self, condition, now=None):
        """Insert or update a condition.

        A changed status moves both timestamps, an unchanged status only
        refreshes reason, message and lastUpdateTime.
        """
        now = now or utcnow()
        index = self._index(condition.type)

        if index is None:
            self.root.append(
                condition.model_copy(
                    update={"lastTransitionTime": now, "lastUpdateTime": now}
                )
            )
            return

        existing = self.root[index]
        update = {
            "reason": condition.reason,
            "message": condition.message,
            "lastUpdateTime": now,
        }
        if existing.status != condition.status:
            update["status"] = condition.status
            update["lastTransitionTime"] = now
        self.root[index] = existing.model_copy(update=update)

    def latest_transition_time(self):
        times = [c.lastTransitionTime for c in self.root if c.lastTransitionTime]
        return max(times) if times else None

    def to_list(self):
        return [
            condition.model_dump(mode="json", exclude_none=True)
            for condition in self.root
        ]
