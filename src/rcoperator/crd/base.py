"""Base classes for CRD specifications."""

import logging
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from .conditions import ConditionSet

logger = logging.getLogger(__name__)


class CRDStatus(BaseModel):
    """Base class for all CRD status objects."""

    conditions: ConditionSet = Field(default_factory=ConditionSet)
    observedGeneration: Optional[int] = None

    class Config:
        extra = "allow"

    @classmethod
    def from_body(cls, body):
        """Parse the status stanza of a resource body."""
        status = dict((body or {}).get("status") or {})
        conditions = ConditionSet.from_list(status.pop("conditions", None))
        try:
            return cls(conditions=conditions, **status)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed status fields: {e}")
            return cls(conditions=conditions)

    def to_status_dict(self):
        return self.model_dump(mode="json", exclude_none=True)


class CRDSpec(BaseModel):
    """Base class for all CRD spec objects."""

    class Config:
        extra = "ignore"
        validate_assignment = True
