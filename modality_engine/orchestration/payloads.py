"""Action payloads accepted by the status machine."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class TransitionPayload(BaseModel):
    """
    Optional data carried by a transition.

    Which fields matter depends on the action: `reason` for rejections,
    corrections, cancellation decisions and early closes, the director id for
    ASSIGN_DIRECTOR, date and location for defense actions, examiner ids for
    panel assignment, `observations` for the simplified committee approval.
    """

    reason: Optional[str] = Field(None, max_length=5000)
    observations: Optional[str] = Field(None, max_length=5000)
    project_director_id: Optional[uuid.UUID] = None
    defense_datetime: Optional[datetime] = None
    defense_location: Optional[str] = Field(None, max_length=255)
    primary_examiner_1_id: Optional[uuid.UUID] = None
    primary_examiner_2_id: Optional[uuid.UUID] = None
    tiebreaker_examiner_id: Optional[uuid.UUID] = None

    @field_validator("reason", "observations", "defense_location")
    @classmethod
    def strip_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None
