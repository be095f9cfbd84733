"""Modality record schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from modality_engine.orchestration.payloads import TransitionPayload
from modality_engine.orchestration.transitions import ModalityAction


class ModalityStart(BaseModel):
    """Start an individual modality or open a group draft."""

    modality_type_id: uuid.UUID
    group: bool = False


class TransitionRequest(BaseModel):
    """Apply one action to a record."""

    action: ModalityAction
    payload: TransitionPayload = Field(default_factory=TransitionPayload)
    expected_version: Optional[int] = Field(None, ge=1)


class FinalDecisionRequest(BaseModel):
    """Committee decision for simplified modalities."""

    approve: bool
    observations: Optional[str] = Field(None, max_length=5000)
    reason: Optional[str] = Field(None, max_length=5000)
    expected_version: Optional[int] = Field(None, ge=1)


class ModalityResponse(BaseModel):
    """Modality record response."""

    id: uuid.UUID
    modality_type_id: uuid.UUID
    modality_type_name: str
    status: str
    is_group: bool
    member_ids: List[uuid.UUID]
    project_director_id: Optional[uuid.UUID] = None
    defense_datetime: Optional[datetime] = None
    defense_location: Optional[str] = None
    status_changed_at: Optional[datetime] = None
    status_changed_by: Optional[uuid.UUID] = None
    status_reason: Optional[str] = None
    status_before_cancellation: Optional[str] = None
    cancellation_rejection_reason: Optional[str] = None
    final_grade: Optional[Decimal] = None
    final_decision: Optional[str] = None
    final_observations: Optional[str] = None
    version: int
    created_at: datetime
    last_updated_at: datetime

    @classmethod
    def from_record(cls, record) -> "ModalityResponse":
        return cls(
            id=record.id,
            modality_type_id=record.modality_type_id,
            modality_type_name=record.modality_type.name,
            status=record.status.value,
            is_group=record.is_group,
            member_ids=record.member_ids,
            project_director_id=record.project_director_id,
            defense_datetime=record.defense_datetime,
            defense_location=record.defense_location,
            status_changed_at=record.status_changed_at,
            status_changed_by=record.status_changed_by,
            status_reason=record.status_reason,
            status_before_cancellation=(
                record.status_before_cancellation.value if record.status_before_cancellation else None
            ),
            cancellation_rejection_reason=record.cancellation_rejection_reason,
            final_grade=record.final_grade,
            final_decision=record.final_decision,
            final_observations=record.final_observations,
            version=record.version,
            created_at=record.created_at,
            last_updated_at=record.last_updated_at,
        )


class AvailableActionsResponse(BaseModel):
    """Actions the caller's role may take on the record right now."""

    record_id: uuid.UUID
    status: str
    role: str
    actions: List[str]


class StatusCatalogEntry(BaseModel):
    status: str
    order: int
    category: str
    label: str
    review_tier: Optional[str] = None
    terminal: bool
