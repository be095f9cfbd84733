"""Examiner evaluation schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from modality_engine.kernel.models.examiner import EvaluationDecision, ExaminerRole


class EvaluationSubmit(BaseModel):
    """An examiner's grade and decision. The decision must match the grade's band."""

    grade: Decimal = Field(..., ge=0, le=5)
    decision: EvaluationDecision
    observations: str = Field("", max_length=10000)
    expected_version: Optional[int] = Field(None, ge=1)


class EvaluationResponse(BaseModel):
    id: uuid.UUID
    assignment_id: uuid.UUID
    modality_record_id: uuid.UUID
    grade: Decimal
    decision: EvaluationDecision
    observations: str
    submitted_at: datetime

    class Config:
        from_attributes = True


class AssignmentResponse(BaseModel):
    id: uuid.UUID
    modality_record_id: uuid.UUID
    examiner_id: uuid.UUID
    role: ExaminerRole
    assigned_by: Optional[uuid.UUID] = None
    assigned_at: datetime

    class Config:
        from_attributes = True
