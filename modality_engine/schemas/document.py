"""Document submission schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from modality_engine.kernel.models.document import DocumentStatus, ReviewTier
from modality_engine.orchestration.documents import DocumentDecision


class DocumentUpload(BaseModel):
    """Upload a document for one of the modality type's required documents."""

    required_document_id: uuid.UUID
    storage_ref: str = Field(..., min_length=1, max_length=1024)


class DocumentResubmit(BaseModel):
    storage_ref: str = Field(..., min_length=1, max_length=1024)


class DocumentReview(BaseModel):
    """Reviewer decision. Notes are mandatory unless accepting."""

    decision: DocumentDecision
    notes: Optional[str] = Field(None, max_length=5000)
    expected_version: Optional[int] = Field(None, ge=1)


class DocumentResponse(BaseModel):
    """Document submission response."""

    id: uuid.UUID
    modality_record_id: uuid.UUID
    required_document_id: uuid.UUID
    uploaded: bool
    storage_ref: Optional[str] = None
    status: DocumentStatus
    review_tier: ReviewTier
    notes: Optional[str] = None
    reviewed_by: Optional[uuid.UUID] = None
    last_update: datetime

    class Config:
        from_attributes = True
