"""Modality type catalog schemas."""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class RequiredDocumentCreate(BaseModel):
    """Document template attached to a modality type."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    mandatory: bool = True
    examiner_reviewable: bool = False


class ModalityTypeCreate(BaseModel):
    """Modality type creation request."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    required_documents: List[RequiredDocumentCreate] = Field(default_factory=list)


class RequiredDocumentResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    mandatory: bool
    examiner_reviewable: bool
    position: int

    class Config:
        from_attributes = True


class ModalityTypeResponse(BaseModel):
    """Modality type response."""

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    is_active: bool
    simplified: bool = False
    required_documents: List[RequiredDocumentResponse] = []
    created_at: datetime

    class Config:
        from_attributes = True
