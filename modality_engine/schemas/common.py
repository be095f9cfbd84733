"""
Common schema types used across the API.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: Optional[str] = None
    missing_document_ids: Optional[List[str]] = None
    request_id: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str
    database: str = "connected"


class EventResponse(BaseModel):
    """One entry of a record's workflow history."""

    id: uuid.UUID
    event_type: str
    entity_type: str
    entity_id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    payload: Dict[str, Any]
    created_at: datetime

    class Config:
        from_attributes = True
