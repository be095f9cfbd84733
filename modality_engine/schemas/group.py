"""Group invitation schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from modality_engine.kernel.models.invitation import InvitationStatus


class InvitationCreate(BaseModel):
    invitee_id: uuid.UUID


class InvitationResponse(BaseModel):
    """Group invitation response."""

    id: uuid.UUID
    modality_record_id: uuid.UUID
    inviter_id: uuid.UUID
    invitee_id: uuid.UUID
    status: InvitationStatus
    sent_at: datetime
    responded_at: Optional[datetime] = None

    class Config:
        from_attributes = True
