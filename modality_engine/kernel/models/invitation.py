"""Group formation invitations."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from modality_engine.kernel.models.base import Base, generate_uuid, utcnow


class InvitationStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class GroupInvitation(Base):
    """Invitation from a group initiator to a peer, attached to a DRAFT record."""

    __tablename__ = "group_invitations"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    modality_record_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("modality_records.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    inviter_id: Mapped[uuid.UUID] = mapped_column(Uuid(), nullable=False)
    invitee_id: Mapped[uuid.UUID] = mapped_column(Uuid(), nullable=False)
    status: Mapped[InvitationStatus] = mapped_column(
        SAEnum(InvitationStatus, native_enum=False, length=16),
        default=InvitationStatus.PENDING,
        nullable=False,
    )
    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    responded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_group_invitations_invitee_status", "invitee_id", "status"),
    )

    @property
    def is_resolved(self) -> bool:
        return self.status != InvitationStatus.PENDING

    def __repr__(self) -> str:
        return f"<GroupInvitation {self.invitee_id} {self.status.value}>"
