"""
Append-only workflow event log.

Every workflow mutation appends a row here in the same transaction. The
notification collaborator reads the log and handles delivery.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Index, JSON, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from modality_engine.kernel.models.base import Base, generate_uuid, utcnow


class EventType(str, Enum):
    """All workflow event types."""

    # Modality lifecycle
    MODALITY_CREATED = "modality.created"
    MODALITY_STATUS_CHANGED = "modality.status_changed"
    CANCELLATION_REJECTED = "modality.cancellation_rejected"
    DIRECTOR_ASSIGNED = "modality.director_assigned"
    DEFENSE_PROPOSED = "defense.proposed"
    DEFENSE_SCHEDULED = "defense.scheduled"

    # Documents
    DOCUMENT_UPLOADED = "document.uploaded"
    DOCUMENT_RESUBMITTED = "document.resubmitted"
    DOCUMENT_REVIEWED = "document.reviewed"

    # Group formation
    INVITATION_SENT = "invitation.sent"
    INVITATION_ACCEPTED = "invitation.accepted"
    INVITATION_REJECTED = "invitation.rejected"
    INVITATION_WITHDRAWN = "invitation.withdrawn"

    # Examiner panel
    EXAMINER_ASSIGNED = "examiner.assigned"
    EVALUATION_RECORDED = "evaluation.recorded"

    # Configuration
    MODALITY_TYPE_CREATED = "config.modality_type_created"


class EventLog(Base):
    """
    Immutable workflow event.

    This table is append-only - no updates or deletes.
    """

    __tablename__ = "event_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    event_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )

    # Entity reference
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        nullable=False,
        index=True,
    )

    # Actor (system events such as evaluation aggregation may have none)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,
        index=True,
    )

    payload: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_event_logs_entity", "entity_type", "entity_id"),
    )

    def __repr__(self) -> str:
        return f"<EventLog {self.event_type} {self.entity_type}:{self.entity_id}>"
