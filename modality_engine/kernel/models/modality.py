"""
ModalityRecord model - the unit of workflow state.

One record per individual student, or one shared record for a group. The
record's status is the single source of truth for every member; it is only
mutated through the orchestration layer and never deleted.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from modality_engine.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow
from modality_engine.kernel.models.modality_type import ModalityType


class ModalityStatus(str, Enum):
    """Lifecycle states of a modality record."""

    # Group formation pre-state (invisible to the status machine)
    DRAFT = "DRAFT"

    # Proposal review
    MODALITY_SELECTED = "MODALITY_SELECTED"
    UNDER_REVIEW_PROGRAM_HEAD = "UNDER_REVIEW_PROGRAM_HEAD"
    CORRECTIONS_REQUESTED_PROGRAM_HEAD = "CORRECTIONS_REQUESTED_PROGRAM_HEAD"
    CORRECTIONS_REJECTED_FINAL = "CORRECTIONS_REJECTED_FINAL"
    READY_FOR_PROGRAM_CURRICULUM_COMMITTEE = "READY_FOR_PROGRAM_CURRICULUM_COMMITTEE"
    UNDER_REVIEW_PROGRAM_CURRICULUM_COMMITTEE = "UNDER_REVIEW_PROGRAM_CURRICULUM_COMMITTEE"
    CORRECTIONS_REQUESTED_PROGRAM_CURRICULUM_COMMITTEE = "CORRECTIONS_REQUESTED_PROGRAM_CURRICULUM_COMMITTEE"
    PROPOSAL_APPROVED = "PROPOSAL_APPROVED"

    # Defense
    DEFENSE_REQUESTED_BY_PROJECT_DIRECTOR = "DEFENSE_REQUESTED_BY_PROJECT_DIRECTOR"
    DEFENSE_SCHEDULED = "DEFENSE_SCHEDULED"
    EXAMINERS_ASSIGNED = "EXAMINERS_ASSIGNED"
    CORRECTIONS_REQUESTED_EXAMINERS = "CORRECTIONS_REQUESTED_EXAMINERS"
    READY_FOR_DEFENSE = "READY_FOR_DEFENSE"
    DEFENSE_COMPLETED = "DEFENSE_COMPLETED"

    # Evaluation
    UNDER_EVALUATION_PRIMARY_EXAMINERS = "UNDER_EVALUATION_PRIMARY_EXAMINERS"
    DISAGREEMENT_REQUIRES_TIEBREAKER = "DISAGREEMENT_REQUIRES_TIEBREAKER"
    UNDER_EVALUATION_TIEBREAKER = "UNDER_EVALUATION_TIEBREAKER"
    GRADED_APPROVED = "GRADED_APPROVED"
    GRADED_FAILED = "GRADED_FAILED"
    MODALITY_CLOSED = "MODALITY_CLOSED"

    # Cancellation
    CANCELLATION_REQUESTED = "CANCELLATION_REQUESTED"
    CANCELLATION_APPROVED_BY_PROJECT_DIRECTOR = "CANCELLATION_APPROVED_BY_PROJECT_DIRECTOR"
    MODALITY_CANCELLED = "MODALITY_CANCELLED"
    CANCELLED_WITHOUT_REPROVAL = "CANCELLED_WITHOUT_REPROVAL"


class ModalityMember(Base):
    """Ordered membership of a modality record. Position 0 is the initiator."""

    __tablename__ = "modality_members"

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
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("modality_record_id", "user_id", name="uq_modality_members_record_user"),
    )


class ModalityRecord(Base, TimestampMixin):
    """
    Workflow record for one degree-completion modality.

    `version` is SQLAlchemy's version counter: every flush that touches the
    row checks it in the UPDATE's WHERE clause, so a writer holding a stale
    copy fails instead of overwriting a concurrent change.
    """

    __tablename__ = "modality_records"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    modality_type_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("modality_types.id"),
        nullable=False,
        index=True,
    )
    status: Mapped[ModalityStatus] = mapped_column(
        SAEnum(ModalityStatus, native_enum=False, length=64),
        default=ModalityStatus.MODALITY_SELECTED,
        nullable=False,
    )
    is_group: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    project_director_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(), nullable=True)
    defense_datetime: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    defense_location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    status_changed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    status_changed_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(), nullable=True)
    status_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Cancellation branch bookkeeping
    status_before_cancellation: Mapped[Optional[ModalityStatus]] = mapped_column(
        SAEnum(ModalityStatus, native_enum=False, length=64),
        nullable=True,
    )
    cancellation_rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Outcome
    final_grade: Mapped[Optional[Decimal]] = mapped_column(Numeric(3, 2), nullable=True)
    final_decision: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    final_observations: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    modality_type: Mapped[ModalityType] = relationship(ModalityType, lazy="selectin")
    members: Mapped[List[ModalityMember]] = relationship(
        ModalityMember,
        lazy="selectin",
        order_by=ModalityMember.position,
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_modality_records_status", "status"),
    )

    @property
    def member_ids(self) -> List[uuid.UUID]:
        return [m.user_id for m in self.members]

    @property
    def initiator_id(self) -> Optional[uuid.UUID]:
        return self.members[0].user_id if self.members else None

    def is_member(self, user_id: uuid.UUID) -> bool:
        return user_id in self.member_ids

    def add_member(self, user_id: uuid.UUID) -> ModalityMember:
        member = ModalityMember(user_id=user_id, position=len(self.members))
        self.members.append(member)
        return member

    def __repr__(self) -> str:
        return f"<ModalityRecord {self.id} {self.status.value} v{self.version}>"
