"""
Student document submissions and their per-tier review states.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Dict, NamedTuple, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from modality_engine.kernel.models.base import Base, generate_uuid, utcnow


class ReviewTier(str, Enum):
    """Sequential reviewing authorities a document passes through."""

    PROGRAM_HEAD = "PROGRAM_HEAD"
    PROGRAM_CURRICULUM_COMMITTEE = "PROGRAM_CURRICULUM_COMMITTEE"
    EXAMINER = "EXAMINER"


class DocumentStatus(str, Enum):
    """Review state of a single submission at its current tier."""

    PENDING = "PENDING"
    CORRECTION_RESUBMITTED = "CORRECTION_RESUBMITTED"

    ACCEPTED_FOR_PROGRAM_HEAD_REVIEW = "ACCEPTED_FOR_PROGRAM_HEAD_REVIEW"
    REJECTED_FOR_PROGRAM_HEAD_REVIEW = "REJECTED_FOR_PROGRAM_HEAD_REVIEW"
    CORRECTIONS_REQUESTED_BY_PROGRAM_HEAD = "CORRECTIONS_REQUESTED_BY_PROGRAM_HEAD"

    ACCEPTED_FOR_PROGRAM_CURRICULUM_COMMITTEE_REVIEW = "ACCEPTED_FOR_PROGRAM_CURRICULUM_COMMITTEE_REVIEW"
    REJECTED_FOR_PROGRAM_CURRICULUM_COMMITTEE_REVIEW = "REJECTED_FOR_PROGRAM_CURRICULUM_COMMITTEE_REVIEW"
    CORRECTIONS_REQUESTED_BY_PROGRAM_CURRICULUM_COMMITTEE = "CORRECTIONS_REQUESTED_BY_PROGRAM_CURRICULUM_COMMITTEE"

    ACCEPTED_FOR_EXAMINER_REVIEW = "ACCEPTED_FOR_EXAMINER_REVIEW"
    REJECTED_FOR_EXAMINER_REVIEW = "REJECTED_FOR_EXAMINER_REVIEW"
    CORRECTIONS_REQUESTED_BY_EXAMINER = "CORRECTIONS_REQUESTED_BY_EXAMINER"


class TierOutcomes(NamedTuple):
    accepted: DocumentStatus
    rejected: DocumentStatus
    corrections: DocumentStatus


TIER_OUTCOMES: Dict[ReviewTier, TierOutcomes] = {
    ReviewTier.PROGRAM_HEAD: TierOutcomes(
        DocumentStatus.ACCEPTED_FOR_PROGRAM_HEAD_REVIEW,
        DocumentStatus.REJECTED_FOR_PROGRAM_HEAD_REVIEW,
        DocumentStatus.CORRECTIONS_REQUESTED_BY_PROGRAM_HEAD,
    ),
    ReviewTier.PROGRAM_CURRICULUM_COMMITTEE: TierOutcomes(
        DocumentStatus.ACCEPTED_FOR_PROGRAM_CURRICULUM_COMMITTEE_REVIEW,
        DocumentStatus.REJECTED_FOR_PROGRAM_CURRICULUM_COMMITTEE_REVIEW,
        DocumentStatus.CORRECTIONS_REQUESTED_BY_PROGRAM_CURRICULUM_COMMITTEE,
    ),
    ReviewTier.EXAMINER: TierOutcomes(
        DocumentStatus.ACCEPTED_FOR_EXAMINER_REVIEW,
        DocumentStatus.REJECTED_FOR_EXAMINER_REVIEW,
        DocumentStatus.CORRECTIONS_REQUESTED_BY_EXAMINER,
    ),
}


class StudentDocumentSubmission(Base):
    """
    One uploaded document per (modality record, required document).

    review_tier points at the authority currently reviewing it; forward
    approval of the modality moves the pointer and resets status to PENDING.
    """

    __tablename__ = "student_document_submissions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    required_document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("required_documents.id"),
        nullable=False,
    )
    modality_record_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("modality_records.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    uploaded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Opaque reference returned by the document storage service
    storage_ref: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    status: Mapped[DocumentStatus] = mapped_column(
        SAEnum(DocumentStatus, native_enum=False, length=64),
        default=DocumentStatus.PENDING,
        nullable=False,
    )
    review_tier: Mapped[ReviewTier] = mapped_column(
        SAEnum(ReviewTier, native_enum=False, length=64),
        default=ReviewTier.PROGRAM_HEAD,
        nullable=False,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(), nullable=True)
    last_update: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint(
            "modality_record_id",
            "required_document_id",
            name="uq_submissions_record_document",
        ),
    )

    @property
    def is_accepted(self) -> bool:
        return self.status == TIER_OUTCOMES[self.review_tier].accepted

    @property
    def awaits_student(self) -> bool:
        """True when the reviewer sent the document back at the current tier."""
        outcomes = TIER_OUTCOMES[self.review_tier]
        return self.status in (outcomes.rejected, outcomes.corrections)

    def __repr__(self) -> str:
        return f"<StudentDocumentSubmission {self.required_document_id} {self.status.value}>"
