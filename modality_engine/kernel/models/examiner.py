"""
Examiner panel assignments and their (immutable) evaluations.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Numeric, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from modality_engine.kernel.models.base import Base, generate_uuid, utcnow


class ExaminerRole(str, Enum):
    """Seat on the examiner panel."""

    PRIMARY_1 = "PRIMARY_1"
    PRIMARY_2 = "PRIMARY_2"
    TIEBREAKER = "TIEBREAKER"


PRIMARY_ROLES = (ExaminerRole.PRIMARY_1, ExaminerRole.PRIMARY_2)


class EvaluationDecision(str, Enum):
    """Academic decision, ordered from lowest to highest distinction."""

    REJECTED = "REJECTED"
    APPROVED_NO_DISTINCTION = "APPROVED_NO_DISTINCTION"
    APPROVED_MERITORIOUS = "APPROVED_MERITORIOUS"
    APPROVED_LAUREATE = "APPROVED_LAUREATE"

    @property
    def is_approval(self) -> bool:
        return self is not EvaluationDecision.REJECTED


class ExaminerAssignment(Base):
    """One examiner seated in one panel role for one modality record."""

    __tablename__ = "examiner_assignments"

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
    examiner_id: Mapped[uuid.UUID] = mapped_column(Uuid(), nullable=False, index=True)
    role: Mapped[ExaminerRole] = mapped_column(
        SAEnum(ExaminerRole, native_enum=False, length=32),
        nullable=False,
    )
    assigned_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(), nullable=True)
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("modality_record_id", "role", name="uq_examiner_assignments_record_role"),
    )

    def __repr__(self) -> str:
        return f"<ExaminerAssignment {self.role.value} {self.examiner_id}>"


class Evaluation(Base):
    """
    Grade and decision submitted by one assigned examiner.

    Rows are never updated: one evaluation per assignment.
    """

    __tablename__ = "evaluations"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    assignment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("examiner_assignments.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    modality_record_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("modality_records.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    grade: Mapped[Decimal] = mapped_column(Numeric(3, 2), nullable=False)
    decision: Mapped[EvaluationDecision] = mapped_column(
        SAEnum(EvaluationDecision, native_enum=False, length=32),
        nullable=False,
    )
    observations: Mapped[str] = mapped_column(Text, default="", nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Evaluation {self.grade} {self.decision.value}>"
