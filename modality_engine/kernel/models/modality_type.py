"""
Modality type configuration: the catalog of modalities a student can choose
and the documents each one requires.
"""

import uuid
from typing import List, Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from modality_engine.kernel.models.base import Base, TimestampMixin, generate_uuid


class RequiredDocument(Base):
    """
    Document template owned by a modality type.

    Mandatory templates block forward approval until accepted at the current
    review tier. Examiner-reviewable templates are re-opened for the examiner
    panel once the committee approves the proposal.
    """

    __tablename__ = "required_documents"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    modality_type_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("modality_types.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    mandatory: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    examiner_reviewable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<RequiredDocument {self.name} mandatory={self.mandatory}>"


class ModalityType(Base, TimestampMixin):
    """A degree-completion modality (thesis, seminar, professional practice...)."""

    __tablename__ = "modality_types"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    required_documents: Mapped[List[RequiredDocument]] = relationship(
        RequiredDocument,
        lazy="selectin",
        order_by=RequiredDocument.position,
        cascade="all, delete-orphan",
    )

    def mandatory_documents(self, examiner_tier: bool = False) -> List[RequiredDocument]:
        """Mandatory templates, restricted to examiner-reviewable ones for the examiner tier."""
        return [
            doc for doc in self.required_documents
            if doc.mandatory and (doc.examiner_reviewable or not examiner_tier)
        ]

    def __repr__(self) -> str:
        return f"<ModalityType {self.name}>"
