"""
Kernel Data Models

SQLAlchemy models for modality records, their documents, examiner panels,
group invitations and the workflow event log.
"""

from modality_engine.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow
from modality_engine.kernel.models.roles import UserRole
from modality_engine.kernel.models.modality_type import ModalityType, RequiredDocument
from modality_engine.kernel.models.modality import ModalityMember, ModalityRecord, ModalityStatus
from modality_engine.kernel.models.document import (
    DocumentStatus,
    ReviewTier,
    StudentDocumentSubmission,
    TIER_OUTCOMES,
)
from modality_engine.kernel.models.examiner import (
    Evaluation,
    EvaluationDecision,
    ExaminerAssignment,
    ExaminerRole,
    PRIMARY_ROLES,
)
from modality_engine.kernel.models.invitation import GroupInvitation, InvitationStatus
from modality_engine.kernel.models.event_log import EventLog, EventType

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "generate_uuid",
    "utcnow",
    # Roles
    "UserRole",
    # Configuration
    "ModalityType",
    "RequiredDocument",
    # Modality
    "ModalityRecord",
    "ModalityMember",
    "ModalityStatus",
    # Documents
    "StudentDocumentSubmission",
    "DocumentStatus",
    "ReviewTier",
    "TIER_OUTCOMES",
    # Examiners
    "ExaminerAssignment",
    "ExaminerRole",
    "Evaluation",
    "EvaluationDecision",
    "PRIMARY_ROLES",
    # Invitations
    "GroupInvitation",
    "InvitationStatus",
    # Event Log
    "EventLog",
    "EventType",
]
