"""
Document review sub-machine.

Each StudentDocumentSubmission is reviewed at one tier at a time (its
review_tier pointer). At that tier it moves PENDING -> ACCEPTED / REJECTED /
CORRECTIONS_REQUESTED; a document sent back can be resubmitted
(CORRECTION_RESUBMITTED) and must be reviewed again. Once accepted at a tier
it is locked there until the modality's forward approval moves the pointer.

The status machine uses unresolved_mandatory() as the gate for escalating
actions, and reset_for_tier() when forward approval moves the pointer.
"""

import uuid
from enum import Enum
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from modality_engine.kernel.events.event_store import EventStore
from modality_engine.kernel.models.base import utcnow
from modality_engine.kernel.models.document import (
    DocumentStatus,
    ReviewTier,
    StudentDocumentSubmission,
    TIER_OUTCOMES,
)
from modality_engine.kernel.models.event_log import EventType
from modality_engine.kernel.models.modality import ModalityRecord, ModalityStatus
from modality_engine.kernel.models.roles import UserRole
from modality_engine.logging_config import get_logger
from modality_engine.orchestration.context import Actor
from modality_engine.orchestration.errors import (
    DocumentLocked,
    InvalidPayload,
    InvalidTransition,
    MissingMandatoryReason,
    RecordNotFound,
    TerminalStateViolation,
    UnauthorizedTransition,
    storage_guard,
)
from modality_engine.orchestration.panel import is_primary_examiner
from modality_engine.orchestration.records import lock_record, touch
from modality_engine.orchestration.status_catalog import is_terminal, tier_for
from modality_engine.orchestration.transitions import DocumentGate

logger = get_logger(__name__)

ENTITY_DOCUMENT = "document"

REVIEWER_ROLE: Dict[ReviewTier, UserRole] = {
    ReviewTier.PROGRAM_HEAD: UserRole.PROGRAM_HEAD,
    ReviewTier.PROGRAM_CURRICULUM_COMMITTEE: UserRole.PROGRAM_CURRICULUM_COMMITTEE,
    ReviewTier.EXAMINER: UserRole.EXAMINER,
}

# Statuses in which the student may upload (or replace a still-PENDING) document
UPLOAD_STATUSES = frozenset({
    ModalityStatus.MODALITY_SELECTED,
    ModalityStatus.CORRECTIONS_REQUESTED_PROGRAM_HEAD,
    ModalityStatus.CORRECTIONS_REQUESTED_PROGRAM_CURRICULUM_COMMITTEE,
    ModalityStatus.CORRECTIONS_REQUESTED_EXAMINERS,
})

REVIEWABLE_STATUSES = frozenset({DocumentStatus.PENDING, DocumentStatus.CORRECTION_RESUBMITTED})


class DocumentDecision(str, Enum):
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"
    REQUEST_CORRECTIONS = "REQUEST_CORRECTIONS"


async def load_submissions(
    session: AsyncSession,
    record_id: uuid.UUID,
) -> Dict[uuid.UUID, StudentDocumentSubmission]:
    """Submissions of a record keyed by required document id."""
    result = await session.execute(
        select(StudentDocumentSubmission).where(
            StudentDocumentSubmission.modality_record_id == record_id
        )
    )
    return {s.required_document_id: s for s in result.scalars().all()}


async def unresolved_mandatory(
    session: AsyncSession,
    record: ModalityRecord,
    gate: DocumentGate,
    tier: ReviewTier,
) -> List[uuid.UUID]:
    """
    Required-document ids that block the gate, in template order.

    UPLOADED: mandatory documents with no upload yet.
    ACCEPTED: mandatory documents (examiner-reviewable ones at the examiner
        tier) not accepted at `tier`.
    RESOLVED: documents at `tier` still sent back to the student.
    """
    submissions = await load_submissions(session, record.id)

    if gate == DocumentGate.RESOLVED:
        return [
            s.required_document_id for s in submissions.values()
            if s.review_tier == tier and s.awaits_student
        ]

    examiner_tier = gate == DocumentGate.ACCEPTED and tier == ReviewTier.EXAMINER
    missing: List[uuid.UUID] = []
    for doc in record.modality_type.mandatory_documents(examiner_tier=examiner_tier):
        submission = submissions.get(doc.id)
        if submission is None or not submission.uploaded:
            missing.append(doc.id)
        elif gate == DocumentGate.ACCEPTED and (
            submission.review_tier != tier or not submission.is_accepted
        ):
            missing.append(doc.id)
    return missing


async def reset_for_tier(session: AsyncSession, record: ModalityRecord, tier: ReviewTier) -> int:
    """
    Move submissions to the next tier's review, PENDING.

    For the examiner tier only examiner-reviewable documents move; the rest
    stay accepted at the committee tier.
    """
    reviewable_ids = {
        doc.id for doc in record.modality_type.required_documents if doc.examiner_reviewable
    }
    moved = 0
    for submission in (await load_submissions(session, record.id)).values():
        if tier == ReviewTier.EXAMINER and submission.required_document_id not in reviewable_ids:
            continue
        submission.review_tier = tier
        submission.status = DocumentStatus.PENDING
        submission.notes = None
        submission.reviewed_by = None
        moved += 1
    return moved


class DocumentReviewService:
    """Upload, resubmission and per-tier review of student documents."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.event_store = EventStore(session)

    async def _get_submission(self, submission_id: uuid.UUID) -> StudentDocumentSubmission:
        submission = await self.session.get(StudentDocumentSubmission, submission_id)
        if submission is None:
            raise RecordNotFound("Document submission not found", submission_id=submission_id)
        return submission

    def _require_member(self, record: ModalityRecord, actor: Actor) -> None:
        if actor.role != UserRole.STUDENT or not record.is_member(actor.actor_id):
            raise UnauthorizedTransition("Only a student member of the modality can submit documents")

    async def upload(
        self,
        record_id: uuid.UUID,
        actor: Actor,
        required_document_id: uuid.UUID,
        storage_ref: str,
    ) -> StudentDocumentSubmission:
        """Attach (or replace a still-pending) document for a required template."""
        if not storage_ref or not storage_ref.strip():
            raise InvalidPayload("A storage reference is required")

        with storage_guard(record_id):
            record = await lock_record(self.session, record_id)
            if is_terminal(record.status):
                raise TerminalStateViolation(f"Modality is {record.status.value}")
            self._require_member(record, actor)
            if record.status not in UPLOAD_STATUSES:
                raise InvalidTransition(
                    f"Documents cannot be uploaded while modality is {record.status.value}",
                    status=record.status.value,
                )
            if required_document_id not in {d.id for d in record.modality_type.required_documents}:
                raise RecordNotFound(
                    "Required document is not part of this modality type",
                    required_document_id=required_document_id,
                )

            submission = (await load_submissions(self.session, record.id)).get(required_document_id)
            if submission is None:
                submission = StudentDocumentSubmission(
                    modality_record_id=record.id,
                    required_document_id=required_document_id,
                    review_tier=tier_for(record.status) or ReviewTier.PROGRAM_HEAD,
                    status=DocumentStatus.PENDING,
                )
                self.session.add(submission)
            elif submission.is_accepted:
                raise DocumentLocked("Document is already accepted at this tier")
            elif submission.status != DocumentStatus.PENDING:
                raise InvalidTransition(
                    "Document was reviewed; resubmit it instead of uploading",
                    document_status=submission.status.value,
                )

            submission.uploaded = True
            submission.storage_ref = storage_ref.strip()
            submission.last_update = utcnow()
            touch(record)
            await self.session.flush()

            await self.event_store.log(
                event_type=EventType.DOCUMENT_UPLOADED,
                entity_type=ENTITY_DOCUMENT,
                entity_id=submission.id,
                user_id=actor.actor_id,
                payload={
                    "record_id": record.id,
                    "required_document_id": required_document_id,
                    "review_tier": submission.review_tier,
                },
            )
            await self.session.flush()
        return submission

    async def resubmit(
        self,
        submission_id: uuid.UUID,
        actor: Actor,
        storage_ref: str,
    ) -> StudentDocumentSubmission:
        """Resubmit a document the reviewer sent back; it goes back for review."""
        if not storage_ref or not storage_ref.strip():
            raise InvalidPayload("A storage reference is required")

        submission = await self._get_submission(submission_id)
        with storage_guard(submission.modality_record_id):
            record = await lock_record(self.session, submission.modality_record_id)
            if is_terminal(record.status):
                raise TerminalStateViolation(f"Modality is {record.status.value}")
            self._require_member(record, actor)
            if submission.is_accepted:
                raise DocumentLocked("Document is already accepted at this tier")
            if not submission.awaits_student:
                raise InvalidTransition(
                    "Only documents sent back by a reviewer can be resubmitted",
                    document_status=submission.status.value,
                )
            if tier_for(record.status) != submission.review_tier:
                raise InvalidTransition(
                    f"Modality is {record.status.value}; this document is not under review",
                    status=record.status.value,
                )

            previous = submission.status
            submission.status = DocumentStatus.CORRECTION_RESUBMITTED
            submission.storage_ref = storage_ref.strip()
            submission.last_update = utcnow()
            touch(record)

            await self.event_store.log(
                event_type=EventType.DOCUMENT_RESUBMITTED,
                entity_type=ENTITY_DOCUMENT,
                entity_id=submission.id,
                user_id=actor.actor_id,
                payload={
                    "record_id": record.id,
                    "previous_status": previous,
                    "review_tier": submission.review_tier,
                },
            )
            await self.session.flush()
        return submission

    async def review(
        self,
        submission_id: uuid.UUID,
        actor: Actor,
        decision: DocumentDecision,
        notes: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> StudentDocumentSubmission:
        """
        Record a reviewer's decision on one document at its current tier.

        Raises:
            UnauthorizedTransition: reviewer role (or examiner seat) does not match the tier
            InvalidTransition: the record is not reviewing this tier, or the
                document is waiting on the student
            DocumentLocked: the document is already accepted at this tier
            MissingMandatoryReason: REJECT / REQUEST_CORRECTIONS without notes
        """
        submission = await self._get_submission(submission_id)
        with storage_guard(submission.modality_record_id):
            record = await lock_record(self.session, submission.modality_record_id, expected_version)
            if is_terminal(record.status):
                raise TerminalStateViolation(f"Modality is {record.status.value}")

            tier = submission.review_tier
            if tier_for(record.status) != tier:
                raise InvalidTransition(
                    f"Modality is {record.status.value}; documents are not under {tier.value} review",
                    status=record.status.value,
                )
            if actor.role != REVIEWER_ROLE[tier]:
                raise UnauthorizedTransition(
                    f"{actor.role.value} cannot review documents at the {tier.value} tier"
                )
            if tier == ReviewTier.EXAMINER and not await is_primary_examiner(
                self.session, record.id, actor.actor_id
            ):
                raise UnauthorizedTransition("Only an assigned primary examiner can review documents")

            if submission.is_accepted:
                raise DocumentLocked("Document is already accepted at this tier")
            if submission.status not in REVIEWABLE_STATUSES:
                raise InvalidTransition(
                    "Document is waiting for the student to resubmit",
                    document_status=submission.status.value,
                )

            notes = (notes or "").strip() or None
            if decision != DocumentDecision.ACCEPT and not notes:
                raise MissingMandatoryReason("Notes are required to reject or request corrections")

            outcomes = TIER_OUTCOMES[tier]
            previous = submission.status
            submission.status = {
                DocumentDecision.ACCEPT: outcomes.accepted,
                DocumentDecision.REJECT: outcomes.rejected,
                DocumentDecision.REQUEST_CORRECTIONS: outcomes.corrections,
            }[decision]
            submission.notes = notes
            submission.reviewed_by = actor.actor_id
            submission.last_update = utcnow()
            touch(record)

            await self.event_store.log(
                event_type=EventType.DOCUMENT_REVIEWED,
                entity_type=ENTITY_DOCUMENT,
                entity_id=submission.id,
                user_id=actor.actor_id,
                payload={
                    "record_id": record.id,
                    "review_tier": tier,
                    "decision": decision,
                    "previous_status": previous,
                    "new_status": submission.status,
                    "notes": notes,
                },
            )
            await self.session.flush()

        logger.info(
            "Document reviewed",
            extra={
                "submission_id": str(submission.id),
                "tier": tier.value,
                "decision": decision.value,
            },
        )
        return submission

    async def list_for_record(self, record_id: uuid.UUID) -> List[StudentDocumentSubmission]:
        submissions = await load_submissions(self.session, record_id)
        return list(submissions.values())
