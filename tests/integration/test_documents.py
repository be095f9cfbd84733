"""Document review sub-machine against a real database."""

import pytest

from modality_engine.kernel.events.event_store import EventStore
from modality_engine.kernel.models.document import DocumentStatus, ReviewTier
from modality_engine.kernel.models.event_log import EventType
from modality_engine.kernel.models.modality import ModalityStatus
from modality_engine.kernel.models.roles import UserRole
from modality_engine.orchestration.documents import ENTITY_DOCUMENT, DocumentDecision
from modality_engine.orchestration.errors import (
    DocumentLocked,
    IncompleteDocuments,
    InvalidPayload,
    InvalidTransition,
    MissingMandatoryReason,
    RecordNotFound,
    UnauthorizedTransition,
)
from modality_engine.orchestration.transitions import ModalityAction

S = ModalityStatus
A = ModalityAction


def _by_name(modality_type):
    return {d.name: d.id for d in modality_type.required_documents}


async def _submission(driver, record, required_document_id):
    for submission in await driver.documents.list_for_record(record.id):
        if submission.required_document_id == required_document_id:
            return submission
    raise AssertionError("submission not found")


@pytest.mark.asyncio
async def test_upload_creates_pending_submission(driver, thesis_type):
    record = await driver.start(thesis_type)
    doc_id = _by_name(thesis_type)["Propuesta"]

    submission = await driver.documents.upload(record.id, driver.student, doc_id, " storage://p.pdf ")
    await driver.session.commit()

    assert submission.uploaded
    assert submission.storage_ref == "storage://p.pdf"
    assert submission.status == DocumentStatus.PENDING
    assert submission.review_tier == ReviewTier.PROGRAM_HEAD

    history = await EventStore(driver.session).get_entity_history(ENTITY_DOCUMENT, submission.id)
    assert [e.event_type for e in history] == [EventType.DOCUMENT_UPLOADED.value]


@pytest.mark.asyncio
async def test_pending_upload_can_be_replaced(driver, thesis_type):
    record = await driver.start(thesis_type)
    doc_id = _by_name(thesis_type)["Propuesta"]

    first = await driver.documents.upload(record.id, driver.student, doc_id, "storage://v1.pdf")
    second = await driver.documents.upload(record.id, driver.student, doc_id, "storage://v2.pdf")
    await driver.session.commit()

    assert first.id == second.id
    assert second.storage_ref == "storage://v2.pdf"


@pytest.mark.asyncio
async def test_upload_checks(driver, thesis_type):
    record = await driver.start(thesis_type)
    doc_id = _by_name(thesis_type)["Propuesta"]

    with pytest.raises(InvalidPayload):
        await driver.documents.upload(record.id, driver.student, doc_id, "   ")
    with pytest.raises(UnauthorizedTransition):
        await driver.documents.upload(record.id, driver.new_actor(UserRole.STUDENT), doc_id, "storage://x.pdf")
    with pytest.raises(UnauthorizedTransition):
        await driver.documents.upload(record.id, driver.program_head, doc_id, "storage://x.pdf")
    with pytest.raises(RecordNotFound):
        await driver.documents.upload(
            record.id, driver.student, driver.new_actor(UserRole.STUDENT).actor_id, "storage://x.pdf"
        )


@pytest.mark.asyncio
async def test_no_upload_while_under_review(driver, thesis_type):
    record = await driver.to_program_head_review(thesis_type)

    with pytest.raises(InvalidTransition):
        await driver.documents.upload(
            record.id, driver.student, _by_name(thesis_type)["Anexos"], "storage://late.pdf"
        )


@pytest.mark.asyncio
async def test_review_requires_matching_tier_role(driver, thesis_type):
    record = await driver.to_program_head_review(thesis_type)
    submission = await _submission(driver, record, _by_name(thesis_type)["Propuesta"])

    with pytest.raises(UnauthorizedTransition):
        await driver.documents.review(submission.id, driver.committee, DocumentDecision.ACCEPT)


@pytest.mark.asyncio
async def test_review_before_submission_is_invalid(driver, thesis_type):
    record = await driver.start(thesis_type)
    await driver.upload_mandatory(record)
    submission = await _submission(driver, record, _by_name(thesis_type)["Propuesta"])

    with pytest.raises(InvalidTransition):
        await driver.documents.review(submission.id, driver.program_head, DocumentDecision.ACCEPT)


@pytest.mark.asyncio
@pytest.mark.parametrize("decision", [DocumentDecision.REJECT, DocumentDecision.REQUEST_CORRECTIONS])
async def test_sending_back_needs_notes(driver, thesis_type, decision):
    record = await driver.to_program_head_review(thesis_type)
    submission = await _submission(driver, record, _by_name(thesis_type)["Propuesta"])

    with pytest.raises(MissingMandatoryReason):
        await driver.documents.review(submission.id, driver.program_head, decision, notes="  ")
    assert submission.status == DocumentStatus.PENDING


@pytest.mark.asyncio
async def test_accepted_document_is_locked(driver, thesis_type):
    record = await driver.to_program_head_review(thesis_type)
    submission = await _submission(driver, record, _by_name(thesis_type)["Propuesta"])

    await driver.documents.review(submission.id, driver.program_head, DocumentDecision.ACCEPT)
    await driver.session.commit()
    assert submission.status == DocumentStatus.ACCEPTED_FOR_PROGRAM_HEAD_REVIEW

    with pytest.raises(DocumentLocked):
        await driver.documents.review(
            submission.id, driver.program_head, DocumentDecision.REJECT, notes="Changed my mind"
        )
    with pytest.raises(DocumentLocked):
        await driver.documents.resubmit(submission.id, driver.student, "storage://again.pdf")


@pytest.mark.asyncio
async def test_correction_round_trip(driver, thesis_type):
    """Corrections on a document, resubmission, then the record returns to review."""
    record = await driver.to_program_head_review(thesis_type)
    names = _by_name(thesis_type)
    proposal = await _submission(driver, record, names["Propuesta"])
    letter = await _submission(driver, record, names["Carta del director"])

    await driver.documents.review(letter.id, driver.program_head, DocumentDecision.ACCEPT)
    await driver.documents.review(
        proposal.id, driver.program_head, DocumentDecision.REQUEST_CORRECTIONS, notes="Fix the abstract"
    )
    await driver.session.commit()
    assert proposal.status == DocumentStatus.CORRECTIONS_REQUESTED_BY_PROGRAM_HEAD
    assert proposal.notes == "Fix the abstract"

    with pytest.raises(InvalidTransition):
        await driver.documents.review(proposal.id, driver.program_head, DocumentDecision.ACCEPT)

    record = await driver.act(record, driver.program_head, A.REQUEST_CORRECTIONS, reason="See document notes")
    assert record.status == S.CORRECTIONS_REQUESTED_PROGRAM_HEAD

    with pytest.raises(IncompleteDocuments) as exc:
        await driver.machine.transition(record.id, driver.student, A.SUBMIT_CORRECTIONS)
    assert exc.value.missing_document_ids == [names["Propuesta"]]

    resubmitted = await driver.documents.resubmit(proposal.id, driver.student, "storage://p-v2.pdf")
    await driver.session.commit()
    assert resubmitted.status == DocumentStatus.CORRECTION_RESUBMITTED

    record = await driver.act(record, driver.student, A.SUBMIT_CORRECTIONS)
    assert record.status == S.UNDER_REVIEW_PROGRAM_HEAD

    await driver.documents.review(proposal.id, driver.program_head, DocumentDecision.ACCEPT)
    await driver.session.commit()
    record = await driver.act(record, driver.program_head, A.APPROVE)
    assert record.status == S.READY_FOR_PROGRAM_CURRICULUM_COMMITTEE


@pytest.mark.asyncio
async def test_rejected_document_can_be_resubmitted(driver, thesis_type):
    record = await driver.to_program_head_review(thesis_type)
    proposal = await _submission(driver, record, _by_name(thesis_type)["Propuesta"])

    await driver.documents.review(proposal.id, driver.program_head, DocumentDecision.REJECT, notes="Wrong file")
    await driver.session.commit()
    assert proposal.status == DocumentStatus.REJECTED_FOR_PROGRAM_HEAD_REVIEW

    await driver.documents.resubmit(proposal.id, driver.student, "storage://right.pdf")
    await driver.session.commit()
    assert proposal.status == DocumentStatus.CORRECTION_RESUBMITTED


@pytest.mark.asyncio
async def test_pending_document_cannot_be_resubmitted(driver, thesis_type):
    record = await driver.to_program_head_review(thesis_type)
    proposal = await _submission(driver, record, _by_name(thesis_type)["Propuesta"])

    with pytest.raises(InvalidTransition):
        await driver.documents.resubmit(proposal.id, driver.student, "storage://again.pdf")


@pytest.mark.asyncio
async def test_examiner_review_needs_a_seat(driver, thesis_type):
    record = await driver.to_examiners_assigned(thesis_type)
    proposal = await _submission(driver, record, _by_name(thesis_type)["Propuesta"])
    assert proposal.review_tier == ReviewTier.EXAMINER

    with pytest.raises(UnauthorizedTransition):
        await driver.documents.review(proposal.id, driver.new_actor(UserRole.EXAMINER), DocumentDecision.ACCEPT)

    await driver.documents.review(proposal.id, driver.examiner_2, DocumentDecision.ACCEPT)
    await driver.session.commit()
    assert proposal.status == DocumentStatus.ACCEPTED_FOR_EXAMINER_REVIEW
    assert proposal.reviewed_by == driver.examiner_2.actor_id


@pytest.mark.asyncio
async def test_seated_tiebreaker_cannot_review_documents(driver, thesis_type):
    record = await driver.to_examiners_assigned(thesis_type, with_tiebreaker=True)
    proposal = await _submission(driver, record, _by_name(thesis_type)["Propuesta"])

    with pytest.raises(UnauthorizedTransition):
        await driver.documents.review(proposal.id, driver.tiebreaker, DocumentDecision.ACCEPT)

    assert proposal.status == DocumentStatus.PENDING
    assert record.status == ModalityStatus.EXAMINERS_ASSIGNED


@pytest.mark.asyncio
async def test_committee_only_document_stays_accepted_at_committee(driver, thesis_type):
    record = await driver.to_examiners_assigned(thesis_type)
    letter = await _submission(driver, record, _by_name(thesis_type)["Carta del director"])

    assert letter.review_tier == ReviewTier.PROGRAM_CURRICULUM_COMMITTEE
    assert letter.status == DocumentStatus.ACCEPTED_FOR_PROGRAM_CURRICULUM_COMMITTEE_REVIEW

    with pytest.raises(InvalidTransition):
        await driver.documents.review(letter.id, driver.committee, DocumentDecision.ACCEPT)


@pytest.mark.asyncio
async def test_unknown_submission(driver, thesis_type):
    with pytest.raises(RecordNotFound):
        await driver.documents.review(
            driver.new_actor(UserRole.STUDENT).actor_id, driver.program_head, DocumentDecision.ACCEPT
        )
