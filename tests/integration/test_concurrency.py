"""
Concurrent writers on the same record.

Each session gets its own SQLite connection, so a session holding an
older copy of the record behaves like a second client that read before
the first one committed.
"""

import pytest

from modality_engine.kernel.models.modality import ModalityRecord, ModalityStatus
from modality_engine.orchestration.documents import DocumentDecision, DocumentReviewService
from modality_engine.orchestration.errors import StaleState
from modality_engine.orchestration.payloads import TransitionPayload
from modality_engine.orchestration.state_machine import ModalityStateMachine
from modality_engine.orchestration.transitions import ModalityAction

S = ModalityStatus
A = ModalityAction


@pytest.mark.asyncio
async def test_second_writer_gets_stale_state(driver, thesis_type, session_maker, policy):
    record = await driver.to_program_head_review(thesis_type)
    await driver.accept_pending(record, driver.program_head)

    async with session_maker() as other:
        stale = await other.get(ModalityRecord, record.id)
        assert stale.status == S.UNDER_REVIEW_PROGRAM_HEAD

        await driver.act(record, driver.program_head, A.REQUEST_CORRECTIONS, reason="Add the timeline")

        with pytest.raises(StaleState):
            await ModalityStateMachine(other, policy).transition(record.id, driver.program_head, A.APPROVE)
        await other.rollback()

    async with session_maker() as fresh:
        stored = await fresh.get(ModalityRecord, record.id)
        assert stored.status == S.CORRECTIONS_REQUESTED_PROGRAM_HEAD
        assert stored.status_reason == "Add the timeline"


@pytest.mark.asyncio
async def test_document_review_conflicts_with_concurrent_write(driver, thesis_type, session_maker):
    record = await driver.to_program_head_review(thesis_type)
    names = {d.id: d.name for d in thesis_type.required_documents}
    submissions = {names[s.required_document_id]: s for s in await driver.documents.list_for_record(record.id)}
    proposal, letter = submissions["Propuesta"], submissions["Carta del director"]

    async with session_maker() as other:
        stale = await other.get(ModalityRecord, record.id)
        assert stale.version == record.version

        await driver.documents.review(proposal.id, driver.program_head, DocumentDecision.ACCEPT)
        await driver.session.commit()

        with pytest.raises(StaleState):
            await DocumentReviewService(other).review(letter.id, driver.program_head, DocumentDecision.ACCEPT)
        await other.rollback()


@pytest.mark.asyncio
async def test_expected_version_mismatch(driver, thesis_type):
    record = await driver.start(thesis_type)
    await driver.upload_mandatory(record)
    version = record.version

    with pytest.raises(StaleState) as exc:
        await driver.machine.transition(
            record.id, driver.student, A.SUBMIT_FOR_REVIEW, TransitionPayload(), expected_version=version - 1
        )
    assert exc.value.context["current_version"] == version
    assert record.status == S.MODALITY_SELECTED

    record = await driver.machine.transition(
        record.id, driver.student, A.SUBMIT_FOR_REVIEW, expected_version=version
    )
    await driver.session.commit()
    assert record.status == S.UNDER_REVIEW_PROGRAM_HEAD
    assert record.version == version + 1


@pytest.mark.asyncio
async def test_every_mutation_bumps_the_version(driver, thesis_type):
    record = await driver.start(thesis_type)
    before = record.version

    doc = thesis_type.required_documents[0]
    await driver.documents.upload(record.id, driver.student, doc.id, "storage://p.pdf")
    await driver.session.commit()

    assert record.version == before + 1
