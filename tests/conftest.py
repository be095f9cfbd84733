"""
Pytest fixtures for modality workflow tests.

Every test gets its own file-backed SQLite database (aiosqlite) so that
separate sessions behave like separate clients.
"""

import os
import tempfile
import uuid
from typing import AsyncGenerator, Optional

# The application module builds its engine at import time; point it at SQLite
# before anything imports modality_engine.database.
_tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_tmp.close()
APP_DB_PATH = _tmp.name
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{APP_DB_PATH}")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from modality_engine.config import get_settings

get_settings.cache_clear()

from modality_engine.database import build_engine, build_session_maker, init_db
from modality_engine.kernel.models.modality import ModalityRecord
from modality_engine.kernel.models.modality_type import ModalityType, RequiredDocument
from modality_engine.kernel.models.roles import UserRole
from modality_engine.orchestration.context import Actor
from modality_engine.orchestration.documents import (
    REVIEWABLE_STATUSES,
    DocumentDecision,
    DocumentReviewService,
)
from modality_engine.orchestration.examiners import ExaminerService
from modality_engine.orchestration.groups import GroupFormationService
from modality_engine.orchestration.payloads import TransitionPayload
from modality_engine.orchestration.policy import WorkflowPolicy
from modality_engine.orchestration.state_machine import ModalityStateMachine
from modality_engine.orchestration.status_catalog import tier_for
from modality_engine.orchestration.transitions import ModalityAction

A = ModalityAction


def make_actor(role: UserRole) -> Actor:
    return Actor(actor_id=uuid.uuid4(), role=role)


@pytest.fixture
def policy() -> WorkflowPolicy:
    return WorkflowPolicy(simplified_modality_names=("SEMINARIO DE GRADO",))


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Fresh database per test."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'modalities.db'}")
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return build_session_maker(db_engine)


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def thesis_type(db_session: AsyncSession) -> ModalityType:
    """Full-panel modality: one examiner-reviewable document, one committee-only, one optional."""
    modality_type = ModalityType(name="TRABAJO DE GRADO", description="Thesis")
    modality_type.required_documents = [
        RequiredDocument(name="Propuesta", mandatory=True, examiner_reviewable=True, position=0),
        RequiredDocument(name="Carta del director", mandatory=True, examiner_reviewable=False, position=1),
        RequiredDocument(name="Anexos", mandatory=False, examiner_reviewable=False, position=2),
    ]
    db_session.add(modality_type)
    await db_session.commit()
    return modality_type


@pytest_asyncio.fixture
async def seminar_type(db_session: AsyncSession) -> ModalityType:
    """Simplified modality decided directly by the committee."""
    modality_type = ModalityType(name="Seminario de Grado", description="Seminar")
    modality_type.required_documents = [
        RequiredDocument(name="Certificado de asistencia", mandatory=True, position=0),
    ]
    db_session.add(modality_type)
    await db_session.commit()
    return modality_type


class WorkflowDriver:
    """Drives records through the engine, committing after every step."""

    def __init__(self, session: AsyncSession, policy: WorkflowPolicy):
        self.session = session
        self.policy = policy
        self.machine = ModalityStateMachine(session, policy)
        self.documents = DocumentReviewService(session)
        self.examiners = ExaminerService(session, policy)
        self.groups = GroupFormationService(session, policy)

        self.student = make_actor(UserRole.STUDENT)
        self.program_head = make_actor(UserRole.PROGRAM_HEAD)
        self.committee = make_actor(UserRole.PROGRAM_CURRICULUM_COMMITTEE)
        self.director = make_actor(UserRole.PROJECT_DIRECTOR)
        self.examiner_1 = make_actor(UserRole.EXAMINER)
        self.examiner_2 = make_actor(UserRole.EXAMINER)
        self.tiebreaker = make_actor(UserRole.EXAMINER)

    new_actor = staticmethod(make_actor)

    async def start(self, modality_type: ModalityType, student: Optional[Actor] = None) -> ModalityRecord:
        record = await self.groups.start_individual(student or self.student, modality_type.id)
        await self.session.commit()
        return record

    async def act(self, record: ModalityRecord, actor: Actor, action: ModalityAction, **payload) -> ModalityRecord:
        record = await self.machine.transition(record.id, actor, action, TransitionPayload(**payload))
        await self.session.commit()
        return record

    async def upload_mandatory(self, record: ModalityRecord, student: Optional[Actor] = None) -> None:
        for doc in record.modality_type.mandatory_documents():
            await self.documents.upload(record.id, student or self.student, doc.id, f"storage://{doc.id}.pdf")
        await self.session.commit()

    async def accept_pending(self, record: ModalityRecord, reviewer: Actor) -> None:
        tier = tier_for(record.status)
        for submission in await self.documents.list_for_record(record.id):
            if submission.review_tier == tier and submission.status in REVIEWABLE_STATUSES:
                await self.documents.review(submission.id, reviewer, DocumentDecision.ACCEPT)
        await self.session.commit()

    async def to_program_head_review(self, modality_type: ModalityType) -> ModalityRecord:
        record = await self.start(modality_type)
        await self.upload_mandatory(record)
        return await self.act(record, self.student, A.SUBMIT_FOR_REVIEW)

    async def to_proposal_approved(self, modality_type: ModalityType) -> ModalityRecord:
        record = await self.to_program_head_review(modality_type)
        await self.accept_pending(record, self.program_head)
        record = await self.act(record, self.program_head, A.APPROVE)
        record = await self.act(record, self.committee, A.START_REVIEW)
        await self.accept_pending(record, self.committee)
        return await self.act(record, self.committee, A.APPROVE)

    async def to_examiners_assigned(self, modality_type: ModalityType, with_tiebreaker: bool = False) -> ModalityRecord:
        record = await self.to_proposal_approved(modality_type)
        record = await self.act(record, self.committee, A.ASSIGN_DIRECTOR, project_director_id=self.director.actor_id)
        record = await self.act(
            record, self.committee, A.SCHEDULE_DEFENSE,
            defense_datetime="2026-11-20T15:00:00+00:00", defense_location="Auditorio 2",
        )
        return await self.act(
            record, self.committee, A.ASSIGN_EXAMINERS,
            primary_examiner_1_id=self.examiner_1.actor_id,
            primary_examiner_2_id=self.examiner_2.actor_id,
            tiebreaker_examiner_id=self.tiebreaker.actor_id if with_tiebreaker else None,
        )

    async def to_defense_completed(self, modality_type: ModalityType, with_tiebreaker: bool = True) -> ModalityRecord:
        record = await self.to_examiners_assigned(modality_type, with_tiebreaker=with_tiebreaker)
        await self.accept_pending(record, self.examiner_1)
        record = await self.act(record, self.examiner_1, A.APPROVE)
        return await self.act(record, self.committee, A.COMPLETE_DEFENSE)

    async def evaluate(self, record: ModalityRecord, examiner: Actor, grade: str, decision) -> None:
        await self.examiners.submit_evaluation(record.id, examiner, grade, decision)
        await self.session.commit()


@pytest.fixture
def driver(db_session: AsyncSession, policy: WorkflowPolicy) -> WorkflowDriver:
    return WorkflowDriver(db_session, policy)


def pytest_sessionfinish(session, exitstatus):
    """Clean up the application database file after the run."""
    try:
        if os.path.exists(APP_DB_PATH):
            os.unlink(APP_DB_PATH)
    except OSError:
        pass
