"""
Examiner panel composition.

A panel has exactly one PRIMARY_1 and one PRIMARY_2, plus an optional
TIEBREAKER. Nobody may sit twice, and neither the project director nor a
member of the modality may sit at all.
"""

import uuid
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from modality_engine.kernel.events.event_store import EventStore
from modality_engine.kernel.models.event_log import EventType
from modality_engine.kernel.models.examiner import ExaminerAssignment, ExaminerRole, PRIMARY_ROLES
from modality_engine.kernel.models.modality import ModalityRecord
from modality_engine.orchestration.errors import (
    DuplicateExaminerAssignment,
    InvalidPayload,
    InvalidTransition,
)
from modality_engine.orchestration.records import ENTITY_MODALITY


async def get_assignments(session: AsyncSession, record_id: uuid.UUID) -> Dict[ExaminerRole, ExaminerAssignment]:
    result = await session.execute(
        select(ExaminerAssignment).where(ExaminerAssignment.modality_record_id == record_id)
    )
    return {a.role: a for a in result.scalars().all()}


async def find_assignment(
    session: AsyncSession,
    record_id: uuid.UUID,
    examiner_id: uuid.UUID,
) -> Optional[ExaminerAssignment]:
    result = await session.execute(
        select(ExaminerAssignment).where(
            ExaminerAssignment.modality_record_id == record_id,
            ExaminerAssignment.examiner_id == examiner_id,
        )
    )
    return result.scalar_one_or_none()


async def is_primary_examiner(session: AsyncSession, record_id: uuid.UUID, examiner_id: uuid.UUID) -> bool:
    assignment = await find_assignment(session, record_id, examiner_id)
    return assignment is not None and assignment.role in PRIMARY_ROLES


def _check_eligible(record: ModalityRecord, examiner_id: uuid.UUID) -> None:
    if record.project_director_id is not None and examiner_id == record.project_director_id:
        raise DuplicateExaminerAssignment(
            "The project director cannot sit on the examiner panel",
            examiner_id=examiner_id,
        )
    if record.is_member(examiner_id):
        raise DuplicateExaminerAssignment(
            "A member of the modality cannot examine it",
            examiner_id=examiner_id,
        )


async def _log_assignment(
    session: AsyncSession,
    record: ModalityRecord,
    assignment: ExaminerAssignment,
    actor_id: uuid.UUID,
) -> None:
    await EventStore(session).log(
        event_type=EventType.EXAMINER_ASSIGNED,
        entity_type=ENTITY_MODALITY,
        entity_id=record.id,
        user_id=actor_id,
        payload={
            "assignment_id": assignment.id,
            "examiner_id": assignment.examiner_id,
            "role": assignment.role,
        },
    )


async def assign_panel(
    session: AsyncSession,
    record: ModalityRecord,
    actor_id: uuid.UUID,
    primary_1: Optional[uuid.UUID],
    primary_2: Optional[uuid.UUID],
    tiebreaker: Optional[uuid.UUID] = None,
) -> List[ExaminerAssignment]:
    """Seat the panel. Fails without writing anything if any rule is broken."""
    if primary_1 is None or primary_2 is None:
        raise InvalidPayload("Both primary examiners are required")

    seats = {ExaminerRole.PRIMARY_1: primary_1, ExaminerRole.PRIMARY_2: primary_2}
    if tiebreaker is not None:
        seats[ExaminerRole.TIEBREAKER] = tiebreaker

    people = list(seats.values())
    if len(set(people)) != len(people):
        raise DuplicateExaminerAssignment("An examiner cannot hold two panel roles")
    for examiner_id in people:
        _check_eligible(record, examiner_id)

    if await get_assignments(session, record.id):
        raise InvalidTransition("Examiner panel is already assigned")

    assignments = [
        ExaminerAssignment(
            modality_record_id=record.id,
            examiner_id=examiner_id,
            role=role,
            assigned_by=actor_id,
        )
        for role, examiner_id in seats.items()
    ]
    session.add_all(assignments)
    await session.flush()

    for assignment in assignments:
        await _log_assignment(session, record, assignment, actor_id)
    return assignments


async def assign_tiebreaker(
    session: AsyncSession,
    record: ModalityRecord,
    actor_id: uuid.UUID,
    examiner_id: Optional[uuid.UUID],
) -> ExaminerAssignment:
    """
    Seat (or confirm) the tiebreaker once primaries disagree.

    Without an examiner id the tiebreaker chosen at panel assignment is
    confirmed; with one, it replaces that choice.
    """
    assignments = await get_assignments(session, record.id)
    current = assignments.get(ExaminerRole.TIEBREAKER)

    if examiner_id is None:
        if current is None:
            raise InvalidPayload("A tiebreaker examiner is required")
        return current

    if any(a.examiner_id == examiner_id for role, a in assignments.items() if role in PRIMARY_ROLES):
        raise DuplicateExaminerAssignment(
            "A primary examiner cannot also be the tiebreaker",
            examiner_id=examiner_id,
        )
    _check_eligible(record, examiner_id)

    if current is not None:
        if current.examiner_id == examiner_id:
            return current
        current.examiner_id = examiner_id
        current.assigned_by = actor_id
        assignment = current
    else:
        assignment = ExaminerAssignment(
            modality_record_id=record.id,
            examiner_id=examiner_id,
            role=ExaminerRole.TIEBREAKER,
            assigned_by=actor_id,
        )
        session.add(assignment)
    await session.flush()

    await _log_assignment(session, record, assignment, actor_id)
    return assignment
