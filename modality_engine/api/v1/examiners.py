"""Examiner panel and evaluation endpoints."""

import uuid
from typing import List

from fastapi import APIRouter, status
from sqlalchemy import select

from modality_engine.api.deps import CurrentActor, DbSession, Policy
from modality_engine.kernel.models.examiner import Evaluation
from modality_engine.orchestration import panel
from modality_engine.orchestration.examiners import ExaminerService
from modality_engine.schemas.examiner import AssignmentResponse, EvaluationResponse, EvaluationSubmit

router = APIRouter()


@router.get("/modalities/{record_id}/examiners", response_model=List[AssignmentResponse])
async def list_panel(record_id: uuid.UUID, actor: CurrentActor, db: DbSession):
    """Examiner panel of a record."""
    assignments = await panel.get_assignments(db, record_id)
    return [AssignmentResponse.model_validate(a) for a in assignments.values()]


@router.get("/modalities/{record_id}/evaluations", response_model=List[EvaluationResponse])
async def list_evaluations(record_id: uuid.UUID, actor: CurrentActor, db: DbSession):
    result = await db.execute(
        select(Evaluation)
        .where(Evaluation.modality_record_id == record_id)
        .order_by(Evaluation.submitted_at)
    )
    return [EvaluationResponse.model_validate(e) for e in result.scalars().all()]


@router.post(
    "/modalities/{record_id}/evaluations",
    response_model=EvaluationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_evaluation(
    record_id: uuid.UUID,
    data: EvaluationSubmit,
    actor: CurrentActor,
    db: DbSession,
    policy: Policy,
):
    """Submit the caller's evaluation; aggregation runs in the same transaction."""
    evaluation = await ExaminerService(db, policy).submit_evaluation(
        record_id,
        actor,
        data.grade,
        data.decision,
        observations=data.observations,
        expected_version=data.expected_version,
    )
    return EvaluationResponse.model_validate(evaluation)
