"""Modality record endpoints: start, read, transitions, history."""

import uuid
from typing import List

from fastapi import APIRouter, Query, status

from modality_engine.api.deps import CurrentActor, DbSession, Policy
from modality_engine.kernel.events.event_store import EventStore
from modality_engine.kernel.models.modality import ModalityRecord
from modality_engine.orchestration.errors import RecordNotFound
from modality_engine.orchestration.examiners import ExaminerService
from modality_engine.orchestration.groups import GroupFormationService
from modality_engine.orchestration.records import ENTITY_MODALITY
from modality_engine.orchestration.state_machine import ModalityStateMachine
from modality_engine.orchestration.status_catalog import catalog_rows
from modality_engine.schemas.common import EventResponse
from modality_engine.schemas.modality import (
    AvailableActionsResponse,
    FinalDecisionRequest,
    ModalityResponse,
    ModalityStart,
    StatusCatalogEntry,
    TransitionRequest,
)

router = APIRouter()


async def get_record_or_404(db, record_id: uuid.UUID) -> ModalityRecord:
    record = await db.get(ModalityRecord, record_id)
    if record is None:
        raise RecordNotFound("Modality record not found", record_id=record_id)
    return record


@router.get("/statuses", response_model=List[StatusCatalogEntry])
async def list_statuses():
    """Status catalog in workflow order."""
    return [
        StatusCatalogEntry(
            status=info.status.value,
            order=info.order,
            category=info.category,
            label=info.label,
            review_tier=info.tier.value if info.tier else None,
            terminal=info.terminal,
        )
        for info in catalog_rows()
    ]


@router.post("", response_model=ModalityResponse, status_code=status.HTTP_201_CREATED)
async def start_modality(data: ModalityStart, actor: CurrentActor, db: DbSession, policy: Policy):
    """Start an individual modality, or open a group draft when `group` is set."""
    service = GroupFormationService(db, policy)
    if data.group:
        record = await service.start_group(actor, data.modality_type_id)
    else:
        record = await service.start_individual(actor, data.modality_type_id)
    return ModalityResponse.from_record(record)


@router.get("/{record_id}", response_model=ModalityResponse)
async def get_modality(record_id: uuid.UUID, actor: CurrentActor, db: DbSession):
    record = await get_record_or_404(db, record_id)
    return ModalityResponse.from_record(record)


@router.get("/{record_id}/actions", response_model=AvailableActionsResponse)
async def get_available_actions(record_id: uuid.UUID, actor: CurrentActor, db: DbSession, policy: Policy):
    """Actions the caller's role may attempt from the record's current status."""
    record = await get_record_or_404(db, record_id)
    actions = ModalityStateMachine(db, policy).actions_for(record, actor.role)
    return AvailableActionsResponse(
        record_id=record.id,
        status=record.status.value,
        role=actor.role.value,
        actions=[a.value for a in actions],
    )


@router.post("/{record_id}/transitions", response_model=ModalityResponse)
async def apply_transition(
    record_id: uuid.UUID,
    data: TransitionRequest,
    actor: CurrentActor,
    db: DbSession,
    policy: Policy,
):
    """Apply one workflow action. Rejections map to 403/404/409/422."""
    record = await ModalityStateMachine(db, policy).transition(
        record_id,
        actor,
        data.action,
        data.payload,
        expected_version=data.expected_version,
    )
    return ModalityResponse.from_record(record)


@router.post("/{record_id}/final-decision", response_model=ModalityResponse)
async def final_decision(
    record_id: uuid.UUID,
    data: FinalDecisionRequest,
    actor: CurrentActor,
    db: DbSession,
    policy: Policy,
):
    """Committee decision for simplified modalities."""
    record = await ExaminerService(db, policy).final_decision(
        record_id,
        actor,
        approve=data.approve,
        observations=data.observations,
        reason=data.reason,
        expected_version=data.expected_version,
    )
    return ModalityResponse.from_record(record)


@router.get("/{record_id}/history", response_model=List[EventResponse])
async def get_history(
    record_id: uuid.UUID,
    actor: CurrentActor,
    db: DbSession,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    """Workflow events for the record, newest first."""
    await get_record_or_404(db, record_id)
    events = await EventStore(db).get_entity_history(ENTITY_MODALITY, record_id, limit=limit, offset=offset)
    return [EventResponse.model_validate(e) for e in events]
