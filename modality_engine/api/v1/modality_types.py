"""Modality type catalog endpoints."""

from typing import List

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select

from modality_engine.api.deps import AdminActor, CurrentActor, DbSession, Policy
from modality_engine.kernel.events.event_store import EventStore
from modality_engine.kernel.models.event_log import EventType
from modality_engine.kernel.models.modality_type import ModalityType, RequiredDocument
from modality_engine.schemas.modality_type import ModalityTypeCreate, ModalityTypeResponse

router = APIRouter()


def _to_response(modality_type: ModalityType, policy) -> ModalityTypeResponse:
    response = ModalityTypeResponse.model_validate(modality_type)
    return response.model_copy(update={"simplified": policy.is_simplified(modality_type.name)})


@router.get("", response_model=List[ModalityTypeResponse])
async def list_modality_types(actor: CurrentActor, db: DbSession, policy: Policy, include_inactive: bool = False):
    """List modality types open for selection."""
    query = select(ModalityType).order_by(ModalityType.name)
    if not include_inactive:
        query = query.where(ModalityType.is_active.is_(True))
    result = await db.execute(query)
    return [_to_response(t, policy) for t in result.scalars().all()]


@router.post("", response_model=ModalityTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_modality_type(data: ModalityTypeCreate, admin: AdminActor, db: DbSession, policy: Policy):
    """Create a modality type with its required document templates (admin only)."""
    name = data.name.strip()
    existing = await db.execute(select(ModalityType.id).where(ModalityType.name == name))
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Modality type already exists")

    modality_type = ModalityType(name=name, description=data.description, is_active=True)
    modality_type.required_documents = [
        RequiredDocument(
            name=doc.name,
            description=doc.description,
            mandatory=doc.mandatory,
            examiner_reviewable=doc.examiner_reviewable,
            position=position,
        )
        for position, doc in enumerate(data.required_documents)
    ]
    db.add(modality_type)
    await db.flush()

    await EventStore(db).log(
        event_type=EventType.MODALITY_TYPE_CREATED,
        entity_type="modality_type",
        entity_id=modality_type.id,
        user_id=admin.actor_id,
        payload={
            "name": name,
            "required_documents": [d.name for d in modality_type.required_documents],
        },
    )
    return _to_response(modality_type, policy)
