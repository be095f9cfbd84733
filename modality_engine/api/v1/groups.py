"""Group formation endpoints."""

import uuid
from typing import List, Optional

from fastapi import APIRouter, status

from modality_engine.api.deps import CurrentActor, DbSession, Policy
from modality_engine.kernel.models.invitation import InvitationStatus
from modality_engine.orchestration.groups import GroupFormationService
from modality_engine.schemas.group import InvitationCreate, InvitationResponse
from modality_engine.schemas.modality import ModalityResponse

router = APIRouter()


@router.post(
    "/modalities/{record_id}/invitations",
    response_model=InvitationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def invite(record_id: uuid.UUID, data: InvitationCreate, actor: CurrentActor, db: DbSession, policy: Policy):
    """Invite a peer into a draft group (initiator only)."""
    invitation = await GroupFormationService(db, policy).invite(record_id, actor, data.invitee_id)
    return InvitationResponse.model_validate(invitation)


@router.get("/modalities/{record_id}/invitations", response_model=List[InvitationResponse])
async def list_record_invitations(record_id: uuid.UUID, actor: CurrentActor, db: DbSession, policy: Policy):
    invitations = await GroupFormationService(db, policy).list_invitations(record_id=record_id)
    return [InvitationResponse.model_validate(i) for i in invitations]


@router.get("/invitations/mine", response_model=List[InvitationResponse])
async def list_my_invitations(
    actor: CurrentActor,
    db: DbSession,
    policy: Policy,
    invitation_status: Optional[InvitationStatus] = None,
):
    """Invitations addressed to the caller."""
    invitations = await GroupFormationService(db, policy).list_invitations(
        invitee_id=actor.actor_id, status=invitation_status
    )
    return [InvitationResponse.model_validate(i) for i in invitations]


@router.post("/invitations/{invitation_id}/accept", response_model=InvitationResponse)
async def accept_invitation(invitation_id: uuid.UUID, actor: CurrentActor, db: DbSession, policy: Policy):
    invitation = await GroupFormationService(db, policy).accept(invitation_id, actor)
    return InvitationResponse.model_validate(invitation)


@router.post("/invitations/{invitation_id}/reject", response_model=InvitationResponse)
async def reject_invitation(invitation_id: uuid.UUID, actor: CurrentActor, db: DbSession, policy: Policy):
    invitation = await GroupFormationService(db, policy).reject(invitation_id, actor)
    return InvitationResponse.model_validate(invitation)


@router.post("/modalities/{record_id}/confirm", response_model=ModalityResponse)
async def confirm_group(record_id: uuid.UUID, actor: CurrentActor, db: DbSession, policy: Policy):
    """Close the group; pending invitations are withdrawn."""
    record = await GroupFormationService(db, policy).confirm(record_id, actor)
    return ModalityResponse.from_record(record)
