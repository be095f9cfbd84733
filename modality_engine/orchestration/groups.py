"""
Group formation.

A group start opens a DRAFT record with the initiator as its only member.
Peers are invited into that draft; accepting joins them. The initiator
confirms the group, which withdraws anything still pending and moves the
record to MODALITY_SELECTED for every member at once.
"""

import uuid
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from modality_engine.kernel.events.event_store import EventStore
from modality_engine.kernel.models.base import utcnow
from modality_engine.kernel.models.event_log import EventType
from modality_engine.kernel.models.invitation import GroupInvitation, InvitationStatus
from modality_engine.kernel.models.modality import ModalityRecord, ModalityStatus
from modality_engine.kernel.models.modality_type import ModalityType
from modality_engine.kernel.models.roles import UserRole
from modality_engine.logging_config import get_logger
from modality_engine.orchestration.context import Actor
from modality_engine.orchestration.errors import (
    InvalidPayload,
    InvalidTransition,
    InvitationCapacityExceeded,
    InvitationConflict,
    RecordNotFound,
    UnauthorizedTransition,
    storage_guard,
)
from modality_engine.orchestration.policy import WorkflowPolicy
from modality_engine.orchestration.records import (
    ENTITY_MODALITY,
    change_status,
    find_active_record_for,
    lock_record,
    touch,
)

logger = get_logger(__name__)


class GroupFormationService:
    """Starts modalities and runs the invitation protocol for groups."""

    def __init__(self, session: AsyncSession, policy: Optional[WorkflowPolicy] = None):
        self.session = session
        self.policy = policy or WorkflowPolicy.from_settings()
        self.event_store = EventStore(session)

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------

    async def start_individual(self, actor: Actor, modality_type_id: uuid.UUID) -> ModalityRecord:
        return await self._start(actor, modality_type_id, group=False)

    async def start_group(self, actor: Actor, modality_type_id: uuid.UUID) -> ModalityRecord:
        return await self._start(actor, modality_type_id, group=True)

    async def _start(self, actor: Actor, modality_type_id: uuid.UUID, *, group: bool) -> ModalityRecord:
        if actor.role != UserRole.STUDENT:
            raise UnauthorizedTransition("Only students start a modality")

        modality_type = await self.session.get(ModalityType, modality_type_id)
        if modality_type is None:
            raise RecordNotFound("Modality type not found", modality_type_id=modality_type_id)
        if not modality_type.is_active:
            raise InvalidPayload("Modality type is not open for selection", modality_type_id=modality_type_id)

        existing = await find_active_record_for(self.session, actor.actor_id)
        if existing is not None:
            raise InvitationConflict(
                "Student already belongs to an active modality",
                record_id=existing.id,
            )

        status = ModalityStatus.DRAFT if group else ModalityStatus.MODALITY_SELECTED
        now = utcnow()
        with storage_guard():
            record = ModalityRecord(
                modality_type_id=modality_type.id,
                status=status,
                is_group=group,
                status_changed_at=now,
                status_changed_by=actor.actor_id,
            )
            record.modality_type = modality_type
            record.members = []
            record.add_member(actor.actor_id)
            self.session.add(record)
            await self.session.flush()

            await self.event_store.log(
                event_type=EventType.MODALITY_CREATED,
                entity_type=ENTITY_MODALITY,
                entity_id=record.id,
                user_id=actor.actor_id,
                payload={
                    "modality_type_id": modality_type.id,
                    "modality_type": modality_type.name,
                    "status": status,
                    "is_group": group,
                    "member_ids": record.member_ids,
                },
            )

        logger.info(
            "Modality started",
            extra={"record_id": str(record.id), "status": status.value, "is_group": group},
        )
        return record

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    async def _load_draft(self, record_id: uuid.UUID, actor: Actor) -> ModalityRecord:
        record = await lock_record(self.session, record_id)
        if record.status != ModalityStatus.DRAFT:
            raise InvalidTransition(
                "Group membership can only change before the group is confirmed",
                status=record.status.value,
            )
        if actor.actor_id != record.initiator_id:
            raise UnauthorizedTransition("Only the group initiator can manage the group")
        return record

    async def _open_invitations(self, record_id: uuid.UUID) -> int:
        result = await self.session.execute(
            select(func.count(GroupInvitation.id)).where(
                GroupInvitation.modality_record_id == record_id,
                GroupInvitation.status.in_([InvitationStatus.PENDING, InvitationStatus.ACCEPTED]),
            )
        )
        return result.scalar_one()

    async def invite(self, record_id: uuid.UUID, actor: Actor, invitee_id: uuid.UUID) -> GroupInvitation:
        """
        Invite a peer into a draft group.

        Capacity is checked before the candidate, so a full group reports
        InvitationCapacityExceeded whoever is invited.
        """
        with storage_guard(record_id):
            record = await self._load_draft(record_id, actor)

            if await self._open_invitations(record.id) >= self.policy.max_group_members - 1:
                raise InvitationCapacityExceeded(
                    f"A group has at most {self.policy.max_group_members} members",
                    max_group_members=self.policy.max_group_members,
                )

            if invitee_id == actor.actor_id or record.is_member(invitee_id):
                raise InvitationConflict("Candidate is already in this group", invitee_id=invitee_id)

            pending = await self.session.execute(
                select(GroupInvitation.id).where(
                    GroupInvitation.invitee_id == invitee_id,
                    GroupInvitation.status == InvitationStatus.PENDING,
                ).limit(1)
            )
            if pending.scalar_one_or_none() is not None:
                raise InvitationConflict("Candidate already holds a pending invitation", invitee_id=invitee_id)

            if await find_active_record_for(self.session, invitee_id) is not None:
                raise InvitationConflict("Candidate already belongs to an active modality", invitee_id=invitee_id)

            invitation = GroupInvitation(
                modality_record_id=record.id,
                inviter_id=actor.actor_id,
                invitee_id=invitee_id,
                status=InvitationStatus.PENDING,
            )
            self.session.add(invitation)
            touch(record)
            await self.session.flush()

            await self._log(EventType.INVITATION_SENT, invitation, actor.actor_id)
        return invitation

    async def _load_invitation(self, invitation_id: uuid.UUID) -> GroupInvitation:
        invitation = await self.session.get(GroupInvitation, invitation_id)
        if invitation is None:
            raise RecordNotFound("Invitation not found", invitation_id=invitation_id)
        return invitation

    async def accept(self, invitation_id: uuid.UUID, actor: Actor) -> GroupInvitation:
        return await self._respond(invitation_id, actor, accept=True)

    async def reject(self, invitation_id: uuid.UUID, actor: Actor) -> GroupInvitation:
        return await self._respond(invitation_id, actor, accept=False)

    async def _respond(self, invitation_id: uuid.UUID, actor: Actor, *, accept: bool) -> GroupInvitation:
        invitation = await self._load_invitation(invitation_id)
        if invitation.invitee_id != actor.actor_id:
            raise UnauthorizedTransition("Only the invitee can answer an invitation")
        if invitation.is_resolved:
            return invitation

        with storage_guard(invitation.modality_record_id):
            record = await lock_record(self.session, invitation.modality_record_id)
            if accept:
                if record.status != ModalityStatus.DRAFT:
                    raise InvalidTransition("The group has already been confirmed", status=record.status.value)
                other = await find_active_record_for(self.session, actor.actor_id)
                if other is not None:
                    raise InvitationConflict("Student already belongs to an active modality", record_id=other.id)
                record.add_member(actor.actor_id)
                invitation.status = InvitationStatus.ACCEPTED
                event_type = EventType.INVITATION_ACCEPTED
            else:
                invitation.status = InvitationStatus.REJECTED
                event_type = EventType.INVITATION_REJECTED
            invitation.responded_at = utcnow()
            touch(record)
            await self.session.flush()

            await self._log(event_type, invitation, actor.actor_id, member_ids=record.member_ids)
        return invitation

    async def confirm(self, record_id: uuid.UUID, actor: Actor) -> ModalityRecord:
        """Close the group and hand the record to the status machine."""
        with storage_guard(record_id):
            record = await self._load_draft(record_id, actor)

            pending = await self.session.execute(
                select(GroupInvitation).where(
                    GroupInvitation.modality_record_id == record.id,
                    GroupInvitation.status == InvitationStatus.PENDING,
                )
            )
            now = utcnow()
            for invitation in pending.scalars().all():
                invitation.status = InvitationStatus.REJECTED
                invitation.responded_at = now
                await self._log(EventType.INVITATION_WITHDRAWN, invitation, actor.actor_id)

            if len(record.members) == 1:
                record.is_group = False

            await change_status(
                self.session,
                record,
                ModalityStatus.MODALITY_SELECTED,
                actor_id=actor.actor_id,
                action="CONFIRM_GROUP",
                extra={"is_group": record.is_group},
            )
            await self.session.flush()
        return record

    async def list_invitations(
        self,
        *,
        record_id: Optional[uuid.UUID] = None,
        invitee_id: Optional[uuid.UUID] = None,
        status: Optional[InvitationStatus] = None,
    ) -> List[GroupInvitation]:
        query = select(GroupInvitation)
        if record_id is not None:
            query = query.where(GroupInvitation.modality_record_id == record_id)
        if invitee_id is not None:
            query = query.where(GroupInvitation.invitee_id == invitee_id)
        if status is not None:
            query = query.where(GroupInvitation.status == status)
        result = await self.session.execute(query.order_by(GroupInvitation.sent_at))
        return list(result.scalars().all())

    async def _log(self, event_type: EventType, invitation: GroupInvitation, user_id: uuid.UUID, **extra) -> None:
        payload = {
            "invitation_id": invitation.id,
            "inviter_id": invitation.inviter_id,
            "invitee_id": invitation.invitee_id,
            "status": invitation.status,
        }
        payload.update(extra)
        await self.event_store.log(
            event_type=event_type,
            entity_type=ENTITY_MODALITY,
            entity_id=invitation.modality_record_id,
            user_id=user_id,
            payload=payload,
        )
