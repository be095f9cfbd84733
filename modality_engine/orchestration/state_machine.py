"""
State machine for the ModalityRecord lifecycle.

transition() is the only way a human actor changes a record's status. It
locks the record, resolves the (status, role, action) rule, checks the
actor's identity against the record, enforces mandatory reasons and the
document gate, applies the action's side effects and logs the change.
Nothing is written unless every check passes.
"""

import uuid
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from modality_engine.kernel.events.event_store import EventStore
from modality_engine.kernel.models.event_log import EventType
from modality_engine.kernel.models.modality import ModalityRecord, ModalityStatus
from modality_engine.kernel.models.roles import UserRole
from modality_engine.logging_config import get_logger
from modality_engine.orchestration import panel
from modality_engine.orchestration.context import Actor
from modality_engine.orchestration.documents import reset_for_tier, unresolved_mandatory
from modality_engine.orchestration.errors import (
    DuplicateExaminerAssignment,
    IncompleteDocuments,
    InvalidPayload,
    InvalidTransition,
    MissingMandatoryReason,
    UnauthorizedTransition,
    storage_guard,
)
from modality_engine.orchestration.payloads import TransitionPayload
from modality_engine.orchestration.policy import WorkflowPolicy
from modality_engine.orchestration.records import (
    ENTITY_MODALITY,
    change_status,
    lock_record,
    touch,
)
from modality_engine.orchestration.transitions import (
    ModalityAction,
    ResolvedTransition,
    SYSTEM_TRANSITIONS,
    TargetKind,
    available_actions,
    resolve_transition,
)

logger = get_logger(__name__)

A = ModalityAction


class ModalityStateMachine:
    """Service for performing modality status transitions with audit logging."""

    def __init__(self, session: AsyncSession, policy: Optional[WorkflowPolicy] = None):
        self.session = session
        self.policy = policy or WorkflowPolicy.from_settings()
        self.event_store = EventStore(session)

    def is_simplified(self, record: ModalityRecord) -> bool:
        return self.policy.is_simplified(record.modality_type.name)

    def resolve(self, record: ModalityRecord, actor: Actor, action: ModalityAction) -> ResolvedTransition:
        return resolve_transition(
            record.status,
            actor.role,
            action,
            self.policy,
            simplified=self.is_simplified(record),
            director_assigned=record.project_director_id is not None,
            status_before_cancellation=record.status_before_cancellation,
        )

    def actions_for(self, record: ModalityRecord, role: UserRole) -> List[ModalityAction]:
        return available_actions(
            record.status,
            role,
            self.policy,
            simplified=self.is_simplified(record),
            director_assigned=record.project_director_id is not None,
        )

    async def transition(
        self,
        record_id: uuid.UUID,
        actor: Actor,
        action: ModalityAction,
        payload: Optional[TransitionPayload] = None,
        expected_version: Optional[int] = None,
    ) -> ModalityRecord:
        """
        Apply `action` by `actor` to the record.

        Raises a WorkflowError subclass on rejection; the record is left
        untouched in that case.
        """
        payload = payload or TransitionPayload()
        with storage_guard(record_id):
            record = await lock_record(self.session, record_id, expected_version)
            resolved = self.resolve(record, actor, action)

            await self._check_identity(record, actor, resolved)
            if resolved.rule.reason_required and not payload.reason:
                raise MissingMandatoryReason(f"A reason is required to {action.value}")
            await self._check_documents(record, resolved)

            await self._apply_side_effects(record, actor, resolved, payload)

            if resolved.rule.kind == TargetKind.STAY:
                touch(record)
            else:
                await change_status(
                    self.session,
                    record,
                    resolved.to_status,
                    actor_id=actor.actor_id,
                    action=action.value,
                    reason=payload.reason,
                    extra={"role": actor.role},
                )
            await self.session.flush()
        return record

    async def apply_system_transition(
        self,
        record: ModalityRecord,
        to_status: ModalityStatus,
        *,
        action: str,
        reason: Optional[str] = None,
    ) -> ModalityRecord:
        """
        Evaluation-driven transition on an already locked record.

        Only the moves listed in SYSTEM_TRANSITIONS are allowed.
        """
        if to_status not in SYSTEM_TRANSITIONS.get(record.status, frozenset()):
            raise InvalidTransition(
                f"No automatic transition from {record.status.value} to {to_status.value}",
                status=record.status.value,
            )
        return await change_status(
            self.session,
            record,
            to_status,
            actor_id=None,
            action=action,
            reason=reason,
        )

    async def _check_identity(self, record: ModalityRecord, actor: Actor, resolved: ResolvedTransition) -> None:
        """Role alone is not enough for the parties bound to this record."""
        if actor.role == UserRole.STUDENT and not record.is_member(actor.actor_id):
            raise UnauthorizedTransition("Student is not a member of this modality")
        if actor.role == UserRole.PROJECT_DIRECTOR and record.project_director_id != actor.actor_id:
            raise UnauthorizedTransition("Only the assigned project director can act on this modality")
        if actor.role == UserRole.EXAMINER and not await panel.is_primary_examiner(
            self.session, record.id, actor.actor_id
        ):
            raise UnauthorizedTransition("Only an assigned primary examiner can act on this modality")

    async def _check_documents(self, record: ModalityRecord, resolved: ResolvedTransition) -> None:
        rule = resolved.rule
        if rule.gate is None:
            return
        missing = await unresolved_mandatory(self.session, record, rule.gate, rule.gate_tier)
        if missing:
            raise IncompleteDocuments(
                f"{len(missing)} mandatory document(s) block {resolved.action.value} ({rule.gate.value})",
                missing_document_ids=missing,
            )

    async def _apply_side_effects(
        self,
        record: ModalityRecord,
        actor: Actor,
        resolved: ResolvedTransition,
        payload: TransitionPayload,
    ) -> None:
        action = resolved.action

        if action == A.ASSIGN_DIRECTOR:
            await self._assign_director(record, actor, payload)
        elif action == A.PROPOSE_DEFENSE:
            if payload.defense_datetime is None or not payload.defense_location:
                raise InvalidPayload("Proposing a defense needs a date and a location")
            record.defense_datetime = payload.defense_datetime
            record.defense_location = payload.defense_location
            await self._log_defense(EventType.DEFENSE_PROPOSED, record, actor)
        elif action == A.SCHEDULE_DEFENSE:
            if record.project_director_id is None:
                raise InvalidTransition("Assign a project director before scheduling the defense")
            when = payload.defense_datetime or record.defense_datetime
            where = payload.defense_location or record.defense_location
            if when is None or not where:
                raise InvalidPayload("Scheduling a defense needs a date and a location")
            record.defense_datetime = when
            record.defense_location = where
            await self._log_defense(EventType.DEFENSE_SCHEDULED, record, actor)
        elif action == A.ASSIGN_EXAMINERS:
            await panel.assign_panel(
                self.session,
                record,
                actor.actor_id,
                payload.primary_examiner_1_id,
                payload.primary_examiner_2_id,
                payload.tiebreaker_examiner_id,
            )
        elif action == A.ASSIGN_TIEBREAKER:
            await panel.assign_tiebreaker(
                self.session, record, actor.actor_id, payload.tiebreaker_examiner_id
            )
        elif action == A.FINAL_APPROVE:
            record.final_decision = "APPROVED"
            record.final_observations = payload.observations
        elif action == A.FINAL_REJECT:
            record.final_decision = "REJECTED"
            record.final_observations = payload.reason
        elif action == A.REQUEST_CANCELLATION:
            record.status_before_cancellation = record.status
            record.cancellation_rejection_reason = None
        elif action == A.REJECT_CANCELLATION:
            record.cancellation_rejection_reason = payload.reason
            record.status_before_cancellation = None
            await self.event_store.log(
                event_type=EventType.CANCELLATION_REJECTED,
                entity_type=ENTITY_MODALITY,
                entity_id=record.id,
                user_id=actor.actor_id,
                payload={
                    "restored_status": resolved.to_status,
                    "reason": payload.reason,
                    "decided_by_role": actor.role,
                },
            )

        if resolved.rule.reset_to is not None:
            moved = await reset_for_tier(self.session, record, resolved.rule.reset_to)
            logger.debug(
                "Documents moved to next review tier",
                extra={"record_id": str(record.id), "tier": resolved.rule.reset_to.value, "count": moved},
            )

    async def _assign_director(self, record: ModalityRecord, actor: Actor, payload: TransitionPayload) -> None:
        director_id = payload.project_director_id
        if director_id is None:
            raise InvalidPayload("project_director_id is required")
        if record.is_member(director_id):
            raise InvalidPayload("A member of the modality cannot direct it")
        if await panel.find_assignment(self.session, record.id, director_id) is not None:
            raise DuplicateExaminerAssignment(
                "An assigned examiner cannot be the project director",
                examiner_id=director_id,
            )
        previous = record.project_director_id
        record.project_director_id = director_id
        await self.event_store.log(
            event_type=EventType.DIRECTOR_ASSIGNED,
            entity_type=ENTITY_MODALITY,
            entity_id=record.id,
            user_id=actor.actor_id,
            payload={
                "project_director_id": director_id,
                "previous_director_id": previous,
                "member_ids": record.member_ids,
            },
        )

    async def _log_defense(self, event_type: EventType, record: ModalityRecord, actor: Actor) -> None:
        await self.event_store.log(
            event_type=event_type,
            entity_type=ENTITY_MODALITY,
            entity_id=record.id,
            user_id=actor.actor_id,
            payload={
                "defense_datetime": record.defense_datetime,
                "defense_location": record.defense_location,
                "member_ids": record.member_ids,
            },
        )
