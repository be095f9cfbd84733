"""
Examiner evaluation engine.

Primary examiners evaluate once the defense is completed. When both primary
evaluations exist they are compared under the policy's agreement mode:
agreement grades the modality, disagreement calls for the tiebreaker whose
evaluation is final. Aggregation runs under the record lock, so a third
concurrent submission cannot interleave with the comparison.

Simplified modalities skip the panel; the committee decides directly via
final_decision().
"""

import uuid
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from modality_engine.kernel.events.event_store import EventStore
from modality_engine.kernel.models.event_log import EventType
from modality_engine.kernel.models.examiner import (
    Evaluation,
    EvaluationDecision,
    ExaminerAssignment,
    ExaminerRole,
    PRIMARY_ROLES,
)
from modality_engine.kernel.models.modality import ModalityRecord, ModalityStatus
from modality_engine.kernel.models.roles import UserRole
from modality_engine.logging_config import get_logger
from modality_engine.orchestration import grading
from modality_engine.orchestration.context import Actor
from modality_engine.orchestration.errors import (
    DuplicateEvaluation,
    InvalidTransition,
    TerminalStateViolation,
    UnauthorizedTransition,
    storage_guard,
)
from modality_engine.orchestration.panel import find_assignment
from modality_engine.orchestration.payloads import TransitionPayload
from modality_engine.orchestration.policy import WorkflowPolicy
from modality_engine.orchestration.records import ENTITY_MODALITY, lock_record, touch
from modality_engine.orchestration.state_machine import ModalityStateMachine
from modality_engine.orchestration.status_catalog import is_terminal
from modality_engine.orchestration.transitions import ModalityAction

logger = get_logger(__name__)

S = ModalityStatus

PRIMARY_EVALUATION_STATUSES = frozenset({
    S.DEFENSE_COMPLETED,
    S.UNDER_EVALUATION_PRIMARY_EXAMINERS,
})
TIEBREAKER_EVALUATION_STATUSES = frozenset({
    S.DISAGREEMENT_REQUIRES_TIEBREAKER,
    S.UNDER_EVALUATION_TIEBREAKER,
})


class ExaminerService:
    """Evaluation submission, aggregation and the simplified committee decision."""

    def __init__(self, session: AsyncSession, policy: Optional[WorkflowPolicy] = None):
        self.session = session
        self.state_machine = ModalityStateMachine(session, policy)
        self.policy = self.state_machine.policy
        self.event_store = EventStore(session)

    async def evaluations_by_role(self, record_id: uuid.UUID) -> Dict[ExaminerRole, Evaluation]:
        result = await self.session.execute(
            select(ExaminerAssignment.role, Evaluation)
            .join(Evaluation, Evaluation.assignment_id == ExaminerAssignment.id)
            .where(ExaminerAssignment.modality_record_id == record_id)
        )
        return {role: evaluation for role, evaluation in result.all()}

    async def submit_evaluation(
        self,
        record_id: uuid.UUID,
        actor: Actor,
        grade: grading.GradeInput,
        decision: EvaluationDecision,
        observations: str = "",
        expected_version: Optional[int] = None,
    ) -> Evaluation:
        """
        Record one examiner's evaluation and drive the record forward.

        Raises:
            UnauthorizedTransition: the actor holds no seat on this panel
            InvalidTransition: the seat is not evaluating in the current status
            InconsistentGradeDecision: decision outside the grade's band
            DuplicateEvaluation: this seat already evaluated
        """
        decision = EvaluationDecision(decision)
        with storage_guard(record_id):
            record = await lock_record(self.session, record_id, expected_version)
            if is_terminal(record.status):
                raise TerminalStateViolation(f"Modality is {record.status.value}")
            if actor.role != UserRole.EXAMINER:
                raise UnauthorizedTransition("Only examiners submit evaluations")
            assignment = await find_assignment(self.session, record.id, actor.actor_id)
            if assignment is None:
                raise UnauthorizedTransition("Examiner is not assigned to this modality")

            parsed_grade = grading.ensure_consistent(grade, decision)

            allowed = (
                PRIMARY_EVALUATION_STATUSES
                if assignment.role in PRIMARY_ROLES
                else TIEBREAKER_EVALUATION_STATUSES
            )
            if record.status not in allowed:
                raise InvalidTransition(
                    f"{assignment.role.value} cannot evaluate while modality is {record.status.value}",
                    status=record.status.value,
                )

            existing = await self.session.execute(
                select(Evaluation.id).where(Evaluation.assignment_id == assignment.id)
            )
            if existing.scalar_one_or_none() is not None:
                raise DuplicateEvaluation("This examiner has already submitted an evaluation")

            evaluation = Evaluation(
                assignment_id=assignment.id,
                modality_record_id=record.id,
                grade=parsed_grade,
                decision=decision,
                observations=(observations or "").strip(),
            )
            self.session.add(evaluation)
            await self.session.flush()

            await self.event_store.log(
                event_type=EventType.EVALUATION_RECORDED,
                entity_type=ENTITY_MODALITY,
                entity_id=record.id,
                user_id=actor.actor_id,
                payload={
                    "evaluation_id": evaluation.id,
                    "examiner_role": assignment.role,
                    "grade": parsed_grade,
                    "decision": decision,
                },
            )

            if assignment.role in PRIMARY_ROLES:
                await self._after_primary_evaluation(record)
            else:
                await self._grade(record, parsed_grade, decision, action="TIEBREAKER_EVALUATION")
            await self.session.flush()

        logger.info(
            "Evaluation recorded",
            extra={
                "record_id": str(record.id),
                "examiner_role": assignment.role.value,
                "decision": decision.value,
                "status": record.status.value,
            },
        )
        return evaluation

    async def _after_primary_evaluation(self, record: ModalityRecord) -> None:
        evaluations = await self.evaluations_by_role(record.id)
        primaries: List[Evaluation] = [evaluations[r] for r in PRIMARY_ROLES if r in evaluations]

        if len(primaries) < 2:
            if record.status == S.DEFENSE_COMPLETED:
                await self.state_machine.apply_system_transition(
                    record, S.UNDER_EVALUATION_PRIMARY_EXAMINERS, action="PRIMARY_EVALUATION",
                )
            else:
                touch(record)
            return

        first, second = primaries
        if grading.decisions_agree(first.decision, second.decision, self.policy.examiner_agreement):
            grade, decision = grading.aggregate([(e.grade, e.decision) for e in primaries])
            await self._grade(record, grade, decision, action="PRIMARY_AGREEMENT")
        else:
            await self.state_machine.apply_system_transition(
                record,
                S.DISAGREEMENT_REQUIRES_TIEBREAKER,
                action="PRIMARY_DISAGREEMENT",
                reason=f"{first.decision.value} vs {second.decision.value}",
            )

    async def _grade(self, record: ModalityRecord, grade, decision: EvaluationDecision, action: str) -> None:
        record.final_grade = grade
        record.final_decision = decision.value
        target = S.GRADED_APPROVED if decision.is_approval else S.GRADED_FAILED
        await self.state_machine.apply_system_transition(record, target, action=action)

    async def final_decision(
        self,
        record_id: uuid.UUID,
        actor: Actor,
        approve: bool,
        observations: Optional[str] = None,
        reason: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> ModalityRecord:
        """
        Direct committee decision for simplified modalities.

        Approval takes optional observations; rejection requires a reason.
        """
        action = ModalityAction.FINAL_APPROVE if approve else ModalityAction.FINAL_REJECT
        payload = TransitionPayload(observations=observations, reason=reason)
        return await self.state_machine.transition(
            record_id, actor, action, payload, expected_version=expected_version
        )
