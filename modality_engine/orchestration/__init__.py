"""
Orchestration Layer

Workflow rules on top of the kernel:
- Status machine with role-gated transitions and cancellation branch
- Document review per tier
- Examiner panel, evaluation aggregation and tiebreak
- Group formation invitations

All services take an AsyncSession and an Actor; callers own the transaction.
"""

from modality_engine.orchestration.context import Actor
from modality_engine.orchestration.documents import DocumentDecision, DocumentReviewService
from modality_engine.orchestration.errors import WorkflowError
from modality_engine.orchestration.examiners import ExaminerService
from modality_engine.orchestration.groups import GroupFormationService
from modality_engine.orchestration.payloads import TransitionPayload
from modality_engine.orchestration.policy import WorkflowPolicy
from modality_engine.orchestration.state_machine import ModalityStateMachine
from modality_engine.orchestration.transitions import ModalityAction

__all__ = [
    "Actor",
    "DocumentDecision",
    "DocumentReviewService",
    "ExaminerService",
    "GroupFormationService",
    "ModalityAction",
    "ModalityStateMachine",
    "TransitionPayload",
    "WorkflowError",
    "WorkflowPolicy",
]
