"""
Transition table for the modality status machine.

Rules are keyed by (status, role, action). Most targets are fixed; the rest
are computed at resolution time: reject targets come from the workflow
policy, self-loops keep the status, and cancellation decisions either
restore the pre-cancellation status or pick the cancelled outcome.

resolve_transition() is pure: it needs no database and is what the state
machine, the API's "available actions" endpoint and the unit tests share.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from modality_engine.kernel.models.document import ReviewTier
from modality_engine.kernel.models.modality import ModalityStatus
from modality_engine.kernel.models.roles import UserRole
from modality_engine.orchestration.errors import (
    InvalidTransition,
    TerminalStateViolation,
    UnauthorizedTransition,
)
from modality_engine.orchestration.policy import WorkflowPolicy
from modality_engine.orchestration.status_catalog import (
    CANCELLABLE_STATUSES,
    EXAMINATION_STARTED_STATUSES,
    STATUS_CATALOG,
    is_terminal,
)

S = ModalityStatus
R = UserRole


class ModalityAction(str, Enum):
    SUBMIT_FOR_REVIEW = "SUBMIT_FOR_REVIEW"
    APPROVE = "APPROVE"
    REQUEST_CORRECTIONS = "REQUEST_CORRECTIONS"
    REJECT = "REJECT"
    SUBMIT_CORRECTIONS = "SUBMIT_CORRECTIONS"
    START_REVIEW = "START_REVIEW"
    ASSIGN_DIRECTOR = "ASSIGN_DIRECTOR"
    PROPOSE_DEFENSE = "PROPOSE_DEFENSE"
    SCHEDULE_DEFENSE = "SCHEDULE_DEFENSE"
    ASSIGN_EXAMINERS = "ASSIGN_EXAMINERS"
    COMPLETE_DEFENSE = "COMPLETE_DEFENSE"
    ASSIGN_TIEBREAKER = "ASSIGN_TIEBREAKER"
    FINAL_APPROVE = "FINAL_APPROVE"
    FINAL_REJECT = "FINAL_REJECT"
    CLOSE = "CLOSE"
    REQUEST_CANCELLATION = "REQUEST_CANCELLATION"
    APPROVE_CANCELLATION = "APPROVE_CANCELLATION"
    REJECT_CANCELLATION = "REJECT_CANCELLATION"


A = ModalityAction


class TargetKind(str, Enum):
    FIXED = "fixed"
    POLICY = "policy"  # looked up in WorkflowPolicy.rejection_targets
    STAY = "stay"  # self-loop carrying a side effect
    RESTORE = "restore"  # back to status_before_cancellation
    CANCEL_OUTCOME = "cancel_outcome"  # cancelled with or without reproval


class DocumentGate(str, Enum):
    UPLOADED = "uploaded"  # every mandatory document uploaded
    ACCEPTED = "accepted"  # every mandatory document accepted at the tier
    RESOLVED = "resolved"  # nothing still sent back to the student at the tier


@dataclass(frozen=True)
class Rule:
    target: Optional[ModalityStatus] = None
    kind: TargetKind = TargetKind.FIXED
    gate: Optional[DocumentGate] = None
    gate_tier: Optional[ReviewTier] = None
    # Tier the documents restart PENDING at after this transition
    reset_to: Optional[ReviewTier] = None
    reason_required: bool = False
    # None: any modality; True: simplified only; False: full panel only
    simplified: Optional[bool] = None


@dataclass(frozen=True)
class ResolvedTransition:
    from_status: ModalityStatus
    to_status: ModalityStatus
    role: UserRole
    action: ModalityAction
    rule: Rule


TransitionKey = Tuple[ModalityStatus, UserRole, ModalityAction]

_REJECT = Rule(kind=TargetKind.POLICY, reason_required=True)

TRANSITIONS: Dict[TransitionKey, Rule] = {
    # Program head review
    (S.MODALITY_SELECTED, R.STUDENT, A.SUBMIT_FOR_REVIEW): Rule(
        S.UNDER_REVIEW_PROGRAM_HEAD, gate=DocumentGate.UPLOADED, gate_tier=ReviewTier.PROGRAM_HEAD,
    ),
    (S.UNDER_REVIEW_PROGRAM_HEAD, R.PROGRAM_HEAD, A.APPROVE): Rule(
        S.READY_FOR_PROGRAM_CURRICULUM_COMMITTEE,
        gate=DocumentGate.ACCEPTED,
        gate_tier=ReviewTier.PROGRAM_HEAD,
        reset_to=ReviewTier.PROGRAM_CURRICULUM_COMMITTEE,
    ),
    (S.UNDER_REVIEW_PROGRAM_HEAD, R.PROGRAM_HEAD, A.REQUEST_CORRECTIONS): Rule(
        S.CORRECTIONS_REQUESTED_PROGRAM_HEAD, reason_required=True,
    ),
    (S.UNDER_REVIEW_PROGRAM_HEAD, R.PROGRAM_HEAD, A.REJECT): _REJECT,
    (S.CORRECTIONS_REQUESTED_PROGRAM_HEAD, R.STUDENT, A.SUBMIT_CORRECTIONS): Rule(
        S.UNDER_REVIEW_PROGRAM_HEAD, gate=DocumentGate.RESOLVED, gate_tier=ReviewTier.PROGRAM_HEAD,
    ),

    # Curriculum committee review
    (S.READY_FOR_PROGRAM_CURRICULUM_COMMITTEE, R.PROGRAM_CURRICULUM_COMMITTEE, A.START_REVIEW): Rule(
        S.UNDER_REVIEW_PROGRAM_CURRICULUM_COMMITTEE,
    ),
    (S.UNDER_REVIEW_PROGRAM_CURRICULUM_COMMITTEE, R.PROGRAM_CURRICULUM_COMMITTEE, A.APPROVE): Rule(
        S.PROPOSAL_APPROVED,
        gate=DocumentGate.ACCEPTED,
        gate_tier=ReviewTier.PROGRAM_CURRICULUM_COMMITTEE,
        reset_to=ReviewTier.EXAMINER,
    ),
    (S.UNDER_REVIEW_PROGRAM_CURRICULUM_COMMITTEE, R.PROGRAM_CURRICULUM_COMMITTEE, A.REQUEST_CORRECTIONS): Rule(
        S.CORRECTIONS_REQUESTED_PROGRAM_CURRICULUM_COMMITTEE, reason_required=True,
    ),
    (S.UNDER_REVIEW_PROGRAM_CURRICULUM_COMMITTEE, R.PROGRAM_CURRICULUM_COMMITTEE, A.REJECT): _REJECT,
    (S.CORRECTIONS_REQUESTED_PROGRAM_CURRICULUM_COMMITTEE, R.STUDENT, A.SUBMIT_CORRECTIONS): Rule(
        S.UNDER_REVIEW_PROGRAM_CURRICULUM_COMMITTEE,
        gate=DocumentGate.RESOLVED,
        gate_tier=ReviewTier.PROGRAM_CURRICULUM_COMMITTEE,
    ),

    # Simplified modalities: direct committee decision
    (S.PROPOSAL_APPROVED, R.PROGRAM_CURRICULUM_COMMITTEE, A.FINAL_APPROVE): Rule(
        S.GRADED_APPROVED, simplified=True,
    ),
    (S.PROPOSAL_APPROVED, R.PROGRAM_CURRICULUM_COMMITTEE, A.FINAL_REJECT): Rule(
        S.GRADED_FAILED, reason_required=True, simplified=True,
    ),

    # Director and defense
    (S.PROPOSAL_APPROVED, R.PROJECT_DIRECTOR, A.PROPOSE_DEFENSE): Rule(
        S.DEFENSE_REQUESTED_BY_PROJECT_DIRECTOR, simplified=False,
    ),
    (S.DEFENSE_SCHEDULED, R.PROGRAM_CURRICULUM_COMMITTEE, A.ASSIGN_EXAMINERS): Rule(
        S.EXAMINERS_ASSIGNED, simplified=False,
    ),

    # Examiner document review
    (S.EXAMINERS_ASSIGNED, R.EXAMINER, A.APPROVE): Rule(
        S.READY_FOR_DEFENSE, gate=DocumentGate.ACCEPTED, gate_tier=ReviewTier.EXAMINER,
    ),
    (S.EXAMINERS_ASSIGNED, R.EXAMINER, A.REQUEST_CORRECTIONS): Rule(
        S.CORRECTIONS_REQUESTED_EXAMINERS, reason_required=True,
    ),
    (S.EXAMINERS_ASSIGNED, R.EXAMINER, A.REJECT): _REJECT,
    (S.CORRECTIONS_REQUESTED_EXAMINERS, R.STUDENT, A.SUBMIT_CORRECTIONS): Rule(
        S.EXAMINERS_ASSIGNED, gate=DocumentGate.RESOLVED, gate_tier=ReviewTier.EXAMINER,
    ),
    (S.READY_FOR_DEFENSE, R.PROGRAM_CURRICULUM_COMMITTEE, A.COMPLETE_DEFENSE): Rule(
        S.DEFENSE_COMPLETED,
    ),

    # Evaluation
    (S.DISAGREEMENT_REQUIRES_TIEBREAKER, R.PROGRAM_CURRICULUM_COMMITTEE, A.ASSIGN_TIEBREAKER): Rule(
        S.UNDER_EVALUATION_TIEBREAKER,
    ),
    (S.GRADED_APPROVED, R.PROGRAM_CURRICULUM_COMMITTEE, A.CLOSE): Rule(S.MODALITY_CLOSED),
    (S.GRADED_FAILED, R.PROGRAM_CURRICULUM_COMMITTEE, A.CLOSE): Rule(S.MODALITY_CLOSED),

    # Cancellation decided by the assigned director, then by the committee
    (S.CANCELLATION_REQUESTED, R.PROJECT_DIRECTOR, A.APPROVE_CANCELLATION): Rule(
        S.CANCELLATION_APPROVED_BY_PROJECT_DIRECTOR,
    ),
    (S.CANCELLATION_REQUESTED, R.PROJECT_DIRECTOR, A.REJECT_CANCELLATION): Rule(
        kind=TargetKind.RESTORE, reason_required=True,
    ),
    (S.CANCELLATION_APPROVED_BY_PROJECT_DIRECTOR, R.PROGRAM_CURRICULUM_COMMITTEE, A.APPROVE_CANCELLATION): Rule(
        kind=TargetKind.CANCEL_OUTCOME,
    ),
    (S.CANCELLATION_APPROVED_BY_PROJECT_DIRECTOR, R.PROGRAM_CURRICULUM_COMMITTEE, A.REJECT_CANCELLATION): Rule(
        kind=TargetKind.RESTORE, reason_required=True,
    ),
}

# Director assignment and defense scheduling stay open until examiners are seated
for _status in (S.PROPOSAL_APPROVED, S.DEFENSE_REQUESTED_BY_PROJECT_DIRECTOR, S.DEFENSE_SCHEDULED):
    TRANSITIONS[(_status, R.PROGRAM_CURRICULUM_COMMITTEE, A.ASSIGN_DIRECTOR)] = Rule(
        kind=TargetKind.STAY, simplified=False,
    )
    TRANSITIONS[(_status, R.PROGRAM_CURRICULUM_COMMITTEE, A.SCHEDULE_DEFENSE)] = Rule(
        S.DEFENSE_SCHEDULED, simplified=False,
    )

for _status in CANCELLABLE_STATUSES:
    TRANSITIONS[(_status, R.STUDENT, A.REQUEST_CANCELLATION)] = Rule(S.CANCELLATION_REQUESTED)

# The committee may close an ongoing modality at any stage, giving a reason
for _status in STATUS_CATALOG:
    if is_terminal(_status) or _status == S.DRAFT:
        continue
    TRANSITIONS.setdefault(
        (_status, R.PROGRAM_CURRICULUM_COMMITTEE, A.CLOSE),
        Rule(S.MODALITY_CLOSED, reason_required=True),
    )

CANCELLATION_DECISIONS = frozenset({A.APPROVE_CANCELLATION, A.REJECT_CANCELLATION})


def _fallback_cancellation_rules(policy: WorkflowPolicy) -> Dict[Tuple[UserRole, ModalityAction], Rule]:
    role = policy.cancellation_fallback_role
    return {
        (role, A.APPROVE_CANCELLATION): Rule(kind=TargetKind.CANCEL_OUTCOME),
        (role, A.REJECT_CANCELLATION): Rule(kind=TargetKind.RESTORE, reason_required=True),
    }


def rules_for(
    status: ModalityStatus,
    policy: WorkflowPolicy,
    *,
    director_assigned: bool = False,
) -> Dict[Tuple[UserRole, ModalityAction], Rule]:
    """All (role, action) rules available in a status."""
    rules = {
        (role, action): rule
        for (state, role, action), rule in TRANSITIONS.items()
        if state == status
    }
    if status == S.CANCELLATION_REQUESTED and not director_assigned:
        rules = {key: rule for key, rule in rules.items() if key[1] not in CANCELLATION_DECISIONS}
        rules.update(_fallback_cancellation_rules(policy))
    return rules


def cancellation_outcome(status_before_cancellation: Optional[ModalityStatus]) -> ModalityStatus:
    """Cancelled with a reproval mark only once the examination had begun."""
    if status_before_cancellation in EXAMINATION_STARTED_STATUSES:
        return S.MODALITY_CANCELLED
    return S.CANCELLED_WITHOUT_REPROVAL


def resolve_transition(
    status: ModalityStatus,
    role: UserRole,
    action: ModalityAction,
    policy: WorkflowPolicy,
    *,
    simplified: bool = False,
    director_assigned: bool = False,
    status_before_cancellation: Optional[ModalityStatus] = None,
) -> ResolvedTransition:
    """
    Look up and resolve the rule for (status, role, action).

    Raises:
        TerminalStateViolation: status is terminal
        UnauthorizedTransition: the action exists in this status for another role
        InvalidTransition: the action is not defined for this status or modality kind
    """
    if is_terminal(status):
        raise TerminalStateViolation(
            f"Modality is {status.value}; no further transitions are allowed",
            status=status.value,
        )

    available = rules_for(status, policy, director_assigned=director_assigned)
    rule = available.get((role, action))
    if rule is None:
        gatekeepers = sorted({r.value for (r, a) in available if a == action})
        if gatekeepers:
            raise UnauthorizedTransition(
                f"{role.value} cannot {action.value} while modality is {status.value}",
                status=status.value,
                allowed_roles=gatekeepers,
            )
        raise InvalidTransition(
            f"{action.value} is not defined for status {status.value}",
            status=status.value,
        )

    if rule.simplified is not None and rule.simplified != simplified:
        kind = "simplified" if simplified else "full-panel"
        raise InvalidTransition(
            f"{action.value} is not available for {kind} modalities",
            status=status.value,
        )

    if rule.kind == TargetKind.FIXED:
        target = rule.target
    elif rule.kind == TargetKind.POLICY:
        target = policy.rejection_target(status, action.value)
    elif rule.kind == TargetKind.STAY:
        target = status
    elif rule.kind == TargetKind.RESTORE:
        if status_before_cancellation is None:
            raise InvalidTransition("No status recorded before the cancellation request")
        target = status_before_cancellation
    else:
        target = cancellation_outcome(status_before_cancellation)

    return ResolvedTransition(
        from_status=status,
        to_status=target,
        role=role,
        action=action,
        rule=rule,
    )


def available_actions(
    status: ModalityStatus,
    role: UserRole,
    policy: WorkflowPolicy,
    *,
    simplified: bool = False,
    director_assigned: bool = False,
) -> List[ModalityAction]:
    """Actions a role may attempt in a status (identity and document gates not checked)."""
    if is_terminal(status):
        return []
    return sorted(
        (
            action
            for (r, action), rule in rules_for(status, policy, director_assigned=director_assigned).items()
            if r == role and (rule.simplified is None or rule.simplified == simplified)
        ),
        key=lambda a: a.value,
    )


# Moves driven by evaluation aggregation rather than by an actor's action
SYSTEM_TRANSITIONS: Dict[ModalityStatus, FrozenSet[ModalityStatus]] = {
    S.DEFENSE_COMPLETED: frozenset({S.UNDER_EVALUATION_PRIMARY_EXAMINERS}),
    S.UNDER_EVALUATION_PRIMARY_EXAMINERS: frozenset({
        S.GRADED_APPROVED,
        S.GRADED_FAILED,
        S.DISAGREEMENT_REQUIRES_TIEBREAKER,
    }),
    S.DISAGREEMENT_REQUIRES_TIEBREAKER: frozenset({S.GRADED_APPROVED, S.GRADED_FAILED}),
    S.UNDER_EVALUATION_TIEBREAKER: frozenset({S.GRADED_APPROVED, S.GRADED_FAILED}),
}
