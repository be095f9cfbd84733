"""
Canonical status catalog.

One table of metadata per ModalityStatus: stage order, the document review
tier active in that status, terminal flag, display category and a plain
label. The transition resolver, document gating and the API all read this
table instead of keeping their own status lists.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional

from modality_engine.kernel.models.document import ReviewTier
from modality_engine.kernel.models.modality import ModalityStatus

S = ModalityStatus


@dataclass(frozen=True)
class StatusInfo:
    status: ModalityStatus
    order: int
    category: str
    label: str
    tier: Optional[ReviewTier] = None
    terminal: bool = False


STATUS_CATALOG: Dict[ModalityStatus, StatusInfo] = {
    info.status: info
    for info in (
        StatusInfo(S.DRAFT, 0, "draft", "Group being formed"),
        StatusInfo(S.MODALITY_SELECTED, 10, "draft", "Modality selected"),
        StatusInfo(S.UNDER_REVIEW_PROGRAM_HEAD, 20, "in_review",
                   "Under review by program head", tier=ReviewTier.PROGRAM_HEAD),
        StatusInfo(S.CORRECTIONS_REQUESTED_PROGRAM_HEAD, 21, "corrections",
                   "Corrections requested by program head", tier=ReviewTier.PROGRAM_HEAD),
        StatusInfo(S.CORRECTIONS_REJECTED_FINAL, 22, "closed",
                   "Rejected by program head", terminal=True),
        StatusInfo(S.READY_FOR_PROGRAM_CURRICULUM_COMMITTEE, 30, "in_review",
                   "Ready for curriculum committee"),
        StatusInfo(S.UNDER_REVIEW_PROGRAM_CURRICULUM_COMMITTEE, 31, "in_review",
                   "Under review by curriculum committee",
                   tier=ReviewTier.PROGRAM_CURRICULUM_COMMITTEE),
        StatusInfo(S.CORRECTIONS_REQUESTED_PROGRAM_CURRICULUM_COMMITTEE, 32, "corrections",
                   "Corrections requested by curriculum committee",
                   tier=ReviewTier.PROGRAM_CURRICULUM_COMMITTEE),
        StatusInfo(S.PROPOSAL_APPROVED, 40, "approved", "Proposal approved"),
        StatusInfo(S.DEFENSE_REQUESTED_BY_PROJECT_DIRECTOR, 50, "scheduled",
                   "Defense requested by project director"),
        StatusInfo(S.DEFENSE_SCHEDULED, 51, "scheduled", "Defense scheduled"),
        StatusInfo(S.EXAMINERS_ASSIGNED, 60, "in_review",
                   "Under review by examiners", tier=ReviewTier.EXAMINER),
        StatusInfo(S.CORRECTIONS_REQUESTED_EXAMINERS, 61, "corrections",
                   "Corrections requested by examiners", tier=ReviewTier.EXAMINER),
        StatusInfo(S.READY_FOR_DEFENSE, 62, "scheduled", "Ready for defense"),
        StatusInfo(S.DEFENSE_COMPLETED, 70, "evaluation", "Defense completed"),
        StatusInfo(S.UNDER_EVALUATION_PRIMARY_EXAMINERS, 71, "evaluation",
                   "Under evaluation by primary examiners"),
        StatusInfo(S.DISAGREEMENT_REQUIRES_TIEBREAKER, 72, "evaluation",
                   "Examiners disagree; tiebreaker required"),
        StatusInfo(S.UNDER_EVALUATION_TIEBREAKER, 73, "evaluation",
                   "Under evaluation by tiebreaker"),
        StatusInfo(S.GRADED_APPROVED, 80, "graded", "Approved"),
        StatusInfo(S.GRADED_FAILED, 81, "graded", "Failed"),
        StatusInfo(S.MODALITY_CLOSED, 90, "closed", "Closed", terminal=True),
        StatusInfo(S.CANCELLATION_REQUESTED, 100, "cancellation", "Cancellation requested"),
        StatusInfo(S.CANCELLATION_APPROVED_BY_PROJECT_DIRECTOR, 101, "cancellation",
                   "Cancellation approved by project director"),
        StatusInfo(S.MODALITY_CANCELLED, 110, "cancelled", "Cancelled", terminal=True),
        StatusInfo(S.CANCELLED_WITHOUT_REPROVAL, 111, "cancelled",
                   "Cancelled without reproval", terminal=True),
    )
}

TERMINAL_STATUSES: FrozenSet[ModalityStatus] = frozenset(
    s for s, info in STATUS_CATALOG.items() if info.terminal
)

# Active pre-defense statuses a student may cancel from
CANCELLABLE_STATUSES: FrozenSet[ModalityStatus] = frozenset(
    s for s, info in STATUS_CATALOG.items()
    if not info.terminal
    and STATUS_CATALOG[S.MODALITY_SELECTED].order <= info.order <= STATUS_CATALOG[S.READY_FOR_DEFENSE].order
)

# Cancelling from these means examination had begun and carries a reproval mark
EXAMINATION_STARTED_STATUSES: FrozenSet[ModalityStatus] = frozenset({
    S.EXAMINERS_ASSIGNED,
    S.CORRECTIONS_REQUESTED_EXAMINERS,
    S.READY_FOR_DEFENSE,
})


def is_terminal(status: ModalityStatus) -> bool:
    return status in TERMINAL_STATUSES


def tier_for(status: ModalityStatus) -> Optional[ReviewTier]:
    return STATUS_CATALOG[status].tier


def catalog_rows() -> List[StatusInfo]:
    return sorted(STATUS_CATALOG.values(), key=lambda info: info.order)
