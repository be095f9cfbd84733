"""
Workflow policy: the configurable parts of the engine.

Built from Settings once per process (or explicitly in tests). Holds the
reject-target table, examiner agreement strictness, the simplified-modality
allow-list, the fallback cancellation decider and the group size cap.
"""

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

from modality_engine.config import Settings, get_settings
from modality_engine.kernel.models.modality import ModalityStatus
from modality_engine.kernel.models.roles import UserRole

S = ModalityStatus

AGREEMENT_CATEGORY = "category"
AGREEMENT_STRICT = "strict"

RejectionKey = Tuple[ModalityStatus, str]

DEFAULT_REJECTION_TARGETS: Dict[RejectionKey, ModalityStatus] = {
    (S.UNDER_REVIEW_PROGRAM_HEAD, "REJECT"): S.CORRECTIONS_REJECTED_FINAL,
    (S.UNDER_REVIEW_PROGRAM_CURRICULUM_COMMITTEE, "REJECT"): S.MODALITY_CLOSED,
    (S.EXAMINERS_ASSIGNED, "REJECT"): S.GRADED_FAILED,
}


def parse_rejection_overrides(raw: Mapping[str, str]) -> Dict[RejectionKey, ModalityStatus]:
    """
    Parse {"STATE:ACTION": "TARGET"} overrides.

    Raises ValueError on unknown statuses or keys for states that have no
    reject action, so misconfiguration fails at startup.
    """
    parsed: Dict[RejectionKey, ModalityStatus] = {}
    for key, target in raw.items():
        state_name, sep, action = key.partition(":")
        if not sep:
            raise ValueError(f"Rejection policy key must be STATE:ACTION, got {key!r}")
        state = ModalityStatus(state_name.strip().upper())
        action = action.strip().upper()
        if (state, action) not in DEFAULT_REJECTION_TARGETS:
            raise ValueError(f"No rejectable action {action} in state {state.value}")
        parsed[(state, action)] = ModalityStatus(target.strip().upper())
    return parsed


@dataclass(frozen=True)
class WorkflowPolicy:
    rejection_targets: Dict[RejectionKey, ModalityStatus] = field(
        default_factory=lambda: dict(DEFAULT_REJECTION_TARGETS)
    )
    examiner_agreement: str = AGREEMENT_CATEGORY
    simplified_modality_names: Tuple[str, ...] = ()
    cancellation_fallback_role: UserRole = UserRole.PROGRAM_CURRICULUM_COMMITTEE
    max_group_members: int = 3

    def __post_init__(self) -> None:
        if self.examiner_agreement not in (AGREEMENT_CATEGORY, AGREEMENT_STRICT):
            raise ValueError(f"Unknown examiner agreement mode {self.examiner_agreement!r}")
        if self.max_group_members < 2:
            raise ValueError("A group needs room for at least two members")

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "WorkflowPolicy":
        settings = settings or get_settings()
        targets = dict(DEFAULT_REJECTION_TARGETS)
        targets.update(parse_rejection_overrides(settings.rejection_policy))
        return cls(
            rejection_targets=targets,
            examiner_agreement=settings.examiner_agreement.strip().lower(),
            simplified_modality_names=tuple(settings.simplified_modality_names),
            cancellation_fallback_role=UserRole(settings.cancellation_fallback_role.strip().upper()),
            max_group_members=settings.max_group_members,
        )

    def rejection_target(self, status: ModalityStatus, action: str) -> ModalityStatus:
        return self.rejection_targets[(status, action)]

    def is_simplified(self, modality_name: str) -> bool:
        """
        Case-insensitive substring match, in either direction, against the allow-list.

        "Seminario de Grado - Ingeniería" and "SEMINARIO" both match
        "SEMINARIO DE GRADO"; an empty name matches nothing.
        """
        name = (modality_name or "").strip().upper()
        if not name:
            return False
        for allowed in self.simplified_modality_names:
            candidate = allowed.strip().upper()
            if candidate and (candidate in name or name in candidate):
                return True
        return False
