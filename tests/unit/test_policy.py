"""Unit tests for WorkflowPolicy loading and simplified-modality matching."""

import pytest

from modality_engine.config import Settings
from modality_engine.kernel.models.modality import ModalityStatus
from modality_engine.kernel.models.roles import UserRole
from modality_engine.orchestration.policy import (
    DEFAULT_REJECTION_TARGETS,
    WorkflowPolicy,
    parse_rejection_overrides,
)

S = ModalityStatus


class TestFromSettings:
    def test_defaults(self):
        policy = WorkflowPolicy.from_settings(Settings())
        assert policy.rejection_targets == DEFAULT_REJECTION_TARGETS
        assert policy.examiner_agreement == "category"
        assert policy.cancellation_fallback_role == UserRole.PROGRAM_CURRICULUM_COMMITTEE
        assert policy.max_group_members == 3

    def test_overrides(self):
        settings = Settings(
            rejection_policy={"under_review_program_head:reject": "MODALITY_CLOSED"},
            examiner_agreement="STRICT",
            cancellation_fallback_role="program_head",
        )
        policy = WorkflowPolicy.from_settings(settings)
        assert policy.rejection_target(S.UNDER_REVIEW_PROGRAM_HEAD, "REJECT") == S.MODALITY_CLOSED
        assert policy.examiner_agreement == "strict"
        assert policy.cancellation_fallback_role == UserRole.PROGRAM_HEAD

    def test_unknown_agreement_mode_fails(self):
        with pytest.raises(ValueError):
            WorkflowPolicy.from_settings(Settings(examiner_agreement="majority"))


class TestRejectionOverrides:
    def test_key_without_action(self):
        with pytest.raises(ValueError):
            parse_rejection_overrides({"UNDER_REVIEW_PROGRAM_HEAD": "MODALITY_CLOSED"})

    def test_state_without_reject_action(self):
        with pytest.raises(ValueError):
            parse_rejection_overrides({"MODALITY_SELECTED:REJECT": "MODALITY_CLOSED"})

    def test_unknown_target(self):
        with pytest.raises(ValueError):
            parse_rejection_overrides({"UNDER_REVIEW_PROGRAM_HEAD:REJECT": "NOWHERE"})


class TestSimplified:
    @pytest.fixture
    def policy(self):
        return WorkflowPolicy.from_settings(Settings())

    @pytest.mark.parametrize(
        "name",
        [
            "Seminario de Grado",
            "  plan complementario posgrado ",
            "SEMINARIO DE GRADO - COHORTE 2026",
            "Producción Académica de Alto Nivel",
            "SEMINARIO",
        ],
    )
    def test_matches(self, policy, name):
        assert policy.is_simplified(name)

    @pytest.mark.parametrize("name", ["Trabajo de Grado", "Pasantía", ""])
    def test_does_not_match(self, policy, name):
        assert not policy.is_simplified(name)
