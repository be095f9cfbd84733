"""
Workflow error taxonomy.

Every rejection the engine can produce is a WorkflowError subclass carrying a
stable machine-readable `code`. All of them are recoverable by the caller
(re-fetch and retry, or surface to the human actor). StorageUnavailable is
kept apart so infrastructure failures are never mistaken for workflow rules.
"""

import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm.exc import StaleDataError


class WorkflowError(Exception):
    """Base class for all workflow rejections."""

    code = "workflow_error"

    def __init__(self, detail: str, **context: Any):
        super().__init__(detail)
        self.detail = detail
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.detail, "code": self.code}
        for key, value in self.context.items():
            if isinstance(value, uuid.UUID):
                value = str(value)
            elif isinstance(value, (list, tuple)):
                value = [str(v) if isinstance(v, uuid.UUID) else v for v in value]
            body[key] = value
        return body


class RecordNotFound(WorkflowError):
    code = "not_found"


class UnauthorizedTransition(WorkflowError):
    """Actor role (or identity) is not the gatekeeper for the current state."""

    code = "unauthorized_transition"


class InvalidTransition(WorkflowError):
    """The action is not defined for the current state."""

    code = "invalid_transition"


class TerminalStateViolation(WorkflowError):
    code = "terminal_state"


class IncompleteDocuments(WorkflowError):
    """Forward approval blocked by unresolved mandatory documents."""

    code = "incomplete_documents"

    def __init__(self, detail: str, missing_document_ids: Sequence[uuid.UUID]):
        super().__init__(detail, missing_document_ids=list(missing_document_ids))
        self.missing_document_ids: List[uuid.UUID] = list(missing_document_ids)


class InconsistentGradeDecision(WorkflowError):
    code = "inconsistent_grade_decision"


class DuplicateEvaluation(WorkflowError):
    code = "duplicate_evaluation"


class InvitationCapacityExceeded(WorkflowError):
    code = "invitation_capacity_exceeded"


class InvitationConflict(WorkflowError):
    """Candidate already has a pending invitation or an active modality."""

    code = "invitation_conflict"


class StaleState(WorkflowError):
    """The record changed since the caller read it; re-fetch before retrying."""

    code = "stale_state"


class DuplicateExaminerAssignment(WorkflowError):
    code = "duplicate_examiner_assignment"


class DocumentLocked(WorkflowError):
    """Document already accepted at its current tier."""

    code = "document_locked"


class MissingMandatoryReason(WorkflowError):
    code = "missing_mandatory_reason"


class InvalidPayload(WorkflowError):
    code = "invalid_payload"


class StorageUnavailable(WorkflowError):
    code = "storage_unavailable"


@contextmanager
def storage_guard(record_id: Optional[uuid.UUID] = None) -> Iterator[None]:
    """
    Translate persistence failures raised inside the block.

    A version-check miss becomes StaleState; lost connectivity becomes
    StorageUnavailable. Anything else propagates unchanged.
    """
    try:
        yield
    except StaleDataError as exc:
        raise StaleState(
            "Modality record was modified concurrently; re-fetch and retry",
            record_id=record_id,
        ) from exc
    except (OperationalError, InterfaceError) as exc:
        raise StorageUnavailable("Workflow storage is unavailable") from exc
