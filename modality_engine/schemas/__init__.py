"""
Pydantic schemas for API request/response validation.
"""

from modality_engine.schemas.common import ErrorResponse, EventResponse, HealthResponse
from modality_engine.schemas.document import (
    DocumentResponse,
    DocumentResubmit,
    DocumentReview,
    DocumentUpload,
)
from modality_engine.schemas.examiner import (
    AssignmentResponse,
    EvaluationResponse,
    EvaluationSubmit,
)
from modality_engine.schemas.group import InvitationCreate, InvitationResponse
from modality_engine.schemas.modality import (
    AvailableActionsResponse,
    FinalDecisionRequest,
    ModalityResponse,
    ModalityStart,
    StatusCatalogEntry,
    TransitionRequest,
)
from modality_engine.schemas.modality_type import (
    ModalityTypeCreate,
    ModalityTypeResponse,
    RequiredDocumentCreate,
    RequiredDocumentResponse,
)

__all__ = [
    "AssignmentResponse",
    "AvailableActionsResponse",
    "DocumentResponse",
    "DocumentResubmit",
    "DocumentReview",
    "DocumentUpload",
    "ErrorResponse",
    "EvaluationResponse",
    "EvaluationSubmit",
    "EventResponse",
    "FinalDecisionRequest",
    "HealthResponse",
    "InvitationCreate",
    "InvitationResponse",
    "ModalityResponse",
    "ModalityStart",
    "ModalityTypeCreate",
    "ModalityTypeResponse",
    "RequiredDocumentCreate",
    "RequiredDocumentResponse",
    "StatusCatalogEntry",
    "TransitionRequest",
]
