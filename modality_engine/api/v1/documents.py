"""Document submission and review endpoints."""

import uuid
from typing import List

from fastapi import APIRouter, status

from modality_engine.api.deps import CurrentActor, DbSession
from modality_engine.orchestration.documents import DocumentReviewService
from modality_engine.schemas.document import (
    DocumentResponse,
    DocumentResubmit,
    DocumentReview,
    DocumentUpload,
)

router = APIRouter()


@router.get("/modalities/{record_id}/documents", response_model=List[DocumentResponse])
async def list_documents(record_id: uuid.UUID, actor: CurrentActor, db: DbSession):
    """List document submissions of a modality record."""
    submissions = await DocumentReviewService(db).list_for_record(record_id)
    return [DocumentResponse.model_validate(s) for s in submissions]


@router.post(
    "/modalities/{record_id}/documents",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_document(record_id: uuid.UUID, data: DocumentUpload, actor: CurrentActor, db: DbSession):
    submission = await DocumentReviewService(db).upload(
        record_id, actor, data.required_document_id, data.storage_ref
    )
    return DocumentResponse.model_validate(submission)


@router.post("/documents/{submission_id}/resubmit", response_model=DocumentResponse)
async def resubmit_document(submission_id: uuid.UUID, data: DocumentResubmit, actor: CurrentActor, db: DbSession):
    """Resubmit a document the reviewer sent back."""
    submission = await DocumentReviewService(db).resubmit(submission_id, actor, data.storage_ref)
    return DocumentResponse.model_validate(submission)


@router.post("/documents/{submission_id}/review", response_model=DocumentResponse)
async def review_document(submission_id: uuid.UUID, data: DocumentReview, actor: CurrentActor, db: DbSession):
    submission = await DocumentReviewService(db).review(
        submission_id,
        actor,
        data.decision,
        notes=data.notes,
        expected_version=data.expected_version,
    )
    return DocumentResponse.model_validate(submission)
