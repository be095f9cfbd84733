"""
API v1 routes.
"""

from fastapi import APIRouter

from modality_engine.api.v1 import documents, examiners, groups, modalities, modality_types

router = APIRouter()

router.include_router(modality_types.router, prefix="/modality-types", tags=["Modality Types"])
router.include_router(modalities.router, prefix="/modalities", tags=["Modalities"])
router.include_router(documents.router, tags=["Documents"])
router.include_router(examiners.router, tags=["Examiners"])
router.include_router(groups.router, tags=["Groups"])
