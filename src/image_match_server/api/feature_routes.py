"""
Feature Routes

This module exposes endpoints for maintaining the reference corpus:
- Ingesting a labeled reference image
- Deleting all reference images for a label
- Querying corpus statistics

These endpoints are administrative; they are not part of the
classification request path.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile

from .models import FeatureStatsResponse, OperationResult
from .dependencies import get_feature_store, get_orchestrator
from ..classification.orchestrator import ClassificationOrchestrator
from ..db import FeatureStore

router = APIRouter(prefix="/features", tags=["features"])


@router.get(
    "/stats",
    response_model=FeatureStatsResponse,
    summary="Get feature store statistics",
)
async def get_feature_stats(
    store: Annotated[FeatureStore, Depends(get_feature_store)],
) -> FeatureStatsResponse:
    """
    Return current feature store statistics.
    """
    return FeatureStatsResponse(**await store.get_stats())


@router.post(
    "",
    response_model=OperationResult,
    summary="Add a labeled reference image",
)
async def add_feature(
    label: Annotated[str, Form(min_length=1, max_length=255)],
    image: Annotated[UploadFile, File(description="Reference image")],
    orchestrator: Annotated[ClassificationOrchestrator, Depends(get_orchestrator)],
) -> OperationResult:
    """
    Embed a reference image and store it under ``label``.

    Several images may share a label; each is matched individually.
    """
    image_bytes = await image.read()
    record = await orchestrator.ingest(label, image_bytes)

    return OperationResult(
        status="created",
        count=1,
        details={"label": record.label, "dimension": record.dimension},
    )


@router.delete(
    "/{label}",
    response_model=OperationResult,
    summary="Delete all reference images for a label",
)
async def delete_feature_label(
    label: str,
    store: Annotated[FeatureStore, Depends(get_feature_store)],
) -> OperationResult:
    """
    Delete every stored record for ``label``.
    """
    count = await store.delete_label(label)

    return OperationResult(
        status="deleted",
        count=count,
    )
