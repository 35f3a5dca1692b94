"""
Classification Routes

Accepts an uploaded image and returns the best-matching product label, or
"Not Determined" when no reference image is close enough.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, File, UploadFile, status

from .dependencies import get_orchestrator
from ..classification.orchestrator import ClassificationOrchestrator
from ..features.models import ClassificationResult

router = APIRouter(tags=["classification"])


@router.post(
    "/upload",
    response_model=ClassificationResult,
    summary="Classify an uploaded image",
    status_code=status.HTTP_200_OK,
)
async def upload(
    image: Annotated[UploadFile, File(description="Image to classify")],
    orchestrator: Annotated[ClassificationOrchestrator, Depends(get_orchestrator)],
) -> ClassificationResult:
    """
    Classify an uploaded image against the reference corpus.

    Pipeline failures are raised as typed errors and rendered by the
    application's exception handlers:

    - 400 ``preprocess_error``: the upload is not a decodable image
    - 503 ``model_not_ready``: the embedding model is not loaded
    - 500 ``extraction_error``: inference failed
    - 503 ``store_unavailable``: the feature store could not be read
    """
    image_bytes = await image.read()
    return await orchestrator.classify(image_bytes)
