from typing import Annotated

from fastapi import APIRouter, Depends

from .dependencies import get_model_holder
from .models import HealthResponse
from ..vision.model import ModelHolder

router = APIRouter(tags=["health"])

@router.get("/health", response_model=HealthResponse)
def health(holder: Annotated[ModelHolder, Depends(get_model_holder)]) -> HealthResponse:
    return HealthResponse(
        status="ok" if holder.is_ready else "degraded",
        model_state=holder.state,
        model_error=holder.error,
    )
