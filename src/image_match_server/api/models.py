"""
API Models

Pydantic models used for request/response validation across the
classification, feature-management and health endpoints.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Any, Literal
from pydantic import BaseModel, Field, ConfigDict

from ..vision.model import ModelState


class OperationResult(BaseModel):
    """
    Standardized mutation operation result.
    Used for create/delete-style endpoints.
    """
    status: Literal["created", "deleted"]
    count: Optional[int] = Field(default=None, ge=0)
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="forbid")


class FeatureStatsResponse(BaseModel):
    """
    Feature store statistics.
    """
    total_records: int = Field(..., ge=0)
    total_labels: int = Field(..., ge=0)
    labels: Dict[str, int] = Field(default_factory=dict)
    dimensions: List[int] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"]
    model_state: ModelState
    model_error: Optional[str] = None

    model_config = ConfigDict(protected_namespaces=())
