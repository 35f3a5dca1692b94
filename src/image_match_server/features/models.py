"""
Feature Data Models

This module defines the canonical in-memory representation of reference
samples and classification outcomes.

Each FeatureRecord corresponds to ONE reference image and ONE embedding
vector. Several records may share a label.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict


NOT_DETERMINED = "Not Determined"


class FeatureRecord(BaseModel):
    """
    A single labeled reference embedding.

    This model is the authoritative schema for:
    - FeatureStore snapshots
    - Similarity scoring input
    - Ingestion results
    """

    label: str = Field(
        ...,
        min_length=1,
        description="Product label this reference image belongs to.",
    )

    vector: List[float] = Field(
        ...,
        min_length=1,
        description="Pooled embedding activations for the reference image.",
    )

    record_id: Optional[int] = Field(
        default=None,
        description="Store-assigned insertion sequence number.",
    )

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
    )

    @property
    def dimension(self) -> int:
        return len(self.vector)


@dataclass(frozen=True)
class RankedCandidate:
    """A record scored against one query. Lower distance is more similar."""

    record: FeatureRecord
    distance: float


class ClassificationResult(BaseModel):
    """
    Outcome of one classification request.

    `product_name` is either a stored label or NOT_DETERMINED.
    """

    product_name: str = Field(..., alias="productName")
    confidence: float = Field(..., ge=0.0, le=100.0)

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
    )

    @property
    def is_determined(self) -> bool:
        return self.product_name != NOT_DETERMINED
