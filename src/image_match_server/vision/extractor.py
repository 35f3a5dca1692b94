"""
Feature Extraction

Runs the frozen embedding network over a preprocessed batch and materializes
the pooled activations as a plain list of floats.
"""

from __future__ import annotations

import logging
from typing import List

import numpy as np

from ..core.errors import ExtractionError
from .model import ModelHolder

logger = logging.getLogger("imgmatch.extractor")


class FeatureExtractor:
    """
    Deterministic mapping from a ``[1, H, W, 3]`` batch to an embedding vector.

    Holds no per-request state; safe to share across concurrent requests.
    """

    def __init__(self, holder: ModelHolder) -> None:
        self._holder = holder

    def ensure_ready(self) -> None:
        """Raise ModelNotReadyError unless the model is loaded."""
        self._holder.get()

    def extract(self, batch: np.ndarray) -> List[float]:
        """
        Compute the embedding for a single preprocessed image.

        Raises
        ------
        ModelNotReadyError
            If the model is not loaded.
        ExtractionError
            If inference fails or produces an unusable output.
        """
        model = self._holder.get()

        output = None
        pooled = None
        try:
            output = model(batch, training=False)
            pooled = np.asarray(output, dtype=np.float64)

            if pooled.ndim != 2 or pooled.shape[0] != 1 or pooled.shape[1] == 0:
                raise ExtractionError(
                    f"Unexpected feature output shape {pooled.shape}"
                )

            vector = pooled[0]
            if not np.all(np.isfinite(vector)):
                raise ExtractionError("Feature output contains non-finite values")

            return vector.tolist()

        except ExtractionError:
            raise
        except Exception as exc:
            logger.error("Error extracting features: %s", exc)
            raise ExtractionError(
                f"Failed to extract features: {type(exc).__name__}"
            ) from exc
        finally:
            del output, pooled
