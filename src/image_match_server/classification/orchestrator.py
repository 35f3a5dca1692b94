"""
Classification Orchestrator

Sequences one request through the pipeline:

    bytes -> Preprocessor -> FeatureExtractor -> FeatureStore.snapshot
          -> SimilarityMatcher -> ClassificationResult

Preprocessing, inference and scoring are CPU-bound and run in worker threads
so concurrent requests do not stall the event loop. Each request reads a
fresh corpus snapshot; nothing is cached between requests.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List

from ..core.errors import ImageMatchError
from ..db.feature_store import FeatureStore
from ..features.models import ClassificationResult, FeatureRecord
from ..matching.matcher import SimilarityMatcher
from ..vision.extractor import FeatureExtractor
from ..vision.preprocess import Preprocessor

logger = logging.getLogger("imgmatch.orchestrator")


class ClassificationOrchestrator:
    """
    Stateless coordinator shared by all requests.
    """

    def __init__(
        self,
        preprocessor: Preprocessor,
        extractor: FeatureExtractor,
        store: FeatureStore,
        matcher: SimilarityMatcher,
    ) -> None:
        self._preprocessor = preprocessor
        self._extractor = extractor
        self._store = store
        self._matcher = matcher

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed(self, image_bytes: bytes) -> List[float]:
        """
        Preprocess an image and extract its embedding vector.
        """
        batch = await asyncio.to_thread(self._preprocessor.preprocess, image_bytes)
        try:
            return await asyncio.to_thread(self._extractor.extract, batch)
        finally:
            del batch

    async def classify(self, image_bytes: bytes) -> ClassificationResult:
        """
        Classify one image against the current reference corpus.

        Raises
        ------
        ModelNotReadyError
            Before any work is done, if the model is not loaded.
        PreprocessError, ExtractionError, StoreUnavailableError
            If the corresponding stage fails. No partial result is returned.
        """
        try:
            self._extractor.ensure_ready()
            query = await self.embed(image_bytes)
            records = await self._store.snapshot()
            result = await asyncio.to_thread(self._matcher.match, query, records)
        except ImageMatchError as exc:
            logger.warning("Classification failed (%s): %s", exc.code, exc)
            raise

        if not records:
            logger.warning("No reference images found in the feature store")

        logger.info(
            "Classified image as %r (confidence=%.2f, corpus=%d)",
            result.product_name,
            result.confidence,
            len(records),
        )
        return result

    async def ingest(self, label: str, image_bytes: bytes) -> FeatureRecord:
        """
        Embed a labeled reference image and append it to the store.
        """
        try:
            self._extractor.ensure_ready()
            vector = await self.embed(image_bytes)
            return await self._store.append(label, vector)
        except ImageMatchError as exc:
            logger.warning("Ingestion of %r failed (%s): %s", label, exc.code, exc)
            raise
