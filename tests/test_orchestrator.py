"""
Classification Orchestrator Tests

End-to-end pipeline runs with a stand-in feature model and a real SQLite
feature store.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import insert

from image_match_server.classification.orchestrator import ClassificationOrchestrator
from image_match_server.core.errors import (
    ExtractionError,
    ModelNotReadyError,
    PreprocessError,
    StoreUnavailableError,
)
from image_match_server.db import FeatureRow, FeatureStore
from image_match_server.features.models import NOT_DETERMINED
from image_match_server.matching.matcher import SimilarityMatcher
from image_match_server.vision.extractor import FeatureExtractor
from image_match_server.vision.model import ModelHolder
from image_match_server.vision.preprocess import Preprocessor

from conftest import make_image_bytes


def build(holder, store):
    return ClassificationOrchestrator(
        preprocessor=Preprocessor(32, 32),
        extractor=FeatureExtractor(holder),
        store=store,
        matcher=SimilarityMatcher(),
    )


@pytest.mark.asyncio
async def test_ingest_then_classify_exact_match(ready_holder, feature_store, red_png):
    orchestrator = build(ready_holder, feature_store)

    record = await orchestrator.ingest("Red Widget", red_png)
    assert record.label == "Red Widget"
    assert record.dimension == 3

    result = await orchestrator.classify(red_png)
    assert result.product_name == "Red Widget"
    assert result.confidence == pytest.approx(100.0)


@pytest.mark.asyncio
async def test_empty_corpus_is_not_an_error(ready_holder, feature_store, red_png):
    result = await build(ready_holder, feature_store).classify(red_png)
    assert result.product_name == NOT_DETERMINED
    assert result.confidence == 0.0


@pytest.mark.asyncio
async def test_unrelated_image_not_determined(ready_holder, feature_store, red_png, green_png):
    orchestrator = build(ready_holder, feature_store)
    await orchestrator.ingest("Red Widget", red_png)

    result = await orchestrator.classify(green_png)
    assert result.product_name == NOT_DETERMINED
    assert result.confidence == 0.0


@pytest.mark.asyncio
async def test_nearest_label_wins(ready_holder, feature_store):
    orchestrator = build(ready_holder, feature_store)
    await orchestrator.ingest("Red", make_image_bytes((255, 0, 0)))
    await orchestrator.ingest("Blue", make_image_bytes((0, 0, 255)))

    result = await orchestrator.classify(make_image_bytes((250, 10, 0)))
    assert result.product_name == "Red"
    assert result.confidence > 99.0


@pytest.mark.asyncio
async def test_corpus_updates_visible_to_next_request(ready_holder, feature_store, red_png):
    orchestrator = build(ready_holder, feature_store)
    assert (await orchestrator.classify(red_png)).product_name == NOT_DETERMINED

    await feature_store.append("Red", [1.0, 0.0, 0.0])
    assert (await orchestrator.classify(red_png)).product_name == "Red"


@pytest.mark.asyncio
async def test_mismatched_corpus_behaves_like_empty(ready_holder, feature_store, red_png):
    await feature_store.append("Legacy", [1.0] * 1280)

    result = await build(ready_holder, feature_store).classify(red_png)
    assert result.product_name == NOT_DETERMINED
    assert result.confidence == 0.0


@pytest.mark.asyncio
async def test_concurrent_requests(ready_holder, feature_store):
    orchestrator = build(ready_holder, feature_store)
    await orchestrator.ingest("Red", make_image_bytes((255, 0, 0)))
    await orchestrator.ingest("Green", make_image_bytes((0, 255, 0)))

    images = [make_image_bytes((255, 0, 0)), make_image_bytes((0, 255, 0))] * 5
    results = await asyncio.gather(*(orchestrator.classify(img) for img in images))

    assert [r.product_name for r in results] == ["Red", "Green"] * 5


@pytest.mark.asyncio
async def test_malformed_stored_row_does_not_break_classification(
    ready_holder, feature_store, red_png
):
    await feature_store.append("Red", [1.0, 0.0, 0.0])
    async with feature_store._session_factory() as session:
        async with session.begin():
            await session.execute(
                insert(FeatureRow), [{"label": "broken", "dimension": 0, "vector": []}]
            )

    result = await build(ready_holder, feature_store).classify(red_png)
    assert result.product_name == "Red"


# ---------------------------------------------------------------------
# Failure Kinds
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_model_not_ready_rejected_before_any_work(red_png):
    store = AsyncMock(spec=FeatureStore)
    orchestrator = build(ModelHolder(), store)

    with pytest.raises(ModelNotReadyError):
        await orchestrator.classify(red_png)
    store.snapshot.assert_not_called()


@pytest.mark.asyncio
async def test_bad_image(ready_holder):
    store = AsyncMock(spec=FeatureStore)
    with pytest.raises(PreprocessError):
        await build(ready_holder, store).classify(b"definitely not an image")
    store.snapshot.assert_not_called()


@pytest.mark.asyncio
async def test_extraction_failure(red_png):
    class Exploding:
        def __call__(self, batch, training=False):
            raise RuntimeError("kernel failure")

    holder = ModelHolder()
    holder.load(Exploding)

    with pytest.raises(ExtractionError):
        await build(holder, AsyncMock(spec=FeatureStore)).classify(red_png)


@pytest.mark.asyncio
async def test_store_unavailable_is_surfaced(ready_holder, red_png):
    store = AsyncMock(spec=FeatureStore)
    store.snapshot.side_effect = StoreUnavailableError("connection refused")

    with pytest.raises(StoreUnavailableError):
        await build(ready_holder, store).classify(red_png)


@pytest.mark.asyncio
async def test_ingest_bad_image_stores_nothing(ready_holder):
    store = AsyncMock(spec=FeatureStore)
    with pytest.raises(PreprocessError):
        await build(ready_holder, store).ingest("A", b"")
    store.append.assert_not_called()
