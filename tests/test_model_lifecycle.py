"""
Model Lifecycle and Feature Extraction Tests
"""

import numpy as np
import pytest

from image_match_server.core.errors import ExtractionError, ModelNotReadyError
from image_match_server.vision.extractor import FeatureExtractor
from image_match_server.vision.model import ModelHolder, ModelState

from conftest import ChannelMeanModel


class TestModelHolder:

    def test_starts_unloaded(self):
        holder = ModelHolder()
        assert holder.state is ModelState.UNLOADED
        with pytest.raises(ModelNotReadyError):
            holder.get()

    def test_successful_load(self):
        holder = ModelHolder()
        assert holder.load(ChannelMeanModel) is ModelState.READY
        assert holder.is_ready
        assert isinstance(holder.get(), ChannelMeanModel)

    def test_failed_load_is_final(self):
        def broken_loader():
            raise OSError("weights unreachable")

        holder = ModelHolder()
        assert holder.load(broken_loader) is ModelState.LOAD_FAILED
        assert "weights unreachable" in holder.error

        with pytest.raises(ModelNotReadyError, match="failed to load"):
            holder.get()

        # No automatic re-attempt
        assert holder.load(ChannelMeanModel) is ModelState.LOAD_FAILED
        assert holder.state is ModelState.LOAD_FAILED

    def test_loads_only_once(self):
        calls = []

        def loader():
            calls.append(1)
            return ChannelMeanModel()

        holder = ModelHolder()
        holder.load(loader)
        holder.load(loader)
        assert len(calls) == 1

    def test_state_is_loading_during_load(self):
        holder = ModelHolder()
        seen = []

        def loader():
            seen.append(holder.state)
            return ChannelMeanModel()

        holder.load(loader)
        assert seen == [ModelState.LOADING]


class TestFeatureExtractor:

    def test_extracts_flat_vector(self, ready_holder):
        batch = np.zeros((1, 4, 4, 3), dtype=np.float32)
        batch[..., 0] = 1.0

        vector = FeatureExtractor(ready_holder).extract(batch)
        assert vector == [1.0, 0.0, 0.0]
        assert all(isinstance(x, float) for x in vector)

    def test_not_ready(self):
        extractor = FeatureExtractor(ModelHolder())
        with pytest.raises(ModelNotReadyError):
            extractor.extract(np.zeros((1, 4, 4, 3), dtype=np.float32))
        with pytest.raises(ModelNotReadyError):
            extractor.ensure_ready()

    def test_inference_failure_wrapped(self):
        class Exploding:
            def __call__(self, batch, training=False):
                raise RuntimeError("OOM")

        holder = ModelHolder()
        holder.load(Exploding)
        with pytest.raises(ExtractionError) as exc_info:
            FeatureExtractor(holder).extract(np.zeros((1, 2, 2, 3)))
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.parametrize(
        "output",
        [
            np.zeros((2, 8)),
            np.zeros((1, 4, 4, 8)),
            np.array([[1.0, np.nan]]),
        ],
    )
    def test_unusable_output_rejected(self, output):
        holder = ModelHolder()
        holder.load(lambda: (lambda batch, training=False: output))
        with pytest.raises(ExtractionError):
            FeatureExtractor(holder).extract(np.zeros((1, 2, 2, 3)))

    def test_deterministic(self, ready_holder):
        batch = np.random.default_rng(0).random((1, 8, 8, 3), dtype=np.float32)
        extractor = FeatureExtractor(ready_holder)
        assert extractor.extract(batch) == extractor.extract(batch)
