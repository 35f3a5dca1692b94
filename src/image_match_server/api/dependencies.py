from functools import lru_cache

from ..config import settings
from ..db import AsyncSessionLocal, FeatureStore
from ..matching.matcher import SimilarityMatcher
from ..classification.orchestrator import ClassificationOrchestrator
from ..vision.extractor import FeatureExtractor
from ..vision.model import ModelHolder, model_holder
from ..vision.preprocess import Preprocessor


def get_model_holder() -> ModelHolder:
    return model_holder


@lru_cache
def get_feature_store() -> FeatureStore:
    return FeatureStore(AsyncSessionLocal)


@lru_cache
def get_orchestrator() -> ClassificationOrchestrator:
    return ClassificationOrchestrator(
        preprocessor=Preprocessor(settings.input_height, settings.input_width),
        extractor=FeatureExtractor(get_model_holder()),
        store=get_feature_store(),
        matcher=SimilarityMatcher(
            report_threshold=settings.report_threshold,
            match_threshold=settings.match_threshold,
        ),
    )
