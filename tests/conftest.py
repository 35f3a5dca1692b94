import io

import numpy as np
import pytest
from PIL import Image

from image_match_server.db import FeatureStore, build_engine, build_session_factory, init_db
from image_match_server.vision.model import ModelHolder


class ChannelMeanModel:
    """
    Stand-in for the pooled feature network: the embedding of an image is its
    mean RGB value, so a pure red image embeds to [1, 0, 0].
    """

    def __call__(self, batch, training=False):
        return np.asarray(batch).mean(axis=(1, 2))


def make_image_bytes(color=(255, 0, 0), size=(32, 32), fmt="PNG") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def red_png():
    return make_image_bytes((255, 0, 0))


@pytest.fixture
def green_png():
    return make_image_bytes((0, 255, 0))


@pytest.fixture
def ready_holder():
    holder = ModelHolder()
    holder.load(ChannelMeanModel)
    return holder


@pytest.fixture
async def feature_store(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'features.db'}")
    await init_db(engine)
    yield FeatureStore(build_session_factory(engine))
    await engine.dispose()
