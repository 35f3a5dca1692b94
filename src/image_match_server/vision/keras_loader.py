"""
Keras Feature Model Loader

Builds the frozen embedding network handed to ``ModelHolder.load``.

Sources, in order of precedence:
1. ``model_url``: a saved Keras model downloaded once into ``model_path``.
2. ``model_path``: a saved Keras model on disk, truncated at ``feature_layer``.
3. Otherwise ``MobileNetV2(include_top=False, pooling="avg")`` with
   ``model_weights`` (``"imagenet"`` by default).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import httpx
import tensorflow as tf

from ..config import Settings

logger = logging.getLogger("imgmatch.model")

DEFAULT_MODEL_CACHE = "./data/feature_model.keras"


class ModelDownloadError(RuntimeError):
    """Raised when a remote model file cannot be fetched."""


def download_model(url: str, dest: str, timeout: float = 120.0) -> Path:
    """
    Download a saved model file to ``dest`` unless it is already there.
    """
    path = Path(dest)
    if path.exists():
        logger.info("Using cached model file %s", path)
        return path

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".part")

    logger.info("Downloading feature model from %s", url)
    try:
        with httpx.stream("GET", url, timeout=timeout, follow_redirects=True) as resp:
            resp.raise_for_status()
            with tmp.open("wb") as f:
                for chunk in resp.iter_bytes():
                    f.write(chunk)
    except httpx.HTTPError as exc:
        tmp.unlink(missing_ok=True)
        raise ModelDownloadError(
            f"Model download failed: {type(exc).__name__}"
        ) from exc

    tmp.replace(path)
    return path


def _pooling_layer(model: tf.keras.Model, name: str) -> tf.keras.layers.Layer:
    """
    Resolve the truncation layer by name, falling back to the last
    global-average-pooling layer in the network.
    """
    try:
        return model.get_layer(name)
    except ValueError:
        pass

    pools = [
        layer
        for layer in model.layers
        if isinstance(layer, tf.keras.layers.GlobalAveragePooling2D)
    ]
    if not pools:
        raise ValueError(
            f"Model has no layer named {name!r} and no global average pooling layer"
        )
    logger.warning("Layer %r not found; using %r", name, pools[-1].name)
    return pools[-1]


def load_feature_model(settings: Settings) -> tf.keras.Model:
    """
    Build the truncated, frozen feature model described by ``settings``.
    """
    path: Optional[str] = settings.model_path

    if settings.model_url:
        path = str(download_model(settings.model_url, path or DEFAULT_MODEL_CACHE))

    if path:
        full = tf.keras.models.load_model(path, compile=False)
        layer = _pooling_layer(full, settings.feature_layer)
        model = tf.keras.Model(inputs=full.inputs, outputs=layer.output)
    else:
        model = tf.keras.applications.MobileNetV2(
            input_shape=(settings.input_height, settings.input_width, 3),
            include_top=False,
            pooling="avg",
            weights=settings.model_weights,
        )

    model.trainable = False

    dim = int(model.output_shape[-1])
    if dim != settings.embedding_dim:
        logger.warning(
            "Feature model output dimension %d differs from configured %d",
            dim,
            settings.embedding_dim,
        )
    logger.info("Feature model ready (output dim=%d)", dim)
    return model
