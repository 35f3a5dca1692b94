"""
Image Preprocessing

Decodes raw upload bytes into the fixed-size, normalized batch tensor expected
by the embedding model.
"""

from __future__ import annotations

import io
import logging

import numpy as np
from PIL import Image, UnidentifiedImageError

from ..core.errors import PreprocessError

logger = logging.getLogger("imgmatch.preprocess")


class Preprocessor:
    """
    Converts encoded image bytes into a ``float32[1, H, W, 3]`` array in [0, 1].

    The image is stretched to the target size (aspect ratio is not preserved)
    using bilinear resampling.
    """

    def __init__(self, height: int = 224, width: int = 224) -> None:
        if height <= 0 or width <= 0:
            raise ValueError(f"Invalid input resolution {height}x{width}")
        self.height = height
        self.width = width

    def preprocess(self, image_bytes: bytes) -> np.ndarray:
        """
        Decode, resize and normalize a single image.

        Raises
        ------
        PreprocessError
            If the bytes are empty or cannot be decoded as an image.
        """
        if not image_bytes:
            raise PreprocessError("Failed to preprocess image: empty payload")

        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                with img.convert("RGB") as rgb:
                    with rgb.resize(
                        (self.width, self.height),
                        resample=Image.Resampling.BILINEAR,
                    ) as resized:
                        pixels = np.asarray(resized, dtype=np.float32)
        except (
            UnidentifiedImageError,
            Image.DecompressionBombError,
            OSError,
            ValueError,
        ) as exc:
            logger.error("Error in preprocessing image: %s", exc)
            raise PreprocessError(
                f"Failed to preprocess image: {type(exc).__name__}"
            ) from exc

        return np.expand_dims(pixels / 255.0, axis=0)
