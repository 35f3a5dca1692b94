"""
Bulk-load reference images into the feature store.

Expected layout (one directory per label):

    <root>/
        Product A/
            front.jpg
            side.png
        Product B/
            ...

Usage:
    python scripts/ingest_images.py <root> [--replace]
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

# Ensure src is in pythonpath
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dotenv import load_dotenv
load_dotenv()

from image_match_server.config import settings
from image_match_server.core.errors import ImageMatchError, PreprocessError
from image_match_server.db import AsyncSessionLocal, FeatureStore, async_engine, init_db
from image_match_server.vision.extractor import FeatureExtractor
from image_match_server.vision.keras_loader import load_feature_model
from image_match_server.vision.model import ModelHolder, ModelState
from image_match_server.vision.preprocess import Preprocessor

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".bmp", ".gif", ".webp", ".tif", ".tiff"}


def _label_dirs(root: Path):
    return sorted(p for p in root.iterdir() if p.is_dir())


def _images(label_dir: Path):
    return sorted(
        p for p in label_dir.iterdir()
        if p.is_file() and p.suffix.lower() in IMAGE_SUFFIXES
    )


async def main(root: Path, replace: bool) -> int:
    print("Initializing feature store...")
    await init_db(async_engine)
    store = FeatureStore(AsyncSessionLocal)

    print("Loading feature model...")
    holder = ModelHolder()
    if holder.load(lambda: load_feature_model(settings)) is not ModelState.READY:
        print(f"Model failed to load: {holder.error}")
        return 1

    preprocessor = Preprocessor(settings.input_height, settings.input_width)
    extractor = FeatureExtractor(holder)

    total = 0
    for label_dir in _label_dirs(root):
        label = label_dir.name
        images = _images(label_dir)
        if not images:
            continue

        print(f"Processing {label!r} ({len(images)} images)")
        vectors = []
        for image_path in images:
            try:
                batch = preprocessor.preprocess(image_path.read_bytes())
            except PreprocessError as e:
                print(f"  Skipping {image_path.name}: {e}")
                continue
            vectors.append(extractor.extract(batch))

        if not vectors:
            print(f"  No usable images for {label!r}; existing records kept")
            continue

        if replace:
            total += await store.replace_label(label, vectors)
        else:
            total += await store.append_many(label, vectors)

    await async_engine.dispose()
    print(f"Done! {total} reference records stored.")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("root", type=Path, help="Directory with one subdirectory per label")
    parser.add_argument(
        "--replace",
        action="store_true",
        help="Delete existing records for each label before adding",
    )
    args = parser.parse_args()

    try:
        sys.exit(asyncio.run(main(args.root, args.replace)))
    except ImageMatchError as e:
        print(f"Ingestion failed ({e.code}): {e}")
        sys.exit(1)
