"""
Image Match Server Application Entry Point

This module defines the FastAPI application instance, registers all routers,
configures exception handling, and owns the process lifecycle:

- Logging is configured once, at application creation.
- On startup the feature store schema is created and the embedding model is
  loaded exactly once. Classification requests are rejected until the model
  reaches READY; a failed load is not retried.
- On shutdown the database engine is disposed.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .core.errors import (
    ImageMatchError,
    image_match_exception_handler,
    unhandled_exception_handler,
)
from .db import async_engine, init_db
from .vision.model import ModelState, model_holder

from .api import (
    classify_routes,
    feature_routes,
    health_routes,
)


logger = logging.getLogger("imgmatch.app")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_feature_model():
    from .vision.keras_loader import load_feature_model

    return load_feature_model(settings)


# ---------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("Starting image-match-server")

    try:
        await init_db(async_engine)
    except (SQLAlchemyError, OSError):
        # Requests will surface StoreUnavailableError until the store is reachable
        logger.exception("Feature store initialization failed")

    state = await asyncio.to_thread(model_holder.load, _load_feature_model)
    if state is not ModelState.READY:
        logger.error("Serving without a feature model; classification is disabled")

    yield

    logger.info("Shutting down image-match-server")
    await async_engine.dispose()


# ---------------------------------------------------------------------
# Application Factory (Test-Friendly)
# ---------------------------------------------------------------------

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns
    -------
    FastAPI
        Fully configured FastAPI application.
    """
    configure_logging(settings.log_level)

    app = FastAPI(
        title="image-match-server",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    # --------------------------------------------------------------
    # Exception Handling
    # --------------------------------------------------------------

    app.add_exception_handler(ImageMatchError, image_match_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # --------------------------------------------------------------
    # Router Registration
    # --------------------------------------------------------------

    app.include_router(health_routes.router)
    app.include_router(classify_routes.router)
    app.include_router(feature_routes.router)

    return app


# ---------------------------------------------------------------------
# Default Application Instance (for Uvicorn/Gunicorn)
# ---------------------------------------------------------------------

app = create_app()
