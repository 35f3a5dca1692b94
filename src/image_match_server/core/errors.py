"""
Error Taxonomy and Global Error Handling

This module defines the terminal failure kinds of a classification request and
the FastAPI exception handlers that render them.

Design Goals
------------
- Four distinguishable failure kinds, each with a stable machine-readable code
- "Not Determined" is a successful result and never an error
- Never leak internal stack traces to clients
- Log full stack traces internally for debugging
"""

from __future__ import annotations

import logging
from typing import Dict, Any

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("imgmatch.errors")


# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------

class ImageMatchError(RuntimeError):
    """Base error for all classification pipeline failures."""

    code: str = "image_match_error"
    status_code: int = 500


class PreprocessError(ImageMatchError):
    """Raised when image bytes cannot be decoded or normalized."""

    code = "preprocess_error"
    status_code = 400


class ModelNotReadyError(ImageMatchError):
    """Raised when the embedding model is not loaded (or failed to load)."""

    code = "model_not_ready"
    status_code = 503


class ExtractionError(ImageMatchError):
    """Raised when embedding inference fails."""

    code = "extraction_error"
    status_code = 500


class StoreUnavailableError(ImageMatchError):
    """Raised when the feature store cannot be reached or read."""

    code = "store_unavailable"
    status_code = 503


# ---------------------------------------------------------------------
# Public Exception Handlers
# ---------------------------------------------------------------------

async def image_match_exception_handler(
    request: Request,
    exc: ImageMatchError,
) -> JSONResponse:
    """
    Render a typed pipeline failure.

    The error code identifies which of the four failure kinds occurred; the
    detail carries the message raised by the failing stage.
    """
    logger.error(
        "Request %s %s failed with %s: %s",
        request.method,
        request.url.path,
        exc.code,
        exc,
    )

    payload: Dict[str, Any] = {
        "error": exc.code,
        "detail": str(exc),
    }

    return JSONResponse(
        status_code=exc.status_code,
        content=payload,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all handler for uncaught exceptions.

    Behavior
    --------
    - Logs the full exception stack trace for internal diagnostics.
    - Returns a generic 500 error to the client with no internal details.

    Parameters
    ----------
    request : Request
        The incoming HTTP request that triggered the exception.

    exc : Exception
        The uncaught exception instance.

    Returns
    -------
    JSONResponse
        A JSON 500 response with a minimal error payload.
    """

    # Log full traceback internally (never returned to client)
    logger.exception(
        "Unhandled exception during request: %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )

    payload: Dict[str, Any] = {
        "error": "internal_server_error",
        "detail": "Internal server error",
    }

    return JSONResponse(
        status_code=500,
        content=payload,
    )
