"""
Embedding Model Lifecycle

The embedding network is process-wide, read-only state shared by all
requests. It is loaded exactly once, through a single entry point, and moves
through an explicit lifecycle:

    UNLOADED -> LOADING -> READY | LOAD_FAILED

Requests must gate on the state instead of assuming the model exists. A
failed load is final for the lifetime of the process.
"""

from __future__ import annotations

import logging
from enum import Enum
from threading import RLock
from typing import Any, Callable, Optional

from ..core.errors import ModelNotReadyError

logger = logging.getLogger("imgmatch.model")


class ModelState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    LOAD_FAILED = "load_failed"


ModelLoader = Callable[[], Any]


class ModelHolder:
    """
    Thread-safe holder for the frozen feature model.

    The held model is any callable ``model(batch, training=False)`` returning
    pooled activations of shape ``[1, D]``.
    """

    def __init__(self) -> None:
        self._state = ModelState.UNLOADED
        self._model: Optional[Any] = None
        self._error: Optional[str] = None
        self._lock = RLock()

    @property
    def state(self) -> ModelState:
        with self._lock:
            return self._state

    @property
    def error(self) -> Optional[str]:
        with self._lock:
            return self._error

    @property
    def is_ready(self) -> bool:
        return self.state is ModelState.READY

    def load(self, loader: ModelLoader) -> ModelState:
        """
        Run the loader once and record the outcome.

        Calling ``load`` again after the first attempt is a no-op that
        returns the current state.
        """
        with self._lock:
            if self._state is not ModelState.UNLOADED:
                logger.warning(
                    "Model load requested in state %s; ignoring",
                    self._state.value,
                )
                return self._state
            self._state = ModelState.LOADING

        logger.info("Loading feature extraction model")

        try:
            model = loader()
        except Exception as exc:
            logger.exception("Error loading feature extraction model")
            with self._lock:
                self._error = f"{type(exc).__name__}: {exc}"
                self._state = ModelState.LOAD_FAILED
            return ModelState.LOAD_FAILED

        with self._lock:
            self._model = model
            self._state = ModelState.READY

        logger.info("Feature extraction model loaded successfully")
        return ModelState.READY

    def get(self) -> Any:
        """
        Return the loaded model.

        Raises
        ------
        ModelNotReadyError
            If the model is not in the READY state.
        """
        with self._lock:
            if self._state is ModelState.READY:
                return self._model

            if self._state is ModelState.LOAD_FAILED:
                raise ModelNotReadyError(
                    f"Feature extraction model failed to load ({self._error})"
                )

            raise ModelNotReadyError(
                f"Feature extraction model not loaded (state={self._state.value})"
            )


# Global singleton
model_holder = ModelHolder()
