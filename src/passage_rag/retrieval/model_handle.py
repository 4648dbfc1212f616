"""passage_rag.retrieval.model_handle

Shared, lazily-initialised handle to the text-embedding model.

The handle owns the model lifecycle::

    UNLOADED --acquire--> LOADING --load + warm-up--> READY
                             |
                             +--retry budget exhausted--> FAILED --acquire--> LOADING

Concurrent callers that arrive while a load is in flight all await the same
load task, so a cold start triggers exactly one load regardless of how many
callers are waiting. State transitions happen under one ``asyncio.Lock``;
callers that find the handle ``READY`` return without taking the lock.

The model is not assumed to be safe for concurrent inference: every call
through :meth:`EmbeddingModelHandle.encode` (warm-up included) holds a second
lock, so at most one inference runs at a time.

Both locks belong to the event loop that last used the handle. When the
handle is used from a new loop (e.g. successive ``asyncio.run`` calls) the
locks are recreated and a load task left on the old loop is dropped.

The load task is shielded from its waiters: a waiter that is cancelled stops
waiting, but the load continues for everybody else. Only :meth:`shutdown`
aborts an in-flight load.

Classes
-------
ModelState
    Lifecycle states of the handle.
EmbeddingModelHandle
    Lifecycle manager for one embedding model instance.

Functions
---------
encode_text
    Run one inference call on a loaded model.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

from passage_rag.common.exceptions import ModelLoadError
from passage_rag.common.retry import RetryExhaustedError, RetryPolicy, Sleep, retry_async

logger = logging.getLogger(__name__)

ModelLoader = Callable[[], Any]

DEFAULT_WARMUP_TEXT = "Test text"
DEFAULT_MAX_LOAD_ATTEMPTS = 3
DEFAULT_LOAD_RETRY_DELAY = 1.0


class ModelState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


def encode_text(model: Any, text: str) -> Any:
    """Run one inference call on ``model`` and return its raw output.

    The model is expected to expose ``get_text_embedding`` (LlamaIndex
    embeddings). ``embed_query`` and ``encode`` are accepted as well so that
    other embedding wrappers can be plugged in.

    Raises
    ------
    AttributeError
        If no compatible embedding method is available on ``model``.
    """
    for method in ("get_text_embedding", "embed_query", "encode"):
        fn = getattr(model, method, None)
        if callable(fn):
            return fn(text)

    raise AttributeError(f"No embedding method found on {model!r}")


class EmbeddingModelHandle:
    """Lifecycle manager for a single shared embedding model.

    Parameters
    ----------
    loader : Callable[[], Any]
        Blocking, zero-argument callable that constructs the model. It runs in
        the default thread-pool executor.
    max_load_attempts : int, optional
        Total load attempts before the handle enters ``FAILED``. Defaults to ``3``.
    load_retry_delay : float, optional
        Fixed delay in seconds between load attempts. Defaults to ``1.0``.
    warmup_text : str or None, optional
        Text used for the warm-up inference after a successful load. ``None``
        disables warm-up.
    sleep : Callable[[float], Awaitable[None]], optional
        Sleep coroutine used between load attempts.
    """

    def __init__(
            self,
            loader: ModelLoader,
            *,
            max_load_attempts: int = DEFAULT_MAX_LOAD_ATTEMPTS,
            load_retry_delay: float = DEFAULT_LOAD_RETRY_DELAY,
            warmup_text: Optional[str] = DEFAULT_WARMUP_TEXT,
            sleep: Sleep = asyncio.sleep,
        ):
        self._loader = loader
        self._policy = RetryPolicy.fixed(load_retry_delay, max_attempts=max_load_attempts)
        self._warmup_text = warmup_text
        self._sleep = sleep

        self._state = ModelState.UNLOADED
        self._model: Any = None
        self._last_error: Optional[BaseException] = None
        self._load_task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._lock = asyncio.Lock()
        self._inference_lock = asyncio.Lock()

        self.load_attempts = 0
        self.loads_completed = 0

    @property
    def state(self) -> ModelState:
        return self._state

    @property
    def last_error(self) -> Optional[BaseException]:
        """The error that put the handle into ``FAILED``, if any."""
        return self._last_error

    @property
    def is_ready(self) -> bool:
        return self._state is ModelState.READY

    async def acquire(self) -> Any:
        """Return the loaded model, loading it first if necessary.

        Returns
        -------
        Any
            The model instance. The same instance is returned to every caller
            until the handle is reset.

        Raises
        ------
        ModelLoadError
            If the load in which this caller participated failed after the
            retry budget. Every waiter of that load receives the error.
        asyncio.CancelledError
            If this caller is cancelled, or the load is aborted by :meth:`shutdown`.
        """
        model = self._model
        if self._state is ModelState.READY and model is not None:
            return model

        self._bind_loop()

        async with self._lock:
            if self._state is ModelState.READY:
                return self._model

            if self._load_task is None:
                if self._state is ModelState.FAILED:
                    logger.info("Retrying embedding model load after previous failure: %s", self._last_error)
                    self._last_error = None
                self._state = ModelState.LOADING
                self._load_task = asyncio.get_running_loop().create_task(self._load())

            task = self._load_task

        return await asyncio.shield(task)

    async def reset(self) -> None:
        """Drop the loaded model so that the next :meth:`acquire` loads afresh.

        A reset while a load is in flight is a no-op: that load already
        produces a fresh model.
        """
        self._bind_loop()
        async with self._lock:
            if self._state is ModelState.LOADING:
                logger.debug("Ignoring reset of embedding model while a load is in flight")
                return
            if self._state is not ModelState.UNLOADED:
                logger.info("Resetting embedding model handle (state=%s)", self._state.value)
            self._model = None
            self._last_error = None
            self._state = ModelState.UNLOADED
        self._release_loader()

    async def shutdown(self) -> None:
        """Abort any in-flight load and release the model.

        Waiters of an aborted load receive ``asyncio.CancelledError``.
        """
        self._bind_loop()
        task = self._load_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except ModelLoadError:
                pass

        async with self._lock:
            self._model = None
            self._load_task = None
            self._state = ModelState.UNLOADED
        self._release_loader()

    async def encode(self, model: Any, text: str) -> Any:
        """Run one inference call on ``model`` in the default executor.

        Calls are serialised: a second caller waits until the running
        inference has finished.
        """
        self._bind_loop()
        async with self._inference_lock:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, encode_text, model, text)

    def status(self) -> Dict[str, Any]:
        """Return a snapshot of the handle for health reporting."""
        return {
            "state": self._state.value,
            "load_attempts": self.load_attempts,
            "loads_completed": self.loads_completed,
            "last_error": None if self._last_error is None else str(self._last_error),
        }

    def _bind_loop(self) -> None:
        loop = asyncio.get_running_loop()
        if self._loop is loop:
            return
        if self._loop is not None:
            logger.debug("Embedding model handle moved to a new event loop")
        self._loop = loop
        self._lock = asyncio.Lock()
        self._inference_lock = asyncio.Lock()
        if self._load_task is not None:
            # A load started on another loop can no longer be awaited.
            self._load_task = None
            if self._state is ModelState.LOADING:
                self._state = ModelState.UNLOADED

    def _release_loader(self) -> None:
        release = getattr(self._loader, "release", None)
        if callable(release):
            release()

    async def _load_once(self) -> Any:
        self.load_attempts += 1
        logger.info("Loading embedding model (attempt %d)", self.load_attempts)
        loop = asyncio.get_running_loop()
        model = await loop.run_in_executor(None, self._loader)
        if model is None:
            raise ModelLoadError("Model loader returned no model", attempts=self.load_attempts)
        return model

    async def _warm_up(self, model: Any) -> None:
        if self._warmup_text is None:
            return
        try:
            await self.encode(model, self._warmup_text)
        except Exception as exc:
            logger.warning("Embedding model warm-up failed: %s", exc)
        else:
            logger.debug("Embedding model warm-up succeeded")

    async def _load(self) -> Any:
        try:
            model = await retry_async(
                self._load_once,
                self._policy,
                operation_name="Embedding model load",
                sleep=self._sleep,
            )
            await self._warm_up(model)
        except asyncio.CancelledError:
            async with self._lock:
                self._load_task = None
                self._state = ModelState.UNLOADED
            raise
        except RetryExhaustedError as exc:
            error = ModelLoadError(
                f"Embedding model could not be loaded after {exc.attempts} attempts: {exc.last_error}",
                attempts=exc.attempts,
            )
            error.__cause__ = exc.last_error
            async with self._lock:
                self._load_task = None
                self._last_error = error
                self._state = ModelState.FAILED
            logger.error("%s", error)
            raise error

        async with self._lock:
            self._model = model
            self._load_task = None
            self._state = ModelState.READY
            self.loads_completed += 1

        logger.info("Embedding model ready")
        return model


__all__ = [
    "DEFAULT_WARMUP_TEXT",
    "EmbeddingModelHandle",
    "ModelLoader",
    "ModelState",
    "encode_text",
]
