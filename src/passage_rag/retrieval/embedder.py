"""passage_rag.retrieval.embedder

Embedding model loaders and the retrying single-text embedder.

This module defines the loader that constructs the embedding runtime (a
LlamaIndex ``HuggingFaceEmbedding`` over a sentence-transformers model), a
factory selecting a loader from configuration, and :class:`Embedder`, which
turns one text into one vector through a shared
:class:`~passage_rag.retrieval.model_handle.EmbeddingModelHandle`.

Classes
-------
HuggingFaceModelLoader
    Blocking loader for a Hugging Face feature-extraction model.
Embedder
    Embeds single texts with truncation, retry and reset-on-corruption.

Functions
---------
create_model_loader
    Create a model loader from a configuration mapping.
"""

import asyncio
import logging
import math
import shutil
import tempfile
from dataclasses import dataclass, field
from numbers import Real
from typing import Any, Dict, Mapping, Optional

from passage_rag.common import EmbeddingVector
from passage_rag.common.exceptions import (
    EmbeddingError,
    EmptyInputError,
    InvalidEmbeddingResultError,
    ModelLoadError,
)
from passage_rag.common.retry import RetryExhaustedError, RetryPolicy, Sleep, retry_async
from passage_rag.retrieval.model_handle import EmbeddingModelHandle

logger = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_MAX_INPUT_CHARS = 512
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 1.0


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off"}:
            return False
    return bool(value)


@dataclass
class HuggingFaceModelLoader:
    """Loader for a Hugging Face feature-extraction model via LlamaIndex.

    Calling the loader constructs a fresh
    :class:`llama_index.embeddings.huggingface.HuggingFaceEmbedding` with L2
    normalisation enabled; pooling is the model's own (mean pooling for the
    sentence-transformers MiniLM family).

    Attributes
    ----------
    model_name : str
        Hub identifier or local path of the model.
    device : str
        Device identifier (e.g. ``"cpu"``, ``"cuda"``).
    num_threads : int or None
        Number of intra-op threads for torch. ``1`` keeps inference
        single-threaded; ``None`` leaves torch's default.
    fresh_download : bool
        If ``True``, every load downloads into a new temporary cache directory
        so that a previously cached (possibly stale) model is never reused. The
        directory is deleted when that load fails, when the next load starts,
        and on :meth:`release` (called by the handle on reset and shutdown).
    cache_folder : str or None
        Cache directory used when ``fresh_download`` is ``False``.
    trust_remote_code : bool
        Whether to allow custom model code from the Hugging Face Hub.
    max_length : int or None
        Optional tokenizer max length.
    model_kwargs : dict[str, Any]
        Additional keyword arguments forwarded to the underlying model.
    """

    model_name: str = DEFAULT_MODEL_NAME
    device: str = "cpu"
    num_threads: Optional[int] = 1
    fresh_download: bool = True
    cache_folder: Optional[str] = None
    trust_remote_code: bool = False
    max_length: Optional[int] = None
    model_kwargs: Dict[str, Any] = field(default_factory=dict)
    _temp_cache: Optional[str] = field(default=None, init=False, repr=False, compare=False)

    def __call__(self) -> Any:
        import torch
        from llama_index.embeddings.huggingface import HuggingFaceEmbedding

        if self.num_threads:
            torch.set_num_threads(int(self.num_threads))

        cache_folder = self.cache_folder
        if self.fresh_download:
            # The previous download belongs to a model the handle has dropped.
            self.release()
            cache_folder = tempfile.mkdtemp(prefix="passage-rag-model-")
            self._temp_cache = cache_folder

        logger.info(
            "Constructing HuggingFace embedding model %s on %s (cache=%s)",
            self.model_name, self.device, cache_folder,
        )
        kwargs: Dict[str, Any] = {}
        if self.max_length is not None:
            kwargs["max_length"] = int(self.max_length)

        try:
            return HuggingFaceEmbedding(
                model_name=self.model_name,
                device=self.device,
                normalize=True,
                cache_folder=cache_folder,
                trust_remote_code=self.trust_remote_code,
                model_kwargs=self.model_kwargs or {},
                **kwargs,
            )
        except Exception:
            self.release()
            raise

    def release(self) -> None:
        """Delete the temporary cache directory of the last load, if any."""
        path, self._temp_cache = self._temp_cache, None
        if path is not None:
            logger.debug("Removing temporary model cache %s", path)
            shutil.rmtree(path, ignore_errors=True)

    @classmethod
    def from_config_dict(cls, config: Mapping[str, Any]) -> "HuggingFaceModelLoader":
        """Create a loader from the ``embedder`` configuration section.

        Parameters
        ----------
        config : Mapping[str, Any]
            Configuration mapping. All keys are optional.

        Returns
        -------
        HuggingFaceModelLoader
            Configured loader.
        """
        num_threads = config.get("num_threads", 1)
        max_length = config.get("max_length")
        return cls(
            model_name=str(config.get("model_name", DEFAULT_MODEL_NAME)),
            device=str(config.get("device", "cpu")),
            num_threads=None if num_threads is None else int(num_threads),
            fresh_download=_as_bool(config.get("fresh_download"), True),
            cache_folder=config.get("cache_folder"),
            trust_remote_code=_as_bool(config.get("trust_remote_code"), False),
            max_length=None if max_length is None else int(max_length),
            model_kwargs=dict(config.get("model_kwargs") or {}),
        )


# ----------------- Factory helpers -----------------

def _get_loader_kind(cfg: Mapping[str, Any]) -> str:
    """Extract the loader kind/type/provider discriminator from a config mapping."""
    for key in ("kind", "type", "provider", "backend"):
        val = cfg.get(key)
        if isinstance(val, str) and val.strip():
            return val.strip()
    return ""


def _normalize_loader_kind(kind: str) -> str:
    """Normalise a loader kind string to a registry key (``"Hugging-Face"`` -> ``"hugging_face"``)."""
    k = kind.strip()
    if not k:
        return ""

    # Insert underscores between camel-case boundaries.
    out: list[str] = []
    prev = ""
    for ch in k:
        if prev and prev.islower() and ch.isupper():
            out.append("_")
        out.append(ch)
        prev = ch

    k2 = "".join(out).replace("-", "_").replace(" ", "_")
    while "__" in k2:
        k2 = k2.replace("__", "_")

    return k2.lower().replace("hugging_face", "huggingface")


def create_model_loader(config: Mapping[str, Any]) -> HuggingFaceModelLoader:
    """Create a model loader from a configuration mapping.

    The implementation is selected by a discriminator field (one of ``kind``,
    ``type``, ``provider`` or ``backend``). Without a discriminator the
    Hugging Face loader is used.

    Parameters
    ----------
    config : Mapping[str, Any]
        The ``embedder`` configuration section.

    Returns
    -------
    HuggingFaceModelLoader
        Configured loader.

    Raises
    ------
    TypeError
        If ``config`` is not a mapping.
    ValueError
        If the discriminator selects an unsupported implementation.
    """
    if not isinstance(config, Mapping):
        raise TypeError(f"create_model_loader expected a mapping/dict, got {type(config)}")

    kind_raw = _get_loader_kind(config)
    kind = _normalize_loader_kind(kind_raw)

    registry = {
        "huggingface": HuggingFaceModelLoader,
        "hf": HuggingFaceModelLoader,
        "sentence_transformers": HuggingFaceModelLoader,
    }

    cls = registry.get(kind) if kind else HuggingFaceModelLoader
    if cls is None:
        raise ValueError(
            f"Unknown embedder kind '{kind_raw}' (normalized to '{kind}'). "
            f"Supported kinds: {sorted(registry.keys())}."
        )

    return cls.from_config_dict(config)


def _validate_vector(raw: Any) -> EmbeddingVector:
    """Convert raw model output into an :data:`EmbeddingVector`.

    Raises
    ------
    InvalidEmbeddingResultError
        If the output is missing, empty, or contains non-finite or
        non-numeric values.
    """
    if raw is None:
        raise InvalidEmbeddingResultError("Embedding model returned no output")

    if hasattr(raw, "tolist"):
        raw = raw.tolist()

    try:
        values = list(raw)
    except TypeError as exc:
        raise InvalidEmbeddingResultError(
            f"Embedding model returned a non-sequence result of type {type(raw).__name__}"
        ) from exc

    if not values:
        raise InvalidEmbeddingResultError("Embedding model returned an empty vector")

    vector = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, Real):
            raise InvalidEmbeddingResultError(
                f"Embedding model returned a non-numeric component of type {type(value).__name__}"
            )
        value = float(value)
        if not math.isfinite(value):
            raise InvalidEmbeddingResultError("Embedding model returned a non-finite component")
        vector.append(value)

    return tuple(vector)


class Embedder:
    """Embed single texts through a shared model handle.

    Parameters
    ----------
    handle : EmbeddingModelHandle
        Shared model handle.
    retry_policy : RetryPolicy or None, optional
        Attempt budget and backoff. Defaults to 3 attempts with a linear
        backoff of ``1 s * attempt``.
    max_input_chars : int, optional
        Hard cap on the number of characters sent to the model. Defaults to
        ``512``. Long documents must be chunked upstream; the cap is a safety
        limit, not a chunking mechanism.
    sleep : Callable[[float], Awaitable[None]], optional
        Sleep coroutine used between attempts.
    """

    def __init__(
            self,
            handle: EmbeddingModelHandle,
            *,
            retry_policy: Optional[RetryPolicy] = None,
            max_input_chars: int = DEFAULT_MAX_INPUT_CHARS,
            sleep: Sleep = asyncio.sleep,
        ):
        if max_input_chars < 1:
            raise ValueError("max_input_chars must be >= 1")
        self.handle = handle
        self.retry_policy = retry_policy or RetryPolicy.linear(
            DEFAULT_BACKOFF_SECONDS, max_attempts=DEFAULT_MAX_ATTEMPTS
        )
        self.max_input_chars = max_input_chars
        self._sleep = sleep

    @classmethod
    def from_config_dict(
            cls,
            handle: EmbeddingModelHandle,
            config: Mapping[str, Any],
        ) -> "Embedder":
        """Create an embedder from the ``embedder`` configuration section."""
        policy = RetryPolicy.linear(
            float(config.get("backoff_seconds", DEFAULT_BACKOFF_SECONDS)),
            max_attempts=int(config.get("max_attempts", DEFAULT_MAX_ATTEMPTS)),
        )
        return cls(
            handle,
            retry_policy=policy,
            max_input_chars=int(config.get("max_input_chars", DEFAULT_MAX_INPUT_CHARS)),
        )

    async def embed(self, text: str) -> EmbeddingVector:
        """Embed one text.

        Parameters
        ----------
        text : str
            Text to embed. Only the first ``max_input_chars`` characters are
            sent to the model.

        Returns
        -------
        EmbeddingVector
            The embedding vector.

        Raises
        ------
        EmptyInputError
            If ``text`` is empty or whitespace-only. Raised before any model
            access and never retried.
        EmbeddingError
            If the model handle cannot be acquired (the load error is the
            cause), or if every inference attempt failed (the last attempt's
            error is the cause).
        """
        if not text or not text.strip():
            raise EmptyInputError("Empty text provided for embedding")

        clipped = text[: self.max_input_chars]
        if len(clipped) < len(text):
            logger.debug("Truncated embedding input from %d to %d characters", len(text), len(clipped))

        async def attempt() -> EmbeddingVector:
            model = await self.handle.acquire()
            raw = await self.handle.encode(model, clipped)
            return _validate_vector(raw)

        async def before_retry(exc: BaseException, attempt_number: int) -> None:
            if isinstance(exc, InvalidEmbeddingResultError):
                logger.warning("Embedding model returned an invalid result; resetting model handle")
                await self.handle.reset()

        try:
            return await retry_async(
                attempt,
                self.retry_policy,
                give_up_on=(ModelLoadError,),
                on_retry=before_retry,
                operation_name="Embedding",
                sleep=self._sleep,
            )
        except ModelLoadError as exc:
            raise EmbeddingError(f"Embedding model unavailable: {exc}", cause=exc) from exc
        except RetryExhaustedError as exc:
            raise EmbeddingError(
                f"Embedding failed after {exc.attempts} attempts: {exc.last_error}",
                cause=exc.last_error,
            ) from exc.last_error


__all__ = [
    "DEFAULT_MODEL_NAME",
    "Embedder",
    "HuggingFaceModelLoader",
    "create_model_loader",
]
