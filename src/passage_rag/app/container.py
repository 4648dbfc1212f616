"""passage_rag.app.container

Composition root for the retrieval stack.

This module is the single place where concrete implementations are wired
together from configuration (model loader, shared model handle, embedder,
retriever, document store, and pipelines). Components are constructed lazily
and cached on first access, so one container owns exactly one embedding model
handle for the lifetime of the process that built it.

Notes
-----
- Keep this module importable with minimal side effects:
  - do not download models at import time
  - do not read files at import time
  - construct expensive objects lazily (cached on first access)

- The model itself is loaded on the first embedding request, not when the
  handle is constructed.

Examples
--------
>>> from passage_rag.config import GlobalConfig
>>> from passage_rag.app.container import build_container
>>> cfg = GlobalConfig.load("config.yaml")
>>> c = build_container(cfg)
>>> result = c.ingestion_pipeline.ingest(text, title="notes.txt")
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from typing import Any, Callable, Mapping, Optional


@dataclass(frozen=True)
class PassageContainer:
    """Holds the configured, cached runtime components for the application.

    Parameters
    ----------
    config : Any
        Loaded global configuration object (typically :class:`passage_rag.config.GlobalConfig`).
    model_loader : Callable[[], Any] or None, optional
        Overrides the loader built from ``config.embedder``; used by tests
        and by callers that construct the model themselves.
    """

    config: Any
    model_loader: Optional[Callable[[], Any]] = None

    @cached_property
    def model_handle(self) -> Any:
        """Return the shared embedding model handle.

        Returns
        -------
        EmbeddingModelHandle
            Handle configured from the ``embedder`` section.
        """
        from passage_rag.retrieval.embedder import create_model_loader
        from passage_rag.retrieval.model_handle import DEFAULT_WARMUP_TEXT, EmbeddingModelHandle

        section = _as_mapping(self.config.embedder)
        loader = self.model_loader or create_model_loader(section)

        return EmbeddingModelHandle(
            loader,
            max_load_attempts=int(section.get("max_load_attempts", 3)),
            load_retry_delay=float(section.get("load_retry_delay", 1.0)),
            warmup_text=section.get("warmup_text", DEFAULT_WARMUP_TEXT),
        )

    @cached_property
    def embedder(self) -> Any:
        """Return the embedder bound to the shared model handle."""
        from passage_rag.retrieval.embedder import Embedder

        return Embedder.from_config_dict(self.model_handle, _as_mapping(self.config.embedder))

    @cached_property
    def chunker(self) -> Any:
        """Return the text chunker configured from the ``chunking`` section."""
        from passage_rag.retrieval.text_splitter import TextChunker

        section = _as_mapping(self.config.chunking)
        return TextChunker(chunk_size=section["chunk_size"], overlap=section["overlap"])

    @cached_property
    def retriever(self) -> Any:
        """Return the retrieval orchestrator.

        Returns
        -------
        DocumentRetriever
            Retriever using :attr:`embedder` and :attr:`chunker`.
        """
        from passage_rag.retrieval.retriever import DocumentRetriever

        section = _as_mapping(self.config.retrieval)
        return DocumentRetriever(self.embedder, chunker=self.chunker, top_k=section["top_k"])

    @cached_property
    def document_store(self) -> Any:
        """Return the document store configured from the ``storage`` section."""
        from passage_rag.retrieval.document_store import create_document_store

        section = _as_mapping(self.config.storage)
        return create_document_store(
            section.get("type", "simple"),
            persist_path=section.get("persist_path"),
        )

    @cached_property
    def ingestion_pipeline(self) -> Any:
        """Return the document ingestion pipeline."""
        from passage_rag.pipelines.ingestion_pipeline import DocumentIngestionPipeline

        section = _as_mapping(self.config.retrieval)
        return DocumentIngestionPipeline(
            self.retriever,
            self.document_store,
            initial_top_k=section["initial_top_k"],
            query_context_chars=section["query_context_chars"],
        )

    @cached_property
    def chat_context(self) -> Any:
        """Return the chat context builder."""
        from passage_rag.pipelines.chat_context import ChatContextBuilder

        return ChatContextBuilder(self.document_store, self.retriever)


def build_container(config: Any, model_loader: Optional[Callable[[], Any]] = None) -> PassageContainer:
    """Create a :class:`~passage_rag.app.container.PassageContainer`.

    This function is intentionally small so it can serve as a single entry point
    for FastAPI startup hooks, CLI scripts, and tests.

    Parameters
    ----------
    config : Any
        Loaded global configuration object (typically :class:`passage_rag.config.GlobalConfig`).
    model_loader : Callable[[], Any] or None, optional
        Optional model loader overriding the configured one.

    Returns
    -------
    PassageContainer
        Container instance with cached component accessors.
    """

    return PassageContainer(config=config, model_loader=model_loader)


def _as_mapping(obj: Any) -> Mapping[str, Any]:
    """Coerce an object into a mapping.

    Parameters
    ----------
    obj : Any
        Object to interpret as a mapping. If ``obj`` is already a mapping it is
        returned as-is. If it has a ``__dict__``, that dictionary is returned.

    Returns
    -------
    Mapping[str, Any]
        A dictionary-like view of ``obj``.

    Raises
    ------
    TypeError
        If ``obj`` cannot be interpreted as a mapping.
    """
    if isinstance(obj, Mapping):
        return obj

    if hasattr(obj, "__dict__"):
        return dict(vars(obj))

    raise TypeError(f"Expected mapping type but got {type(obj)}")


__all__ = ["PassageContainer", "build_container"]
