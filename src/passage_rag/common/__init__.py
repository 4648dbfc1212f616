"""
Common building blocks shared across the retrieval stack.

This package provides small, widely-used primitives (chunk and document
schemas, the exception hierarchy, the retry loop) intended to be imported by
multiple layers of the system.

Classes
-------
Chunk
    Contiguous slice of a document in reading order.
StoredDocument
    Document persisted with its chunk lists.
RetryPolicy
    Attempt budget plus backoff for :func:`retry_async`.

Attributes
----------
DocId : TypeAlias
    Type alias for document identifiers.
EmbeddingVector : TypeAlias
    Immutable embedding vector.

See Also
--------
passage_rag.common.exceptions
    Error types raised by the embedding subsystem and the document store.
"""
from __future__ import annotations
from typing import TypeAlias

from .schemas import (
    Chunk,
    EmbeddingVector,
    StoredDocument,
)
from .retry import RetryPolicy, RetryExhaustedError, retry_async

DocId: TypeAlias = str

__all__ = [
    "Chunk",
    "EmbeddingVector",
    "StoredDocument",
    "RetryPolicy",
    "RetryExhaustedError",
    "retry_async",
    "DocId",
]
