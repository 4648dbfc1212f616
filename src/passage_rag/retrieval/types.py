"""passage_rag.retrieval.types

Shared type definitions for the retrieval layer.

This module defines the retrieval result types, which make degraded mode
explicit, and the protocol the orchestrator expects from an embedder.

Classes
-------
TextEmbedder
    Protocol defining the minimal embedder interface.
DegradedReason
    Why retrieval fell back to the first chunks.
RetrievalResult
    Ordered chunk subset returned by retrieval.
RankedChunks
    Result of a full similarity ranking.
FallbackChunks
    Result of degraded retrieval (first chunks, no ranking).
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Protocol, Sequence

from passage_rag.common import Chunk, EmbeddingVector

CHUNK_SEPARATOR = "\n\n"


class TextEmbedder(Protocol):
    """Protocol defining the embedder interface used by the orchestrator."""

    async def embed(self, text: str) -> EmbeddingVector:
        """Embed a single text.

        Parameters
        ----------
        text : str
            Text to embed.

        Returns
        -------
        EmbeddingVector
            Embedding vector.
        """
        ...


class DegradedReason(str, Enum):
    QUERY_EMBEDDING_FAILED = "query_embedding_failed"
    NO_CHUNK_EMBEDDINGS = "no_chunk_embeddings"


@dataclass(frozen=True)
class RetrievalResult:
    """Ordered chunk subset, in original document order.

    Attributes
    ----------
    chunks : Sequence[Chunk]
        Selected chunks, at most ``top_k`` of them.
    """

    chunks: Sequence[Chunk]

    @property
    def texts(self) -> List[str]:
        return [chunk.text for chunk in self.chunks]

    @property
    def degraded(self) -> bool:
        return False

    def join(self, separator: str = CHUNK_SEPARATOR) -> str:
        """Join the chunk texts for prompt embedding."""
        return separator.join(self.texts)

    def __len__(self) -> int:
        return len(self.chunks)


@dataclass(frozen=True)
class RankedChunks(RetrievalResult):
    """Chunks selected by similarity ranking."""


@dataclass(frozen=True)
class FallbackChunks(RetrievalResult):
    """The first chunks of the document, returned because ranking was unavailable.

    Attributes
    ----------
    reason : DegradedReason
        Why ranking was skipped.
    """

    reason: DegradedReason = DegradedReason.QUERY_EMBEDDING_FAILED

    @property
    def degraded(self) -> bool:
        return True


__all__ = [
    "CHUNK_SEPARATOR",
    "DegradedReason",
    "FallbackChunks",
    "RankedChunks",
    "RetrievalResult",
    "TextEmbedder",
]
