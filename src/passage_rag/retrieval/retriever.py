"""passage_rag.retrieval.retriever

Retrieval orchestration: chunk, embed, rank.

:class:`DocumentRetriever` composes the chunker, the embedder and the ranker.
It never lets an embedding failure reach the caller: if the query cannot be
embedded, or no chunk can, it returns the first ``top_k`` chunks as a
:class:`~passage_rag.retrieval.types.FallbackChunks` result and logs the
degradation. Callers that need hard-fail semantics use
:class:`~passage_rag.retrieval.embedder.Embedder` directly.

Chunks are embedded sequentially; the model handle is a single shared
resource that is not assumed to be safe for concurrent inference.

Classes
-------
DocumentRetriever
    Rank a document's chunks against a query.
"""

import logging
from typing import List, Optional, Sequence, Union

from passage_rag.common import Chunk, EmbeddingVector
from passage_rag.common.exceptions import PassageRAGError
from passage_rag.retrieval.ranker import rank
from passage_rag.retrieval.text_splitter import TextChunker
from passage_rag.retrieval.types import (
    DegradedReason,
    FallbackChunks,
    RankedChunks,
    RetrievalResult,
    TextEmbedder,
)

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5


def as_chunks(chunks: Sequence[Union[Chunk, str]]) -> List[Chunk]:
    """Normalise a chunk list, accepting plain strings as stored by the document store."""
    out: List[Chunk] = []
    for i, chunk in enumerate(chunks):
        if isinstance(chunk, Chunk):
            out.append(chunk)
        elif isinstance(chunk, str):
            out.append(Chunk(index=i, text=chunk))
        else:
            raise TypeError(f"Expected Chunk or str at position {i}, got {type(chunk).__name__}")
    return out


class DocumentRetriever:
    """Select the chunks of a document most similar to a query.

    Parameters
    ----------
    embedder : TextEmbedder
        Embedder used for the query and for every chunk.
    chunker : TextChunker or None, optional
        Splitter for raw document text. Defaults to 1000-character chunks with
        a 200-character overlap.
    top_k : int, optional
        Default number of chunks to return. Defaults to ``5``.
    """

    def __init__(
            self,
            embedder: TextEmbedder,
            *,
            chunker: Optional[TextChunker] = None,
            top_k: int = DEFAULT_TOP_K,
        ):
        if top_k < 0:
            raise ValueError(f"top_k must be >= 0, got {top_k}")
        self.embedder = embedder
        self.chunker = chunker or TextChunker()
        self.top_k = top_k

    async def retrieve(
            self,
            document_text: str,
            query: str,
            top_k: Optional[int] = None,
        ) -> RetrievalResult:
        """Chunk ``document_text`` and return the chunks most relevant to ``query``.

        Parameters
        ----------
        document_text : str
            Extracted document text.
        query : str
            Natural-language query.
        top_k : int or None, optional
            Number of chunks to return. Defaults to the retriever's ``top_k``.

        Returns
        -------
        RetrievalResult
            :class:`RankedChunks` in document order, or :class:`FallbackChunks`
            holding the first ``top_k`` chunks when ranking was unavailable.
        """
        chunks = self.chunker.split(document_text)
        return await self.retrieve_from_chunks(chunks, query, top_k=top_k)

    async def retrieve_from_chunks(
            self,
            chunks: Sequence[Union[Chunk, str]],
            query: str,
            top_k: Optional[int] = None,
        ) -> RetrievalResult:
        """Rank an already-chunked document against ``query``.

        Parameters
        ----------
        chunks : Sequence[Chunk or str]
            Chunks in document order. Plain strings are indexed by position.
        query : str
            Natural-language query.
        top_k : int or None, optional
            Number of chunks to return. Defaults to the retriever's ``top_k``.

        Returns
        -------
        RetrievalResult
            Selected chunks in document order.

        Raises
        ------
        ValueError
            If ``top_k`` is negative.
        """
        k = self.top_k if top_k is None else top_k
        if k < 0:
            raise ValueError(f"top_k must be >= 0, got {k}")

        candidates = as_chunks(chunks)
        if not candidates:
            return RankedChunks(chunks=[])

        try:
            query_vector = await self.embedder.embed(query)
        except PassageRAGError as exc:
            logger.warning("Query embedding failed: %s", exc)
            return self._fallback(candidates, k, DegradedReason.QUERY_EMBEDDING_FAILED)

        embedded: List[Chunk] = []
        vectors: List[EmbeddingVector] = []
        for position, chunk in enumerate(candidates, start=1):
            logger.debug("Embedding chunk %d/%d", position, len(candidates))
            try:
                vector = await self.embedder.embed(chunk.text)
            except PassageRAGError as exc:
                logger.warning("Dropping chunk %d from ranking: %s", chunk.index, exc)
                continue
            embedded.append(chunk)
            vectors.append(vector)

        if not embedded:
            return self._fallback(candidates, k, DegradedReason.NO_CHUNK_EMBEDDINGS)

        selected = rank(query_vector, vectors, k)
        logger.debug(
            "Ranked %d/%d embedded chunks, selected %d",
            len(embedded), len(candidates), len(selected),
        )
        return RankedChunks(chunks=[embedded[i] for i in selected])

    @staticmethod
    def _fallback(chunks: List[Chunk], top_k: int, reason: DegradedReason) -> FallbackChunks:
        logger.warning(
            "Ranking degraded (%s); returning the first %d of %d chunks",
            reason.value, min(top_k, len(chunks)), len(chunks),
        )
        return FallbackChunks(chunks=chunks[:top_k], reason=reason)


__all__ = ["DEFAULT_TOP_K", "DocumentRetriever", "as_chunks"]
