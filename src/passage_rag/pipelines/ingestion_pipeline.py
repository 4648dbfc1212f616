"""passage_rag.pipelines.ingestion_pipeline

Document ingestion: chunk, pick initially relevant chunks, persist.

An uploaded document (already converted to text by the extraction
collaborator) is split into chunks, the chunks most relevant to the opening
of the document are selected once, and the document is stored together with
both chunk lists.

Classes
-------
IngestionResult
    Outcome of ingesting one document.
DocumentIngestionPipeline
    Orchestrates chunking → relevance ranking → persistence.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from passage_rag.common import Chunk, StoredDocument
from passage_rag.common.exceptions import EmptyDocumentError
from passage_rag.common.schemas import utc_now_iso
from passage_rag.retrieval.document_store import DocumentRecordStore
from passage_rag.retrieval.retriever import DocumentRetriever
from passage_rag.retrieval.types import FallbackChunks, RetrievalResult

logger = logging.getLogger(__name__)

DEFAULT_INITIAL_TOP_K = 100
DEFAULT_QUERY_CONTEXT_CHARS = 1000

_NEWLINES = re.compile(r"\n+")


def build_query_context(text: str, max_chars: int = DEFAULT_QUERY_CONTEXT_CHARS) -> str:
    """Return the opening of ``text`` as a single-line query.

    The first ``max_chars`` characters are taken, runs of newlines are
    replaced by a single space and the result is stripped.
    """
    return _NEWLINES.sub(" ", text[:max_chars]).strip()


@dataclass(frozen=True)
class IngestionResult:
    """Outcome of ingesting one document.

    Attributes
    ----------
    document_id : str
        Id under which the document was stored.
    chunks : list[Chunk]
        All chunks of the document.
    relevant : RetrievalResult
        Chunks selected as initially relevant.
    """

    document_id: str
    chunks: List[Chunk]
    relevant: RetrievalResult

    @property
    def context(self) -> str:
        """Relevant chunk texts joined for display or prompting."""
        return self.relevant.join()


class DocumentIngestionPipeline:
    """Ingest extracted document text into the document store.

    The pipeline is stateless beyond its configured components and safe to
    reuse across documents.

    Parameters
    ----------
    retriever : DocumentRetriever
        Retriever providing the chunker and the relevance ranking.
    store : DocumentRecordStore
        Store receiving the ingested documents.
    initial_top_k : int, optional
        Number of initially relevant chunks to keep. Defaults to ``100``.
    query_context_chars : int, optional
        Length of the document opening used as the relevance query. Defaults
        to ``1000``.
    """

    def __init__(
            self,
            retriever: DocumentRetriever,
            store: DocumentRecordStore,
            *,
            initial_top_k: int = DEFAULT_INITIAL_TOP_K,
            query_context_chars: int = DEFAULT_QUERY_CONTEXT_CHARS,
        ):
        self.retriever = retriever
        self.store = store
        self.initial_top_k = initial_top_k
        self.query_context_chars = query_context_chars

    async def aingest(
            self,
            text: str,
            *,
            title: str,
            file_type: str = "text/plain",
            metadata: Optional[Dict[str, Any]] = None,
        ) -> IngestionResult:
        """Ingest one document.

        The execution order is:
        1. Split the text into chunks.
        2. Rank the chunks against the document's opening.
        3. Store the document with all chunks and the relevant subset.

        Parameters
        ----------
        text : str
            Extracted document text.
        title : str
            Document title (typically the file name).
        file_type : str, optional
            Declared MIME type of the upload.
        metadata : dict or None, optional
            Extra metadata merged into the stored record.

        Returns
        -------
        IngestionResult
            Stored id, chunks and the relevant chunk subset.

        Raises
        ------
        EmptyDocumentError
            If ``text`` has no content after stripping.
        """
        if not text or not text.strip():
            raise EmptyDocumentError(f"No text content found in {title!r}")

        chunks = self.retriever.chunker.split(text)
        query = build_query_context(text, self.query_context_chars)
        relevant = await self.retriever.retrieve_from_chunks(chunks, query, top_k=self.initial_top_k)

        ranking = "ranked"
        if isinstance(relevant, FallbackChunks):
            ranking = f"fallback:{relevant.reason.value}"

        record = StoredDocument(
            title=title,
            content=text,
            file_type=file_type,
            metadata={
                **(metadata or {}),
                "original_size": len(text.encode("utf-8")),
                "processing_date": utc_now_iso(),
                "chunks": [chunk.text for chunk in chunks],
                "relevant_chunks": relevant.texts,
                "ranking": ranking,
            },
        )
        document_id = self.store.add(record)

        logger.info(
            "Ingested %r as %s: %d chunks, %d relevant (%s)",
            title, document_id, len(chunks), len(relevant), ranking,
        )
        return IngestionResult(document_id=document_id, chunks=chunks, relevant=relevant)

    def ingest(self, text: str, **kwargs: Any) -> IngestionResult:
        """Synchronous wrapper around :meth:`aingest` for scripts.

        Each call runs its own event loop via :func:`asyncio.run`, so it must
        not be called from inside a running loop. The shared model handle
        rebinds its locks to each new loop, so repeated calls on one container
        are fine.
        """
        return asyncio.run(self.aingest(text, **kwargs))


__all__ = [
    "DocumentIngestionPipeline",
    "IngestionResult",
    "build_query_context",
]
