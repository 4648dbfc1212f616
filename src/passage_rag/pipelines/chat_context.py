"""passage_rag.pipelines.chat_context

Prompt context for chatting with stored documents.

Chat re-uses the chunk lists persisted at ingestion time instead of
re-chunking the document text.

Classes
-------
ChatContextBuilder
    Builds the document context string placed into a chat prompt.
"""

import logging
from typing import Optional

from passage_rag.retrieval.document_store import DocumentRecordStore
from passage_rag.retrieval.retriever import DocumentRetriever
from passage_rag.retrieval.types import CHUNK_SEPARATOR

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENT_TOP_K = 50
DEFAULT_CHUNKS_PER_DOCUMENT = 10
DEFAULT_FALLBACK_CHARS = 5000
DOCUMENT_SEPARATOR = "\n\n=== Next document ===\n\n"


class ChatContextBuilder:
    """Build chat context from stored documents.

    Parameters
    ----------
    store : DocumentRecordStore
        Store holding the ingested documents.
    retriever : DocumentRetriever
        Retriever used to rank stored chunks against a chat query.
    """

    def __init__(self, store: DocumentRecordStore, retriever: DocumentRetriever):
        self.store = store
        self.retriever = retriever

    async def abuild_for_document(
            self,
            document_id: str,
            query: Optional[str] = None,
            top_k: int = DEFAULT_DOCUMENT_TOP_K,
        ) -> str:
        """Return the context for chatting with one document.

        With a non-empty ``query`` the stored chunks are ranked against it;
        otherwise the first ``top_k`` stored chunks are used. A document stored
        without chunks contributes its full content.

        Raises
        ------
        DocumentNotFoundError
            If ``document_id`` is unknown.
        """
        document = self.store.require(document_id)
        chunks = document.chunks
        if not chunks:
            return document.content

        if query and query.strip():
            result = await self.retriever.retrieve_from_chunks(chunks, query, top_k=top_k)
            return result.join()

        return CHUNK_SEPARATOR.join(chunks[:top_k])

    def build_for_all(
            self,
            per_document: int = DEFAULT_CHUNKS_PER_DOCUMENT,
            fallback_chars: int = DEFAULT_FALLBACK_CHARS,
        ) -> str:
        """Return the context for chatting with every stored document.

        Each document contributes its first ``per_document`` chunks, or the
        first ``fallback_chars`` characters of its content when it has no
        stored chunks.
        """
        parts = []
        for document in self.store.list_documents():
            chunks = document.chunks
            if chunks:
                parts.append(CHUNK_SEPARATOR.join(chunks[:per_document]))
            else:
                parts.append(document.content[:fallback_chars])

        logger.debug("Built chat context from %d documents", len(parts))
        return DOCUMENT_SEPARATOR.join(parts)


__all__ = ["ChatContextBuilder", "DOCUMENT_SEPARATOR"]
