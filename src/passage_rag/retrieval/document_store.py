"""passage_rag.retrieval.document_store

Document store and store factory utilities.

Documents are persisted as JSON-serialisable dictionaries in a LlamaIndex
key-value store, keyed by document id. Each record holds the full text, the
full chunk list and the chunk subset found relevant at ingestion time, so
that later retrieval (e.g. chat) can re-use stored chunks instead of
re-chunking.

Classes
-------
DocumentRecordStore
    CRUD wrapper over a LlamaIndex key-value store.

Functions
---------
create_kvstore
    Create a LlamaIndex key-value store by backend kind.
create_document_store
    Create a :class:`DocumentRecordStore` by backend kind.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from llama_index.core.storage.kvstore import SimpleKVStore
from llama_index.core.storage.kvstore.types import BaseKVStore

from passage_rag.common import StoredDocument
from passage_rag.common.exceptions import DocumentNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION = "documents"


def create_kvstore(
        kind: str = "simple",
        *,
        persist_path: Optional[str] = None,
    ) -> BaseKVStore:
    """Create a LlamaIndex key-value store by backend kind.

    Parameters
    ----------
    kind : {"simple"}, optional
        Backend to use. ``"simple"`` keeps data in memory and persists it as a
        JSON file via :class:`llama_index.core.storage.kvstore.SimpleKVStore`.
    persist_path : str or None, optional
        If given and the file exists, the store is loaded from it.

    Returns
    -------
    BaseKVStore
        Instantiated key-value store.

    Raises
    ------
    ValueError
        If ``kind`` does not correspond to a supported backend.
    """
    k = (kind or "").lower()
    if k != "simple":
        raise ValueError(f"Unknown storage kind: {kind!r}. Use 'simple'.")

    if persist_path and Path(persist_path).exists():
        logger.info("Loading document store from %s", persist_path)
        return SimpleKVStore.from_persist_path(str(persist_path))

    return SimpleKVStore()


class DocumentRecordStore:
    """Persist and look up :class:`~passage_rag.common.schemas.StoredDocument` records.

    Parameters
    ----------
    kvstore : BaseKVStore
        Underlying LlamaIndex key-value store.
    collection : str, optional
        Collection name used for document records. Defaults to ``"documents"``.
    persist_path : str or None, optional
        Default path used by :meth:`persist`.
    """

    def __init__(
            self,
            kvstore: BaseKVStore,
            *,
            collection: str = DEFAULT_COLLECTION,
            persist_path: Optional[str] = None,
        ):
        self.kvstore = kvstore
        self.collection = collection
        self.persist_path = persist_path

    def add(self, document: StoredDocument) -> str:
        """Insert or replace a document and return its id."""
        self.kvstore.put(document.id, document.to_dict(), collection=self.collection)
        return document.id

    def get(self, document_id: str) -> Optional[StoredDocument]:
        """Return the document with ``document_id``, or ``None``."""
        data = self.kvstore.get(document_id, collection=self.collection)
        if data is None:
            return None
        return StoredDocument.from_dict(data)

    def require(self, document_id: str) -> StoredDocument:
        """Return the document with ``document_id``.

        Raises
        ------
        DocumentNotFoundError
            If no such document exists.
        """
        document = self.get(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Unknown document id: {document_id!r}")
        return document

    def list_documents(self) -> List[StoredDocument]:
        """Return every stored document, oldest ``processing_date`` first."""
        records = self.kvstore.get_all(collection=self.collection)
        documents = [StoredDocument.from_dict(data) for data in records.values()]
        documents.sort(key=lambda d: d.metadata.get("processing_date") or "")
        return documents

    def delete(self, document_id: str) -> bool:
        """Delete a document. Returns ``True`` if it existed."""
        return self.kvstore.delete(document_id, collection=self.collection)

    def persist(self, persist_path: Optional[str] = None) -> None:
        """Write the store to disk.

        Raises
        ------
        ValueError
            If no path is given and none was configured.
        TypeError
            If the underlying store cannot be persisted.
        """
        path = persist_path or self.persist_path
        if not path:
            raise ValueError("No persist_path given or configured for the document store.")
        if not hasattr(self.kvstore, "persist"):
            raise TypeError(f"{type(self.kvstore).__name__} does not support persist()")

        Path(path).parent.mkdir(parents=True, exist_ok=True)
        self.kvstore.persist(str(path))
        logger.info("Persisted document store to %s", path)


def create_document_store(
        kind: str = "simple",
        *,
        persist_path: Optional[str] = None,
        collection: str = DEFAULT_COLLECTION,
    ) -> DocumentRecordStore:
    """Create a :class:`DocumentRecordStore`.

    Parameters
    ----------
    kind : {"simple"}, optional
        Key-value backend. Defaults to ``"simple"``.
    persist_path : str or None, optional
        JSON file to load from (if it exists) and to persist to.
    collection : str, optional
        Collection name for document records.

    Returns
    -------
    DocumentRecordStore
        Ready-to-use document store.
    """
    kvstore = create_kvstore(kind, persist_path=persist_path)
    return DocumentRecordStore(kvstore, collection=collection, persist_path=persist_path)


__all__ = [
    "DEFAULT_COLLECTION",
    "DocumentRecordStore",
    "create_document_store",
    "create_kvstore",
]
