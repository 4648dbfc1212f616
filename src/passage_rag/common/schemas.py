"""passage_rag.common.schemas

Core data schemas shared across the retrieval stack.

These lightweight dataclasses describe the canonical shapes for document
chunks and for documents persisted by the storage collaborator. They are
passed between chunking, embedding, ranking, ingestion and chat-context
components.

Classes
-------
Chunk
    A contiguous, bounded-length slice of a document's text.
StoredDocument
    A document persisted together with its chunk lists.

Attributes
----------
EmbeddingVector : TypeAlias
    Immutable embedding vector produced by the embedder.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, TypeAlias
from uuid import uuid4

EmbeddingVector: TypeAlias = tuple[float, ...]


@dataclass(frozen=True)
class Chunk:
    """A contiguous chunk of a document in reading order.

    Attributes
    ----------
    index : int
        Zero-based position of the chunk in the document.
    text : str
        Chunk text; words are joined by single spaces.
    overlap_words : int
        Number of leading words carried over from the previous chunk. Always
        ``0`` for the first chunk.
    """
    index: int
    text: str
    overlap_words: int = 0


@dataclass
class StoredDocument:
    """A document as persisted by the document store.

    Attributes
    ----------
    title : str
        Human-readable title (typically the uploaded file name).
    content : str
        Full extracted text of the document.
    file_type : str
        Declared MIME type of the original upload (e.g. ``"application/pdf"``).
    id : str
        Unique identifier for the document. Defaults to a random UUID4 string.
    metadata : Dict[str, Any]
        Ingestion metadata. The ingestion pipeline writes ``original_size``,
        ``processing_date``, ``chunks``, ``relevant_chunks`` and ``ranking``.
    """
    title: str
    content: str
    file_type: str
    id: str = field(default_factory=lambda: str(uuid4()))
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def chunks(self) -> List[str]:
        """Return the stored chunk texts, or an empty list."""
        return list(self.metadata.get("chunks") or [])

    @property
    def relevant_chunks(self) -> List[str]:
        """Return the initially relevant chunk texts, or an empty list."""
        return list(self.metadata.get("relevant_chunks") or [])

    @property
    def processing_date(self) -> Optional[datetime]:
        raw = self.metadata.get("processing_date")
        if not raw:
            return None
        return datetime.fromisoformat(raw)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "file_type": self.file_type,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredDocument":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            content=data.get("content", ""),
            file_type=data.get("file_type", "text/plain"),
            metadata=dict(data.get("metadata") or {}),
        )


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()
