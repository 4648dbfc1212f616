"""passage_rag.common.exceptions

Exception hierarchy for the retrieval stack.

Classes
-------
PassageRAGError
    Base class for all errors raised by this package.
ModelLoadError
    The embedding model could not be loaded within the retry budget.
EmbeddingError
    A text could not be embedded within the retry budget.
EmptyInputError
    Empty or whitespace-only text was passed to the embedder.
InvalidEmbeddingResultError
    The model returned a structurally invalid result.
EmptyDocumentError
    A document without text content was submitted for ingestion.
DocumentNotFoundError
    A document id is unknown to the document store.
"""

from typing import Optional


class PassageRAGError(Exception):
    """Base class for all errors raised by :mod:`passage_rag`."""


class ModelLoadError(PassageRAGError):
    """The embedding model could not be loaded.

    Parameters
    ----------
    message : str
        Human-readable description.
    attempts : int
        Number of load attempts made before giving up.
    """

    def __init__(self, message: str, *, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class EmbeddingError(PassageRAGError):
    """A text could not be embedded.

    Parameters
    ----------
    message : str
        Human-readable description.
    cause : BaseException or None, optional
        The last underlying error.
    """

    def __init__(self, message: str, *, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class EmptyInputError(EmbeddingError):
    """Empty or whitespace-only text was passed to the embedder."""


class InvalidEmbeddingResultError(EmbeddingError):
    """The model returned no usable output for an inference call."""


class EmptyDocumentError(PassageRAGError, ValueError):
    """A document without text content was submitted for ingestion."""


class DocumentNotFoundError(PassageRAGError, KeyError):
    """A document id is unknown to the document store."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "document not found"


__all__ = [
    "PassageRAGError",
    "ModelLoadError",
    "EmbeddingError",
    "EmptyInputError",
    "InvalidEmbeddingResultError",
    "EmptyDocumentError",
    "DocumentNotFoundError",
]
