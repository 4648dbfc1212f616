"""passage_rag

Passage retrieval for document chat.

This package turns extracted document text into the passages most relevant
to a query: it chunks the text, embeds the chunks and the query with a
shared, lazily-loaded sentence-embedding model, and ranks chunks by cosine
similarity. When embedding is unavailable it degrades to the first chunks of
the document instead of failing.

Attributes
----------
__version__ : str
    Package version string. Defaults to ``"0.0.0-dev"`` when package metadata is
    unavailable.

Modules
-------
config
    Global configuration loader and cached accessors.
app
    Application container, composition root and HTTP surface.
pipelines
    Document ingestion and chat-context assembly.
retrieval
    Chunking, model handle, embedding, ranking, retrieval and document store.
common
    Shared schemas, exceptions and the retry loop.

Exports
-------
GlobalConfig
    Global configuration loader and accessor.
PassageContainer
    Cached runtime component container for applications.
build_container
    Factory function to construct a configured :class:`~passage_rag.app.container.PassageContainer`.
DocumentRetriever
    Chunk, embed and rank a document against a query.
Chunk
    Contiguous slice of a document in reading order.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("passage-rag")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from .config import GlobalConfig
from .app.container import PassageContainer, build_container
from .retrieval.retriever import DocumentRetriever
from .common import Chunk

__all__ = [
    "__version__",
    "GlobalConfig",
    "PassageContainer",
    "build_container",
    "DocumentRetriever",
    "Chunk",
]
