"""
Retrieval layer.

This package covers everything needed to turn document text into ranked
passages for a query: chunking, the shared embedding model handle, the
retrying embedder, cosine-similarity ranking, the retrieval orchestrator,
and the document store used to persist chunk lists.

Submodules
----------
text_splitter
    Split text into overlapping, character-bounded chunks.
model_handle
    Lazily-initialised shared handle to the embedding model.
embedder
    Model loaders and the retrying single-text embedder.
ranker
    Cosine similarity and top-K selection in document order.
retriever
    Retrieval orchestration with graceful fallback.
types
    Retrieval result types and the embedder protocol.
document_store
    Key-value document store keyed by document id.
"""
