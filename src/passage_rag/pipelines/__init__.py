"""passage_rag.pipelines

Pipeline orchestration components built on the retrieval layer.

Pipelines are lightweight and stateless beyond their configured components,
making them safe to reuse across requests.

Modules
-------
ingestion_pipeline
    Chunk an uploaded document, select its initially relevant chunks, store it.
chat_context
    Build chat prompt context from stored chunk lists.
"""
