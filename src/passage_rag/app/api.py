# passage_rag/app/api.py
from __future__ import annotations

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field
from passage_rag.config import GlobalConfig
from passage_rag.app.container import PassageContainer, build_container
from passage_rag.common.exceptions import DocumentNotFoundError, EmptyDocumentError, PassageRAGError
from passage_rag.common.logging_utils import configure_logging
from passage_rag.retrieval.types import FallbackChunks
import logging
import os
from contextlib import asynccontextmanager

logger = logging.getLogger("passage_rag.api")

HEALTH_CHECK_TEXT = "health check"


class RetrieveRequest(BaseModel):
    document_text: str
    query: str
    top_k: int | None = Field(default=None, ge=0)


class RetrieveResponse(BaseModel):
    chunks: list[str] = Field(default_factory=list)
    degraded: bool = False
    reason: str | None = None


class IngestRequest(BaseModel):
    text: str
    title: str
    file_type: str = "text/plain"


class IngestResponse(BaseModel):
    document_id: str
    chunk_count: int
    relevant_chunks: list[str] = Field(default_factory=list)
    degraded: bool = False


class ContextResponse(BaseModel):
    document_id: str
    context: str


def create_app(container: PassageContainer | None = None) -> FastAPI:
    """Create the HTTP app.

    If ``container`` is ``None``, one is built at startup from the YAML file
    named by the ``PASSAGE_RAG_CONFIG`` environment variable.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "container", None) is None:
            # Use env var so Docker can pass config location
            cfg_path = os.environ.get("PASSAGE_RAG_CONFIG", "/app/config/config.yaml")
            cfg = GlobalConfig.load(cfg_path)
            configure_logging(cfg.logging)
            app.state.container = build_container(cfg)
        yield
        c = app.state.container
        if c.document_store.persist_path:
            c.document_store.persist()
        await c.model_handle.shutdown()

    app = FastAPI(title="Passage RAG API", version="0.1.0", lifespan=lifespan)
    if container is not None:
        app.state.container = container

    @app.get("/health")
    async def health():
        c = app.state.container
        try:
            vector = await c.embedder.embed(HEALTH_CHECK_TEXT)
        except PassageRAGError as e:
            logger.error("Embedding health check failed: %s", e)
            raise HTTPException(
                status_code=503,
                detail={
                    "status": "unavailable",
                    "error": f"{type(e).__name__}: {e}",
                    "model": c.model_handle.status(),
                },
            )
        return {"status": "ok", "dimension": len(vector), "model": c.model_handle.status()}

    @app.post("/v1/retrieve", response_model=RetrieveResponse)
    async def retrieve(req: RetrieveRequest):
        try:
            result = await app.state.container.retriever.retrieve(req.document_text, req.query, req.top_k)
        except Exception:
            logger.exception("Error while handling /v1/retrieve")
            raise
        reason = result.reason.value if isinstance(result, FallbackChunks) else None
        return RetrieveResponse(chunks=result.texts, degraded=result.degraded, reason=reason)

    @app.post("/v1/documents", response_model=IngestResponse)
    async def ingest(req: IngestRequest):
        try:
            result = await app.state.container.ingestion_pipeline.aingest(
                req.text, title=req.title, file_type=req.file_type
            )
        except EmptyDocumentError as e:
            raise HTTPException(status_code=422, detail=str(e))
        except Exception:
            logger.exception("Error while handling /v1/documents")
            raise
        store = app.state.container.document_store
        if store.persist_path:
            store.persist()
        return IngestResponse(
            document_id=result.document_id,
            chunk_count=len(result.chunks),
            relevant_chunks=result.relevant.texts,
            degraded=result.relevant.degraded,
        )

    @app.get("/v1/documents/{document_id}/context", response_model=ContextResponse)
    async def document_context(document_id: str, query: str | None = None, top_k: int = 50):
        try:
            context = await app.state.container.chat_context.abuild_for_document(
                document_id, query=query, top_k=top_k
            )
        except DocumentNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return ContextResponse(document_id=document_id, context=context)

    return app


app = create_app()
