import asyncio

from passage_rag.app.container import build_container
from passage_rag.config import GlobalConfig
from passage_rag.retrieval.embedder import HuggingFaceModelLoader
from passage_rag.retrieval.model_handle import ModelState


class DummyModel:
    def get_text_embedding(self, text: str):
        return [1.0, float(len(text))]


class DummyLoader:
    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return DummyModel()


def test_container_wires_one_shared_model_handle():
    cfg = GlobalConfig(
        {
            "embedder": {"max_attempts": 2, "max_input_chars": 64, "load_retry_delay": 0},
            "chunking": {"chunk_size": 300, "overlap": 30},
            "retrieval": {"top_k": 3, "initial_top_k": 20},
        }
    )
    loader = DummyLoader()
    container = build_container(cfg, model_loader=loader)

    assert container.embedder.handle is container.model_handle
    assert container.retriever.embedder is container.embedder
    assert container.retriever.chunker.chunk_size == 300
    assert container.retriever.chunker.overlap == 30
    assert container.retriever.top_k == 3
    assert container.embedder.max_input_chars == 64
    assert container.embedder.retry_policy.max_attempts == 2
    assert container.ingestion_pipeline.retriever is container.retriever
    assert container.ingestion_pipeline.store is container.document_store
    assert container.ingestion_pipeline.initial_top_k == 20
    assert container.chat_context.store is container.document_store

    assert container.model_handle.state is ModelState.UNLOADED
    assert loader.calls == 0

    asyncio.run(container.embedder.embed("first"))
    asyncio.run(container.retriever.embedder.embed("second"))

    assert loader.calls == 1


def test_container_builds_configured_loader_without_loading():
    container = build_container(GlobalConfig({"embedder": {"model_name": "dummy-model"}}))

    handle = container.model_handle

    assert isinstance(handle._loader, HuggingFaceModelLoader)
    assert handle._loader.model_name == "dummy-model"
    assert handle.state is ModelState.UNLOADED
