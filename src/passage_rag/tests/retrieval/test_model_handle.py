import asyncio
import threading
import time
from types import SimpleNamespace

import pytest

from passage_rag.common.exceptions import ModelLoadError
from passage_rag.retrieval.embedder import Embedder
from passage_rag.retrieval.model_handle import EmbeddingModelHandle, ModelState, encode_text


class DummyModel:
    """Embedding model stub recording every text it is asked to embed."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.texts = []

    def get_text_embedding(self, text: str):
        self.texts.append(text)
        if self.fail:
            raise RuntimeError("inference failed")
        return [1.0, 0.0, 0.0]


class DummyLoader:
    """
    Blocking loader stub:
    - fails for the first ``failures`` calls
    - sleeps ``delay`` seconds per call to simulate a slow download
    - returns a new DummyModel on success
    """

    def __init__(self, failures: int = 0, delay: float = 0.0, model_fails: bool = False):
        self.failures = failures
        self.delay = delay
        self.model_fails = model_fails
        self.calls = 0
        self.models = []

    def __call__(self):
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.calls <= self.failures:
            raise OSError(f"download failed (call {self.calls})")
        model = DummyModel(fail=self.model_fails)
        self.models.append(model)
        return model


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float):
        self.delays.append(seconds)


def test_acquire_loads_and_warms_up_once():
    loader = DummyLoader()
    handle = EmbeddingModelHandle(loader)

    model = asyncio.run(handle.acquire())

    assert handle.state is ModelState.READY
    assert handle.is_ready
    assert loader.calls == 1
    assert model.texts == ["Test text"]


def test_acquire_when_ready_returns_same_instance_without_reloading():
    loader = DummyLoader()
    handle = EmbeddingModelHandle(loader)

    async def run():
        first = await handle.acquire()
        second = await handle.acquire()
        return first, second

    first, second = asyncio.run(run())

    assert first is second
    assert loader.calls == 1
    assert handle.loads_completed == 1


def test_concurrent_acquire_triggers_a_single_load():
    """
    Ten callers arriving while the model is unloaded should all receive the
    same instance from one load.
    """
    loader = DummyLoader(delay=0.05)
    handle = EmbeddingModelHandle(loader)

    async def run():
        return await asyncio.gather(*(handle.acquire() for _ in range(10)))

    models = asyncio.run(run())

    assert loader.calls == 1
    assert all(m is models[0] for m in models)


def test_load_is_retried_with_fixed_delay():
    sleep = SleepRecorder()
    loader = DummyLoader(failures=2)
    handle = EmbeddingModelHandle(loader, load_retry_delay=1.0, sleep=sleep)

    asyncio.run(handle.acquire())

    assert loader.calls == 3
    assert handle.load_attempts == 3
    assert sleep.delays == [1.0, 1.0]
    assert handle.state is ModelState.READY


def test_load_retries_wait_between_attempts_in_real_time():
    loader = DummyLoader(failures=2)
    handle = EmbeddingModelHandle(loader, load_retry_delay=0.1)

    start = time.monotonic()
    asyncio.run(handle.acquire())
    elapsed = time.monotonic() - start

    assert loader.calls == 3
    assert elapsed >= 0.2


def test_exhausted_load_raises_and_marks_failed():
    sleep = SleepRecorder()
    loader = DummyLoader(failures=10)
    handle = EmbeddingModelHandle(loader, sleep=sleep)

    with pytest.raises(ModelLoadError) as exc_info:
        asyncio.run(handle.acquire())

    assert exc_info.value.attempts == 3
    assert isinstance(exc_info.value.__cause__, OSError)
    assert loader.calls == 3
    assert handle.state is ModelState.FAILED
    assert handle.last_error is exc_info.value
    assert sleep.delays == [1.0, 1.0]


def test_every_waiter_of_a_failed_load_receives_the_error():
    loader = DummyLoader(failures=10, delay=0.01)
    handle = EmbeddingModelHandle(loader, sleep=SleepRecorder())

    async def run():
        return await asyncio.gather(*(handle.acquire() for _ in range(5)), return_exceptions=True)

    results = asyncio.run(run())

    assert loader.calls == 3
    assert all(isinstance(r, ModelLoadError) for r in results)


def test_acquire_after_failure_starts_a_fresh_load():
    loader = DummyLoader(failures=3)
    handle = EmbeddingModelHandle(loader, sleep=SleepRecorder())

    async def run():
        with pytest.raises(ModelLoadError):
            await handle.acquire()
        assert handle.state is ModelState.FAILED
        return await handle.acquire()

    model = asyncio.run(run())

    assert isinstance(model, DummyModel)
    assert loader.calls == 4
    assert handle.state is ModelState.READY
    assert handle.last_error is None


def test_warm_up_failure_does_not_fail_the_load():
    loader = DummyLoader(model_fails=True)
    handle = EmbeddingModelHandle(loader)

    model = asyncio.run(handle.acquire())

    assert handle.state is ModelState.READY
    assert model.texts == ["Test text"]


def test_warm_up_can_be_disabled():
    handle = EmbeddingModelHandle(DummyLoader(), warmup_text=None)

    model = asyncio.run(handle.acquire())

    assert model.texts == []


def test_reset_forces_a_new_load():
    loader = DummyLoader()
    handle = EmbeddingModelHandle(loader)

    async def run():
        first = await handle.acquire()
        await handle.reset()
        assert handle.state is ModelState.UNLOADED
        second = await handle.acquire()
        return first, second

    first, second = asyncio.run(run())

    assert first is not second
    assert loader.calls == 2
    assert handle.loads_completed == 2


def test_cancelled_waiter_does_not_abort_the_shared_load():
    loader = DummyLoader(delay=0.2)
    handle = EmbeddingModelHandle(loader)

    async def run():
        cancelled = asyncio.create_task(handle.acquire())
        other = asyncio.create_task(handle.acquire())
        await asyncio.sleep(0.05)
        cancelled.cancel()
        with pytest.raises(asyncio.CancelledError):
            await cancelled
        return await other

    model = asyncio.run(run())

    assert isinstance(model, DummyModel)
    assert loader.calls == 1
    assert handle.state is ModelState.READY


def test_shutdown_aborts_an_in_flight_load():
    loader = DummyLoader(delay=0.2)
    handle = EmbeddingModelHandle(loader)

    async def run():
        waiter = asyncio.create_task(handle.acquire())
        await asyncio.sleep(0.05)
        await handle.shutdown()
        with pytest.raises(asyncio.CancelledError):
            await waiter

    asyncio.run(run())

    assert handle.state is ModelState.UNLOADED
    assert handle.loads_completed == 0


def test_status_reports_state_and_counters():
    handle = EmbeddingModelHandle(DummyLoader(failures=1), sleep=SleepRecorder())

    assert handle.status() == {
        "state": "unloaded",
        "load_attempts": 0,
        "loads_completed": 0,
        "last_error": None,
    }

    asyncio.run(handle.acquire())

    status = handle.status()
    assert status["state"] == "ready"
    assert status["load_attempts"] == 2
    assert status["loads_completed"] == 1


def test_encode_text_supports_alternative_model_interfaces():
    assert encode_text(SimpleNamespace(embed_query=lambda t: [len(t)]), "abc") == [3]
    assert encode_text(SimpleNamespace(encode=lambda t: [0.5]), "abc") == [0.5]

    with pytest.raises(AttributeError):
        encode_text(object(), "abc")


class InFlightModel:
    """Model stub recording the largest number of overlapping inference calls."""

    def __init__(self, delay: float = 0.02):
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self._guard = threading.Lock()

    def get_text_embedding(self, text: str):
        with self._guard:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        time.sleep(self.delay)
        with self._guard:
            self.active -= 1
        return [1.0, float(len(text))]


class ReleasingLoader(DummyLoader):
    def __init__(self):
        super().__init__()
        self.releases = 0

    def release(self):
        self.releases += 1


def test_always_failing_load_gives_up_after_three_spaced_attempts():
    """
    A loader that never succeeds should be tried exactly three times with the
    configured delay really elapsing between attempts, then leave the handle
    FAILED.
    """
    loader = DummyLoader(failures=100)
    handle = EmbeddingModelHandle(loader, load_retry_delay=0.1)

    start = time.monotonic()
    with pytest.raises(ModelLoadError):
        asyncio.run(handle.acquire())
    elapsed = time.monotonic() - start

    assert handle.state is ModelState.FAILED
    assert handle.load_attempts == 3
    assert loader.calls == 3
    assert elapsed >= 0.2


def test_loader_returning_none_counts_as_a_failed_attempt():
    handle = EmbeddingModelHandle(lambda: None, sleep=SleepRecorder())

    with pytest.raises(ModelLoadError):
        asyncio.run(handle.acquire())

    assert handle.load_attempts == 3
    assert handle.state is ModelState.FAILED
    assert handle.loads_completed == 0


def test_encode_runs_one_inference_at_a_time():
    model = InFlightModel()
    handle = EmbeddingModelHandle(lambda: model, warmup_text=None)

    async def run():
        loaded = await handle.acquire()
        return await asyncio.gather(*(handle.encode(loaded, f"text {i}") for i in range(5)))

    results = asyncio.run(run())

    assert len(results) == 5
    assert model.max_active == 1


def test_handle_can_be_reused_across_event_loops():
    """
    Successive ``asyncio.run`` calls (as made by synchronous wrappers) should
    keep working after the handle's locks were contended on an earlier loop.
    """
    model = InFlightModel(delay=0.01)
    loader_calls = []

    def load():
        loader_calls.append(1)
        return model

    handle = EmbeddingModelHandle(load, warmup_text=None)
    embedder = Embedder(handle)

    async def embed_concurrently():
        return await asyncio.gather(embedder.embed("first"), embedder.embed("second"))

    asyncio.run(embed_concurrently())
    asyncio.run(embed_concurrently())
    asyncio.run(handle.reset())
    vectors = asyncio.run(embed_concurrently())

    assert vectors == [(1.0, 5.0), (1.0, 6.0)]
    assert len(loader_calls) == 2


def test_reset_and_shutdown_release_loader_resources():
    loader = ReleasingLoader()
    handle = EmbeddingModelHandle(loader)

    async def run():
        await handle.acquire()
        await handle.reset()
        await handle.acquire()
        await handle.shutdown()

    asyncio.run(run())

    assert loader.calls == 2
    assert loader.releases == 2
