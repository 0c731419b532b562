"""
Tests for the Refresh Scheduler: atomic swap, failure isolation, single-flight
"""
import asyncio
import threading

import pytest

from acolyt.errors import ConcurrentRefreshSkipped
from acolyt.rag.chunk_store import KnowledgeChunk
from acolyt.rag.refresh import RefreshOutcome, RefreshScheduler, RefreshState

from conftest import FakeEmbedder


def _length_vector(text):
    return [float(len(text)), 1.0]


def _scheduler(store, embedder, **kwargs):
    kwargs.setdefault("embed_attempts", 1)
    return RefreshScheduler(store, embedder, interval=3600, retry_min_wait=0, retry_max_wait=0, **kwargs)


def _seed_notes(store, count):
    for i in range(count):
        store.append("alice", f"training note {i}")


def test_refresh_rebuilds_store_and_file(store):
    _seed_notes(store, 3)
    embedder = FakeEmbedder(fn=_length_vector)
    scheduler = _scheduler(store, embedder)

    outcome = asyncio.run(scheduler.tick())

    assert outcome is RefreshOutcome.REFRESHED
    assert store.count == 3
    assert len(embedder.calls) == 3
    assert store.load() == store.snapshot()
    assert store.last_update is not None
    assert scheduler.state is RefreshState.IDLE


def test_failure_on_chunk_three_of_five_keeps_previous_set(store):
    old = [KnowledgeChunk("old knowledge", (1.0, 0.0))]
    store.save(old)
    store.replace(old)
    with open(store.embeddings_path, encoding="utf-8") as f:
        file_before = f.read()
    before = store.snapshot()

    _seed_notes(store, 5)
    embedder = FakeEmbedder(fn=_length_vector)
    embedder.fail_calls = {3}
    scheduler = _scheduler(store, embedder)

    outcome = asyncio.run(scheduler.tick())

    assert outcome is RefreshOutcome.FAILED
    assert store.snapshot() == before
    assert store.snapshot() is before
    with open(store.embeddings_path, encoding="utf-8") as f:
        assert f.read() == file_before
    assert len(embedder.calls) == 3
    assert scheduler.state is RefreshState.IDLE


def test_transient_embedding_error_is_retried(store):
    _seed_notes(store, 2)
    embedder = FakeEmbedder(fn=_length_vector)
    embedder.fail_calls = {1}
    scheduler = _scheduler(store, embedder, embed_attempts=2)

    assert asyncio.run(scheduler.tick()) is RefreshOutcome.REFRESHED
    assert store.count == 2
    assert len(embedder.calls) == 3


def test_overlapping_tick_is_skipped(store):
    _seed_notes(store, 2)

    class GatedEmbedder(FakeEmbedder):
        def __init__(self):
            super().__init__(fn=_length_vector)
            self.started = asyncio.Event()
            self.release = asyncio.Event()

        async def embed(self, text):
            self.started.set()
            await self.release.wait()
            return await super().embed(text)

    async def scenario():
        embedder = GatedEmbedder()
        scheduler = _scheduler(store, embedder)

        first = asyncio.create_task(scheduler.tick())
        await embedder.started.wait()
        assert scheduler.state is RefreshState.REFRESHING

        second = await scheduler.tick()
        with pytest.raises(ConcurrentRefreshSkipped):
            await scheduler.refresh_once()

        embedder.release.set()
        return await first, second, scheduler.state

    first, second, state = asyncio.run(scenario())
    assert first is RefreshOutcome.REFRESHED
    assert second is RefreshOutcome.SKIPPED
    assert state is RefreshState.IDLE
    assert store.count == 2


def test_note_appended_during_refresh_waits_for_next_cycle(store):
    _seed_notes(store, 2)

    class AppendingEmbedder(FakeEmbedder):
        async def embed(self, text):
            if not self.calls:
                store.append("bob", "arrived mid-refresh")
            return await super().embed(text)

    embedder = AppendingEmbedder(fn=_length_vector)
    scheduler = _scheduler(store, embedder)

    assert asyncio.run(scheduler.tick()) is RefreshOutcome.REFRESHED
    assert store.count == 2
    assert all("arrived mid-refresh" not in c.content for c in store.snapshot())

    assert asyncio.run(scheduler.tick()) is RefreshOutcome.REFRESHED
    assert store.count == 3


def test_empty_note_log_installs_empty_set(store):
    store.replace([KnowledgeChunk("stale", (1.0,))])
    scheduler = _scheduler(store, FakeEmbedder())

    assert asyncio.run(scheduler.tick()) is RefreshOutcome.REFRESHED
    assert store.snapshot() == ()


def test_background_task_refreshes_on_interval(store):
    _seed_notes(store, 1)

    async def scenario():
        scheduler = RefreshScheduler(store, FakeEmbedder(fn=_length_vector), interval=0.01,
                                     embed_attempts=1, retry_min_wait=0, retry_max_wait=0)
        scheduler.start()
        for _ in range(200):
            if store.count:
                break
            await asyncio.sleep(0.01)
        await scheduler.stop()

    asyncio.run(scenario())
    assert store.count == 1


def test_note_log_and_file_io_run_off_the_event_loop(store, monkeypatch):
    _seed_notes(store, 2)
    threads = {}
    read_text, save = store.notes.read_text, store.save

    def tracked_read():
        threads["read"] = threading.get_ident()
        return read_text()

    def tracked_save(chunks):
        threads["save"] = threading.get_ident()
        return save(chunks)

    monkeypatch.setattr(store.notes, "read_text", tracked_read)
    monkeypatch.setattr(store, "save", tracked_save)
    scheduler = _scheduler(store, FakeEmbedder(fn=_length_vector), embed_attempts=2)

    async def scenario():
        threads["loop"] = threading.get_ident()
        return await scheduler.tick()

    assert asyncio.run(scenario()) is RefreshOutcome.REFRESHED
    assert threads["read"] != threads["loop"]
    assert threads["save"] != threads["loop"]
    assert store.count == 2


def test_retry_policy_is_shared_across_chunks(store):
    _seed_notes(store, 3)
    embedder = FakeEmbedder(fn=_length_vector)
    embedder.fail_calls = {1, 3}
    scheduler = _scheduler(store, embedder, embed_attempts=2)
    embed_chunk = scheduler._embed_chunk

    assert asyncio.run(scheduler.tick()) is RefreshOutcome.REFRESHED
    assert scheduler._embed_chunk is embed_chunk
    assert store.count == 3
    assert len(embedder.calls) == 5
