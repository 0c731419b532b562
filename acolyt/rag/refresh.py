"""
Refresh Scheduler: periodically re-embeds the note log in-process.

Two states, IDLE and REFRESHING. A refresh snapshots the note log, embeds
every chunk sequentially and only then rewrites the chunk-embedding file and
swaps the Knowledge Store. Any failure leaves the previous chunk set in force.
At most one refresh runs at a time; a tick that lands during a refresh is
skipped, not queued.
"""

import asyncio
import logging
from enum import Enum
from typing import List, Optional, Set

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from .. import config
from ..errors import ConcurrentRefreshSkipped, EmbeddingError
from .chunk_store import KnowledgeChunk, KnowledgeStore
from .chunker import chunk_notes
from .embedder import EmbeddingClient

logger = logging.getLogger(__name__)


class RefreshState(Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


class RefreshOutcome(Enum):
    REFRESHED = "refreshed"
    SKIPPED = "skipped"
    FAILED = "failed"


class RefreshScheduler:

    def __init__(
        self,
        store: KnowledgeStore,
        embedder: EmbeddingClient,
        interval: float = None,
        embed_attempts: int = None,
        retry_min_wait: float = None,
        retry_max_wait: float = None,
    ):
        self.store = store
        self.embedder = embedder
        self.interval = config.REFRESH_INTERVAL_SECONDS if interval is None else interval
        self.embed_attempts = config.REFRESH_EMBED_ATTEMPTS if embed_attempts is None else embed_attempts
        self.retry_min_wait = config.REFRESH_RETRY_MIN_WAIT if retry_min_wait is None else retry_min_wait
        self.retry_max_wait = config.REFRESH_RETRY_MAX_WAIT if retry_max_wait is None else retry_max_wait
        self._state = RefreshState.IDLE
        self._loop_task: Optional[asyncio.Task] = None
        self._tick_tasks: Set[asyncio.Task] = set()
        self._embed_chunk = retry(
            stop=stop_after_attempt(self.embed_attempts),
            wait=wait_exponential(multiplier=1, min=self.retry_min_wait, max=self.retry_max_wait),
            retry=retry_if_exception_type(EmbeddingError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True
        )(self._embed_once)

    @property
    def state(self) -> RefreshState:
        return self._state

    async def _embed_once(self, content: str) -> List[float]:
        """One embed attempt; retried with exponential backoff through _embed_chunk."""
        return await self.embedder.embed(content)

    async def refresh_once(self) -> int:
        """Rebuild the chunk set from the note log.

        Returns:
            Number of chunks installed.

        Raises:
            ConcurrentRefreshSkipped: If a refresh is already running.
            EmbeddingError: If a chunk could not be embedded after all attempts.
        """
        if self._state is RefreshState.REFRESHING:
            raise ConcurrentRefreshSkipped("A refresh is already in progress")

        self._state = RefreshState.REFRESHING
        try:
            # Notes appended from here on belong to the next refresh
            text = await asyncio.to_thread(self.store.notes.read_text)
            contents = chunk_notes(text)

            chunks = []
            for index, content in enumerate(contents, 1):
                logger.debug(f"[REFRESH] Embedding chunk {index}/{len(contents)}: {content[:60]}...")
                embedding = await self._embed_chunk(content)
                chunks.append(KnowledgeChunk(content=content, embedding=tuple(embedding)))

            # Off the event loop; queries keep reading the old snapshot
            await asyncio.to_thread(self.store.save, chunks)
            self.store.replace(chunks)
            return len(chunks)
        finally:
            self._state = RefreshState.IDLE

    async def tick(self) -> RefreshOutcome:
        """Run one scheduled refresh and log its outcome. Never raises."""
        try:
            count = await self.refresh_once()
        except ConcurrentRefreshSkipped:
            logger.info("[REFRESH] Refresh already in progress, skipping this tick")
            return RefreshOutcome.SKIPPED
        except Exception as e:
            logger.error(
                f"[REFRESH] Refresh failed [{type(e).__name__}]: {e}, "
                f"keeping {self.store.count} existing chunks"
            )
            return RefreshOutcome.FAILED

        logger.info(f"[REFRESH] Embeddings refreshed: {count} chunks")
        return RefreshOutcome.REFRESHED

    def _spawn_tick(self) -> asyncio.Task:
        task = asyncio.create_task(self.tick())
        self._tick_tasks.add(task)
        task.add_done_callback(self._tick_tasks.discard)
        return task

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            # A slow refresh must not delay the schedule; overlapping ticks get skipped
            self._spawn_tick()

    def start(self) -> None:
        """Start the periodic refresh task on the running event loop."""
        if self._loop_task is not None and not self._loop_task.done():
            return
        self._loop_task = asyncio.create_task(self._run())
        logger.info(f"[REFRESH] Scheduler started, interval {self.interval}s")

    async def stop(self) -> None:
        """Cancel the periodic task and any in-flight refresh."""
        tasks = list(self._tick_tasks)
        if self._loop_task is not None:
            tasks.append(self._loop_task)
            self._loop_task = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("[REFRESH] Scheduler stopped")


if __name__ == "__main__":
    # Standalone script: rebuild the chunk-embedding file once
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    store = KnowledgeStore()
    store.reload()
    scheduler = RefreshScheduler(store, EmbeddingClient())
    outcome = asyncio.run(scheduler.tick())

    print(f"Refresh {outcome.value}: {store.count} chunks in {store.embeddings_path}")
