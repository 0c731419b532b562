"""Shared fakes for the embedding and completion capabilities."""
import asyncio
from typing import Callable, Dict, List, Optional

import pytest

from acolyt import config
from acolyt.chat_service import ChatService
from acolyt.conversation_state import ConversationState
from acolyt.errors import CompletionError, EmbeddingError
from acolyt.rag.chunk_store import KnowledgeStore, NoteLog
from acolyt.rag.retriever import Retriever


class FakeEmbedder:
    """Deterministic embedder: a lookup table, or a function of the text."""

    def __init__(self, vectors: Dict[str, List[float]] = None, fn: Callable[[str], List[float]] = None,
                 default: Optional[List[float]] = None):
        self.vectors = vectors or {}
        self.fn = fn
        self.default = default if default is not None else [0.0, 1.0]
        self.calls: List[str] = []
        self.fail_calls = set()  # 1-based call numbers that raise
        self.fail_always = False

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail_always or len(self.calls) in self.fail_calls:
            raise EmbeddingError(f"quota exceeded on call {len(self.calls)}")
        if text in self.vectors:
            return list(self.vectors[text])
        if self.fn is not None:
            return self.fn(text)
        return list(self.default)


class FakeCompletion:
    """Replies 'reply to <last user message>' and records every prompt."""

    def __init__(self, delay: float = 0.0, fail: bool = False):
        self.delay = delay
        self.fail = fail
        self.prompts: List[List[Dict[str, str]]] = []

    async def complete(self, messages):
        self.prompts.append(list(messages))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise CompletionError("service unavailable")
        return f"reply to {messages[-1]['content']}"


@pytest.fixture(autouse=True)
def open_endpoints(monkeypatch):
    monkeypatch.setattr(config, "ACOLYT_PASSKEY", "")


@pytest.fixture
def store(tmp_path):
    return KnowledgeStore(
        embeddings_path=str(tmp_path / "signal-embeds.json"),
        notes=NoteLog(str(tmp_path / "knowledge" / "training-notes.md")),
    )


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def completion():
    return FakeCompletion()


@pytest.fixture
def service(store, embedder, completion):
    return ChatService(
        store=store,
        retriever=Retriever(store, embedder, top_k=2, max_chars=6000),
        completion=completion,
        state=ConversationState(max_exchanges=10),
        training_channel_id="training",
    )
