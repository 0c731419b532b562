"""
Chat service: the question-answering pipeline and the command/event handlers.

answer():  user text -> retrieval -> prompt with history -> completion -> history
Events:    training-channel messages become notes; messages that address the
           bot get an answer.
"""
import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from . import config
from .completion import CompletionClient
from .conversation_state import ConversationState
from .errors import CompletionError
from .models.inbound_message import InboundMessage
from .persona import APOLOGY_MESSAGE
from .rag.chunk_store import KnowledgeStore
from .rag.retriever import Retriever

logger = logging.getLogger(__name__)


@dataclass
class EventResult:
    """What the dispatcher did with one inbound message."""
    status: str
    note_recorded: bool = False
    reply: Optional[str] = None
    actions: List[str] = field(default_factory=list)


class ChatService:

    def __init__(
        self,
        store: KnowledgeStore,
        retriever: Retriever,
        completion: CompletionClient,
        state: ConversationState,
        training_channel_id: str = None,
    ):
        self.store = store
        self.retriever = retriever
        self.completion = completion
        self.state = state
        self.training_channel_id = (
            config.TRAINING_CHANNEL_ID if training_channel_id is None else training_channel_id
        )

    async def answer(self, user_id: str, text: str) -> str:
        """Generate a reply for one user message.

        Work for one user is serialized so concurrent messages cannot interleave
        their history. On completion failure the user gets APOLOGY_MESSAGE and
        nothing is recorded.
        """
        async with self.state.lock(user_id):
            context = await self.retriever.retrieve(text)
            messages = self.state.build_messages(user_id, context, text)

            try:
                reply = await self.completion.complete(messages)
            except CompletionError as e:
                logger.error(f"[CHAT] Completion failed for {user_id}: {e}")
                return APOLOGY_MESSAGE

            try:
                self.state.append_exchange(user_id, text, reply)
            except (sqlite3.Error, UnicodeError) as e:
                logger.error(f"[CHAT] Could not record exchange for {user_id}: {e}")

            return reply

    def training_status(self, preview_count: int = 3) -> Dict[str, Any]:
        """Store size, last swap time and previews of the latest notes."""
        last_update = self.store.last_update
        return {
            "total_entries": self.store.count,
            "last_update": last_update.isoformat() if last_update else None,
            "latest_notes": self.store.notes.latest_previews(preview_count),
        }

    async def dispatch(self, message: InboundMessage) -> EventResult:
        """Route one inbound chat message."""
        if message.is_bot:
            return EventResult(status="ignored")

        result = EventResult(status="ok")

        if self.training_channel_id and message.channel_id == self.training_channel_id:
            try:
                self.store.append(message.author_name, message.content)
                result.note_recorded = True
                result.actions.append("note")
            except (OSError, UnicodeError) as e:
                logger.error(f"[EVENTS] Failed to capture training note from {message.author_name}: {e}")

        if message.addresses_bot:
            result.reply = await self.answer(message.author_id, message.content)
            result.actions.append("reply")

        if not result.actions:
            result.status = "ignored"
        return result
