"""
Per-user conversation history and prompt construction.

History is a bounded deque per user. Both turns of an exchange are recorded
together, and callers serialize work on one user through ``lock(user_id)``.
At most ``max_users`` histories stay in memory; the least recently used one
is dropped first and restored from the ConversationLog when one is attached.
"""
import asyncio
import logging
from collections import OrderedDict, deque
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Deque, Dict, List, Optional

from . import config
from .conversation_log import ConversationLog
from .persona import SYSTEM_PERSONA, context_message, persona_message

logger = logging.getLogger(__name__)


class Role(Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ConversationTurn:
    role: Role
    text: str

    def to_message(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.text}


class ConversationState:
    """Owns every user's history. Optionally mirrored to a ConversationLog."""

    def __init__(
        self,
        max_exchanges: int = None,
        log: Optional[ConversationLog] = None,
        persona: str = SYSTEM_PERSONA,
        max_users: int = None,
    ):
        max_exchanges = config.HISTORY_MAX_EXCHANGES if max_exchanges is None else max_exchanges
        if max_exchanges < 1:
            raise ValueError("max_exchanges must be at least 1")
        max_users = config.HISTORY_MAX_USERS if max_users is None else max_users
        if max_users < 1:
            raise ValueError("max_users must be at least 1")
        self.max_turns = max_exchanges * 2
        self.max_users = max_users
        self.log = log
        self.persona = persona
        self._histories: "OrderedDict[str, Deque[ConversationTurn]]" = OrderedDict()
        self._locks: Dict[str, asyncio.Lock] = {}
        # Tasks holding or waiting on each user's lock
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def lock(self, user_id: str) -> AsyncIterator[None]:
        """Mutual exclusion for everything touching one user's history.

        The lock entry is dropped once no task holds or waits on it.
        """
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[user_id] -= 1
            if not self._lock_users[user_id]:
                del self._lock_users[user_id]
                del self._locks[user_id]

    def _restore(self, user_id: str) -> Deque[ConversationTurn]:
        history = deque(maxlen=self.max_turns)
        if self.log is None:
            return history
        rows = self.log.get_recent_messages(user_id, limit=self.max_turns)
        # The row limit can cut an exchange in half
        while rows and rows[0]["role"] != Role.USER.value:
            rows = rows[1:]
        for row in rows:
            history.append(ConversationTurn(Role(row["role"]), row["content"]))
        if history:
            logger.info(f"[HISTORY] Restored {len(history)} turns for {user_id}")
        return history

    def _history(self, user_id: str) -> Deque[ConversationTurn]:
        history = self._histories.get(user_id)
        if history is not None:
            self._histories.move_to_end(user_id)
            return history

        history = self._histories[user_id] = self._restore(user_id)
        self._evict()
        return history

    def _evict(self) -> None:
        for user_id in list(self._histories):
            if len(self._histories) <= self.max_users:
                return
            if user_id in self._lock_users:
                continue
            del self._histories[user_id]
            logger.debug(f"[HISTORY] Dropped in-memory history for {user_id}")

    def get(self, user_id: str) -> List[ConversationTurn]:
        return list(self._history(user_id))

    def append(self, user_id: str, turn: ConversationTurn) -> None:
        history = self._history(user_id)
        if self.log is not None:
            self.log.log_messages(user_id, [(turn.role.value, turn.text)])
        history.append(turn)

    def append_exchange(self, user_id: str, user_text: str, reply: str) -> None:
        """Record the user turn and the assistant reply together, or neither."""
        history = self._history(user_id)
        turns = (
            ConversationTurn(Role.USER, user_text),
            ConversationTurn(Role.ASSISTANT, reply),
        )
        if self.log is not None:
            self.log.log_messages(user_id, [(t.role.value, t.text) for t in turns])
        history.extend(turns)

    def build_messages(self, user_id: str, context: str, user_text: str) -> List[Dict[str, str]]:
        """Persona, context, prior history, then the new user turn."""
        messages = [persona_message(self.persona), context_message(context)]
        messages.extend(turn.to_message() for turn in self._history(user_id))
        messages.append(ConversationTurn(Role.USER, user_text).to_message())
        return messages
