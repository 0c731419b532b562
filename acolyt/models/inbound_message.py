"""Inbound chat message model for the event surface.

The gateway relay posts one JSON object per chat message. `InboundMessage`
normalizes it for the event dispatcher.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional


def clean_text(text: str) -> str:
    """Replace anything that cannot be stored as UTF-8, such as lone surrogates."""
    return text.encode("utf-8", "replace").decode("utf-8")


@dataclass
class InboundMessage:
    """Normalized inbound chat message.

    Attributes:
        channel_id: Channel the message was posted in.
        author_id: Stable id of the author, used as the conversation key.
        author_name: Display name written into captured notes.
        content: Message text.
        is_bot: True when the author is a bot (including this one).
        mentions_bot: True when the message mentions the bot.
        reply_to_bot: True when the message replies to one of the bot's messages.
    """
    channel_id: str
    author_id: str
    author_name: str
    content: str
    is_bot: bool = False
    mentions_bot: bool = False
    reply_to_bot: bool = False

    @property
    def addresses_bot(self) -> bool:
        return self.mentions_bot or self.reply_to_bot

    @classmethod
    def from_payload(cls, raw: Dict[str, Any]) -> Optional["InboundMessage"]:
        """Build a message from a relay payload. Returns None for non-actionable payloads."""
        author_id = raw.get("author_id")
        content = raw.get("content")
        if not author_id or not isinstance(content, str) or not content.strip():
            return None
        return cls(
            channel_id=clean_text(str(raw.get("channel_id", ""))),
            author_id=clean_text(str(author_id)),
            author_name=clean_text(str(raw.get("author_name") or author_id)),
            content=clean_text(content),
            is_bot=bool(raw.get("is_bot", False)),
            mentions_bot=bool(raw.get("mentions_bot", False)),
            reply_to_bot=bool(raw.get("reply_to_bot", False)),
        )
