"""
Completion client for the chat model.

Wraps the OpenAI chat completions endpoint behind ``complete(messages)``.
Calls are bounded by a timeout and never retried here: a failed interactive
query is reported to the user instead.
"""

import asyncio
import logging
from typing import Dict, List, Optional

import openai
from openai import AsyncOpenAI

from . import config
from .errors import CompletionError
from .rag.embedder import get_openai_client

logger = logging.getLogger(__name__)


class CompletionClient:
    """Capability wrapper: ``complete(messages) -> text``."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: str = None,
        timeout: float = None,
    ):
        self._client = client
        self.model = model or config.COMPLETION_MODEL
        self.timeout = timeout if timeout is not None else config.OPENAI_TIMEOUT_SECONDS

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = get_openai_client()
        return self._client

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        """Generate the assistant reply for an ordered list of chat messages.

        Raises:
            CompletionError: On timeout, API/network failure or an empty reply.
        """
        try:
            client = self.client
        except ValueError as e:
            raise CompletionError(str(e)) from e

        try:
            completion = await asyncio.wait_for(
                client.chat.completions.create(model=self.model, messages=messages),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"[COMPLETION] Completion timed out after {self.timeout}s")
            raise CompletionError(f"Completion timed out after {self.timeout}s") from e
        except openai.OpenAIError as e:
            logger.error(f"[COMPLETION] Completion request failed [{type(e).__name__}]: {e}")
            raise CompletionError(str(e)) from e

        if not completion.choices:
            raise CompletionError("Completion returned no choices")
        reply = completion.choices[0].message.content
        if not reply or not reply.strip():
            raise CompletionError("Completion returned an empty reply")

        logger.info(f"[COMPLETION] Generated reply ({len(reply)} chars, model {self.model})")
        return reply
