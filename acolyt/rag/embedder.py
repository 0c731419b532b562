"""
Embedder module for turning text into OpenAI embedding vectors.

Used at query time to embed the user message and by the Refresh Scheduler
to embed every note chunk. Every call is bounded by a timeout; any failure
surfaces as EmbeddingError.
"""

import asyncio
import logging
from typing import List, Optional

import openai
from openai import AsyncOpenAI

from .. import config
from ..errors import EmbeddingError

logger = logging.getLogger(__name__)


def get_openai_client(api_key: str = None) -> AsyncOpenAI:
    """Get an AsyncOpenAI client using the configured API key.

    Raises:
        ValueError: If OPENAI_API_KEY is not set.
    """
    api_key = api_key or config.OPENAI_API_KEY
    if not api_key:
        raise ValueError("OPENAI_API_KEY not found in environment or acolyt.config")

    return AsyncOpenAI(api_key=api_key, max_retries=config.OPENAI_MAX_RETRIES)


class EmbeddingClient:
    """Capability wrapper: ``embed(text) -> vector``."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: str = None,
        timeout: float = None,
    ):
        self._client = client
        self.model = model or config.EMBEDDING_MODEL
        self.timeout = timeout if timeout is not None else config.OPENAI_TIMEOUT_SECONDS

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = get_openai_client()
        return self._client

    async def embed(self, text: str) -> List[float]:
        """Generate an embedding for a single text.

        Raises:
            EmbeddingError: On timeout, API/network failure or an empty response.
        """
        try:
            client = self.client
        except ValueError as e:
            raise EmbeddingError(str(e)) from e

        try:
            response = await asyncio.wait_for(
                client.embeddings.create(model=self.model, input=text),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"[EMBEDDER] Embedding timed out after {self.timeout}s")
            raise EmbeddingError(f"Embedding timed out after {self.timeout}s") from e
        except openai.OpenAIError as e:
            logger.warning(f"[EMBEDDER] Embedding request failed [{type(e).__name__}]: {e}")
            raise EmbeddingError(str(e)) from e

        if not response.data:
            raise EmbeddingError("Embedding response contained no vectors")

        return list(response.data[0].embedding)
