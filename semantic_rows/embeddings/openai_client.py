"""
OpenAI-backed embedding source.

Wraps the synchronous OpenAI client: each request runs in a worker thread
and is retried on rate limits and transient connection errors.
"""

import asyncio
import logging
from typing import List, Optional

from openai import OpenAI

from semantic_rows.config import get_embedding_model, get_openai_api_key
from semantic_rows.retry import retry_openai

logger = logging.getLogger(__name__)


def get_openai_client() -> OpenAI:
    """Get OpenAI client instance."""
    return OpenAI(api_key=get_openai_api_key())


def suppress_http_logging():
    """Suppress verbose HTTP logging from OpenAI, httpx, and httpcore."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


class OpenAIEmbeddingSource:
    """EmbeddingSource that calls the OpenAI embeddings endpoint."""

    def __init__(self, client: Optional[OpenAI] = None, model: Optional[str] = None):
        """
        Initialize the source.

        Args:
            client: OpenAI client (default: built from OPENAI_API_KEY)
            model: Embedding model name (default: EMBEDDING_MODEL setting)
        """
        self.client = client or get_openai_client()
        self.model = model or get_embedding_model()

    def create_embedding(self, text: str) -> List[float]:
        """Create one embedding synchronously, with retries."""

        @retry_openai
        def _call_api():
            response = self.client.embeddings.create(model=self.model, input=text.strip())
            return response.data[0].embedding

        return _call_api()

    async def embed(self, text: str) -> List[float]:
        return await asyncio.to_thread(self.create_embedding, text)
