"""OpenAI embedding model."""

import logging
from typing import Optional

from pyrag.embeddings.base import BaseEmbedding

logger = logging.getLogger(__name__)


class OpenAIEmbedding(BaseEmbedding):
    """OpenAI embedding model.

    Uses OpenAI's embedding API (text-embedding-3-small/large).

    Note: Requires the 'openai' extra to be installed.
    """

    MODEL_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        batch_size: int = 100,
    ):
        """Initialize the OpenAI embedding model.

        Args:
            model: Model name
            api_key: OpenAI API key (optional, uses env var if not provided)
            base_url: Optional base URL for API
            batch_size: Number of texts sent per request
        """
        self.model = model
        self.api_key = api_key
        self.base_url = base_url
        self.batch_size = batch_size
        self._client = None

    @property
    def dimension(self) -> int:
        return self.MODEL_DIMENSIONS.get(self.model, 1536)

    def _get_client(self):
        """Get or create the OpenAI client."""
        if self._client is None:
            try:
                from openai import AsyncOpenAI
            except ImportError:
                raise ImportError(
                    "OpenAI embedding requires the 'openai' package. "
                    "Install it with: pip install openai"
                )

            kwargs = {}
            if self.api_key:
                kwargs["api_key"] = self.api_key
            if self.base_url:
                kwargs["base_url"] = self.base_url
            self._client = AsyncOpenAI(**kwargs)
        return self._client

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        client = self._get_client()
        all_embeddings = []

        for i in range(0, len(texts), self.batch_size):
            batch = texts[i:i + self.batch_size]
            response = await client.embeddings.create(model=self.model, input=batch)
            all_embeddings.extend(item.embedding for item in response.data)

        logger.debug(f"Embedded {len(texts)} texts with {self.model}")
        return all_embeddings

    async def embed_query(self, text: str) -> list[float]:
        client = self._get_client()
        response = await client.embeddings.create(model=self.model, input=text)
        return response.data[0].embedding
