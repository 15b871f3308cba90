"""Base class for embedding models."""

from abc import ABC, abstractmethod

from pyrag.exceptions import wrap_upstream


class BaseEmbedding(ABC):
    """Abstract base class for embedding models.

    Embedding models convert text into dense vector representations.
    Implementations provide ``embed_documents``/``embed_query``; callers use
    the ``get_*`` methods, which report provider failures as
    ``UpstreamError``.
    """

    @abstractmethod
    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed a list of documents.

        Args:
            texts: List of text strings to embed

        Returns:
            List of embedding vectors
        """
        pass

    @abstractmethod
    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query.

        Args:
            text: Query text to embed

        Returns:
            Embedding vector
        """
        pass

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the dimension of the embedding vectors."""
        pass

    async def get_text_embedding(self, text: str) -> list[float]:
        embeddings = await self.get_text_embedding_batch([text])
        return embeddings[0]

    async def get_query_embedding(self, query: str) -> list[float]:
        return await wrap_upstream(self.embed_query(query), type(self).__name__)

    async def get_text_embedding_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        return await wrap_upstream(self.embed_documents(texts), type(self).__name__)
