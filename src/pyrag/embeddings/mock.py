"""Deterministic embedding models for tests and offline use."""

import hashlib
import struct
from typing import Optional

from pyrag.embeddings.base import BaseEmbedding


class DummyEmbedding(BaseEmbedding):
    """A dummy embedding model for testing.

    Returns zero vectors of a specified dimension.
    """

    def __init__(self, dimension: int = 384):
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [[0.0] * self._dimension for _ in texts]

    async def embed_query(self, text: str) -> list[float]:
        return [0.0] * self._dimension


class MockEmbedding(BaseEmbedding):
    """Embedding model backed by a fixed text -> vector table.

    Texts missing from the table map to ``default`` (a zero vector when not
    given). Every embedded text is recorded in ``calls``.
    """

    def __init__(
        self,
        embeddings: Optional[dict[str, list[float]]] = None,
        dimension: Optional[int] = None,
        default: Optional[list[float]] = None,
    ):
        self.embeddings = dict(embeddings or {})
        if dimension is None:
            first = next(iter(self.embeddings.values()), None)
            dimension = len(first) if first else 3
        self._dimension = dimension
        self.default = default
        self.calls: list[str] = []

    @property
    def dimension(self) -> int:
        return self._dimension

    def _lookup(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.embeddings:
            return list(self.embeddings[text])
        if self.default is not None:
            return list(self.default)
        return [0.0] * self._dimension

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._lookup(text) for text in texts]

    async def embed_query(self, text: str) -> list[float]:
        return self._lookup(text)


class FakeEmbedding(BaseEmbedding):
    """Fake embedding that derives a deterministic vector from the text hash."""

    def __init__(self, dimension: int = 384, seed: int = 42):
        """Initialize the fake embedding.

        Args:
            dimension: Dimension of the embedding vectors
            seed: Seed mixed into the hash
        """
        self._dimension = dimension
        self.seed = seed

    @property
    def dimension(self) -> int:
        return self._dimension

    def _hash_text(self, text: str) -> list[float]:
        digest = hashlib.sha256(f"{self.seed}:{text}".encode()).digest()

        embedding = []
        for i in range(self._dimension):
            byte_idx = (i * 2) % (len(digest) - 2)
            value = struct.unpack(">H", digest[byte_idx:byte_idx + 2])[0]
            # Map the 16-bit value to [-1, 1]
            embedding.append(value / 32767.5 - 1.0)

        return embedding

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._hash_text(text) for text in texts]

    async def embed_query(self, text: str) -> list[float]:
        return self._hash_text(text)
