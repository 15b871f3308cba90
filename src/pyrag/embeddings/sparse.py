"""Sparse (index, value) embeddings."""

import math

from pydantic import BaseModel, Field

from pyrag.embeddings.similarity import cosine_similarity
from pyrag.exceptions import InvalidArgumentError


class SparseEmbedding(BaseModel):
    """A sparse vector over a term vocabulary.

    ``indices`` and ``values`` are aligned; ``dimension`` is the vocabulary
    size (0 when unknown).
    """
    indices: list[int] = Field(default_factory=list)
    values: list[float] = Field(default_factory=list)
    dimension: int = 0

    @classmethod
    def from_dense(cls, dense: list[float], threshold: float = 0.0) -> "SparseEmbedding":
        """Keep the non-zero entries whose magnitude reaches ``threshold``."""
        indices = []
        values = []
        for i, v in enumerate(dense):
            if v != 0 and (threshold == 0 or abs(v) >= threshold):
                indices.append(i)
                values.append(v)
        return cls(indices=indices, values=values, dimension=len(dense))

    def to_dense(self) -> list[float]:
        dim = self.dimension
        if dim == 0 and self.indices:
            dim = max(self.indices) + 1

        dense = [0.0] * dim
        for idx, value in zip(self.indices, self.values):
            if 0 <= idx < dim:
                dense[idx] = value
        return dense

    def get(self, index: int) -> float:
        for idx, value in zip(self.indices, self.values):
            if idx == index:
                return value
        return 0.0

    def _as_map(self) -> dict[int, float]:
        return dict(zip(self.indices, self.values))

    def dot_product(self, other: "SparseEmbedding") -> float:
        mine = self._as_map()
        return sum(value * mine[idx] for idx, value in zip(other.indices, other.values) if idx in mine)

    def magnitude(self) -> float:
        return math.sqrt(sum(v * v for v in self.values))

    def cosine_similarity(self, other: "SparseEmbedding") -> float:
        mag_a = self.magnitude()
        mag_b = other.magnitude()
        if mag_a == 0 or mag_b == 0:
            return 0.0
        return self.dot_product(other) / (mag_a * mag_b)

    def normalize(self) -> "SparseEmbedding":
        mag = self.magnitude()
        if mag == 0:
            return self.model_copy(deep=True)
        return SparseEmbedding(
            indices=list(self.indices),
            values=[v / mag for v in self.values],
            dimension=self.dimension,
        )

    def add(self, other: "SparseEmbedding") -> "SparseEmbedding":
        combined = self._as_map()
        for idx, value in zip(other.indices, other.values):
            combined[idx] = combined.get(idx, 0.0) + value

        indices = sorted(combined)
        return SparseEmbedding(
            indices=indices,
            values=[combined[i] for i in indices],
            dimension=max(self.dimension, other.dimension),
        )

    def __len__(self) -> int:
        return len(self.indices)


class HybridEmbedding(BaseModel):
    """A dense vector paired with a sparse one."""
    dense: list[float] = Field(default_factory=list)
    sparse: SparseEmbedding = Field(default_factory=SparseEmbedding)


def hybrid_similarity(a: HybridEmbedding, b: HybridEmbedding, alpha: float = 0.5) -> float:
    """``alpha * dense cosine + (1 - alpha) * sparse cosine``."""
    if alpha < 0 or alpha > 1:
        raise InvalidArgumentError("alpha must be between 0 and 1")

    dense_sim = cosine_similarity(a.dense, b.dense)
    sparse_sim = a.sparse.cosine_similarity(b.sparse)
    return alpha * dense_sim + (1 - alpha) * sparse_sim
