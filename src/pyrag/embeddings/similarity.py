"""Vector similarity functions and top-k selection."""

import math
from typing import Optional

from pyrag.exceptions import InvalidArgumentError

DEFAULT_MMR_THRESHOLD = 0.5


def _check_dimensions(a: list[float], b: list[float]) -> None:
    if len(a) != len(b):
        raise InvalidArgumentError(
            f"Vectors must have the same dimension, got {len(a)} and {len(b)}"
        )


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Calculate cosine similarity between two vectors."""
    _check_dimensions(a, b)

    dot_product = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(x * x for x in b))

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return dot_product / (norm_a * norm_b)


def dot_product(a: list[float], b: list[float]) -> float:
    _check_dimensions(a, b)
    return sum(x * y for x, y in zip(a, b))


def euclidean_similarity(a: list[float], b: list[float]) -> float:
    """Similarity in (0, 1] derived from euclidean distance as 1 / (1 + d)."""
    _check_dimensions(a, b)
    distance = math.sqrt(sum((x - y) ** 2 for x, y in zip(a, b)))
    return 1.0 / (1.0 + distance)


def get_top_k_embeddings(
    query_embedding: list[float],
    embeddings: list[list[float]],
    embedding_ids: list[str],
    similarity_top_k: Optional[int] = None,
    similarity_cutoff: Optional[float] = None,
) -> tuple[list[float], list[str]]:
    """Rank embeddings by cosine similarity to the query.

    Args:
        query_embedding: Query vector
        embeddings: Candidate vectors
        embedding_ids: IDs aligned with ``embeddings``
        similarity_top_k: Maximum number of results (all when None)
        similarity_cutoff: Drop candidates scoring below this value

    Returns:
        Tuple of (scores, ids), best first
    """
    scored = []
    for emb_id, embedding in zip(embedding_ids, embeddings):
        score = cosine_similarity(query_embedding, embedding)
        if similarity_cutoff is not None and score < similarity_cutoff:
            continue
        scored.append((score, emb_id))

    # Stable sort keeps insertion order among ties
    scored.sort(key=lambda x: x[0], reverse=True)
    if similarity_top_k is not None:
        scored = scored[:similarity_top_k]

    return [s for s, _ in scored], [i for _, i in scored]


def get_top_k_mmr_embeddings(
    query_embedding: list[float],
    embeddings: list[list[float]],
    embedding_ids: list[str],
    similarity_top_k: Optional[int] = None,
    mmr_threshold: Optional[float] = None,
) -> tuple[list[float], list[str]]:
    """Select results by maximal marginal relevance.

    Each step picks the candidate maximising
    ``threshold * sim(query, c) - (1 - threshold) * max sim(c, selected)``.
    """
    threshold = DEFAULT_MMR_THRESHOLD if mmr_threshold is None else mmr_threshold
    top_k = len(embeddings) if similarity_top_k is None else min(similarity_top_k, len(embeddings))

    query_scores = {
        emb_id: cosine_similarity(query_embedding, emb)
        for emb_id, emb in zip(embedding_ids, embeddings)
    }
    by_id = dict(zip(embedding_ids, embeddings))
    remaining = list(embedding_ids)

    result_scores: list[float] = []
    result_ids: list[str] = []

    while remaining and len(result_ids) < top_k:
        best_id = None
        best_score = -math.inf
        for emb_id in remaining:
            redundancy = max(
                (cosine_similarity(by_id[emb_id], by_id[sel]) for sel in result_ids),
                default=0.0,
            )
            score = threshold * query_scores[emb_id] - (1 - threshold) * redundancy
            if score > best_score:
                best_score = score
                best_id = emb_id

        remaining.remove(best_id)
        result_ids.append(best_id)
        result_scores.append(best_score)

    return result_scores, result_ids
