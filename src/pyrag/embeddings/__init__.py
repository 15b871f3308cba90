"""Embedding models, similarity helpers and sparse BM25 embeddings."""

from pyrag.embeddings.base import BaseEmbedding
from pyrag.embeddings.bm25 import BM25, BM25Plus, DEFAULT_BM25_STOPWORDS, default_tokenizer
from pyrag.embeddings.huggingface import HuggingFaceEmbedding
from pyrag.embeddings.mock import DummyEmbedding, FakeEmbedding, MockEmbedding
from pyrag.embeddings.openai import OpenAIEmbedding
from pyrag.embeddings.similarity import (
    cosine_similarity,
    dot_product,
    euclidean_similarity,
    get_top_k_embeddings,
    get_top_k_mmr_embeddings,
)
from pyrag.embeddings.sparse import HybridEmbedding, SparseEmbedding, hybrid_similarity

__all__ = [
    # Base
    "BaseEmbedding",
    # Implementations
    "OpenAIEmbedding",
    "HuggingFaceEmbedding",
    "MockEmbedding",
    "FakeEmbedding",
    "DummyEmbedding",
    # Similarity
    "cosine_similarity",
    "dot_product",
    "euclidean_similarity",
    "get_top_k_embeddings",
    "get_top_k_mmr_embeddings",
    # Sparse
    "SparseEmbedding",
    "HybridEmbedding",
    "hybrid_similarity",
    "BM25",
    "BM25Plus",
    "DEFAULT_BM25_STOPWORDS",
    "default_tokenizer",
]
