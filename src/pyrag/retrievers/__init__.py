"""Retrievers over indices and retriever compositors."""

from pyrag.retrievers.auto_merging import AutoMergingRetriever
from pyrag.retrievers.base import BaseRetriever
from pyrag.retrievers.bm25 import BM25Retriever
from pyrag.retrievers.fusion import FusionMode, FusionRetriever
from pyrag.retrievers.keyword_table import KeywordTableRetriever
from pyrag.retrievers.knowledge_graph import KGTableRetriever
from pyrag.retrievers.router import RouterRetriever
from pyrag.retrievers.summary import (
    SummaryIndexEmbeddingRetriever,
    SummaryIndexLLMRetriever,
    SummaryIndexRetriever,
)
from pyrag.retrievers.tree import (
    TreeAllLeafRetriever,
    TreeRootRetriever,
    TreeSelectLeafEmbeddingRetriever,
    TreeSelectLeafRetriever,
)
from pyrag.retrievers.vector import VectorIndexRetriever

__all__ = [
    "BaseRetriever",
    # Index retrievers
    "VectorIndexRetriever",
    "SummaryIndexRetriever",
    "SummaryIndexEmbeddingRetriever",
    "SummaryIndexLLMRetriever",
    "KeywordTableRetriever",
    "TreeAllLeafRetriever",
    "TreeRootRetriever",
    "TreeSelectLeafRetriever",
    "TreeSelectLeafEmbeddingRetriever",
    "KGTableRetriever",
    # Compositors
    "FusionRetriever",
    "FusionMode",
    "RouterRetriever",
    "AutoMergingRetriever",
    "BM25Retriever",
]
