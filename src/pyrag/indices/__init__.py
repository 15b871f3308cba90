"""Index variants and their loading."""

from pyrag.indices.base import BaseIndex, documents_to_nodes
from pyrag.indices.keyword_table import KeywordTableIndex, SimpleKeywordTableIndex
from pyrag.indices.keywords import (
    BaseKeywordExtractor,
    LLMKeywordExtractor,
    SimpleKeywordExtractor,
    simple_extract_keywords,
)
from pyrag.indices.knowledge_graph import KGRetrieverMode, KnowledgeGraphIndex
from pyrag.indices.loading import load_index_from_storage
from pyrag.indices.summary import ListIndex, SummaryIndex, SummaryRetrieverMode
from pyrag.indices.tree import TreeIndex, TreeRetrieverMode
from pyrag.indices.vector_store import VectorStoreIndex

__all__ = [
    # Base
    "BaseIndex",
    "documents_to_nodes",
    "load_index_from_storage",
    # Variants
    "VectorStoreIndex",
    "SummaryIndex",
    "ListIndex",
    "KeywordTableIndex",
    "SimpleKeywordTableIndex",
    "TreeIndex",
    "KnowledgeGraphIndex",
    # Retriever modes
    "SummaryRetrieverMode",
    "TreeRetrieverMode",
    "KGRetrieverMode",
    # Keywords
    "BaseKeywordExtractor",
    "SimpleKeywordExtractor",
    "LLMKeywordExtractor",
    "simple_extract_keywords",
]
