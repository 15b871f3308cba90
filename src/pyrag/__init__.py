"""
pyrag - Retrieval-augmented generation over pluggable stores and indices.
"""

from pyrag.embeddings import (
    BM25,
    BaseEmbedding,
    DummyEmbedding,
    FakeEmbedding,
    MockEmbedding,
    OpenAIEmbedding,
)
from pyrag.exceptions import (
    AlreadyExistsError,
    AmbiguousError,
    DecodeError,
    InvalidArgumentError,
    NotFoundError,
    RAGError,
    UnsupportedError,
    UpstreamError,
)
from pyrag.graph_stores import SimpleGraphStore, Triplet
from pyrag.indices import (
    KeywordTableIndex,
    KnowledgeGraphIndex,
    SummaryIndex,
    TreeIndex,
    VectorStoreIndex,
    load_index_from_storage,
)
from pyrag.llms import LLM, ChatMessage, MessageRole, MockLLM, OpenAILLM
from pyrag.memory import ChatMemoryBuffer
from pyrag.node_parser import (
    HierarchicalNodeParser,
    SentenceSplitter,
    get_leaf_nodes,
    get_root_nodes,
)
from pyrag.postprocessor import LLMRerank, SimilarityPostprocessor
from pyrag.query_engine import RetrieverQueryEngine
from pyrag.retrievers import (
    AutoMergingRetriever,
    BaseRetriever,
    BM25Retriever,
    FusionMode,
    FusionRetriever,
    RouterRetriever,
)
from pyrag.schema import (
    Document,
    ImageNode,
    IndexNode,
    MetadataFilter,
    MetadataFilters,
    MetadataMode,
    NodeRelationship,
    NodeWithScore,
    QueryBundle,
    Response,
    TextNode,
)
from pyrag.selectors import LLMMultiSelector, LLMSingleSelector, SimpleSelector, SingleSelector
from pyrag.settings import Settings
from pyrag.storage import SimpleChatStore, StorageContext
from pyrag.tools import FunctionTool, QueryEngineTool, RetrieverTool, ToolMetadata, ToolOutput
from pyrag.utils.config import RAGConfig, load_config
from pyrag.vector_stores import SimpleVectorStore

__version__ = "0.1.0"
__all__ = [
    # Schema
    "Document",
    "TextNode",
    "ImageNode",
    "IndexNode",
    "NodeRelationship",
    "NodeWithScore",
    "MetadataMode",
    "MetadataFilter",
    "MetadataFilters",
    "QueryBundle",
    "Response",
    # Errors
    "RAGError",
    "NotFoundError",
    "AlreadyExistsError",
    "AmbiguousError",
    "InvalidArgumentError",
    "UnsupportedError",
    "DecodeError",
    "UpstreamError",
    # Models
    "LLM",
    "ChatMessage",
    "MessageRole",
    "MockLLM",
    "OpenAILLM",
    "BaseEmbedding",
    "OpenAIEmbedding",
    "MockEmbedding",
    "FakeEmbedding",
    "DummyEmbedding",
    "BM25",
    # Storage
    "StorageContext",
    "SimpleVectorStore",
    "SimpleGraphStore",
    "SimpleChatStore",
    "Triplet",
    # Indices
    "VectorStoreIndex",
    "SummaryIndex",
    "KeywordTableIndex",
    "TreeIndex",
    "KnowledgeGraphIndex",
    "load_index_from_storage",
    # Retrieval
    "BaseRetriever",
    "FusionRetriever",
    "FusionMode",
    "RouterRetriever",
    "AutoMergingRetriever",
    "BM25Retriever",
    "SimilarityPostprocessor",
    "LLMRerank",
    "RetrieverQueryEngine",
    # Selectors and tools
    "SimpleSelector",
    "SingleSelector",
    "LLMSingleSelector",
    "LLMMultiSelector",
    "ToolMetadata",
    "ToolOutput",
    "FunctionTool",
    "RetrieverTool",
    "QueryEngineTool",
    # Parsing
    "SentenceSplitter",
    "HierarchicalNodeParser",
    "get_leaf_nodes",
    "get_root_nodes",
    # Config
    "Settings",
    "RAGConfig",
    "load_config",
    "ChatMemoryBuffer",
]
