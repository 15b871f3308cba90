"""Vector store implementations."""

from pyrag.vector_stores.base import BaseVectorStore
from pyrag.vector_stores.chroma import ChromaVectorStore, to_chroma_where
from pyrag.vector_stores.simple import (
    DEFAULT_VECTOR_STORE_NAMESPACE,
    SimpleVectorStore,
    vector_store_filename,
)

__all__ = [
    "BaseVectorStore",
    "SimpleVectorStore",
    "ChromaVectorStore",
    "DEFAULT_VECTOR_STORE_NAMESPACE",
    "to_chroma_where",
    "vector_store_filename",
]
