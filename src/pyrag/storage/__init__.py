"""Storage substrate: key-value, document, index, chat stores and the storage context."""

from pyrag.storage.chat_store import SimpleChatStore
from pyrag.storage.context import StorageContext
from pyrag.storage.docstore import KVDocumentStore, RefDocInfo, SimpleDocumentStore
from pyrag.storage.index_store import KVIndexStore, SimpleIndexStore
from pyrag.storage.kvstore import (
    DEFAULT_COLLECTION,
    BaseKVStore,
    FileKVStore,
    SimpleKVStore,
)

__all__ = [
    # Key-value
    "BaseKVStore",
    "SimpleKVStore",
    "FileKVStore",
    "DEFAULT_COLLECTION",
    # Documents
    "KVDocumentStore",
    "SimpleDocumentStore",
    "RefDocInfo",
    # Index structs
    "KVIndexStore",
    "SimpleIndexStore",
    # Chat
    "SimpleChatStore",
    # Context
    "StorageContext",
]
