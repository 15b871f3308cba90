"""
Storage context: the bundle of stores an index operates over.
"""

import logging
from pathlib import Path
from typing import Any, Optional, Union

from pyrag.exceptions import NotFoundError
from pyrag.graph_stores.simple import GRAPH_STORE_FILENAME, GraphStore, SimpleGraphStore
from pyrag.storage.docstore import KVDocumentStore, SimpleDocumentStore
from pyrag.storage.index_store import KVIndexStore, SimpleIndexStore
from pyrag.vector_stores.base import BaseVectorStore
from pyrag.vector_stores.simple import (
    DEFAULT_VECTOR_STORE_NAMESPACE,
    NAMESPACE_SEPARATOR,
    VECTOR_STORE_FILENAME,
    SimpleVectorStore,
    vector_store_filename,
)

logger = logging.getLogger(__name__)

DEFAULT_PERSIST_DIR = "./storage"
DOCSTORE_FILENAME = "docstore.json"
INDEX_STORE_FILENAME = "index_store.json"


class StorageContext:
    """
    Document store, index store, vector stores and graph store of an index.

    Persisted layout (simple stores only)::

        <dir>/docstore.json
        <dir>/index_store.json
        <dir>/vector_store.json            default namespace
        <dir>/<ns>__vector_store.json      other namespaces
        <dir>/graph_store.json
    """

    def __init__(
        self,
        docstore: KVDocumentStore,
        index_store: KVIndexStore,
        vector_stores: dict[str, BaseVectorStore],
        graph_store: GraphStore,
    ):
        self.docstore = docstore
        self.index_store = index_store
        self.vector_stores = vector_stores
        self.graph_store = graph_store

    @classmethod
    def from_defaults(
        cls,
        docstore: Optional[KVDocumentStore] = None,
        index_store: Optional[KVIndexStore] = None,
        vector_store: Optional[BaseVectorStore] = None,
        vector_stores: Optional[dict[str, BaseVectorStore]] = None,
        graph_store: Optional[GraphStore] = None,
        persist_dir: Optional[Union[str, Path]] = None,
    ) -> "StorageContext":
        """
        Build a context from the given stores, filling gaps with simple stores.

        With ``persist_dir`` the simple stores are loaded from that
        directory instead; files that are absent give empty stores.
        """
        if persist_dir is not None:
            context = cls.from_persist_dir(persist_dir)
            if docstore is not None:
                context.docstore = docstore
            if index_store is not None:
                context.index_store = index_store
            if graph_store is not None:
                context.graph_store = graph_store
            if vector_stores:
                context.vector_stores.update(vector_stores)
            if vector_store is not None:
                context.vector_stores[DEFAULT_VECTOR_STORE_NAMESPACE] = vector_store
            return context

        stores: dict[str, BaseVectorStore] = dict(vector_stores or {})
        if vector_store is not None:
            stores[DEFAULT_VECTOR_STORE_NAMESPACE] = vector_store
        stores.setdefault(DEFAULT_VECTOR_STORE_NAMESPACE, SimpleVectorStore())

        return cls(
            docstore=docstore or SimpleDocumentStore(),
            index_store=index_store or SimpleIndexStore(),
            vector_stores=stores,
            graph_store=graph_store or SimpleGraphStore(),
        )

    @classmethod
    def from_persist_dir(cls, persist_dir: Union[str, Path] = DEFAULT_PERSIST_DIR) -> "StorageContext":
        persist_dir = Path(persist_dir)

        docstore_path = persist_dir / DOCSTORE_FILENAME
        docstore = (
            SimpleDocumentStore.from_persist_path(docstore_path)
            if docstore_path.exists() else SimpleDocumentStore()
        )

        index_store_path = persist_dir / INDEX_STORE_FILENAME
        index_store = (
            SimpleIndexStore.from_persist_path(index_store_path)
            if index_store_path.exists() else SimpleIndexStore()
        )

        vector_stores: dict[str, BaseVectorStore] = {}
        if persist_dir.is_dir():
            for path in sorted(persist_dir.glob(f"*{VECTOR_STORE_FILENAME}")):
                if path.name == VECTOR_STORE_FILENAME:
                    namespace = DEFAULT_VECTOR_STORE_NAMESPACE
                elif path.name.endswith(NAMESPACE_SEPARATOR + VECTOR_STORE_FILENAME):
                    namespace = path.name[: -len(NAMESPACE_SEPARATOR + VECTOR_STORE_FILENAME)]
                else:
                    continue
                vector_stores[namespace] = SimpleVectorStore.from_persist_path(path)
        vector_stores.setdefault(DEFAULT_VECTOR_STORE_NAMESPACE, SimpleVectorStore())

        graph_store = SimpleGraphStore.from_persist_path(persist_dir / GRAPH_STORE_FILENAME)

        logger.info(f"Loaded storage context from {persist_dir}")
        return cls(docstore, index_store, vector_stores, graph_store)

    @property
    def vector_store(self) -> BaseVectorStore:
        return self.get_vector_store(DEFAULT_VECTOR_STORE_NAMESPACE)

    def add_vector_store(
        self, vector_store: BaseVectorStore, namespace: str = DEFAULT_VECTOR_STORE_NAMESPACE
    ) -> None:
        self.vector_stores[namespace] = vector_store

    def get_vector_store(self, namespace: str = DEFAULT_VECTOR_STORE_NAMESPACE) -> BaseVectorStore:
        if namespace not in self.vector_stores:
            raise NotFoundError(f"No vector store registered under namespace {namespace!r}")
        return self.vector_stores[namespace]

    def persist(self, persist_dir: Union[str, Path] = DEFAULT_PERSIST_DIR) -> None:
        """Write every simple store into ``persist_dir``."""
        persist_dir = Path(persist_dir)
        persist_dir.mkdir(parents=True, exist_ok=True)

        if isinstance(self.docstore, SimpleDocumentStore):
            self.docstore.persist(persist_dir / DOCSTORE_FILENAME)
        if isinstance(self.index_store, SimpleIndexStore):
            self.index_store.persist(persist_dir / INDEX_STORE_FILENAME)
        for namespace, vector_store in self.vector_stores.items():
            if isinstance(vector_store, SimpleVectorStore):
                vector_store.persist(persist_dir / vector_store_filename(namespace))
        if isinstance(self.graph_store, SimpleGraphStore):
            self.graph_store.persist(persist_dir / GRAPH_STORE_FILENAME)

        logger.info(f"Persisted storage context to {persist_dir}")

    def to_dict(self) -> dict[str, Any]:
        """Serialize the simple stores into one dict."""
        data: dict[str, Any] = {}
        if isinstance(self.docstore, SimpleDocumentStore):
            data["docstore"] = self.docstore.to_dict()
        if isinstance(self.index_store, SimpleIndexStore):
            data["index_store"] = self.index_store.to_dict()
        data["vector_stores"] = {
            namespace: vs.to_dict()
            for namespace, vs in self.vector_stores.items()
            if isinstance(vs, SimpleVectorStore)
        }
        if isinstance(self.graph_store, SimpleGraphStore):
            data["graph_store"] = self.graph_store.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StorageContext":
        docstore = (
            SimpleDocumentStore.from_dict(data["docstore"])
            if "docstore" in data else SimpleDocumentStore()
        )
        index_store = (
            SimpleIndexStore.from_dict(data["index_store"])
            if "index_store" in data else SimpleIndexStore()
        )
        vector_stores: dict[str, BaseVectorStore] = {
            namespace: SimpleVectorStore.from_dict(vs_data)
            for namespace, vs_data in data.get("vector_stores", {}).items()
        }
        vector_stores.setdefault(DEFAULT_VECTOR_STORE_NAMESPACE, SimpleVectorStore())
        graph_store = (
            SimpleGraphStore.from_dict(data["graph_store"])
            if "graph_store" in data else SimpleGraphStore()
        )
        return cls(docstore, index_store, vector_stores, graph_store)
