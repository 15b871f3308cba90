"""In-memory vector store."""

import logging
import threading
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from pyrag.embeddings.similarity import get_top_k_embeddings, get_top_k_mmr_embeddings
from pyrag.exceptions import DecodeError, InvalidArgumentError, UnsupportedError
from pyrag.schema import (
    BaseNode,
    NodeWithScore,
    TextNode,
    VectorStoreQuery,
    VectorStoreQueryMode,
)
from pyrag.utils.io import copy_value, load_json_file, write_json_file
from pyrag.vector_stores.base import BaseVectorStore

logger = logging.getLogger(__name__)

DEFAULT_VECTOR_STORE_NAMESPACE = "default"
VECTOR_STORE_FILENAME = "vector_store.json"
NAMESPACE_SEPARATOR = "__"


def vector_store_filename(namespace: str = DEFAULT_VECTOR_STORE_NAMESPACE) -> str:
    """File name for a namespace: ``vector_store.json`` or ``<ns>__vector_store.json``."""
    if namespace == DEFAULT_VECTOR_STORE_NAMESPACE:
        return VECTOR_STORE_FILENAME
    return f"{namespace}{NAMESPACE_SEPARATOR}{VECTOR_STORE_FILENAME}"


class SimpleVectorStoreData(BaseModel):
    """Serializable state of a SimpleVectorStore."""
    embedding_dict: dict[str, list[float]] = Field(default_factory=dict)
    text_id_to_ref_doc_id: dict[str, str] = Field(default_factory=dict)
    metadata_dict: dict[str, dict[str, Any]] = Field(default_factory=dict)


class SimpleVectorStore(BaseVectorStore):
    """
    In-memory vector store with exact cosine search.

    Only IDs, embeddings and metadata are kept; returned nodes carry their
    ID and metadata and are resolved to full nodes through the document
    store. Suitable for tests and small corpora.
    """

    stores_text: bool = False

    def __init__(self, data: Optional[SimpleVectorStoreData] = None):
        self._lock = threading.Lock()
        self._data = data or SimpleVectorStoreData()

    async def add(self, nodes: list[BaseNode]) -> list[str]:
        ids = []
        with self._lock:
            for node in nodes:
                if node.embedding is None:
                    raise InvalidArgumentError(f"Node {node.id} has no embedding")
                self._data.embedding_dict[node.id] = list(node.embedding)
                if node.ref_doc_id:
                    self._data.text_id_to_ref_doc_id[node.id] = node.ref_doc_id
                self._data.metadata_dict[node.id] = copy_value(node.metadata)
                ids.append(node.id)

        logger.debug(f"Added {len(ids)} embeddings to simple vector store")
        return ids

    async def delete(self, ref_doc_id: str) -> None:
        """Delete the entry with this text ID and every entry derived from this ref doc."""
        with self._lock:
            doomed = {
                text_id
                for text_id, ref_id in self._data.text_id_to_ref_doc_id.items()
                if ref_id == ref_doc_id
            }
            if ref_doc_id in self._data.embedding_dict:
                doomed.add(ref_doc_id)

            for text_id in doomed:
                self._data.embedding_dict.pop(text_id, None)
                self._data.text_id_to_ref_doc_id.pop(text_id, None)
                self._data.metadata_dict.pop(text_id, None)

    async def delete_nodes(self, node_ids: list[str]) -> None:
        with self._lock:
            for text_id in node_ids:
                self._data.embedding_dict.pop(text_id, None)
                self._data.text_id_to_ref_doc_id.pop(text_id, None)
                self._data.metadata_dict.pop(text_id, None)

    def get(self, text_id: str) -> list[float]:
        with self._lock:
            if text_id not in self._data.embedding_dict:
                raise InvalidArgumentError(f"No embedding stored for {text_id}")
            return list(self._data.embedding_dict[text_id])

    async def query(self, query: VectorStoreQuery) -> list[NodeWithScore]:
        if query.mode in (VectorStoreQueryMode.SPARSE, VectorStoreQueryMode.HYBRID):
            raise UnsupportedError(f"Query mode {query.mode.value} is not supported by SimpleVectorStore")
        if query.query_embedding is None:
            raise InvalidArgumentError("Query embedding is required")

        with self._lock:
            candidates = []
            for text_id, embedding in self._data.embedding_dict.items():
                if query.node_ids is not None and text_id not in query.node_ids:
                    continue
                metadata = self._data.metadata_dict.get(text_id, {})
                if query.filters is not None and not query.filters.matches(metadata):
                    continue
                candidates.append((text_id, embedding))

            ids = [c[0] for c in candidates]
            embeddings = [c[1] for c in candidates]

            if query.mode == VectorStoreQueryMode.MMR:
                scores, top_ids = get_top_k_mmr_embeddings(
                    query.query_embedding,
                    embeddings,
                    ids,
                    similarity_top_k=query.similarity_top_k,
                    mmr_threshold=query.mmr_threshold,
                )
            else:
                scores, top_ids = get_top_k_embeddings(
                    query.query_embedding,
                    embeddings,
                    ids,
                    similarity_top_k=query.similarity_top_k,
                )

            results = []
            for score, text_id in zip(scores, top_ids):
                node = TextNode(
                    id=text_id,
                    metadata=copy_value(self._data.metadata_dict.get(text_id, {})),
                )
                results.append(NodeWithScore(node=node, score=score))

        logger.debug(f"Simple vector store returned {len(results)} results")
        return results

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return self._data.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SimpleVectorStore":
        try:
            return cls(SimpleVectorStoreData.model_validate(data))
        except ValueError as e:
            raise DecodeError(f"Invalid vector store data: {e}") from e

    def persist(self, persist_path: Union[str, Path]) -> None:
        write_json_file(persist_path, self.to_dict())
        logger.debug(f"Persisted simple vector store to {persist_path}")

    @classmethod
    def from_persist_path(cls, persist_path: Union[str, Path]) -> "SimpleVectorStore":
        return cls.from_dict(load_json_file(persist_path))

    @classmethod
    def from_persist_dir(
        cls,
        persist_dir: Union[str, Path],
        namespace: str = DEFAULT_VECTOR_STORE_NAMESPACE,
    ) -> "SimpleVectorStore":
        return cls.from_persist_path(Path(persist_dir) / vector_store_filename(namespace))
