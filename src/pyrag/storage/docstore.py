"""
Document store: node persistence with hashes and source-document tracking.
"""

import logging
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from pyrag.exceptions import AlreadyExistsError, DecodeError, InvalidArgumentError, NotFoundError
from pyrag.schema import BaseNode, json_to_node, node_to_json
from pyrag.storage.kvstore import BaseKVStore, DataType, SimpleKVStore

logger = logging.getLogger(__name__)

DEFAULT_DOCSTORE_NAMESPACE = "docstore"


class RefDocInfo(BaseModel):
    """IDs of the nodes derived from one source document."""
    node_ids: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class KVDocumentStore:
    """
    Document store over any key-value store.

    The namespace is split into three collections: ``<ns>/data`` for node
    envelopes, ``<ns>/metadata`` for ``{doc_hash, ref_doc_id}`` records and
    ``<ns>/ref_doc_info`` for the node IDs derived from each source.
    """

    def __init__(self, kvstore: BaseKVStore, namespace: str = DEFAULT_DOCSTORE_NAMESPACE):
        self._kvstore = kvstore
        self.namespace = namespace
        self._node_collection = f"{namespace}/data"
        self._metadata_collection = f"{namespace}/metadata"
        self._ref_doc_collection = f"{namespace}/ref_doc_info"

    async def docs(self) -> dict[str, BaseNode]:
        """All stored nodes keyed by ID."""
        values = await self._kvstore.get_all(self._node_collection)
        return {node_id: json_to_node(value) for node_id, value in values.items()}

    async def add_documents(self, nodes: list[BaseNode], allow_update: bool = True) -> None:
        """
        Store nodes and record their hashes and source documents.

        Args:
            nodes: Nodes to store
            allow_update: Overwrite existing nodes instead of failing

        Raises:
            InvalidArgumentError: A node has an empty ID
            AlreadyExistsError: A node exists and allow_update is False
        """
        for node in nodes:
            if not node.id:
                raise InvalidArgumentError("Node ID must not be empty")

            if not allow_update and await self.document_exists(node.id):
                raise AlreadyExistsError(
                    f"Node {node.id} already exists. Set allow_update=True to overwrite."
                )

            ref_doc_id = node.ref_doc_id
            stored = await self._kvstore.get(node.id, self._metadata_collection)
            if stored and stored.get("ref_doc_id") and stored["ref_doc_id"] != ref_doc_id:
                await self._remove_from_ref_doc(node.id)

            await self._kvstore.put(node.id, node_to_json(node), self._node_collection)

            metadata: dict[str, Any] = {"doc_hash": node.hash}
            if ref_doc_id:
                ref_doc_info = await self.get_ref_doc_info(ref_doc_id) or RefDocInfo()
                if node.id not in ref_doc_info.node_ids:
                    ref_doc_info.node_ids.append(node.id)
                await self._kvstore.put(
                    ref_doc_id, ref_doc_info.model_dump(), self._ref_doc_collection
                )
                metadata["ref_doc_id"] = ref_doc_id

            await self._kvstore.put(node.id, metadata, self._metadata_collection)

        logger.debug(f"Added {len(nodes)} nodes to docstore '{self.namespace}'")

    async def get_document(self, node_id: str, raise_error: bool = True) -> Optional[BaseNode]:
        """Get a node by ID; a miss raises NotFoundError or returns None."""
        value = await self._kvstore.get(node_id, self._node_collection)
        if value is None:
            if raise_error:
                raise NotFoundError(f"Node {node_id} not found")
            return None
        return json_to_node(value)

    async def get_node(self, node_id: str, raise_error: bool = True) -> Optional[BaseNode]:
        return await self.get_document(node_id, raise_error=raise_error)

    async def get_nodes(self, node_ids: list[str], raise_error: bool = True) -> list[BaseNode]:
        """Get nodes in the order of ``node_ids``, skipping misses unless raise_error."""
        nodes = []
        for node_id in node_ids:
            node = await self.get_document(node_id, raise_error=raise_error)
            if node is not None:
                nodes.append(node)
        return nodes

    async def get_node_dict(self, node_ids: list[str]) -> dict[str, BaseNode]:
        return {node.id: node for node in await self.get_nodes(node_ids)}

    async def document_exists(self, node_id: str) -> bool:
        return await self._kvstore.get(node_id, self._node_collection) is not None

    async def ref_doc_exists(self, ref_doc_id: str) -> bool:
        return await self.get_ref_doc_info(ref_doc_id) is not None

    async def delete_document(self, node_id: str, raise_error: bool = True) -> None:
        """Delete a node and drop it from its source's RefDocInfo."""
        if not await self.document_exists(node_id):
            if raise_error:
                raise NotFoundError(f"Node {node_id} not found")
            return

        await self._remove_from_ref_doc(node_id)
        await self._kvstore.delete(node_id, self._node_collection)
        await self._kvstore.delete(node_id, self._metadata_collection)

    async def delete_ref_doc(self, ref_doc_id: str, raise_error: bool = True) -> None:
        """Delete every node derived from a source document, then its record."""
        ref_doc_info = await self.get_ref_doc_info(ref_doc_id)
        if ref_doc_info is None:
            if raise_error:
                raise NotFoundError(f"Ref doc {ref_doc_id} not found")
            return

        for node_id in ref_doc_info.node_ids:
            await self._kvstore.delete(node_id, self._node_collection)
            await self._kvstore.delete(node_id, self._metadata_collection)

        await self._kvstore.delete(ref_doc_id, self._ref_doc_collection)
        await self._kvstore.delete(ref_doc_id, self._metadata_collection)
        await self._kvstore.delete(ref_doc_id, self._node_collection)
        logger.debug(f"Deleted ref doc {ref_doc_id} and {len(ref_doc_info.node_ids)} nodes")

    async def _remove_from_ref_doc(self, node_id: str) -> None:
        metadata = await self._kvstore.get(node_id, self._metadata_collection)
        if not metadata or not metadata.get("ref_doc_id"):
            return

        ref_doc_id = metadata["ref_doc_id"]
        ref_doc_info = await self.get_ref_doc_info(ref_doc_id)
        if ref_doc_info is None:
            return

        if node_id in ref_doc_info.node_ids:
            ref_doc_info.node_ids.remove(node_id)

        if ref_doc_info.node_ids:
            await self._kvstore.put(ref_doc_id, ref_doc_info.model_dump(), self._ref_doc_collection)
        else:
            await self._kvstore.delete(ref_doc_id, self._ref_doc_collection)
            await self._kvstore.delete(ref_doc_id, self._metadata_collection)
            await self._kvstore.delete(ref_doc_id, self._node_collection)

    async def set_document_hash(self, node_id: str, doc_hash: str) -> None:
        metadata = await self._kvstore.get(node_id, self._metadata_collection) or {}
        metadata["doc_hash"] = doc_hash
        await self._kvstore.put(node_id, metadata, self._metadata_collection)

    async def get_document_hash(self, node_id: str) -> Optional[str]:
        metadata = await self._kvstore.get(node_id, self._metadata_collection)
        if metadata is None:
            return None
        return metadata.get("doc_hash")

    async def get_all_document_hashes(self) -> dict[str, str]:
        """Map of hash -> node ID over every recorded hash."""
        hashes = {}
        for node_id, metadata in (await self._kvstore.get_all(self._metadata_collection)).items():
            doc_hash = metadata.get("doc_hash")
            if doc_hash:
                hashes[doc_hash] = node_id
        return hashes

    async def get_ref_doc_info(self, ref_doc_id: str) -> Optional[RefDocInfo]:
        value = await self._kvstore.get(ref_doc_id, self._ref_doc_collection)
        if value is None:
            return None
        return _to_ref_doc_info(ref_doc_id, value)

    async def get_all_ref_doc_info(self) -> dict[str, RefDocInfo]:
        values = await self._kvstore.get_all(self._ref_doc_collection)
        return {ref_id: _to_ref_doc_info(ref_id, value) for ref_id, value in values.items()}


def _to_ref_doc_info(ref_doc_id: str, value: dict[str, Any]) -> RefDocInfo:
    try:
        return RefDocInfo.model_validate(value)
    except ValueError as e:
        raise DecodeError(f"Invalid ref doc info for {ref_doc_id}: {e}") from e


class SimpleDocumentStore(KVDocumentStore):
    """Document store over an in-memory key-value store."""

    def __init__(
        self,
        simple_kvstore: Optional[SimpleKVStore] = None,
        namespace: str = DEFAULT_DOCSTORE_NAMESPACE,
    ):
        self._simple_kvstore = simple_kvstore or SimpleKVStore()
        super().__init__(self._simple_kvstore, namespace=namespace)

    def persist(self, persist_path: Union[str, Path]) -> None:
        self._simple_kvstore.persist(persist_path)

    @classmethod
    def from_persist_path(
        cls, persist_path: Union[str, Path], namespace: str = DEFAULT_DOCSTORE_NAMESPACE
    ) -> "SimpleDocumentStore":
        return cls(SimpleKVStore.from_persist_path(persist_path), namespace=namespace)

    def to_dict(self) -> DataType:
        return self._simple_kvstore.to_dict()

    @classmethod
    def from_dict(
        cls, data: DataType, namespace: str = DEFAULT_DOCSTORE_NAMESPACE
    ) -> "SimpleDocumentStore":
        return cls(SimpleKVStore.from_dict(data), namespace=namespace)
