"""Vector store index."""

import logging
from typing import Any, ClassVar, Optional

from pyrag.data_structs import IndexDict, IndexStruct
from pyrag.exceptions import wrap_upstream
from pyrag.indices.base import BaseIndex
from pyrag.schema import BaseNode, ImageNode, IndexNode, MetadataMode
from pyrag.vector_stores.base import BaseVectorStore

logger = logging.getLogger(__name__)

DEFAULT_INSERT_BATCH_SIZE = 2048


class VectorStoreIndex(BaseIndex):
    """
    Index that embeds nodes into a vector store.

    The struct maps vector-store text IDs to node IDs. Nodes are kept in the
    document store (without their embeddings) when the vector store does not
    keep text itself, or when ``store_nodes_override`` is set.
    """

    index_struct_cls: ClassVar[type[IndexStruct]] = IndexDict

    def __init__(
        self,
        index_struct: Optional[IndexDict] = None,
        insert_batch_size: int = DEFAULT_INSERT_BATCH_SIZE,
        store_nodes_override: bool = False,
        **kwargs: Any,
    ):
        super().__init__(index_struct=index_struct, **kwargs)
        self.insert_batch_size = insert_batch_size
        self.store_nodes_override = store_nodes_override

    @property
    def index_struct(self) -> IndexDict:
        return self._index_struct

    @property
    def vector_store(self) -> BaseVectorStore:
        return self._storage_context.vector_store

    @property
    def node_ids(self) -> list[str]:
        return list(self._index_struct.nodes_dict.values())

    @property
    def stores_nodes_in_docstore(self) -> bool:
        return not self.vector_store.stores_text or self.store_nodes_override

    async def _add_nodes_to_docstore(self, nodes: list[BaseNode]) -> None:
        # Nodes reach the docstore from _add_nodes_to_index, once embedded.
        return None

    async def _get_nodes_with_embeddings(self, nodes: list[BaseNode]) -> list[BaseNode]:
        missing = [n for n in nodes if n.embedding is None]
        if missing:
            texts = [n.get_content(metadata_mode=MetadataMode.EMBED) for n in missing]
            embeddings = await wrap_upstream(
                self.embed_model.get_text_embedding_batch(texts), "embedding"
            )
            embedded = {n.id: e for n, e in zip(missing, embeddings)}
        else:
            embedded = {}

        return [
            n if n.embedding is not None else n.model_copy(update={"embedding": embedded[n.id]})
            for n in nodes
        ]

    async def _add_nodes_to_index(self, nodes: list[BaseNode]) -> None:
        content_nodes = []
        for node in nodes:
            if not node.get_content(metadata_mode=MetadataMode.EMBED).strip():
                logger.warning(f"Skipping node {node.id} with no content to embed")
                continue
            content_nodes.append(node)

        for start in range(0, len(content_nodes), self.insert_batch_size):
            batch = await self._get_nodes_with_embeddings(
                content_nodes[start:start + self.insert_batch_size]
            )
            text_ids = await wrap_upstream(self.vector_store.add(batch), "vector_store")

            docstore_nodes = []
            for node, text_id in zip(batch, text_ids):
                self._index_struct.add_node(node, text_id=text_id)
                if self.stores_nodes_in_docstore or isinstance(node, (IndexNode, ImageNode)):
                    docstore_nodes.append(node.model_copy(update={"embedding": None}))

            if docstore_nodes:
                await self.docstore.add_documents(docstore_nodes, allow_update=True)

        logger.debug(f"Embedded {len(content_nodes)} nodes into vector store")

    async def _build_index_from_nodes(self, nodes: list[BaseNode]) -> None:
        await self._add_nodes_to_index(nodes)

    async def _insert(self, nodes: list[BaseNode]) -> None:
        await self._add_nodes_to_index(nodes)

    async def _delete_node(self, node_id: str) -> None:
        text_ids = [t for t, n in self._index_struct.nodes_dict.items() if n == node_id]
        if text_ids:
            await wrap_upstream(self.vector_store.delete_nodes(text_ids), "vector_store")
        for text_id in text_ids:
            self._index_struct.delete(text_id)

    async def delete_ref_doc(self, ref_doc_id: str, delete_from_docstore: bool = False) -> None:
        """Remove a source document's nodes from the vector store and the struct."""
        ref_doc_info = await self.docstore.get_ref_doc_info(ref_doc_id)
        if ref_doc_info is not None:
            await self.delete_nodes(ref_doc_info.node_ids, delete_from_docstore=False)
            if delete_from_docstore:
                await self.docstore.delete_ref_doc(ref_doc_id, raise_error=False)
        else:
            await wrap_upstream(self.vector_store.delete(ref_doc_id), "vector_store")

    def as_retriever(self, **kwargs: Any):
        from pyrag.retrievers.vector import VectorIndexRetriever

        return VectorIndexRetriever(self, **kwargs)
