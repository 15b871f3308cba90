"""Base index: storage wiring, insertion, deletion and document refresh."""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar, Optional

from pyrag.data_structs import IndexStruct
from pyrag.embeddings.base import BaseEmbedding
from pyrag.llms.base import LLM
from pyrag.postprocessor import BaseNodePostprocessor
from pyrag.query_engine import RetrieverQueryEngine
from pyrag.schema import BaseNode, Document, NodeRelationship, TextNode
from pyrag.storage.context import StorageContext
from pyrag.storage.docstore import KVDocumentStore

if TYPE_CHECKING:
    from pyrag.node_parser import NodeParser
    from pyrag.retrievers.base import BaseRetriever

logger = logging.getLogger(__name__)


def documents_to_nodes(
    documents: list[Document], node_parser: Optional["NodeParser"] = None
) -> list[BaseNode]:
    """
    Turn documents into leaf nodes.

    Without a parser each document becomes one text node sharing its ID and
    pointing back at it through a SOURCE relationship.
    """
    if node_parser is not None:
        return node_parser.get_nodes_from_documents(documents)

    return [
        TextNode(
            id=doc.id,
            text=doc.text,
            metadata=dict(doc.metadata),
            excluded_embed_metadata_keys=list(doc.excluded_embed_metadata_keys),
            excluded_llm_metadata_keys=list(doc.excluded_llm_metadata_keys),
            relationships={NodeRelationship.SOURCE: doc.as_related_node_info()},
        )
        for doc in documents
    ]


class BaseIndex(ABC):
    """Abstract base class for indices.

    An index owns one index struct, kept in the storage context's index
    store, and reads its nodes from the storage context's document store.
    Build indices with the async ``from_nodes``/``from_documents``
    classmethods; the constructor alone wraps an existing struct.
    """

    index_struct_cls: ClassVar[type[IndexStruct]]

    def __init__(
        self,
        index_struct: Optional[IndexStruct] = None,
        storage_context: Optional[StorageContext] = None,
        embed_model: Optional[BaseEmbedding] = None,
        llm: Optional[LLM] = None,
        node_parser: Optional["NodeParser"] = None,
        **kwargs: Any,
    ):
        self._index_struct = index_struct or self.index_struct_cls()
        self._storage_context = storage_context or StorageContext.from_defaults()
        self._embed_model = embed_model
        self._llm = llm
        self._node_parser = node_parser

    @classmethod
    async def from_nodes(
        cls,
        nodes: list[BaseNode],
        storage_context: Optional[StorageContext] = None,
        **kwargs: Any,
    ) -> "BaseIndex":
        """
        Build an index over nodes.

        Args:
            nodes: Nodes to index
            storage_context: Stores to build in (fresh in-memory stores by default)
            **kwargs: Index-specific options

        Returns:
            The built index, with its struct registered in the index store
        """
        index = cls(storage_context=storage_context, **kwargs)
        await index._add_nodes_to_docstore(nodes)
        await index._build_index_from_nodes(nodes)
        await index._persist_index_struct()
        logger.info(f"Built {cls.__name__} {index.index_id} over {len(nodes)} nodes")
        return index

    @classmethod
    async def from_documents(
        cls,
        documents: list[Document],
        storage_context: Optional[StorageContext] = None,
        node_parser: Optional["NodeParser"] = None,
        **kwargs: Any,
    ) -> "BaseIndex":
        """Build an index over documents, recording each document's hash."""
        nodes = documents_to_nodes(documents, node_parser)
        index = await cls.from_nodes(
            nodes, storage_context=storage_context, node_parser=node_parser, **kwargs
        )
        for doc in documents:
            await index.docstore.set_document_hash(doc.id, doc.hash)
        return index

    @property
    def index_struct(self) -> IndexStruct:
        return self._index_struct

    @property
    def index_id(self) -> str:
        return self._index_struct.index_id

    def set_index_id(self, index_id: str) -> None:
        """Rename the index; call before persisting."""
        self._index_struct.index_id = index_id

    @property
    def storage_context(self) -> StorageContext:
        return self._storage_context

    @property
    def docstore(self) -> KVDocumentStore:
        return self._storage_context.docstore

    @property
    def embed_model(self) -> BaseEmbedding:
        """The index's embedding model, or the process-wide default."""
        if self._embed_model is None:
            from pyrag.settings import Settings

            return Settings.embed_model
        return self._embed_model

    @property
    def llm(self) -> Optional[LLM]:
        return self._llm

    async def _persist_index_struct(self) -> None:
        await self._storage_context.index_store.add_index_struct(self._index_struct)

    async def _add_nodes_to_docstore(self, nodes: list[BaseNode]) -> None:
        await self.docstore.add_documents(nodes, allow_update=True)

    @abstractmethod
    async def _build_index_from_nodes(self, nodes: list[BaseNode]) -> None:
        """Populate the index struct from nodes already in the docstore."""
        pass

    @abstractmethod
    async def _insert(self, nodes: list[BaseNode]) -> None:
        """Add nodes to an existing index struct."""
        pass

    @abstractmethod
    async def _delete_node(self, node_id: str) -> None:
        """Remove one node from the index struct."""
        pass

    async def insert_nodes(self, nodes: list[BaseNode]) -> None:
        await self._add_nodes_to_docstore(nodes)
        await self._insert(nodes)
        await self._persist_index_struct()
        logger.debug(f"Inserted {len(nodes)} nodes into {self.index_id}")

    async def insert(self, document: Document) -> None:
        """Insert a document, parsed with the index's node parser."""
        nodes = documents_to_nodes([document], self._node_parser)
        await self.insert_nodes(nodes)
        await self.docstore.set_document_hash(document.id, document.hash)

    async def delete_nodes(self, node_ids: list[str], delete_from_docstore: bool = False) -> None:
        """
        Remove nodes from the index.

        Args:
            node_ids: IDs of the nodes to remove
            delete_from_docstore: Also delete the nodes from the document store
        """
        for node_id in node_ids:
            await self._delete_node(node_id)
            if delete_from_docstore:
                await self.docstore.delete_document(node_id, raise_error=False)
        await self._persist_index_struct()

    async def delete_ref_doc(self, ref_doc_id: str, delete_from_docstore: bool = False) -> None:
        """Remove every node derived from a source document."""
        ref_doc_info = await self.docstore.get_ref_doc_info(ref_doc_id)
        if ref_doc_info is None:
            logger.warning(f"Ref doc {ref_doc_id} not found, nothing to delete")
            return

        await self.delete_nodes(ref_doc_info.node_ids, delete_from_docstore=False)
        if delete_from_docstore:
            await self.docstore.delete_ref_doc(ref_doc_id, raise_error=False)

    async def refresh_documents(self, documents: list[Document]) -> list[bool]:
        """
        Insert new documents and re-index changed ones.

        Args:
            documents: Current versions of the documents

        Returns:
            For each document, whether it was inserted or re-indexed
        """
        refreshed = []
        for document in documents:
            existing_hash = await self.docstore.get_document_hash(document.id)
            if existing_hash is None:
                await self.insert(document)
                refreshed.append(True)
            elif existing_hash != document.hash:
                await self.delete_ref_doc(document.id, delete_from_docstore=True)
                await self.insert(document)
                refreshed.append(True)
            else:
                refreshed.append(False)

        logger.info(f"Refreshed {sum(refreshed)} of {len(documents)} documents")
        return refreshed

    async def get_nodes(self) -> list[BaseNode]:
        """Every node the index references, resolved from the docstore."""
        return await self.docstore.get_nodes(self.node_ids, raise_error=False)

    @property
    @abstractmethod
    def node_ids(self) -> list[str]:
        """IDs of the nodes the index struct references."""
        pass

    @abstractmethod
    def as_retriever(self, **kwargs: Any) -> "BaseRetriever":
        pass

    def as_query_engine(
        self,
        llm: Optional[LLM] = None,
        node_postprocessors: Optional[list[BaseNodePostprocessor]] = None,
        **kwargs: Any,
    ) -> RetrieverQueryEngine:
        """
        Build a query engine over this index's retriever.

        Args:
            llm: LLM answering the query (the index's LLM by default)
            node_postprocessors: Postprocessors applied to retrieved nodes
            **kwargs: Passed to ``as_retriever``
        """
        return RetrieverQueryEngine(
            retriever=self.as_retriever(**kwargs),
            llm=llm if llm is not None else self._llm,
            node_postprocessors=node_postprocessors,
        )
