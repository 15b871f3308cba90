"""Summary index: an ordered list of nodes."""

import logging
from enum import Enum
from typing import Any, ClassVar

from pyrag.data_structs import IndexList, IndexStruct
from pyrag.exceptions import InvalidArgumentError
from pyrag.indices.base import BaseIndex
from pyrag.schema import BaseNode

logger = logging.getLogger(__name__)


class SummaryRetrieverMode(str, Enum):
    DEFAULT = "default"
    EMBEDDING = "embedding"
    LLM = "llm"


class SummaryIndex(BaseIndex):
    """
    Index keeping nodes in insertion order.

    Retrieval returns every node, the nodes closest to the query embedding,
    or the nodes an LLM picks as relevant.
    """

    index_struct_cls: ClassVar[type[IndexStruct]] = IndexList

    @property
    def index_struct(self) -> IndexList:
        return self._index_struct

    @property
    def node_ids(self) -> list[str]:
        return list(self._index_struct.nodes)

    async def _build_index_from_nodes(self, nodes: list[BaseNode]) -> None:
        for node in nodes:
            self._index_struct.add_node(node)

    async def _insert(self, nodes: list[BaseNode]) -> None:
        for node in nodes:
            self._index_struct.add_node(node)

    async def _delete_node(self, node_id: str) -> None:
        self._index_struct.nodes = [n for n in self._index_struct.nodes if n != node_id]

    def as_retriever(
        self,
        retriever_mode: SummaryRetrieverMode | str = SummaryRetrieverMode.DEFAULT,
        **kwargs: Any,
    ):
        from pyrag.retrievers.summary import (
            SummaryIndexEmbeddingRetriever,
            SummaryIndexLLMRetriever,
            SummaryIndexRetriever,
        )

        try:
            mode = SummaryRetrieverMode(retriever_mode)
        except ValueError:
            raise InvalidArgumentError(f"Unknown summary retriever mode: {retriever_mode}")

        if mode == SummaryRetrieverMode.EMBEDDING:
            return SummaryIndexEmbeddingRetriever(self, **kwargs)
        if mode == SummaryRetrieverMode.LLM:
            return SummaryIndexLLMRetriever(self, **kwargs)
        return SummaryIndexRetriever(self, **kwargs)


ListIndex = SummaryIndex
