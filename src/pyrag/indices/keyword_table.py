"""Keyword table index."""

import logging
from typing import Any, ClassVar, Optional

from pyrag.data_structs import IndexStruct, KeywordTable
from pyrag.indices.base import BaseIndex
from pyrag.indices.keywords import BaseKeywordExtractor, SimpleKeywordExtractor
from pyrag.schema import BaseNode, MetadataMode

logger = logging.getLogger(__name__)

DEFAULT_MAX_KEYWORDS_PER_CHUNK = 10


class KeywordTableIndex(BaseIndex):
    """
    Index mapping keywords to the nodes they were extracted from.

    Keywords come from ``keyword_extractor``, which defaults to the
    frequency-based simple extractor.
    """

    index_struct_cls: ClassVar[type[IndexStruct]] = KeywordTable

    def __init__(
        self,
        index_struct: Optional[KeywordTable] = None,
        keyword_extractor: Optional[BaseKeywordExtractor] = None,
        max_keywords_per_chunk: int = DEFAULT_MAX_KEYWORDS_PER_CHUNK,
        **kwargs: Any,
    ):
        super().__init__(index_struct=index_struct, **kwargs)
        self.keyword_extractor = keyword_extractor or SimpleKeywordExtractor()
        self.max_keywords_per_chunk = max_keywords_per_chunk

    @property
    def index_struct(self) -> KeywordTable:
        return self._index_struct

    @property
    def node_ids(self) -> list[str]:
        return self._index_struct.node_ids

    async def _add_nodes(self, nodes: list[BaseNode]) -> None:
        for node in nodes:
            keywords = await self.keyword_extractor.extract_keywords(
                node.get_content(metadata_mode=MetadataMode.LLM),
                self.max_keywords_per_chunk,
            )
            self._index_struct.add_node(keywords, node)
            logger.debug(f"Extracted {len(keywords)} keywords from node {node.id}")

    async def _build_index_from_nodes(self, nodes: list[BaseNode]) -> None:
        await self._add_nodes(nodes)

    async def _insert(self, nodes: list[BaseNode]) -> None:
        await self._add_nodes(nodes)

    async def _delete_node(self, node_id: str) -> None:
        self._index_struct.delete_node(node_id)

    def as_retriever(self, **kwargs: Any):
        from pyrag.retrievers.keyword_table import KeywordTableRetriever

        return KeywordTableRetriever(self, **kwargs)


SimpleKeywordTableIndex = KeywordTableIndex
