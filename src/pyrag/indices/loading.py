"""Rehydrate indices from a storage context."""

import logging
from typing import Any, Optional

from pyrag.data_structs import IndexStructType
from pyrag.exceptions import UnsupportedError
from pyrag.indices.base import BaseIndex
from pyrag.indices.keyword_table import KeywordTableIndex
from pyrag.indices.knowledge_graph import KnowledgeGraphIndex
from pyrag.indices.summary import SummaryIndex
from pyrag.indices.tree import TreeIndex
from pyrag.indices.vector_store import VectorStoreIndex
from pyrag.storage.context import StorageContext

logger = logging.getLogger(__name__)

INDEX_STRUCT_TYPE_TO_INDEX_CLASS: dict[IndexStructType, type[BaseIndex]] = {
    IndexStructType.VECTOR: VectorStoreIndex,
    IndexStructType.LIST: SummaryIndex,
    IndexStructType.KEYWORD_TABLE: KeywordTableIndex,
    IndexStructType.TREE: TreeIndex,
    IndexStructType.KG: KnowledgeGraphIndex,
}


async def load_index_from_storage(
    storage_context: StorageContext,
    index_id: Optional[str] = None,
    **kwargs: Any,
) -> BaseIndex:
    """
    Load an index from the storage context's index store.

    Args:
        storage_context: Stores holding the index
        index_id: ID of the index (the sole stored index when omitted)
        **kwargs: Passed to the index constructor (``llm``, ``embed_model``, ...)

    Returns:
        The index class matching the stored struct type
    """
    index_struct = await storage_context.index_store.get_index_struct(index_id)
    index_cls = INDEX_STRUCT_TYPE_TO_INDEX_CLASS.get(index_struct.get_type())
    if index_cls is None:
        raise UnsupportedError(f"No index class for struct type {index_struct.get_type()}")

    logger.info(f"Loading {index_cls.__name__} {index_struct.index_id}")
    return index_cls(index_struct=index_struct, storage_context=storage_context, **kwargs)
