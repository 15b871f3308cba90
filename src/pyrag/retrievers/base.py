"""Base retriever with recursive retrieval through an object map."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Union

from pyrag.schema import (
    BaseNode,
    IndexNode,
    NodeWithScore,
    QueryBundle,
    to_query_bundle,
)

logger = logging.getLogger(__name__)


class BaseRetriever(ABC):
    """Abstract base class for retrievers.

    Retrievers find nodes relevant to a query. A retrieved ``IndexNode``
    (or any node whose ID is a key of ``object_map``) is expanded into what
    the mapped object yields: another retriever is queried, a node is
    substituted in place.
    """

    def __init__(
        self,
        object_map: Optional[dict[str, Any]] = None,
        verbose: bool = False,
    ):
        self.object_map: dict[str, Any] = dict(object_map or {})
        self.verbose = verbose

    async def retrieve(self, query: Union[str, QueryBundle]) -> list[NodeWithScore]:
        """Retrieve nodes for a query.

        Args:
            query: Query string or bundle

        Returns:
            Nodes with scores, best first
        """
        query_bundle = to_query_bundle(query)
        nodes = await self._retrieve(query_bundle)
        nodes = await self._handle_recursive_retrieval(query_bundle, nodes)
        logger.debug(f"{type(self).__name__} retrieved {len(nodes)} nodes")
        return nodes

    @abstractmethod
    async def _retrieve(self, query_bundle: QueryBundle) -> list[NodeWithScore]:
        """Retrieve nodes for a query bundle."""
        pass

    def add_object(self, index_id: str, obj: Any) -> None:
        self.object_map[index_id] = obj

    def get_object(self, index_id: str) -> Any:
        return self.object_map.get(index_id)

    def _object_key(self, node: BaseNode) -> Optional[str]:
        if isinstance(node, IndexNode) and node.index_id in self.object_map:
            return node.index_id
        if node.id in self.object_map:
            return node.id
        return None

    async def _handle_recursive_retrieval(
        self, query_bundle: QueryBundle, nodes: list[NodeWithScore]
    ) -> list[NodeWithScore]:
        if not self.object_map:
            return nodes

        results: list[NodeWithScore] = []
        seen: set[str] = set()

        for node_with_score in nodes:
            key = self._object_key(node_with_score.node)
            if key is None:
                expanded = [node_with_score]
            else:
                score = node_with_score.score or 1.0
                expanded = await self._retrieve_from_object(
                    self.object_map[key], query_bundle, score
                )
                if self.verbose:
                    logger.info(f"Expanded {key} into {len(expanded)} nodes")

            for candidate in expanded:
                if candidate.node.hash in seen:
                    continue
                seen.add(candidate.node.hash)
                results.append(candidate)

        return results

    async def _retrieve_from_object(
        self, obj: Any, query_bundle: QueryBundle, score: float
    ) -> list[NodeWithScore]:
        if isinstance(obj, NodeWithScore):
            return [obj]
        if isinstance(obj, BaseNode):
            return [NodeWithScore(node=obj, score=score)]
        if isinstance(obj, BaseRetriever):
            return await obj.retrieve(query_bundle)

        logger.warning(f"Cannot retrieve from object of type {type(obj).__name__}")
        return []
