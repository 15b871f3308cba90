"""Merge retrieved leaf nodes into their parents."""

import logging
from typing import Any, Optional

from pyrag.retrievers.base import BaseRetriever
from pyrag.schema import BaseNode, NodeWithScore, QueryBundle
from pyrag.storage.context import StorageContext

logger = logging.getLogger(__name__)

DEFAULT_SIMPLE_RATIO_THRESH = 0.5


class AutoMergingRetriever(BaseRetriever):
    """
    Replace retrieved children with their parent when enough of them match.

    After base retrieval, each pass first fills gaps (a missing node between
    two retrieved siblings linked through NEXT/PREVIOUS is fetched with the
    mean of their scores), then merges: a parent whose retrieved share of
    children exceeds ``simple_ratio_thresh`` replaces those children, scored
    with their mean. Passes repeat until nothing changes, so merging can
    climb several levels of a hierarchy.
    """

    def __init__(
        self,
        vector_retriever: BaseRetriever,
        storage_context: StorageContext,
        simple_ratio_thresh: float = DEFAULT_SIMPLE_RATIO_THRESH,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self._vector_retriever = vector_retriever
        self._storage_context = storage_context
        self.simple_ratio_thresh = simple_ratio_thresh

    async def _get_node(self, node_id: str) -> Optional[BaseNode]:
        return await self._storage_context.docstore.get_node(node_id, raise_error=False)

    async def _fill_in_nodes(self, nodes: list[NodeWithScore]) -> tuple[list[NodeWithScore], bool]:
        present = {n.node_id for n in nodes}
        new_nodes: list[NodeWithScore] = []
        changed = False

        for cur, nxt in zip(nodes, nodes[1:] + [None]):
            new_nodes.append(cur)
            if nxt is None:
                continue

            next_rel = cur.node.next_node
            prev_rel = nxt.node.prev_node
            if next_rel is None or prev_rel is None:
                continue
            middle_id = next_rel.node_id
            if middle_id != prev_rel.node_id or middle_id in present:
                continue

            middle = await self._get_node(middle_id)
            if middle is None:
                continue
            score = (cur.get_score() + nxt.get_score()) / 2
            new_nodes.append(NodeWithScore(node=middle, score=score))
            present.add(middle_id)
            changed = True
            logger.debug(f"Filled in node {middle_id} between {cur.node_id} and {nxt.node_id}")

        return new_nodes, changed

    async def _get_parents_and_merge(
        self, nodes: list[NodeWithScore]
    ) -> tuple[list[NodeWithScore], bool]:
        parents: dict[str, BaseNode] = {}
        parent_children: dict[str, list[NodeWithScore]] = {}

        for node in nodes:
            parent_rel = node.node.parent_node
            if parent_rel is None:
                continue
            parent_id = parent_rel.node_id
            if parent_id not in parents:
                parent = await self._get_node(parent_id)
                if parent is None:
                    continue
                parents[parent_id] = parent
            parent_children.setdefault(parent_id, []).append(node)

        delete_ids: set[str] = set()
        merged: dict[str, NodeWithScore] = {}
        for parent_id, parent in parents.items():
            children = parent_children[parent_id]
            total = len(parent.child_nodes or []) or 1
            ratio = len(children) / total
            if ratio <= self.simple_ratio_thresh:
                continue

            delete_ids.update(c.node_id for c in children)
            score = sum(c.get_score() for c in children) / len(children)
            merged[parent_id] = NodeWithScore(node=parent, score=score)
            if self.verbose:
                logger.info(f"Merged {len(children)}/{total} children into {parent_id}")

        new_nodes = []
        for node in nodes:
            if node.node_id in delete_ids:
                continue
            if node.node_id in merged:
                # Parent retrieved directly as well
                candidate = merged.pop(node.node_id)
                if candidate.get_score() > node.get_score():
                    node = candidate
            new_nodes.append(node)
        new_nodes.extend(merged.values())

        return new_nodes, bool(delete_ids)

    async def _try_merging(self, nodes: list[NodeWithScore]) -> tuple[list[NodeWithScore], bool]:
        nodes, filled = await self._fill_in_nodes(nodes)
        nodes, merged = await self._get_parents_and_merge(nodes)
        return nodes, filled or merged

    async def _retrieve(self, query_bundle: QueryBundle) -> list[NodeWithScore]:
        nodes = await self._vector_retriever.retrieve(query_bundle)

        changed = True
        while changed:
            nodes, changed = await self._try_merging(nodes)

        return sorted(nodes, key=lambda x: x.get_score(), reverse=True)
