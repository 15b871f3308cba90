"""Tree index: leaves summarized bottom-up into a hierarchy."""

import logging
from enum import Enum
from typing import Any, ClassVar, Optional

from pyrag.data_structs import IndexGraph, IndexStruct
from pyrag.exceptions import InvalidArgumentError, UnsupportedError, wrap_upstream
from pyrag.indices.base import BaseIndex
from pyrag.indices.utils import (
    extract_numbers_given_response,
    get_numbered_text_from_nodes,
    truncate_text,
)
from pyrag.prompts import DEFAULT_SUMMARY_PROMPT, DEFAULT_TREE_INSERT_PROMPT
from pyrag.schema import BaseNode, MetadataMode, TextNode
from pyrag.utils.aio import gather_cancel_on_error

logger = logging.getLogger(__name__)

DEFAULT_NUM_CHILDREN = 10


class TreeRetrieverMode(str, Enum):
    SELECT_LEAF = "select_leaf"
    SELECT_LEAF_EMBEDDING = "select_leaf_embedding"
    ALL_LEAF = "all_leaf"
    ROOT = "root"


_SELECT_MODES = (TreeRetrieverMode.SELECT_LEAF, TreeRetrieverMode.SELECT_LEAF_EMBEDDING)


class TreeIndex(BaseIndex):
    """
    Index building a summary tree over its leaves.

    Leaves are grouped ``num_children`` at a time and each group is
    summarized into a parent; levels are added until the top level has at
    most ``num_children`` nodes, which become the roots. Without an LLM a
    summary is the truncated concatenation of its children.
    """

    index_struct_cls: ClassVar[type[IndexStruct]] = IndexGraph

    def __init__(
        self,
        index_struct: Optional[IndexGraph] = None,
        num_children: int = DEFAULT_NUM_CHILDREN,
        build_tree: bool = True,
        summary_template: str = DEFAULT_SUMMARY_PROMPT,
        insert_prompt: str = DEFAULT_TREE_INSERT_PROMPT,
        **kwargs: Any,
    ):
        if num_children < 2:
            raise InvalidArgumentError("num_children must be at least 2")
        super().__init__(index_struct=index_struct, **kwargs)
        self.num_children = num_children
        self.build_tree = build_tree
        self.summary_template = summary_template
        self.insert_prompt = insert_prompt

    @property
    def index_struct(self) -> IndexGraph:
        return self._index_struct

    @property
    def node_ids(self) -> list[str]:
        return [self._index_struct.all_nodes[i] for i in sorted(self._index_struct.all_nodes)]

    async def get_sorted_nodes(self, node_dict: dict[int, str]) -> list[BaseNode]:
        """Resolve position -> ID entries to nodes, in position order."""
        ids = [node_dict[i] for i in sorted(node_dict)]
        return await self.docstore.get_nodes(ids, raise_error=False)

    async def _summarize(self, text: str) -> str:
        if self._llm is None:
            return truncate_text(text)
        prompt = self.summary_template.format(context_str=text)
        return await wrap_upstream(self._llm.complete(prompt), "llm")

    async def _summarize_groups(self, groups: list[list[BaseNode]]) -> list[TextNode]:
        """Summarize each group into a new parent node stored in the docstore."""
        texts = [
            "\n".join(n.get_content(metadata_mode=MetadataMode.LLM) for n in group)
            for group in groups
        ]
        summaries = await gather_cancel_on_error(self._summarize(text) for text in texts)

        parents = []
        for group, summary in zip(groups, summaries):
            parent = TextNode(text=summary)
            self._index_struct.insert(parent.id, children_ids=[n.id for n in group])
            parents.append(parent)

        await self.docstore.add_documents(parents, allow_update=True)
        return parents

    async def _build_tree_from_level(self, cur_nodes: dict[int, str]) -> None:
        level = 0
        while len(cur_nodes) > self.num_children:
            nodes = await self.get_sorted_nodes(cur_nodes)
            groups = [
                nodes[start:start + self.num_children]
                for start in range(0, len(nodes), self.num_children)
            ]
            parents = await self._summarize_groups(groups)
            cur_nodes = {self._index_struct.get_index(p.id): p.id for p in parents}
            level += 1
            logger.debug(f"Built tree level {level} with {len(parents)} nodes")

        self._index_struct.root_nodes = dict(cur_nodes)

    async def _build_index_from_nodes(self, nodes: list[BaseNode]) -> None:
        for node in nodes:
            self._index_struct.insert(node.id)

        if not self.build_tree:
            self._index_struct.root_nodes = dict(self._index_struct.all_nodes)
            return

        await self._build_tree_from_level(dict(self._index_struct.all_nodes))

    async def _select_insert_candidate(self, node: BaseNode, candidates: list[BaseNode]) -> BaseNode:
        if self._llm is None or len(candidates) == 1:
            return candidates[0]

        prompt = self.insert_prompt.format(
            num_chunks=len(candidates),
            context_list=get_numbered_text_from_nodes(candidates),
            new_chunk_text=node.get_content(metadata_mode=MetadataMode.LLM),
        )
        response = await wrap_upstream(self._llm.complete(prompt), "llm")
        numbers = extract_numbers_given_response(response)
        if numbers is None or numbers[0] > len(candidates):
            logger.warning(f"Could not parse insert choice from {response!r}, using the first")
            return candidates[0]
        return candidates[numbers[0] - 1]

    async def _find_parent_id(self, node: BaseNode, parent_id: Optional[str] = None) -> Optional[str]:
        """Descend from ``parent_id`` to the node whose children should take ``node``."""
        candidates = await self.docstore.get_nodes(
            self._index_struct.get_children(parent_id), raise_error=False
        )
        if not candidates:
            return parent_id

        selected = await self._select_insert_candidate(node, candidates)
        if self._index_struct.is_leaf(selected.id):
            return parent_id
        return await self._find_parent_id(node, selected.id)

    async def _consolidate_children(self, parent_id: str) -> None:
        children = await self.docstore.get_nodes(
            self._index_struct.get_children(parent_id), raise_error=False
        )
        new_children: list[str] = []
        groups = [
            children[start:start + self.num_children]
            for start in range(0, len(children), self.num_children)
        ]
        multi = [g for g in groups if len(g) > 1]
        parents = iter(await self._summarize_groups(multi))

        for group in groups:
            if len(group) == 1:
                new_children.append(group[0].id)
            else:
                new_children.append(next(parents).id)

        self._index_struct.node_id_to_children_ids[parent_id] = new_children
        logger.debug(f"Split children of {parent_id} into {len(new_children)} groups")

    async def _insert_node(self, node: BaseNode) -> None:
        struct = self._index_struct
        if not self.build_tree or not struct.root_nodes:
            index = struct.insert(node.id)
            struct.root_nodes[index] = node.id
            return

        parent_id = await self._find_parent_id(node)
        struct.insert_under_parent(node.id, parent_id)

        if parent_id is None:
            if len(struct.root_nodes) > self.num_children:
                await self._build_tree_from_level(dict(struct.root_nodes))
        elif len(struct.get_children(parent_id)) > self.num_children:
            await self._consolidate_children(parent_id)

    async def _insert(self, nodes: list[BaseNode]) -> None:
        for node in nodes:
            await self._insert_node(node)

    async def _delete_node(self, node_id: str) -> None:
        raise UnsupportedError("Delete is not supported by TreeIndex, use rebuild()")

    async def delete_ref_doc(self, ref_doc_id: str, delete_from_docstore: bool = False) -> None:
        raise UnsupportedError("Delete is not supported by TreeIndex, use rebuild()")

    async def rebuild(self, exclude_node_ids: Optional[list[str]] = None) -> None:
        """
        Recompute the tree from the current leaves.

        Args:
            exclude_node_ids: Leaves to leave out of the new tree
        """
        excluded = set(exclude_node_ids or [])
        old_struct = self._index_struct
        leaf_ids = [i for i in old_struct.leaf_ids if i not in excluded]
        summary_ids = [i for i in old_struct.all_nodes.values() if not old_struct.is_leaf(i)]

        leaves = await self.docstore.get_nodes(leaf_ids, raise_error=False)
        self._index_struct = IndexGraph(index_id=old_struct.index_id, summary=old_struct.summary)
        await self._build_index_from_nodes(leaves)

        for node_id in summary_ids:
            await self.docstore.delete_document(node_id, raise_error=False)
        await self._persist_index_struct()
        logger.info(f"Rebuilt tree {self.index_id} over {len(leaves)} leaves")

    def as_retriever(
        self,
        retriever_mode: TreeRetrieverMode | str = TreeRetrieverMode.ALL_LEAF,
        **kwargs: Any,
    ):
        from pyrag.retrievers.tree import (
            TreeAllLeafRetriever,
            TreeRootRetriever,
            TreeSelectLeafEmbeddingRetriever,
            TreeSelectLeafRetriever,
        )

        try:
            mode = TreeRetrieverMode(retriever_mode)
        except ValueError:
            raise InvalidArgumentError(f"Unknown tree retriever mode: {retriever_mode}")

        if mode in _SELECT_MODES and not self.build_tree:
            raise InvalidArgumentError(
                f"Index was built without a tree, but mode {mode.value} needs one"
            )

        if mode == TreeRetrieverMode.SELECT_LEAF:
            return TreeSelectLeafRetriever(self, **kwargs)
        if mode == TreeRetrieverMode.SELECT_LEAF_EMBEDDING:
            return TreeSelectLeafEmbeddingRetriever(self, **kwargs)
        if mode == TreeRetrieverMode.ROOT:
            return TreeRootRetriever(self, **kwargs)
        return TreeAllLeafRetriever(self, **kwargs)
