"""Retrievers over a TreeIndex."""

import logging
from typing import TYPE_CHECKING, Any, Optional

from pyrag.embeddings.base import BaseEmbedding
from pyrag.embeddings.similarity import cosine_similarity
from pyrag.exceptions import InvalidArgumentError, wrap_upstream
from pyrag.indices.utils import extract_numbers_given_response, get_numbered_text_from_nodes
from pyrag.llms.base import LLM
from pyrag.prompts import DEFAULT_TREE_SELECT_MULTIPLE_PROMPT, DEFAULT_TREE_SELECT_PROMPT
from pyrag.retrievers.base import BaseRetriever
from pyrag.schema import BaseNode, MetadataMode, NodeWithScore, QueryBundle

if TYPE_CHECKING:
    from pyrag.indices.tree import TreeIndex

logger = logging.getLogger(__name__)


class TreeAllLeafRetriever(BaseRetriever):
    """Return every leaf of the tree with score 1.0."""

    def __init__(self, index: "TreeIndex", **kwargs: Any):
        super().__init__(**kwargs)
        self._index = index

    async def _retrieve(self, query_bundle: QueryBundle) -> list[NodeWithScore]:
        leaves = await self._index.docstore.get_nodes(
            self._index.index_struct.leaf_ids, raise_error=False
        )
        return [NodeWithScore(node=node, score=1.0) for node in leaves]


class TreeRootRetriever(BaseRetriever):
    """Return the root nodes, whose summaries cover the whole tree."""

    def __init__(self, index: "TreeIndex", **kwargs: Any):
        super().__init__(**kwargs)
        self._index = index

    async def _retrieve(self, query_bundle: QueryBundle) -> list[NodeWithScore]:
        roots = await self._index.get_sorted_nodes(self._index.index_struct.root_nodes)
        return [NodeWithScore(node=node, score=1.0) for node in roots]


class TreeSelectLeafRetriever(BaseRetriever):
    """
    Walk down the tree letting an LLM choose the branch.

    At each level the children are shown to the LLM as a numbered list and
    up to ``child_branch_factor`` picks are followed. A level with no more
    nodes than the branch factor is followed whole.
    """

    def __init__(
        self,
        index: "TreeIndex",
        llm: Optional[LLM] = None,
        child_branch_factor: int = 1,
        query_template: str = DEFAULT_TREE_SELECT_PROMPT,
        query_template_multiple: str = DEFAULT_TREE_SELECT_MULTIPLE_PROMPT,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        if child_branch_factor < 1:
            raise InvalidArgumentError("child_branch_factor must be at least 1")
        self._index = index
        self._llm = llm if llm is not None else index.llm
        self.child_branch_factor = child_branch_factor
        self.query_template = query_template
        self.query_template_multiple = query_template_multiple

    async def _select_nodes(self, nodes: list[BaseNode], query_str: str) -> list[BaseNode]:
        if self.child_branch_factor == 1:
            prompt = self.query_template.format(
                num_chunks=len(nodes),
                context_list=get_numbered_text_from_nodes(nodes),
                query_str=query_str,
            )
        else:
            prompt = self.query_template_multiple.format(
                num_chunks=len(nodes),
                context_list=get_numbered_text_from_nodes(nodes),
                query_str=query_str,
                branching_factor=self.child_branch_factor,
            )

        response = await wrap_upstream(self._llm.complete(prompt), "llm")
        numbers = extract_numbers_given_response(response, n=self.child_branch_factor) or []
        selected = [nodes[n - 1] for n in numbers if n <= len(nodes)]

        if not selected:
            logger.warning(f"No valid choice in {response!r}, following the first node")
            return nodes[:1]
        if self.verbose:
            logger.info(f"Selected {[n.id for n in selected]} from {len(nodes)} nodes")
        return selected

    async def _retrieve_level(self, node_ids: list[str], query_str: str) -> list[BaseNode]:
        nodes = await self._index.docstore.get_nodes(node_ids, raise_error=False)
        if not nodes:
            return []

        if len(nodes) > self.child_branch_factor:
            selected = await self._select_nodes(nodes, query_str)
        else:
            selected = nodes

        struct = self._index.index_struct
        children: list[str] = []
        for node in selected:
            children.extend(struct.get_children(node.id))

        if not children:
            return selected
        return await self._retrieve_level(children, query_str)

    async def _retrieve(self, query_bundle: QueryBundle) -> list[NodeWithScore]:
        if self._llm is None:
            raise InvalidArgumentError("select_leaf retrieval needs an LLM")

        root_ids = self._index.index_struct.get_children(None)
        leaves = await self._retrieve_level(root_ids, query_bundle.query_str)
        return [NodeWithScore(node=node, score=1.0) for node in leaves]


class TreeSelectLeafEmbeddingRetriever(BaseRetriever):
    """
    Walk down the tree following the children closest to the query.

    Nodes are compared by cosine similarity between their embedding (stored
    or computed on the fly) and the query embedding.
    """

    def __init__(
        self,
        index: "TreeIndex",
        embed_model: Optional[BaseEmbedding] = None,
        child_branch_factor: int = 1,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        if child_branch_factor < 1:
            raise InvalidArgumentError("child_branch_factor must be at least 1")
        self._index = index
        self._embed_model = embed_model
        self.child_branch_factor = child_branch_factor

    @property
    def embed_model(self) -> BaseEmbedding:
        return self._embed_model or self._index.embed_model

    async def _score_nodes(
        self, nodes: list[BaseNode], query_embedding: list[float]
    ) -> list[NodeWithScore]:
        missing = [n for n in nodes if n.embedding is None]
        embedded: dict[str, list[float]] = {}
        if missing:
            texts = [n.get_content(metadata_mode=MetadataMode.EMBED) for n in missing]
            embeddings = await wrap_upstream(
                self.embed_model.get_text_embedding_batch(texts), "embedding"
            )
            embedded = {n.id: e for n, e in zip(missing, embeddings)}

        return [
            NodeWithScore(
                node=node,
                score=cosine_similarity(query_embedding, node.embedding or embedded[node.id]),
            )
            for node in nodes
        ]

    async def _retrieve_level(
        self, node_ids: list[str], query_embedding: list[float]
    ) -> list[NodeWithScore]:
        nodes = await self._index.docstore.get_nodes(node_ids, raise_error=False)
        if not nodes:
            return []

        scored = await self._score_nodes(nodes, query_embedding)
        scored.sort(key=lambda x: x.get_score(), reverse=True)
        selected = scored[:self.child_branch_factor]

        struct = self._index.index_struct
        children: list[str] = []
        for node_with_score in selected:
            children.extend(struct.get_children(node_with_score.node_id))

        if not children:
            return selected
        return await self._retrieve_level(children, query_embedding)

    async def _retrieve(self, query_bundle: QueryBundle) -> list[NodeWithScore]:
        query_embedding = query_bundle.embedding
        if query_embedding is None:
            query_embedding = await wrap_upstream(
                self.embed_model.get_query_embedding(query_bundle.query_str), "embedding"
            )

        root_ids = self._index.index_struct.get_children(None)
        return await self._retrieve_level(root_ids, query_embedding)
