"""Knowledge graph index: triplets extracted from nodes into a graph store."""

import logging
import re
from enum import Enum
from typing import Any, Callable, ClassVar, Optional

from pyrag.data_structs import KG, IndexStruct
from pyrag.exceptions import InvalidArgumentError, UnsupportedError, wrap_upstream
from pyrag.graph_stores.simple import GraphStore, Triplet
from pyrag.indices.base import BaseIndex
from pyrag.prompts import DEFAULT_KG_TRIPLET_EXTRACT_PROMPT, DEFAULT_QUERY_KEYWORD_EXTRACT_PROMPT
from pyrag.schema import BaseNode, MetadataMode

logger = logging.getLogger(__name__)

DEFAULT_MAX_TRIPLETS_PER_CHUNK = 10
DEFAULT_MAX_OBJECT_LENGTH = 128
DEFAULT_GRAPH_STORE_QUERY_DEPTH = 2

TRIPLET_PATTERN = re.compile(r"\(([^,]+),\s*([^,]+),\s*([^)]+)\)")


class KGRetrieverMode(str, Enum):
    KEYWORD = "keyword"
    EMBEDDING = "embedding"
    HYBRID = "hybrid"


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]


def parse_triplet_response(
    response: str,
    max_triplets: int = DEFAULT_MAX_TRIPLETS_PER_CHUNK,
    max_length: int = DEFAULT_MAX_OBJECT_LENGTH,
) -> list[Triplet]:
    """
    Parse ``(subject, predicate, object)`` lines out of an LLM answer.

    Parts are stripped of quotes; subject and object get a capital first
    letter. Triplets with an empty or overlong part are dropped.
    """
    triplets: list[Triplet] = []
    for match in TRIPLET_PATTERN.finditer(response):
        subj, pred, obj = (part.strip().strip("\"'").strip() for part in match.groups())
        if not subj or not pred or not obj:
            continue
        if max(len(subj), len(pred), len(obj)) > max_length:
            logger.debug(f"Dropping overlong triplet ({subj}, {pred}, {obj})")
            continue

        triplets.append(Triplet(subject=_capitalize(subj), predicate=pred, object=_capitalize(obj)))
        if len(triplets) >= max_triplets:
            break
    return triplets


class KnowledgeGraphIndex(BaseIndex):
    """
    Index of (subject, predicate, object) triplets.

    Triplets are extracted from each node by the LLM (or by
    ``kg_triplet_extract_fn``), upserted into the storage context's graph
    store, and both subject and object are recorded as keywords pointing at
    the node. With ``include_embeddings`` each triplet's text is embedded
    for semantic lookup.
    """

    index_struct_cls: ClassVar[type[IndexStruct]] = KG

    def __init__(
        self,
        index_struct: Optional[KG] = None,
        max_triplets_per_chunk: int = DEFAULT_MAX_TRIPLETS_PER_CHUNK,
        include_embeddings: bool = False,
        max_object_length: int = DEFAULT_MAX_OBJECT_LENGTH,
        kg_triplet_extract_fn: Optional[Callable[[str], list[Triplet]]] = None,
        kg_triplet_extract_template: str = DEFAULT_KG_TRIPLET_EXTRACT_PROMPT,
        query_keyword_extract_template: str = DEFAULT_QUERY_KEYWORD_EXTRACT_PROMPT,
        graph_store_query_depth: int = DEFAULT_GRAPH_STORE_QUERY_DEPTH,
        **kwargs: Any,
    ):
        super().__init__(index_struct=index_struct, **kwargs)
        self.max_triplets_per_chunk = max_triplets_per_chunk
        self.include_embeddings = include_embeddings
        self.max_object_length = max_object_length
        self.kg_triplet_extract_fn = kg_triplet_extract_fn
        self.kg_triplet_extract_template = kg_triplet_extract_template
        self.query_keyword_extract_template = query_keyword_extract_template
        self.graph_store_query_depth = graph_store_query_depth

    @property
    def index_struct(self) -> KG:
        return self._index_struct

    @property
    def graph_store(self) -> GraphStore:
        return self._storage_context.graph_store

    @property
    def node_ids(self) -> list[str]:
        return self._index_struct.node_ids

    async def _extract_triplets(self, text: str) -> list[Triplet]:
        if self.kg_triplet_extract_fn is not None:
            return list(self.kg_triplet_extract_fn(text))

        llm = self._llm
        if llm is None:
            from pyrag.settings import Settings

            llm = Settings.llm

        prompt = self.kg_triplet_extract_template.format(
            max_knowledge_triplets=self.max_triplets_per_chunk, text=text
        )
        response = await wrap_upstream(llm.complete(prompt), "llm")
        return parse_triplet_response(response, self.max_triplets_per_chunk, self.max_object_length)

    async def _add_nodes(self, nodes: list[BaseNode]) -> None:
        for node in nodes:
            triplets = await self._extract_triplets(node.get_content(metadata_mode=MetadataMode.LLM))
            logger.debug(f"Extracted {len(triplets)} triplets from node {node.id}")

            for triplet in triplets:
                await self.upsert_triplet_and_node(triplet, node, include_embeddings=self.include_embeddings)

    async def _build_index_from_nodes(self, nodes: list[BaseNode]) -> None:
        await self._add_nodes(nodes)

    async def _insert(self, nodes: list[BaseNode]) -> None:
        await self._add_nodes(nodes)

    async def upsert_triplet(self, triplet: Triplet, include_embeddings: bool = False) -> None:
        """Add a triplet to the graph store, optionally embedding its text."""
        await wrap_upstream(
            self.graph_store.upsert_triplet(triplet.subject, triplet.predicate, triplet.object),
            "graph_store",
        )

        triplet_str = str(triplet)
        if include_embeddings and triplet_str not in self._index_struct.embedding_dict:
            embedding = await wrap_upstream(
                self.embed_model.get_text_embedding(triplet_str), "embedding"
            )
            self._index_struct.add_to_embedding_dict(triplet_str, embedding)

    def add_node(self, keywords: list[str], node: BaseNode) -> None:
        """Point keywords at a node in the index struct."""
        self._index_struct.add_node(keywords, node)

    async def upsert_triplet_and_node(
        self, triplet: Triplet, node: BaseNode, include_embeddings: bool = False
    ) -> None:
        """Add a triplet and make its subject and object keywords for the node."""
        await self.upsert_triplet(triplet, include_embeddings=include_embeddings)
        self.add_node([triplet.subject, triplet.object], node)

    def search_node_by_keyword(self, keyword: str) -> list[str]:
        return self._index_struct.search_node_by_keyword(keyword)

    def get_all_keywords(self) -> list[str]:
        return list(self._index_struct.table)

    async def _delete_node(self, node_id: str) -> None:
        raise UnsupportedError("Delete is not supported by KnowledgeGraphIndex, use rebuild()")

    async def delete_ref_doc(self, ref_doc_id: str, delete_from_docstore: bool = False) -> None:
        raise UnsupportedError("Delete is not supported by KnowledgeGraphIndex, use rebuild()")

    async def rebuild(self, exclude_node_ids: Optional[list[str]] = None) -> None:
        """
        Re-extract the graph from the indexed nodes.

        Triplets previously extracted are removed from the graph store first,
        so the graph store should not be shared with other indices.

        Args:
            exclude_node_ids: Nodes to leave out of the new graph
        """
        excluded = set(exclude_node_ids or [])
        node_ids = [i for i in self._index_struct.node_ids if i not in excluded]
        nodes = await self.docstore.get_nodes(node_ids, raise_error=False)

        for triplet in await self._all_triplets():
            await self.graph_store.delete(triplet.subject, triplet.predicate, triplet.object)

        old_struct = self._index_struct
        self._index_struct = KG(index_id=old_struct.index_id, summary=old_struct.summary)
        await self._add_nodes(nodes)
        await self._persist_index_struct()
        logger.info(f"Rebuilt knowledge graph {self.index_id} over {len(nodes)} nodes")

    async def _all_triplets(self) -> list[Triplet]:
        get_triplets = getattr(self.graph_store, "get_triplets", None)
        if get_triplets is not None:
            return await get_triplets()

        triplets = []
        rel_map = await self.graph_store.get_rel_map(list(self._index_struct.table), depth=1)
        for rels in rel_map.values():
            for subj, pred, obj in rels:
                triplets.append(Triplet(subject=subj, predicate=pred, object=obj))
        return triplets

    def as_retriever(
        self,
        retriever_mode: KGRetrieverMode | str = KGRetrieverMode.KEYWORD,
        **kwargs: Any,
    ):
        from pyrag.retrievers.knowledge_graph import KGTableRetriever

        try:
            mode = KGRetrieverMode(retriever_mode)
        except ValueError:
            raise InvalidArgumentError(f"Unknown knowledge graph retriever mode: {retriever_mode}")

        if mode != KGRetrieverMode.KEYWORD and not self._index_struct.embedding_dict:
            raise InvalidArgumentError(
                f"Index was built without embeddings, cannot use {mode.value} mode"
            )
        return KGTableRetriever(self, retriever_mode=mode, **kwargs)
