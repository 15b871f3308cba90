"""Retriever over a KnowledgeGraphIndex."""

import logging
from collections import Counter
from typing import TYPE_CHECKING, Any, Optional

from pyrag.embeddings.similarity import get_top_k_embeddings
from pyrag.exceptions import wrap_upstream
from pyrag.indices.keywords import extract_keywords_given_response, simple_extract_keywords
from pyrag.indices.knowledge_graph import KGRetrieverMode
from pyrag.llms.base import LLM
from pyrag.retrievers.base import BaseRetriever
from pyrag.schema import MetadataMode, NodeWithScore, QueryBundle, TextNode

if TYPE_CHECKING:
    from pyrag.indices.knowledge_graph import KnowledgeGraphIndex

logger = logging.getLogger(__name__)

DEFAULT_NODE_SCORE = 1000.0
GLOBAL_EXPLORE_NODE_LIMIT = 3
DEFAULT_REL_TEXT_LIMIT = 30
DEFAULT_MAX_KEYWORDS_PER_QUERY = 10
DEFAULT_NUM_CHUNKS_PER_QUERY = 10
DEFAULT_SIMILARITY_TOP_K = 2
NO_RELATIONSHIPS_TEXT = "No relationships found."
REL_TEXT_STRIP_CHARS = " []()\"'"

KG_REL_TEXTS_KEY = "kg_rel_texts"
KG_REL_MAP_KEY = "kg_rel_map"


def format_rel_text(rel: list[str]) -> str:
    return f"[{', '.join(rel)}]"


def extract_rel_text_keywords(rel_texts: list[str]) -> list[str]:
    """Subjects and objects of ``[s, p, o]`` or ``(s, p, o)`` strings."""
    keywords = []
    for rel_text in rel_texts:
        parts = rel_text.split(",")
        for position in (0, 2):
            if len(parts) > position:
                keyword = parts[position].strip(REL_TEXT_STRIP_CHARS)
                if keyword:
                    keywords.append(keyword)
    return keywords


def remove_substrings(texts: list[str]) -> list[str]:
    """Drop texts contained in a longer text of the list, keeping order."""
    return [
        text for text in texts
        if not any(text != other and text in other for other in texts)
    ]


class KGTableRetriever(BaseRetriever):
    """
    Retrieve knowledge sequences and source nodes from a knowledge graph.

    Keyword mode maps query keywords to graph entities and collects the
    relation chains around them; embedding mode ranks the stored triplet
    embeddings against the query; hybrid mode does both. The chains come
    back as one synthesized node, alongside the source nodes of the
    entities involved when ``include_text`` is set.
    """

    def __init__(
        self,
        index: "KnowledgeGraphIndex",
        retriever_mode: KGRetrieverMode = KGRetrieverMode.KEYWORD,
        llm: Optional[LLM] = None,
        max_keywords_per_query: int = DEFAULT_MAX_KEYWORDS_PER_QUERY,
        num_chunks_per_query: int = DEFAULT_NUM_CHUNKS_PER_QUERY,
        include_text: bool = True,
        similarity_top_k: int = DEFAULT_SIMILARITY_TOP_K,
        graph_store_query_depth: Optional[int] = None,
        use_global_node_triplets: bool = False,
        max_knowledge_sequence: int = DEFAULT_REL_TEXT_LIMIT,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self._index = index
        self.retriever_mode = KGRetrieverMode(retriever_mode)
        self._llm = llm if llm is not None else index.llm
        self.max_keywords_per_query = max_keywords_per_query
        self.num_chunks_per_query = num_chunks_per_query
        self.include_text = include_text
        self.similarity_top_k = similarity_top_k
        self.graph_store_query_depth = (
            graph_store_query_depth
            if graph_store_query_depth is not None
            else index.graph_store_query_depth
        )
        self.use_global_node_triplets = use_global_node_triplets
        self.max_knowledge_sequence = max_knowledge_sequence

    async def _get_keywords(self, text: str) -> list[str]:
        if self._llm is None:
            return simple_extract_keywords(text, self.max_keywords_per_query)

        prompt = self._index.query_keyword_extract_template.format(
            max_keywords=self.max_keywords_per_query, question=text
        )
        response = await wrap_upstream(self._llm.complete(prompt), "llm")
        return extract_keywords_given_response(response, lowercase=False)[:self.max_keywords_per_query]

    async def _keyword_rel_texts(
        self,
        keywords: list[str],
        chunk_counts: Counter,
        rel_map: dict[str, list[list[str]]],
    ) -> list[str]:
        struct = self._index.index_struct
        visited: set[str] = set()
        rel_texts: list[str] = []

        for keyword in keywords:
            subjs = struct.matching_keywords(keyword) or [keyword]

            for node_id in struct.search_node_by_keyword(keyword)[:GLOBAL_EXPLORE_NODE_LIMIT]:
                if node_id in visited:
                    continue
                visited.add(node_id)
                if self.include_text:
                    chunk_counts[node_id] += 1

                if self.use_global_node_triplets:
                    node = await self._index.docstore.get_node(node_id, raise_error=False)
                    if node is not None:
                        extra = await self._get_keywords(node.get_content(metadata_mode=MetadataMode.LLM))
                        for extra_keyword in extra:
                            for subj in struct.matching_keywords(extra_keyword):
                                if subj not in subjs:
                                    subjs.append(subj)

            keyword_rel_map = await wrap_upstream(
                self._index.graph_store.get_rel_map(
                    subjs, depth=self.graph_store_query_depth, limit=self.max_knowledge_sequence
                ),
                "graph_store",
            )
            for subj, rels in keyword_rel_map.items():
                rel_texts.extend(format_rel_text(rel) for rel in rels)
                if rels:
                    rel_map[subj] = rels

        return rel_texts

    async def _embedding_rel_texts(self, query_bundle: QueryBundle) -> list[str]:
        embedding_dict = self._index.index_struct.embedding_dict
        if not embedding_dict:
            return []

        query_embedding = query_bundle.embedding
        if query_embedding is None:
            query_embedding = await wrap_upstream(
                self._index.embed_model.get_query_embedding(query_bundle.query_str), "embedding"
            )

        texts = list(embedding_dict)
        _, top_texts = get_top_k_embeddings(
            query_embedding,
            [embedding_dict[t] for t in texts],
            texts,
            similarity_top_k=self.similarity_top_k,
        )
        return list(top_texts)

    async def _retrieve(self, query_bundle: QueryBundle) -> list[NodeWithScore]:
        chunk_counts: Counter = Counter()
        rel_map: dict[str, list[list[str]]] = {}
        rel_texts: list[str] = []

        if self.retriever_mode != KGRetrieverMode.EMBEDDING:
            keywords = await self._get_keywords(query_bundle.query_str)
            if self.verbose:
                logger.info(f"Extracted keywords: {keywords}")
            rel_texts.extend(await self._keyword_rel_texts(keywords, chunk_counts, rel_map))

        if self.retriever_mode != KGRetrieverMode.KEYWORD:
            rel_texts.extend(await self._embedding_rel_texts(query_bundle))

        if self.retriever_mode == KGRetrieverMode.HYBRID:
            rel_texts = remove_substrings(list(dict.fromkeys(rel_texts)))
            rel_texts = rel_texts[:self.max_knowledge_sequence]

        if self.include_text:
            for keyword in extract_rel_text_keywords(rel_texts):
                for node_id in self._index.search_node_by_keyword(keyword):
                    chunk_counts[node_id] += 1

        results: list[NodeWithScore] = []
        for node_id, _ in chunk_counts.most_common(self.num_chunks_per_query):
            node = await self._index.docstore.get_node(node_id, raise_error=False)
            if node is not None:
                results.append(NodeWithScore(node=node, score=DEFAULT_NODE_SCORE))

        if self.verbose:
            logger.info(f"Knowledge sequences: {rel_texts}")

        if not rel_texts:
            if not results:
                return [NodeWithScore(node=TextNode(text=NO_RELATIONSHIPS_TEXT), score=1.0)]
            return results

        header = (
            f"The following are knowledge sequences in max depth {self.graph_store_query_depth} "
            "in the form of directed graph like:\n"
            "`subject -[predicate]-> object, <-[predicate_next_hop]- object_next_hop ...`"
        )
        rel_node = TextNode(
            text=header + "\n" + "\n".join(rel_texts),
            metadata={KG_REL_TEXTS_KEY: rel_texts, KG_REL_MAP_KEY: rel_map},
            excluded_embed_metadata_keys=[KG_REL_TEXTS_KEY, KG_REL_MAP_KEY],
            excluded_llm_metadata_keys=[KG_REL_TEXTS_KEY, KG_REL_MAP_KEY],
        )
        results.append(NodeWithScore(node=rel_node, score=DEFAULT_NODE_SCORE))
        return results
