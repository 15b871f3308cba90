"""Tests for retriever compositors and recursive retrieval."""

import asyncio

import pytest

from pyrag.embeddings import MockEmbedding
from pyrag.exceptions import InvalidArgumentError
from pyrag.indices import VectorStoreIndex
from pyrag.llms import MockLLM
from pyrag.retrievers import (
    AutoMergingRetriever,
    BaseRetriever,
    BM25Retriever,
    FusionMode,
    FusionRetriever,
    RouterRetriever,
)
from pyrag.schema import (
    IndexNode,
    MetadataFilters,
    NodeRelationship,
    NodeWithScore,
    QueryBundle,
    RelatedNodeInfo,
    TextNode,
)
from pyrag.selectors import BaseSelector, SelectorResult, SingleSelection, SingleSelector
from pyrag.tools import RetrieverTool


class FixedRetriever(BaseRetriever):
    """Retriever returning the given nodes with the given scores."""

    def __init__(self, results, **kwargs):
        super().__init__(**kwargs)
        self.results = results

    async def _retrieve(self, query_bundle):
        return [NodeWithScore(node=node, score=score) for node, score in self.results]


class OutOfRangeSelector(BaseSelector):
    async def select(self, choices, query):
        return SelectorResult(selections=[
            SingleSelection(index=5, reason="bogus"),
            SingleSelection(index=0, reason="first"),
        ])


class FailingRetriever(BaseRetriever):
    async def _retrieve(self, query_bundle):
        raise RuntimeError("index offline")


class SlowRetriever(BaseRetriever):
    """Retriever that blocks until cancelled."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.cancelled = False

    async def _retrieve(self, query_bundle):
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return []


def _family(linked=False):
    """A parent with four children, optionally chained through NEXT/PREVIOUS."""
    child_ids = ["c1", "c2", "c3", "c4"]
    parent = TextNode(
        id="P",
        text="parent",
        relationships={NodeRelationship.CHILD: [RelatedNodeInfo(node_id=c) for c in child_ids]},
    )

    children = []
    for i, child_id in enumerate(child_ids):
        relationships = {NodeRelationship.PARENT: RelatedNodeInfo(node_id="P")}
        if linked and i > 0:
            relationships[NodeRelationship.PREVIOUS] = RelatedNodeInfo(node_id=child_ids[i - 1])
        if linked and i < len(child_ids) - 1:
            relationships[NodeRelationship.NEXT] = RelatedNodeInfo(node_id=child_ids[i + 1])
        children.append(TextNode(id=child_id, text=f"child {child_id}", relationships=relationships))
    return parent, children


class TestFusionRetriever:
    """Tests for FusionRetriever."""

    @pytest.mark.asyncio
    async def test_reciprocal_rank(self, make_retriever):
        first = make_retriever([("n1", 0.9), ("n2", 0.5)])
        second = make_retriever([("n3", 0.8), ("n1", 0.4)])
        fused = await FusionRetriever([first, second], mode="reciprocal_rerank").retrieve("q")

        assert [n.node_id for n in fused] == ["n1", "n3", "n2"]
        assert fused[0].score == pytest.approx(1 / 61 + 1 / 62)
        assert fused[1].score == pytest.approx(1 / 61)
        assert fused[2].score == pytest.approx(1 / 62)

    @pytest.mark.asyncio
    async def test_reciprocal_rank_ignores_retriever_order(self, make_retriever):
        first = make_retriever([("n1", 0.9), ("n2", 0.5)])
        second = make_retriever([("n3", 0.8), ("n1", 0.4)])

        forward = await FusionRetriever([first, second], mode=FusionMode.RECIPROCAL_RANK).retrieve("q")
        backward = await FusionRetriever([second, first], mode=FusionMode.RECIPROCAL_RANK).retrieve("q")
        assert {n.node_id: n.score for n in forward} == pytest.approx(
            {n.node_id: n.score for n in backward}
        )

    @pytest.mark.asyncio
    async def test_simple_keeps_best_score(self, make_retriever):
        first = make_retriever([("n1", 0.2), ("n2", 0.9)])
        second = make_retriever([("n1", 0.7)])
        fused = await FusionRetriever([first, second]).retrieve("q")

        assert [(n.node_id, n.score) for n in fused] == [("n2", 0.9), ("n1", 0.7)]

    @pytest.mark.asyncio
    async def test_relative_score(self, make_retriever):
        """Test min-max normalization weighted by normalized retriever weights."""
        first = make_retriever([("n1", 1.0), ("n2", 0.0)])
        second = make_retriever([("n2", 10.0), ("n3", 5.0)])
        retriever = FusionRetriever([first, second], mode="relative_score", retriever_weights=[3, 1])

        fused = await retriever.retrieve("q")
        assert [n.node_id for n in fused] == ["n1", "n2", "n3"]
        assert [n.score for n in fused] == pytest.approx([0.75, 0.25, 0.0])

    @pytest.mark.asyncio
    async def test_dist_based_score(self, make_retriever):
        retriever = FusionRetriever([make_retriever([("n1", 1.0), ("n2", 0.0)])], mode="dist_based_score")
        fused = await retriever.retrieve("q")
        assert [n.score for n in fused] == pytest.approx([2 / 3, 1 / 3])

    @pytest.mark.asyncio
    async def test_top_k(self, make_retriever):
        retriever = FusionRetriever(
            [make_retriever([("n1", 0.9), ("n2", 0.5), ("n3", 0.1)])], similarity_top_k=2
        )
        assert [n.node_id for n in await retriever.retrieve("q")] == ["n1", "n2"]

    @pytest.mark.asyncio
    async def test_generated_queries(self, make_retriever):
        base = make_retriever([("n1", 0.9)])
        llm = MockLLM(default_response="q one\n\nq two\nq three")
        retriever = FusionRetriever([base], num_queries=3, llm=llm)

        fused = await retriever.retrieve("original")
        assert sorted(base.queries) == ["original", "q one", "q two"]
        assert [n.node_id for n in fused] == ["n1"]

    @pytest.mark.parametrize("kwargs", [
        {"retriever_weights": [1.0]},
        {"retriever_weights": [0.0, 0.0]},
        {"retriever_weights": [1.0, -1.0]},
        {"mode": "average"},
    ])
    def test_invalid_options(self, make_retriever, kwargs):
        with pytest.raises(InvalidArgumentError):
            FusionRetriever([make_retriever([]), make_retriever([])], **kwargs)

    def test_needs_retrievers(self):
        with pytest.raises(InvalidArgumentError):
            FusionRetriever([])

    @pytest.mark.asyncio
    async def test_failure_cancels_siblings(self):
        slow = SlowRetriever()
        with pytest.raises(RuntimeError, match="index offline"):
            await FusionRetriever([slow, FailingRetriever()]).retrieve("q")
        assert slow.cancelled


class TestRouterRetriever:
    """Tests for RouterRetriever."""

    def _tools(self, make_retriever):
        return [
            RetrieverTool.from_defaults(make_retriever([("n1", 0.5)]), name="a", description="first"),
            RetrieverTool.from_defaults(
                make_retriever([("n1", 0.9), ("n2", 0.3)]), name="b", description="second"
            ),
        ]

    @pytest.mark.asyncio
    async def test_default_selects_all(self, make_retriever):
        results = await RouterRetriever(self._tools(make_retriever)).retrieve("q")
        assert [(n.node_id, n.score) for n in results] == [("n1", 0.9), ("n2", 0.3)]

    @pytest.mark.asyncio
    async def test_single_selector(self, make_retriever):
        retriever = RouterRetriever(self._tools(make_retriever), selector=SingleSelector())
        results = await retriever.retrieve("q")
        assert [(n.node_id, n.score) for n in results] == [("n1", 0.5)]

    @pytest.mark.asyncio
    async def test_out_of_range_selection_ignored(self, make_retriever):
        tools = self._tools(make_retriever)
        results = await RouterRetriever(tools, selector=OutOfRangeSelector()).retrieve("q")
        assert [n.node_id for n in results] == ["n1"]

    @pytest.mark.asyncio
    async def test_no_tools(self):
        with pytest.raises(InvalidArgumentError):
            await RouterRetriever([]).retrieve("q")

    @pytest.mark.asyncio
    async def test_failure_cancels_siblings(self):
        slow = SlowRetriever()
        tools = [
            RetrieverTool.from_defaults(slow, name="slow", description="slow"),
            RetrieverTool.from_defaults(FailingRetriever(), name="broken", description="broken"),
        ]
        with pytest.raises(RuntimeError, match="index offline"):
            await RouterRetriever(tools).retrieve("q")
        assert slow.cancelled


class TestAutoMergingRetriever:
    """Tests for AutoMergingRetriever."""

    async def _retriever(self, storage_context, picks, linked=False):
        parent, children = _family(linked)
        await storage_context.docstore.add_documents([parent] + children)
        by_id = {child.id: child for child in children}
        base = FixedRetriever([(by_id[child_id], score) for child_id, score in picks])
        return AutoMergingRetriever(base, storage_context)

    @pytest.mark.asyncio
    async def test_merges_into_parent(self, storage_context):
        retriever = await self._retriever(storage_context, [("c1", 0.8), ("c2", 0.6), ("c4", 0.4)])
        results = await retriever.retrieve("q")

        assert [n.node_id for n in results] == ["P"]
        assert results[0].score == pytest.approx(0.6)

    @pytest.mark.asyncio
    async def test_half_is_not_enough(self, storage_context):
        retriever = await self._retriever(storage_context, [("c1", 0.8), ("c3", 0.6)])
        results = await retriever.retrieve("q")
        assert [n.node_id for n in results] == ["c1", "c3"]

    @pytest.mark.asyncio
    async def test_fills_gaps_before_merging(self, storage_context):
        """Test a linked sibling between two hits tips the parent over the ratio."""
        retriever = await self._retriever(storage_context, [("c1", 0.8), ("c3", 0.6)], linked=True)
        results = await retriever.retrieve("q")

        assert [n.node_id for n in results] == ["P"]
        assert results[0].score == pytest.approx(0.7)

    @pytest.mark.asyncio
    async def test_single_child(self, storage_context):
        retriever = await self._retriever(storage_context, [("c1", 0.8)])
        assert [n.node_id for n in await retriever.retrieve("q")] == ["c1"]


class TestBM25Retriever:
    """Tests for BM25Retriever."""

    def _nodes(self):
        return [
            TextNode(id="a", text="the quick brown fox"),
            TextNode(id="b", text="lazy dogs sleep"),
            TextNode(id="c", text="quick quick rabbits"),
        ]

    @pytest.mark.asyncio
    async def test_ranks_and_drops_non_matches(self):
        results = await BM25Retriever(self._nodes()).retrieve("quick")
        assert [n.node_id for n in results] == ["c", "a"]
        assert all(n.score > 0 for n in results)

    @pytest.mark.asyncio
    async def test_from_docstore(self, storage_context):
        await storage_context.docstore.add_documents(self._nodes())
        retriever = await BM25Retriever.from_docstore(storage_context.docstore, similarity_top_k=1)
        results = await retriever.retrieve("sleepy lazy dogs")
        assert [n.node_id for n in results] == ["b"]


class TestVectorIndexRetriever:
    """Tests for VectorIndexRetriever options."""

    @pytest.mark.asyncio
    async def test_metadata_filters(self):
        nodes = [
            TextNode(id="r1", text="red apple", metadata={"color": "red"}),
            TextNode(id="g1", text="green pear", metadata={"color": "green"}),
            TextNode(id="r2", text="red cherry", metadata={"color": "red"}),
        ]
        index = await VectorStoreIndex.from_nodes(nodes, embed_model=MockEmbedding(default=[1.0, 0.0]))

        retriever = index.as_retriever(filters=MetadataFilters.from_dict({"color": "red"}))
        assert sorted(n.node_id for n in await retriever.retrieve("fruit")) == ["r1", "r2"]

        green = QueryBundle(query_str="fruit", filters=MetadataFilters.from_dict({"color": "green"}))
        assert [n.node_id for n in await retriever.retrieve(green)] == ["g1"]


class TestRecursiveRetrieval:
    """Tests for object-map expansion in BaseRetriever."""

    @pytest.mark.asyncio
    async def test_index_node_expands_into_retriever(self, make_retriever):
        pointer = IndexNode(id="i1", text="pointer to fruit", index_id="fruit")
        top = FixedRetriever(
            [(pointer, 0.5), (TextNode(id="n2", text="text of n2"), 0.4)],
            object_map={"fruit": make_retriever([("n1", 0.9)])},
        )

        results = await top.retrieve("q")
        assert [(n.node_id, n.score) for n in results] == [("n1", 0.9), ("n2", 0.4)]

    @pytest.mark.asyncio
    async def test_node_id_maps_to_node(self):
        top = FixedRetriever(
            [(TextNode(id="summary", text="short"), 0.6)],
            object_map={"summary": TextNode(id="full", text="the full text")},
        )
        results = await top.retrieve("q")
        assert [(n.node_id, n.score) for n in results] == [("full", 0.6)]

    @pytest.mark.asyncio
    async def test_duplicates_removed(self, make_retriever):
        sub = make_retriever([("n1", 0.9)])
        top = FixedRetriever(
            [
                (IndexNode(id="i1", text="one", index_id="sub"), 0.5),
                (IndexNode(id="i2", text="two", index_id="sub"), 0.4),
            ],
            object_map={"sub": sub},
        )
        results = await top.retrieve("q")
        assert [n.node_id for n in results] == ["n1"]
        assert len(sub.queries) == 2

    @pytest.mark.asyncio
    async def test_without_object_map(self):
        pointer = IndexNode(id="i1", text="pointer", index_id="elsewhere")
        results = await FixedRetriever([(pointer, 0.5)]).retrieve("q")
        assert [n.node_id for n in results] == ["i1"]
