"""Tests for the in-memory vector store and similarity helpers."""

import math

import pytest
import pytest_asyncio

from pyrag.embeddings.similarity import (
    cosine_similarity,
    dot_product,
    euclidean_similarity,
    get_top_k_embeddings,
)
from pyrag.exceptions import InvalidArgumentError, UnsupportedError
from pyrag.schema import (
    MetadataFilters,
    NodeRelationship,
    RelatedNodeInfo,
    TextNode,
    VectorStoreQuery,
    VectorStoreQueryMode,
)
from pyrag.vector_stores.simple import SimpleVectorStore


def _node(node_id, embedding, metadata=None, ref_doc_id=None):
    relationships = {}
    if ref_doc_id:
        relationships[NodeRelationship.SOURCE] = RelatedNodeInfo(node_id=ref_doc_id)
    return TextNode(
        id=node_id,
        text=node_id,
        embedding=embedding,
        metadata=metadata or {},
        relationships=relationships,
    )


@pytest_asyncio.fixture
async def store():
    vector_store = SimpleVectorStore()
    await vector_store.add([
        _node("a", [1.0, 0.0], {"color": "red"}, ref_doc_id="doc1"),
        _node("b", [0.8, 0.6], {"color": "blue"}, ref_doc_id="doc1"),
        _node("c", [0.0, 1.0], {"color": "red"}, ref_doc_id="doc2"),
    ])
    return vector_store


class TestSimilarity:
    """Tests for similarity functions."""

    def test_cosine(self):
        assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
        assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)

    def test_cosine_zero_vector(self):
        assert cosine_similarity([0, 0], [1, 1]) == 0.0

    def test_dimension_mismatch(self):
        with pytest.raises(InvalidArgumentError):
            cosine_similarity([1, 0], [1, 0, 0])
        with pytest.raises(InvalidArgumentError):
            dot_product([1], [1, 2])

    def test_dot_and_euclidean(self):
        assert dot_product([1, 2], [3, 4]) == 11
        assert euclidean_similarity([0, 0], [3, 4]) == pytest.approx(1 / 6)
        assert euclidean_similarity([1, 1], [1, 1]) == 1.0

    def test_top_k_with_cutoff(self):
        """Test ranking, truncation and the similarity cutoff."""
        scores, ids = get_top_k_embeddings(
            [1.0, 0.0],
            [[0.0, 1.0], [1.0, 0.0], [0.8, 0.6]],
            ["x", "y", "z"],
            similarity_top_k=2,
        )
        assert ids == ["y", "z"]
        assert scores == pytest.approx([1.0, 0.8])

        _, ids = get_top_k_embeddings(
            [1.0, 0.0],
            [[0.0, 1.0], [1.0, 0.0], [0.8, 0.6]],
            ["x", "y", "z"],
            similarity_cutoff=0.5,
        )
        assert ids == ["y", "z"]


class TestSimpleVectorStore:
    """Tests for SimpleVectorStore."""

    @pytest.mark.asyncio
    async def test_query_ranks_by_cosine(self, store):
        results = await store.query(VectorStoreQuery(query_embedding=[1.0, 0.0], similarity_top_k=2))
        assert [r.node_id for r in results] == ["a", "b"]
        assert results[0].score == pytest.approx(1.0)
        assert results[1].score == pytest.approx(0.8)

    @pytest.mark.asyncio
    async def test_results_carry_metadata_only(self, store):
        """Test returned nodes hold ID and metadata but no text."""
        results = await store.query(VectorStoreQuery(query_embedding=[1.0, 0.0]))
        assert results[0].node.metadata == {"color": "red"}
        assert results[0].node.text == ""
        assert not store.stores_text

    @pytest.mark.asyncio
    async def test_filters(self, store):
        query = VectorStoreQuery(
            query_embedding=[1.0, 0.0],
            similarity_top_k=3,
            filters=MetadataFilters.from_dict({"color": "red"}),
        )
        assert [r.node_id for r in await store.query(query)] == ["a", "c"]

    @pytest.mark.asyncio
    async def test_node_id_restriction(self, store):
        query = VectorStoreQuery(query_embedding=[1.0, 0.0], similarity_top_k=3, node_ids=["b", "c"])
        assert [r.node_id for r in await store.query(query)] == ["b", "c"]

    @pytest.mark.asyncio
    async def test_mmr_prefers_diverse_results(self):
        """Test MMR skips a near duplicate that plain ranking would keep."""
        store = SimpleVectorStore()
        await store.add([
            _node("a", [1.0, 0.0]),
            _node("dup", [1.0, 0.01]),
            _node("other", [0.8, 0.6]),
        ])

        plain = await store.query(VectorStoreQuery(query_embedding=[1.0, 0.0], similarity_top_k=2))
        assert [r.node_id for r in plain] == ["a", "dup"]

        mmr = await store.query(VectorStoreQuery(
            query_embedding=[1.0, 0.0],
            similarity_top_k=2,
            mode=VectorStoreQueryMode.MMR,
            mmr_threshold=0.3,
        ))
        assert [r.node_id for r in mmr] == ["a", "other"]

    @pytest.mark.asyncio
    async def test_query_errors(self, store):
        with pytest.raises(InvalidArgumentError):
            await store.query(VectorStoreQuery())
        with pytest.raises(UnsupportedError):
            await store.query(VectorStoreQuery(query_embedding=[1.0, 0.0], mode=VectorStoreQueryMode.HYBRID))

    @pytest.mark.asyncio
    async def test_add_requires_embedding(self):
        with pytest.raises(InvalidArgumentError):
            await SimpleVectorStore().add([TextNode(id="x", text="no vector")])

    @pytest.mark.asyncio
    async def test_delete_by_ref_doc(self, store):
        """Test deleting a ref doc removes every entry derived from it."""
        await store.delete("doc1")
        results = await store.query(VectorStoreQuery(query_embedding=[1.0, 0.0], similarity_top_k=3))
        assert [r.node_id for r in results] == ["c"]
        with pytest.raises(InvalidArgumentError):
            store.get("a")

    @pytest.mark.asyncio
    async def test_delete_by_text_id(self, store):
        await store.delete("c")
        await store.delete_nodes(["b"])
        results = await store.query(VectorStoreQuery(query_embedding=[1.0, 0.0], similarity_top_k=3))
        assert [r.node_id for r in results] == ["a"]

    @pytest.mark.asyncio
    async def test_persist_round_trip(self, store, tmp_path):
        store.persist(tmp_path / "vector_store.json")
        loaded = SimpleVectorStore.from_persist_dir(tmp_path)
        assert loaded.get("b") == [0.8, 0.6]
        assert loaded.to_dict() == store.to_dict()

    def test_get_returns_copy(self):
        store = SimpleVectorStore.from_dict({"embedding_dict": {"x": [1.0, 2.0]}})
        vector = store.get("x")
        vector.append(math.pi)
        assert store.get("x") == [1.0, 2.0]
