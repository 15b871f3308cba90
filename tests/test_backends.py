"""Tests for the Chroma and sentence-transformers backends against fakes."""

import json

import pytest

from pyrag.embeddings import HuggingFaceEmbedding
from pyrag.exceptions import UnsupportedError, UpstreamError
from pyrag.schema import (
    FilterCondition,
    FilterOperator,
    MetadataFilter,
    MetadataFilters,
    NodeRelationship,
    RelatedNodeInfo,
    TextNode,
    VectorStoreQuery,
    VectorStoreQueryMode,
)
from pyrag.vector_stores import ChromaVectorStore, to_chroma_where


class FakeCollection:
    """Stands in for a ``chromadb`` collection."""

    def __init__(self, distance=0.25, error=None):
        self.records = {}
        self.deletes = []
        self.queries = []
        self.distance = distance
        self.error = error

    def upsert(self, ids, documents, embeddings, metadatas):
        for record in zip(ids, documents, embeddings, metadatas):
            self.records[record[0]] = record

    def delete(self, ids=None, where=None):
        self.deletes.append({"ids": ids, "where": where})

    def query(self, **kwargs):
        self.queries.append(kwargs)
        if self.error:
            raise self.error
        ids = list(self.records)[:kwargs["n_results"]]
        return {
            "ids": [ids],
            "metadatas": [[self.records[i][3] for i in ids]],
            "distances": [[self.distance for _ in ids]],
        }

    def count(self):
        return len(self.records)


class FakeArray:
    def __init__(self, rows):
        self.rows = rows

    def tolist(self):
        return self.rows


class FakeSentenceTransformer:
    def __init__(self):
        self.calls = []

    def encode(self, texts, normalize_embeddings, convert_to_numpy):
        self.calls.append((list(texts), normalize_embeddings))
        return FakeArray([[float(len(text)), 1.0] for text in texts])

    def get_sentence_embedding_dimension(self):
        return 2


def _chroma(collection):
    store = ChromaVectorStore(collection_name="test")
    store._collection = collection
    return store


class TestChromaVectorStore:
    """Tests for ChromaVectorStore."""

    @pytest.mark.asyncio
    async def test_add_and_query(self):
        """Test nodes come back whole, with distance turned into similarity."""
        collection = FakeCollection()
        store = _chroma(collection)
        node = TextNode(
            id="n1",
            text="apple pie",
            metadata={"color": "red", "tags": ["sweet"]},
            embedding=[1.0, 0.0],
            relationships={NodeRelationship.SOURCE: RelatedNodeInfo(node_id="doc")},
        )

        assert await store.add([node]) == ["n1"]
        _, document, embedding, metadata = collection.records["n1"]
        assert document == "apple pie"
        assert embedding == [1.0, 0.0]
        assert metadata["ref_doc_id"] == "doc"
        assert metadata["tags"] == json.dumps(["sweet"])

        results = await store.query(VectorStoreQuery(
            query_embedding=[1.0, 0.0],
            similarity_top_k=3,
            filters=MetadataFilters.from_dict({"color": "red"}),
        ))
        assert [r.node_id for r in results] == ["n1"]
        assert results[0].node.text == "apple pie"
        assert results[0].node.embedding is None
        assert results[0].score == pytest.approx(0.75)
        assert collection.queries[0]["where"] == {"color": {"$eq": "red"}}
        assert await store.count() == 1

    @pytest.mark.asyncio
    async def test_delete(self):
        collection = FakeCollection()
        store = _chroma(collection)
        await store.delete("doc")
        await store.delete_nodes(["n1", "n2"])
        await store.delete_nodes([])

        assert collection.deletes == [
            {"ids": None, "where": {"ref_doc_id": "doc"}},
            {"ids": ["doc"], "where": None},
            {"ids": ["n1", "n2"], "where": None},
        ]

    @pytest.mark.asyncio
    async def test_unsupported_mode(self):
        store = _chroma(FakeCollection())
        with pytest.raises(UnsupportedError):
            await store.query(VectorStoreQuery(query_embedding=[1.0], mode=VectorStoreQueryMode.MMR))

    @pytest.mark.asyncio
    async def test_client_failure(self):
        store = _chroma(FakeCollection(error=RuntimeError("server gone")))
        with pytest.raises(UpstreamError) as exc_info:
            await store.query(VectorStoreQuery(query_embedding=[1.0]))
        assert exc_info.value.source == "chroma"

    def test_where_clauses(self):
        filters = MetadataFilters(
            filters=[
                MetadataFilter(key="year", value=2020, operator=FilterOperator.GTE),
                MetadataFilters(
                    filters=[
                        MetadataFilter(key="lang", value="en"),
                        MetadataFilter(key="lang", value="fr"),
                    ],
                    condition=FilterCondition.OR,
                ),
            ]
        )
        assert to_chroma_where(filters) == {
            "$and": [
                {"year": {"$gte": 2020}},
                {"$or": [{"lang": {"$eq": "en"}}, {"lang": {"$eq": "fr"}}]},
            ]
        }
        assert to_chroma_where(MetadataFilters()) is None

    def test_text_match_unsupported(self):
        filters = MetadataFilters(filters=[
            MetadataFilter(key="title", value="pie", operator=FilterOperator.TEXT_MATCH)
        ])
        with pytest.raises(UnsupportedError):
            to_chroma_where(filters)


class TestHuggingFaceEmbedding:
    """Tests for HuggingFaceEmbedding with a fake model."""

    def test_dimension_before_loading(self):
        assert HuggingFaceEmbedding().dimension == 384
        assert HuggingFaceEmbedding("all-mpnet-base-v2").dimension == 768

    @pytest.mark.asyncio
    async def test_encodes_in_executor(self):
        embed_model = HuggingFaceEmbedding(normalize=False)
        model = FakeSentenceTransformer()
        embed_model._model = model

        assert await embed_model.get_text_embedding_batch(["ab", "abc"]) == [[2.0, 1.0], [3.0, 1.0]]
        assert await embed_model.get_query_embedding("a") == [1.0, 1.0]
        assert model.calls[0] == (["ab", "abc"], False)
        assert embed_model.dimension == 2
