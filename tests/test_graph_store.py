"""Tests for the triplet graph store."""

import pytest
import pytest_asyncio

from pyrag.exceptions import DecodeError, UnsupportedError
from pyrag.graph_stores import SimpleGraphStore, Triplet


@pytest_asyncio.fixture
async def graph():
    store = SimpleGraphStore()
    await store.upsert_triplet("Alice", "knows", "Bob")
    await store.upsert_triplet("Bob", "works at", "Acme")
    await store.upsert_triplet("Acme", "located in", "Paris")
    await store.upsert_triplet("Carol", "knows", "Bob")
    return store


class TestSimpleGraphStore:
    """Tests for SimpleGraphStore."""

    @pytest.mark.asyncio
    async def test_get(self, graph):
        assert await graph.get("Bob") == [["works at", "Acme"]]
        assert await graph.get("Nobody") == []

    @pytest.mark.asyncio
    async def test_get_by_object(self, graph):
        assert await graph.get_by_object("Bob") == [["Alice", "knows"], ["Carol", "knows"]]

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(self, graph):
        await graph.upsert_triplet("Alice", "knows", "Bob")
        assert await graph.get("Alice") == [["knows", "Bob"]]
        assert graph.triplet_count == 4

    @pytest.mark.asyncio
    async def test_rel_map_follows_objects(self, graph):
        """Test chains are followed up to the requested depth."""
        rel_map = await graph.get_rel_map(["Alice"], depth=2)
        assert rel_map == {"Alice": [["Alice", "knows", "Bob"], ["Bob", "works at", "Acme"]]}

        rel_map = await graph.get_rel_map(["Alice"], depth=3)
        assert rel_map["Alice"][-1] == ["Acme", "located in", "Paris"]

        rel_map = await graph.get_rel_map(["Alice"], depth=1)
        assert rel_map == {"Alice": [["Alice", "knows", "Bob"]]}

    @pytest.mark.asyncio
    async def test_rel_map_limit(self, graph):
        rel_map = await graph.get_rel_map(["Alice", "Carol"], depth=3, limit=4)
        assert sum(len(rels) for rels in rel_map.values()) == 4
        assert len(rel_map["Alice"]) == 3

    @pytest.mark.asyncio
    async def test_delete(self, graph):
        """Test deleting the last edge of a subject drops the subject."""
        await graph.delete("Carol", "knows", "Bob")
        assert "Carol" not in await graph.get_all_subjects()

        await graph.delete("Carol", "knows", "Bob")
        assert graph.triplet_count == 3

    @pytest.mark.asyncio
    async def test_get_triplets(self, graph):
        triplets = await graph.get_triplets()
        assert triplets[0] == Triplet(subject="Alice", predicate="knows", object="Bob")
        assert str(triplets[0]) == "(Alice, knows, Bob)"

    @pytest.mark.asyncio
    async def test_persist_round_trip(self, graph, tmp_path):
        path = tmp_path / "graph_store.json"
        graph.persist(path)
        loaded = SimpleGraphStore.from_persist_path(path)
        assert await loaded.get_triplets() == await graph.get_triplets()

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, tmp_path):
        store = SimpleGraphStore.from_persist_path(tmp_path / "absent.json")
        assert await store.get_all_subjects() == []

    def test_invalid_data(self):
        with pytest.raises(DecodeError):
            SimpleGraphStore.from_dict({"graph_dict": {"A": "not a list"}})

    @pytest.mark.asyncio
    async def test_schema_and_query_unsupported(self, graph):
        with pytest.raises(UnsupportedError):
            await graph.get_schema()
        with pytest.raises(UnsupportedError):
            await graph.query("MATCH (n) RETURN n")
