"""Tests for key-value stores, document and index stores, and the storage context."""

import json

import pytest

from pyrag.data_structs import (
    KG,
    IndexDict,
    IndexGraph,
    IndexList,
    KeywordTable,
    index_struct_to_json,
    json_to_index_struct,
)
from pyrag.exceptions import (
    AlreadyExistsError,
    AmbiguousError,
    DecodeError,
    InvalidArgumentError,
    NotFoundError,
)
from pyrag.schema import NodeRelationship, RelatedNodeInfo, TextNode
from pyrag.storage.context import StorageContext
from pyrag.storage.docstore import SimpleDocumentStore
from pyrag.storage.index_store import SimpleIndexStore
from pyrag.storage.kvstore import FileKVStore, SimpleKVStore
from pyrag.vector_stores.simple import SimpleVectorStore


def _child(node_id: str, source: str) -> TextNode:
    return TextNode(
        id=node_id,
        text=f"text of {node_id}",
        relationships={NodeRelationship.SOURCE: RelatedNodeInfo(node_id=source)},
    )


class TestSimpleKVStore:
    """Tests for SimpleKVStore."""

    @pytest.mark.asyncio
    async def test_put_get_delete(self):
        store = SimpleKVStore()
        await store.put("k", {"v": 1})
        assert await store.get("k") == {"v": 1}
        assert await store.get("missing") is None
        assert await store.delete("k") is True
        assert await store.delete("k") is False

    @pytest.mark.asyncio
    async def test_collections_are_separate(self):
        store = SimpleKVStore()
        await store.put("k", {"v": 1}, collection="a")
        await store.put("k", {"v": 2}, collection="b")
        assert await store.get("k", collection="a") == {"v": 1}
        assert await store.get_all(collection="b") == {"k": {"v": 2}}

    @pytest.mark.asyncio
    async def test_values_are_copied(self):
        """Test mutating a returned value leaves the store untouched."""
        store = SimpleKVStore()
        value = {"items": [1]}
        await store.put("k", value)
        value["items"].append(2)

        fetched = await store.get("k")
        fetched["items"].append(3)
        assert await store.get("k") == {"items": [1]}

    @pytest.mark.asyncio
    async def test_rejects_unserializable(self):
        store = SimpleKVStore()
        with pytest.raises(InvalidArgumentError):
            await store.put("k", {"v": object()})

    @pytest.mark.asyncio
    async def test_persist_round_trip(self, tmp_path):
        store = SimpleKVStore()
        await store.put_all([("a", {"v": 1}), ("b", {"v": 2})])
        path = tmp_path / "kv.json"
        store.persist(path)

        loaded = SimpleKVStore.from_persist_path(path)
        assert await loaded.get_all() == {"a": {"v": 1}, "b": {"v": 2}}

    def test_load_missing_and_corrupt(self, tmp_path):
        with pytest.raises(NotFoundError):
            SimpleKVStore.from_persist_path(tmp_path / "absent.json")

        bad = tmp_path / "bad.json"
        bad.write_text("{not json")
        with pytest.raises(DecodeError):
            SimpleKVStore.from_persist_path(bad)

    @pytest.mark.asyncio
    async def test_file_store_writes_through(self, tmp_path):
        """Test FileKVStore rewrites its file on every change."""
        path = tmp_path / "store.json"
        store = FileKVStore(path)
        await store.put("k", {"v": 1})
        assert json.loads(path.read_text()) == {"data": {"k": {"v": 1}}}

        reopened = FileKVStore(path)
        assert await reopened.get("k") == {"v": 1}
        await reopened.delete("k")
        assert json.loads(path.read_text()) == {"data": {}}


class TestDocumentStore:
    """Tests for the document store."""

    @pytest.mark.asyncio
    async def test_add_and_get(self):
        """Test a stored node comes back with the same hash."""
        docstore = SimpleDocumentStore()
        node = _child("n1", "doc")
        await docstore.add_documents([node])

        fetched = await docstore.get_document("n1")
        assert fetched.hash == node.hash
        assert await docstore.get_document_hash("n1") == node.hash
        assert await docstore.document_exists("n1")
        assert await docstore.ref_doc_exists("doc")

    @pytest.mark.asyncio
    async def test_missing_node(self):
        docstore = SimpleDocumentStore()
        with pytest.raises(NotFoundError):
            await docstore.get_document("nope")
        assert await docstore.get_node("nope", raise_error=False) is None
        assert await docstore.get_nodes(["nope"], raise_error=False) == []

    @pytest.mark.asyncio
    async def test_empty_id_rejected(self):
        docstore = SimpleDocumentStore()
        with pytest.raises(InvalidArgumentError):
            await docstore.add_documents([TextNode(id="", text="x")])

    @pytest.mark.asyncio
    async def test_allow_update(self):
        docstore = SimpleDocumentStore()
        await docstore.add_documents([_child("n1", "doc")])
        with pytest.raises(AlreadyExistsError):
            await docstore.add_documents([_child("n1", "doc")], allow_update=False)

    @pytest.mark.asyncio
    async def test_add_is_idempotent(self):
        """Test re-adding a node keeps a single copy and ref doc entry."""
        docstore = SimpleDocumentStore()
        node = _child("n1", "doc")
        await docstore.add_documents([node])
        await docstore.add_documents([node], allow_update=True)

        assert list((await docstore.docs()).keys()) == ["n1"]
        info = await docstore.get_ref_doc_info("doc")
        assert info.node_ids == ["n1"]

    @pytest.mark.asyncio
    async def test_delete_ref_doc_cascades(self):
        docstore = SimpleDocumentStore()
        await docstore.add_documents([_child("n1", "doc"), _child("n2", "doc"), _child("n3", "other")])

        await docstore.delete_ref_doc("doc")
        assert not await docstore.document_exists("n1")
        assert not await docstore.document_exists("n2")
        assert await docstore.document_exists("n3")
        assert await docstore.get_ref_doc_info("doc") is None

        with pytest.raises(NotFoundError):
            await docstore.delete_ref_doc("doc")
        await docstore.delete_ref_doc("doc", raise_error=False)

    @pytest.mark.asyncio
    async def test_delete_document_updates_ref_doc(self):
        """Test deleting nodes shrinks and finally drops the ref doc record."""
        docstore = SimpleDocumentStore()
        await docstore.add_documents([_child("n1", "doc"), _child("n2", "doc")])

        await docstore.delete_document("n1")
        assert (await docstore.get_ref_doc_info("doc")).node_ids == ["n2"]

        await docstore.delete_document("n2")
        assert await docstore.get_ref_doc_info("doc") is None
        assert await docstore.get_all_ref_doc_info() == {}

        with pytest.raises(NotFoundError):
            await docstore.delete_document("n2")

    @pytest.mark.asyncio
    async def test_update_moves_node_to_new_source(self):
        """Test re-adding a node under a new source detaches it from the old one."""
        docstore = SimpleDocumentStore()
        await docstore.add_documents([_child("n", "A"), _child("m", "A")])
        await docstore.add_documents([_child("n", "B")], allow_update=True)

        assert (await docstore.get_ref_doc_info("A")).node_ids == ["m"]
        assert (await docstore.get_ref_doc_info("B")).node_ids == ["n"]

        await docstore.delete_ref_doc("A")
        assert await docstore.document_exists("n")
        assert not await docstore.document_exists("m")

        await docstore.add_documents([_child("n", "C")], allow_update=True)
        assert await docstore.get_ref_doc_info("B") is None
        assert (await docstore.get_ref_doc_info("C")).node_ids == ["n"]

    @pytest.mark.asyncio
    async def test_document_hashes(self):
        docstore = SimpleDocumentStore()
        node = _child("n1", "doc")
        await docstore.add_documents([node])
        await docstore.set_document_hash("doc", "abc")

        hashes = await docstore.get_all_document_hashes()
        assert hashes[node.hash] == "n1"
        assert hashes["abc"] == "doc"

    @pytest.mark.asyncio
    async def test_persist_round_trip(self, tmp_path):
        docstore = SimpleDocumentStore()
        node = _child("n1", "doc")
        await docstore.add_documents([node])
        docstore.persist(tmp_path / "docstore.json")

        loaded = SimpleDocumentStore.from_persist_path(tmp_path / "docstore.json")
        assert (await loaded.get_document("n1")) == node
        assert (await loaded.get_ref_doc_info("doc")).node_ids == ["n1"]


class TestIndexStore:
    """Tests for the index store and index struct envelopes."""

    @pytest.mark.asyncio
    async def test_get_sole_struct(self):
        index_store = SimpleIndexStore()
        with pytest.raises(NotFoundError):
            await index_store.get_index_struct()

        struct = IndexList(nodes=["a", "b"])
        await index_store.add_index_struct(struct)
        assert await index_store.get_index_struct() == struct
        assert await index_store.get_index_struct(struct.index_id) == struct

    @pytest.mark.asyncio
    async def test_ambiguous_without_id(self):
        index_store = SimpleIndexStore()
        await index_store.add_index_struct(IndexList())
        await index_store.add_index_struct(IndexDict())
        with pytest.raises(AmbiguousError):
            await index_store.get_index_struct()

    @pytest.mark.asyncio
    async def test_delete_struct(self):
        index_store = SimpleIndexStore()
        struct = IndexList()
        await index_store.add_index_struct(struct)
        await index_store.delete_index_struct(struct.index_id)
        with pytest.raises(NotFoundError):
            await index_store.get_index_struct(struct.index_id)

    @pytest.mark.parametrize("struct", [
        IndexDict(nodes_dict={"t1": "n1"}),
        IndexList(nodes=["n1", "n2"], summary="list"),
        KeywordTable(table={"cat": ["n1"], "dog": ["n1", "n2"]}),
        IndexGraph(
            all_nodes={0: "l1", 1: "l2", 2: "p"},
            root_nodes={2: "p"},
            node_id_to_children_ids={"p": ["l1", "l2"], "l1": [], "l2": []},
        ),
        KG(table={"Alice": ["n1"]}, embedding_dict={"(Alice, knows, Bob)": [0.1, 0.2]}),
    ])
    def test_struct_round_trip(self, struct):
        """Test every struct variant survives the envelope."""
        data = json.loads(json.dumps(index_struct_to_json(struct)))
        assert json_to_index_struct(data) == struct

    def test_struct_unknown_type(self):
        with pytest.raises(DecodeError):
            json_to_index_struct({"__type__": "graph", "__data__": {}})


class TestStorageContext:
    """Tests for StorageContext persistence."""

    @pytest.mark.asyncio
    async def test_persist_and_load(self, tmp_path):
        """Test a node and index struct survive persist and reload."""
        context = StorageContext.from_defaults()
        node = TextNode(id="x", text="hello")
        await context.docstore.add_documents([node])
        struct = IndexDict()
        struct.add_node(node)
        await context.index_store.add_index_struct(struct)

        persist_dir = tmp_path / "s"
        context.persist(persist_dir)
        for name in ("docstore.json", "index_store.json", "vector_store.json", "graph_store.json"):
            assert (persist_dir / name).exists()

        loaded = StorageContext.from_persist_dir(persist_dir)
        assert (await loaded.docstore.get_document("x")).hash == node.hash
        assert await loaded.index_store.get_index_struct() == struct

    @pytest.mark.asyncio
    async def test_named_vector_stores(self, tmp_path):
        context = StorageContext.from_defaults()
        context.add_vector_store(SimpleVectorStore(), namespace="image")
        context.persist(tmp_path)
        assert (tmp_path / "image__vector_store.json").exists()

        loaded = StorageContext.from_defaults(persist_dir=tmp_path)
        assert set(loaded.vector_stores) == {"default", "image"}
        with pytest.raises(NotFoundError):
            loaded.get_vector_store("audio")

    def test_from_empty_dir(self, tmp_path):
        context = StorageContext.from_persist_dir(tmp_path / "nothing-here")
        assert isinstance(context.vector_store, SimpleVectorStore)

    @pytest.mark.asyncio
    async def test_dict_round_trip(self):
        context = StorageContext.from_defaults()
        await context.docstore.add_documents([TextNode(id="x", text="hello")])
        await context.graph_store.upsert_triplet("A", "likes", "B")

        restored = StorageContext.from_dict(context.to_dict())
        assert (await restored.docstore.get_document("x")).text == "hello"
        assert await restored.graph_store.get("A") == [["likes", "B"]]
