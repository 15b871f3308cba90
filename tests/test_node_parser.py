"""Tests for node parsers."""

import pytest

from pyrag.exceptions import InvalidArgumentError
from pyrag.node_parser import (
    HierarchicalNodeParser,
    SentenceSplitter,
    get_leaf_nodes,
    get_root_nodes,
)
from pyrag.schema import Document, NodeRelationship
from pyrag.settings import Settings

TEN_WORDS = "one two three four five six seven eight nine ten"


class TestSentenceSplitter:
    """Tests for SentenceSplitter."""

    def test_split_without_overlap(self):
        splitter = SentenceSplitter(chunk_size=5, chunk_overlap=0)
        assert splitter.split_text(TEN_WORDS) == [
            "one two three four five",
            "six seven eight nine ten",
        ]

    def test_split_with_overlap(self):
        """Test each chunk repeats the tail of the previous one."""
        chunks = SentenceSplitter(chunk_size=5, chunk_overlap=2).split_text(TEN_WORDS)
        assert len(chunks) == 3
        assert chunks[0] == "one two three four five"
        assert chunks[1].startswith("four five")
        assert all(len(chunk.split()) <= 5 for chunk in chunks)

    def test_prefers_paragraph_boundaries(self):
        text = "alpha beta gamma\n\ndelta epsilon"
        assert SentenceSplitter(chunk_size=4, chunk_overlap=0).split_text(text) == [
            "alpha beta gamma",
            "delta epsilon",
        ]

    def test_short_and_empty_text(self):
        splitter = SentenceSplitter(chunk_size=50, chunk_overlap=0)
        assert splitter.split_text("just a few words") == ["just a few words"]
        assert splitter.split_text("   ") == []

    @pytest.mark.parametrize("size,overlap", [(0, 0), (5, 5), (5, -1)])
    def test_invalid_sizes(self, size, overlap):
        with pytest.raises(InvalidArgumentError):
            SentenceSplitter(chunk_size=size, chunk_overlap=overlap)

    def test_settings_defaults(self):
        Settings.chunk_size = 64
        Settings.chunk_overlap = 8
        splitter = SentenceSplitter()
        assert splitter.chunk_size == 64
        assert splitter.chunk_overlap == 8

    def test_nodes_link_to_source_and_neighbours(self):
        """Test SOURCE, PREVIOUS and NEXT relationships and metadata."""
        document = Document(id="doc", text=TEN_WORDS, metadata={"lang": "en"})
        nodes = SentenceSplitter(chunk_size=5, chunk_overlap=0).get_nodes_from_documents([document])

        assert len(nodes) == 2
        assert all(node.ref_doc_id == "doc" for node in nodes)
        assert all(node.metadata == {"lang": "en"} for node in nodes)
        assert nodes[0].next_node.node_id == nodes[1].id
        assert nodes[1].prev_node.node_id == nodes[0].id
        assert nodes[0].prev_node is None

    def test_without_prev_next(self):
        document = Document(id="doc", text=TEN_WORDS)
        splitter = SentenceSplitter(chunk_size=5, chunk_overlap=0, include_prev_next_rel=False, include_metadata=False)
        nodes = splitter.get_nodes_from_documents([document])
        assert NodeRelationship.NEXT not in nodes[0].relationships


class TestHierarchicalNodeParser:
    """Tests for HierarchicalNodeParser."""

    def test_levels_are_linked(self):
        """Test parents list children and children point at parents."""
        text = " ".join(f"w{i}" for i in range(16))
        parser = HierarchicalNodeParser(chunk_sizes=[8, 4], chunk_overlap=0)
        nodes = parser.get_nodes_from_documents([Document(id="doc", text=text)])

        roots = get_root_nodes(nodes)
        leaves = get_leaf_nodes(nodes)
        assert len(nodes) == 6
        assert len(roots) == 2
        assert len(leaves) == 4

        by_id = {node.id: node for node in nodes}
        for root in roots:
            child_ids = [child.node_id for child in root.child_nodes]
            assert len(child_ids) == 2
            for child_id in child_ids:
                assert by_id[child_id].parent_node.node_id == root.id
        assert all(node.ref_doc_id == "doc" for node in nodes)

    def test_overlap_clamped_to_smallest_size(self):
        parser = HierarchicalNodeParser(chunk_sizes=[8, 2], chunk_overlap=5)
        nodes = parser.get_nodes_from_documents([Document(text="a b c d e f g h")])
        assert get_leaf_nodes(nodes)

    def test_empty_sizes(self):
        with pytest.raises(InvalidArgumentError):
            HierarchicalNodeParser(chunk_sizes=[])
