"""Persisted index structures, one variant per index type."""

import uuid
from enum import Enum
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, Field, ValidationError

from pyrag.exceptions import DecodeError, InvalidArgumentError
from pyrag.schema import BaseNode


class IndexStructType(str, Enum):
    """Variant tag, also used as the envelope ``__type__``."""
    VECTOR = "vector"
    LIST = "list"
    KEYWORD_TABLE = "keyword_table"
    TREE = "tree"
    KG = "kg"


class IndexStruct(BaseModel):
    """Common fields of every index structure."""
    struct_type: ClassVar[IndexStructType]

    index_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    summary: Optional[str] = None

    def get_summary(self) -> str:
        if self.summary is None:
            raise InvalidArgumentError("summary field of the index struct not set")
        return self.summary

    @classmethod
    def get_type(cls) -> IndexStructType:
        return cls.struct_type


class IndexDict(IndexStruct):
    """Vector index: text-store ID -> node ID."""
    struct_type: ClassVar[IndexStructType] = IndexStructType.VECTOR

    nodes_dict: dict[str, str] = Field(default_factory=dict)

    def add_node(self, node: BaseNode, text_id: Optional[str] = None) -> str:
        text_id = text_id or node.id
        self.nodes_dict[text_id] = node.id
        return text_id

    def delete(self, text_id: str) -> None:
        self.nodes_dict.pop(text_id, None)


class IndexList(IndexStruct):
    """Summary/list index: ordered node IDs."""
    struct_type: ClassVar[IndexStructType] = IndexStructType.LIST

    nodes: list[str] = Field(default_factory=list)

    def add_node(self, node: BaseNode) -> None:
        self.nodes.append(node.id)


class KeywordTable(IndexStruct):
    """Keyword -> node IDs."""
    struct_type: ClassVar[IndexStructType] = IndexStructType.KEYWORD_TABLE

    table: dict[str, list[str]] = Field(default_factory=dict)

    def add_node(self, keywords: list[str], node: BaseNode) -> None:
        for keyword in keywords:
            node_ids = self.table.setdefault(keyword, [])
            if node.id not in node_ids:
                node_ids.append(node.id)

    def delete_node(self, node_id: str) -> None:
        for keyword in list(self.table):
            if node_id in self.table[keyword]:
                self.table[keyword].remove(node_id)
            if not self.table[keyword]:
                del self.table[keyword]

    @property
    def node_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for node_ids in self.table.values():
            for node_id in node_ids:
                seen.setdefault(node_id)
        return list(seen)

    @property
    def keywords(self) -> list[str]:
        return list(self.table)

    @property
    def size(self) -> int:
        return len(self.table)


class IndexGraph(IndexStruct):
    """Tree index: positions of every node, roots, and parent -> children."""
    struct_type: ClassVar[IndexStructType] = IndexStructType.TREE

    all_nodes: dict[int, str] = Field(default_factory=dict)
    root_nodes: dict[int, str] = Field(default_factory=dict)
    node_id_to_children_ids: dict[str, list[str]] = Field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.all_nodes)

    def get_index(self, node_id: str) -> int:
        for index, candidate in self.all_nodes.items():
            if candidate == node_id:
                return index
        raise InvalidArgumentError(f"Node {node_id} is not in the tree")

    def insert(
        self,
        node_id: str,
        index: Optional[int] = None,
        children_ids: Optional[list[str]] = None,
    ) -> int:
        """Register a node at ``index`` (next free position by default)."""
        if index is None:
            index = max(self.all_nodes, default=-1) + 1
        self.all_nodes[index] = node_id
        if children_ids:
            self.node_id_to_children_ids[node_id] = list(children_ids)
        else:
            self.node_id_to_children_ids.setdefault(node_id, [])
        return index

    def get_children(self, parent_id: Optional[str]) -> list[str]:
        """Children of a node, or the root IDs when ``parent_id`` is None."""
        if parent_id is None:
            return [self.root_nodes[i] for i in sorted(self.root_nodes)]
        return list(self.node_id_to_children_ids.get(parent_id, []))

    def insert_under_parent(self, node_id: str, parent_id: Optional[str]) -> None:
        """Register a node and attach it below ``parent_id`` (or as a root)."""
        index = self.insert(node_id)
        if parent_id is None:
            self.root_nodes[index] = node_id
        else:
            self.node_id_to_children_ids.setdefault(parent_id, []).append(node_id)

    def get_parent(self, node_id: str) -> Optional[str]:
        for parent_id, children in self.node_id_to_children_ids.items():
            if node_id in children:
                return parent_id
        return None

    def is_leaf(self, node_id: str) -> bool:
        return not self.node_id_to_children_ids.get(node_id)

    @property
    def leaf_ids(self) -> list[str]:
        return [self.all_nodes[i] for i in sorted(self.all_nodes) if self.is_leaf(self.all_nodes[i])]


class KG(IndexStruct):
    """Knowledge graph index: keyword -> node IDs plus triplet embeddings."""
    struct_type: ClassVar[IndexStructType] = IndexStructType.KG

    table: dict[str, list[str]] = Field(default_factory=dict)
    embedding_dict: dict[str, list[float]] = Field(default_factory=dict)

    def add_node(self, keywords: list[str], node: BaseNode) -> None:
        for keyword in keywords:
            node_ids = self.table.setdefault(keyword, [])
            if node.id not in node_ids:
                node_ids.append(node.id)

    def add_to_embedding_dict(self, triplet_str: str, embedding: list[float]) -> None:
        self.embedding_dict[triplet_str] = list(embedding)

    def search_node_by_keyword(self, keyword: str) -> list[str]:
        """Node IDs for a keyword, matched case-insensitively."""
        wanted = keyword.lower()
        result: list[str] = []
        for key, node_ids in self.table.items():
            if key.lower() == wanted:
                for node_id in node_ids:
                    if node_id not in result:
                        result.append(node_id)
        return result

    def matching_keywords(self, keyword: str) -> list[str]:
        """Stored keys equal to ``keyword`` ignoring case."""
        wanted = keyword.lower()
        return [key for key in self.table if key.lower() == wanted]

    @property
    def node_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for node_ids in self.table.values():
            for node_id in node_ids:
                seen.setdefault(node_id)
        return list(seen)


_STRUCT_CLASSES: dict[str, type[IndexStruct]] = {
    cls.struct_type.value: cls for cls in (IndexDict, IndexList, KeywordTable, IndexGraph, KG)
}


def index_struct_to_json(index_struct: IndexStruct) -> dict[str, Any]:
    return {
        "__type__": index_struct.get_type().value,
        "__data__": index_struct.model_dump(mode="json"),
    }


def json_to_index_struct(data: Any) -> IndexStruct:
    if not isinstance(data, dict) or "__type__" not in data or "__data__" not in data:
        raise DecodeError("Index struct envelope must have '__type__' and '__data__'")

    struct_cls = _STRUCT_CLASSES.get(data["__type__"])
    if struct_cls is None:
        raise DecodeError(f"Unknown index struct type: {data['__type__']!r}")

    try:
        return struct_cls.model_validate(data["__data__"])
    except ValidationError as e:
        raise DecodeError(f"Invalid index struct data: {e}") from e
