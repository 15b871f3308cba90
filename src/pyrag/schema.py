"""Core data structures: nodes, scored nodes, queries and metadata filters."""

import hashlib
import json
import uuid
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, ValidationError, computed_field

from pyrag.exceptions import DecodeError, InvalidArgumentError

DEFAULT_METADATA_TEMPLATE = "{key}: {value}"
DEFAULT_METADATA_SEPARATOR = "\n"
DEFAULT_TEXT_NODE_TEMPLATE = "{metadata_str}\n\n{content}"


class NodeType(str, Enum):
    """Node type tag, also used as the envelope ``__type__``."""
    TEXT = "text"
    IMAGE = "image"
    INDEX = "index"
    DOCUMENT = "document"


class NodeRelationship(str, Enum):
    """Role of a related node."""
    SOURCE = "SOURCE"
    PREVIOUS = "PREVIOUS"
    NEXT = "NEXT"
    PARENT = "PARENT"
    CHILD = "CHILD"


class MetadataMode(str, Enum):
    """Which metadata is rendered alongside node text."""
    ALL = "all"
    EMBED = "embed"
    LLM = "llm"
    NONE = "none"


class RelatedNodeInfo(BaseModel):
    """Descriptor of a node referenced from another node's relationships."""
    node_id: str
    node_type: Optional[NodeType] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    hash: Optional[str] = None


RelatedNodeType = Union[RelatedNodeInfo, list[RelatedNodeInfo]]


class BaseNode(BaseModel):
    """A unit of content with metadata, an optional embedding and relationships.

    The hash is derived from the text and metadata only, so it is stable
    across processes and restarts.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    text: str = ""
    type: NodeType = NodeType.TEXT
    metadata: dict[str, Any] = Field(default_factory=dict)
    embedding: Optional[list[float]] = None
    relationships: dict[NodeRelationship, RelatedNodeType] = Field(default_factory=dict)

    excluded_embed_metadata_keys: list[str] = Field(default_factory=list)
    excluded_llm_metadata_keys: list[str] = Field(default_factory=list)
    metadata_template: str = DEFAULT_METADATA_TEMPLATE
    metadata_separator: str = DEFAULT_METADATA_SEPARATOR
    text_template: str = DEFAULT_TEXT_NODE_TEMPLATE

    @computed_field  # type: ignore[misc]
    @property
    def hash(self) -> str:
        metadata_str = json.dumps(self.metadata, sort_keys=True, default=str)
        payload = f"{self.text}\x1f{metadata_str}"
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    @property
    def node_id(self) -> str:
        return self.id

    def get_metadata_str(self, mode: MetadataMode = MetadataMode.ALL) -> str:
        """Render metadata as text, honouring the per-mode excluded keys."""
        if mode == MetadataMode.NONE:
            return ""

        excluded: set[str] = set()
        if mode == MetadataMode.LLM:
            excluded = set(self.excluded_llm_metadata_keys)
        elif mode == MetadataMode.EMBED:
            excluded = set(self.excluded_embed_metadata_keys)

        return self.metadata_separator.join(
            self.metadata_template.format(key=key, value=str(value))
            for key, value in self.metadata.items()
            if key not in excluded
        )

    def get_content(self, metadata_mode: MetadataMode = MetadataMode.NONE) -> str:
        """Get the node text, optionally prefixed with rendered metadata."""
        metadata_str = self.get_metadata_str(metadata_mode).strip()
        if not metadata_str:
            return self.text
        return self.text_template.format(
            metadata_str=metadata_str, content=self.text
        ).strip()

    def set_content(self, value: str) -> None:
        self.text = value

    def as_related_node_info(self) -> RelatedNodeInfo:
        return RelatedNodeInfo(
            node_id=self.id,
            node_type=self.type,
            metadata=dict(self.metadata),
            hash=self.hash,
        )

    def _single_relation(self, relation: NodeRelationship) -> Optional[RelatedNodeInfo]:
        related = self.relationships.get(relation)
        if related is None:
            return None
        if isinstance(related, list):
            raise InvalidArgumentError(f"{relation.value} relationship must be a single node")
        return related

    @property
    def source_node(self) -> Optional[RelatedNodeInfo]:
        return self._single_relation(NodeRelationship.SOURCE)

    @property
    def prev_node(self) -> Optional[RelatedNodeInfo]:
        return self._single_relation(NodeRelationship.PREVIOUS)

    @property
    def next_node(self) -> Optional[RelatedNodeInfo]:
        return self._single_relation(NodeRelationship.NEXT)

    @property
    def parent_node(self) -> Optional[RelatedNodeInfo]:
        return self._single_relation(NodeRelationship.PARENT)

    @property
    def child_nodes(self) -> Optional[list[RelatedNodeInfo]]:
        related = self.relationships.get(NodeRelationship.CHILD)
        if related is None:
            return None
        if not isinstance(related, list):
            raise InvalidArgumentError("CHILD relationship must be a list of nodes")
        return related

    @property
    def ref_doc_id(self) -> Optional[str]:
        """ID of the source document this node was derived from."""
        source = self.source_node
        return source.node_id if source else None

    def __repr__(self) -> str:
        preview = self.text[:50] + "..." if len(self.text) > 50 else self.text
        return f"{type(self).__name__}(id={self.id!r}, text={preview!r})"


class TextNode(BaseNode):
    """Plain text node, the usual product of chunking."""
    type: NodeType = NodeType.TEXT


class ImageNode(TextNode):
    """Node carrying an image reference alongside optional text."""
    type: NodeType = NodeType.IMAGE
    image: Optional[str] = None
    image_path: Optional[str] = None
    image_url: Optional[str] = None
    image_mimetype: Optional[str] = None


class IndexNode(TextNode):
    """Node pointing at another retrievable object by ``index_id``."""
    type: NodeType = NodeType.INDEX
    index_id: str = ""


class Document(TextNode):
    """A pre-chunk source document."""
    type: NodeType = NodeType.DOCUMENT

    @property
    def doc_id(self) -> str:
        return self.id


_NODE_CLASSES: dict[str, type[BaseNode]] = {
    NodeType.TEXT.value: TextNode,
    NodeType.IMAGE.value: ImageNode,
    NodeType.INDEX.value: IndexNode,
    NodeType.DOCUMENT.value: Document,
}


def node_to_json(node: BaseNode) -> dict[str, Any]:
    """Wrap a node in its ``{"__type__", "__data__"}`` envelope."""
    return {"__type__": node.type.value, "__data__": node.model_dump(mode="json")}


def json_to_node(data: Any) -> BaseNode:
    """Rebuild a node from its envelope."""
    if not isinstance(data, dict) or "__type__" not in data or "__data__" not in data:
        raise DecodeError("Node envelope must have '__type__' and '__data__'")

    node_cls = _NODE_CLASSES.get(data["__type__"])
    if node_cls is None:
        raise DecodeError(f"Unknown node type: {data['__type__']!r}")

    try:
        return node_cls.model_validate(data["__data__"])
    except ValidationError as e:
        raise DecodeError(f"Invalid node data: {e}") from e


class NodeWithScore(BaseModel):
    """A node paired with a retriever-specific relevance score."""
    node: BaseNode
    score: Optional[float] = None

    @property
    def node_id(self) -> str:
        return self.node.id

    @property
    def text(self) -> str:
        return self.node.text

    def get_content(self, metadata_mode: MetadataMode = MetadataMode.NONE) -> str:
        return self.node.get_content(metadata_mode=metadata_mode)

    def get_score(self, raise_error: bool = False) -> float:
        if self.score is None:
            if raise_error:
                raise InvalidArgumentError("Score not set")
            return 0.0
        return self.score

    def __repr__(self) -> str:
        return f"NodeWithScore(id={self.node.id!r}, score={self.score})"


class FilterOperator(str, Enum):
    """Comparison applied by a metadata filter."""
    EQ = "=="
    NE = "!="
    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="
    IN = "in"
    NIN = "nin"
    TEXT_MATCH = "text_match"


class FilterCondition(str, Enum):
    """How sibling filters combine."""
    AND = "and"
    OR = "or"


class MetadataFilter(BaseModel):
    """A single predicate over one metadata key."""
    key: str
    value: Any
    operator: FilterOperator = FilterOperator.EQ

    def matches(self, metadata: dict[str, Any]) -> bool:
        if self.key not in metadata:
            return self.operator in (FilterOperator.NE, FilterOperator.NIN)

        actual = metadata[self.key]
        op = self.operator

        if op == FilterOperator.EQ:
            return actual == self.value
        if op == FilterOperator.NE:
            return actual != self.value
        if op == FilterOperator.IN:
            return _contains(self.value, actual)
        if op == FilterOperator.NIN:
            return not _contains(self.value, actual)
        if op == FilterOperator.TEXT_MATCH:
            return str(self.value) in str(actual)

        try:
            if op == FilterOperator.GT:
                return actual > self.value
            if op == FilterOperator.GTE:
                return actual >= self.value
            if op == FilterOperator.LT:
                return actual < self.value
            if op == FilterOperator.LTE:
                return actual <= self.value
        except TypeError:
            return False
        return False


def _contains(candidates: Any, actual: Any) -> bool:
    if not isinstance(candidates, (list, tuple, set)):
        candidates = [candidates]
    if isinstance(actual, list):
        return any(item in candidates for item in actual)
    return actual in candidates


class MetadataFilters(BaseModel):
    """A tree of metadata predicates joined by AND or OR."""
    filters: list[Union[MetadataFilter, "MetadataFilters"]] = Field(default_factory=list)
    condition: FilterCondition = FilterCondition.AND

    @classmethod
    def from_dict(cls, filter_dict: dict[str, Any]) -> "MetadataFilters":
        """Build equality filters from a plain ``{key: value}`` mapping."""
        return cls(filters=[MetadataFilter(key=k, value=v) for k, v in filter_dict.items()])

    def matches(self, metadata: dict[str, Any]) -> bool:
        if not self.filters:
            return True
        results = (f.matches(metadata) for f in self.filters)
        if self.condition == FilterCondition.OR:
            return any(results)
        return all(results)


MetadataFilters.model_rebuild()


class QueryBundle(BaseModel):
    """A query string with an optional precomputed embedding and filters."""
    query_str: str
    embedding: Optional[list[float]] = None
    filters: Optional[MetadataFilters] = None

    def __str__(self) -> str:
        return self.query_str


def to_query_bundle(query: Union[str, QueryBundle]) -> QueryBundle:
    if isinstance(query, QueryBundle):
        return query
    return QueryBundle(query_str=query)


class VectorStoreQueryMode(str, Enum):
    DEFAULT = "default"
    SPARSE = "sparse"
    HYBRID = "hybrid"
    MMR = "mmr"


class VectorStoreQuery(BaseModel):
    """Parameters of a vector store lookup."""
    query_embedding: Optional[list[float]] = None
    similarity_top_k: int = 1
    filters: Optional[MetadataFilters] = None
    mode: VectorStoreQueryMode = VectorStoreQueryMode.DEFAULT
    query_str: Optional[str] = None
    node_ids: Optional[list[str]] = None
    alpha: Optional[float] = None
    mmr_threshold: Optional[float] = None


class Response(BaseModel):
    """Answer produced by a query engine."""
    response: Optional[str] = None
    source_nodes: list[NodeWithScore] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def __str__(self) -> str:
        return self.response or ""
