"""Split documents into linked text nodes."""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence

from pyrag.exceptions import InvalidArgumentError
from pyrag.schema import BaseNode, Document, NodeRelationship, TextNode

logger = logging.getLogger(__name__)

DEFAULT_SEPARATORS = ["\n\n", "\n", ". ", " ", ""]
DEFAULT_HIERARCHY_CHUNK_SIZES = [2048, 512, 128]
DEFAULT_HIERARCHY_CHUNK_OVERLAP = 20


def _word_tokenizer(text: str) -> list[str]:
    return text.split()


class NodeParser(ABC):
    """Abstract base class for node parsers.

    Parsed nodes carry a SOURCE relationship to their document and, unless
    disabled, PREVIOUS/NEXT links to their neighbours from the same parent.
    """

    def __init__(self, include_metadata: bool = True, include_prev_next_rel: bool = True):
        self.include_metadata = include_metadata
        self.include_prev_next_rel = include_prev_next_rel

    @abstractmethod
    def get_nodes_from_documents(self, documents: Sequence[Document]) -> list[BaseNode]:
        pass

    def build_nodes_from_splits(self, splits: list[str], parent: BaseNode) -> list[TextNode]:
        """Create one node per split, inheriting metadata from ``parent``."""
        if isinstance(parent, Document):
            source = parent.as_related_node_info()
        else:
            source = parent.source_node

        nodes = []
        for split in splits:
            relationships = {}
            if source is not None:
                relationships[NodeRelationship.SOURCE] = source
            nodes.append(TextNode(
                text=split,
                metadata=dict(parent.metadata) if self.include_metadata else {},
                excluded_embed_metadata_keys=list(parent.excluded_embed_metadata_keys),
                excluded_llm_metadata_keys=list(parent.excluded_llm_metadata_keys),
                relationships=relationships,
            ))

        if self.include_prev_next_rel:
            for prev, nxt in zip(nodes, nodes[1:]):
                nxt.relationships[NodeRelationship.PREVIOUS] = prev.as_related_node_info()
                prev.relationships[NodeRelationship.NEXT] = nxt.as_related_node_info()
        return nodes


class SentenceSplitter(NodeParser):
    """Split text on the coarsest separator that fits, then merge with overlap.

    Text is cut on paragraphs first, then lines, sentences, words and
    finally characters, keeping each separator with the piece before it.
    Pieces are merged back into chunks of at most ``chunk_size`` tokens;
    each new chunk starts with up to ``chunk_overlap`` tokens from the end
    of the previous one.
    """

    def __init__(
        self,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
        separators: Optional[list[str]] = None,
        tokenizer: Optional[Callable[[str], list[str]]] = None,
        **kwargs,
    ):
        """Initialize the splitter.

        Args:
            chunk_size: Maximum tokens per chunk (Settings.chunk_size by default)
            chunk_overlap: Tokens shared by consecutive chunks (Settings.chunk_overlap by default)
            separators: Separators to try, coarsest first
            tokenizer: Text to tokens function used to measure size (whitespace words by default)
        """
        super().__init__(**kwargs)
        if chunk_size is None or chunk_overlap is None:
            from pyrag.settings import Settings

            chunk_size = chunk_size if chunk_size is not None else Settings.chunk_size
            chunk_overlap = chunk_overlap if chunk_overlap is not None else Settings.chunk_overlap

        if chunk_size <= 0:
            raise InvalidArgumentError("chunk_size must be positive")
        if chunk_overlap < 0 or chunk_overlap >= chunk_size:
            raise InvalidArgumentError(
                f"chunk_overlap ({chunk_overlap}) must be in [0, chunk_size ({chunk_size}))"
            )

        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.separators = separators or DEFAULT_SEPARATORS
        self.tokenizer = tokenizer or _word_tokenizer

    def _token_size(self, text: str) -> int:
        return len(self.tokenizer(text))

    def _split(self, text: str, separators: list[str]) -> list[str]:
        if self._token_size(text) <= self.chunk_size:
            return [text]

        for i, separator in enumerate(separators):
            if separator == "":
                return list(text)
            if separator not in text:
                continue

            parts = text.split(separator)
            pieces = [p + separator for p in parts[:-1]] + [parts[-1]]
            result = []
            for piece in pieces:
                if not piece:
                    continue
                if self._token_size(piece) <= self.chunk_size:
                    result.append(piece)
                else:
                    result.extend(self._split(piece, separators[i + 1:]))
            return result

        return [text]

    def _merge(self, splits: list[str]) -> list[str]:
        chunks: list[str] = []
        current: list[str] = []
        current_size = 0

        for split in splits:
            size = self._token_size(split)
            if current and current_size + size > self.chunk_size:
                chunks.append("".join(current).strip())

                # Carry the tail of the finished chunk into the next one
                overlap: list[str] = []
                overlap_size = 0
                for piece in reversed(current):
                    piece_size = self._token_size(piece)
                    if overlap_size + piece_size > self.chunk_overlap:
                        break
                    overlap.insert(0, piece)
                    overlap_size += piece_size

                while overlap and overlap_size + size > self.chunk_size:
                    overlap_size -= self._token_size(overlap.pop(0))
                current, current_size = overlap, overlap_size

            current.append(split)
            current_size += size

        if current:
            chunks.append("".join(current).strip())
        return [chunk for chunk in chunks if chunk]

    def split_text(self, text: str) -> list[str]:
        """Split text into chunks of at most ``chunk_size`` tokens."""
        if not text.strip():
            return []
        return self._merge(self._split(text, self.separators))

    def get_nodes_from_node(self, node: BaseNode) -> list[TextNode]:
        return self.build_nodes_from_splits(self.split_text(node.text), node)

    def get_nodes_from_documents(self, documents: Sequence[Document]) -> list[BaseNode]:
        nodes: list[BaseNode] = []
        for document in documents:
            nodes.extend(self.get_nodes_from_node(document))
        logger.debug(f"Split {len(documents)} documents into {len(nodes)} nodes")
        return nodes


class HierarchicalNodeParser(NodeParser):
    """
    Split documents into a hierarchy of chunk sizes.

    The first size splits each document; every following size splits each
    node of the level above. Children point at their parent through PARENT
    and parents list their children through CHILD. All levels are returned,
    largest chunks first.
    """

    def __init__(
        self,
        chunk_sizes: Optional[list[int]] = None,
        chunk_overlap: int = DEFAULT_HIERARCHY_CHUNK_OVERLAP,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.chunk_sizes = list(DEFAULT_HIERARCHY_CHUNK_SIZES if chunk_sizes is None else chunk_sizes)
        if not self.chunk_sizes:
            raise InvalidArgumentError("chunk_sizes must not be empty")
        self._splitters = [
            SentenceSplitter(
                chunk_size=size,
                chunk_overlap=min(chunk_overlap, size - 1),
                include_metadata=self.include_metadata,
                include_prev_next_rel=self.include_prev_next_rel,
            )
            for size in self.chunk_sizes
        ]

    def get_nodes_from_documents(self, documents: Sequence[Document]) -> list[BaseNode]:
        all_nodes: list[BaseNode] = []
        level: list[BaseNode] = list(documents)

        for depth, splitter in enumerate(self._splitters):
            next_level: list[BaseNode] = []
            for parent in level:
                children = splitter.get_nodes_from_node(parent)
                if depth > 0:
                    for child in children:
                        child.relationships[NodeRelationship.PARENT] = parent.as_related_node_info()
                    parent.relationships[NodeRelationship.CHILD] = [
                        child.as_related_node_info() for child in children
                    ]
                next_level.extend(children)

            all_nodes.extend(next_level)
            level = next_level

        logger.debug(f"Parsed {len(documents)} documents into {len(all_nodes)} hierarchical nodes")
        return all_nodes


def get_leaf_nodes(nodes: list[BaseNode]) -> list[BaseNode]:
    """Nodes without children."""
    return [node for node in nodes if NodeRelationship.CHILD not in node.relationships]


def get_root_nodes(nodes: list[BaseNode]) -> list[BaseNode]:
    """Nodes without a parent."""
    return [node for node in nodes if NodeRelationship.PARENT not in node.relationships]
