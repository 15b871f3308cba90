"""
Test configuration and fixtures.
"""

import pytest

from pyrag.retrievers.base import BaseRetriever
from pyrag.schema import Document, NodeWithScore, QueryBundle, TextNode
from pyrag.settings import Settings
from pyrag.storage.context import StorageContext


class StaticRetriever(BaseRetriever):
    """Retriever returning a fixed result list and recording its queries."""

    def __init__(self, results: list[NodeWithScore], **kwargs):
        super().__init__(**kwargs)
        self.results = results
        self.queries: list[str] = []

    async def _retrieve(self, query_bundle: QueryBundle) -> list[NodeWithScore]:
        self.queries.append(query_bundle.query_str)
        return [r.model_copy() for r in self.results]


def scored(node_id: str, score: float, text: str = "") -> NodeWithScore:
    return NodeWithScore(node=TextNode(id=node_id, text=text or f"text of {node_id}"), score=score)


@pytest.fixture(autouse=True)
def reset_settings():
    """Keep the process-wide settings isolated between tests."""
    Settings.reset()
    yield
    Settings.reset()


@pytest.fixture
def storage_context():
    return StorageContext.from_defaults()


@pytest.fixture
def documents():
    """Three short documents with stable IDs."""
    return [
        Document(id="d1", text="apple pie"),
        Document(id="d2", text="banana bread"),
        Document(id="d3", text="cherry tart"),
    ]


@pytest.fixture
def make_retriever():
    """Factory for retrievers returning ``(node_id, score)`` pairs."""
    def _make(pairs, **kwargs) -> StaticRetriever:
        return StaticRetriever([scored(node_id, score) for node_id, score in pairs], **kwargs)

    return _make
