"""
Retriever and query engine tools.
"""

import logging
from typing import TYPE_CHECKING, Any, Optional

from pyrag.postprocessor import BaseNodePostprocessor
from pyrag.schema import MetadataMode, QueryBundle
from pyrag.tools.types import BaseTool, ToolMetadata, ToolOutput, get_query_string

if TYPE_CHECKING:
    from pyrag.query_engine import BaseQueryEngine
    from pyrag.retrievers.base import BaseRetriever

logger = logging.getLogger(__name__)

DEFAULT_RETRIEVER_TOOL_NAME = "retriever_tool"
DEFAULT_RETRIEVER_TOOL_DESCRIPTION = (
    "Useful for running a natural language query against a knowledge base "
    "and retrieving a set of relevant documents."
)
DEFAULT_QUERY_ENGINE_TOOL_NAME = "query_engine_tool"
DEFAULT_QUERY_ENGINE_TOOL_DESCRIPTION = (
    "Useful for running a natural language query against a knowledge base "
    "and get back a natural language response."
)


class RetrieverTool(BaseTool):
    """
    A tool running a retriever.

    The output content is the retrieved nodes rendered for an LLM and
    separated by blank lines; the nodes themselves are the raw output.
    """

    def __init__(
        self,
        retriever: "BaseRetriever",
        metadata: ToolMetadata,
        node_postprocessors: Optional[list[BaseNodePostprocessor]] = None,
    ):
        self._retriever = retriever
        self._metadata = metadata
        self._node_postprocessors = list(node_postprocessors or [])

    @classmethod
    def from_defaults(
        cls,
        retriever: "BaseRetriever",
        name: Optional[str] = None,
        description: Optional[str] = None,
        return_direct: bool = False,
        node_postprocessors: Optional[list[BaseNodePostprocessor]] = None,
    ) -> "RetrieverTool":
        metadata = ToolMetadata(
            name=name or DEFAULT_RETRIEVER_TOOL_NAME,
            description=description or DEFAULT_RETRIEVER_TOOL_DESCRIPTION,
            return_direct=return_direct,
        )
        return cls(retriever, metadata, node_postprocessors=node_postprocessors)

    @property
    def metadata(self) -> ToolMetadata:
        return self._metadata

    @property
    def retriever(self) -> "BaseRetriever":
        return self._retriever

    async def call(self, input: Any = None, **kwargs: Any) -> ToolOutput:
        query_str = get_query_string(input if input is not None else kwargs)
        query_bundle = QueryBundle(query_str=query_str)

        nodes = await self._retriever.retrieve(query_bundle)
        for postprocessor in self._node_postprocessors:
            nodes = await postprocessor.postprocess_nodes(nodes, query_bundle)

        content = "\n\n".join(n.get_content(metadata_mode=MetadataMode.LLM) for n in nodes)
        logger.debug(f"Tool {self._metadata.name} retrieved {len(nodes)} nodes")
        return ToolOutput(
            content=content,
            tool_name=self._metadata.name,
            raw_input={"input": query_str},
            raw_output=nodes,
        )


class QueryEngineTool(BaseTool):
    """A tool answering its input with a query engine."""

    def __init__(self, query_engine: "BaseQueryEngine", metadata: ToolMetadata):
        self._query_engine = query_engine
        self._metadata = metadata

    @classmethod
    def from_defaults(
        cls,
        query_engine: "BaseQueryEngine",
        name: Optional[str] = None,
        description: Optional[str] = None,
        return_direct: bool = False,
    ) -> "QueryEngineTool":
        metadata = ToolMetadata(
            name=name or DEFAULT_QUERY_ENGINE_TOOL_NAME,
            description=description or DEFAULT_QUERY_ENGINE_TOOL_DESCRIPTION,
            return_direct=return_direct,
        )
        return cls(query_engine, metadata)

    @property
    def metadata(self) -> ToolMetadata:
        return self._metadata

    @property
    def query_engine(self) -> "BaseQueryEngine":
        return self._query_engine

    async def call(self, input: Any = None, **kwargs: Any) -> ToolOutput:
        query_str = get_query_string(input if input is not None else kwargs)
        response = await self._query_engine.query(query_str)
        return ToolOutput(
            content=str(response),
            tool_name=self._metadata.name,
            raw_input={"input": query_str},
            raw_output=response,
        )
