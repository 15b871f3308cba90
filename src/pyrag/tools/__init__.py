"""Tools wrapping functions, retrievers and query engines."""

from pyrag.tools.function_tool import FunctionTool, function_parameters
from pyrag.tools.retriever_tool import QueryEngineTool, RetrieverTool
from pyrag.tools.types import BaseTool, ToolMetadata, ToolOutput, default_parameters

__all__ = [
    "BaseTool",
    "ToolMetadata",
    "ToolOutput",
    "default_parameters",
    "FunctionTool",
    "function_parameters",
    "RetrieverTool",
    "QueryEngineTool",
]
