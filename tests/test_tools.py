"""Tests for tools."""

from typing import Optional

import pytest

from pyrag.llms import MockLLM
from pyrag.postprocessor import SimilarityPostprocessor
from pyrag.query_engine import RetrieverQueryEngine
from pyrag.tools import (
    FunctionTool,
    QueryEngineTool,
    RetrieverTool,
    ToolMetadata,
    ToolOutput,
    default_parameters,
)


def add(a: int, b: int = 2) -> int:
    """Add two numbers."""
    return a + b


def tag(name: "str", weight: "float", labels: "list[str]", limit: Optional[int] = None) -> "str":
    """Tag something."""
    return name


class TestToolMetadata:
    """Tests for ToolMetadata."""

    def test_default_parameters(self):
        metadata = ToolMetadata(name="search", description="Search things")
        assert metadata.get_parameters_dict() == default_parameters()
        assert metadata.to_openai_tool() == {
            "type": "function",
            "function": {
                "name": "search",
                "description": "Search things",
                "parameters": default_parameters(),
            },
        }

    def test_output_str(self):
        assert str(ToolOutput(content="hello", tool_name="t")) == "hello"


class TestFunctionTool:
    """Tests for FunctionTool."""

    def test_from_defaults_infers_metadata(self):
        tool = FunctionTool.from_defaults(add)
        assert tool.metadata.name == "add"
        assert tool.metadata.description == "Add two numbers."
        assert tool.metadata.parameters == {
            "type": "object",
            "properties": {"a": {"type": "integer"}, "b": {"type": "integer"}},
            "required": ["a"],
        }

    def test_string_annotations_are_resolved(self):
        tool = FunctionTool.from_defaults(tag)
        assert tool.metadata.parameters == {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "weight": {"type": "number"},
                "labels": {"type": "array", "items": {"type": "string"}},
                "limit": {"type": "integer"},
            },
            "required": ["name", "weight", "labels"],
        }

    @pytest.mark.asyncio
    async def test_call_styles(self):
        """Test dict, list and scalar inputs."""
        tool = FunctionTool.from_defaults(add)
        assert (await tool.call({"a": 1})).content == "3"
        assert (await tool.call([1, 5])).content == "6"
        output = await tool.call(4)
        assert output.content == "6"
        assert output.raw_output == 6
        assert output.raw_input == {"args": [4], "kwargs": {}}

    @pytest.mark.asyncio
    async def test_async_function(self):
        async def shout(text: str) -> str:
            return text.upper()

        tool = FunctionTool.from_defaults(shout, name="shout", description="Shout text")
        assert (await tool.call("hi")).content == "HI"

    @pytest.mark.asyncio
    async def test_failure_is_reported(self):
        tool = FunctionTool.from_defaults(add)
        output = await tool.call({"a": "x"})
        assert output.is_error
        assert output.content.startswith("Error executing tool")


class TestRetrieverTools:
    """Tests for RetrieverTool and QueryEngineTool."""

    @pytest.mark.asyncio
    async def test_retriever_tool(self, make_retriever):
        retriever = make_retriever([("n1", 0.9), ("n2", 0.2)])
        tool = RetrieverTool.from_defaults(
            retriever,
            node_postprocessors=[SimilarityPostprocessor(similarity_cutoff=0.5)],
        )

        output = await tool.call({"input": "pets"})
        assert output.content == "text of n1"
        assert [n.node_id for n in output.raw_output] == ["n1"]
        assert retriever.queries == ["pets"]
        assert tool.metadata.name == "retriever_tool"

    @pytest.mark.asyncio
    async def test_query_engine_tool(self, make_retriever):
        engine = RetrieverQueryEngine(make_retriever([("n1", 0.9)]), llm=MockLLM(default_response="Cats purr."))
        tool = QueryEngineTool.from_defaults(engine, name="pets", description="Pet questions")

        output = await tool.call(query="do cats purr?")
        assert output.content == "Cats purr."
        assert output.raw_input == {"input": "do cats purr?"}
