"""
Tool metadata, outputs and the base tool interface.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def default_parameters() -> dict[str, Any]:
    """Schema of a tool taking a single ``input`` string."""
    return {
        "type": "object",
        "properties": {
            "input": {"title": "input query string", "type": "string"},
        },
        "required": ["input"],
    }


class ToolMetadata(BaseModel):
    """Name, description and JSON Schema parameters of a tool."""
    name: str
    description: str
    parameters: Optional[dict[str, Any]] = None
    return_direct: bool = False

    def get_parameters_dict(self) -> dict[str, Any]:
        if self.parameters is None:
            return default_parameters()
        return self.parameters

    def get_parameters_json(self) -> str:
        return json.dumps(self.get_parameters_dict())

    def to_openai_tool(self) -> dict[str, Any]:
        """Convert to the OpenAI ``tools`` format."""
        return {
            "type": "function",
            "function": self.to_openai_function(),
        }

    def to_openai_function(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.get_parameters_dict(),
        }


class ToolOutput(BaseModel):
    """Result of a tool call."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    content: str
    tool_name: str
    raw_input: dict[str, Any] = Field(default_factory=dict)
    raw_output: Any = None
    is_error: bool = False

    def __str__(self) -> str:
        return self.content


class BaseTool(ABC):
    """Abstract base class for tools."""

    @property
    @abstractmethod
    def metadata(self) -> ToolMetadata:
        pass

    @abstractmethod
    async def call(self, input: Any = None, **kwargs: Any) -> ToolOutput:
        """Run the tool.

        Args:
            input: Tool input, a string or a dict of arguments
            **kwargs: Extra keyword arguments

        Returns:
            The tool output
        """
        pass


def get_query_string(input: Any) -> str:
    """Pull a query string out of a tool input."""
    if isinstance(input, str):
        return input
    if isinstance(input, dict):
        for key in ("input", "query", "question"):
            if isinstance(input.get(key), str):
                return input[key]
        return ", ".join(f"{key} is {value}" for key, value in input.items())
    return str(input)
