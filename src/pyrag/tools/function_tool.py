"""
Wrap a plain Python function as a tool.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional, Union, get_type_hints

from pyrag.tools.types import BaseTool, ToolMetadata, ToolOutput

logger = logging.getLogger(__name__)


def _annotation_schema(annotation: Any) -> dict[str, Any]:
    if annotation is str:
        return {"type": "string"}
    if annotation is bool:
        return {"type": "boolean"}
    if annotation is int:
        return {"type": "integer"}
    if annotation is float:
        return {"type": "number"}
    if annotation is list:
        return {"type": "array"}
    if annotation is dict:
        return {"type": "object"}

    # Generic types like list[str] or dict[str, int]
    origin = getattr(annotation, "__origin__", None)
    if origin is list:
        return {"type": "array", "items": {"type": "string"}}
    if origin is dict:
        return {"type": "object"}
    if origin is Union:
        args = [arg for arg in annotation.__args__ if arg is not type(None)]
        if len(args) == 1:
            return _annotation_schema(args[0])
    return {"type": "string"}


def _type_hints(fn: Callable) -> dict[str, Any]:
    try:
        return get_type_hints(fn)
    except (NameError, TypeError) as e:
        logger.debug(f"Could not resolve annotations of {fn!r}: {e}")
        return {}


def function_parameters(fn: Callable) -> dict[str, Any]:
    """Infer a JSON Schema for a function's parameters from its signature."""
    properties: dict[str, Any] = {}
    required: list[str] = []
    hints = _type_hints(fn)

    for param_name, param in inspect.signature(fn).parameters.items():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue

        annotation = hints.get(param_name, param.annotation)
        if annotation is inspect.Parameter.empty:
            properties[param_name] = {"type": "string"}
        else:
            properties[param_name] = _annotation_schema(annotation)

        if param.default is inspect.Parameter.empty:
            required.append(param_name)

    return {"type": "object", "properties": properties, "required": required}


class FunctionTool(BaseTool):
    """
    A tool calling a Python function.

    Dict inputs are passed as keyword arguments, lists and tuples as
    positional arguments, anything else as the single first argument.
    Coroutine functions are awaited. A failing call is reported as an
    output with ``is_error`` set.
    """

    def __init__(self, fn: Callable[..., Any], metadata: ToolMetadata):
        self._fn = fn
        self._metadata = metadata

    @classmethod
    def from_defaults(
        cls,
        fn: Callable[..., Any],
        name: Optional[str] = None,
        description: Optional[str] = None,
        return_direct: bool = False,
        parameters: Optional[dict[str, Any]] = None,
    ) -> "FunctionTool":
        """Create a tool, naming and describing it after the function by default."""
        name = name or fn.__name__
        description = description or inspect.getdoc(fn) or f"{name}{inspect.signature(fn)}"
        metadata = ToolMetadata(
            name=name,
            description=description,
            parameters=parameters or function_parameters(fn),
            return_direct=return_direct,
        )
        return cls(fn, metadata)

    @property
    def metadata(self) -> ToolMetadata:
        return self._metadata

    @property
    def fn(self) -> Callable[..., Any]:
        return self._fn

    def _prepare_args(self, input: Any, kwargs: dict[str, Any]) -> tuple[list[Any], dict[str, Any]]:
        args: list[Any] = []
        call_kwargs = dict(kwargs)
        if isinstance(input, dict):
            call_kwargs.update(input)
        elif isinstance(input, (list, tuple)):
            args.extend(input)
        elif input is not None:
            args.append(input)
        return args, call_kwargs

    async def call(self, input: Any = None, **kwargs: Any) -> ToolOutput:
        args, call_kwargs = self._prepare_args(input, kwargs)
        raw_input = {"args": args, "kwargs": call_kwargs}

        try:
            result = self._fn(*args, **call_kwargs)
            if asyncio.iscoroutine(result):
                result = await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Tool {self._metadata.name} failed: {e}")
            return ToolOutput(
                content=f"Error executing tool: {e}",
                tool_name=self._metadata.name,
                raw_input=raw_input,
                is_error=True,
            )

        return ToolOutput(
            content=result if isinstance(result, str) else str(result),
            tool_name=self._metadata.name,
            raw_input=raw_input,
            raw_output=result,
        )
