"""JSON helpers shared by the stores."""

import json
from pathlib import Path
from typing import Any, Union

from pyrag.exceptions import DecodeError, InvalidArgumentError, NotFoundError


def copy_value(value: Any) -> Any:
    """Deep copy a value through JSON, rejecting anything not serializable."""
    try:
        return json.loads(json.dumps(value))
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(f"Value is not JSON-serializable: {e}") from e


def load_json_file(path: Union[str, Path]) -> Any:
    """Read a JSON document, raising NotFoundError or DecodeError."""
    path = Path(path)
    if not path.exists():
        raise NotFoundError(f"No file at {path}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise DecodeError(f"Cannot parse {path}: {e}") from e


def write_json_file(path: Union[str, Path], data: Any) -> None:
    """Write a JSON document, creating parent directories as needed."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
