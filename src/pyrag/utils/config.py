"""
Configuration utilities.
"""

import json
from pathlib import Path

import yaml

from pydantic import BaseModel

from pyrag.exceptions import InvalidArgumentError


class Config(BaseModel):
    """Base configuration class."""

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    @classmethod
    def from_file(cls, path: str | Path) -> "Config":
        """Load configuration from file (YAML or JSON)."""
        path = Path(path)

        if path.suffix in (".yaml", ".yml"):
            return cls.from_yaml(path)
        elif path.suffix == ".json":
            with open(path) as f:
                data = json.load(f)
            return cls(**data)
        else:
            raise InvalidArgumentError(f"Unsupported config file format: {path.suffix}")


class RAGConfig(Config):
    """Library-wide defaults."""
    llm_model: str = "gpt-4o-mini"
    embed_model: str = "text-embedding-3-small"
    api_key: str | None = None
    base_url: str | None = None

    chunk_size: int = 1024
    chunk_overlap: int = 200
    similarity_top_k: int = 10

    persist_dir: str = "./storage"
    log_level: str = "INFO"


def load_config(path: str | Path = "pyrag.yaml") -> RAGConfig:
    """
    Load library configuration from file.

    Args:
        path: Path to config file

    Returns:
        RAGConfig instance (defaults when the file does not exist)
    """
    path = Path(path)

    if not path.exists():
        return RAGConfig()

    return RAGConfig.from_file(path)
