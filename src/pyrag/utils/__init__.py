"""Utility helpers."""

from pyrag.utils.config import Config, RAGConfig, load_config
from pyrag.utils.logging import get_logger, set_log_level

__all__ = [
    "Config",
    "RAGConfig",
    "load_config",
    "get_logger",
    "set_log_level",
]
