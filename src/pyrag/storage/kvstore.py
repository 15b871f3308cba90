"""
Key-value stores.

A store is a set of named collections, each mapping string keys to
JSON-serializable dict values. Values are copied on the way in and on the
way out, so callers may mutate what they hold without touching the store.
"""

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Union

from pyrag.exceptions import DecodeError
from pyrag.utils.io import copy_value, load_json_file, write_json_file

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION = "data"

StoredValue = dict[str, Any]
DataType = dict[str, dict[str, StoredValue]]


def _collection(collection: Optional[str]) -> str:
    return collection or DEFAULT_COLLECTION


class BaseKVStore(ABC):
    """Abstract base class for key-value stores."""

    @abstractmethod
    async def put(self, key: str, val: StoredValue, collection: str = DEFAULT_COLLECTION) -> None:
        """Store a value, creating the collection if needed."""
        pass

    @abstractmethod
    async def get(self, key: str, collection: str = DEFAULT_COLLECTION) -> Optional[StoredValue]:
        """Get a copy of a value, or None when absent."""
        pass

    @abstractmethod
    async def get_all(self, collection: str = DEFAULT_COLLECTION) -> dict[str, StoredValue]:
        """Get a copy of every value in a collection."""
        pass

    @abstractmethod
    async def delete(self, key: str, collection: str = DEFAULT_COLLECTION) -> bool:
        """Delete a value. Returns False when the key did not exist."""
        pass

    async def put_all(
        self,
        kv_pairs: list[tuple[str, StoredValue]],
        collection: str = DEFAULT_COLLECTION,
    ) -> None:
        for key, val in kv_pairs:
            await self.put(key, val, collection=collection)


class SimpleKVStore(BaseKVStore):
    """
    In-memory key-value store.

    Mutations and reads are guarded by a lock; the whole store serializes
    to a single ``{collection: {key: value}}`` JSON document.
    """

    def __init__(self, data: Optional[DataType] = None):
        self._lock = threading.Lock()
        self._data: DataType = copy_value(data) if data else {}

    async def put(self, key: str, val: StoredValue, collection: str = DEFAULT_COLLECTION) -> None:
        val = copy_value(val)
        with self._lock:
            self._data.setdefault(_collection(collection), {})[key] = val
            self._on_change()

    async def get(self, key: str, collection: str = DEFAULT_COLLECTION) -> Optional[StoredValue]:
        with self._lock:
            val = self._data.get(_collection(collection), {}).get(key)
            return copy_value(val) if val is not None else None

    async def get_all(self, collection: str = DEFAULT_COLLECTION) -> dict[str, StoredValue]:
        with self._lock:
            return copy_value(self._data.get(_collection(collection), {}))

    async def delete(self, key: str, collection: str = DEFAULT_COLLECTION) -> bool:
        with self._lock:
            items = self._data.get(_collection(collection))
            if items is None or key not in items:
                return False
            del items[key]
            self._on_change()
            return True

    def _on_change(self) -> None:
        """Hook run under the lock after every mutation."""

    def to_dict(self) -> DataType:
        with self._lock:
            return copy_value(self._data)

    @classmethod
    def from_dict(cls, data: DataType) -> "SimpleKVStore":
        return cls(data)

    def persist(self, persist_path: Union[str, Path]) -> None:
        """Write the store to a JSON file."""
        with self._lock:
            write_json_file(persist_path, self._data)
        logger.debug(f"Persisted key-value store to {persist_path}")

    @classmethod
    def from_persist_path(cls, persist_path: Union[str, Path]) -> "SimpleKVStore":
        """Load a store previously written by ``persist``."""
        data = load_json_file(persist_path)
        if not isinstance(data, dict):
            raise DecodeError(f"Key-value store file {persist_path} must hold a JSON object")
        return cls(data)


class FileKVStore(SimpleKVStore):
    """
    Key-value store mirrored to a JSON file.

    The file is loaded on open (an absent or empty file starts an empty
    store) and rewritten in full after every put and delete. Intended for a
    single writer process.
    """

    def __init__(self, persist_path: Union[str, Path]):
        self.persist_path = Path(persist_path)

        data: DataType = {}
        if self.persist_path.exists() and self.persist_path.read_text(encoding="utf-8").strip():
            loaded = load_json_file(self.persist_path)
            if not isinstance(loaded, dict):
                raise DecodeError(f"Key-value store file {persist_path} must hold a JSON object")
            data = loaded

        super().__init__(data)

    def _on_change(self) -> None:
        write_json_file(self.persist_path, self._data)
