"""
Triplet graph stores.
"""

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from pyrag.exceptions import DecodeError, UnsupportedError
from pyrag.utils.io import load_json_file, write_json_file

logger = logging.getLogger(__name__)

GRAPH_STORE_FILENAME = "graph_store.json"
DEFAULT_REL_MAP_DEPTH = 2
DEFAULT_REL_MAP_LIMIT = 30


class Triplet(BaseModel):
    """A (subject, predicate, object) edge."""
    subject: str
    predicate: str
    object: str

    def __str__(self) -> str:
        return f"({self.subject}, {self.predicate}, {self.object})"

    def as_list(self) -> list[str]:
        return [self.subject, self.predicate, self.object]


class GraphStore(ABC):
    """Abstract base class for graph stores."""

    @abstractmethod
    async def get(self, subj: str) -> list[list[str]]:
        """``[predicate, object]`` pairs for a subject."""
        pass

    @abstractmethod
    async def get_rel_map(
        self,
        subjs: Optional[list[str]] = None,
        depth: int = DEFAULT_REL_MAP_DEPTH,
        limit: int = DEFAULT_REL_MAP_LIMIT,
    ) -> dict[str, list[list[str]]]:
        """``[subject, predicate, object]`` chains reachable from each subject."""
        pass

    @abstractmethod
    async def upsert_triplet(self, subj: str, rel: str, obj: str) -> None:
        pass

    @abstractmethod
    async def delete(self, subj: str, rel: str, obj: str) -> None:
        pass

    async def get_schema(self, refresh: bool = False) -> str:
        raise UnsupportedError(f"{type(self).__name__} does not support get_schema")

    async def query(self, query: str, params: Optional[dict[str, Any]] = None) -> Any:
        raise UnsupportedError(f"{type(self).__name__} does not support query")


class SimpleGraphStoreData(BaseModel):
    """Adjacency map: subject -> list of [predicate, object]."""
    graph_dict: dict[str, list[list[str]]] = Field(default_factory=dict)


class SimpleGraphStore(GraphStore):
    """
    In-memory graph store.

    Subjects keep insertion order, so relation maps are deterministic.
    """

    def __init__(self, data: Optional[SimpleGraphStoreData] = None):
        self._lock = threading.Lock()
        self._data = data or SimpleGraphStoreData()

    async def get(self, subj: str) -> list[list[str]]:
        with self._lock:
            return [list(rel) for rel in self._data.graph_dict.get(subj, [])]

    async def get_by_object(self, obj: str) -> list[list[str]]:
        """``[subject, predicate]`` pairs of every edge pointing at ``obj``."""
        with self._lock:
            return [
                [subj, rel[0]]
                for subj, rels in self._data.graph_dict.items()
                for rel in rels
                if rel[1] == obj
            ]

    async def get_rel_map(
        self,
        subjs: Optional[list[str]] = None,
        depth: int = DEFAULT_REL_MAP_DEPTH,
        limit: int = DEFAULT_REL_MAP_LIMIT,
    ) -> dict[str, list[list[str]]]:
        """
        Collect relation chains for the given subjects.

        Each subject maps to flattened ``[subject, predicate, object]``
        entries found by following objects up to ``depth`` hops. The total
        number of entries across all subjects is capped at ``limit``.
        """
        with self._lock:
            if subjs is None:
                subjs = list(self._data.graph_dict)

            rel_map: dict[str, list[list[str]]] = {}
            count = 0
            for subj in subjs:
                rels = self._rels_for_subject(subj, depth, limit)
                if count + len(rels) > limit:
                    rel_map[subj] = rels[:limit - count]
                    break
                rel_map[subj] = rels
                count += len(rels)
            return rel_map

    def _rels_for_subject(self, subj: str, depth: int, limit: int) -> list[list[str]]:
        if depth <= 0 or limit <= 0:
            return []

        result: list[list[str]] = []
        seen = 0
        for rel, obj in self._data.graph_dict.get(subj, []):
            if seen >= limit:
                break
            result.append([subj, rel, obj])
            result.extend(self._rels_for_subject(obj, depth - 1, limit - seen - 1))
            seen += 1
        return result

    async def upsert_triplet(self, subj: str, rel: str, obj: str) -> None:
        with self._lock:
            rels = self._data.graph_dict.setdefault(subj, [])
            if [rel, obj] not in rels:
                rels.append([rel, obj])

    async def delete(self, subj: str, rel: str, obj: str) -> None:
        with self._lock:
            rels = self._data.graph_dict.get(subj)
            if rels is None:
                return
            remaining = [r for r in rels if r != [rel, obj]]
            if remaining:
                self._data.graph_dict[subj] = remaining
            else:
                del self._data.graph_dict[subj]

    async def get_all_subjects(self) -> list[str]:
        with self._lock:
            return list(self._data.graph_dict)

    async def get_triplets(self) -> list[Triplet]:
        with self._lock:
            return [
                Triplet(subject=subj, predicate=rel, object=obj)
                for subj, rels in self._data.graph_dict.items()
                for rel, obj in rels
            ]

    @property
    def triplet_count(self) -> int:
        with self._lock:
            return sum(len(rels) for rels in self._data.graph_dict.values())

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return self._data.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SimpleGraphStore":
        try:
            return cls(SimpleGraphStoreData.model_validate(data))
        except ValueError as e:
            raise DecodeError(f"Invalid graph store data: {e}") from e

    def persist(self, persist_path: Union[str, Path]) -> None:
        write_json_file(persist_path, self.to_dict())
        logger.debug(f"Persisted graph store to {persist_path}")

    @classmethod
    def from_persist_path(cls, persist_path: Union[str, Path]) -> "SimpleGraphStore":
        """Load a graph store; a missing file gives an empty store."""
        if not Path(persist_path).exists():
            return cls()
        return cls.from_dict(load_json_file(persist_path))
