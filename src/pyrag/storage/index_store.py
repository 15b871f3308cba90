"""Index store: persisted index structures keyed by index ID."""

import logging
from pathlib import Path
from typing import Optional, Union

from pyrag.data_structs import IndexStruct, index_struct_to_json, json_to_index_struct
from pyrag.exceptions import AmbiguousError, NotFoundError
from pyrag.storage.kvstore import BaseKVStore, DataType, SimpleKVStore

logger = logging.getLogger(__name__)

DEFAULT_INDEX_STORE_NAMESPACE = "index_store"


class KVIndexStore:
    """Index store over any key-value store, in the ``<ns>/data`` collection."""

    def __init__(self, kvstore: BaseKVStore, namespace: str = DEFAULT_INDEX_STORE_NAMESPACE):
        self._kvstore = kvstore
        self.namespace = namespace
        self._collection = f"{namespace}/data"

    async def index_structs(self) -> list[IndexStruct]:
        values = await self._kvstore.get_all(self._collection)
        return [json_to_index_struct(value) for value in values.values()]

    async def add_index_struct(self, index_struct: IndexStruct) -> None:
        await self._kvstore.put(
            index_struct.index_id, index_struct_to_json(index_struct), self._collection
        )

    async def delete_index_struct(self, key: str) -> None:
        await self._kvstore.delete(key, self._collection)

    async def get_index_struct(self, struct_id: Optional[str] = None) -> IndexStruct:
        """
        Get an index struct by ID.

        Without an ID the sole stored struct is returned.

        Raises:
            AmbiguousError: No ID given and several structs are stored
            NotFoundError: Nothing matches
        """
        if not struct_id:
            structs = await self.index_structs()
            if len(structs) > 1:
                raise AmbiguousError("Multiple index structs found, specify struct_id")
            if not structs:
                raise NotFoundError("No index struct found")
            return structs[0]

        value = await self._kvstore.get(struct_id, self._collection)
        if value is None:
            raise NotFoundError(f"Index struct {struct_id} not found")
        return json_to_index_struct(value)


class SimpleIndexStore(KVIndexStore):
    """Index store over an in-memory key-value store."""

    def __init__(
        self,
        simple_kvstore: Optional[SimpleKVStore] = None,
        namespace: str = DEFAULT_INDEX_STORE_NAMESPACE,
    ):
        self._simple_kvstore = simple_kvstore or SimpleKVStore()
        super().__init__(self._simple_kvstore, namespace=namespace)

    def persist(self, persist_path: Union[str, Path]) -> None:
        self._simple_kvstore.persist(persist_path)

    @classmethod
    def from_persist_path(
        cls, persist_path: Union[str, Path], namespace: str = DEFAULT_INDEX_STORE_NAMESPACE
    ) -> "SimpleIndexStore":
        return cls(SimpleKVStore.from_persist_path(persist_path), namespace=namespace)

    def to_dict(self) -> DataType:
        return self._simple_kvstore.to_dict()

    @classmethod
    def from_dict(
        cls, data: DataType, namespace: str = DEFAULT_INDEX_STORE_NAMESPACE
    ) -> "SimpleIndexStore":
        return cls(SimpleKVStore.from_dict(data), namespace=namespace)
