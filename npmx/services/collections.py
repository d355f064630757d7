"""User-named package collections."""

from __future__ import annotations

import uuid

from pydantic import ValidationError

from npmx.domain.models import Collection
from npmx.logging import logger
from npmx.services.exceptions import CollectionNotFound
from npmx.services.storage import KeyValueStore
from npmx.utils.datetime import utc_now

COLLECTIONS_KEY = "npmx:collections:v1"


def _new_collection_id() -> str:
    return f"col_{uuid.uuid4().hex[:12]}"


class CollectionStore:
    def __init__(self, storage: KeyValueStore) -> None:
        self.storage = storage

    def list_collections(self) -> list[Collection]:
        raw = self.storage.read(COLLECTIONS_KEY, [])
        if not isinstance(raw, list):
            return []
        collections: list[Collection] = []
        for entry in raw:
            try:
                collections.append(Collection.model_validate(entry))
            except ValidationError:
                logger.debug("collection_entry_dropped", key=COLLECTIONS_KEY)
        return collections

    def get_collection(self, collection_id: str) -> Collection:
        for collection in self.list_collections():
            if collection.id == collection_id:
                return collection
        raise CollectionNotFound(f"Collection {collection_id!r} does not exist.")

    def create_collection(self, name: str, description: str = "") -> Collection:
        name = name.strip()
        if not name:
            raise ValueError("Collection name must not be empty.")
        now = utc_now()
        collection = Collection(
            id=_new_collection_id(),
            name=name,
            description=description.strip(),
            created_at=now,
            updated_at=now,
        )
        with self.storage.locked(COLLECTIONS_KEY):
            self._save([*self.list_collections(), collection])
        return collection

    def update_collection(
        self,
        collection_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        is_public: bool | None = None,
    ) -> Collection:
        updates: dict = {}
        if name is not None:
            name = name.strip()
            if not name:
                raise ValueError("Collection name must not be empty.")
            updates["name"] = name
        if description is not None:
            updates["description"] = description.strip()
        if is_public is not None:
            updates["is_public"] = is_public
        return self._replace(collection_id, updates)

    def delete_collection(self, collection_id: str) -> None:
        with self.storage.locked(COLLECTIONS_KEY):
            collections = self.list_collections()
            remaining = [c for c in collections if c.id != collection_id]
            if len(remaining) != len(collections):
                self._save(remaining)

    def add_package(self, collection_id: str, package_name: str) -> Collection:
        package_name = package_name.strip()
        with self.storage.locked(COLLECTIONS_KEY):
            collection = self.get_collection(collection_id)
            if not package_name or package_name in collection.packages:
                return collection
            packages = [*collection.packages, package_name]
            return self._replace(collection_id, {"packages": packages})

    def remove_package(self, collection_id: str, package_name: str) -> Collection:
        package_name = package_name.strip()
        with self.storage.locked(COLLECTIONS_KEY):
            collection = self.get_collection(collection_id)
            packages = [p for p in collection.packages if p != package_name]
            return self._replace(collection_id, {"packages": packages})

    def is_package_in_collection(self, collection_id: str, package_name: str) -> bool:
        try:
            collection = self.get_collection(collection_id)
        except CollectionNotFound:
            return False
        return package_name.strip() in collection.packages

    def collections_for_package(self, package_name: str) -> list[Collection]:
        package_name = package_name.strip()
        return [c for c in self.list_collections() if package_name in c.packages]

    def _replace(self, collection_id: str, updates: dict) -> Collection:
        with self.storage.locked(COLLECTIONS_KEY):
            collections = self.list_collections()
            for index, collection in enumerate(collections):
                if collection.id == collection_id:
                    break
            else:
                raise CollectionNotFound(f"Collection {collection_id!r} does not exist.")
            data = collection.model_dump()
            data.update(updates, updated_at=utc_now())
            updated = Collection.model_validate(data)
            collections[index] = updated
            self._save(collections)
        return updated

    def _save(self, collections: list[Collection]) -> None:
        self.storage.write(
            COLLECTIONS_KEY, [c.model_dump(mode="json") for c in collections]
        )


__all__ = ["COLLECTIONS_KEY", "CollectionStore"]
