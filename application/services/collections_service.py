from __future__ import annotations

from dataclasses import replace
from typing import Any, List, Mapping, Optional

from application.ports.document_store import DocumentStorePort
from domain.chain import utc_now
from domain.collection import Collection, SavedRequest
from domain.exceptions import CollectionNotFoundError, ValidationError
from domain.ids import new_id

_COLLECTION_UPDATABLE = {"name", "requests"}


class CollectionsService:
    """Saved requests grouped in collections; chain steps reference them by id."""

    def __init__(self, store: DocumentStorePort):
        self._store = store

    def create_collection(self, name: str) -> str:
        collection = Collection(id=new_id(), name=name, requests=[])
        self._store.collections.add(collection)
        return collection.id

    def get_collection(self, collection_id: str) -> Optional[Collection]:
        return self._store.collections.get(collection_id)

    def get_all_collections(self) -> List[Collection]:
        return self._store.collections.to_list()

    def update_collection(self, collection_id: str, updates: Mapping[str, Any]) -> None:
        unknown = set(updates) - _COLLECTION_UPDATABLE
        if unknown:
            raise ValidationError(f"Unknown collection fields: {sorted(unknown)}")
        changes = dict(updates)
        changes["updated_at"] = utc_now()
        if not self._store.collections.update(collection_id, changes):
            raise CollectionNotFoundError("Collection not found")

    def delete_collection(self, collection_id: str) -> None:
        self._store.collections.delete(collection_id)

    def add_request_to_collection(self, collection_id: str, request: SavedRequest) -> SavedRequest:
        collection = self._require(collection_id)
        if not request.id:
            request = replace(request, id=new_id())
        collection.requests.append(request)
        self._save(collection)
        return request

    def remove_request_from_collection(self, collection_id: str, request_id: str) -> None:
        collection = self._require(collection_id)
        collection.requests = [r for r in collection.requests if r.id != request_id]
        self._save(collection)

    def _require(self, collection_id: str) -> Collection:
        collection = self.get_collection(collection_id)
        if collection is None:
            raise CollectionNotFoundError("Collection not found")
        return collection

    def _save(self, collection: Collection) -> None:
        collection.updated_at = utc_now()
        self._store.collections.put(collection)
