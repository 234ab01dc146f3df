from __future__ import annotations

from application.ports.document_store import DocumentStorePort
from application.resolvers.base import RequestResolutionError, RequestResolver
from domain.chain import ChainStep, RequestSpec


class CollectionRequestResolver(RequestResolver):
    """Looks a step's request_id up across every saved collection."""

    def __init__(self, store: DocumentStorePort):
        self._store = store

    def supports(self, step: ChainStep) -> bool:
        return bool(step.request_id)

    def resolve(self, step: ChainStep) -> RequestSpec:
        for collection in self._store.collections.to_list():
            saved = collection.find_request(step.request_id)
            if saved is not None:
                return saved.to_request_spec()
        raise RequestResolutionError(f"Request {step.request_id} not found")
