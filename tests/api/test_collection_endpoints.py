from __future__ import annotations

import pytest
from fastapi import HTTPException

from api import main
from api.main import CreateCollectionRequest, UpdateCollectionRequest
from infrastructure.store.in_memory_document_store import InMemoryDocumentStore


@pytest.fixture(autouse=True)
def fresh_store(monkeypatch):
    monkeypatch.setattr(main, "STORE", InMemoryDocumentStore())


def test_collection_crud() -> None:
    created = main.create_collection(CreateCollectionRequest(name="auth"))

    renamed = main.update_collection(created["id"], UpdateCollectionRequest(name="identity"))

    assert renamed["name"] == "identity"
    assert [c["id"] for c in main.list_collections()] == [created["id"]]
    assert main.delete_collection(created["id"]).status_code == 204
    assert main.list_collections() == []


def test_saved_requests() -> None:
    collection_id = main.create_collection(CreateCollectionRequest(name="auth"))["id"]

    saved = main.add_saved_request(collection_id, {"name": "login", "method": "post", "url": "/login"})

    assert saved["id"]
    assert saved["method"] == "POST"
    assert main.get_collection(collection_id)["requests"][0]["url"] == "/login"

    after = main.remove_saved_request(collection_id, saved["id"])
    assert after["requests"] == []


def test_missing_collection_is_404() -> None:
    with pytest.raises(HTTPException) as exc:
        main.get_collection("missing")
    assert exc.value.status_code == 404

    with pytest.raises(HTTPException) as exc:
        main.add_saved_request("missing", {"name": "x", "url": "/x"})
    assert exc.value.status_code == 404

    with pytest.raises(HTTPException) as exc:
        main.update_collection("missing", UpdateCollectionRequest(name="x"))
    assert exc.value.status_code == 404
