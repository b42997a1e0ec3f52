"""Unit tests for the in-process document store."""

from __future__ import annotations

import json
import threading
from typing import Any, Dict, List

import pytest

from datastore.mock_firestore import MockDocumentStore, StoreError, build_store

PATH = "artifacts/test/public/data/womackEntries"


@pytest.fixture()
def store() -> MockDocumentStore:
    instance = MockDocumentStore()
    yield instance
    instance.shutdown()


def test_add_document_assigns_id_and_returns_copies(store: MockDocumentStore) -> None:
    original = {"line": 1, "readings": [{"machineId": 11, "consumption": 2.0}]}

    document_id = store.add_document(PATH, original)
    original["readings"].append({"machineId": 12, "consumption": 1.0})

    documents = store.list_documents(PATH)
    assert len(documents) == 1
    assert documents[0]["id"] == document_id
    assert documents[0]["readings"] == [{"machineId": 11, "consumption": 2.0}]

    documents[0]["line"] = 2
    assert store.list_documents(PATH)[0]["line"] == 1


def test_add_document_allows_duplicates(store: MockDocumentStore) -> None:
    first = store.add_document(PATH, {"line": 1})
    second = store.add_document(PATH, {"line": 1})

    assert first != second
    assert len(store.list_documents(PATH)) == 2


def test_collections_are_isolated(store: MockDocumentStore) -> None:
    store.add_document(PATH, {"line": 1})

    assert store.list_documents("artifacts/test/public/data/bodymakerEntries") == []


def test_listener_receives_initial_and_subsequent_snapshots(store: MockDocumentStore) -> None:
    deliveries: List[List[Dict[str, Any]]] = []
    store.add_document(PATH, {"line": 1})

    registration = store.on_snapshot(PATH, deliveries.append)
    store.flush(timeout=5)
    store.add_document(PATH, {"line": 2})
    store.flush(timeout=5)

    assert [len(snapshot) for snapshot in deliveries] == [1, 2]
    assert sorted(doc["line"] for doc in deliveries[-1]) == [1, 2]
    registration.unsubscribe()


def test_unsubscribe_stops_delivery_and_is_idempotent(store: MockDocumentStore) -> None:
    deliveries: List[List[Dict[str, Any]]] = []
    registration = store.on_snapshot(PATH, deliveries.append)
    store.flush(timeout=5)

    registration.unsubscribe()
    registration.unsubscribe()
    store.add_document(PATH, {"line": 1})
    store.flush(timeout=5)

    assert deliveries == [[]]
    assert registration.active is False
    assert store.listener_count(PATH) == 0


def test_listeners_run_on_a_single_dispatcher_thread(store: MockDocumentStore) -> None:
    threads: set[str] = set()
    main_thread = threading.current_thread().name

    store.on_snapshot(PATH, lambda _docs: threads.add(threading.current_thread().name))
    for line in (1, 2, 1):
        store.add_document(PATH, {"line": line})
    store.flush(timeout=5)

    assert len(threads) == 1
    assert main_thread not in threads


def test_failing_listener_does_not_block_others(store: MockDocumentStore) -> None:
    received: List[int] = []

    def broken(_documents: List[Dict[str, Any]]) -> None:
        raise RuntimeError("boom")

    store.on_snapshot(PATH, broken)
    store.on_snapshot(PATH, lambda documents: received.append(len(documents)))
    store.add_document(PATH, {"line": 1})
    store.flush(timeout=5)

    assert received[-1] == 1


def test_fail_listeners_reports_to_error_callbacks(store: MockDocumentStore) -> None:
    errors: List[Exception] = []
    store.on_snapshot(PATH, lambda _docs: None, errors.append)

    store.fail_listeners(PATH, PermissionError("revoked"))
    store.flush(timeout=5)

    assert len(errors) == 1
    assert isinstance(errors[0], PermissionError)


def test_persists_to_disk_and_reloads(tmp_path) -> None:
    path = tmp_path / "store" / "db.json"
    store = MockDocumentStore(persistence_path=path)
    document_id = store.add_document(PATH, {"line": 2, "date": "2024-01-05"})
    store.shutdown()

    payload = json.loads(path.read_text())
    assert payload[PATH][document_id] == {"line": 2, "date": "2024-01-05"}

    reloaded = MockDocumentStore(persistence_path=path)
    try:
        assert reloaded.list_documents(PATH) == [
            {"id": document_id, "line": 2, "date": "2024-01-05"}
        ]
    finally:
        reloaded.shutdown()


def test_failed_persist_rolls_back_the_write(tmp_path) -> None:
    path = tmp_path / "db.json"
    store = MockDocumentStore(persistence_path=path)
    received: List[List[Dict[str, Any]]] = []
    try:
        store.on_snapshot(PATH, received.append)
        store.flush(timeout=2)
        path.mkdir()

        with pytest.raises(StoreError):
            store.add_document(PATH, {"line": 1})
        store.flush(timeout=2)

        assert store.list_documents(PATH) == []
        assert received == [[]]
    finally:
        store.shutdown()


def test_corrupt_persistence_file_starts_empty(tmp_path) -> None:
    path = tmp_path / "db.json"
    path.write_text("{not json")

    store = MockDocumentStore(persistence_path=path)
    try:
        assert store.list_documents(PATH) == []
    finally:
        store.shutdown()


def test_build_store_requires_configuration(tmp_path) -> None:
    with pytest.raises(StoreError):
        build_store({})

    store = build_store({"persistence_path": str(tmp_path / "db.json")})
    try:
        assert store.persistence_path == tmp_path / "db.json"
    finally:
        store.shutdown()


def test_unserializable_document_is_not_kept(tmp_path) -> None:
    store = MockDocumentStore(persistence_path=tmp_path / "db.json")
    try:
        with pytest.raises(StoreError):
            store.add_document(PATH, {"line": 1, "note": object()})
        assert store.list_documents(PATH) == []
    finally:
        store.shutdown()
