from __future__ import annotations

import copy
import json
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
SnapshotCallback = Callable[[List[Document]], None]
ErrorCallback = Callable[[Exception], None]


class StoreError(RuntimeError):
    """Raised when the document store rejects an operation."""


class ListenerRegistration:
    """Handle returned by :meth:`MockDocumentStore.on_snapshot`."""

    def __init__(self, store: "MockDocumentStore", path: str, listener_id: int) -> None:
        self._store = store
        self._path = path
        self._listener_id = listener_id
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._store._remove_listener(self._path, self._listener_id)


class MockDocumentStore:
    """In-process document store with collection listeners.

    Listener callbacks run on a single dispatcher thread, so deliveries for
    this store are serialized and arrive in write order.
    """

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self._collections: Dict[str, Dict[str, Document]] = {}
        self._listeners: Dict[str, Dict[int, tuple[SnapshotCallback, Optional[ErrorCallback]]]] = {}
        self._next_listener_id = 0
        self.persistence_path = persistence_path
        self._lock = Lock()
        self._dispatcher = ThreadPoolExecutor(max_workers=1, thread_name_prefix="store-listeners")
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def add_document(self, path: str, data: Document) -> str:
        """Append ``data`` to the collection at ``path`` and return its new id."""
        document_id = uuid4().hex[:20]
        with self._lock:
            collection = self._collections.setdefault(path, {})
            collection[document_id] = copy.deepcopy(data)
            try:
                self._persist()
            except (OSError, TypeError, ValueError) as exc:
                collection.pop(document_id, None)
                if not collection:
                    self._collections.pop(path, None)
                raise StoreError(f"Could not persist document to {path}.") from exc
            self._schedule_delivery(path)
        logger.debug(
            "Document added",
            extra={"collection": path, "document_id": document_id},
        )
        return document_id

    def list_documents(self, path: str) -> List[Document]:
        """Return deep copies of every document in a collection, ids included."""
        with self._lock:
            return self._documents(path)

    def on_snapshot(
        self,
        path: str,
        on_next: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> ListenerRegistration:
        """Register a listener that receives the whole collection on every change.

        The current contents are delivered once right after registration.
        """
        with self._lock:
            listener_id = self._next_listener_id
            self._next_listener_id += 1
            self._listeners.setdefault(path, {})[listener_id] = (on_next, on_error)
            self._schedule_delivery(path, only=listener_id)
        return ListenerRegistration(self, path, listener_id)

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until every delivery scheduled so far has run."""
        marker: Future[None] = self._dispatcher.submit(lambda: None)
        marker.result(timeout=timeout)

    def shutdown(self) -> None:
        self._dispatcher.shutdown(wait=False, cancel_futures=True)

    def listener_count(self, path: str) -> int:
        with self._lock:
            return len(self._listeners.get(path, {}))

    def _remove_listener(self, path: str, listener_id: int) -> None:
        with self._lock:
            listeners = self._listeners.get(path)
            if listeners is not None:
                listeners.pop(listener_id, None)

    def _schedule_delivery(self, path: str, only: Optional[int] = None) -> None:
        # Caller holds the lock, so the captured documents match write order.
        documents = self._documents(path)
        self._dispatcher.submit(self._deliver, path, documents, only)

    def _deliver(self, path: str, documents: List[Document], only: Optional[int]) -> None:
        with self._lock:
            listeners = dict(self._listeners.get(path, {}))
        for listener_id, (on_next, _on_error) in listeners.items():
            if only is not None and listener_id != only:
                continue
            try:
                on_next(copy.deepcopy(documents))
            except Exception as exc:  # noqa: BLE001 - one listener must not starve the others
                logger.exception(
                    "Snapshot listener failed",
                    extra={"collection": path, "reason": str(exc)},
                )

    def fail_listeners(self, path: str, error: Exception) -> None:
        """Report ``error`` to every listener of ``path``, as a revoked read would."""
        with self._lock:
            listeners = list(self._listeners.get(path, {}).values())
        for _on_next, on_error in listeners:
            if on_error is not None:
                self._dispatcher.submit(on_error, error)

    def _documents(self, path: str) -> List[Document]:
        collection = self._collections.get(path, {})
        return [
            {**copy.deepcopy(document), "id": document_id}
            for document_id, document in collection.items()
        ]

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        self.persistence_path.write_text(
            json.dumps(self._collections, indent=2, sort_keys=True)
        )

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}

        for path, documents in data.items():
            if isinstance(documents, dict):
                self._collections[path] = dict(documents)


def build_store(store_config: Dict[str, Any]) -> MockDocumentStore:
    if not store_config:
        raise StoreError("Document store configuration is missing.")
    raw_path = store_config.get("persistence_path")
    persistence = Path(raw_path) if raw_path else None
    return MockDocumentStore(persistence_path=persistence)

