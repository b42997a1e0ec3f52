"""Live, push-based mirrors of the reading collections."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Callable, Dict, Generic, List, Optional, Protocol, Type, TypeVar

from pydantic import BaseModel, ValidationError

from models.records import Snapshot

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class Registration(Protocol):
    def unsubscribe(self) -> None: ...


class DocumentSource(Protocol):
    def on_snapshot(
        self,
        path: str,
        on_next: Callable[[List[Dict[str, Any]]], None],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> Registration: ...


class CollectionSync(Generic[ModelT]):
    """Keeps the latest complete snapshot of one collection in memory.

    Every store delivery is parsed into ``model`` instances and swapped in as
    a new :class:`Snapshot`; readers never observe a half-applied update.
    Subscription errors are logged and leave the previous snapshot in place.
    """

    def __init__(self, store: DocumentSource, path: str, model: Type[ModelT]) -> None:
        self.store = store
        self.path = path
        self.model = model
        self._snapshot: Snapshot[ModelT] = Snapshot()
        self._loaded = False
        self._registration: Optional[Registration] = None
        self._subscribers: Dict[int, Callable[[Snapshot[ModelT]], None]] = {}
        self._next_subscriber_id = 0
        self._lock = Lock()

    @property
    def snapshot(self) -> Snapshot[ModelT]:
        with self._lock:
            return self._snapshot

    @property
    def loaded(self) -> bool:
        with self._lock:
            return self._loaded

    @property
    def running(self) -> bool:
        with self._lock:
            return self._registration is not None

    def start(self) -> None:
        with self._lock:
            if self._registration is not None:
                return
            self._registration = self.store.on_snapshot(
                self.path, self._on_next, self._on_error
            )
        logger.info("Listening for collection updates", extra={"collection": self.path})

    def stop(self) -> None:
        with self._lock:
            registration, self._registration = self._registration, None
        if registration is None:
            return
        registration.unsubscribe()
        logger.info("Stopped listening for collection updates", extra={"collection": self.path})

    def subscribe(self, callback: Callable[[Snapshot[ModelT]], None]) -> Callable[[], None]:
        """Call ``callback`` with every new snapshot; returns a cancel handle."""
        with self._lock:
            subscriber_id = self._next_subscriber_id
            self._next_subscriber_id += 1
            self._subscribers[subscriber_id] = callback

        def cancel() -> None:
            with self._lock:
                self._subscribers.pop(subscriber_id, None)

        return cancel

    def _on_next(self, documents: List[Dict[str, Any]]) -> None:
        records: List[ModelT] = []
        skipped = 0
        for document in documents:
            try:
                records.append(self.model.model_validate(document))
            except ValidationError as exc:
                skipped += 1
                logger.warning(
                    "Skipping malformed document",
                    extra={
                        "collection": self.path,
                        "document_id": document.get("id"),
                        "reason": f"{exc.error_count()} validation error(s)",
                    },
                )

        with self._lock:
            if self._registration is None:
                # Late delivery after stop() must not leak into a torn-down view.
                return
            snapshot = Snapshot(records=tuple(records), revision=self._snapshot.revision + 1)
            self._snapshot = snapshot
            self._loaded = True
            subscribers = list(self._subscribers.values())

        logger.debug(
            "Snapshot updated",
            extra={
                "collection": self.path,
                "revision": snapshot.revision,
                "record_count": len(snapshot),
                "skipped_count": skipped or None,
            },
        )
        for subscriber in subscribers:
            subscriber(snapshot)

    def _on_error(self, error: Exception) -> None:
        with self._lock:
            self._loaded = True
        logger.error(
            "Collection subscription failed; keeping last snapshot",
            extra={"collection": self.path, "reason": str(error)},
        )
