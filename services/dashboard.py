"""Wiring of session bootstrap, collection sync, submission and aggregation."""

from __future__ import annotations

import logging
from functools import lru_cache
from threading import Lock
from typing import Any, Callable, List, Optional

from app.schemas import (
    DailyChartRow,
    DailyReading,
    DailyReadingForm,
    DashboardPayload,
    MachineComparisonRow,
    WeeklyHistoryRow,
    WeeklyReading,
    WeeklyReadingForm,
)
from datastore.mock_firestore import MockDocumentStore, build_store
from datastore.mock_identity import MockIdentityProvider, build_default_identity
from models.records import BODYMAKER_COLLECTION, WOMACK_COLLECTION, Snapshot
from services.aggregator import Aggregator
from services.session import SessionBootstrap
from services.submission import Notice, NoticeBoard, SubmissionResult, SubmissionService
from services.sync import CollectionSync
from settings import Settings, get_settings

logger = logging.getLogger(__name__)


class ServiceNotReady(RuntimeError):
    """Raised when data is requested before the session and first snapshot exist."""


class _Memo:
    """Caches one derived value per input snapshot object."""

    def __init__(self, compute: Callable[[Snapshot[Any]], Any]) -> None:
        self._compute = compute
        self._source: Optional[Snapshot[Any]] = None
        self._value: Any = None
        self._lock = Lock()

    def get(self, snapshot: Snapshot[Any]) -> Any:
        with self._lock:
            if snapshot is not self._source:
                self._value = self._compute(snapshot)
                self._source = snapshot
            return self._value


class ConsumptionService:
    """Owns the lifecycle of the live dashboard state."""

    def __init__(
        self,
        settings: Settings,
        store: Optional[MockDocumentStore],
        identity: MockIdentityProvider,
        aggregator: Optional[Aggregator] = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.identity = identity
        self.aggregator = aggregator or Aggregator()
        self.session = SessionBootstrap(identity, settings.initial_auth_token)
        self.notices = NoticeBoard(ttl=settings.notice_seconds)

        self.daily_sync: Optional[CollectionSync[DailyReading]] = None
        self.weekly_sync: Optional[CollectionSync[WeeklyReading]] = None
        self.submissions: Optional[SubmissionService] = None
        if store is not None:
            daily_path = settings.collection_path(WOMACK_COLLECTION)
            weekly_path = settings.collection_path(BODYMAKER_COLLECTION)
            self.daily_sync = CollectionSync(store, daily_path, DailyReading)
            self.weekly_sync = CollectionSync(store, weekly_path, WeeklyReading)
            self.submissions = SubmissionService(store, daily_path, weekly_path)

        self._daily_chart = _Memo(lambda snap: self.aggregator.daily_trailing_window(snap.records))
        self._weekly_chart = _Memo(
            lambda snap: self.aggregator.weekly_latest_comparison(snap.records)
        )
        self._cancel_loss: Optional[Callable[[], None]] = None
        self._started = False

    @property
    def ready(self) -> bool:
        return (
            self.session.ready
            and self.daily_sync is not None
            and self.daily_sync.loaded
        )

    def start(self) -> None:
        if self._started:
            return
        if self.daily_sync is None or self.weekly_sync is None:
            logger.error(
                "Document store configuration is missing; data access stays disabled",
                extra={"reason": "configuration-missing"},
            )
            return
        self._started = True
        self._cancel_loss = self.session.on_session_lost(self._on_session_lost)
        self._bootstrap()

    def shutdown(self) -> None:
        if self._cancel_loss is not None:
            self._cancel_loss()
            self._cancel_loss = None
        self._stop_syncs()
        self.session.stop()
        if self.store is not None:
            self.store.shutdown()
        self._started = False

    def submit_daily(self, form: DailyReadingForm) -> SubmissionResult:
        submissions = self._require_submissions()
        result = submissions.submit_daily(form)
        self.notices.post(self._notice_key(WOMACK_COLLECTION), result)
        return result

    def submit_weekly(self, form: WeeklyReadingForm) -> SubmissionResult:
        submissions = self._require_submissions()
        result = submissions.submit_weekly(form)
        self.notices.post(self._notice_key(BODYMAKER_COLLECTION), result)
        return result

    def notice_for(self, collection: str) -> Optional[Notice]:
        return self.notices.current(self._notice_key(collection))

    def daily_snapshot(self) -> Snapshot[DailyReading]:
        self._require_ready()
        assert self.daily_sync is not None
        return self.daily_sync.snapshot

    def weekly_snapshot(self) -> Snapshot[WeeklyReading]:
        self._require_ready()
        assert self.weekly_sync is not None
        return self.weekly_sync.snapshot

    def daily_chart(self) -> List[DailyChartRow]:
        return self._daily_chart.get(self.daily_snapshot())

    def weekly_chart(self) -> List[MachineComparisonRow]:
        return self._weekly_chart.get(self.weekly_snapshot())

    def dashboard(self) -> DashboardPayload:
        return DashboardPayload(womack=self.daily_chart(), bodymaker=self.weekly_chart())

    def daily_history(self, line: int, limit: int = 10) -> List[DailyReading]:
        return self.aggregator.recent_daily_history(self.daily_snapshot().records, line, limit)

    def weekly_history(self, line: int, limit: int = 5) -> List[WeeklyHistoryRow]:
        return self.aggregator.recent_weekly_history(self.weekly_snapshot().records, line, limit)

    def wait_until_synced(self, timeout: Optional[float] = None) -> None:
        """Block until store deliveries queued so far have reached the syncs."""
        if self.store is not None:
            self.store.flush(timeout)

    def _bootstrap(self) -> None:
        self.session.start()
        assert self.daily_sync is not None and self.weekly_sync is not None
        self.daily_sync.start()
        self.weekly_sync.start()

    def _on_session_lost(self) -> None:
        self._stop_syncs()
        if self._started:
            logger.info("Re-establishing session after sign-out")
            self._bootstrap()

    def _stop_syncs(self) -> None:
        for sync in (self.daily_sync, self.weekly_sync):
            if sync is not None:
                sync.stop()

    def _require_ready(self) -> None:
        if not self.ready:
            raise ServiceNotReady("Cargando datos...")

    def _require_submissions(self) -> SubmissionService:
        if self.submissions is None or not self.session.ready:
            raise ServiceNotReady("Cargando datos...")
        return self.submissions

    def _notice_key(self, collection: str) -> str:
        return f"{self.session.session_id}:{collection}"


def build_service(
    settings: Settings,
    identity: Optional[MockIdentityProvider] = None,
    aggregator: Optional[Aggregator] = None,
) -> ConsumptionService:
    store: Optional[MockDocumentStore] = None
    if settings.has_store_config:
        store = build_store(settings.store_config)
    return ConsumptionService(
        settings=settings,
        store=store,
        identity=identity or build_default_identity(),
        aggregator=aggregator,
    )


@lru_cache
def build_default_service() -> ConsumptionService:
    """Factory that wires the service with the default mocks."""
    return build_service(get_settings())
