"""Validation and write-through of new readings."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from datetime import date, datetime, timezone
from threading import Lock
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from app.schemas import DailyReadingForm, SubmissionKind, WeeklyReadingForm
from models.records import LINES, machines_for_line, week_start

logger = logging.getLogger(__name__)

DAILY_REQUIRED_MESSAGE = "Error: Todos los campos son obligatorios."
DAILY_INVALID_MESSAGE = "Error: Los consumos deben ser números no negativos."
LINE_INVALID_MESSAGE = "Error: La línea debe ser 1 o 2."
DATE_INVALID_MESSAGE = "Error: La fecha no es válida."
WEEKLY_REQUIRED_MESSAGE = "Error: Debes seleccionar una semana e introducir al menos un consumo."
DAILY_SAVED_MESSAGE = "¡Registro guardado con éxito!"
WEEKLY_SAVED_MESSAGE = "¡Registros semanales guardados con éxito!"
WRITE_FAILED_MESSAGE = "Error al guardar. Inténtalo de nuevo."


class DocumentSink(Protocol):
    def add_document(self, path: str, data: Dict[str, Any]) -> str: ...


@dataclass(frozen=True)
class SubmissionResult:
    ok: bool
    kind: SubmissionKind
    message: str
    record_id: Optional[str] = None


class _InvalidInput(ValueError):
    pass


@dataclass(frozen=True)
class Notice:
    message: str
    is_error: bool
    expires_at: float


class NoticeBoard:
    """Holds one transient message per session; messages vanish after ``ttl`` seconds."""

    def __init__(self, ttl: float = 3.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._notices: Dict[str, Notice] = {}
        self._lock = Lock()

    def post(self, key: str, result: SubmissionResult) -> Notice:
        notice = Notice(
            message=result.message,
            is_error=not result.ok,
            expires_at=self._clock() + self.ttl,
        )
        with self._lock:
            self._notices[key] = notice
        return notice

    def current(self, key: str) -> Optional[Notice]:
        now = self._clock()
        with self._lock:
            notice = self._notices.get(key)
            if notice is None:
                return None
            if notice.expires_at <= now:
                del self._notices[key]
                return None
            return notice


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _parse_line(raw: Optional[str]) -> int:
    try:
        line = int(str(raw).strip())
    except ValueError:
        raise _InvalidInput(LINE_INVALID_MESSAGE) from None
    if line not in LINES:
        raise _InvalidInput(LINE_INVALID_MESSAGE)
    return line


def _parse_date(raw: Optional[str]) -> date:
    try:
        return date.fromisoformat(str(raw).strip())
    except ValueError:
        raise _InvalidInput(DATE_INVALID_MESSAGE) from None


def _parse_amount(raw: Optional[str]) -> float:
    try:
        value = float(str(raw).strip())
    except ValueError:
        raise _InvalidInput(DAILY_INVALID_MESSAGE) from None
    if not math.isfinite(value) or value < 0:
        raise _InvalidInput(DAILY_INVALID_MESSAGE)
    return value


def _positive_amount(raw: Optional[str]) -> Optional[float]:
    if _blank(raw):
        return None
    try:
        value = float(str(raw).strip())
    except ValueError:
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value


class SubmissionService:
    """Validates form input and appends readings to the document store.

    Validation happens here only; the store accepts whatever it is given.
    """

    def __init__(
        self,
        store: DocumentSink,
        daily_path: str,
        weekly_path: str,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.store = store
        self.daily_path = daily_path
        self.weekly_path = weekly_path
        self._clock = clock

    def submit_daily(self, form: DailyReadingForm) -> SubmissionResult:
        fields = (
            form.date,
            form.line,
            form.water_consumption,
            form.oil_consumption_total,
            form.oil_consumption_partial,
        )
        if any(_blank(value) for value in fields):
            return self._rejected(self.daily_path, DAILY_REQUIRED_MESSAGE)

        try:
            document = {
                "date": _parse_date(form.date).isoformat(),
                "line": _parse_line(form.line),
                "waterConsumption": _parse_amount(form.water_consumption),
                "oilConsumptionTotal": _parse_amount(form.oil_consumption_total),
                "oilConsumptionPartial": _parse_amount(form.oil_consumption_partial),
            }
        except _InvalidInput as exc:
            return self._rejected(self.daily_path, str(exc))

        return self._write(self.daily_path, document, DAILY_SAVED_MESSAGE)

    def submit_weekly(self, form: WeeklyReadingForm) -> SubmissionResult:
        if _blank(form.week_start_date):
            return self._rejected(self.weekly_path, WEEKLY_REQUIRED_MESSAGE)

        try:
            line = _parse_line(form.line if not _blank(form.line) else None)
            monday = week_start(_parse_date(form.week_start_date))
        except _InvalidInput as exc:
            return self._rejected(self.weekly_path, str(exc))

        readings = self._collect_readings(line, form.consumptions_by_machine)
        if not readings:
            return self._rejected(self.weekly_path, WEEKLY_REQUIRED_MESSAGE)

        document = {
            "weekStartDate": monday.isoformat(),
            "line": line,
            "readings": readings,
        }
        return self._write(self.weekly_path, document, WEEKLY_SAVED_MESSAGE)

    @staticmethod
    def _collect_readings(
        line: int, consumptions: Mapping[int, Optional[str]]
    ) -> List[Dict[str, Any]]:
        readings: List[Dict[str, Any]] = []
        for machine_id in machines_for_line(line):
            amount = _positive_amount(consumptions.get(machine_id))
            if amount is None:
                continue
            readings.append({"machineId": machine_id, "consumption": amount})
        return readings

    def _write(self, path: str, document: Dict[str, Any], success: str) -> SubmissionResult:
        payload = {**document, "createdAt": self._clock().isoformat()}
        try:
            record_id = self.store.add_document(path, payload)
        except Exception:  # noqa: BLE001 - every store failure is reported to the caller
            logger.exception(
                "Failed to save reading",
                extra={"collection": path, "line": document.get("line"), "kind": SubmissionKind.write.value},
            )
            return SubmissionResult(ok=False, kind=SubmissionKind.write, message=WRITE_FAILED_MESSAGE)

        logger.info(
            "Reading saved",
            extra={"collection": path, "document_id": record_id, "line": document.get("line")},
        )
        return SubmissionResult(
            ok=True, kind=SubmissionKind.saved, message=success, record_id=record_id
        )

    @staticmethod
    def _rejected(path: str, message: str) -> SubmissionResult:
        logger.info(
            "Rejected reading",
            extra={"collection": path, "reason": message, "kind": SubmissionKind.validation.value},
        )
        return SubmissionResult(ok=False, kind=SubmissionKind.validation, message=message)
