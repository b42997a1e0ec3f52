"""Aggregation logic turning reading snapshots into chart and table rows."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional

from app.schemas import (
    DailyChartRow,
    DailyReading,
    MachineComparisonRow,
    WeeklyHistoryRow,
    WeeklyReading,
)
from models.records import LINES, machines_for_line, short_label


@dataclass
class _DayTotals:
    water: Dict[int, float] = field(default_factory=lambda: {line: 0.0 for line in LINES})
    oil: Dict[int, float] = field(default_factory=lambda: {line: 0.0 for line in LINES})


_NEVER = datetime.min.replace(tzinfo=timezone.utc)


def _created_at(reading: WeeklyReading) -> datetime:
    raw = reading.created_at
    if not raw:
        return _NEVER
    try:
        # fromisoformat on 3.10 rejects a trailing "Z".
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return _NEVER
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _latest_key(reading: WeeklyReading) -> tuple[date, datetime, str]:
    return (reading.week_start_date, _created_at(reading), reading.id)


class Aggregator:
    """Pure aggregation component; never mutates its input."""

    def __init__(self, daily_window: int = 7) -> None:
        self.daily_window = daily_window

    def daily_trailing_window(
        self, readings: Iterable[DailyReading], window: Optional[int] = None
    ) -> List[DailyChartRow]:
        """Per-day water and total oil sums by line for the most recent ``window`` days."""
        size = self.daily_window if window is None else window
        buckets: Dict[date, _DayTotals] = {}

        for reading in sorted(readings, key=lambda item: item.date):
            totals = buckets.setdefault(reading.date, _DayTotals())
            if reading.line not in totals.water:
                continue
            totals.water[reading.line] += reading.water_consumption
            totals.oil[reading.line] += reading.oil_consumption_total

        days = list(buckets)[-size:] if size > 0 else []
        return [
            DailyChartRow(
                day=day,
                name=short_label(day),
                water_line1=buckets[day].water[1],
                water_line2=buckets[day].water[2],
                oil_line1=buckets[day].oil[1],
                oil_line2=buckets[day].oil[2],
            )
            for day in days
        ]

    def latest_per_line(self, readings: Iterable[WeeklyReading]) -> Dict[int, WeeklyReading]:
        """Most recent weekly record per line.

        Ties on ``week_start_date`` go to the later ``created_at`` and then the
        larger id, so the choice does not depend on snapshot order.
        """
        latest: Dict[int, WeeklyReading] = {}
        for reading in readings:
            current = latest.get(reading.line)
            if current is None or _latest_key(reading) > _latest_key(current):
                latest[reading.line] = reading
        return latest

    def weekly_latest_comparison(
        self, readings: Iterable[WeeklyReading]
    ) -> List[MachineComparisonRow]:
        """Compare each Bodymaker's consumption in the latest week of both lines."""
        latest = self.latest_per_line(readings)
        by_line: Dict[int, Dict[int, float]] = {}
        for line in LINES:
            record = latest.get(line)
            consumption: Dict[int, float] = {}
            if record is not None:
                for machine in record.readings:
                    consumption.setdefault(machine.machine_id, machine.consumption)
            by_line[line] = consumption

        machine_ids = sorted(set(by_line[1]) | set(by_line[2]))
        return [
            MachineComparisonRow(
                machine_id=machine_id,
                name=f"BM {machine_id}",
                consumption_line1=by_line[1].get(machine_id, 0.0),
                consumption_line2=by_line[2].get(machine_id, 0.0),
            )
            for machine_id in machine_ids
        ]

    def recent_daily_history(
        self, readings: Iterable[DailyReading], line: int, limit: int = 10
    ) -> List[DailyReading]:
        matching = [reading for reading in readings if reading.line == line]
        matching.sort(key=lambda item: item.date, reverse=True)
        return matching[:limit]

    def recent_weekly_history(
        self, readings: Iterable[WeeklyReading], line: int, limit: int = 5
    ) -> List[WeeklyHistoryRow]:
        machines = machines_for_line(line)
        matching = [reading for reading in readings if reading.line == line]
        matching.sort(key=lambda item: item.week_start_date, reverse=True)

        rows: List[WeeklyHistoryRow] = []
        for reading in matching[:limit]:
            values: Dict[int, float] = {}
            for machine in reading.readings:
                values.setdefault(machine.machine_id, machine.consumption)
            rows.append(
                WeeklyHistoryRow(
                    id=reading.id,
                    week_start_date=reading.week_start_date,
                    cells={machine_id: values.get(machine_id) for machine_id in machines},
                )
            )
        return rows
