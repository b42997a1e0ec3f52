"""Domain constants and value objects shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Generic, Tuple, TypeVar

WOMACK_COLLECTION = "womackEntries"
BODYMAKER_COLLECTION = "bodymakerEntries"

LINES = (1, 2)

LINE_MACHINES: Dict[int, Tuple[int, ...]] = {
    1: tuple(range(11, 19)),
    2: tuple(range(21, 29)),
}

_SPANISH_MONTHS = (
    "ene",
    "feb",
    "mar",
    "abr",
    "may",
    "jun",
    "jul",
    "ago",
    "sept",
    "oct",
    "nov",
    "dic",
)

T = TypeVar("T")


@dataclass(frozen=True)
class Snapshot(Generic[T]):
    """Immutable view of every record in a collection at one point in time."""

    records: Tuple[T, ...] = ()
    revision: int = 0

    def __len__(self) -> int:
        return len(self.records)


def machines_for_line(line: int) -> Tuple[int, ...]:
    try:
        return LINE_MACHINES[line]
    except KeyError:
        raise ValueError(f"Unknown production line {line!r}.") from None


def week_start(day: date) -> date:
    """Return the Monday of the ISO week containing ``day``."""
    return day - timedelta(days=day.weekday())


def short_label(day: date) -> str:
    """Short Spanish day label, e.g. ``5 ene``."""
    return f"{day.day} {_SPANISH_MONTHS[day.month - 1]}"


def long_label(day: date) -> str:
    """Numeric Spanish date, e.g. ``5/1/2024``."""
    return f"{day.day}/{day.month}/{day.year}"
