"""Pydantic schemas for stored documents and the HTTP API layer."""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class MachineReading(_CamelModel):
    """Weekly oil consumption of a single Bodymaker."""

    machine_id: int = Field(..., alias="machineId")
    consumption: float


class DailyReading(_CamelModel):
    """One Womack reading for a line on a calendar day."""

    id: str
    date: dt.date
    line: int
    water_consumption: float = Field(..., alias="waterConsumption")
    oil_consumption_total: float = Field(..., alias="oilConsumptionTotal")
    oil_consumption_partial: float = Field(..., alias="oilConsumptionPartial")
    created_at: Optional[str] = Field(default=None, alias="createdAt")


class WeeklyReading(_CamelModel):
    """Bodymaker readings for one line over the week starting ``week_start_date``."""

    id: str
    week_start_date: dt.date = Field(..., alias="weekStartDate")
    line: int
    readings: List[MachineReading] = Field(default_factory=list)
    created_at: Optional[str] = Field(default=None, alias="createdAt")


class _FormModel(_CamelModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class DailyReadingForm(_FormModel):
    """Raw daily form input; every field arrives as free text."""

    date: Optional[str] = None
    line: Optional[str] = None
    water_consumption: Optional[str] = Field(default=None, alias="waterConsumption")
    oil_consumption_total: Optional[str] = Field(default=None, alias="oilConsumptionTotal")
    oil_consumption_partial: Optional[str] = Field(default=None, alias="oilConsumptionPartial")


class WeeklyReadingForm(_FormModel):
    """Raw weekly form input keyed by machine id."""

    week_start_date: Optional[str] = Field(default=None, alias="weekStartDate")
    line: Optional[str] = None
    consumptions_by_machine: Dict[int, Optional[str]] = Field(
        default_factory=dict, alias="consumptionsByMachine"
    )


class SubmissionKind(str, Enum):
    """Outcome categories of a submission attempt."""

    saved = "saved"
    validation = "validation"
    write = "write"


class SubmissionResponse(BaseModel):
    """Payload returned after a reading is accepted."""

    id: str = Field(..., description="Identifier assigned by the document store.")
    message: str


class DailyChartRow(_CamelModel):
    """Per-day water and total oil sums split by line."""

    day: dt.date
    name: str
    water_line1: float = Field(default=0.0, alias="Agua L1")
    water_line2: float = Field(default=0.0, alias="Agua L2")
    oil_line1: float = Field(default=0.0, alias="Aceite L1")
    oil_line2: float = Field(default=0.0, alias="Aceite L2")


class MachineComparisonRow(_CamelModel):
    """Latest-week consumption of one Bodymaker on each line."""

    machine_id: int = Field(..., alias="machineId")
    name: str
    consumption_line1: float = Field(default=0.0, alias="consumptionLine1")
    consumption_line2: float = Field(default=0.0, alias="consumptionLine2")


class WeeklyHistoryRow(_CamelModel):
    """One weekly record laid out with a cell per machine of its line."""

    id: str
    week_start_date: dt.date = Field(..., alias="weekStartDate")
    cells: Dict[int, Optional[float]] = Field(default_factory=dict)


class DashboardPayload(BaseModel):
    """Chart data for the dashboard view."""

    womack: List[DailyChartRow] = Field(default_factory=list)
    bodymaker: List[MachineComparisonRow] = Field(default_factory=list)


class SessionStatus(BaseModel):
    ready: bool
    session_id: Optional[str] = None
