"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import (
    DailyReading,
    DailyReadingForm,
    DashboardPayload,
    SessionStatus,
    SubmissionKind,
    SubmissionResponse,
    WeeklyHistoryRow,
    WeeklyReadingForm,
)
from services.dashboard import ConsumptionService, ServiceNotReady, build_default_service
from services.submission import SubmissionResult

router = APIRouter()


def get_service() -> ConsumptionService:
    return build_default_service()


def _not_ready(exc: ServiceNotReady) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=str(exc),
    )


def _submission_response(result: SubmissionResult) -> SubmissionResponse:
    if result.kind is SubmissionKind.validation:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.message)
    if result.kind is SubmissionKind.write or result.record_id is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=result.message
        )
    return SubmissionResponse(id=result.record_id, message=result.message)


@router.get(
    "/session",
    response_model=SessionStatus,
    summary="Report whether the session is established.",
)
async def session_status(
    service: ConsumptionService = Depends(get_service),
) -> SessionStatus:
    return SessionStatus(ready=service.ready, session_id=service.session.session_id)


@router.get(
    "/dashboard",
    response_model=DashboardPayload,
    summary="Chart data for the last seven days and the latest Bodymaker week.",
)
async def dashboard(
    service: ConsumptionService = Depends(get_service),
) -> DashboardPayload:
    try:
        return service.dashboard()
    except ServiceNotReady as exc:
        raise _not_ready(exc) from exc


@router.get(
    "/womack-entries",
    response_model=List[DailyReading],
    summary="Most recent daily Womack readings of a line.",
)
async def list_womack_entries(
    line: int = Query(1, ge=1, le=2),
    limit: int = Query(10, ge=1, le=500),
    service: ConsumptionService = Depends(get_service),
) -> List[DailyReading]:
    try:
        return service.daily_history(line, limit)
    except ServiceNotReady as exc:
        raise _not_ready(exc) from exc


@router.post(
    "/womack-entries",
    status_code=status.HTTP_201_CREATED,
    response_model=SubmissionResponse,
    summary="Record a daily Womack reading.",
)
async def create_womack_entry(
    form: DailyReadingForm,
    service: ConsumptionService = Depends(get_service),
) -> SubmissionResponse:
    try:
        result = service.submit_daily(form)
    except ServiceNotReady as exc:
        raise _not_ready(exc) from exc
    return _submission_response(result)


@router.get(
    "/bodymaker-entries",
    response_model=List[WeeklyHistoryRow],
    summary="Most recent weekly Bodymaker readings of a line.",
)
async def list_bodymaker_entries(
    line: int = Query(1, ge=1, le=2),
    limit: int = Query(5, ge=1, le=500),
    service: ConsumptionService = Depends(get_service),
) -> List[WeeklyHistoryRow]:
    try:
        return service.weekly_history(line, limit)
    except ServiceNotReady as exc:
        raise _not_ready(exc) from exc


@router.post(
    "/bodymaker-entries",
    status_code=status.HTTP_201_CREATED,
    response_model=SubmissionResponse,
    summary="Record one week of Bodymaker readings for a line.",
)
async def create_bodymaker_entry(
    form: WeeklyReadingForm,
    service: ConsumptionService = Depends(get_service),
) -> SubmissionResponse:
    try:
        result = service.submit_weekly(form)
    except ServiceNotReady as exc:
        raise _not_ready(exc) from exc
    return _submission_response(result)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
