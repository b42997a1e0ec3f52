from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Form, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from app.schemas import DailyReadingForm, WeeklyReadingForm
from models.records import (
    BODYMAKER_COLLECTION,
    LINES,
    WOMACK_COLLECTION,
    long_label,
    machines_for_line,
    week_start,
)
from services.dashboard import ConsumptionService, ServiceNotReady, build_default_service


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))
templates.env.filters["long_date"] = long_label


def get_service() -> ConsumptionService:
    return build_default_service()


def _line_or_default(raw: Optional[str]) -> int:
    try:
        line = int(raw) if raw is not None else 1
    except ValueError:
        return 1
    return line if line in LINES else 1


def _loading(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "ui/loading.html",
        {},
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
    )


router = APIRouter(include_in_schema=False)


@router.get("/ui", name="ui_index", response_class=HTMLResponse)
async def ui_index(
    request: Request,
    service: ConsumptionService = Depends(get_service),
) -> HTMLResponse:
    try:
        payload = service.dashboard()
    except ServiceNotReady:
        return _loading(request)
    return templates.TemplateResponse(
        request,
        "ui/index.html",
        {
            "session_id": service.session.session_id,
            "womack_rows": [row.model_dump(mode="json", by_alias=True) for row in payload.womack],
            "bodymaker_rows": [
                row.model_dump(mode="json", by_alias=True) for row in payload.bodymaker
            ],
        },
    )


def _render_womack(
    request: Request,
    service: ConsumptionService,
    line: int,
    values: Dict[str, Any],
    status_code: int = status.HTTP_200_OK,
) -> HTMLResponse:
    try:
        history = service.daily_history(line)
    except ServiceNotReady:
        return _loading(request)
    return templates.TemplateResponse(
        request,
        "ui/womack.html",
        {
            "session_id": service.session.session_id,
            "line": line,
            "values": values,
            "history": history,
            "notice": service.notice_for(WOMACK_COLLECTION),
            "notice_seconds": service.settings.notice_seconds,
        },
        status_code=status_code,
    )


@router.get("/ui/womack", name="ui_womack", response_class=HTMLResponse)
async def ui_womack(
    request: Request,
    line: Optional[str] = None,
    entry_date: Optional[str] = Query(None, alias="date"),
    service: ConsumptionService = Depends(get_service),
) -> HTMLResponse:
    values = {"date": entry_date or date.today().isoformat()}
    return _render_womack(request, service, _line_or_default(line), values)


@router.post("/ui/womack", name="ui_womack_submit", response_class=HTMLResponse)
async def ui_womack_submit(
    request: Request,
    entry_date: str = Form("", alias="date"),
    line: str = Form("1"),
    water: str = Form(""),
    oil_total: str = Form("", alias="oilTotal"),
    oil_partial: str = Form("", alias="oilPartial"),
    service: ConsumptionService = Depends(get_service),
):
    form = DailyReadingForm(
        date=entry_date,
        line=line,
        water_consumption=water,
        oil_consumption_total=oil_total,
        oil_consumption_partial=oil_partial,
    )
    try:
        result = service.submit_daily(form)
    except ServiceNotReady:
        return _loading(request)

    selected = _line_or_default(line)
    if result.ok:
        url = request.url_for("ui_womack").include_query_params(line=selected)
        return RedirectResponse(str(url), status_code=status.HTTP_303_SEE_OTHER)

    values = {
        "date": entry_date,
        "water": water,
        "oilTotal": oil_total,
        "oilPartial": oil_partial,
    }
    return _render_womack(
        request, service, selected, values, status_code=status.HTTP_400_BAD_REQUEST
    )


def _render_bodymaker(
    request: Request,
    service: ConsumptionService,
    line: int,
    week: str,
    consumptions: Dict[int, str],
    status_code: int = status.HTTP_200_OK,
) -> HTMLResponse:
    try:
        history = service.weekly_history(line)
    except ServiceNotReady:
        return _loading(request)
    return templates.TemplateResponse(
        request,
        "ui/bodymaker.html",
        {
            "session_id": service.session.session_id,
            "line": line,
            "week": week,
            "machines": machines_for_line(line),
            "consumptions": consumptions,
            "history": history,
            "notice": service.notice_for(BODYMAKER_COLLECTION),
            "notice_seconds": service.settings.notice_seconds,
        },
        status_code=status_code,
    )


@router.get("/ui/bodymaker", name="ui_bodymaker", response_class=HTMLResponse)
async def ui_bodymaker(
    request: Request,
    line: Optional[str] = None,
    service: ConsumptionService = Depends(get_service),
) -> HTMLResponse:
    week = week_start(date.today()).isoformat()
    return _render_bodymaker(request, service, _line_or_default(line), week, {})


@router.post("/ui/bodymaker", name="ui_bodymaker_submit", response_class=HTMLResponse)
async def ui_bodymaker_submit(
    request: Request,
    service: ConsumptionService = Depends(get_service),
):
    submitted = await request.form()
    week = str(submitted.get("week") or "")
    line_raw = str(submitted.get("line") or "1")
    selected = _line_or_default(line_raw)
    consumptions = {
        machine_id: str(submitted.get(f"bm-{machine_id}") or "")
        for machine_id in machines_for_line(selected)
    }
    form = WeeklyReadingForm(
        week_start_date=week,
        line=line_raw,
        consumptions_by_machine=consumptions,
    )
    try:
        result = service.submit_weekly(form)
    except ServiceNotReady:
        return _loading(request)

    if result.ok:
        url = request.url_for("ui_bodymaker").include_query_params(line=selected)
        return RedirectResponse(str(url), status_code=status.HTTP_303_SEE_OTHER)

    return _render_bodymaker(
        request,
        service,
        selected,
        week,
        consumptions,
        status_code=status.HTTP_400_BAD_REQUEST,
    )
