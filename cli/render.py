from __future__ import annotations

from typing import Any, Dict, Iterable, List, Sequence

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_table(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> None:
    materialized = [[_cell(value) for value in row] for row in rows]
    widths = [len(header) for header in headers]
    for row in materialized:
        for index, value in enumerate(row):
            widths[index] = max(widths[index], len(value))
    typer.echo("  ".join(header.ljust(widths[i]) for i, header in enumerate(headers)))
    for row in materialized:
        typer.echo("  ".join(value.ljust(widths[i]) for i, value in enumerate(row)))


def _cell(value: Any) -> str:
    if value is None:
        return "–"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def render_dashboard(payload: Dict[str, Any]) -> None:
    echo_heading("Consumo Diario Womack (Últimos 7 Días)")
    womack = payload.get("womack") or []
    if womack:
        echo_table(
            ["Día", "Agua L1", "Agua L2", "Aceite L1", "Aceite L2"],
            (
                [row.get("name"), row.get("Agua L1"), row.get("Agua L2"), row.get("Aceite L1"), row.get("Aceite L2")]
                for row in womack
            ),
        )
    else:
        typer.echo("Sin registros.")

    typer.echo()
    echo_heading("Consumo Semanal Bodymakers (Última Semana)")
    bodymaker = payload.get("bodymaker") or []
    if bodymaker:
        echo_table(
            ["Máquina", "Consumo L1", "Consumo L2"],
            (
                [row.get("name"), row.get("consumptionLine1"), row.get("consumptionLine2")]
                for row in bodymaker
            ),
        )
    else:
        typer.echo("Sin registros.")


def render_daily_history(line: int, rows: List[Dict[str, Any]]) -> None:
    echo_heading(f"Historial Reciente (Línea {line})")
    if not rows:
        typer.echo("Sin registros.")
        return
    echo_table(
        ["Fecha", "Agua", "Aceite Total", "Aceite Parcial"],
        (
            [
                row.get("date"),
                row.get("waterConsumption"),
                row.get("oilConsumptionTotal"),
                row.get("oilConsumptionPartial"),
            ]
            for row in rows
        ),
    )


def render_weekly_history(line: int, rows: List[Dict[str, Any]]) -> None:
    echo_heading(f"Historial Semanal Reciente (Línea {line})")
    if not rows:
        typer.echo("Sin registros.")
        return
    machine_ids = sorted({int(key) for row in rows for key in (row.get("cells") or {})})
    echo_table(
        ["Semana de", *[f"BM {machine_id}" for machine_id in machine_ids]],
        (
            [row.get("weekStartDate"), *[(row.get("cells") or {}).get(str(machine_id)) for machine_id in machine_ids]]
            for row in rows
        ),
    )
