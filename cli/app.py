from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_daily_history, render_dashboard, render_weekly_history


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Record and review Womack and Bodymaker consumption readings.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


def _parse_machine_readings(values: List[str]) -> Dict[str, str]:
    consumptions: Dict[str, str] = {}
    for value in values:
        machine, separator, amount = value.partition("=")
        if not separator or not machine.strip().isdigit():
            raise typer.BadParameter(
                f"Expected MACHINE=LITERS, got {value!r}.", param_hint="--reading"
            )
        consumptions[machine.strip()] = amount.strip()
    return consumptions


def _report(message: str) -> None:
    typer.secho(message, fg=typer.colors.GREEN)


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each HTTP request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("daily")
def daily_command(
    ctx: typer.Context,
    water: str = typer.Option(..., "--water", help="Water consumption."),
    oil_total: str = typer.Option(..., "--oil-total", help="Total oil consumption."),
    oil_partial: str = typer.Option(..., "--oil-partial", help="Partial oil consumption."),
    line: int = typer.Option(1, "--line", "-l", min=1, max=2, help="Production line."),
    entry_date: Optional[str] = typer.Option(
        None, "--date", help="Reading date as YYYY-MM-DD (defaults to today)."
    ),
) -> None:
    """Record a daily Womack reading."""
    state = _get_state(ctx)
    payload = {
        "date": entry_date or date.today().isoformat(),
        "line": str(line),
        "waterConsumption": water,
        "oilConsumptionTotal": oil_total,
        "oilConsumptionPartial": oil_partial,
    }
    response = state.client.submit_daily(payload)
    _report(f"{response.get('message')} id={response.get('id')}")


@app.command("weekly")
def weekly_command(
    ctx: typer.Context,
    readings: List[str] = typer.Option(
        ..., "--reading", "-r", help="Machine reading as MACHINE=LITERS; repeat per machine."
    ),
    line: int = typer.Option(1, "--line", "-l", min=1, max=2, help="Production line."),
    week: Optional[str] = typer.Option(
        None, "--week", help="Any day of the reporting week as YYYY-MM-DD (defaults to today)."
    ),
) -> None:
    """Record one week of Bodymaker readings."""
    state = _get_state(ctx)
    payload = {
        "weekStartDate": week or date.today().isoformat(),
        "line": str(line),
        "consumptionsByMachine": _parse_machine_readings(readings),
    }
    response = state.client.submit_weekly(payload)
    _report(f"{response.get('message')} id={response.get('id')}")


@app.command("dashboard")
def dashboard_command(ctx: typer.Context) -> None:
    """Show the dashboard chart data as tables."""
    state = _get_state(ctx)
    render_dashboard(state.client.get_dashboard())


@app.command("history")
def history_command(
    ctx: typer.Context,
    weekly: bool = typer.Option(
        False, "--weekly/--daily", help="Show Bodymaker weeks instead of Womack days."
    ),
    line: int = typer.Option(1, "--line", "-l", min=1, max=2, help="Production line."),
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Maximum rows to show."),
) -> None:
    """List the most recent readings of a line."""
    state = _get_state(ctx)
    if weekly:
        render_weekly_history(line, state.client.get_weekly_history(line, limit))
    else:
        render_daily_history(line, state.client.get_daily_history(line, limit))
