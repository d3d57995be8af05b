from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_history, render_sync_result


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for syncing and exporting tank and valve history.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


def _load_batch(
    path: Path, tank_path: Optional[Path]
) -> Tuple[List[Dict[str, Any]], Optional[Dict[str, Any]]]:
    try:
        payload = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{path} is not valid JSON: {exc}") from exc

    tank: Optional[Dict[str, Any]] = None
    if isinstance(payload, dict):
        readings = payload.get("readings") or []
        tank = payload.get("tank")
    else:
        readings = payload
    if not isinstance(readings, list):
        raise typer.BadParameter(f"{path} must hold a list of readings.")

    if tank_path is not None:
        try:
            tank = json.loads(tank_path.read_text())
        except json.JSONDecodeError as exc:
            raise typer.BadParameter(f"{tank_path} is not valid JSON: {exc}") from exc
    return readings, tank


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="History API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each API request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("sync")
def sync_command(
    ctx: typer.Context,
    file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="JSON file with readings."
    ),
    device_type: str = typer.Option("tanks", "--device-type", "-t", help="Device collection."),
    device_id: str = typer.Option(..., "--device-id", "-d", help="Device identifier."),
    tank: Optional[Path] = typer.Option(
        None,
        "--tank",
        exists=True,
        dir_okay=False,
        readable=True,
        help="JSON file with tank geometry used to compute volumes.",
    ),
) -> None:
    """Sync a batch of readings into history."""
    state = _get_state(ctx)
    readings, geometry = _load_batch(file, tank)
    typer.echo(f"Syncing {len(readings)} readings to {state.config.base_url} ...")
    result = state.client.sync_readings(device_type, device_id, readings, geometry)
    render_sync_result(result)
    if result.get("error"):
        raise typer.Exit(code=1)


@app.command("history")
def history_command(
    ctx: typer.Context,
    device_type: str = typer.Argument(..., help="Device collection, e.g. tanks or valves."),
    device_id: str = typer.Argument(..., help="Device identifier."),
    start: Optional[datetime] = typer.Option(
        None, "--start", formats=["%Y-%m-%d"], help="Inclusive start date."
    ),
    end: Optional[datetime] = typer.Option(
        None, "--end", formats=["%Y-%m-%d"], help="Inclusive end date."
    ),
) -> None:
    """Show stored history, newest first."""
    state = _get_state(ctx)
    entries = state.client.get_history(
        device_type,
        device_id,
        start_date=start.date() if start else None,
        end_date=end.date() if end else None,
    )
    render_history(entries)


@app.command("export")
def export_command(
    ctx: typer.Context,
    device_type: str = typer.Argument(..., help="Device collection, e.g. tanks or valves."),
    device_id: str = typer.Argument(..., help="Device identifier."),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Device name for the file."),
    output: Path = typer.Option(
        Path("."), "--output", "-o", file_okay=False, help="Directory to write the CSV into."
    ),
) -> None:
    """Download history as a CSV file."""
    state = _get_state(ctx)
    exported = state.client.export_history(device_type, device_id, name or device_id)
    if exported is None:
        typer.secho("No history data to export.", fg=typer.colors.YELLOW)
        return
    filename, data = exported
    output.mkdir(parents=True, exist_ok=True)
    target = output / filename
    target.write_bytes(data)
    typer.secho(f"History exported to {target}", fg=typer.colors.GREEN)
