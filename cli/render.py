from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer

_HISTORY_COLUMNS = ("date", "distance", "waterLevel", "currentVolume")


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_sync_result(payload: Dict[str, Any]) -> None:
    echo_heading("Sync Result")
    echo_key_values(
        [
            ("synced", payload.get("synced")),
            ("skipped", payload.get("skipped")),
            ("failed", payload.get("failed", 0)),
        ]
    )
    error = payload.get("error")
    if error:
        typer.secho(f"error: {error}", fg=typer.colors.RED)


def render_history(entries: List[Dict[str, Any]]) -> None:
    echo_heading(f"History ({len(entries)} entries)")
    if not entries:
        typer.echo("No history recorded.")
        return
    typer.echo(" | ".join(_HISTORY_COLUMNS))
    for entry in entries:
        typer.echo(" | ".join(_cell(entry.get(column)) for column in _HISTORY_COLUMNS))


def _cell(value: Any) -> str:
    return "-" if value is None else str(value)
