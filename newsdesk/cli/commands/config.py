"""CLI — Configuration inspection."""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.syntax import Syntax

app = typer.Typer(help="Inspect the effective configuration.")
console = Console()


@app.command("show")
def show_config(
    config_file: Path | None = typer.Option(
        None, "--config", "-c", help="Extra YAML config file to overlay."
    ),
) -> None:
    """Print the effective settings as JSON."""
    from newsdesk.config import Settings

    settings = Settings.load(config_file)
    console.print(Syntax(json.dumps(settings.model_dump(mode="json"), indent=2), "json"))
