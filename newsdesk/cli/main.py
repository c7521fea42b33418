"""Newsdesk CLI — Entry point.

Usage:
    newsdesk permissions matrix
    newsdesk permissions check <role> <capability>
    newsdesk permissions path <role> <path>
    newsdesk audit list [--search TEXT] [--action A] [--resource R]
    newsdesk audit stats
    newsdesk audit export --output FILE
    newsdesk config show
"""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console

from newsdesk.cli.commands import audit, config, permissions

app = typer.Typer(
    name="newsdesk",
    help="Newsdesk — editorial permissions, workflow and audit trail.",
    no_args_is_help=True,
    pretty_exceptions_enable=False,
)

console = Console()

app.add_typer(permissions.app, name="permissions")
app.add_typer(audit.app, name="audit")
app.add_typer(config.app, name="config")


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Override the configured log level for this run."
    ),
) -> None:
    from newsdesk.config import get_settings
    from newsdesk.logging import configure_logging

    logging_config = get_settings().logging
    configure_logging(
        level=log_level or logging_config.level,
        format=logging_config.format,
        log_file=logging_config.file,
    )


if __name__ == "__main__":
    app()
