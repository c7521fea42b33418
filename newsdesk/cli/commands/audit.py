"""CLI — Audit log inspection and export commands.

Reads the SQLite audit database directly; these are local operator tools
and do not open a session.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from newsdesk.exceptions import StoreError
from newsdesk.models import ActivityLogEntry, AuditAction, AuditResource

app = typer.Typer(help="List, summarise and export the activity audit log.")
console = Console()


def _db_path(db: Path | None) -> Path:
    if db is not None:
        return db.expanduser()
    from newsdesk.config import get_settings

    return get_settings().storage.audit_db_path.expanduser()


async def _read(db_path: Path) -> list[ActivityLogEntry]:
    from newsdesk.security.audit_store import SQLiteAuditStore

    store = SQLiteAuditStore(db_path)
    await store.init()
    try:
        return await store.list()
    finally:
        await store.close()


def _load(db: Path | None) -> list[ActivityLogEntry]:
    path = _db_path(db)
    if not path.exists():
        console.print(f"[red]Audit database not found: {path}[/red]")
        raise typer.Exit(1)
    try:
        return asyncio.run(_read(path))
    except StoreError as exc:
        console.print(f"[red]Error: {exc.message}[/red]")
        raise typer.Exit(1)


def _filtered(
    db: Path | None,
    search: str | None,
    action: str | None,
    resource: str | None,
    limit: int | None,
) -> list[ActivityLogEntry]:
    from newsdesk.security.audit import filter_entries

    try:
        action_filter = AuditAction(action) if action else None
        resource_filter = AuditResource(resource) if resource else None
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    return filter_entries(
        _load(db),
        text=search,
        action=action_filter,
        resource=resource_filter,
        limit=limit,
    )


@app.command("list")
def list_entries(
    db: Path | None = typer.Option(None, "--db", help="Audit database path."),
    search: str | None = typer.Option(None, "--search", "-s", help="Free-text filter."),
    action: str | None = typer.Option(None, "--action", help="Filter by action."),
    resource: str | None = typer.Option(None, "--resource", help="Filter by resource."),
    limit: int = typer.Option(50, help="Maximum number of entries to show."),
) -> None:
    """List recent audit entries, newest first."""
    entries = _filtered(db, search, action, resource, limit)

    table = Table(title="Activity log")
    table.add_column("Time", style="cyan")
    table.add_column("User")
    table.add_column("Role")
    table.add_column("Action")
    table.add_column("Resource")
    table.add_column("Name")
    table.add_column("Details")

    for entry in entries:
        table.add_row(
            entry.timestamp.astimezone().strftime("%Y-%m-%d %H:%M:%S"),
            entry.user_name,
            entry.user_role,
            entry.action_label,
            entry.resource_label,
            entry.resource_name or "",
            entry.details or "",
        )
    console.print(table)


@app.command("stats")
def show_stats(
    db: Path | None = typer.Option(None, "--db", help="Audit database path."),
) -> None:
    """Show totals: all entries, today's entries, and a per-action breakdown."""
    from newsdesk.security.audit import compute_stats

    stats = compute_stats(_load(db))
    console.print(f"Total entries: [bold]{stats.total}[/bold]")
    console.print(f"Today:         [bold]{stats.today}[/bold]")

    table = Table(title="By action")
    table.add_column("Action", style="cyan")
    table.add_column("Count", justify="right")
    for action, count in stats.by_action.most_common():
        table.add_row(action.value, str(count))
    console.print(table)


@app.command("export")
def export_entries(
    output: Path = typer.Option(..., "--output", "-o", help="CSV file to write."),
    db: Path | None = typer.Option(None, "--db", help="Audit database path."),
    search: str | None = typer.Option(None, "--search", "-s", help="Free-text filter."),
    action: str | None = typer.Option(None, "--action", help="Filter by action."),
    resource: str | None = typer.Option(None, "--resource", help="Filter by resource."),
) -> None:
    """Export (filtered) audit entries as CSV."""
    from newsdesk.security.audit import AuditLog

    entries = _filtered(db, search, action, resource, None)
    output.write_text(AuditLog.export_csv(entries), encoding="utf-8")
    console.print(f"[green]{len(entries)} entries written to {output}[/green]")
