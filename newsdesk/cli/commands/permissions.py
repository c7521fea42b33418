"""CLI — Role capability inspection commands."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from newsdesk.models import Role
from newsdesk.security.permissions import PATH_CAPABILITIES, Capability, PermissionModel

app = typer.Typer(help="Inspect which roles hold which capabilities.")
console = Console()

_model = PermissionModel()


@app.command("matrix")
def show_matrix() -> None:
    """Print the full role x capability matrix."""
    table = Table(title="Role capabilities")
    table.add_column("Capability", style="cyan")
    for role in Role:
        table.add_column(role.value, justify="center")

    for capability in Capability:
        table.add_row(
            capability.value,
            *("[green]yes[/green]" if _model.has_permission(role, capability) else "-" for role in Role),
        )
    console.print(table)


@app.command("check")
def check_permission(
    role: str = typer.Argument(help="Role name (admin, editor, journalist, author)."),
    capability: str = typer.Argument(help="Capability name, e.g. publish_articles."),
) -> None:
    """Exit 0 if ROLE holds CAPABILITY, 1 otherwise."""
    if _model.has_permission(role, capability):
        console.print(f"[green]{role} has {capability}[/green]")
        return
    console.print(f"[red]{role} does not have {capability}[/red]")
    raise typer.Exit(1)


@app.command("path")
def check_path(
    role: str = typer.Argument(help="Role name."),
    path: str = typer.Argument(help="Admin console path, e.g. /admin/users."),
) -> None:
    """Exit 0 if ROLE may open the admin page at PATH, 1 otherwise."""
    required = PATH_CAPABILITIES.get(path.rstrip("/") or "/")
    requirement = required.value if required else "no capability"
    if _model.can_access_path(role, path):
        console.print(f"[green]{role} may open {path}[/green] ({requirement})")
        return
    console.print(f"[red]{role} may not open {path}[/red] (requires {requirement})")
    raise typer.Exit(1)
