"""
``reportgen templates``: template store management.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from reportgen.cli.utils import console, err_console
from reportgen.core.settings import get_settings
from reportgen.rendering.engine import datasets_referenced, placeholders
from reportgen.rendering.store import FileTemplateStore

app = typer.Typer(no_args_is_help=True)


def _store(folder: Path | None) -> FileTemplateStore:
    return FileTemplateStore(folder or get_settings().templates_folder)


@app.command("list")
def list_templates(
    folder: Path | None = typer.Option(None, "--folder", "-f", help="Templates folder"),
) -> None:
    """List stored templates."""
    store = _store(folder)
    names = store.list_templates()
    if not names:
        console.print(f"[yellow]No templates in {store.folder}[/yellow]")
        return
    table = Table(title=f"Templates ({store.folder})")
    table.add_column("Name")
    table.add_column("Datasets")
    for name in names:
        table.add_row(name, ", ".join(datasets_referenced(store.get(name))))
    console.print(table)


@app.command("show")
def show_template(
    name: str = typer.Argument(..., help="Report name"),
    folder: Path | None = typer.Option(None, "--folder", "-f"),
) -> None:
    """Show the placeholders and datasets a template uses."""
    store = _store(folder)
    if not store.exists(name):
        err_console.print(f"[bold red]Template not found:[/bold red] {name}")
        raise typer.Exit(code=1)
    text = store.get(name)
    console.print(f"[bold]Placeholders:[/bold] {', '.join(placeholders(text)) or '-'}")
    console.print(f"[bold]Datasets:[/bold] {', '.join(datasets_referenced(text)) or '-'}")


@app.command("save")
def save_template(
    name: str = typer.Argument(..., help="Report name"),
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="HTML file to store"),
    folder: Path | None = typer.Option(None, "--folder", "-f"),
) -> None:
    """Store an HTML file as the template of a report."""
    path = _store(folder).save(name, source.read_text(encoding="utf-8"))
    console.print(f"[green]Saved[/green] {path}")
