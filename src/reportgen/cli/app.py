"""
Root Typer application for the reportgen CLI.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from typer import Typer

from reportgen.cli.templates import app as templates_app
from reportgen.cli.utils import build_pipeline, build_request, console, err_console
from reportgen.core.errors import ReportGenError
from reportgen.core.settings import get_settings
from reportgen.framework.logging import configure_logging
from reportgen.output.protocol import OutputFormat
from reportgen.output.writer import ReportOutputWriter
from reportgen.rendering.engine import TemplateRenderer
from reportgen.rendering.headers import ColumnMappings

app = Typer(
    name="reportgen",
    help="reportgen: assemble PDF and Excel reports from SQL data sources.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError, version as pkg_version

        try:
            v = pkg_version("reportgen-core")
        except PackageNotFoundError:
            v = "0.1.0"
        typer.echo(f"reportgen {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
    log_format: str | None = typer.Option(None, "--log-format", help="console or json"),
) -> None:
    """reportgen CLI: render templates and generate reports."""
    settings = get_settings()
    configure_logging(level=log_level or settings.log_level, format=log_format or settings.log_format)


@app.command("render")
def render(
    template: Path = typer.Argument(..., exists=True, dir_okay=False, help="HTML template file"),
    data: Path | None = typer.Option(
        None,
        "--data",
        "-d",
        exists=True,
        dir_okay=False,
        help='JSON file: {"parameters": {...}, "tables": {name: [rows]}, "headers": {column: label}}',
    ),
    title: str = typer.Option("", "--title", "-t"),
    out: Path | None = typer.Option(None, "--out", "-o", help="Write HTML here instead of stdout"),
) -> None:
    """Render a template against JSON data (no database needed)."""
    payload = json.loads(data.read_text(encoding="utf-8")) if data else {}
    renderer = TemplateRenderer(no_data_label=get_settings().no_data_label)
    try:
        html = renderer.render(
            template.read_text(encoding="utf-8"),
            title or payload.get("title", ""),
            payload.get("parameters", {}),
            payload.get("tables", {}),
            ColumnMappings.from_dict(payload.get("headers", {})),
        )
    except ReportGenError as e:
        err_console.print(f"[bold red]{e.code.value}:[/bold red] {e.message}")
        raise typer.Exit(code=1)
    if out:
        out.write_text(html, encoding="utf-8")
        console.print(f"[green]Wrote[/green] {out}")
    else:
        typer.echo(html)


@app.command("generate")
def generate(
    report: str = typer.Argument(..., help="Report name"),
    output_format: str = typer.Option("pdf", "--format", "-f", help="pdf or xlsx"),
    param: list[str] = typer.Option([], "--param", "-p", help="name=value[:TYPE], repeatable"),
    job_number: int = typer.Option(0, "--job", "-j"),
    out_folder: Path | None = typer.Option(None, "--out-folder", "-o"),
) -> None:
    """Generate a report from the configured database and save it."""
    settings = get_settings()
    try:
        fmt = OutputFormat.parse(output_format)
        request = build_request(param)
    except (ValueError, KeyError, ReportGenError) as e:
        err_console.print(f"[bold red]Invalid arguments:[/bold red] {e}")
        raise typer.Exit(code=2)

    pipeline = build_pipeline(settings)
    outcome = pipeline.generate(report, fmt, request, job_number=job_number)
    for issue in outcome.issues:
        console.print(f"[yellow]{issue.severity.value}[/yellow] {issue.code.value}: {issue.message}")
    if not outcome.success:
        failure = outcome.failure
        err_console.print(f"[bold red]{failure.code.value}:[/bold red] {failure.description}")
        raise typer.Exit(code=1)

    path = ReportOutputWriter(out_folder or settings.output_folder).save_outcome(outcome)
    console.print(f"[green]Saved[/green] {path} ({outcome.size_kb} KB, {outcome.duration_ms:.0f} ms)")


app.add_typer(templates_app, name="templates", help="Template store management.")


if __name__ == "__main__":
    app()
