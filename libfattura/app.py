import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Annotated, Any, NoReturn, Optional

import click
import typer
from rich.console import Console
from rich.markup import escape

from .config import AppConfig, get_config, setup_logging
from .console import print_pages
from .errors import LibFatturaError, RenderFallback
from .layout import write_pdf
from .pipeline import xml_to_invoice, xml_to_tree
from .renderer import render
from .utils import default_pdf_path

app = typer.Typer(help="Convert FatturaPA electronic invoices to PDF")

logger = logging.getLogger(__name__)
console = Console()
err_console = Console(stderr=True)


def _fail(message: str) -> NoReturn:
    err_console.print(f"[bold red]Error:[/bold red] {escape(message)}", soft_wrap=True)
    raise typer.Exit(code=1)


def _read_xml(xml_file: Path) -> bytes:
    if not xml_file.exists():
        _fail(f"File {xml_file} does not exist")
    return xml_file.read_bytes()


def _report(warnings: list[Any]) -> None:
    for warning in warnings:
        err_console.print(f"[yellow]Warning:[/yellow] {escape(str(warning))}", soft_wrap=True)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose output")] = False,
    env: Annotated[str, typer.Option("--env", help="Environment name, selects secrets/.env.<env>")] = "localhost",
) -> None:
    setup_logging(verbose)
    ctx.obj = get_config(env)
    if verbose:
        logger.debug("Verbose mode enabled")


@app.command()
def convert(
    xml_file: Annotated[Path, typer.Argument(help="FatturaPA XML file")],
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Destination PDF file")] = None,
    locale: Annotated[Optional[str], typer.Option("--locale", "-l", help="Locale of labels and numbers, e.g. it, en")] = None,
    footer: Annotated[Optional[bool], typer.Option("--footer/--no-footer", help="Print the attribution line")] = None,
) -> None:
    """Convert an electronic invoice to PDF, one page per installment."""
    config: AppConfig = click.get_current_context().obj
    display = config.display
    if locale is not None:
        display = replace(display, locale=locale)
    if footer is not None:
        display = replace(display, footer=footer)

    try:
        invoice = xml_to_invoice(_read_xml(xml_file), config.extraction.tolerance)
    except LibFatturaError as e:
        _fail(f"Failed to convert {xml_file}: {e}")

    fallbacks: list[RenderFallback] = []
    pages = render(invoice, display, fallbacks)
    _report([*invoice.warnings, *fallbacks])

    destination = output or default_pdf_path(xml_file, invoice)
    with open(destination, "wb") as pdf_file:
        write_pdf(pages, pdf_file, font_path=display.font_path)

    console.print(f"[bold green]Wrote {len(pages)} page(s) to {destination}[/bold green]")


@app.command()
def extract(xml_file: Annotated[Path, typer.Argument(help="FatturaPA XML file")]) -> None:
    """Print the normalized invoice as JSON."""
    config: AppConfig = click.get_current_context().obj
    try:
        invoice = xml_to_invoice(_read_xml(xml_file), config.extraction.tolerance)
    except LibFatturaError as e:
        _fail(f"Failed to extract {xml_file}: {e}")

    _report(list(invoice.warnings))
    typer.echo(invoice.model_dump_json(by_alias=True, indent=2))


@app.command()
def tree(xml_file: Annotated[Path, typer.Argument(help="XML file")]) -> None:
    """Print the generic tree of any XML file as JSON."""
    try:
        parsed = xml_to_tree(_read_xml(xml_file))
    except LibFatturaError as e:
        _fail(f"Failed to parse {xml_file}: {e}")

    typer.echo(json.dumps(parsed, indent=2, ensure_ascii=False, default=str))


@app.command()
def show(
    xml_file: Annotated[Path, typer.Argument(help="FatturaPA XML file")],
    locale: Annotated[Optional[str], typer.Option("--locale", "-l", help="Locale of labels and numbers")] = None,
) -> None:
    """Render the invoice on the terminal."""
    config: AppConfig = click.get_current_context().obj
    display = replace(config.display, locale=locale) if locale else config.display
    try:
        invoice = xml_to_invoice(_read_xml(xml_file), config.extraction.tolerance)
    except LibFatturaError as e:
        _fail(f"Failed to show {xml_file}: {e}")

    fallbacks: list[RenderFallback] = []
    pages = render(invoice, display, fallbacks)
    print_pages(pages, console)
    _report([*invoice.warnings, *fallbacks])


@app.command()
def serve(
    host: Annotated[Optional[str], typer.Option("--host", help="Interface to bind")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Port to listen on")] = None,
) -> None:
    """Run the HTTP conversion service."""
    from .server import serve as run_server

    config: AppConfig = click.get_current_context().obj
    server_config = replace(
        config.server,
        host=host or config.server.host,
        port=port or config.server.port,
    )
    typer.echo(f"Starting the conversion service on {server_config.host}:{server_config.port} ...")
    run_server(replace(config, server=server_config))


if __name__ == "__main__":
    app()
