"""CLI entry point for the mdBook Kroki preprocessor.

mdBook invokes the preprocessor twice:

    mdbook-kroki-preprocessor supports html    # exit 0 if supported
    mdbook-kroki-preprocessor < [context, book] > book

A standalone ``render`` command transforms a single markdown file.
"""

from __future__ import annotations

import sys
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape

import mdkroki
from mdkroki.config import load_config
from mdkroki.errors import KrokiError
from mdkroki.logging import configure_logging

app = typer.Typer(
    name="mdbook-kroki-preprocessor",
    help="An mdBook preprocessor for rendering Kroki diagrams.",
    add_completion=False,
    no_args_is_help=False,
)

# Console for stderr output (stdout is reserved for the book JSON)
_stderr_console = Console(stderr=True)


def _report_error(error: BaseException) -> None:
    """Print an error and its cause chain to stderr."""
    _stderr_console.print(f"[bold red]Error:[/bold red] {escape(str(error))}", soft_wrap=True)
    cause = error.__cause__
    while cause is not None:
        _stderr_console.print(f"  [dim]caused by:[/dim] {escape(str(cause))}", soft_wrap=True)
        cause = cause.__cause__


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"mdbook-kroki-preprocessor {mdkroki.__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def preprocess(
    ctx: typer.Context,
    _version: bool | None = typer.Option(
        None,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a YAML configuration file.",
        exists=True,
        readable=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    """Preprocess an mdBook book read from stdin and write it to stdout.

    Examples:
        mdbook-kroki-preprocessor < payload.json
        mdbook-kroki-preprocessor supports html
    """
    configure_logging("DEBUG" if verbose else None)
    ctx.obj = {"config": config}

    # Only run if no subcommand was invoked
    if ctx.invoked_subcommand is not None:
        return

    from mdkroki.book import run_preprocessor

    try:
        output = run_preprocessor(sys.stdin.read(), config)
    except KrokiError as e:
        _report_error(e)
        raise typer.Exit(1) from e

    sys.stdout.write(output)
    sys.stdout.flush()


@app.command("supports")
def supports(
    ctx: typer.Context,
    renderer: str = typer.Argument(..., help="mdBook renderer name, e.g. html."),
) -> None:
    """Exit 0 if the renderer is supported, 1 otherwise."""
    try:
        settings = load_config(ctx.obj["config"])
    except KrokiError as e:
        _report_error(e)
        raise typer.Exit(1) from e

    if not settings.supports_renderer(renderer):
        logger.debug(f"Renderer {renderer!r} not supported")
        raise typer.Exit(1)


@app.command("render")
def render(
    ctx: typer.Context,
    file: Path = typer.Argument(
        ..., help="Markdown file to transform.", exists=True, dir_okay=False, readable=True
    ),
    endpoint: str | None = typer.Option(
        None, "--endpoint", "-e", help="Kroki base URL (default: https://kroki.io/)."
    ),
    book_root: Path = typer.Option(
        Path("."), "--book-root", help="Base directory for root=\"book\" references."
    ),
    src: Path | None = typer.Option(
        None, "--src", help="Sources directory (default: <book-root>/src)."
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Write the result here instead of stdout."
    ),
) -> None:
    """Render every diagram in a single markdown file.

    Examples:
        mdbook-kroki-preprocessor render chapter.md
        mdbook-kroki-preprocessor render chapter.md -e http://localhost:8000 -o out.md
    """
    from mdkroki.models import DocumentContext
    from mdkroki.pipeline import process_document

    try:
        settings = load_config(ctx.obj["config"], {"endpoint": endpoint})
        text = file.read_text(encoding="utf-8")
        context = DocumentContext(
            document_path=file,
            book_root=book_root,
            source_root=src if src is not None else book_root / "src",
        )
        result = process_document(text, context, settings)
    except KrokiError as e:
        _report_error(e)
        raise typer.Exit(1) from e

    if output is None:
        sys.stdout.write(result)
        sys.stdout.flush()
    else:
        output.write_text(result, encoding="utf-8")
        _stderr_console.print(f"[green]Wrote[/green] {escape(str(output))}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
