"""Typer-based CLI: ``godef [EXPR] -f FILE -o OFFSET``."""

from __future__ import annotations

import logging
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .errors import GodefError
from .formatter import format_result, output_mode
from .models import Query
from .resolver import Resolver
from .sources import EditorBuffer, read_source

app = typer.Typer(
    help="Go to definition for Go identifiers or package paths.",
    add_completion=False,
)


def setup_logging(debug: bool = False) -> None:
    """Route log records to stderr; DEBUG with --debug, else WARNING."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"godef v{__version__}")
        raise typer.Exit()


@app.command()
def main(
    expr: Optional[str] = typer.Argument(None, help="Expression to resolve instead of an offset."),
    filename: str = typer.Option("", "-f", "--file", help="Source filename."),
    offset: int = typer.Option(-1, "-o", "--offset", help="Byte offset of the identifier in the file."),
    read_stdin: bool = typer.Option(False, "-i", "--stdin", help="Read the file body from stdin."),
    type_info: bool = typer.Option(False, "-t", "--type", help="Print type information."),
    members: bool = typer.Option(False, "-a", "--members", help="Print public type and member information."),
    all_members: bool = typer.Option(False, "-A", "--all", help="Print all type and member information."),
    as_json: bool = typer.Option(False, "--json", help="Print the location as JSON (-t is ignored)."),
    editor: bool = typer.Option(
        False, "--editor", help="Read an unsaved editor buffer from stdin; -o is the cursor."
    ),
    debug: bool = typer.Option(False, "--debug", help="Log resolution steps to stderr."),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
):
    """Print the location of the declaration an identifier refers to."""
    setup_logging(debug)
    mode = output_mode(type_info, members, all_members, as_json)
    members = members or all_members
    type_info = type_info or members

    stdin = typer.get_binary_stream("stdin")
    buffer: Optional[EditorBuffer] = None
    try:
        if editor:
            buffer = EditorBuffer.from_stream(filename, offset, stdin)
            src = buffer.body
        else:
            src = read_source(filename, stdin=read_stdin, stream=stdin)
        resolver = Resolver()
        result = resolver.define(
            filename,
            Query(expression=expr or "", offset=offset),
            src=src,
            want_type=type_info,
            want_members=members,
        )
    except GodefError as exc:
        typer.echo(f"godef: {exc}", err=True)
        raise typer.Exit(code=1)

    if buffer is not None:
        typer.echo(buffer.backtrack_line())
    typer.echo(format_result(result, mode), nl=False)
