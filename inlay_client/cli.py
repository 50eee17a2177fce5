"""Command-line interface for inlay-client."""

import asyncio
import os
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import Config
from .editor.host import InMemoryEditorHost
from .editor.types import CancellationTokenSource, InlayHint
from .extension import Extension, ExtensionContext
from .lsp.language import get_language_id
from .util.error import ConfigError, LSPError
from .util.log import Log, LogLevel

app = typer.Typer(
    name="inlay-client",
    help="Inlay hints from an external language server",
    no_args_is_help=True,
)

console = Console()


@app.command()
def hints(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Document to annotate"),
    server: Optional[str] = typer.Option(None, "--server", "-s", help="Language server executable (overrides SERVER_PATH)"),
    language: Optional[str] = typer.Option(None, "--language", "-l", help="Language ID of the document"),
    method: Optional[str] = typer.Option(None, "--method", "-m", help="Hints request method"),
    timeout: float = typer.Option(10.0, "--timeout", "-t", help="Seconds to wait for hints"),
    print_logs: bool = typer.Option(False, "--print-logs", help="Print logs to stderr"),
    log_level: Optional[LogLevel] = typer.Option(None, "--log-level", help="Log level"),
):
    """Start the server, request hints for FILE and print them."""
    Log.init(print_logs=print_logs, level=log_level)
    try:
        exit_code = asyncio.run(_hints_async(file, server, language, method, timeout))
    finally:
        Log.close()
    raise typer.Exit(exit_code)


async def _hints_async(
    file: Path,
    server: Optional[str],
    language: Optional[str],
    method: Optional[str],
    timeout: float,
) -> int:
    try:
        options = Config.get()
    except ConfigError as e:
        console.print(e.message, style="red", markup=False, soft_wrap=True)
        return 1

    if method:
        options = options.model_copy(update={"hints_method": method})

    environ = dict(os.environ)
    if server:
        environ[options.command_env_var] = server

    file = file.resolve()
    host = InMemoryEditorHost(workspace_root=str(file.parent))
    document = host.open_document(
        file.as_uri(),
        file.read_text(encoding="utf-8"),
        language or get_language_id(str(file)),
    )

    extension = Extension()
    context = ExtensionContext(host, options, environ)
    await extension.activate(context)

    try:
        try:
            await extension.ready()
        except LSPError as e:
            console.print(e.message, style="red", markup=False, soft_wrap=True)
            _print_trace(host, options.trace_channel)
            return 1

        source = CancellationTokenSource()
        timer = asyncio.get_running_loop().call_later(timeout, source.cancel)
        try:
            found = await host.provide_inlay_hints(document.uri, token=source.token)
        finally:
            timer.cancel()

        if source.token.is_cancellation_requested:
            console.print(f"[yellow]No answer within {timeout:g}s[/yellow]")
        _print_hints(file, found)

        diagnostics = extension.client.diagnostics_for(document.uri)
        for diagnostic in diagnostics:
            console.print(diagnostic.pretty(), style="red", markup=False)
        return 0
    finally:
        stopping = extension.deactivate()
        if stopping is not None:
            await stopping
        context.dispose()
        host.dispose()


def _print_hints(file: Path, found: List[InlayHint]) -> None:
    if not found:
        console.print(f"No hints for {file.name}")
        return

    table = Table(title=f"Inlay hints for {file.name}")
    table.add_column("Position", style="cyan")
    table.add_column("Label", style="bold")
    table.add_column("Origin", style="dim")

    for hint in found:
        origin = ""
        if not isinstance(hint.label, str) and hint.label and hint.label[0].location:
            start = hint.label[0].location.range.start
            origin = f"{start.line + 1}:{start.character + 1}"
        table.add_row(f"{hint.position.line + 1}:{hint.position.character + 1}", hint.text, origin)

    console.print(table)


def _print_trace(host: InMemoryEditorHost, channel: str) -> None:
    output = host.channels.get(channel)
    if output:
        for line in output.lines:
            console.print(line, style="dim", markup=False, soft_wrap=True)


@app.command()
def config(
    write: bool = typer.Option(False, "--write", help="Write the effective options to the config file"),
):
    """Show the effective client options."""
    try:
        options = Config.get()
    except ConfigError as e:
        console.print(e.message, style="red", markup=False, soft_wrap=True)
        raise typer.Exit(1)

    if write:
        Config.save(options)
        console.print(f"Wrote {Config.path()}", soft_wrap=True)
    console.print_json(options.model_dump_json())


def main():
    app()


if __name__ == "__main__":
    main()
