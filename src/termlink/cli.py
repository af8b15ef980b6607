"""
Command Line Interface for termlink.

Runs a single-client endpoint from the terminal: clients are authenticated
when a password is set, received lines are printed and optionally echoed.

Built with Typer for automatic tab completion.
"""

import asyncio
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import __version__
from .core.config import Settings
from .core.logging import setup_logging
from .endpoint import Endpoint
from .exceptions import ConfigError, StartError, StopError

console = Console()

app = typer.Typer(
    name="termlink",
    help="termlink - single-client TCP endpoint with password handshake",
    add_completion=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool):
    if value:
        console.print(f"termlink version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[bool, typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit.")] = False,
):
    """
    termlink - single-client TCP endpoint with password handshake
    """
    pass


def _load_settings(config: str) -> Settings:
    config_file = Path(config)
    if config_file.exists():
        return Settings.load_from_yaml(config_file)
    return Settings()


@app.command()
def serve(
    config: Annotated[str, typer.Option("--config", "-c", help="Path to configuration file")] = "config/config.yaml",
    host: Annotated[Optional[str], typer.Option("--host", "-h", help="Address to bind to")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Port to listen on (0 = any free port)")] = None,
    password: Annotated[Optional[str], typer.Option("--password", help="Require this password from clients")] = None,
    timeout: Annotated[Optional[float], typer.Option("--timeout", "-t", help="Handshake timeout in seconds")] = None,
    encoding: Annotated[Optional[str], typer.Option("--encoding", "-e", help="Text encoding")] = None,
    challenge: Annotated[Optional[str], typer.Option("--challenge", help="Message sent to clients before the handshake")] = None,
    echo: Annotated[bool, typer.Option("--echo/--no-echo", help="Echo received lines back to the client")] = True,
):
    """Listen for one client at a time and print what it sends."""
    settings = _load_settings(config)

    # Apply CLI overrides
    if host is not None:
        settings.endpoint.host = host
    if port is not None:
        settings.endpoint.port = port
    if password is not None:
        settings.endpoint.password = password
    if timeout is not None:
        settings.endpoint.auth_timeout = timeout
    if encoding is not None:
        settings.endpoint.encoding = encoding

    setup_logging(settings.log.level, settings.log.format, settings.log.file)

    try:
        endpoint_config = settings.endpoint.to_endpoint_config()
    except ConfigError as e:
        console.print(f"[red]Invalid configuration:[/red] {e.message}")
        raise typer.Exit(code=1)

    try:
        asyncio.run(_serve(Endpoint(endpoint_config), challenge, echo))
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped[/yellow]")
    except StartError as e:
        console.print(f"[red]{e.message}:[/red] {e.__cause__}")
        raise typer.Exit(code=1)


async def _serve(endpoint: Endpoint, challenge: Optional[str], echo: bool) -> None:
    """Async implementation of serve command."""
    await endpoint.start()

    console.print(Panel(
        f"[bold cyan]termlink listening[/bold cyan]\n\n"
        f"Address: [green]{endpoint.host}:{endpoint.port}[/green]\n"
        f"Password: {'[green]required[/green]' if endpoint.auth_required else '[yellow]none[/yellow]'}\n"
        f"Echo: {'on' if echo else 'off'}",
        border_style="cyan",
    ))

    client = endpoint.client
    try:
        while True:
            if not await endpoint.wait_for_client():
                continue
            identity = client.identity
            if identity is None:
                continue
            peer = str(identity)
            console.print(f"[green]Client connected[/green] {peer}")

            if endpoint.auth_required and not await client.ask_auth(challenge):
                console.print(f"[red]Authentication failed[/red] {peer} ({client.status.name})")
                await client.disconnect()
                continue

            while client.connected:
                line = await client.read_line()
                if line is None:
                    break
                console.print(Text.assemble(("< ", "cyan"), line))
                if echo:
                    await client.write_line(line)

            console.print(f"[yellow]Client disconnected[/yellow] {peer}")
    finally:
        try:
            await endpoint.stop()
        except StopError as e:
            console.print(f"[red]{e.message}[/red]")


@app.command()
def init(
    output: Annotated[str, typer.Option("--output", "-o", help="Output path for configuration file")] = "config/config.yaml",
    force: Annotated[bool, typer.Option("--force", "-f", help="Overwrite an existing file")] = False,
):
    """Write a configuration file with default settings."""
    output_path = Path(output)

    if output_path.exists() and not force:
        if not typer.confirm(f"Configuration file {output} already exists. Overwrite?"):
            raise typer.Abort()

    Settings().save_to_yaml(output_path)
    console.print(f"[green]Configuration file created: {output}[/green]")


@app.command()
def info(
    config: Annotated[str, typer.Option("--config", "-c", help="Path to configuration file")] = "config/config.yaml",
):
    """Show the settings serve would use."""
    settings = _load_settings(config)
    endpoint = settings.endpoint

    table = Table(title="termlink settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Host", endpoint.host or "0.0.0.0")
    table.add_row("Port", str(endpoint.port) if endpoint.port else "auto")
    table.add_row("Password", "set" if endpoint.password is not None else "none")
    table.add_row("Auth timeout", f"{endpoint.auth_timeout:g}s")
    table.add_row("Encoding", endpoint.encoding)
    table.add_row("Liveness interval", f"{endpoint.liveness_interval * 1000:g}ms")
    table.add_row("Handshake poll interval", f"{endpoint.auth_poll_interval * 1000:g}ms")
    table.add_row("Log level", settings.log.level)
    table.add_row("Log format", settings.log.format)

    console.print(table)


def cli():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    cli()
