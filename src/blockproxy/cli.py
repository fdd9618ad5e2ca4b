"""blockproxy CLI - Command line interface."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys

import click
import structlog
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from blockproxy import __version__
from blockproxy.core.config import (
    ProxyConfig,
    ProxySettings,
    flatten_config,
    get_settings,
    load_config_from_file,
)
from blockproxy.server.proxy import ProxyServer

console = Console()

BANNER = """
  ┌─────────────────────────────────────────┐
  │               BLOCKPROXY                │
  │  CONNECT to one place, and nowhere else │
  └─────────────────────────────────────────┘
"""

DEFAULT_PORT = 8080


def configure_logging(log_level: str) -> None:
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
    )


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config", "-c",
    "config_file",
    type=click.Path(exists=True),
    help="Path to YAML or TOML config file",
)
@click.option(
    "--port",
    "-l",
    type=int,
    default=None,
    envvar="BLOCKPROXY_PORT",
    help="The port to listen on (default: 8080)",
)
@click.option(
    "--target",
    "-t",
    envvar="BLOCKPROXY_TARGET",
    help="The host to proxy to (host:port, port defaults to 443)",
)
@click.option(
    "--target-ip",
    "-i",
    envvar="BLOCKPROXY_TARGET_IP",
    help="The ip of the host to proxy to (optional)",
)
@click.option("--listen-host", default=None, help="Address to bind (default: 0.0.0.0)")
@click.option(
    "--log-level",
    "-L",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Log level (default: info, use --verbose for debug)",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.version_option(__version__, prog_name="blockproxy")
def main(
    config_file: str | None,
    port: int | None,
    target: str | None,
    target_ip: str | None,
    listen_host: str | None,
    log_level: str | None,
    verbose: bool,
):
    """A proxy that blocks all requests except CONNECT to the target host.

    Examples:

        blockproxy --target example.com:443

        blockproxy --target example.com --port 3128

        blockproxy --target example.com:443 --target-ip 93.184.216.34
    """
    file_config: dict = {}
    if config_file:
        try:
            file_config = flatten_config(load_config_from_file(config_file))
            console.print(f"Loaded config from {config_file}", style="dim")
        except Exception as e:
            console.print(f"[red]Failed to load config: {e}[/red]")
            sys.exit(1)

    if port is None:
        port = int(file_config.get("port", DEFAULT_PORT))
    if target is None:
        target = file_config.get("target")
    if target_ip is None:
        target_ip = file_config.get("target_ip")
    if listen_host is None:
        listen_host = file_config.get("listen_host", "0.0.0.0")

    if not target:
        raise click.UsageError("Missing option '--target' / '-t'.")

    settings = get_settings()
    effective_log_level = "debug" if verbose else (log_level or settings.log_level)
    configure_logging(effective_log_level)

    try:
        config = ProxyConfig(
            listen_host=listen_host,
            listen_port=port,
            target_host_port=str(target),
            target_ip=target_ip,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        sys.exit(1)

    console.print(BANNER, style="cyan")
    console.print(_summary_table(config))

    serve(config, settings)


def _summary_table(config: ProxyConfig) -> Table:
    table = Table(show_header=False, box=None)
    table.add_column("Setting", style="bold")
    table.add_column("Value", style="cyan")
    table.add_row("Listen", f"{config.listen_host}:{config.listen_port}")
    table.add_row("Target", config.target_host_port)
    table.add_row("Target IP", config.target_ip or "-")
    return table


def serve(config: ProxyConfig, settings: ProxySettings) -> None:
    """Run the proxy until interrupted."""
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(run_server(config, settings))
    console.print("[green]Proxy stopped.[/green]")


async def run_server(config: ProxyConfig, settings: ProxySettings) -> None:
    """Run the proxy server."""
    server = ProxyServer(config, settings)

    main_task = asyncio.current_task()
    loop = asyncio.get_running_loop()
    if main_task is not None:
        # SIGINT is already turned into cancellation by asyncio.run
        with contextlib.suppress(NotImplementedError, AttributeError):
            loop.add_signal_handler(signal.SIGTERM, main_task.cancel)

    try:
        await server.start()
        console.print(
            f"Proxy listening on port {server.port}, press Ctrl+C to stop",
            style="green",
        )

        await asyncio.Event().wait()
    except asyncio.CancelledError:
        console.print("\nShutting down...", style="yellow")
    finally:
        await server.stop()


if __name__ == "__main__":
    main()
