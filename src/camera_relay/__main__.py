"""CLI entry point for camera-relay."""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from . import __version__
from .exceptions import CameraRelayError, ConfigError

logger = logging.getLogger("camera-relay")


# ── Helpers ──────────────────────────────────────────────


def _configure_logging(verbose: bool = False) -> None:
    """Console logging for the CLI and the server."""
    log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(logging.Formatter(log_format, datefmt=date_format))

    level = logging.DEBUG if verbose else logging.INFO
    # No-op when the host process (or a test runner) already set up logging
    logging.basicConfig(level=level, handlers=[console])
    logger.setLevel(level)
    for noisy in ("aiohttp.access", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _load(ctx: click.Context):
    from .config import load_config

    try:
        return load_config(ctx.obj["config_path"])
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


# ── CLI Commands ─────────────────────────────────────────


@click.group()
@click.version_option(version=__version__, prog_name="camera-relay")
@click.option("--config", "config_path", default=None, help="Config file path")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """camera-relay: find RTSP cameras and feed one to a streaming relay."""
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@main.command()
@click.option("--host", default=None, help="Override listen address")
@click.option("--port", default=None, type=int, help="Override HTTP port")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Run the HTTP API."""
    from aiohttp import web

    from .api import create_app
    from .network import locate_subnet
    from .supervisor import RelaySupervisor

    config = _load(ctx)
    if host:
        config.server.host = host
    if port:
        config.server.port = port

    state = {
        "config": config,
        "supervisor": RelaySupervisor(config.relay.command()),
    }
    app = create_app(state)

    subnet = locate_subnet()
    click.echo("camera-relay")
    click.echo("=" * 40)
    click.echo(f"Server:   http://localhost:{config.server.port}")
    click.echo(f"Subnet:   {subnet + '*' if subnet else 'not detected'}")
    click.echo(f"Relay:    {' '.join(config.relay.command())}")
    click.echo("Press Ctrl+C to stop\n")

    web.run_app(
        app,
        host=config.server.host,
        port=config.server.port,
        print=None,
    )


@main.command()
@click.option("--relay-binary", default=None, help="Relay executable")
@click.option("--relay-config", default=None, help="Relay config file to rewrite")
@click.option("--credentials", default=None, help="Fallback camera user:pass")
@click.option("--port", default=None, type=int, help="HTTP port")
@click.option("--force", is_flag=True, help="Overwrite an existing settings file")
@click.pass_context
def setup(
    ctx: click.Context,
    relay_binary: str | None,
    relay_config: str | None,
    credentials: str | None,
    port: int | None,
    force: bool,
) -> None:
    """Write a settings file."""
    from pathlib import Path

    from .config import DEFAULT_CONFIG_PATH, CameraRelayConfig, save_config

    config_file = Path(ctx.obj["config_path"] or DEFAULT_CONFIG_PATH).expanduser()
    if config_file.exists() and not force:
        raise click.ClickException(
            f"{config_file} already exists (use --force to overwrite)"
        )

    config = CameraRelayConfig()
    if relay_binary:
        config.relay.binary = relay_binary
    if relay_config:
        config.relay.config_path = relay_config
    if credentials:
        config.relay.default_credentials = credentials
    if port:
        config.server.port = port

    saved_path = save_config(config, config_file)
    click.echo(f"Config saved to {saved_path}")
    click.echo(f"Relay:    {' '.join(config.relay.command())}")


@main.command()
def subnet() -> None:
    """Show the local subnet and address."""
    from .network import locate_local_address, locate_subnet

    prefix = locate_subnet()
    if prefix is None:
        click.echo("Subnet:   not detected (no LAN interface)")
    else:
        click.echo(f"Subnet:   {prefix}*")
    click.echo(f"Local IP: {locate_local_address()}")


@main.command()
@click.option("--timeout", default=None, type=float, help="Per-host timeout (s)")
@click.pass_context
def scan(ctx: click.Context, timeout: float | None) -> None:
    """Scan the local subnet for open RTSP ports."""
    from .discover import discover

    config = _load(ctx)
    if timeout is not None:
        config.scan.timeout_seconds = timeout

    result = asyncio.run(discover(config))
    if result.subnet is None:
        raise click.ClickException("Unable to get subnet")

    if not result.hosts:
        click.echo("No cameras found.")
        return
    click.echo(f"Found {len(result.hosts)} device(s):")
    for host in sorted(result.hosts, key=lambda h: int(h.rsplit(".", 1)[1])):
        click.echo(f"  {host}")


@main.command("set-camera")
@click.argument("ip")
@click.pass_context
def set_camera(ctx: click.Context, ip: str) -> None:
    """Point the relay config at the camera at IP."""
    from .source import SOURCE_PORT, apply_source_address

    config = _load(ctx)
    try:
        update = apply_source_address(
            config.relay.config_path,
            ip,
            default_credentials=config.relay.default_credentials,
        )
    except CameraRelayError as e:
        raise click.ClickException(str(e)) from e

    verb = "Updated" if update.changed else "Unchanged"
    click.echo(f"{verb}: {update.path}")
    click.echo(f"Source:  {update.address}:{SOURCE_PORT}")


if __name__ == "__main__":
    main()
