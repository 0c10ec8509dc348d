"""CLI entry point for the signaling relay."""

import json
import os
from pathlib import Path

import click

from synapsed import __version__
from synapsed.config import apply_env_overrides, load_config
from synapsed.errors import ConfigError
from synapsed.ice import ice_servers_from_config, ice_servers_to_list
from synapsed.logging import setup_logging


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help="Path to config file.",
)
@click.pass_context
def main(ctx: click.Context, config: Path | None) -> None:
    """Synapsed relay - subscription-gated WebRTC signaling."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = apply_env_overrides(load_config(config), os.environ)
    ctx.obj["logger"] = setup_logging(ctx.obj["config"])


@main.command()
@click.option("--port", "-p", type=int, default=None, help="Override listen port.")
@click.pass_context
def serve(ctx: click.Context, port: int | None) -> None:
    """Run the relay HTTP server.

    With the default memory backend, proofs and peers come only from the
    config file's memory section; use backend: aws for deployments.
    """
    import asyncio

    from synapsed.factory import create_components
    from synapsed.server import RelayServer

    config = ctx.obj["config"]
    if port is not None:
        config.port = port

    try:
        components = create_components(config)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        raise SystemExit(1)

    async def _serve():
        server = RelayServer(components.gateway, max_body_size=config.max_body_size)
        try:
            await server.start(config.bind_address, config.port)
            click.echo(f"Relay listening on {config.bind_address}:{config.port}")
            click.echo("Press Ctrl+C to stop")
            await asyncio.Event().wait()
        finally:
            await server.stop()

    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        click.echo("\nShutting down...")


@main.command()
@click.pass_context
def ice(ctx: click.Context) -> None:
    """Print the ICE servers attached to offers and answers."""
    servers = ice_servers_from_config(ctx.obj["config"].ice)
    click.echo(json.dumps(ice_servers_to_list(servers), indent=2))


@main.command()
def version() -> None:
    """Show version."""
    click.echo(f"synapsed version {__version__}")
