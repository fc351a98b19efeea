"""cloudsmith-sync command line.

Usage:
    cloudsmith-sync --config /etc/cloudsmith-sync.toml serve --port 8080
    cloudsmith-sync publish git@github.com:acme/widgets.git refs/tags/1.2.0
    cloudsmith-sync publish git@github.com:acme/widgets.git refs/heads/feature --deleted
"""

from __future__ import annotations

import asyncio
import os
import sys

import click

from cloudsmith_sync.api.deps import build_container
from cloudsmith_sync.core.config import ConfigError, load_config
from cloudsmith_sync.core.logging import setup_logging
from cloudsmith_sync.pipeline import PipelineOutcome, PushEvent


@click.group()
@click.option(
    "--config",
    "config_path",
    default=None,
    envvar="CLOUDSMITH_SYNC_CONFIG",
    help="Path to the TOML config file",
)
@click.option("--log-level", default=None, help="Override CLOUDSMITH_SYNC_LOG_LEVEL")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, log_level: str | None) -> None:
    """Publish Composer packages to Cloudsmith from git refs."""
    if log_level:
        os.environ["CLOUDSMITH_SYNC_LOG_LEVEL"] = log_level
    ctx.obj = {"config_path": config_path}


@main.command("serve")
@click.option("--host", default="0.0.0.0", help="Bind address")
@click.option("--port", default=8080, type=int, help="Bind port")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Run the webhook server."""
    import uvicorn

    config_path = ctx.obj["config_path"]
    if config_path:
        os.environ["CLOUDSMITH_SYNC_CONFIG"] = config_path
    uvicorn.run(
        "cloudsmith_sync.api:create_app",
        factory=True,
        host=host,
        port=port,
        log_config=None,
    )


@main.command("publish")
@click.argument("remote_url")
@click.argument("ref")
@click.option("--deleted", is_flag=True, help="Treat the ref as deleted (unpublish only)")
@click.pass_context
def publish(ctx: click.Context, remote_url: str, ref: str, deleted: bool) -> None:
    """Run the pipeline once for REF of the repository at REMOTE_URL."""
    setup_logging()
    try:
        config = load_config(ctx.obj["config_path"])
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    event = PushEvent(ref=ref, remote_url=remote_url, deleted=deleted)
    outcome = asyncio.run(_publish(config, event))
    click.echo(outcome.body or f"{outcome.status_code} done")
    if not outcome.ok:
        sys.exit(1)


async def _publish(config, event: PushEvent) -> PipelineOutcome:
    container = build_container(config)
    try:
        return await container.orchestrator.run(event)
    finally:
        await container.close()
