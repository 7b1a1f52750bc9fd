"""Click CLI for the Craft operations service."""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from craftops.api.app import build_health_checker, build_update_analyzer
from craftops.audit.logger import AuditLogger
from craftops.backup.runners import BackupError, runner_from_settings
from craftops.backup.service import BackupService
from craftops.config import Settings
from craftops.dispatch.github import GitHubDispatcher
from craftops.health.runtime import CraftDatabaseRuntime
from craftops.models import DispatchFailure, WebhookAction


@click.group()
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging verbosity.",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str) -> None:
    """Craft CMS operations: webhook bridge, health, updates, backups."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.ensure_object(dict)
    if "settings" not in ctx.obj:
        ctx.obj["settings"] = Settings.from_env()


@cli.command()
@click.option("--host", default="0.0.0.0", help="Bind address.")
@click.option("--port", default=8080, type=int, help="Bind port.")
def serve(host: str, port: int) -> None:
    """Run the HTTP endpoints with uvicorn."""
    import uvicorn

    uvicorn.run("craftops.api.app:create_app_from_env", factory=True, host=host, port=port)


@cli.command()
@click.argument(
    "action",
    type=click.Choice([a.value for a in WebhookAction], case_sensitive=False),
)
@click.option("--source", default="cli", help="Origin label sent with the dispatch.")
@click.pass_context
def dispatch(ctx: click.Context, action: str, source: str) -> None:
    """Trigger the GitHub workflow for ACTION once."""
    settings: Settings = ctx.obj["settings"]
    dispatcher = ctx.obj.get("dispatcher") or GitHubDispatcher(
        repository=settings.github_repository,
    )
    result = asyncio.run(dispatcher.dispatch(action.lower(), source))
    click.echo(result.model_dump_json(indent=2))
    if isinstance(result, DispatchFailure):
        ctx.exit(1)


@cli.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Run the health checks and print the report."""
    settings: Settings = ctx.obj["settings"]
    runtime = ctx.obj.get("runtime") or CraftDatabaseRuntime.from_settings(settings)
    report = build_health_checker(settings, runtime).run()
    click.echo(report.model_dump_json(indent=2))
    if report.http_status != 200:
        ctx.exit(1)


@cli.command("analyze-updates")
@click.pass_context
def analyze_updates(ctx: click.Context) -> None:
    """Print the update risk report."""
    settings: Settings = ctx.obj["settings"]
    analyzer = ctx.obj.get("analyzer")
    if analyzer is None:
        runtime = None if settings.craft_version else CraftDatabaseRuntime.from_settings(settings)
        analyzer = build_update_analyzer(settings, runtime)
    click.echo(analyzer.analyze().model_dump_json(indent=2))


@cli.command()
@click.pass_context
def backup(ctx: click.Context) -> None:
    """Dump the Craft database to a timestamped file."""
    settings: Settings = ctx.obj["settings"]
    try:
        runner = ctx.obj.get("backup_runner") or runner_from_settings(settings)
    except BackupError as e:
        raise click.ClickException(str(e)) from e

    service = BackupService(
        runner=runner,
        backup_dir=settings.backup_dir,
        audit_logger=AuditLogger.from_settings(settings),
    )
    result = service.run()
    click.echo(result.as_text())
    if not result.success:
        ctx.exit(1)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
