"""CLI commands for Sitepress."""

import asyncio
import json
import os
import sys
from pathlib import Path
from uuid import UUID

import click

from sitepress.lib.errors import Result


def _db_config():
    from sitepress.asgi import create_db_config
    from sitepress.config import get_settings

    return create_db_config(get_settings())


def _with_session(work):
    """Run ``work(session)`` on a fresh event loop and dispose the engine afterwards."""

    async def _main():
        db_config = _db_config()
        try:
            async with db_config.get_session() as session:
                return await work(session)
        finally:
            await db_config.get_engine().dispose()

    return asyncio.run(_main())


def _fail(result: Result) -> None:
    click.echo(f"Error: {result.error.message}", err=True)
    sys.exit(1)


def _echo_warnings(result: Result) -> None:
    for warning in result.warnings:
        click.echo(f"Warning: {warning.message}", err=True)


def _echo_json(payload) -> None:
    click.echo(json.dumps(payload, indent=2))


@click.group()
@click.version_option(package_name="sitepress")
def cli():
    """Sitepress - website versioning, export and deployment."""
    from sitepress.config import get_settings
    from sitepress.lib.observability import configure_logging

    configure_logging(get_settings().log_level)


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8080, type=int, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.option(
    "--log-level",
    default="info",
    type=click.Choice(["debug", "info", "warning", "error"]),
    help="Logging level",
)
def serve(host, port, reload, log_level):
    """Run the Sitepress API server."""
    import signal

    from hypercorn.asyncio import serve as hypercorn_serve
    from hypercorn.config import Config

    config = Config()
    config.application_path = "sitepress.asgi:create_asgi_app()"
    config.bind = [f"{host}:{port}"]
    config.loglevel = log_level.upper()
    config.include_server_header = False

    if reload:
        config.use_reloader = True
        from hypercorn.run import run
        run(config)
        return

    from sitepress.asgi import create_asgi_app

    app = create_asgi_app()
    shutdown_event = asyncio.Event()

    loop = asyncio.new_event_loop()
    loop.add_signal_handler(signal.SIGINT, shutdown_event.set)
    loop.add_signal_handler(signal.SIGTERM, shutdown_event.set)
    try:
        loop.run_until_complete(
            hypercorn_serve(app, config, shutdown_trigger=shutdown_event.wait)
        )
    finally:
        loop.close()


def _run_alembic(project_root: Path, args: list[str]) -> None:
    """Build an Alembic Config programmatically and run the given command."""
    from alembic.config import CommandLine, Config

    package_dir = Path(__file__).parent

    alembic_ini = project_root / "alembic.ini"
    if not alembic_ini.exists():
        alembic_ini = package_dir / "alembic.ini"

    cfg = Config(str(alembic_ini))
    cfg.set_main_option("script_location", str(package_dir / "alembic"))

    cmd = CommandLine()
    options = cmd.parser.parse_args(args)
    if not hasattr(options, "cmd"):
        cmd.parser.error("too few arguments")
    else:
        cfg.cmd_opts = options
        fn, positional, kwarg = options.cmd
        fn(
            cfg,
            *[getattr(options, k, None) for k in positional],
            **{k: getattr(options, k, None) for k in kwarg},
        )


@cli.command(
    context_settings=dict(
        ignore_unknown_options=True,
        allow_extra_args=True,
    )
)
@click.pass_context
def db(ctx):
    """Run database migrations via Alembic.

    \b
    Examples:
        sitepress db upgrade head    # Apply all migrations
        sitepress db downgrade -1    # Rollback one migration
        sitepress db current         # Show current revision
    """
    project_root = Path.cwd()
    os.chdir(project_root)

    if not ctx.args:
        click.echo(ctx.get_help())
        return

    _run_alembic(project_root, list(ctx.args))


@cli.group()
def versions():
    """Create, publish and inspect website versions."""


@versions.command("list")
@click.argument("website_id", type=click.UUID)
@click.option("--status", type=click.Choice(["draft", "production"]), default=None)
@click.option("--limit", type=int, default=None)
def list_versions(website_id: UUID, status, limit):
    """List versions of a website, newest first."""
    from sitepress.db.services import version_service

    result = _with_session(
        lambda session: version_service.get_versions(session, website_id, status=status, limit=limit)
    )
    if not result.ok:
        _fail(result)
    for version in result.value:
        marker = "*" if version.is_production else " "
        archived = " (archived)" if version.is_archived else ""
        click.echo(
            f"{marker} {version.version_number:>4}  {version.version_name:<20} "
            f"{version.trigger_type:<13} {version.page_count} page(s){archived}"
        )


@versions.command("create")
@click.argument("website_id", type=click.UUID)
@click.option("--name", "version_name", default=None, help="Version name (defaults to v<number>)")
@click.option("--description", default=None)
@click.option(
    "--trigger",
    "trigger_type",
    default="manual",
    type=click.Choice(["initial", "feedback", "rollback", "manual", "finalization"]),
)
def create_version(website_id: UUID, version_name, description, trigger_type):
    """Snapshot the current page revisions as a new draft version."""
    from sitepress.db.services import version_service

    result = _with_session(
        lambda session: version_service.create_version(
            session, website_id, version_name=version_name, description=description, trigger_type=trigger_type
        )
    )
    if not result.ok:
        _fail(result)
    click.echo(f"Created version {result.value.version_number} ({result.value.id})")


@versions.command("publish")
@click.argument("version_id", type=click.UUID)
def publish_version(version_id: UUID):
    """Promote a version to production."""
    from sitepress.db.services import version_service

    result = _with_session(lambda session: version_service.publish_version(session, version_id))
    if not result.ok:
        _fail(result)
    click.echo(f"Version {result.value.version_number} is now in production")


@versions.command("switch")
@click.argument("website_id", type=click.UUID)
@click.argument("version_id", type=click.UUID)
def switch_version(website_id: UUID, version_id: UUID):
    """Restore every page to the revision recorded in a version."""
    from sitepress.db.services import version_service

    result = _with_session(lambda session: version_service.switch_to_version(session, website_id, version_id))
    if not result.ok:
        _fail(result)
    _echo_warnings(result)
    click.echo(f"Switched to version {result.value.version_number}")


@versions.command("compare")
@click.argument("old_version_id", type=click.UUID)
@click.argument("new_version_id", type=click.UUID)
@click.option("--json", "as_json", is_flag=True, help="Print the full comparison as JSON")
def compare_versions(old_version_id: UUID, new_version_id: UUID, as_json):
    """Show which pages changed between two versions."""
    from sitepress.db.services import version_service

    result = _with_session(
        lambda session: version_service.compare_versions(session, old_version_id, new_version_id)
    )
    if not result.ok:
        _fail(result)
    if as_json:
        _echo_json(result.value.to_dict())
    else:
        click.echo(result.value.summary)


@versions.command("archive")
@click.argument("website_id", type=click.UUID)
@click.option("--older-than-days", default=30, type=int, show_default=True)
def archive_versions(website_id: UUID, older_than_days):
    """Archive old versions other than the current draft and production."""
    from sitepress.db.services import version_service

    result = _with_session(
        lambda session: version_service.archive_old_versions(session, website_id, older_than_days)
    )
    if not result.ok:
        _fail(result)
    click.echo(f"Archived {result.value} version(s)")


@cli.command()
@click.argument("website_id", type=click.UUID)
@click.option("--name", "version_name", default=None)
def finalize(website_id: UUID, version_name):
    """Snapshot the current draft and publish it to production."""
    from sitepress.db.services import publish_service

    result = _with_session(lambda session: publish_service.finalize(session, website_id, version_name=version_name))
    if not result.ok:
        _fail(result)
    click.echo(f"Version {result.value.version_number} finalized and published")


@cli.command()
@click.argument("website_id", type=click.UUID)
@click.option("--version", "version_id", type=click.UUID, default=None, help="Version to export (default: production)")
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None, help="Zip file to write")
def export(website_id: UUID, version_id, output):
    """Export a website version as a Next.js project zip."""
    from sitepress.db.services import publish_service
    from sitepress.lib.export import zip_export

    result = _with_session(
        lambda session: publish_service.export_version(session, website_id, version_id=version_id)
    )
    if not result.ok:
        _fail(result)
    version, exported = result.value
    path = Path(output or f"website-v{version.version_number}.zip")
    path.write_bytes(zip_export(exported))
    click.echo(f"Wrote {exported.file_count} entries ({exported.total_size} bytes) to {path}")


@cli.command()
@click.argument("website_id", type=click.UUID)
@click.option("--provider", default=None, help="Configured provider name")
@click.option("--project", "project_name", default=None, help="Provider project name")
@click.option("--target", default="production", type=click.Choice(["production", "preview"]))
def deploy(website_id: UUID, provider, project_name, target):
    """Deploy the production version and wait for the outcome."""
    from sitepress.config import get_settings
    from sitepress.db.services import deployment_service, publish_service
    from sitepress.deploy.orchestrator import DeploymentOrchestrator
    from sitepress.deploy.registry import ProviderRegistry

    async def _deploy():
        settings = get_settings()
        db_config = _db_config()
        providers = ProviderRegistry(settings.deploy)
        orchestrator = DeploymentOrchestrator.from_settings(settings, db_config.get_session, providers)
        try:
            async with db_config.get_session() as session:
                result = await publish_service.deploy_production(
                    session, orchestrator, website_id,
                    provider_name=provider, project_name=project_name, target=target,
                )
            if not result.ok:
                return result
            click.echo(f"Deployment {result.value.id} started")
            await orchestrator.wait(result.value.id)
            async with db_config.get_session() as session:
                return Result.success(await deployment_service.get_deployment(session, result.value.id))
        finally:
            await orchestrator.shutdown()
            await providers.close()
            await db_config.get_engine().dispose()

    result = asyncio.run(_deploy())
    if not result.ok:
        _fail(result)
    deployment = result.value
    click.echo(f"Status: {deployment.status}")
    if deployment.url:
        click.echo(f"URL: {deployment.url}")
    if deployment.error:
        click.echo(f"Error: {deployment.error}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
