"""CLI commands for Stratum."""

import asyncio
import sys
from pathlib import Path

import click


@click.group()
@click.version_option(package_name="stratum")
def cli():
    """Stratum - versioned, release-aware content storage."""
    pass


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8080, type=int, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.option("--workers", default=1, type=int, help="Number of worker processes")
@click.option(
    "--log-level",
    default="info",
    type=click.Choice(["debug", "info", "warning", "error"]),
    help="Logging level",
)
def serve(host, port, reload, workers, log_level):
    """Run the Stratum API server."""
    import signal

    from hypercorn.asyncio import serve as hypercorn_serve
    from hypercorn.config import Config

    config = Config()
    config.application_path = "stratum.asgi:app"
    config.bind = [f"{host}:{port}"]
    config.workers = 1 if reload else workers
    config.loglevel = log_level.upper()
    config.include_server_header = False

    if reload:
        config.use_reloader = True
        from hypercorn.run import run
        run(config)
        return

    from stratum.asgi import app

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


def _run_alembic(args: list[str]) -> None:
    """Build an Alembic Config programmatically and run the given command."""
    from alembic.config import Config, CommandLine

    alembic_ini = Path(__file__).parent / "alembic.ini"
    if not alembic_ini.exists():
        click.echo("Error: Could not find alembic.ini", err=True)
        sys.exit(1)

    cfg = Config(str(alembic_ini))

    # Parse and run through CommandLine for proper subcommand dispatch
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
        stratum db upgrade head     # Apply all migrations
        stratum db downgrade -1     # Rollback one migration
        stratum db current          # Show current revision
        stratum db history          # Show migration history
    """
    args = ctx.args
    if not args:
        click.echo(ctx.get_help())
        return

    _run_alembic(args)


def _run(operation):
    """Run ``operation(session)`` against the configured database and return its result."""
    from stratum.app_config import build_db_config
    from stratum.config import configure_logging, get_settings

    settings = get_settings()
    configure_logging(settings)
    db_config = build_db_config(settings)

    async def runner():
        try:
            async with db_config.get_session() as session:
                return await operation(session)
        finally:
            await db_config.get_engine().dispose()

    return asyncio.run(runner())


def _fail(exc) -> None:
    click.echo(f"Error: {exc.message}", err=True)
    sys.exit(1)


@cli.group()
def releases():
    """Inspect and advance a collection's release timeline."""
    pass


@releases.command("list")
@click.argument("slug")
def list_releases(slug):
    """List the releases of collection SLUG, oldest first."""
    from stratum.db.services import collection_service, release_service
    from stratum.lib.exceptions import StratumError

    async def operation(session):
        collection = await collection_service.get_collection_by_slug(session, slug)
        return collection.active_release, release_service.list_releases(collection)

    try:
        current, timeline = _run(operation)
    except StratumError as exc:
        _fail(exc)
        return

    for release in timeline:
        marker = "*" if release["name"] == current else " "
        created = release.get("created_at") or "-"
        click.echo(f"{marker} {release['name']}  {created}  {release.get('created_by') or '-'}")


@releases.command("create")
@click.argument("slug")
@click.argument("name")
@click.option("--copy-contents", is_flag=True, help="Copy every content's latest version into the new release")
@click.option("--actor", default=None, help="Identity recorded as release creator")
def create_release(slug, name, copy_contents, actor):
    """Finalize the current release of SLUG and start release NAME."""
    from stratum.db.services import collection_service, release_service
    from stratum.lib.exceptions import StratumError

    async def operation(session):
        collection = await collection_service.get_collection_by_slug(session, slug)
        previous = collection.active_release
        await release_service.create_release(session, collection, name, actor, copy_contents=copy_contents)
        return previous

    try:
        previous = _run(operation)
    except StratumError as exc:
        _fail(exc)
        return

    click.echo(f"Finalized '{previous}', current release is now '{name.strip()}'")


@releases.command("finalize")
@click.argument("slug")
def finalize_release(slug):
    """Mark each content's latest version in the current release as the release end."""
    from stratum.db.services import collection_service, release_service
    from stratum.lib.exceptions import StratumError

    async def operation(session):
        collection = await collection_service.get_collection_by_slug(session, slug)
        marked = await release_service.finalize_current_release(session, collection)
        return collection.active_release, marked

    try:
        release, marked = _run(operation)
    except StratumError as exc:
        _fail(exc)
        return

    click.echo(f"Finalized '{release}': {marked} versions marked")


@cli.command()
@click.argument("slug")
@click.option("--dry-run", is_flag=True, help="Only report how many versions would be deleted")
def purge(slug, dry_run):
    """Delete intermediate versions of every content in collection SLUG.

    The latest version of each content and all release-end versions are kept.
    """
    from stratum.db.services import collection_service, release_service
    from stratum.lib.exceptions import StratumError

    async def operation(session):
        collection = await collection_service.get_collection_by_slug(session, slug)
        if dry_run:
            return await release_service.get_purge_preview_count(session, collection)
        return await release_service.purge_collection_versions(session, collection)

    try:
        count = _run(operation)
    except StratumError as exc:
        _fail(exc)
        return

    if dry_run:
        click.echo(f"{count} versions would be deleted")
    else:
        click.echo(f"Deleted {count} versions")


if __name__ == "__main__":
    cli()
