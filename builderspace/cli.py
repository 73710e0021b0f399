import click


@click.group()
def main() -> None:
    """BuilderSpace - team workspaces with real-time chat, links and tasks."""


@main.command()
@click.option("--host", default=None, help="Bind host (default: from BUILDERSPACE_HOST or 0.0.0.0).")
@click.option("--port", default=None, type=int, help="Bind port (default: from BUILDERSPACE_PORT or 8000).")
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload for development.")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Start the HTTP + WebSocket server."""
    import uvicorn

    from builderspace.server.settings import BuilderSpaceSettings

    settings = BuilderSpaceSettings()

    uvicorn.run(
        "builderspace.server.app:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level="warning",  # uvicorn's own logging is intercepted by loguru
        ws="websockets",
    )


@main.command("check-url")
@click.argument("url")
def check_url(url: str) -> None:
    """Validate a link URL the way shared links are validated."""
    from builderspace.server.url_validation import validate_url

    result = validate_url(url)
    if result.is_valid:
        click.echo(f"OK {result.sanitized_url}")
        return
    click.echo(f"REJECTED {result.error}", err=True)
    raise SystemExit(1)



# ---------------------------------------------------------------------------
# Schema migrations
# ---------------------------------------------------------------------------


def _alembic_config():
    """Alembic config for the migrations shipped inside ``builderspace.server``."""
    from pathlib import Path

    from alembic.config import Config

    return Config(str(Path(__file__).parent / "server" / "alembic.ini"))


@main.group()
def db() -> None:
    """Manage the workspace database schema."""


@db.command()
@click.option("--revision", default="head", help="Revision to upgrade to (default: head).")
@click.option("--sql", is_flag=True, help="Print the migration SQL instead of applying it.")
def upgrade(revision: str, sql: bool) -> None:
    """Apply pending migrations."""
    from alembic import command

    command.upgrade(_alembic_config(), revision, sql=sql)
    if not sql:
        click.echo(f"Schema at {revision}.")


@db.command()
@click.option("--revision", default="-1", help="Revision to step back to (default: -1).")
def downgrade(revision: str) -> None:
    """Revert migrations."""
    from alembic import command

    command.downgrade(_alembic_config(), revision)
    click.echo(f"Schema reverted to {revision}.")


@db.command()
@click.argument("message")
def migrate(message: str) -> None:
    """Autogenerate a revision from changes in ``db/tables.py``."""
    from alembic import command

    command.revision(_alembic_config(), message=message, autogenerate=True)
    click.echo(f"New revision: {message}")


@db.command()
def current() -> None:
    """Print the revision the database is at."""
    from alembic import command

    command.current(_alembic_config(), verbose=True)


@db.command()
def history() -> None:
    """List known revisions."""
    from alembic import command

    command.history(_alembic_config(), verbose=True)


if __name__ == "__main__":
    main()
