"""Main CLI entry point."""

import click
from tallyup.database.factories import create_database
from tallyup.logger import configure_logging

# Import and register all commands at module level
from tallyup.cli.commands import (
    entries,
    reconcile,
    installments,
    rule,
    categorize,
)

DEFAULT_USER = "local"


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides TALLYUP_DB_PATH environment variable)",
    envvar="TALLYUP_DB_PATH",
)
@click.option(
    "--database-url",
    help="SQLAlchemy database URL; takes precedence over --db-path",
    envvar="TALLYUP_DATABASE_URL",
)
@click.option(
    "--user",
    "user_id",
    default=DEFAULT_USER,
    show_default=True,
    help="User the commands act for",
    envvar="TALLYUP_USER",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level (overrides TALLYUP_LOG_LEVEL)",
    envvar="TALLYUP_LOG_LEVEL",
)
@click.pass_context
def cli(ctx, db_path: str | None, database_url: str | None, user_id: str, log_level: str | None):
    """Tallyup - receipt and bank transaction reconciliation.

    Finds duplicates between receipts and bank transactions, flags
    transfers between your own accounts and categorizes spending with
    rules and merchant history.
    """
    ctx.ensure_object(dict)
    configure_logging(level=log_level)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_database(database_url=database_url, database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.obj["user_id"] = user_id
        ctx.call_on_close(db.disconnect)


# Register all commands
entries.register_commands(cli)
reconcile.register_commands(cli)
installments.register_commands(cli)
rule.register_commands(cli)
categorize.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
