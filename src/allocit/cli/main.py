"""Main CLI entry point."""

import click
from allocit.config import load_config
from allocit.database.factories import create_sqlite_database
from allocit.logger import setup_logging

# Import and register all commands at module level
from allocit.cli.commands import (
    batch,
    category,
    rule,
    transaction,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides ALLOCIT_DB_PATH environment variable)",
    envvar="ALLOCIT_DB_PATH",
)
@click.option(
    "--ignore-case/--match-case",
    default=None,
    help="Compare rule text conditions ignoring case (default from config)",
)
@click.pass_context
def cli(ctx, db_path: str | None, ignore_case: bool | None):
    """Allocit - Transaction allocation and bulk reconciliation.

    Split bank transactions into categorized allocation rows, classify them
    with ordered rules and apply bulk operations over many transactions.
    """
    ctx.ensure_object(dict)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        config = load_config()
        setup_logging(config)

        if db_path is None:
            config.db_path.parent.mkdir(parents=True, exist_ok=True)
            db_path = str(config.db_path)
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.obj["case_sensitive"] = (
            config.case_sensitive if ignore_case is None else not ignore_case
        )


# Register all commands
category.register_commands(cli)
transaction.register_commands(cli)
rule.register_commands(cli)
batch.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
