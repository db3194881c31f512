"""Category management commands."""

import click
from allocit.cli.error_handling import handle_domain_error
from allocit.domain.category import CategoryService
from allocit.domain.entities import CategoryType
from allocit.domain.errors import DomainError


@click.group()
def category_group():
    """Manage expense and income categories."""
    pass


@category_group.command("list")
@click.option(
    "--type",
    "category_type",
    type=click.Choice(["expense", "income"], case_sensitive=False),
    help="Show only one category type",
)
@click.pass_context
def list_categories(ctx, category_type: str | None):
    """List categories."""
    db = ctx.obj["db"]
    service = CategoryService(db)

    type_filter = CategoryType[category_type.upper()] if category_type else None
    categories = service.list_categories(category_type=type_filter)
    if not categories:
        click.echo("No categories found. Use 'category create' to add one.")
        return

    click.echo("\nCategories:")
    for cat in categories:
        key_str = f" [{cat.key}]" if cat.key else ""
        click.echo(f"{cat.name} (ID: {cat.id}, {cat.category_type.name.lower()}){key_str}")


@category_group.command("create")
@click.argument("name")
@click.option(
    "--type",
    "category_type",
    type=click.Choice(["expense", "income"], case_sensitive=False),
    default="expense",
    help="Category type (default: expense)",
)
@click.option("--key", help="Stable key, e.g. 'loan-interest' for the loan payment split")
@click.pass_context
def create_category(ctx, name: str, category_type: str, key: str | None):
    """Create a new category.

    Examples:
        allocit category create Groceries
        allocit category create Salary --type income
        allocit category create "Loan interest" --key loan-interest
    """
    db = ctx.obj["db"]
    service = CategoryService(db)

    try:
        category_id = service.create_category(
            name=name, category_type=CategoryType[category_type.upper()], key=key
        )
        click.echo(f"Created {category_type.lower()} category '{name}' (ID: {category_id})")
    except DomainError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register category commands with main CLI."""
    cli.add_command(category_group, name="category")
