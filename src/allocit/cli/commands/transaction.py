"""Transaction management commands."""

import click
from allocit.cli.error_handling import handle_domain_error
from allocit.domain import row_reconciler
from allocit.domain.allocation_row import EditedField, apply_edit
from allocit.domain.entities import (
    AllocationRow,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from allocit.domain.errors import DomainError
from allocit.domain.transaction import ROW_CATEGORY_TYPES, TransactionService
from allocit.utils.amount_parser import parse_amount
from allocit.utils.date_parser import parse_date

TYPE_CHOICES = [t.name.lower() for t in TransactionType]
FIELD_CHOICES = {
    "total": EditedField.ROW_TOTAL,
    "quantity": EditedField.QUANTITY,
    "description": EditedField.DESCRIPTION,
    "category": EditedField.CATEGORY,
}


def print_rows(rows: list[AllocationRow], transaction: Transaction) -> None:
    """Print allocation rows with the remaining unallocated amount."""
    click.echo(f"{'#':<4} {'Description':<30} {'Qty':>4} {'Unit':>12} {'Total':>12} {'Category':>9}")
    click.echo("-" * 76)
    for index, row in enumerate(rows):
        category = str(row.category_id) if row.category_id is not None else "-"
        click.echo(
            f"{index:<4} {row.description[:30]:<30} {row.quantity:>4} "
            f"{row.unit_amount:>12,.2f} {row.row_total:>12,.2f} {category:>9}"
        )
    click.echo("-" * 76)
    remainder = row_reconciler.unallocated_amount(rows, transaction)
    suffix = " (over-allocated)" if row_reconciler.is_over_allocated(rows, transaction) else ""
    click.echo(f"Unallocated: {remainder:,.2f}{suffix}")


@click.group()
def transaction_group():
    """Manage transactions and their allocation rows."""
    pass


@transaction_group.command("add")
@click.option("--amount", required=True, help="Transaction amount (e.g., 123.45 or -123,45)")
@click.option("--type", "txn_type", type=click.Choice(TYPE_CHOICES, case_sensitive=False), default="unknown", help="Transaction type (default: unknown)")
@click.option("--sender", help="Sender name")
@click.option("--receiver", help="Receiver name")
@click.option("--description", help="Bank message")
@click.option("--date", help="Transaction date (YYYY-MM-DD or relative like 'today', 'yesterday')")
@click.pass_context
def add_transaction(
    ctx,
    amount: str,
    txn_type: str,
    sender: str | None,
    receiver: str | None,
    description: str | None,
    date: str | None,
) -> None:
    """Add a pending transaction.

    Examples:
        allocit transaction add --amount -120.00 --receiver "K-Market" --date today
        allocit transaction add --amount 450 --type expense --description "Lyhennys 400,00 euroa Korko 50,00 euroa"
    """
    db = ctx.obj["db"]
    service = TransactionService(db)

    try:
        txn_amount = parse_amount(amount)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)

    txn_date = None
    if date is not None:
        try:
            txn_date = parse_date(date)
        except ValueError as e:
            click.echo(f"Error: Invalid date format: {e}", err=True)
            ctx.exit(1)

    try:
        transaction_id = service.create_transaction(
            amount=txn_amount,
            type=TransactionType[txn_type.upper()],
            sender=sender,
            receiver=receiver,
            description=description,
            transaction_date=txn_date,
        )
        click.echo(f"Created transaction {transaction_id}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@transaction_group.command("list")
@click.option("--pending", "status", flag_value="pending", help="Show only pending transactions")
@click.option("--accepted", "status", flag_value="accepted", help="Show only accepted transactions")
@click.option("--type", "txn_type", type=click.Choice(TYPE_CHOICES, case_sensitive=False), help="Show only one transaction type")
@click.pass_context
def list_transactions(ctx, status: str | None, txn_type: str | None):
    """List transactions with optional status and type filters."""
    db = ctx.obj["db"]
    service = TransactionService(db)

    transactions = service.list_transactions(
        status=TransactionStatus[status.upper()] if status else None,
        type=TransactionType[txn_type.upper()] if txn_type else None,
    )

    if not transactions:
        click.echo("No transactions found.")
        return

    click.echo(f"\nFound {len(transactions)} transaction(s):")
    click.echo("-" * 100)
    click.echo(
        f"{'ID':<6} {'Date':<12} {'Amount':>12} {'Type':<10} {'Status':<10} {'Counterparty':<20} {'Description':<24}"
    )
    click.echo("-" * 100)

    for txn in transactions:
        counterparty = (txn.receiver if txn.amount < 0 else txn.sender) or ""
        click.echo(
            f"{txn.id:<6} {str(txn.transaction_date or ''):<12} {txn.amount:>12,.2f} "
            f"{txn.type.name.lower():<10} {txn.status.name.lower():<10} "
            f"{counterparty[:20]:<20} {(txn.description or '')[:24]:<24}"
        )


@transaction_group.command("show")
@click.argument("transaction_id", type=int)
@click.pass_context
def show_transaction(ctx, transaction_id: int) -> None:
    """Show a transaction and its stored allocation rows."""
    db = ctx.obj["db"]
    service = TransactionService(db)

    try:
        txn = service.require_transaction(transaction_id)
        rows = service.get_rows(transaction_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"\nTransaction ID: {txn.id}")
    click.echo(f"  Date: {txn.transaction_date or ''}")
    click.echo(f"  Amount: {txn.amount:,.2f}")
    click.echo(f"  Type: {txn.type.name.lower()}")
    click.echo(f"  Status: {txn.status.name.lower()}")
    if txn.sender:
        click.echo(f"  Sender: {txn.sender}")
    if txn.receiver:
        click.echo(f"  Receiver: {txn.receiver}")
    if txn.description:
        click.echo(f"  Description: {txn.description}")

    if not rows:
        click.echo("\nNo allocation rows.")
        return
    click.echo("")
    print_rows(rows, txn)


@transaction_group.command("rows")
@click.argument("transaction_id", type=int)
@click.option("--add", "add_row", is_flag=True, help="Append a row holding the unallocated remainder")
@click.option("--remove", "remove_index", type=int, help="Remove the row at this index")
@click.option(
    "--edit",
    nargs=3,
    type=(int, click.Choice(list(FIELD_CHOICES)), str),
    help="Edit a row field: INDEX FIELD VALUE (field: total, quantity, description, category)",
)
@click.option("--type", "txn_type", type=click.Choice(TYPE_CHOICES, case_sensitive=False), help="Change the transaction type and start over with one row")
@click.pass_context
def edit_rows(
    ctx,
    transaction_id: int,
    add_row: bool,
    remove_index: int | None,
    edit: tuple | None,
    txn_type: str | None,
) -> None:
    """Show or edit the allocation rows of a transaction.

    Without options the editable rows are shown; a transaction without rows
    gets one row covering the full amount. Changes are saved together.

    Examples:
        allocit transaction rows 1
        allocit transaction rows 1 --edit 0 total 80.00 --add
        allocit transaction rows 1 --edit 1 category 3
        allocit transaction rows 1 --type expense
    """
    db = ctx.obj["db"]
    service = TransactionService(db)

    try:
        txn = service.require_transaction(transaction_id)
        defaults = {"description": txn.description or ""}
        new_type = None
        if txn_type is not None:
            new_type = TransactionType[txn_type.upper()]
            # Only expense and income transactions carry rows
            if new_type in ROW_CATEGORY_TYPES:
                rows = row_reconciler.reset_for_type_change(txn, defaults)
            else:
                rows = []
        else:
            rows = service.get_editable_rows(transaction_id)

        changed = new_type is not None
        if edit:
            index, field_name, value = edit
            if index < 0 or index >= len(rows):
                click.echo(f"Error: Row {index} not found", err=True)
                ctx.exit(1)
            if field_name == "category":
                value = int(value) if value else None
            elif field_name == "total":
                value = parse_amount(value)
            rows[index] = apply_edit(rows[index], FIELD_CHOICES[field_name], value)
            changed = True
        if remove_index is not None:
            rows = row_reconciler.remove_row(rows, remove_index)
            changed = True
        if add_row:
            rows = row_reconciler.add_row(rows, txn, defaults)
            changed = True

        if changed:
            rows = service.save_allocation(transaction_id, rows, transaction_type=new_type)
            txn = service.require_transaction(transaction_id)
            click.echo(f"Saved {len(rows)} row(s) for transaction {transaction_id}")
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    print_rows(rows, txn)


@transaction_group.command("delete")
@click.argument("transaction_id", type=int)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_transaction(ctx, transaction_id: int, yes: bool) -> None:
    """Delete a transaction.

    Examples:
        allocit transaction delete 1
    """
    db = ctx.obj["db"]
    service = TransactionService(db)

    # Get transaction info for display
    txn = service.get_transaction(transaction_id)
    if txn is None:
        click.echo(f"Error: Transaction {transaction_id} not found", err=True)
        ctx.exit(1)

    # Confirm deletion
    if not yes and not click.confirm(f"Are you sure you want to delete transaction {transaction_id}?"):
        click.echo("Deletion cancelled.")
        return

    try:
        service.delete_transaction(transaction_id)
        click.echo(f"Deleted transaction {transaction_id}")
    except DomainError as e:
        handle_domain_error(ctx, e)


def register_commands(cli: click.Group) -> None:
    """Register transaction commands with main CLI."""
    cli.add_command(transaction_group, name="transaction")
