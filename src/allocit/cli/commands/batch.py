"""Bulk operation commands."""

import click
from allocit.cli.error_handling import handle_domain_error
from allocit.domain.batch import BatchOperation, BulkBatchProcessor
from allocit.domain.entities import BatchResult, TransactionType
from allocit.domain.errors import DomainError
from allocit.domain.matching import ConditionMatcher
from allocit.domain.rules import RuleResolver


def run_batch(ctx, operation: BatchOperation, transaction_ids: tuple[int, ...], params: dict) -> None:
    """Run a batch operation and print one line per transaction."""
    db = ctx.obj["db"]
    resolver = RuleResolver(ConditionMatcher(case_sensitive=ctx.obj.get("case_sensitive", True)))
    processor = BulkBatchProcessor(db, resolver=resolver)

    try:
        result = processor.run(operation, list(transaction_ids), params)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    print_result(result)
    if not result.all_success:
        ctx.exit(1)


def print_result(result: BatchResult) -> None:
    for row in result.results:
        if row.ok:
            click.echo(f"✓ Transaction {row.id}: {row.message}")
        else:
            click.echo(f"✗ Transaction {row.id} ({row.status_code}): {row.message}")
    click.echo(f"\nResults: {result.success} succeeded, {result.failed} failed")


@click.group()
def batch_group():
    """Apply one operation to many transactions.

    Each transaction is processed on its own; a failure is reported and the
    remaining transactions are still processed.
    """
    pass


@batch_group.command("retype")
@click.argument("transaction_ids", nargs=-1, required=True, type=int)
@click.option(
    "--type",
    "txn_type",
    type=click.Choice([t.name.lower() for t in TransactionType], case_sensitive=False),
    required=True,
    help="New transaction type",
)
@click.pass_context
def retype(ctx, transaction_ids: tuple[int, ...], txn_type: str):
    """Set the type of transactions; rows are kept.

    Examples:
        allocit batch retype 1 2 3 --type expense
    """
    run_batch(ctx, BatchOperation.RETYPE, transaction_ids, {"type": txn_type})


@batch_group.command("recategorize")
@click.argument("transaction_ids", nargs=-1, required=True, type=int)
@click.option("--expense-category", "expense_type_id", type=int, help="Category ID for expense transactions")
@click.option("--income-category", "income_type_id", type=int, help="Category ID for income transactions")
@click.pass_context
def recategorize(ctx, transaction_ids: tuple[int, ...], expense_type_id: int | None, income_type_id: int | None):
    """Set the category of every row of transactions.

    Expense transactions get the expense category and income transactions the
    income category. Transactions without rows get one full-amount row.

    Examples:
        allocit batch recategorize 4 5 --expense-category 2
    """
    run_batch(
        ctx,
        BatchOperation.RECATEGORIZE,
        transaction_ids,
        {"expense_type_id": expense_type_id, "income_type_id": income_type_id},
    )


@batch_group.command("split-loan")
@click.argument("transaction_ids", nargs=-1, required=True, type=int)
@click.option("--principal-category", "principal_category_id", type=int, required=True, help="Category ID for loan principal")
@click.option("--interest-category", "interest_category_id", type=int, required=True, help="Category ID for loan interest")
@click.option("--fee-category", "handling_fee_category_id", type=int, help="Category ID for handling fees")
@click.pass_context
def split_loan(
    ctx,
    transaction_ids: tuple[int, ...],
    principal_category_id: int,
    interest_category_id: int,
    handling_fee_category_id: int | None,
):
    """Split loan payments into principal, interest and fee rows.

    The breakdown is read from the bank message, e.g.
    "Lyhennys 400,00 euroa Korko 50,00 euroa Kulut 2,50 euroa".

    Examples:
        allocit batch split-loan 7 8 --principal-category 10 --interest-category 11
    """
    run_batch(
        ctx,
        BatchOperation.SPLIT_LOAN_PAYMENT,
        transaction_ids,
        {
            "principal_category_id": principal_category_id,
            "interest_category_id": interest_category_id,
            "handling_fee_category_id": handling_fee_category_id,
        },
    )


@batch_group.command("delete")
@click.argument("transaction_ids", nargs=-1, required=True, type=int)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete(ctx, transaction_ids: tuple[int, ...], yes: bool):
    """Delete transactions and their rows."""
    if not yes and not click.confirm(f"Are you sure you want to delete {len(set(transaction_ids))} transaction(s)?"):
        click.echo("Deletion cancelled.")
        return
    run_batch(ctx, BatchOperation.DELETE, transaction_ids, {})


@batch_group.command("accept")
@click.argument("transaction_ids", nargs=-1, required=True, type=int)
@click.pass_context
def accept(ctx, transaction_ids: tuple[int, ...]):
    """Mark transactions as accepted.

    Accepted transactions can no longer be retyped or reallocated.
    """
    run_batch(ctx, BatchOperation.ACCEPT, transaction_ids, {})


@batch_group.command("apply-rules")
@click.argument("transaction_ids", nargs=-1, required=True, type=int)
@click.pass_context
def apply_rules(ctx, transaction_ids: tuple[int, ...]):
    """Classify pending transactions with the first matching rule."""
    run_batch(ctx, BatchOperation.APPLY_RULES, transaction_ids, {})


def register_commands(cli):
    """Register batch commands with main CLI."""
    cli.add_command(batch_group, name="batch")
