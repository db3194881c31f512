"""Allocation rule commands."""

import click
from allocit.cli.error_handling import handle_domain_error
from allocit.domain.entities import AllocationRule, TransactionType
from allocit.domain.errors import DomainError, ValidationError
from allocit.domain.matching import ConditionMatcher
from allocit.domain.rules import AllocationRuleService, RuleResolver
from allocit.domain.transaction import TransactionService

RULE_TYPE_CHOICES = ["income", "expense", "deposit", "withdraw"]


def parse_condition_option(value: str) -> dict[str, str]:
    """Parse a ``field:operator:value`` condition option.

    The value part may itself contain colons.

    Raises:
        ValidationError: If the option has fewer than three parts
    """
    parts = value.split(":", 2)
    if len(parts) != 3:
        raise ValidationError(
            f"Invalid condition '{value}'. Expected FIELD:OPERATOR:VALUE, "
            "e.g. receiver:contains:K-Market"
        )
    field, operator, condition_value = parts
    return {"field": field.strip(), "operator": operator.strip(), "value": condition_value}


def format_rule(rule: AllocationRule) -> str:
    """Format a rule for one-line display."""
    conditions = " AND ".join(
        f"{c.field.value} {c.operator.value} '{c.value}'" for c in rule.conditions
    )
    category = f" -> category {rule.category_id}" if rule.category_id is not None else ""
    inactive = " (inactive)" if not rule.is_active else ""
    return (
        f"[{rule.priority}] {rule.name} (ID: {rule.id}): "
        f"{rule.transaction_type.name.lower()}{category}{inactive}\n    when {conditions}"
    )


@click.group()
def rule_group():
    """Manage allocation rules."""
    pass


@rule_group.command("create")
@click.argument("name")
@click.option("--type", "rule_type", type=click.Choice(RULE_TYPE_CHOICES, case_sensitive=False), required=True, help="Type assigned to matching transactions")
@click.option("--category", "category_id", type=int, help="Expense or income category ID")
@click.option(
    "--condition",
    "conditions",
    multiple=True,
    required=True,
    help="Condition as FIELD:OPERATOR:VALUE (repeatable; all must match)",
)
@click.option("--inactive", is_flag=True, help="Create the rule switched off")
@click.option("--priority", type=int, help="Position in the rule order (default: last)")
@click.pass_context
def create_rule(
    ctx,
    name: str,
    rule_type: str,
    category_id: int | None,
    conditions: tuple[str, ...],
    inactive: bool,
    priority: int | None,
):
    """Create an allocation rule.

    Fields: sender, receiver, description, amount.
    Operators: equals, contains (text); equals, greaterThan, lessThan (amount).

    Examples:
        allocit rule create Groceries --type expense --category 2 --condition receiver:contains:K-Market
        allocit rule create "Big salary" --type income --category 5 --condition sender:equals:ACME --condition amount:greaterThan:3000
    """
    db = ctx.obj["db"]
    service = AllocationRuleService(db)

    try:
        rule_id = service.create_rule(
            name=name,
            transaction_type=TransactionType[rule_type.upper()],
            conditions=[parse_condition_option(c) for c in conditions],
            category_id=category_id,
            is_active=not inactive,
            priority=priority,
        )
        click.echo(f"Created rule '{name}' (ID: {rule_id})")
    except DomainError as e:
        handle_domain_error(ctx, e)


@rule_group.command("list")
@click.pass_context
def list_rules(ctx):
    """List rules in priority order."""
    db = ctx.obj["db"]
    service = AllocationRuleService(db)

    rules = service.list_rules()
    if not rules:
        click.echo("No rules found. Use 'rule create' to add one.")
        return

    click.echo("\nRules (first match wins):")
    for rule in rules:
        click.echo(format_rule(rule))


@rule_group.command("delete")
@click.argument("rule_id", type=int)
@click.pass_context
def delete_rule(ctx, rule_id: int):
    """Delete a rule."""
    db = ctx.obj["db"]
    service = AllocationRuleService(db)

    try:
        service.delete_rule(rule_id)
        click.echo(f"Deleted rule {rule_id}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@rule_group.command("reorder")
@click.argument("rule_ids", nargs=-1, required=True, type=int)
@click.pass_context
def reorder_rules(ctx, rule_ids: tuple[int, ...]):
    """Set the rule order; the first ID gets the highest priority.

    Examples:
        allocit rule reorder 3 1 2
    """
    db = ctx.obj["db"]
    service = AllocationRuleService(db)

    try:
        rules = service.reorder_rules(list(rule_ids))
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo("Rule order updated:")
    for rule in rules:
        click.echo(f"  {rule.priority}. {rule.name} (ID: {rule.id})")


@rule_group.command("test")
@click.argument("transaction_id", type=int)
@click.option("--any-type", is_flag=True, help="Also try rules for other transaction types")
@click.pass_context
def try_rules(ctx, transaction_id: int, any_type: bool):
    """Show which rules match a transaction, without changing it."""
    db = ctx.obj["db"]
    rule_service = AllocationRuleService(db)
    transaction_service = TransactionService(db)
    resolver = RuleResolver(ConditionMatcher(case_sensitive=ctx.obj.get("case_sensitive", True)))

    try:
        txn = transaction_service.require_transaction(transaction_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    match_type = not any_type and txn.type != TransactionType.UNKNOWN
    matches = resolver.matching_rules(txn, rule_service.list_rules(), match_type=match_type)
    if not matches:
        click.echo(f"No rules match transaction {transaction_id}")
        return

    click.echo(f"Rules matching transaction {transaction_id}:")
    for index, rule in enumerate(matches):
        marker = "*" if index == 0 else " "
        click.echo(f"{marker} {format_rule(rule)}")


def register_commands(cli):
    """Register rule commands with main CLI."""
    cli.add_command(rule_group, name="rule")
