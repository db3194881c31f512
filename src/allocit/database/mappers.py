"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, including the JSON encoding of rule
conditions and the enum/integer translation of transaction types.
"""

from decimal import Decimal
from typing import Any

from allocit.domain import entities as domain
from allocit.database.models import (
    AllocationRow as ORMAllocationRow,
    AllocationRule as ORMAllocationRule,
    Category as ORMCategory,
    Transaction as ORMTransaction,
)


def category_to_domain(orm_category: ORMCategory) -> domain.Category:
    """Convert SQLAlchemy Category model to domain Category entity."""
    return domain.Category(
        id=orm_category.id,
        name=orm_category.name,
        category_type=domain.CategoryType(orm_category.category_type),
        key=orm_category.key,
        created_at=orm_category.created_at,
    )


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity."""
    return domain.Transaction(
        id=orm_transaction.id,
        type=domain.TransactionType(orm_transaction.type),
        status=domain.TransactionStatus(orm_transaction.status),
        amount=Decimal(orm_transaction.amount),
        sender=orm_transaction.sender,
        receiver=orm_transaction.receiver,
        description=orm_transaction.description,
        transaction_date=orm_transaction.transaction_date,
        accounting_date=orm_transaction.accounting_date,
    )


def row_to_domain(orm_row: ORMAllocationRow) -> domain.AllocationRow:
    """Convert SQLAlchemy AllocationRow model to domain AllocationRow entity."""
    return domain.AllocationRow(
        id=orm_row.id,
        description=orm_row.description or "",
        quantity=orm_row.quantity,
        unit_amount=Decimal(orm_row.unit_amount),
        row_total=Decimal(orm_row.row_total),
        category_id=orm_row.category_id,
    )


def row_to_orm(row: domain.AllocationRow, transaction_id: int, position: int) -> ORMAllocationRow:
    """Build a new SQLAlchemy AllocationRow from a domain row."""
    return ORMAllocationRow(
        transaction_id=transaction_id,
        position=position,
        description=row.description,
        quantity=row.quantity,
        unit_amount=str(row.unit_amount),
        row_total=row.row_total,
        category_id=row.category_id,
    )


def conditions_to_json(conditions: tuple[domain.AllocationCondition, ...]) -> list[dict[str, Any]]:
    """Encode rule conditions for the JSON column."""
    return [
        {"field": c.field.value, "operator": c.operator.value, "value": c.value}
        for c in conditions
    ]


def conditions_from_json(data: list[dict[str, Any]]) -> tuple[domain.AllocationCondition, ...]:
    """Decode rule conditions from the JSON column."""
    return tuple(
        domain.AllocationCondition(
            field=domain.ConditionField(item["field"]),
            operator=domain.ConditionOperator(item["operator"]),
            value=str(item["value"]),
        )
        for item in data or []
    )


def rule_to_domain(orm_rule: ORMAllocationRule) -> domain.AllocationRule:
    """Convert SQLAlchemy AllocationRule model to domain AllocationRule entity."""
    return domain.AllocationRule(
        id=orm_rule.id,
        name=orm_rule.name,
        transaction_type=domain.TransactionType(orm_rule.transaction_type),
        category_id=orm_rule.category_id,
        conditions=conditions_from_json(orm_rule.conditions),
        is_active=orm_rule.is_active,
        priority=orm_rule.priority,
    )
