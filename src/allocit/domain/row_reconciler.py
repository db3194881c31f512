"""Keep a transaction's allocation rows consistent as they are edited.

The functions take the current row list and return a new one. Rows are sized
against the transaction's absolute amount: bank exports sign expenses
negative while allocation rows always carry positive totals.
"""

from dataclasses import replace
from decimal import Decimal
from typing import Any, Optional

from allocit.domain.allocation_row import create_row, set_total, rows_total, to_money
from allocit.domain.entities import AllocationRow, Transaction
from allocit.domain.errors import NotFoundError


def allocatable_amount(transaction: Transaction) -> Decimal:
    """Return the amount rows of this transaction should add up to."""
    return to_money(abs(transaction.amount))


def unallocated_amount(rows: list[AllocationRow], transaction: Transaction) -> Decimal:
    """Return the part of the transaction amount not covered by rows.

    Negative when the rows are over-allocated.
    """
    return allocatable_amount(transaction) - rows_total(rows)


def is_over_allocated(rows: list[AllocationRow], transaction: Transaction) -> bool:
    """Check whether rows add up to more than the transaction amount."""
    return unallocated_amount(rows, transaction) < 0


def add_row(
    rows: list[AllocationRow],
    transaction: Transaction,
    defaults: Optional[dict[str, Any]] = None,
) -> list[AllocationRow]:
    """Append a row holding the unallocated remainder.

    The remainder may be zero or negative; that is reported, not rejected.
    """
    row = set_total(create_row(defaults), unallocated_amount(rows, transaction))
    return [*rows, row]


def ensure_non_empty(
    rows: list[AllocationRow],
    transaction: Transaction,
    defaults: Optional[dict[str, Any]] = None,
) -> list[AllocationRow]:
    """Create the first row of an empty list; leave populated lists alone."""
    if rows:
        return list(rows)
    return add_row(rows, transaction, defaults)


def remove_row(rows: list[AllocationRow], index: int) -> list[AllocationRow]:
    """Remove the row at index unless it is the last remaining row.

    Raises:
        NotFoundError: If there is no row at index
    """
    if index < 0 or index >= len(rows):
        raise NotFoundError(f"Row {index} not found")
    if len(rows) <= 1:
        return list(rows)
    new_rows = list(rows)
    del new_rows[index]
    return new_rows


def propagate_parent_description(
    rows: list[AllocationRow], new_description: str
) -> list[AllocationRow]:
    """Copy the transaction description to the first row while it is blank."""
    if not new_description or not rows or rows[0].description != "":
        return list(rows)
    return [replace(rows[0], description=new_description), *rows[1:]]


def propagate_parent_amount(
    rows: list[AllocationRow], new_amount: Any
) -> list[AllocationRow]:
    """Copy the transaction amount to the first row while its unit amount is zero."""
    if not rows or rows[0].unit_amount != 0:
        return list(rows)
    return [set_total(rows[0], abs(to_money(new_amount))), *rows[1:]]


def reset_for_type_change(
    transaction: Transaction, defaults: Optional[dict[str, Any]] = None
) -> list[AllocationRow]:
    """Discard rows after a type change and start over with one full-amount row."""
    return ensure_non_empty([], transaction, defaults)
