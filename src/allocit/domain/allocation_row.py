"""Allocation row value operations.

Every function here is pure: rows are frozen and each setter returns a new
row. Editing ``row_total`` or ``quantity`` recomputes ``unit_amount``;
``unit_amount`` itself is never the field being edited.
"""

from dataclasses import replace
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from enum import Enum
from typing import Any, Optional

from allocit.domain.entities import AllocationRow
from allocit.domain.errors import ValidationError

CENT = Decimal("0.01")
TOLERANCE = Decimal("0.01")


class EditedField(str, Enum):
    """Field the user last edited on a row."""

    ROW_TOTAL = "row_total"
    QUANTITY = "quantity"
    DESCRIPTION = "description"
    CATEGORY = "category_id"


def to_money(value: Any) -> Decimal:
    """Convert a number to a Decimal rounded to cents."""
    try:
        return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f"Invalid amount '{value}'")


def create_row(defaults: Optional[dict[str, Any]] = None) -> AllocationRow:
    """Create a blank row seeded from caller defaults.

    Args:
        defaults: Optional field values (e.g. ``{"category_id": 3}``)

    Returns:
        Row with quantity 1 and zero amounts unless overridden
    """
    row = AllocationRow()
    if defaults:
        row = replace(row, **defaults)
    return row


def set_total(row: AllocationRow, new_total: Any) -> AllocationRow:
    """Set the row total and recompute the unit amount from it."""
    total = to_money(new_total)
    if row.quantity > 0:
        return replace(row, row_total=total, unit_amount=total / row.quantity)
    return replace(row, row_total=total)


def set_quantity(row: AllocationRow, new_quantity: int) -> AllocationRow:
    """Set the quantity and recompute the unit amount.

    A quantity of zero is coerced to one.
    """
    quantity = int(new_quantity)
    if quantity == 0:
        quantity = 1
    return replace(row, quantity=quantity, unit_amount=row.row_total / quantity)


def apply_edit(row: AllocationRow, edited: EditedField, value: Any) -> AllocationRow:
    """Apply a single user edit to a row.

    Args:
        row: Row being edited
        edited: Which field the user changed
        value: New value for that field

    Returns:
        Updated row

    Raises:
        ValidationError: If the value is out of range for the field
    """
    if edited == EditedField.ROW_TOTAL:
        return set_total(row, value)
    if edited == EditedField.QUANTITY:
        if value is None or int(value) < 0:
            raise ValidationError(f"Quantity must be a positive integer, got {value}")
        return set_quantity(row, value)
    if edited == EditedField.DESCRIPTION:
        return replace(row, description=value or "")
    if edited == EditedField.CATEGORY:
        return replace(row, category_id=value)
    raise ValidationError(f"Unknown row field '{edited}'")


def is_consistent(row: AllocationRow) -> bool:
    """Check that row_total matches unit_amount * quantity within a cent."""
    expected = (row.unit_amount * row.quantity).quantize(CENT, rounding=ROUND_HALF_UP)
    return abs(expected - row.row_total) <= TOLERANCE


def check_row(row: AllocationRow) -> AllocationRow:
    """Validate a row before it is stored.

    Raises:
        ValidationError: If quantity is below one or the amounts disagree
    """
    if row.quantity < 1:
        raise ValidationError(f"Quantity must be at least 1, got {row.quantity}")
    if not is_consistent(row):
        raise ValidationError(
            f"Row total {row.row_total} does not match "
            f"{row.quantity} x {row.unit_amount}"
        )
    return row


def rows_total(rows: list[AllocationRow]) -> Decimal:
    """Sum the totals of all rows."""
    return sum((row.row_total for row in rows), Decimal("0"))
