"""Domain model entities for allocit.

These are pure data classes representing business concepts, independent of
database schema. Allocation rows are frozen like every other entity; the
row operations in ``allocit.domain.allocation_row`` return new instances
instead of mutating in place.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Optional


class TransactionType(IntEnum):
    """Accounting type of a bank transaction."""

    UNKNOWN = 0
    INCOME = 1
    EXPENSE = 2
    DEPOSIT = 3
    WITHDRAW = 4

    @classmethod
    def parse(cls, value) -> "TransactionType":
        """Accept a member, its integer value or its name ("expense", "2")."""
        if isinstance(value, str):
            value = value.strip()
            if value.isdigit():
                return cls(int(value))
            try:
                return cls[value.upper()]
            except KeyError:
                raise ValueError(f"'{value}' is not a valid TransactionType")
        return cls(value)


class TransactionStatus(IntEnum):
    """Review status of a bank transaction."""

    PENDING = 1
    ACCEPTED = 2


class CategoryType(IntEnum):
    """Kind of category a row can point to."""

    EXPENSE = 0
    INCOME = 1


class ConditionField(str, Enum):
    """Transaction field a rule condition inspects."""

    SENDER = "sender"
    RECEIVER = "receiver"
    DESCRIPTION = "description"
    AMOUNT = "amount"


class ConditionOperator(str, Enum):
    """Comparison applied by a rule condition."""

    EQUALS = "equals"
    CONTAINS = "contains"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"


@dataclass(frozen=True)
class Category:
    """Expense or income type a transaction row is allocated to."""

    id: int
    name: str
    category_type: CategoryType
    key: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Transaction:
    """Imported bank transaction."""

    id: int
    type: TransactionType
    status: TransactionStatus
    amount: Decimal
    sender: Optional[str] = None
    receiver: Optional[str] = None
    description: Optional[str] = None
    transaction_date: Optional[date] = None
    accounting_date: Optional[date] = None


@dataclass(frozen=True)
class AllocationRow:
    """One categorized slice of a transaction amount.

    ``row_total`` always equals ``round(unit_amount * quantity, 2)``.
    ``id`` is 0 until the row has been saved.
    """

    id: int = 0
    description: str = ""
    quantity: int = 1
    unit_amount: Decimal = Decimal("0")
    row_total: Decimal = Decimal("0")
    category_id: Optional[int] = None


@dataclass(frozen=True)
class AllocationCondition:
    """Single field/operator/value test of an allocation rule."""

    field: ConditionField
    operator: ConditionOperator
    value: str


@dataclass(frozen=True)
class AllocationRule:
    """Declarative rule assigning a type and category to matching transactions."""

    id: int
    name: str
    transaction_type: TransactionType
    category_id: Optional[int]
    conditions: tuple[AllocationCondition, ...]
    is_active: bool = True
    priority: int = 0


@dataclass(frozen=True)
class LoanPaymentComponents:
    """Principal/interest/fee breakdown of a loan payment."""

    principal: Decimal
    interest: Decimal
    handling_fee: Decimal = Decimal("0")
    remaining: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        return self.principal + self.interest + self.handling_fee


@dataclass(frozen=True)
class BatchResultRow:
    """Outcome of one item of a bulk operation."""

    id: int
    status_code: int
    message: str

    @property
    def ok(self) -> bool:
        return self.status_code == 200


@dataclass(frozen=True)
class BatchResult:
    """Summary of a bulk operation, one result row per requested id."""

    total: int
    success: int
    failed: int
    results: tuple[BatchResultRow, ...] = field(default_factory=tuple)

    @property
    def all_success(self) -> bool:
        return self.failed == 0
