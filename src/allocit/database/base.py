"""Abstract database interface."""

from abc import ABC, abstractmethod
from typing import Optional
from datetime import date
from decimal import Decimal

# Import entities directly rather than through domain services
from allocit.domain.entities import (
    AllocationCondition,
    AllocationRow,
    AllocationRule,
    Category,
    CategoryType,
    Transaction,
    TransactionStatus,
    TransactionType,
)


class Database(ABC):
    """Abstract database interface for allocit.

    Acts as the transaction, category and rule store of the allocation
    engine. Every mutating call commits on its own, so a single call is the
    unit of atomicity.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Category operations
    @abstractmethod
    def create_category(
        self, name: str, category_type: CategoryType, key: Optional[str] = None
    ) -> int:
        """Create a category. Returns category ID."""
        pass

    @abstractmethod
    def get_category(self, category_id: int) -> Optional[Category]:
        """Get category by ID."""
        pass

    @abstractmethod
    def get_category_by_key(self, key: str) -> Optional[Category]:
        """Get category by its stable key (e.g. 'loan-interest')."""
        pass

    @abstractmethod
    def list_categories(self, category_type: Optional[CategoryType] = None) -> list[Category]:
        """List categories, optionally filtered by type."""
        pass

    # Transaction operations
    @abstractmethod
    def create_transaction(
        self,
        amount: Decimal,
        type: TransactionType = TransactionType.UNKNOWN,
        status: TransactionStatus = TransactionStatus.PENDING,
        sender: Optional[str] = None,
        receiver: Optional[str] = None,
        description: Optional[str] = None,
        transaction_date: Optional[date] = None,
        accounting_date: Optional[date] = None,
    ) -> int:
        """Create a transaction. Returns transaction ID."""
        pass

    @abstractmethod
    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        """Get transaction by ID."""
        pass

    @abstractmethod
    def list_transactions(
        self,
        status: Optional[TransactionStatus] = None,
        type: Optional[TransactionType] = None,
    ) -> list[Transaction]:
        """List transactions with optional filters."""
        pass

    @abstractmethod
    def update_transaction(
        self,
        transaction_id: int,
        type: Optional[TransactionType] = None,
        status: Optional[TransactionStatus] = None,
    ) -> None:
        """Update transaction type and/or status."""
        pass

    @abstractmethod
    def delete_transaction(self, transaction_id: int) -> None:
        """Delete a transaction together with its allocation rows."""
        pass

    # Allocation row operations
    @abstractmethod
    def get_rows(self, transaction_id: int) -> list[AllocationRow]:
        """Get the allocation rows of a transaction in row order."""
        pass

    @abstractmethod
    def replace_rows(
        self,
        transaction_id: int,
        rows: list[AllocationRow],
        transaction_type: Optional[TransactionType] = None,
    ) -> list[AllocationRow]:
        """Replace all rows of a transaction in one commit.

        Args:
            transaction_id: Transaction owning the rows
            rows: New row list (ids are ignored, rows are stored fresh)
            transaction_type: If given, the transaction type is updated in the same commit

        Returns:
            The stored rows with their new ids
        """
        pass

    # Allocation rule operations
    @abstractmethod
    def create_rule(
        self,
        name: str,
        transaction_type: TransactionType,
        category_id: Optional[int],
        conditions: tuple[AllocationCondition, ...],
        is_active: bool = True,
        priority: int = 0,
    ) -> int:
        """Create an allocation rule. Returns rule ID."""
        pass

    @abstractmethod
    def get_rule(self, rule_id: int) -> Optional[AllocationRule]:
        """Get allocation rule by ID."""
        pass

    @abstractmethod
    def update_rule(
        self,
        rule_id: int,
        name: str,
        transaction_type: TransactionType,
        category_id: Optional[int],
        conditions: tuple[AllocationCondition, ...],
        is_active: Optional[bool] = None,
    ) -> None:
        """Replace a rule definition. Priority is left unchanged."""
        pass

    @abstractmethod
    def delete_rule(self, rule_id: int) -> None:
        """Delete an allocation rule."""
        pass

    @abstractmethod
    def list_rules(self) -> list[AllocationRule]:
        """List all rules ordered by priority."""
        pass

    @abstractmethod
    def list_active_rules_for(self, transaction_type: TransactionType) -> list[AllocationRule]:
        """List active rules for a transaction type ordered by priority."""
        pass

    @abstractmethod
    def set_rule_priority(self, rule_id: int, priority: int) -> None:
        """Set the priority of a rule."""
        pass

    @abstractmethod
    def get_max_rule_priority(self) -> int:
        """Return the highest rule priority, or -1 when there are no rules."""
        pass
