"""Transaction domain service."""

from typing import Optional
from datetime import date
from decimal import Decimal
from allocit.database.base import Database
from allocit.domain import row_reconciler
from allocit.domain.allocation_row import EditedField, apply_edit, check_row, to_money
from allocit.domain.entities import (
    AllocationRow,
    CategoryType,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from allocit.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    category_not_found,
    transaction_not_found,
)

ROW_CATEGORY_TYPES = {
    TransactionType.EXPENSE: CategoryType.EXPENSE,
    TransactionType.INCOME: CategoryType.INCOME,
}


def validate_rows(
    db: Database, transaction_type: TransactionType, rows: list[AllocationRow]
) -> None:
    """Check a complete row list before it is written.

    Raises:
        ValidationError: If rows are not allowed for the type or a row is inconsistent
        NotFoundError: If a row points to a missing category
    """
    if transaction_type not in ROW_CATEGORY_TYPES:
        if rows:
            raise ValidationError(
                f"Allocation rows are not allowed for {transaction_type.name.lower()} transactions"
            )
        return

    expected_type = ROW_CATEGORY_TYPES[transaction_type]
    for row in rows:
        check_row(row)
        if row.category_id is None:
            continue
        category = db.get_category(row.category_id)
        if category is None:
            raise NotFoundError(category_not_found(row.category_id))
        if category.category_type != expected_type:
            raise ValidationError(
                f"Category {row.category_id} cannot be used for "
                f"{transaction_type.name.lower()} transactions"
            )


class TransactionService:
    """Service for managing transactions and their allocation rows."""

    def __init__(self, db: Database):
        """Initialize transaction service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_transaction(
        self,
        amount: Decimal,
        type: TransactionType = TransactionType.UNKNOWN,
        sender: Optional[str] = None,
        receiver: Optional[str] = None,
        description: Optional[str] = None,
        transaction_date: Optional[date] = None,
        accounting_date: Optional[date] = None,
    ) -> int:
        """Create a pending transaction.

        Args:
            amount: Signed transaction amount
            type: Transaction type (unknown until allocated)
            sender: Optional sender name
            receiver: Optional receiver name
            description: Optional bank message
            transaction_date: Optional booking date
            accounting_date: Optional accounting date (defaults to transaction_date)

        Returns:
            Transaction ID
        """
        amount = to_money(amount)
        # Expenses and withdrawals are stored as outgoing money
        if type in (TransactionType.EXPENSE, TransactionType.WITHDRAW) and amount > 0:
            amount = -amount

        return self.db.create_transaction(
            amount=amount,
            type=type,
            status=TransactionStatus.PENDING,
            sender=sender,
            receiver=receiver,
            description=description,
            transaction_date=transaction_date,
            accounting_date=accounting_date or transaction_date,
        )

    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        """Get transaction by ID.

        Args:
            transaction_id: Transaction ID

        Returns:
            Transaction entity or None if not found
        """
        return self.db.get_transaction(transaction_id)

    def require_transaction(self, transaction_id: int) -> Transaction:
        """Get transaction by ID or raise NotFoundError."""
        transaction = self.db.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        return transaction

    def list_transactions(
        self,
        status: Optional[TransactionStatus] = None,
        type: Optional[TransactionType] = None,
    ) -> list[Transaction]:
        """List transactions with optional status and type filters."""
        return self.db.list_transactions(status=status, type=type)

    def get_rows(self, transaction_id: int) -> list[AllocationRow]:
        """Get the stored allocation rows of a transaction."""
        self.require_transaction(transaction_id)
        return self.db.get_rows(transaction_id)

    def get_editable_rows(self, transaction_id: int) -> list[AllocationRow]:
        """Get the rows to edit, with a first row created if there are none.

        The created row is not saved until ``save_allocation`` is called.
        """
        transaction = self.require_transaction(transaction_id)
        rows = self.db.get_rows(transaction_id)
        rows = row_reconciler.ensure_non_empty(
            rows, transaction, {"description": transaction.description or ""}
        )
        return rows

    def edit_row(
        self,
        transaction_id: int,
        index: int,
        edited: EditedField,
        value,
    ) -> list[AllocationRow]:
        """Apply one field edit to a stored row and save the row list.

        Raises:
            NotFoundError: If the transaction or row doesn't exist
            ValidationError: If the edited row is invalid
        """
        rows = self.get_editable_rows(transaction_id)
        if index < 0 or index >= len(rows):
            raise NotFoundError(f"Row {index} not found for transaction {transaction_id}")
        rows[index] = apply_edit(rows[index], edited, value)
        return self.save_allocation(transaction_id, rows)

    def save_allocation(
        self,
        transaction_id: int,
        rows: list[AllocationRow],
        transaction_type: Optional[TransactionType] = None,
    ) -> list[AllocationRow]:
        """Save the full row list of a transaction.

        Args:
            transaction_id: Transaction ID
            rows: Complete new row list
            transaction_type: Optional new transaction type saved together with the rows

        Returns:
            Stored rows

        Raises:
            NotFoundError: If the transaction or a category doesn't exist
            ConflictError: If the transaction is already accepted
            ValidationError: If the rows do not fit the transaction type
        """
        transaction = self.require_transaction(transaction_id)
        if transaction.status == TransactionStatus.ACCEPTED:
            raise ConflictError("Cannot update accepted transactions")

        effective_type = transaction_type if transaction_type is not None else transaction.type
        validate_rows(self.db, effective_type, rows)
        return self.db.replace_rows(transaction_id, rows, transaction_type=transaction_type)

    def delete_transaction(self, transaction_id: int) -> None:
        """Delete a transaction and its rows.

        Raises:
            NotFoundError: If transaction doesn't exist
        """
        self.require_transaction(transaction_id)
        self.db.delete_transaction(transaction_id)
