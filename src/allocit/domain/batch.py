"""Bulk operations over many transactions.

Items are processed one at a time in the order requested. A failing item is
recorded in the result and the batch moves on; nothing already written for
earlier items is undone. Each item is fully validated before its single
store write, so an item is either applied completely or not at all.
"""

from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from allocit.database.base import Database
from allocit.domain import row_reconciler
from allocit.domain.allocation_row import TOLERANCE, create_row, rows_total, set_total
from allocit.domain.category import (
    CategoryService,
    LOAN_HANDLING_FEE,
    LOAN_INTEREST,
    LOAN_PAYMENT,
    LOAN_PRINCIPAL,
)
from allocit.domain.entities import (
    AllocationRow,
    AllocationRule,
    BatchResult,
    BatchResultRow,
    CategoryType,
    LoanPaymentComponents,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from allocit.domain.errors import (
    ConflictError,
    DomainError,
    NotFoundError,
    ValidationError,
    loan_split_mismatch,
    transaction_not_found,
)
from allocit.domain.rules import RuleResolver
from allocit.domain.transaction import ROW_CATEGORY_TYPES, validate_rows
from allocit.logger import get_logger
from allocit.utils.loan_message import parse_loan_payment_message

logger = get_logger()

OK = 200
STORE_ERROR = 500

LoanBreakdownSource = Callable[[Transaction], Optional[LoanPaymentComponents]]


class BatchOperation(str, Enum):
    """Operations the batch processor can apply."""

    RETYPE = "retype"
    RECATEGORIZE = "recategorize"
    SPLIT_LOAN_PAYMENT = "split_loan_payment"
    DELETE = "delete"
    ACCEPT = "accept"
    APPLY_RULES = "apply_rules"


def aggregate(outcomes: list[BatchResultRow]) -> BatchResult:
    """Summarize per-item outcomes into a batch result."""
    total = len(outcomes)
    success = sum(1 for outcome in outcomes if outcome.status_code == OK)
    return BatchResult(
        total=total,
        success=success,
        failed=total - success,
        results=tuple(outcomes),
    )


def breakdown_from_description(transaction: Transaction) -> Optional[LoanPaymentComponents]:
    """Read the loan breakdown from the bank message of a transaction."""
    return parse_loan_payment_message(transaction.description)


class BulkBatchProcessor:
    """Apply one operation to a list of transaction ids.

    Args:
        db: Transaction, category and rule store
        resolver: Rule resolver used by apply_rules
        loan_breakdown: Returns the principal/interest/fee breakdown of a
            transaction, or None if it has none
    """

    def __init__(
        self,
        db: Database,
        resolver: Optional[RuleResolver] = None,
        loan_breakdown: LoanBreakdownSource = breakdown_from_description,
    ):
        self.db = db
        self.categories = CategoryService(db)
        self.resolver = resolver or RuleResolver()
        self.loan_breakdown = loan_breakdown
        self._handlers: dict[BatchOperation, Callable[[int, dict[str, Any]], str]] = {
            BatchOperation.RETYPE: self._retype,
            BatchOperation.RECATEGORIZE: self._recategorize,
            BatchOperation.SPLIT_LOAN_PAYMENT: self._split_loan_payment,
            BatchOperation.DELETE: self._delete,
            BatchOperation.ACCEPT: self._accept,
            BatchOperation.APPLY_RULES: self._apply_rules,
        }

    def run(
        self,
        operation: Union[BatchOperation, str],
        ids: list[int],
        params: Optional[dict[str, Any]] = None,
    ) -> BatchResult:
        """Run an operation over the given transaction ids.

        Args:
            operation: Operation to apply
            ids: Transaction ids, processed in this order
            params: Operation parameters

        Returns:
            Batch result with one outcome per id, in input order

        Raises:
            ValidationError: If the request itself is malformed (no ids,
                unknown operation, missing parameters)
        """
        try:
            operation = BatchOperation(operation)
        except ValueError:
            raise ValidationError(f"Unknown batch operation '{operation}'")
        if not ids:
            raise ValidationError("No ids provided")

        params = self._prepare_params(operation, dict(params or {}))
        handler = self._handlers[operation]

        logger.info(f"Running {operation.value} on {len(ids)} transaction(s)")
        outcomes = [self._run_item(handler, transaction_id, params) for transaction_id in ids]
        result = aggregate(outcomes)
        logger.info(
            f"{operation.value}: {result.success} succeeded, {result.failed} failed "
            f"of {result.total}"
        )
        return result

    def _run_item(
        self,
        handler: Callable[[int, dict[str, Any]], str],
        transaction_id: int,
        params: dict[str, Any],
    ) -> BatchResultRow:
        try:
            message = handler(transaction_id, params)
        except DomainError as e:
            logger.warning(f"Transaction {transaction_id} failed: {e}")
            return BatchResultRow(id=transaction_id, status_code=e.status_code, message=str(e))
        except ArithmeticError as e:
            logger.warning(f"Transaction {transaction_id} failed: invalid amounts ({e!r})")
            return BatchResultRow(
                id=transaction_id, status_code=400, message=f"Invalid amounts: {e!r}"
            )
        except SQLAlchemyError as e:
            # The store has rolled back this item's write
            logger.error(f"Transaction {transaction_id} failed: database error ({e})")
            return BatchResultRow(
                id=transaction_id, status_code=STORE_ERROR, message=f"Database error: {e}"
            )
        logger.debug(f"Transaction {transaction_id}: {message}")
        return BatchResultRow(id=transaction_id, status_code=OK, message=message)

    def _prepare_params(self, operation: BatchOperation, params: dict[str, Any]) -> dict[str, Any]:
        """Validate the request-level parameters of an operation."""
        if operation == BatchOperation.RETYPE:
            if params.get("type") is None:
                raise ValidationError("retype requires a 'type' parameter")
            try:
                params["type"] = TransactionType.parse(params["type"])
            except ValueError:
                raise ValidationError(f"Invalid type '{params['type']}'")

        elif operation == BatchOperation.RECATEGORIZE:
            if params.get("expense_type_id") is None and params.get("income_type_id") is None:
                raise ValidationError(
                    "recategorize requires 'expense_type_id' or 'income_type_id'"
                )

        elif operation == BatchOperation.SPLIT_LOAN_PAYMENT:
            for name in ("principal_category_id", "interest_category_id"):
                if params.get(name) is None:
                    raise ValidationError(f"split_loan_payment requires '{name}'")

        elif operation == BatchOperation.APPLY_RULES:
            if params.get("rules") is None:
                params["rules"] = self.db.list_rules()

        return params

    def _load(self, transaction_id: int) -> Transaction:
        transaction = self.db.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        return transaction

    def _load_pending(self, transaction_id: int) -> Transaction:
        transaction = self._load(transaction_id)
        if transaction.status == TransactionStatus.ACCEPTED:
            raise ConflictError("Cannot update accepted transactions")
        return transaction

    # Operations

    def _retype(self, transaction_id: int, params: dict[str, Any]) -> str:
        self._load_pending(transaction_id)
        self.db.update_transaction(transaction_id, type=params["type"])
        return "OK"

    def _recategorize(self, transaction_id: int, params: dict[str, Any]) -> str:
        transaction = self._load_pending(transaction_id)
        expense_type_id = params.get("expense_type_id")
        income_type_id = params.get("income_type_id")

        new_type = None
        transaction_type = transaction.type
        if transaction_type == TransactionType.UNKNOWN:
            # An unknown transaction takes the type of the single category given
            if expense_type_id is not None and income_type_id is None:
                new_type = transaction_type = TransactionType.EXPENSE
            elif income_type_id is not None and expense_type_id is None:
                new_type = transaction_type = TransactionType.INCOME

        if transaction_type == TransactionType.EXPENSE:
            category_id = expense_type_id
        elif transaction_type == TransactionType.INCOME:
            category_id = income_type_id
        else:
            raise ValidationError(
                f"{transaction_type.name.capitalize()} transactions have no category"
            )
        if category_id is None:
            raise ValidationError(
                f"No category given for {transaction_type.name.lower()} transactions"
            )
        self.categories.require_category(category_id, ROW_CATEGORY_TYPES[transaction_type])

        rows = row_reconciler.ensure_non_empty(
            self.db.get_rows(transaction_id),
            transaction,
            {"description": transaction.description or ""},
        )
        rows = [replace(row, category_id=category_id) for row in rows]
        validate_rows(self.db, transaction_type, rows)
        self.db.replace_rows(transaction_id, rows, transaction_type=new_type)
        return "OK"

    def _build_loan_rows(
        self,
        transaction: Transaction,
        principal_category_id: int,
        interest_category_id: int,
        handling_fee_category_id: Optional[int],
    ) -> list[AllocationRow]:
        breakdown = self.loan_breakdown(transaction)
        if breakdown is None:
            raise ValidationError(f"Transaction {transaction.id} is not a loan payment")

        self.categories.require_category(principal_category_id, CategoryType.EXPENSE)
        self.categories.require_category(interest_category_id, CategoryType.EXPENSE)
        if handling_fee_category_id is not None:
            self.categories.require_category(handling_fee_category_id, CategoryType.EXPENSE)

        parts = [
            ("Loan principal", breakdown.principal, principal_category_id),
            ("Loan interest", breakdown.interest, interest_category_id),
        ]
        if handling_fee_category_id is not None:
            parts.append(("Loan handling fee", breakdown.handling_fee, handling_fee_category_id))

        rows = [
            set_total(create_row({"description": description, "category_id": category_id}), amount)
            for description, amount, category_id in parts
            if amount > 0
        ]
        if not rows:
            raise ValidationError(f"Transaction {transaction.id} has no loan components")

        expected = row_reconciler.allocatable_amount(transaction)
        total = rows_total(rows)
        if abs(total - expected) > TOLERANCE:
            raise ValidationError(loan_split_mismatch(transaction.id, total, expected))
        return rows

    def _split_loan_payment(self, transaction_id: int, params: dict[str, Any]) -> str:
        transaction = self._load_pending(transaction_id)
        rows = self._build_loan_rows(
            transaction,
            params["principal_category_id"],
            params["interest_category_id"],
            params.get("handling_fee_category_id"),
        )
        self.db.replace_rows(transaction_id, rows, transaction_type=TransactionType.EXPENSE)
        return "OK"

    def _delete(self, transaction_id: int, params: dict[str, Any]) -> str:
        self._load(transaction_id)
        self.db.delete_transaction(transaction_id)
        return "OK"

    def _accept(self, transaction_id: int, params: dict[str, Any]) -> str:
        transaction = self._load_pending(transaction_id)
        if transaction.type == TransactionType.UNKNOWN:
            raise ValidationError("Type cannot be unknown for accepted transactions")
        self.db.update_transaction(transaction_id, status=TransactionStatus.ACCEPTED)
        return "OK"

    def _apply_rules(self, transaction_id: int, params: dict[str, Any]) -> str:
        transaction = self._load(transaction_id)
        if transaction.status == TransactionStatus.ACCEPTED:
            raise ConflictError("Transaction is already allocated")

        rules: list[AllocationRule] = params["rules"]
        rule = self.resolver.find_rule(
            transaction, rules, match_type=transaction.type != TransactionType.UNKNOWN
        )
        if rule is None:
            raise NotFoundError("No matching allocation rule")

        loan_payment = self.db.get_category_by_key(LOAN_PAYMENT)
        if loan_payment is not None and rule.category_id == loan_payment.id:
            rows = self._loan_rows_by_key(transaction)
            self.db.replace_rows(transaction_id, rows, transaction_type=TransactionType.EXPENSE)
            return f"Rule '{rule.name}': loan payment split"

        if rule.transaction_type not in ROW_CATEGORY_TYPES or rule.category_id is None:
            self.db.update_transaction(transaction_id, type=rule.transaction_type)
            return f"Rule '{rule.name}': type set"

        self.categories.require_category(rule.category_id, ROW_CATEGORY_TYPES[rule.transaction_type])
        rows = self.db.get_rows(transaction_id) if rule.transaction_type == transaction.type else []
        rows = row_reconciler.ensure_non_empty(
            rows, transaction, {"description": transaction.description or ""}
        )
        rows = [replace(row, category_id=rule.category_id) for row in rows]
        validate_rows(self.db, rule.transaction_type, rows)
        self.db.replace_rows(transaction_id, rows, transaction_type=rule.transaction_type)
        return f"Rule '{rule.name}': type set"

    def _loan_rows_by_key(self, transaction: Transaction) -> list[AllocationRow]:
        principal = self.db.get_category_by_key(LOAN_PRINCIPAL)
        interest = self.db.get_category_by_key(LOAN_INTEREST)
        if principal is None or interest is None:
            raise ValidationError("Loan principal and interest categories are not configured")
        handling_fee = self.db.get_category_by_key(LOAN_HANDLING_FEE)
        return self._build_loan_rows(
            transaction,
            principal.id,
            interest.id,
            handling_fee.id if handling_fee is not None else None,
        )
