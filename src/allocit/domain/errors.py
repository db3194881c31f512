"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling. ``status_code`` follows the
    HTTP-style convention used in batch outcome rows.
    """

    status_code = 400


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""

    status_code = 400


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""

    status_code = 404


class ConflictError(DomainError):
    """Domain conflict, such as modifying an accepted transaction."""

    status_code = 409


def transaction_not_found(transaction_id: int) -> str:
    """Return message for missing transaction."""
    return f"Transaction {transaction_id} not found"


def category_not_found(category_id: int) -> str:
    """Return message for missing category by ID."""
    return f"Category {category_id} not found"


def category_key_not_found(key: str) -> str:
    """Return message for missing category by key."""
    return f"Category with key '{key}' not found"


def rule_not_found(rule_id: int) -> str:
    """Return message for missing allocation rule."""
    return f"Allocation rule {rule_id} not found"


def loan_split_mismatch(transaction_id: int, rows_total, amount) -> str:
    """Return message when loan components do not add up to the transaction amount."""
    return (
        f"Loan components for transaction {transaction_id} sum to {rows_total}, "
        f"expected {amount}"
    )
