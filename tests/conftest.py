"""Shared pytest fixtures for allocit tests."""

import logging
import tempfile
import os
from decimal import Decimal
import pytest

from allocit.database.factories import create_sqlite_database
from allocit.domain.batch import BulkBatchProcessor
from allocit.domain.category import (
    CategoryService,
    LOAN_HANDLING_FEE,
    LOAN_INTEREST,
    LOAN_PAYMENT,
    LOAN_PRINCIPAL,
)
from allocit.domain.entities import CategoryType, TransactionStatus, TransactionType
from allocit.domain.rules import AllocationRuleService
from allocit.domain.transaction import TransactionService
from allocit.logger import LOGGER_NAME


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def category_service(temp_db):
    """Create a CategoryService with a temporary database."""
    return CategoryService(temp_db)


@pytest.fixture
def transaction_service(temp_db):
    """Create a TransactionService with a temporary database."""
    return TransactionService(temp_db)


@pytest.fixture
def rule_service(temp_db):
    """Create an AllocationRuleService with a temporary database."""
    return AllocationRuleService(temp_db)


@pytest.fixture
def processor(temp_db):
    """Create a BulkBatchProcessor with a temporary database."""
    return BulkBatchProcessor(temp_db)


@pytest.fixture
def sample_categories(category_service):
    """Create expense, income and loan categories and return their IDs by name."""
    return {
        "Groceries": category_service.create_category("Groceries", CategoryType.EXPENSE),
        "Household": category_service.create_category("Household", CategoryType.EXPENSE),
        "Salary": category_service.create_category("Salary", CategoryType.INCOME),
        "Loan payment": category_service.create_category(
            "Loan payment", CategoryType.EXPENSE, key=LOAN_PAYMENT
        ),
        "Loan principal": category_service.create_category(
            "Loan principal", CategoryType.EXPENSE, key=LOAN_PRINCIPAL
        ),
        "Loan interest": category_service.create_category(
            "Loan interest", CategoryType.EXPENSE, key=LOAN_INTEREST
        ),
        "Loan fees": category_service.create_category(
            "Loan fees", CategoryType.EXPENSE, key=LOAN_HANDLING_FEE
        ),
    }


@pytest.fixture
def grocery_purchase(transaction_service):
    """Create a pending, not yet typed -120.00 card purchase."""
    transaction_id = transaction_service.create_transaction(
        amount=Decimal("-120.00"),
        receiver="K-Market Kamppi",
        description="Card purchase",
    )
    return transaction_service.get_transaction(transaction_id)


@pytest.fixture
def loan_payment(transaction_service):
    """Create a pending loan payment whose message carries the breakdown."""
    transaction_id = transaction_service.create_transaction(
        amount=Decimal("-452.50"),
        type=TransactionType.EXPENSE,
        receiver="Bank Oyj",
        description="Lyhennys 400,00 euroa Korko 50,00 euroa Kulut 2,50 euroa Jäljellä 12 345,67 euroa",
    )
    return transaction_service.get_transaction(transaction_id)


@pytest.fixture
def accept(temp_db):
    """Mark a transaction accepted directly in the store."""

    def _accept(transaction_id: int) -> None:
        temp_db.update_transaction(transaction_id, status=TransactionStatus.ACCEPTED)

    return _accept


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers that CLI runs attach to their temporary streams."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
