"""Tests for bulk batch operations."""

import logging
import pytest
from decimal import Decimal
from sqlalchemy.exc import OperationalError

from allocit.domain.batch import BatchOperation, BulkBatchProcessor, aggregate
from allocit.domain.entities import (
    BatchResultRow,
    LoanPaymentComponents,
    TransactionStatus,
    TransactionType,
)
from allocit.domain.errors import ValidationError
from allocit.logger import LOGGER_NAME


def add_expense(transaction_service, amount="-50.00", **kwargs):
    return transaction_service.create_transaction(
        amount=Decimal(amount), type=TransactionType.EXPENSE, **kwargs
    )


class TestAggregate:
    """Tests for summarizing item outcomes."""

    def test_counts(self):
        """Test that success counts only 200 outcomes."""
        result = aggregate(
            [
                BatchResultRow(1, 200, "OK"),
                BatchResultRow(2, 404, "Transaction 2 not found"),
                BatchResultRow(3, 200, "OK"),
            ]
        )
        assert result.total == 3
        assert result.success == 2
        assert result.failed == 1
        assert not result.all_success
        assert [r.id for r in result.results] == [1, 2, 3]

    def test_empty(self):
        """Test that no outcomes gives an all-zero result."""
        result = aggregate([])
        assert (result.total, result.success, result.failed) == (0, 0, 0)


class TestRequestValidation:
    """Tests for malformed batch requests."""

    def test_empty_ids(self, processor):
        """Test that a batch needs at least one id."""
        with pytest.raises(ValidationError, match="No ids"):
            processor.run(BatchOperation.DELETE, [])

    def test_unknown_operation(self, processor):
        """Test that an unknown operation is rejected."""
        with pytest.raises(ValidationError, match="Unknown batch operation"):
            processor.run("archive", [1])

    def test_retype_requires_type(self, processor):
        """Test that retype needs a type parameter."""
        with pytest.raises(ValidationError, match="type"):
            processor.run(BatchOperation.RETYPE, [1], {})

    def test_retype_rejects_invalid_type(self, processor):
        """Test that retype rejects an unknown type name."""
        with pytest.raises(ValidationError, match="Invalid type"):
            processor.run(BatchOperation.RETYPE, [1], {"type": "transfer"})

    def test_recategorize_requires_a_category(self, processor):
        """Test that recategorize needs an expense or income category."""
        with pytest.raises(ValidationError, match="recategorize requires"):
            processor.run(BatchOperation.RECATEGORIZE, [1], {})

    def test_split_requires_categories(self, processor):
        """Test that the loan split needs principal and interest categories."""
        with pytest.raises(ValidationError, match="principal_category_id"):
            processor.run(BatchOperation.SPLIT_LOAN_PAYMENT, [1], {"interest_category_id": 1})


class TestRetype:
    """Tests for the retype operation."""

    def test_item_isolation(self, processor, transaction_service):
        """Test that a missing transaction does not stop the others."""
        first = add_expense(transaction_service)
        third = add_expense(transaction_service)
        missing = third + 100

        result = processor.run(BatchOperation.RETYPE, [first, missing, third], {"type": "income"})

        assert result.total == 3
        assert result.success == 2
        assert result.failed == 1
        assert [r.id for r in result.results] == [first, missing, third]
        assert [r.status_code for r in result.results] == [200, 404, 200]
        assert result.results[1].message == f"Transaction {missing} not found"
        assert transaction_service.get_transaction(first).type == TransactionType.INCOME
        assert transaction_service.get_transaction(third).type == TransactionType.INCOME

    def test_database_error_is_item_outcome(self, processor, transaction_service, temp_db, monkeypatch):
        """Test that a store failure on one item is recorded and the batch goes on."""
        first = add_expense(transaction_service)
        broken = add_expense(transaction_service)
        third = add_expense(transaction_service)
        update_transaction = temp_db.update_transaction

        def failing_update(transaction_id, **kwargs):
            if transaction_id == broken:
                raise OperationalError("UPDATE transactions", {}, Exception("disk I/O error"))
            update_transaction(transaction_id, **kwargs)

        monkeypatch.setattr(temp_db, "update_transaction", failing_update)

        result = processor.run(BatchOperation.RETYPE, [first, broken, third], {"type": "income"})

        assert [r.status_code for r in result.results] == [200, 500, 200]
        assert "Database error" in result.results[1].message
        assert transaction_service.get_transaction(broken).type == TransactionType.EXPENSE
        assert transaction_service.get_transaction(third).type == TransactionType.INCOME

    def test_failed_item_is_logged_as_warning(self, processor, transaction_service, caplog):
        """Test that each failed item leaves a warning in the log."""
        caplog.set_level(logging.DEBUG, logger=LOGGER_NAME)
        ok = add_expense(transaction_service)

        processor.run(BatchOperation.RETYPE, [ok, 999], {"type": "income"})

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert [r.getMessage() for r in warnings] == ["Transaction 999 failed: Transaction 999 not found"]

    def test_rows_are_kept(self, processor, transaction_service, sample_categories):
        """Test that retype leaves rows alone."""
        transaction_id = add_expense(transaction_service)
        rows = transaction_service.get_editable_rows(transaction_id)
        transaction_service.save_allocation(transaction_id, rows)

        processor.run(BatchOperation.RETYPE, [transaction_id], {"type": TransactionType.DEPOSIT})

        assert transaction_service.get_transaction(transaction_id).type == TransactionType.DEPOSIT
        assert len(transaction_service.get_rows(transaction_id)) == 1

    def test_accepted_transaction_conflicts(self, processor, transaction_service, accept):
        """Test that accepted transactions cannot be retyped."""
        transaction_id = add_expense(transaction_service)
        accept(transaction_id)

        result = processor.run(BatchOperation.RETYPE, [transaction_id], {"type": 1})

        assert result.results[0].status_code == 409
        assert result.results[0].message == "Cannot update accepted transactions"
        assert transaction_service.get_transaction(transaction_id).type == TransactionType.EXPENSE


class TestRecategorize:
    """Tests for the recategorize operation."""

    def test_creates_full_amount_row(self, processor, transaction_service, sample_categories):
        """Test that a transaction without rows gets one categorized row."""
        transaction_id = add_expense(transaction_service, "-120.00", description="Card purchase")

        result = processor.run(
            BatchOperation.RECATEGORIZE,
            [transaction_id],
            {"expense_type_id": sample_categories["Groceries"]},
        )

        assert result.all_success
        rows = transaction_service.get_rows(transaction_id)
        assert len(rows) == 1
        assert rows[0].row_total == Decimal("120.00")
        assert rows[0].category_id == sample_categories["Groceries"]
        assert rows[0].description == "Card purchase"

    def test_sets_category_on_every_row(self, processor, transaction_service, sample_categories):
        """Test that existing rows all get the new category and keep their amounts."""
        from allocit.domain import row_reconciler
        from allocit.domain.allocation_row import set_total

        transaction_id = add_expense(transaction_service, "-120.00")
        transaction = transaction_service.get_transaction(transaction_id)
        rows = transaction_service.get_editable_rows(transaction_id)
        rows[0] = set_total(rows[0], "80.00")
        rows = row_reconciler.add_row(rows, transaction)
        transaction_service.save_allocation(transaction_id, rows)

        processor.run(
            BatchOperation.RECATEGORIZE,
            [transaction_id],
            {"expense_type_id": sample_categories["Household"]},
        )

        rows = transaction_service.get_rows(transaction_id)
        assert [r.row_total for r in rows] == [Decimal("80.00"), Decimal("40.00")]
        assert {r.category_id for r in rows} == {sample_categories["Household"]}

    def test_income_uses_income_category(self, processor, transaction_service, sample_categories):
        """Test that income transactions take the income category."""
        transaction_id = transaction_service.create_transaction(
            amount=Decimal("3000.00"), type=TransactionType.INCOME
        )

        processor.run(
            BatchOperation.RECATEGORIZE,
            [transaction_id],
            {
                "expense_type_id": sample_categories["Groceries"],
                "income_type_id": sample_categories["Salary"],
            },
        )

        rows = transaction_service.get_rows(transaction_id)
        assert rows[0].category_id == sample_categories["Salary"]

    def test_unknown_type_takes_category_type(self, processor, transaction_service, sample_categories, grocery_purchase):
        """Test that an unknown transaction becomes an expense when only an expense category is given."""
        processor.run(
            BatchOperation.RECATEGORIZE,
            [grocery_purchase.id],
            {"expense_type_id": sample_categories["Groceries"]},
        )

        transaction = transaction_service.get_transaction(grocery_purchase.id)
        assert transaction.type == TransactionType.EXPENSE
        assert transaction_service.get_rows(grocery_purchase.id)[0].category_id == sample_categories["Groceries"]

    def test_missing_category_for_type(self, processor, transaction_service, sample_categories):
        """Test that an expense fails when only an income category is given."""
        transaction_id = add_expense(transaction_service)

        result = processor.run(
            BatchOperation.RECATEGORIZE, [transaction_id], {"income_type_id": sample_categories["Salary"]}
        )

        assert result.results[0].status_code == 400
        assert transaction_service.get_rows(transaction_id) == []

    def test_nonexistent_category(self, processor, transaction_service, sample_categories):
        """Test that an unknown category id fails with 404."""
        transaction_id = add_expense(transaction_service)

        result = processor.run(BatchOperation.RECATEGORIZE, [transaction_id], {"expense_type_id": 999})

        assert result.results[0].status_code == 404
        assert result.results[0].message == "Category 999 not found"

    def test_wrong_category_type(self, processor, transaction_service, sample_categories):
        """Test that an expense cannot get an income category."""
        transaction_id = add_expense(transaction_service)

        result = processor.run(
            BatchOperation.RECATEGORIZE,
            [transaction_id],
            {"expense_type_id": sample_categories["Salary"]},
        )

        assert result.results[0].status_code == 400
        assert "not an expense category" in result.results[0].message

    def test_deposit_has_no_category(self, processor, transaction_service, sample_categories):
        """Test that transfers cannot be recategorized."""
        transaction_id = transaction_service.create_transaction(
            amount=Decimal("100.00"), type=TransactionType.DEPOSIT
        )

        result = processor.run(
            BatchOperation.RECATEGORIZE, [transaction_id], {"expense_type_id": sample_categories["Groceries"]}
        )

        assert result.results[0].status_code == 400
        assert result.results[0].message == "Deposit transactions have no category"


class TestSplitLoanPayment:
    """Tests for splitting loan payments."""

    def split_params(self, categories, with_fee=True):
        params = {
            "principal_category_id": categories["Loan principal"],
            "interest_category_id": categories["Loan interest"],
        }
        if with_fee:
            params["handling_fee_category_id"] = categories["Loan fees"]
        return params

    def test_split_with_fee(self, processor, transaction_service, sample_categories, loan_payment):
        """Test splitting into principal, interest and fee rows."""
        result = processor.run(
            BatchOperation.SPLIT_LOAN_PAYMENT, [loan_payment.id], self.split_params(sample_categories)
        )

        assert result.all_success
        rows = transaction_service.get_rows(loan_payment.id)
        assert [(r.row_total, r.category_id) for r in rows] == [
            (Decimal("400.00"), sample_categories["Loan principal"]),
            (Decimal("50.00"), sample_categories["Loan interest"]),
            (Decimal("2.50"), sample_categories["Loan fees"]),
        ]
        assert sum(r.row_total for r in rows) == Decimal("452.50")

    def test_mismatch_without_fee_category(self, processor, transaction_service, sample_categories, loan_payment):
        """Test that leaving out the fee row fails when the fee is part of the amount."""
        result = processor.run(
            BatchOperation.SPLIT_LOAN_PAYMENT,
            [loan_payment.id],
            self.split_params(sample_categories, with_fee=False),
        )

        assert result.results[0].status_code == 400
        assert "sum to 450.00, expected 452.50" in result.results[0].message
        # Nothing was written for the failed item
        assert transaction_service.get_rows(loan_payment.id) == []

    def test_split_without_fee(self, processor, transaction_service, sample_categories):
        """Test a payment without fees needs no fee category."""
        transaction_id = add_expense(
            transaction_service,
            "-300.00",
            description="Lyhennys 250,00 euroa Korko 50,00 euroa Jäljellä 9 000,00 euroa",
        )

        result = processor.run(
            BatchOperation.SPLIT_LOAN_PAYMENT,
            [transaction_id],
            self.split_params(sample_categories, with_fee=False),
        )

        assert result.all_success
        assert [r.row_total for r in transaction_service.get_rows(transaction_id)] == [
            Decimal("250.00"),
            Decimal("50.00"),
        ]

    def test_mismatch_leaves_existing_rows(self, sample_categories, transaction_service, temp_db):
        """Test that a mismatching breakdown leaves existing rows untouched."""
        transaction_id = add_expense(transaction_service, "-100.00")
        rows = transaction_service.get_editable_rows(transaction_id)
        transaction_service.save_allocation(transaction_id, rows)
        processor = BulkBatchProcessor(
            temp_db,
            loan_breakdown=lambda t: LoanPaymentComponents(
                principal=Decimal("80.00"), interest=Decimal("10.00")
            ),
        )

        result = processor.run(
            BatchOperation.SPLIT_LOAN_PAYMENT, [transaction_id], self.split_params(sample_categories)
        )

        assert result.results[0].status_code == 400
        stored = transaction_service.get_rows(transaction_id)
        assert len(stored) == 1
        assert stored[0].row_total == Decimal("100.00")

    def test_not_a_loan_payment(self, processor, transaction_service, sample_categories):
        """Test that a transaction without a breakdown fails."""
        transaction_id = add_expense(transaction_service, description="Card purchase")

        result = processor.run(
            BatchOperation.SPLIT_LOAN_PAYMENT, [transaction_id], self.split_params(sample_categories)
        )

        assert result.results[0].status_code == 400
        assert "not a loan payment" in result.results[0].message

    def test_unknown_type_becomes_expense(self, processor, transaction_service, sample_categories):
        """Test that a split loan payment is stored as an expense."""
        transaction_id = transaction_service.create_transaction(
            amount=Decimal("-300.00"),
            description="Lyhennys 250,00 euroa Korko 50,00 euroa Jäljellä 9 000,00 euroa",
        )

        processor.run(
            BatchOperation.SPLIT_LOAN_PAYMENT,
            [transaction_id],
            self.split_params(sample_categories, with_fee=False),
        )

        assert transaction_service.get_transaction(transaction_id).type == TransactionType.EXPENSE


class TestDelete:
    """Tests for the delete operation."""

    def test_delete(self, processor, transaction_service):
        """Test deleting transactions with and without rows."""
        with_rows = add_expense(transaction_service)
        transaction_service.save_allocation(
            with_rows, transaction_service.get_editable_rows(with_rows)
        )
        without_rows = add_expense(transaction_service)

        result = processor.run(BatchOperation.DELETE, [with_rows, without_rows, 999])

        assert [r.status_code for r in result.results] == [200, 200, 404]
        assert transaction_service.get_transaction(with_rows) is None
        assert transaction_service.get_transaction(without_rows) is None

    def test_repeated_id_is_deleted_once(self, processor, transaction_service):
        """Test that a repeated id gets its own outcome and is not found the second time."""
        transaction_id = add_expense(transaction_service)

        result = processor.run(BatchOperation.DELETE, [transaction_id, transaction_id])

        assert [r.id for r in result.results] == [transaction_id, transaction_id]
        assert [r.status_code for r in result.results] == [200, 404]


class TestAccept:
    """Tests for the accept operation."""

    def test_accept(self, processor, transaction_service):
        """Test accepting a typed transaction."""
        transaction_id = add_expense(transaction_service)

        result = processor.run(BatchOperation.ACCEPT, [transaction_id])

        assert result.all_success
        assert transaction_service.get_transaction(transaction_id).status == TransactionStatus.ACCEPTED

    def test_unknown_type_cannot_be_accepted(self, processor, grocery_purchase, transaction_service):
        """Test that an untyped transaction stays pending."""
        result = processor.run(BatchOperation.ACCEPT, [grocery_purchase.id])

        assert result.results[0].status_code == 400
        assert result.results[0].message == "Type cannot be unknown for accepted transactions"
        assert transaction_service.get_transaction(grocery_purchase.id).status == TransactionStatus.PENDING

    def test_already_accepted(self, processor, transaction_service, accept):
        """Test that accepting twice conflicts."""
        transaction_id = add_expense(transaction_service)
        accept(transaction_id)

        result = processor.run(BatchOperation.ACCEPT, [transaction_id])

        assert result.results[0].status_code == 409


class TestApplyRules:
    """Tests for classifying transactions with rules."""

    def test_applies_first_matching_rule(self, processor, rule_service, transaction_service, sample_categories, grocery_purchase):
        """Test that an unknown transaction gets type and category from the first matching rule."""
        rule_service.create_rule(
            "Groceries",
            TransactionType.EXPENSE,
            [{"field": "receiver", "operator": "contains", "value": "K-Market"}],
            category_id=sample_categories["Groceries"],
        )
        rule_service.create_rule(
            "Household",
            TransactionType.EXPENSE,
            [{"field": "receiver", "operator": "contains", "value": "Kamppi"}],
            category_id=sample_categories["Household"],
        )

        result = processor.run(BatchOperation.APPLY_RULES, [grocery_purchase.id])

        assert result.all_success
        assert result.results[0].message == "Rule 'Groceries': type set"
        transaction = transaction_service.get_transaction(grocery_purchase.id)
        assert transaction.type == TransactionType.EXPENSE
        rows = transaction_service.get_rows(grocery_purchase.id)
        assert len(rows) == 1
        assert rows[0].row_total == Decimal("120.00")
        assert rows[0].category_id == sample_categories["Groceries"]

    def test_no_matching_rule(self, processor, transaction_service, grocery_purchase):
        """Test that a transaction without a matching rule is reported."""
        result = processor.run(BatchOperation.APPLY_RULES, [grocery_purchase.id], {"rules": []})

        assert result.results[0].status_code == 404
        assert result.results[0].message == "No matching allocation rule"

    def test_transfer_rule_sets_type_only(self, processor, rule_service, transaction_service, grocery_purchase):
        """Test that a withdraw rule only sets the type."""
        rule_service.create_rule(
            "Cash",
            TransactionType.WITHDRAW,
            [{"field": "description", "operator": "equals", "value": "Card purchase"}],
        )

        processor.run(BatchOperation.APPLY_RULES, [grocery_purchase.id])

        assert transaction_service.get_transaction(grocery_purchase.id).type == TransactionType.WITHDRAW
        assert transaction_service.get_rows(grocery_purchase.id) == []

    def test_loan_payment_rule_splits(self, processor, rule_service, transaction_service, sample_categories, loan_payment):
        """Test that a rule pointing to the loan payment category splits the payment."""
        rule_service.create_rule(
            "Mortgage",
            TransactionType.EXPENSE,
            [{"field": "receiver", "operator": "equals", "value": "Bank Oyj"}],
            category_id=sample_categories["Loan payment"],
        )

        result = processor.run(BatchOperation.APPLY_RULES, [loan_payment.id])

        assert result.all_success
        assert result.results[0].message == "Rule 'Mortgage': loan payment split"
        rows = transaction_service.get_rows(loan_payment.id)
        assert [r.category_id for r in rows] == [
            sample_categories["Loan principal"],
            sample_categories["Loan interest"],
            sample_categories["Loan fees"],
        ]

    def test_accepted_transactions_are_skipped(self, processor, rule_service, transaction_service, sample_categories, accept):
        """Test that accepted transactions are not reclassified."""
        transaction_id = add_expense(transaction_service, receiver="K-Market")
        accept(transaction_id)
        rule_service.create_rule(
            "Groceries",
            TransactionType.EXPENSE,
            [{"field": "receiver", "operator": "contains", "value": "K-Market"}],
            category_id=sample_categories["Groceries"],
        )

        result = processor.run(BatchOperation.APPLY_RULES, [transaction_id])

        assert result.results[0].status_code == 409
        assert transaction_service.get_rows(transaction_id) == []

    def test_case_insensitive_processor(self, temp_db, rule_service, transaction_service, sample_categories, grocery_purchase):
        """Test that the resolver's matcher decides case handling."""
        from allocit.domain.matching import ConditionMatcher
        from allocit.domain.rules import RuleResolver

        rule_service.create_rule(
            "Groceries",
            TransactionType.EXPENSE,
            [{"field": "receiver", "operator": "contains", "value": "k-market"}],
            category_id=sample_categories["Groceries"],
        )

        strict = BulkBatchProcessor(temp_db).run(BatchOperation.APPLY_RULES, [grocery_purchase.id])
        assert strict.results[0].status_code == 404

        relaxed = BulkBatchProcessor(
            temp_db, resolver=RuleResolver(ConditionMatcher(case_sensitive=False))
        ).run(BatchOperation.APPLY_RULES, [grocery_purchase.id])
        assert relaxed.all_success
