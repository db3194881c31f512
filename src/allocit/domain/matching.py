"""Allocation rule condition matching."""

from decimal import Decimal, InvalidOperation
from typing import Optional

from allocit.domain.entities import (
    AllocationCondition,
    AllocationRule,
    ConditionField,
    ConditionOperator,
    Transaction,
)

TEXT_OPERATORS = frozenset({ConditionOperator.EQUALS, ConditionOperator.CONTAINS})
AMOUNT_OPERATORS = frozenset(
    {ConditionOperator.EQUALS, ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN}
)


def _parse_number(value: str) -> Optional[Decimal]:
    try:
        number = Decimal(value.strip())
    except (InvalidOperation, AttributeError):
        return None
    if not number.is_finite():
        return None
    return number


class ConditionMatcher:
    """Evaluate rule conditions against a transaction.

    Text fields are compared as strings, case-sensitively unless
    ``case_sensitive`` is False. Amounts are compared numerically on their
    absolute values, so a rule written as ``amount greaterThan 100`` matches
    a bank line of -150.00 as well as 150.00.
    """

    def __init__(self, case_sensitive: bool = True):
        self.case_sensitive = case_sensitive

    def matches(self, condition: AllocationCondition, transaction: Transaction) -> bool:
        """Check a single condition against a transaction."""
        if condition.field == ConditionField.AMOUNT:
            return self._matches_amount(condition, transaction.amount)
        return self._matches_text(condition, self._text_value(condition.field, transaction))

    def matches_all(self, rule: AllocationRule, transaction: Transaction) -> bool:
        """Check that every condition of a rule matches.

        A rule without conditions never matches.
        """
        if not rule.conditions:
            return False
        return all(self.matches(condition, transaction) for condition in rule.conditions)

    @staticmethod
    def _text_value(field: ConditionField, transaction: Transaction) -> str:
        if field == ConditionField.SENDER:
            return transaction.sender or ""
        if field == ConditionField.RECEIVER:
            return transaction.receiver or ""
        if field == ConditionField.DESCRIPTION:
            return transaction.description or ""
        return ""

    def _matches_text(self, condition: AllocationCondition, value: str) -> bool:
        expected = condition.value
        if not self.case_sensitive:
            value = value.lower()
            expected = expected.lower()

        if condition.operator == ConditionOperator.EQUALS:
            return value == expected
        if condition.operator == ConditionOperator.CONTAINS:
            return expected in value
        # Ordering operators are only defined for amounts
        return False

    @staticmethod
    def _matches_amount(condition: AllocationCondition, amount: Decimal) -> bool:
        if condition.operator not in AMOUNT_OPERATORS:
            return False
        expected = _parse_number(condition.value)
        if expected is None or amount is None:
            return False

        actual = abs(Decimal(amount))
        expected = abs(expected)
        if condition.operator == ConditionOperator.EQUALS:
            return actual == expected
        if condition.operator == ConditionOperator.GREATER_THAN:
            return actual > expected
        return actual < expected
