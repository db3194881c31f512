"""Allocation rule resolution and rule management."""

from typing import Any, Iterable, Optional, Union

from allocit.database.base import Database
from allocit.domain.entities import (
    AllocationCondition,
    AllocationRule,
    CategoryType,
    ConditionField,
    ConditionOperator,
    Transaction,
    TransactionType,
)
from allocit.domain.errors import (
    NotFoundError,
    ValidationError,
    category_not_found,
    rule_not_found,
)
from allocit.domain.matching import AMOUNT_OPERATORS, TEXT_OPERATORS, ConditionMatcher
from allocit.logger import get_logger

logger = get_logger()

ConditionInput = Union[AllocationCondition, dict[str, Any]]


class RuleResolver:
    """Pick the rule that applies to a transaction.

    Rules are tried in list order; the order is the priority. Rule ids and
    creation times play no part in the choice.
    """

    def __init__(self, matcher: Optional[ConditionMatcher] = None):
        self.matcher = matcher or ConditionMatcher()

    def _candidates(
        self, transaction: Transaction, rules: Iterable[AllocationRule], match_type: bool
    ) -> Iterable[AllocationRule]:
        for rule in rules:
            if not rule.is_active:
                continue
            if match_type and rule.transaction_type != transaction.type:
                continue
            yield rule

    def matching_rules(
        self, transaction: Transaction, rules: Iterable[AllocationRule], match_type: bool = True
    ) -> list[AllocationRule]:
        """Return every active rule that matches, in priority order."""
        return [
            rule
            for rule in self._candidates(transaction, rules, match_type)
            if self.matcher.matches_all(rule, transaction)
        ]

    def find_rule(
        self, transaction: Transaction, rules: Iterable[AllocationRule], match_type: bool = True
    ) -> Optional[AllocationRule]:
        """Return the first active rule whose conditions all match.

        Args:
            transaction: Transaction to classify
            rules: Rules in priority order
            match_type: If True, only rules for the transaction's own type are tried

        Returns:
            Matching rule or None
        """
        for rule in self._candidates(transaction, rules, match_type):
            if self.matcher.matches_all(rule, transaction):
                return rule
        return None

    def resolve(self, transaction: Transaction, rules: Iterable[AllocationRule]) -> Optional[int]:
        """Return the category id assigned by the first matching rule, or None."""
        rule = self.find_rule(transaction, rules)
        if rule is None:
            return None
        return rule.category_id


def parse_condition(condition: ConditionInput) -> AllocationCondition:
    """Build a condition from a condition entity or a plain dict.

    Raises:
        ValidationError: If the field or operator name is unknown
    """
    if isinstance(condition, AllocationCondition):
        return condition
    try:
        return AllocationCondition(
            field=ConditionField(condition["field"]),
            operator=ConditionOperator(condition["operator"]),
            value=str(condition["value"]),
        )
    except (KeyError, ValueError) as e:
        raise ValidationError(f"Invalid condition {condition!r}: {e}")


def validate_conditions(conditions: list[AllocationCondition]) -> None:
    """Check that a condition list is usable by the matcher.

    Raises:
        ValidationError: If the list is empty or an operator does not fit its field
    """
    if not conditions:
        raise ValidationError("At least one condition is required")

    for condition in conditions:
        if condition.field == ConditionField.AMOUNT:
            if condition.operator not in AMOUNT_OPERATORS:
                raise ValidationError(
                    f'Invalid operator "{condition.operator.value}" for amount field'
                )
        elif condition.operator not in TEXT_OPERATORS:
            raise ValidationError(
                f'Invalid operator "{condition.operator.value}" '
                f'for text field "{condition.field.value}"'
            )


class AllocationRuleService:
    """Service for managing allocation rules."""

    def __init__(self, db: Database):
        """Initialize allocation rule service.

        Args:
            db: Database instance
        """
        self.db = db

    def _validate(
        self,
        transaction_type: TransactionType,
        category_id: Optional[int],
        conditions: list[ConditionInput],
    ) -> tuple[AllocationCondition, ...]:
        parsed = tuple(parse_condition(c) for c in conditions)
        validate_conditions(list(parsed))

        if transaction_type == TransactionType.UNKNOWN:
            raise ValidationError("Rules cannot assign the unknown transaction type")

        if transaction_type in (TransactionType.DEPOSIT, TransactionType.WITHDRAW):
            if category_id is not None:
                raise ValidationError("Deposit and withdraw rules cannot set a category")
            return parsed

        if category_id is not None:
            category = self.db.get_category(category_id)
            if category is None:
                raise NotFoundError(category_not_found(category_id))
            if transaction_type == TransactionType.EXPENSE and category.category_type != CategoryType.EXPENSE:
                raise ValidationError("Cannot set income type for expense transactions")
            if transaction_type == TransactionType.INCOME and category.category_type != CategoryType.INCOME:
                raise ValidationError("Cannot set expense type for income transactions")
        return parsed

    def create_rule(
        self,
        name: str,
        transaction_type: TransactionType,
        conditions: list[ConditionInput],
        category_id: Optional[int] = None,
        is_active: bool = True,
        priority: Optional[int] = None,
    ) -> int:
        """Create an allocation rule.

        Args:
            name: Rule name
            transaction_type: Type assigned to matching transactions
            conditions: Conditions, all of which must match
            category_id: Expense or income category for matching rows
            is_active: Whether the rule takes part in resolution
            priority: Position in the rule order (appended last if None)

        Returns:
            Rule ID

        Raises:
            ValidationError: If conditions or category do not fit the type
            NotFoundError: If the category doesn't exist
        """
        parsed = self._validate(transaction_type, category_id, conditions)
        if priority is None:
            priority = self.db.get_max_rule_priority() + 1

        rule_id = self.db.create_rule(
            name=name,
            transaction_type=transaction_type,
            category_id=category_id,
            conditions=parsed,
            is_active=is_active,
            priority=priority,
        )
        logger.info(f"Created allocation rule {rule_id} '{name}' at priority {priority}")
        return rule_id

    def update_rule(
        self,
        rule_id: int,
        name: str,
        transaction_type: TransactionType,
        conditions: list[ConditionInput],
        category_id: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> None:
        """Replace the definition of a rule, keeping its priority.

        Raises:
            NotFoundError: If the rule doesn't exist
            ValidationError: If the new definition is invalid
        """
        self.require_rule(rule_id)
        parsed = self._validate(transaction_type, category_id, conditions)
        self.db.update_rule(
            rule_id=rule_id,
            name=name,
            transaction_type=transaction_type,
            category_id=category_id,
            conditions=parsed,
            is_active=is_active,
        )

    def get_rule(self, rule_id: int) -> Optional[AllocationRule]:
        """Get rule by ID."""
        return self.db.get_rule(rule_id)

    def require_rule(self, rule_id: int) -> AllocationRule:
        """Get rule by ID or raise NotFoundError."""
        rule = self.db.get_rule(rule_id)
        if rule is None:
            raise NotFoundError(rule_not_found(rule_id))
        return rule

    def delete_rule(self, rule_id: int) -> None:
        """Delete a rule."""
        self.require_rule(rule_id)
        self.db.delete_rule(rule_id)

    def list_rules(self) -> list[AllocationRule]:
        """List all rules in priority order."""
        return self.db.list_rules()

    def list_active_rules_for(self, transaction_type: TransactionType) -> list[AllocationRule]:
        """List active rules for one transaction type in priority order."""
        return self.db.list_active_rules_for(transaction_type)

    def reorder_rules(self, rule_ids: list[int]) -> list[AllocationRule]:
        """Set rule priorities to follow the given id order.

        Raises:
            ValidationError: If an id is repeated or unknown
        """
        if len(set(rule_ids)) != len(rule_ids):
            raise ValidationError("Rule ids must not repeat")
        known = {rule.id for rule in self.db.list_rules()}
        unknown = [rule_id for rule_id in rule_ids if rule_id not in known]
        if unknown:
            raise ValidationError(f"Unknown rule ids: {', '.join(str(i) for i in unknown)}")

        for index, rule_id in enumerate(rule_ids):
            self.db.set_rule_priority(rule_id, index)
        return self.db.list_rules()
