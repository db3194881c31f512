"""Category domain service."""

from typing import Optional
from allocit.database.base import Database
from allocit.domain.entities import Category, CategoryType
from allocit.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    category_key_not_found,
    category_not_found,
)

# Keys of the categories used by the loan payment split
LOAN_PRINCIPAL = "loan-principal"
LOAN_INTEREST = "loan-interest"
LOAN_HANDLING_FEE = "loan-handling-fee"
LOAN_PAYMENT = "loan-payment"


class CategoryService:
    """Service for looking up expense and income categories."""

    def __init__(self, db: Database):
        """Initialize category service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_category(
        self, name: str, category_type: CategoryType, key: Optional[str] = None
    ) -> int:
        """Create a category.

        Args:
            name: Category name
            category_type: Expense or income
            key: Optional stable key (e.g. "loan-interest")

        Returns:
            Category ID

        Raises:
            ConflictError: If the key is already in use
        """
        if key is not None and self.db.get_category_by_key(key) is not None:
            raise ConflictError(f"Category with key '{key}' already exists")
        return self.db.create_category(name=name, category_type=category_type, key=key)

    def get_category(self, category_id: int) -> Optional[Category]:
        """Get category by ID.

        Args:
            category_id: Category ID

        Returns:
            Category entity or None if not found
        """
        return self.db.get_category(category_id)

    def require_category(
        self, category_id: int, category_type: Optional[CategoryType] = None
    ) -> Category:
        """Get a category by ID, checking its type.

        Args:
            category_id: Category ID
            category_type: Required category type, if any

        Returns:
            Category entity

        Raises:
            NotFoundError: If the category doesn't exist
            ValidationError: If the category has the wrong type
        """
        category = self.db.get_category(category_id)
        if category is None:
            raise NotFoundError(category_not_found(category_id))
        if category_type is not None and category.category_type != category_type:
            raise ValidationError(
                f"Category {category_id} is not an {category_type.name.lower()} category"
            )
        return category

    def get_category_by_key(self, key: str) -> Optional[Category]:
        """Get category by its stable key."""
        return self.db.get_category_by_key(key)

    def require_category_by_key(self, key: str) -> Category:
        """Get category by key or raise NotFoundError."""
        category = self.db.get_category_by_key(key)
        if category is None:
            raise NotFoundError(category_key_not_found(key))
        return category

    def list_categories(self, category_type: Optional[CategoryType] = None) -> list[Category]:
        """List categories.

        Args:
            category_type: Optional type filter

        Returns:
            List of category entities
        """
        return self.db.list_categories(category_type=category_type)
