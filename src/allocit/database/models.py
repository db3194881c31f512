"""SQLAlchemy models for allocit database."""

from datetime import datetime, UTC
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


class Category(Base):
    """Expense or income type model."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    # 0 = expense, 1 = income
    category_type = Column(Integer, nullable=False, default=0)
    key = Column(String, unique=True, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    rows = relationship("AllocationRow", back_populates="category")


class Transaction(Base):
    """Imported bank transaction model."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    type = Column(Integer, nullable=False, default=0)
    status = Column(Integer, nullable=False, default=1)
    sender = Column(String, nullable=True)
    receiver = Column(String, nullable=True)
    description = Column(String, nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    transaction_date = Column(Date, nullable=True)
    accounting_date = Column(Date, nullable=True)
    imported_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    rows = relationship(
        "AllocationRow",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="AllocationRow.position",
    )


class AllocationRow(Base):
    """Categorized slice of a transaction amount."""

    __tablename__ = "allocation_rows"

    id = Column(Integer, primary_key=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    description = Column(String, nullable=False, default="")
    quantity = Column(Integer, nullable=False, default=1)
    # Unit amount keeps full precision so total == round(unit * quantity, 2)
    unit_amount = Column(String, nullable=False, default="0")
    row_total = Column(Numeric(12, 2), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)

    # Relationships
    transaction = relationship("Transaction", back_populates="rows")
    category = relationship("Category", back_populates="rows")


class AllocationRule(Base):
    """Allocation rule model with JSON-encoded conditions."""

    __tablename__ = "allocation_rules"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    transaction_type = Column(Integer, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    conditions = Column(JSON, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    priority = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
