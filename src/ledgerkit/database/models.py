"""SQLAlchemy models for ledgerkit database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Numeric,
    Boolean,
    Index,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


def _now() -> datetime:
    return datetime.now(UTC)


class BankAccount(Base):
    """Bank account model."""

    __tablename__ = "bank_accounts"

    id = Column(Integer, primary_key=True)
    account_name = Column(String, unique=True, nullable=False)
    account_number = Column(String, nullable=True)
    account_type = Column(String, default="savings", nullable=False)
    bank_name = Column(String, nullable=True)
    description = Column(String, nullable=True)
    initial_amount = Column(Numeric(14, 2), default=0, nullable=False)
    current_balance = Column(Numeric(14, 2), default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    # Relationships
    year_end_balances = relationship(
        "YearEndBalance", back_populates="account", cascade="all, delete-orphan"
    )
    transactions = relationship("Transaction", back_populates="account")


class YearEndBalance(Base):
    """Cached closing balance of an account for one fiscal year."""

    __tablename__ = "year_end_balances"

    id = Column(Integer, primary_key=True)
    bank_account_id = Column(Integer, ForeignKey("bank_accounts.id"), nullable=False)
    year = Column(Integer, nullable=False)
    balance = Column(Numeric(14, 2), nullable=False)
    calculated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    __table_args__ = (UniqueConstraint("bank_account_id", "year", name="uq_account_year"),)

    account = relationship("BankAccount", back_populates="year_end_balances")


class Transaction(Base):
    """Transaction model.

    ``transaction_date`` holds the date text as stored; rows written by the
    engine use the canonical DD-MMM-YYYY form.
    """

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    bank_account_id = Column(Integer, ForeignKey("bank_accounts.id"), nullable=True)
    transaction_number = Column(String, nullable=True)
    transaction_date = Column(String, nullable=False)
    income = Column(Numeric(14, 2), default=0, nullable=False)
    expense = Column(Numeric(14, 2), default=0, nullable=False)
    main_description = Column(String, default="", nullable=False)
    sub_description = Column(String, nullable=True)
    payer_payee = Column(String, nullable=True)
    transaction_type = Column(String, nullable=True)
    project_account = Column(String, nullable=True)
    transaction_purpose = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    input_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    __table_args__ = (Index("ix_transactions_account_number", "bank_account_id", "transaction_number"),)

    # Relationships
    account = relationship("BankAccount", back_populates="transactions")
    splits = relationship("TransactionSplit", back_populates="transaction", cascade="all, delete-orphan")


class TransactionSplit(Base):
    """Split of a transaction across categorizations."""

    __tablename__ = "transaction_splits"

    id = Column(Integer, primary_key=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False)
    split_index = Column(Integer, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    transaction_purpose = Column(String, nullable=True)
    project_account = Column(String, nullable=True)
    payer_payee = Column(String, nullable=True)
    transaction_type = Column(String, nullable=True)
    description = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    transaction = relationship("Transaction", back_populates="splits")


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
