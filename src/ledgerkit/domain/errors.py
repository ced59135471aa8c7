"""Shared domain error messages and error types."""

from typing import Optional


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class DependencyError(DomainError):
    """Operation blocked due to dependent domain data."""


class SchemaError(DomainError):
    """A stored record does not conform to its entity schema."""


class SequenceCapacityError(DomainError):
    """The 4-digit transaction sequence for an account/year is exhausted."""


class BatchLimitError(DomainError):
    """An atomic write batch would exceed the configured operation limit."""


class RetryExhaustedError(Exception):
    """A unit of work kept failing after every retry attempt."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def account_not_found(account_id: int) -> str:
    """Return message for missing bank account."""
    return f"Bank account {account_id} not found"


def transaction_not_found(transaction_id: int) -> str:
    """Return message for missing transaction."""
    return f"Transaction {transaction_id} not found"


def invalid_amounts(income, expense, row: Optional[int] = None) -> str:
    """Return message when income/expense are not exactly one positive amount."""
    prefix = f"Row {row}: " if row is not None else ""
    return (
        f"{prefix}exactly one of income or expense must be positive "
        f"(income={income}, expense={expense})"
    )


def account_delete_blocked(account_id: int, transaction_count: int) -> str:
    """Return message when an account still has transactions."""
    return (
        f"Cannot delete bank account {account_id}: it has {transaction_count} "
        f"transaction{'s' if transaction_count != 1 else ''}. "
        "Please reassign or delete them first."
    )
