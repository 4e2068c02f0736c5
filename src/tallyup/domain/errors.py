"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist or is not visible to the user."""


def category_not_found(category_id: int) -> str:
    """Return message for a missing or foreign category."""
    return f"Category {category_id} not found"


def business_not_found(business_id: int) -> str:
    """Return message for a missing or foreign business."""
    return f"Business {business_id} not found"


def rule_not_found(rule_id: int) -> str:
    """Return message for a missing or foreign rule."""
    return f"Rule {rule_id} not found"


def entry_not_found(entry_type: str, entry_id: int) -> str:
    """Return message for a missing or foreign entry."""
    label = "Receipt" if entry_type == "receipt" else "Bank transaction"
    return f"{label} {entry_id} not found"


def statement_not_found(statement_id: int) -> str:
    """Return message for a missing or foreign bank statement."""
    return f"Bank statement {statement_id} not found"


def invalid_entry_type(entry_type: str) -> str:
    """Return message for an unknown entry kind."""
    return f"Unknown entry type '{entry_type}' (expected 'receipt' or 'bank_transaction')"


def invalid_regex(pattern: str, reason: str) -> str:
    """Return message for a rule pattern that does not compile."""
    return f"Invalid regular expression '{pattern}': {reason}"
