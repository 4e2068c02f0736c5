"""Domain model entities for tallyup.

These are pure data classes representing business concepts, independent of
database schema. Receipts and bank transactions share one entity,
FinancialEntry, distinguished by ``entry_type``.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from typing import Any, Optional


@dataclass(frozen=True)
class BankStatement:
    """Bank statement parsed from a document."""

    id: int
    document_id: int
    account_name: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class FinancialEntry:
    """A receipt or a bank transaction.

    ``user_id`` is only populated for receipts; bank transaction ownership is
    derived through statement -> document -> user.
    """

    id: int
    entry_type: str
    merchant_name: Optional[str]
    description: Optional[str]
    amount: Decimal
    date: Optional[date]
    currency: str
    category_id: Optional[int]
    business_id: Optional[int]
    flags: dict[str, Any] = field(default_factory=dict)
    user_id: Optional[str] = None
    document_id: Optional[int] = None
    bank_statement_id: Optional[int] = None
    created_at: Optional[datetime] = None

    @property
    def key(self) -> tuple[str, int]:
        """Identity across both kinds."""
        return (self.entry_type, self.id)


@dataclass(frozen=True)
class ScoredEntry:
    """An entry returned from a similarity query with its merchant score."""

    entry: FinancialEntry
    similarity: float


@dataclass(frozen=True)
class Category:
    """Category domain entity. System categories have no user."""

    id: int
    name: str
    user_id: Optional[str]
    category_type: str
    created_at: datetime


@dataclass(frozen=True)
class Business:
    """Business an entry can be attributed to (absent = personal)."""

    id: int
    user_id: str
    name: str
    created_at: datetime


@dataclass(frozen=True)
class CategoryRule:
    """User-defined categorization rule."""

    id: int
    user_id: str
    field: str
    match_type: str
    value: str
    category_id: int
    business_id: Optional[int]
    display_name: Optional[str]
    is_enabled: bool
    source: Optional[str]
    created_from: Optional[str]
    created_at: datetime
    updated_at: datetime
