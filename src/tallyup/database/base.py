"""Abstract database interface."""

from abc import ABC, abstractmethod
from typing import Any, Optional
from datetime import date
from decimal import Decimal

# Import entities directly to avoid circular import through domain/__init__.py
from tallyup.domain.entities import (
    BankStatement,
    Business,
    Category,
    CategoryRule,
    FinancialEntry,
    ScoredEntry,
)


class Database(ABC):
    """Abstract database interface for tallyup.

    Every entry read or write takes the calling user's id. Receipts are
    scoped by their own user column; bank transactions are scoped through
    the statement -> document -> user join. Writes return the number of rows
    affected, which is 0 when the caller does not own the row.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Document and statement operations
    @abstractmethod
    def create_document(self, user_id: str, filename: str) -> int:
        """Create a document. Returns document ID."""
        pass

    @abstractmethod
    def create_bank_statement(self, document_id: int, account_name: Optional[str] = None) -> int:
        """Create a bank statement for a document. Returns statement ID."""
        pass

    @abstractmethod
    def get_bank_statement(self, statement_id: int, user_id: str) -> Optional[BankStatement]:
        """Get a bank statement owned by the user."""
        pass

    # Entry operations
    @abstractmethod
    def create_receipt(
        self,
        user_id: str,
        total_amount: Decimal,
        merchant_name: Optional[str] = None,
        date: Optional[date] = None,
        description: Optional[str] = None,
        currency: str = "USD",
        category_id: Optional[int] = None,
        business_id: Optional[int] = None,
        document_id: Optional[int] = None,
        flags: Optional[dict[str, Any]] = None,
    ) -> int:
        """Create a receipt. Returns receipt ID."""
        pass

    @abstractmethod
    def create_bank_transaction(
        self,
        bank_statement_id: int,
        amount: Decimal,
        merchant_name: Optional[str] = None,
        date: Optional[date] = None,
        description: Optional[str] = None,
        currency: str = "USD",
        category_id: Optional[int] = None,
        business_id: Optional[int] = None,
        flags: Optional[dict[str, Any]] = None,
    ) -> int:
        """Create a bank transaction. Returns transaction ID."""
        pass

    @abstractmethod
    def get_entry(self, entry_type: str, entry_id: int, user_id: str) -> Optional[FinancialEntry]:
        """Get a receipt or bank transaction owned by the user."""
        pass

    @abstractmethod
    def list_entries(
        self,
        user_id: str,
        entry_type: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[FinancialEntry]:
        """List the user's entries of one kind, newest first."""
        pass

    @abstractmethod
    def update_entry_flags(
        self, entry_type: str, entry_id: int, user_id: str, flags: Optional[dict[str, Any]]
    ) -> int:
        """Replace an owned entry's flag bag. Returns rows affected."""
        pass

    @abstractmethod
    def update_entry_category(
        self,
        entry_type: str,
        entry_id: int,
        user_id: str,
        category_id: Optional[int],
        business_id: Optional[int],
    ) -> int:
        """Set an owned entry's category and business. Returns rows affected."""
        pass

    @abstractmethod
    def find_similar_entries(
        self,
        user_id: str,
        entry_type: str,
        merchant_name: str,
        threshold: float,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[ScoredEntry]:
        """Find entries whose merchant similarity to merchant_name exceeds threshold.

        Results are ordered by similarity descending, then date descending.
        Entries without a merchant name are never returned.
        """
        pass

    @abstractmethod
    def find_bank_transactions_by_amount(
        self,
        user_id: str,
        min_amount: Decimal,
        max_amount: Decimal,
        start_date: date,
        end_date: date,
        exclude_id: Optional[int] = None,
    ) -> list[FinancialEntry]:
        """Find the user's bank transactions with amount and date inside the given ranges."""
        pass

    # Category and business operations
    @abstractmethod
    def create_category(
        self, name: str, user_id: Optional[str] = None, category_type: str = "expense"
    ) -> int:
        """Create a category (system category when user_id is None). Returns category ID."""
        pass

    @abstractmethod
    def get_category(self, category_id: int) -> Optional[Category]:
        """Get category by ID."""
        pass

    @abstractmethod
    def list_categories(self, user_id: str) -> list[Category]:
        """List system categories and the user's own categories."""
        pass

    @abstractmethod
    def create_business(self, user_id: str, name: str) -> int:
        """Create a business. Returns business ID."""
        pass

    @abstractmethod
    def get_business(self, business_id: int) -> Optional[Business]:
        """Get business by ID."""
        pass

    # Category rule operations
    @abstractmethod
    def create_category_rule(
        self,
        user_id: str,
        field: str,
        match_type: str,
        value: str,
        category_id: int,
        business_id: Optional[int] = None,
        display_name: Optional[str] = None,
        is_enabled: bool = True,
        source: Optional[str] = None,
        created_from: Optional[str] = None,
    ) -> int:
        """Create a categorization rule. Returns rule ID."""
        pass

    @abstractmethod
    def get_category_rule(self, rule_id: int) -> Optional[CategoryRule]:
        """Get rule by ID."""
        pass

    @abstractmethod
    def find_category_rule(self, user_id: str, field: str, value: str) -> Optional[CategoryRule]:
        """Find the user's rule for a field and value, case-insensitively.

        Enabled rules are preferred over disabled ones.
        """
        pass

    @abstractmethod
    def update_category_rule(self, rule_id: int, values: dict[str, Any]) -> None:
        """Update rule columns given as a mapping of field name to new value."""
        pass

    @abstractmethod
    def delete_category_rule(self, rule_id: int) -> None:
        """Delete a rule."""
        pass

    @abstractmethod
    def list_category_rules(
        self,
        user_id: str,
        enabled_only: bool = False,
        field: Optional[str] = None,
    ) -> list[CategoryRule]:
        """List the user's rules in creation order."""
        pass
