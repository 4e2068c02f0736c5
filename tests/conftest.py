"""Shared pytest fixtures for tallyup tests."""

import tempfile
import os
from datetime import date
from decimal import Decimal
import pytest

from tallyup.database.factories import create_sqlite_database
from tallyup.domain.categorization import CategorizationService
from tallyup.domain.duplicates import DuplicateService
from tallyup.domain.flag_state import FlagStateManager
from tallyup.domain.installments import InstallmentService
from tallyup.domain.rules import RuleService
from tallyup.domain.similar import SimilarTransactionService
from tallyup.domain.transfers import TransferService

USER = "user-1"
OTHER_USER = "user-2"


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def user_id():
    return USER


@pytest.fixture
def other_user_id():
    return OTHER_USER


@pytest.fixture
def flag_state(temp_db):
    """Create a FlagStateManager with a temporary database."""
    return FlagStateManager(temp_db)


@pytest.fixture
def rule_service(temp_db):
    """Create a RuleService with a temporary database."""
    return RuleService(temp_db)


@pytest.fixture
def duplicate_service(temp_db):
    """Create a DuplicateService with a temporary database."""
    return DuplicateService(temp_db)


@pytest.fixture
def transfer_service(temp_db):
    """Create a TransferService with a temporary database."""
    return TransferService(temp_db)


@pytest.fixture
def similar_service(temp_db):
    """Create a SimilarTransactionService with a temporary database."""
    return SimilarTransactionService(temp_db)


@pytest.fixture
def categorization_service(temp_db):
    """Create a CategorizationService with a temporary database."""
    return CategorizationService(temp_db)


@pytest.fixture
def installment_service(temp_db):
    """Create an InstallmentService with a temporary database."""
    return InstallmentService(temp_db)


@pytest.fixture
def sample_statement(temp_db):
    """Create a bank statement owned by USER."""
    document_id = temp_db.create_document(USER, "checking-2024-01.pdf")
    return temp_db.create_bank_statement(document_id, account_name="Checking")


@pytest.fixture
def other_statement(temp_db):
    """Create a bank statement owned by OTHER_USER."""
    document_id = temp_db.create_document(OTHER_USER, "other.pdf")
    return temp_db.create_bank_statement(document_id, account_name="Other Checking")


@pytest.fixture
def sample_categories(temp_db):
    """Create a few system categories and return their IDs by name."""
    return {
        name: temp_db.create_category(name)
        for name in ("Coffee", "Groceries", "Dining", "Transfers")
    }


@pytest.fixture
def add_receipt(temp_db):
    """Factory creating receipts for USER (or another user)."""

    def _add(merchant, amount, on=date(2024, 1, 10), user=USER, **kwargs):
        return temp_db.create_receipt(
            user_id=user,
            total_amount=Decimal(str(amount)),
            merchant_name=merchant,
            date=on,
            **kwargs,
        )

    return _add


@pytest.fixture
def add_transaction(temp_db, sample_statement):
    """Factory creating bank transactions on the sample statement."""

    def _add(merchant, amount, on=date(2024, 1, 10), statement_id=None, **kwargs):
        return temp_db.create_bank_transaction(
            bank_statement_id=statement_id or sample_statement,
            amount=Decimal(str(amount)),
            merchant_name=merchant,
            date=on,
            **kwargs,
        )

    return _add


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
