"""Tests for the flag state manager."""

import pytest

from tallyup.database.models import Receipt
from tallyup.domain.constants import BANK_TRANSACTION, RECEIPT
from tallyup.domain.errors import ValidationError
from tallyup.domain.flags import BNPL, REASON_MANUAL


def test_get_flags_of_unflagged_entry_is_empty(flag_state, add_receipt, user_id):
    receipt_id = add_receipt("Starbucks", "5.75")
    assert flag_state.get_flags(RECEIPT, receipt_id, user_id).is_empty()


def test_get_flags_hides_other_users_entries(flag_state, add_receipt, user_id, other_user_id):
    receipt_id = add_receipt("Starbucks", "5.75", user=other_user_id)
    assert flag_state.get_flags(RECEIPT, receipt_id, user_id) is None


def test_unknown_entry_type_is_rejected(flag_state, user_id):
    with pytest.raises(ValidationError):
        flag_state.get_flags("invoice", 1, user_id)
    with pytest.raises(ValidationError):
        flag_state.update("invoice", 1, user_id, lambda bag: None)


def test_update_writes_whole_bag(flag_state, temp_db, add_transaction, user_id):
    txn_id = add_transaction("Affirm", "-50.00", flags={"isInternalTransfer": True})

    assert flag_state.update(
        BANK_TRANSACTION, txn_id, user_id, lambda bag: bag.set_concern(BNPL, {"isBnplPurchase": True})
    )

    flags = temp_db.get_entry(BANK_TRANSACTION, txn_id, user_id).flags
    assert flags["isInternalTransfer"] is True
    assert flags["isBnplPurchase"] is True


def test_update_of_missing_entry_returns_false(flag_state, user_id):
    assert flag_state.update(RECEIPT, 4242, user_id, lambda bag: None) is False


def test_manual_exclude_and_include(flag_state, temp_db, add_receipt, user_id):
    receipt_id = add_receipt("Costco", "250.00")

    assert flag_state.set_excluded_from_totals(RECEIPT, receipt_id, user_id, exclude=True)
    flags = temp_db.get_entry(RECEIPT, receipt_id, user_id).flags
    assert flags["isExcludedFromTotals"] is True
    assert flags["exclusionReason"] == REASON_MANUAL
    assert flags["userVerified"] is True

    assert flag_state.set_excluded_from_totals(RECEIPT, receipt_id, user_id, exclude=False)
    flags = temp_db.get_entry(RECEIPT, receipt_id, user_id).flags
    assert "isExcludedFromTotals" not in flags
    assert "exclusionReason" not in flags


def test_include_does_not_clear_duplicate_exclusion(flag_state, duplicate_service, temp_db, add_receipt, user_id):
    receipt_id = add_receipt("Costco", "250.00")
    duplicate_service.mark_as_duplicate(user_id, RECEIPT, receipt_id, BANK_TRANSACTION, 3)

    flag_state.set_excluded_from_totals(RECEIPT, receipt_id, user_id, exclude=False)

    flags = temp_db.get_entry(RECEIPT, receipt_id, user_id).flags
    assert flags["isExcludedFromTotals"] is True
    assert flags["exclusionReason"] == "duplicate"


def test_empty_bag_is_stored_as_null(flag_state, temp_db, add_receipt, user_id):
    receipt_id = add_receipt("Costco", "250.00", flags={"isExcludedFromTotals": True, "exclusionReason": "manual"})

    flag_state.set_excluded_from_totals(RECEIPT, receipt_id, user_id, exclude=False)

    row = temp_db._get_session().get(Receipt, receipt_id)
    temp_db._get_session().refresh(row)
    assert row.transaction_flags is None


def test_exclude_other_users_entry_is_noop(flag_state, temp_db, add_transaction, other_statement, user_id, other_user_id):
    txn_id = add_transaction("Costco", "-250.00", statement_id=other_statement)

    assert flag_state.set_excluded_from_totals(BANK_TRANSACTION, txn_id, user_id, exclude=True) is False
    assert temp_db.get_entry(BANK_TRANSACTION, txn_id, other_user_id).flags == {}
