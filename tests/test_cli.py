"""Tests for the tallyup command line interface."""

from datetime import date
from decimal import Decimal

import pytest

from tallyup.cli.main import cli
from tallyup.domain.constants import BANK_TRANSACTION, RECEIPT

USER = "user-1"


@pytest.fixture
def run(cli_runner, temp_db):
    """Invoke the CLI against the temporary database as USER."""

    def _run(*args, user=USER):
        result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "--user", user, *args])
        # The CLI writes through its own session; start a fresh one for assertions
        temp_db.disconnect()
        return result

    return _run


def test_help_does_not_touch_database(cli_runner):
    result = cli_runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "duplicates" in result.output
    assert "transfers" in result.output


def test_add_receipt_and_list_entries(run, temp_db):
    result = run("receipt", "add", "--merchant", "Starbucks", "--amount", "$5.75", "--date", "2024-01-10")
    assert result.exit_code == 0
    assert "Created receipt 1" in result.output

    result = run("entries", "--type", "receipt")
    assert result.exit_code == 0
    assert "Starbucks" in result.output
    assert "2024-01-10" in result.output


def test_add_receipt_rejects_bad_amount(run):
    result = run("receipt", "add", "--merchant", "Starbucks", "--amount", "five")
    assert result.exit_code == 1
    assert "Invalid amount" in result.output


def test_add_receipt_rejects_negative_total(run, temp_db):
    result = run("receipt", "add", "--merchant", "Starbucks", "--amount", "-5.75")
    assert result.exit_code == 1
    assert "Receipt totals must not be negative" in result.output
    assert temp_db.list_entries(USER, RECEIPT) == []


def test_add_receipt_checks_category_and_business(run, temp_db, sample_categories, other_user_id):
    result = run("receipt", "add", "--amount", "5.75", "--category-id", "999")
    assert result.exit_code == 1
    assert "Category 999 not found" in result.output

    business_id = temp_db.create_business(other_user_id, "Side Gig LLC")
    temp_db.disconnect()
    result = run("receipt", "add", "--amount", "5.75", "--business-id", str(business_id))
    assert result.exit_code == 1
    assert f"Business {business_id} not found" in result.output

    result = run("receipt", "add", "--amount", "5.75", "--category-id", str(sample_categories["Coffee"]))
    assert result.exit_code == 0
    assert temp_db.list_entries(USER, RECEIPT)[0].category_id == sample_categories["Coffee"]


def test_statement_and_transaction(run, temp_db):
    result = run("statement", "add", "jan.pdf", "--account", "Checking")
    assert "Created bank statement 1" in result.output

    result = run("txn", "add", "--statement-id", "1", "--amount", "-5.75", "--merchant", "STARBUCKS", "--date", "2024-01-10")
    assert result.exit_code == 0
    assert "Created bank transaction 1" in result.output
    assert temp_db.get_entry(BANK_TRANSACTION, 1, USER).amount == Decimal("-5.75")


def test_transaction_on_other_users_statement(run, other_statement):
    result = run("txn", "add", "--statement-id", str(other_statement), "--amount", "-5.75")
    assert result.exit_code == 1
    assert f"Bank statement {other_statement} not found" in result.output


def test_entries_empty(run):
    result = run("entries")
    assert result.exit_code == 0
    assert "No entries found." in result.output


def test_duplicates_find_and_mark(run, temp_db, add_receipt, add_transaction):
    receipt_id = add_receipt("Starbucks", "5.75")
    txn_id = add_transaction("STARBUCKS", "-5.75", on=date(2024, 1, 11))
    temp_db.disconnect()

    result = run("duplicates", "find", "receipt", str(receipt_id))
    assert result.exit_code == 0
    assert "STARBUCKS" in result.output
    assert "confidence 1.00" in result.output

    result = run(
        "duplicates", "mark", "bank_transaction", str(txn_id), "--linked-type", "receipt", "--linked-id", str(receipt_id)
    )
    assert result.exit_code == 0
    assert temp_db.get_entry(BANK_TRANSACTION, txn_id, USER).flags["isDuplicate"] is True

    result = run("entries", "--type", "bank_transaction")
    assert "[Duplicate transaction]" in result.output

    result = run("duplicates", "unmark", "bank_transaction", str(txn_id))
    assert result.exit_code == 0
    assert "isDuplicate" not in temp_db.get_entry(BANK_TRANSACTION, txn_id, USER).flags


def test_duplicates_find_none(run, add_receipt):
    receipt_id = add_receipt("Starbucks", "5.75")
    result = run("duplicates", "find", "receipt", str(receipt_id))
    assert "No duplicates found." in result.output


def test_mark_other_users_entry_reports_not_found(run, add_receipt):
    receipt_id = add_receipt("Starbucks", "5.75", user="user-2")
    result = run("duplicates", "mark", "receipt", str(receipt_id), "--linked-type", "bank_transaction", "--linked-id", "1")
    assert result.exit_code == 1
    assert f"Receipt {receipt_id} not found" in result.output


def test_transfers_detect_mark_and_auto_detect(run, temp_db, add_transaction):
    card = add_transaction("Chase", "-300.00", description="Payment Thank You")
    debit = add_transaction("Checking", "-250.00", description="ONLINE BANKING")
    add_transaction("Savings", "250.00", on=date(2024, 1, 11))
    temp_db.disconnect()

    result = run("transfers", "detect", str(debit))
    assert "detected by amount_date_match" in result.output
    assert "Matching opposite amount" in result.output

    result = run("transfers", "auto-detect")
    assert "Flagged 1 transaction(s) as transfers" in result.output
    assert temp_db.get_entry(BANK_TRANSACTION, card, USER).flags["exclusionReason"] == "credit_card_payment"

    result = run("transfers", "mark", str(debit))
    assert result.exit_code == 0
    assert temp_db.get_entry(BANK_TRANSACTION, debit, USER).flags["isInternalTransfer"] is True

    result = run("transfers", "unmark", str(debit))
    assert "isInternalTransfer" not in temp_db.get_entry(BANK_TRANSACTION, debit, USER).flags


def test_exclude_and_include(run, temp_db, add_receipt):
    receipt_id = add_receipt("Costco", "250.00")
    temp_db.disconnect()

    result = run("exclude", "receipt", str(receipt_id))
    assert "Excluded receipt" in result.output
    assert temp_db.get_entry(RECEIPT, receipt_id, USER).flags["exclusionReason"] == "manual"

    result = run("exclude", "receipt", str(receipt_id), "--include")
    assert "Included receipt" in result.output
    assert "exclusionReason" not in temp_db.get_entry(RECEIPT, receipt_id, USER).flags


def test_rule_commands(run, sample_categories):
    coffee = sample_categories["Coffee"]

    result = run("rule", "create", "starbucks", "--category-id", str(coffee), "--name", "Coffee shops")
    assert result.exit_code == 0
    assert "Created rule 1" in result.output

    result = run("rule", "create", "STARBUCKS", "--category-id", str(coffee), "--match", "exact")
    assert "Updated rule 1" in result.output

    result = run("rule", "test", "--merchant", "Starbucks")
    assert "Rule 1 matches: Coffee" in result.output

    result = run("rule", "disable", "1")
    assert "Disabled rule 1" in result.output
    result = run("rule", "list")
    assert "(disabled)" in result.output
    assert "Coffee shops" in result.output

    result = run("rule", "test", "--merchant", "Starbucks")
    assert "No rule matches." in result.output

    result = run("rule", "delete", "1")
    assert "Deleted rule 1" in result.output
    assert "No rules found." in run("rule", "list").output


def test_rule_create_rejects_invalid_regex(run, sample_categories):
    result = run("rule", "create", "[oops", "--category-id", str(sample_categories["Coffee"]), "--match", "regex")
    assert result.exit_code == 1
    assert "Invalid regular expression" in result.output


def test_rule_delete_of_other_users_rule(run, sample_categories):
    run("rule", "create", "shell", "--category-id", str(sample_categories["Dining"]))
    result = run("rule", "delete", "1", user="user-2")
    assert result.exit_code == 1
    assert "Rule 1 not found" in result.output


def test_similar_command(run, temp_db, sample_categories, add_receipt, add_transaction):
    add_receipt("Starbucks", "5.75", on=date(2024, 1, 2), category_id=sample_categories["Coffee"])
    add_transaction("STARBUCKS", "-6.10", on=date(2024, 1, 5))
    temp_db.disconnect()

    result = run("similar", "Starbucks", "--start-date", "2024-01-01", "--end-date", "2024-01-31")

    assert result.exit_code == 0
    assert "[Coffee]" in result.output
    assert "[uncategorized]" in result.output
    assert "1 of 2 categorized" in result.output
    assert "Most common category: Coffee (1)" in result.output


def test_categorize_suggest_and_assign(run, temp_db, sample_categories, add_receipt):
    receipt_id = add_receipt("Blue Bottle", "6.00")
    coffee = sample_categories["Coffee"]
    temp_db.disconnect()

    result = run("categorize", "receipt", str(receipt_id))
    assert "No suggestion." in result.output

    result = run("categorize", "receipt", str(receipt_id), "--category-id", str(coffee), "--apply-to-future")
    assert result.exit_code == 0
    assert f"Categorized receipt {receipt_id}" in result.output
    assert "Created rule 1" in result.output
    assert temp_db.get_entry(RECEIPT, receipt_id, USER).category_id == coffee

    result = run("categorize", "receipt", str(receipt_id))
    assert "Suggested: Coffee (rule, confidence 1.00)" in result.output


def test_categorize_unknown_category(run, add_receipt):
    receipt_id = add_receipt("Blue Bottle", "6.00")
    result = run("categorize", "receipt", str(receipt_id), "--category-id", "999")
    assert result.exit_code == 1
    assert "Category 999 not found" in result.output


def test_bnpl_commands(run, temp_db, add_receipt):
    affirm = add_receipt("Affirm", "400.00")
    other = add_receipt("Best Buy", "100.00")
    temp_db.disconnect()

    result = run("bnpl", "auto-detect")
    assert "Flagged 1 BNPL purchase(s)" in result.output

    result = run("bnpl", "mark", "receipt", str(other), "--original-amount", "100.00", "--remaining", "2")
    assert result.exit_code == 0
    assert "(other)" in result.output

    result = run("bnpl", "mark", "receipt", str(affirm), "--provider", "affirm", "--original-amount", "$400", "--remaining", "3")
    result = run("bnpl", "obligations")
    assert "Upcoming installments: 5" in result.output
    assert "Total obligations: 366.67" in result.output


def test_installment_credit_commands(run, temp_db, add_transaction):
    credit = add_transaction("CHASE", "250.00", description="PLAN IT CREDIT")
    temp_db.disconnect()

    result = run("installment-credit", "auto-detect")
    assert "Flagged 1 installment plan credit(s)" in result.output

    result = run("installment-credit", "unmark", str(credit))
    assert result.exit_code == 0
    assert temp_db.get_entry(BANK_TRANSACTION, credit, USER).flags.get("isInstallmentPlanCredit") is None

    result = run("installment-credit", "mark", str(credit))
    assert temp_db.get_entry(BANK_TRANSACTION, credit, USER).flags["isInstallmentPlanCredit"] is True


def test_category_and_business_commands(run):
    result = run("category", "create", "Consulting", "--type", "income")
    assert "Created category 'Consulting' (ID: 1)" in result.output

    result = run("category", "list")
    assert "Consulting (income, custom)" in result.output
    assert "No categories found." in run("category", "list", user="user-2").output

    result = run("business", "create", "Side Gig LLC")
    assert "Created business 'Side Gig LLC' (ID: 1)" in result.output
