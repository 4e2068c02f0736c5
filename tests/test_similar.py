"""Tests for the similar-transaction finder."""

from datetime import date
from decimal import Decimal

from tallyup.domain.constants import BANK_TRANSACTION, RECEIPT
from tallyup.domain.entities import FinancialEntry, ScoredEntry
from tallyup.domain.similar import rank_similar

TODAY = date(2024, 1, 10)


def scored(entry_id, similarity, on):
    entry = FinancialEntry(
        id=entry_id,
        entry_type=RECEIPT,
        merchant_name="Starbucks",
        description=None,
        amount=Decimal("5.00"),
        date=on,
        currency="USD",
        category_id=None,
        business_id=None,
    )
    return ScoredEntry(entry=entry, similarity=similarity)


def test_rank_prefers_recent_within_band():
    older = scored(1, 0.92, date(2024, 1, 1))
    newer = scored(2, 0.85, date(2024, 1, 5))
    assert [item.entry.id for item in rank_similar([older, newer])] == [2, 1]


def test_rank_prefers_higher_score_outside_band():
    strong_old = scored(1, 0.95, date(2023, 6, 1))
    weak_new = scored(2, 0.6, date(2024, 1, 5))
    assert [item.entry.id for item in rank_similar([weak_new, strong_old])] == [1, 2]


def test_rank_applies_limit():
    items = [scored(i, 0.9, date(2024, 1, 1)) for i in range(30)]
    assert len(rank_similar(items)) == 20
    assert len(rank_similar(items, limit=3)) == 3


def test_blank_merchant_returns_nothing(similar_service, user_id):
    assert similar_service.find_similar_transactions(user_id, "   ", today=TODAY) == []
    assert similar_service.get_similar_transaction_stats(user_id, None, today=TODAY).total_count == 0


def test_finds_receipts_and_bank_transactions(similar_service, add_receipt, add_transaction, user_id):
    receipt_id = add_receipt("Starbucks", "5.75", on=date(2024, 1, 2))
    txn_id = add_transaction("STARBUCKS", "-6.10", on=date(2024, 1, 5))
    add_transaction("Shell Gas", "-40.00")

    results = similar_service.find_similar_transactions(user_id, "Starbucks", today=TODAY)

    assert [(r.entry_type, r.id) for r in results] == [(BANK_TRANSACTION, txn_id), (RECEIPT, receipt_id)]
    assert all(r.similarity == 1.0 for r in results)


def test_threshold_is_exclusive_of_weak_matches(similar_service, add_receipt, user_id):
    add_receipt("Starbucks Coffee", "5.75")
    add_receipt("Shell Gas", "40.00")

    results = similar_service.find_similar_transactions(user_id, "Starbucks", today=TODAY)

    assert [r.merchant_name for r in results] == ["Starbucks Coffee"]


def test_default_window_is_ninety_days_around_today(similar_service, add_receipt, user_id):
    inside = add_receipt("Starbucks", "5.75", on=date(2023, 10, 12))
    add_receipt("Starbucks", "5.75", on=date(2023, 10, 11))
    add_receipt("Starbucks", "5.75", on=date(2024, 4, 10))

    results = similar_service.find_similar_transactions(user_id, "Starbucks", today=TODAY)

    assert [r.id for r in results] == [inside]


def test_explicit_range_overrides_default(similar_service, add_receipt, user_id):
    old = add_receipt("Starbucks", "5.75", on=date(2022, 3, 1))

    results = similar_service.find_similar_transactions(
        user_id, "Starbucks", start_date=date(2022, 1, 1), end_date=date(2022, 12, 31), today=TODAY
    )

    assert [r.id for r in results] == [old]


def test_excludes_the_entry_itself(similar_service, add_receipt, add_transaction, user_id):
    receipt_id = add_receipt("Starbucks", "5.75")
    txn_id = add_transaction("Starbucks", "-5.75")

    results = similar_service.find_similar_transactions(
        user_id, "Starbucks", exclude_id=receipt_id, exclude_type=RECEIPT, today=TODAY
    )

    # Same id under the other entry type is still returned
    assert [(r.entry_type, r.id) for r in results] == [(BANK_TRANSACTION, txn_id)]


def test_excludes_merchants_covered_by_enabled_rules(
    similar_service, rule_service, sample_categories, add_receipt, user_id
):
    add_receipt("Starbucks Reserve", "7.00")
    kept = add_receipt("Starbucks", "5.75")
    rule_service.upsert_rule(user_id, "merchantName", "contains", "reserve", sample_categories["Coffee"])
    rule_service.upsert_rule(
        user_id, "merchantName", "exact", "starbucks", sample_categories["Coffee"], is_enabled=False
    )

    results = similar_service.find_similar_transactions(user_id, "Starbucks", today=TODAY)

    assert [r.id for r in results] == [kept]


def test_other_users_entries_are_invisible(similar_service, add_receipt, add_transaction, other_statement, other_user_id, user_id):
    add_receipt("Starbucks", "5.75", user=other_user_id)
    add_transaction("Starbucks", "-5.75", statement_id=other_statement)

    assert similar_service.find_similar_transactions(user_id, "Starbucks", today=TODAY) == []


def test_results_carry_category_and_business_names(
    similar_service, temp_db, sample_categories, add_receipt, user_id
):
    business_id = temp_db.create_business(user_id, "Side Gig LLC")
    add_receipt("Starbucks", "5.75", category_id=sample_categories["Coffee"], business_id=business_id)

    [result] = similar_service.find_similar_transactions(user_id, "Starbucks", today=TODAY)

    assert result.category_name == "Coffee"
    assert result.business_name == "Side Gig LLC"


def test_stats_report_most_common_category(
    similar_service, temp_db, sample_categories, add_receipt, add_transaction, user_id
):
    business_id = temp_db.create_business(user_id, "Side Gig LLC")
    add_receipt("Starbucks", "5.75", category_id=sample_categories["Coffee"], business_id=business_id)
    add_transaction("Starbucks", "-5.75", category_id=sample_categories["Coffee"])
    add_transaction("Starbucks", "-9.00", category_id=sample_categories["Dining"])
    add_transaction("Starbucks", "-4.00")

    stats = similar_service.get_similar_transaction_stats(user_id, "Starbucks", today=TODAY)

    assert stats.total_count == 4
    assert stats.categorized_count == 3
    assert stats.most_common_category.name == "Coffee"
    assert stats.most_common_category.count == 2
    assert stats.most_common_business.name == "Side Gig LLC"
    assert stats.most_common_business.count == 1


def test_stats_are_not_capped(similar_service, add_receipt, user_id):
    for _ in range(25):
        add_receipt("Starbucks", "5.75")

    assert len(similar_service.find_similar_transactions(user_id, "Starbucks", today=TODAY)) == 20
    assert similar_service.get_similar_transaction_stats(user_id, "Starbucks", today=TODAY).total_count == 25


def test_stats_without_categories(similar_service, add_receipt, user_id):
    add_receipt("Starbucks", "5.75")
    stats = similar_service.get_similar_transaction_stats(user_id, "Starbucks", today=TODAY)
    assert stats.total_count == 1
    assert stats.most_common_category is None
    assert stats.most_common_business is None
