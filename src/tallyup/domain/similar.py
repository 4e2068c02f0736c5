"""Similar-transaction lookup for categorization suggestions."""

from collections import Counter
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from functools import cmp_to_key
from typing import Callable, Iterable, Optional

from tallyup.database.base import Database
from tallyup.domain.constants import (
    BANK_TRANSACTION,
    FIELD_MERCHANT_NAME,
    RECEIPT,
    SIMILAR_DEFAULT_WINDOW_DAYS,
    SIMILAR_MAX_RESULTS,
    SIMILAR_RANK_BAND,
    SIMILARITY_THRESHOLD,
)
from tallyup.domain.entities import ScoredEntry
from tallyup.domain.rules import build_exclusion_predicate
from tallyup.logger import get_logger
from tallyup.utils.date_parser import date_window

logger = get_logger(__name__)


@dataclass(frozen=True)
class SimilarTransaction:
    entry_type: str
    id: int
    merchant_name: str
    amount: Decimal
    date: Optional[date]
    similarity: float
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    business_id: Optional[int] = None
    business_name: Optional[str] = None


@dataclass(frozen=True)
class CountedReference:
    """An id that occurs most often in a population, with its name and count."""

    id: int
    name: str
    count: int


@dataclass(frozen=True)
class SimilarTransactionStats:
    total_count: int = 0
    categorized_count: int = 0
    most_common_category: Optional[CountedReference] = None
    most_common_business: Optional[CountedReference] = None


def _compare_ranked(a: ScoredEntry, b: ScoredEntry) -> int:
    # Scores within the band count as equal and fall back to recency
    if abs(a.similarity - b.similarity) > SIMILAR_RANK_BAND:
        return -1 if a.similarity > b.similarity else 1
    date_a = a.entry.date or date.min
    date_b = b.entry.date or date.min
    if date_a == date_b:
        return 0
    return -1 if date_a > date_b else 1


def rank_similar(items: Iterable[ScoredEntry], limit: int = SIMILAR_MAX_RESULTS) -> list[ScoredEntry]:
    """Order by similarity, treating scores within 0.1 as ties broken by most recent date."""
    return sorted(items, key=cmp_to_key(_compare_ranked))[:limit]


class SimilarTransactionService:
    """Service for finding a user's past entries with a similar merchant."""

    def __init__(self, db: Database):
        """Initialize similar transaction service.

        Args:
            db: Database instance
        """
        self.db = db

    def _population(
        self,
        user_id: str,
        merchant_name: str,
        start_date: Optional[date],
        end_date: Optional[date],
        exclude_id: Optional[int],
        exclude_type: Optional[str],
        today: Optional[date],
    ) -> list[ScoredEntry]:
        if start_date is None or end_date is None:
            default_start, default_end = date_window(today or date.today(), SIMILAR_DEFAULT_WINDOW_DAYS)
            start_date = start_date or default_start
            end_date = end_date or default_end

        not_covered: Callable[[Optional[str]], bool] = build_exclusion_predicate(
            self.db.list_category_rules(user_id, enabled_only=True), FIELD_MERCHANT_NAME
        )

        population = []
        for entry_type in (RECEIPT, BANK_TRANSACTION):
            for item in self.db.find_similar_entries(
                user_id, entry_type, merchant_name, SIMILARITY_THRESHOLD, start_date=start_date, end_date=end_date
            ):
                if item.entry.key == (exclude_type, exclude_id):
                    continue
                if not not_covered(item.entry.merchant_name):
                    continue
                population.append(item)
        return population

    def find_similar_transactions(
        self,
        user_id: str,
        merchant_name: Optional[str],
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        exclude_id: Optional[int] = None,
        exclude_type: Optional[str] = None,
        today: Optional[date] = None,
    ) -> list[SimilarTransaction]:
        """Find up to 20 receipts and bank transactions with a similar merchant.

        Entries whose merchant is already covered by an enabled rule are left
        out, as is the entry identified by ``exclude_type``/``exclude_id``.
        Without an explicit range the search covers 90 days either side of
        ``today``.
        """
        merchant_name = (merchant_name or "").strip()
        if not merchant_name:
            return []

        ranked = rank_similar(
            self._population(user_id, merchant_name, start_date, end_date, exclude_id, exclude_type, today)
        )

        category_names = self._category_names(item.entry.category_id for item in ranked)
        business_names = self._business_names(item.entry.business_id for item in ranked)

        results = [
            SimilarTransaction(
                entry_type=item.entry.entry_type,
                id=item.entry.id,
                merchant_name=item.entry.merchant_name or "Unknown",
                amount=item.entry.amount,
                date=item.entry.date,
                similarity=item.similarity,
                category_id=item.entry.category_id,
                category_name=category_names.get(item.entry.category_id),
                business_id=item.entry.business_id,
                business_name=business_names.get(item.entry.business_id),
            )
            for item in ranked
        ]
        logger.debug("Found similar transactions", merchant_name=merchant_name, count=len(results))
        return results

    def get_similar_transaction_stats(
        self,
        user_id: str,
        merchant_name: Optional[str],
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        exclude_id: Optional[int] = None,
        exclude_type: Optional[str] = None,
        today: Optional[date] = None,
    ) -> SimilarTransactionStats:
        """Summarize the similar-transaction population without the result cap.

        Returns the total count, how many are categorized, and the most
        frequent category and business. Ties go to the one seen first.
        """
        merchant_name = (merchant_name or "").strip()
        if not merchant_name:
            return SimilarTransactionStats()

        population = self._population(user_id, merchant_name, start_date, end_date, exclude_id, exclude_type, today)
        category_counts = Counter(item.entry.category_id for item in population if item.entry.category_id is not None)
        business_counts = Counter(item.entry.business_id for item in population if item.entry.business_id is not None)

        most_common_category = None
        if category_counts:
            category_id, count = category_counts.most_common(1)[0]
            category = self.db.get_category(category_id)
            if category is not None:
                most_common_category = CountedReference(id=category.id, name=category.name, count=count)

        most_common_business = None
        if business_counts:
            business_id, count = business_counts.most_common(1)[0]
            business = self.db.get_business(business_id)
            if business is not None:
                most_common_business = CountedReference(id=business.id, name=business.name, count=count)

        return SimilarTransactionStats(
            total_count=len(population),
            categorized_count=sum(category_counts.values()),
            most_common_category=most_common_category,
            most_common_business=most_common_business,
        )

    def _category_names(self, ids: Iterable[Optional[int]]) -> dict[int, str]:
        names = {}
        for category_id in {i for i in ids if i is not None}:
            category = self.db.get_category(category_id)
            if category is not None:
                names[category_id] = category.name
        return names

    def _business_names(self, ids: Iterable[Optional[int]]) -> dict[int, str]:
        names = {}
        for business_id in {i for i in ids if i is not None}:
            business = self.db.get_business(business_id)
            if business is not None:
                names[business_id] = business.name
        return names
