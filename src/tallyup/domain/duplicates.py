"""Duplicate detection between receipts and bank transactions.

A receipt and the bank transaction it paid for are ingested independently,
so the same purchase can be counted twice. Detection looks for an entry of
the opposite kind with a similar merchant, a close amount and a nearby
date, and only ever reports candidates. Marking is a separate action.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from tallyup.database.base import Database
from tallyup.domain.constants import (
    BANK_TRANSACTION,
    DUPLICATE_AMOUNT_TOLERANCE,
    DUPLICATE_DATE_WINDOW_DAYS,
    DUPLICATE_MAX_CANDIDATES,
    DUPLICATE_MIN_CONFIDENCE,
    ENTRY_TYPES,
    RECEIPT,
    SIMILAR_MERCHANT_REASON_THRESHOLD,
    SIMILARITY_THRESHOLD,
)
from tallyup.domain.entities import FinancialEntry
from tallyup.domain.errors import ValidationError, invalid_entry_type
from tallyup.domain.flag_state import FlagStateManager
from tallyup.domain.flags import DUPLICATE, FlagBag, REASON_DUPLICATE
from tallyup.logger import get_logger
from tallyup.utils.amount_parser import coerce_amount
from tallyup.utils.date_parser import coerce_date, date_window

logger = get_logger(__name__)


@dataclass(frozen=True)
class DuplicateMatch:
    """A candidate duplicate with its scoring breakdown."""

    entry: FinancialEntry
    similarity: float
    confidence: float
    amounts_match: bool
    exact_amount_match: bool
    dates_match: bool
    reasons: tuple[str, ...] = ()


@dataclass(frozen=True)
class DuplicateDetectionResult:
    has_duplicates: bool
    matches: list[DuplicateMatch] = field(default_factory=list)
    top_match: Optional[DuplicateMatch] = None

    @classmethod
    def empty(cls) -> "DuplicateDetectionResult":
        return cls(has_duplicates=False)


def opposite_entry_type(entry_type: str) -> str:
    """Return the other entry kind."""
    if entry_type == RECEIPT:
        return BANK_TRANSACTION
    if entry_type == BANK_TRANSACTION:
        return RECEIPT
    raise ValidationError(invalid_entry_type(entry_type))


def amounts_match(amount_a: Any, amount_b: Any, tolerance: Decimal = DUPLICATE_AMOUNT_TOLERANCE) -> bool:
    """True if the absolute amounts differ by at most ``tolerance`` of their mean.

    0 and 0 match; a zero against a non-zero amount never does.
    """
    a = coerce_amount(amount_a)
    b = coerce_amount(amount_b)
    if a is None or b is None:
        return False
    a, b = abs(a), abs(b)
    if a == 0 and b == 0:
        return True
    if a == 0 or b == 0:
        return False
    average = (a + b) / 2
    return abs(a - b) / average <= tolerance


def exact_amount_match(amount_a: Any, amount_b: Any) -> bool:
    a = coerce_amount(amount_a)
    b = coerce_amount(amount_b)
    if a is None or b is None:
        return False
    return abs(a) == abs(b)


def dates_match(date_a: Any, date_b: Any, window_days: int = DUPLICATE_DATE_WINDOW_DAYS) -> bool:
    """True if both dates are known and at most ``window_days`` apart."""
    a = coerce_date(date_a)
    b = coerce_date(date_b)
    if a is None or b is None:
        return False
    return abs((a - b).days) <= window_days


def calculate_confidence(similarity: float, amounts_match: bool, exact_amount_match: bool, dates_match: bool) -> float:
    """Blend merchant similarity, amount and date agreement into [0, 1]."""
    confidence = 0.4 * similarity
    if exact_amount_match:
        confidence += 0.4
    elif amounts_match:
        confidence += 0.3
    if dates_match:
        confidence += 0.2
    return min(confidence, 1.0)


def match_reasons(similarity: float, amounts_match: bool, exact_amount_match: bool, dates_match: bool) -> tuple[str, ...]:
    reasons = []
    if similarity > SIMILAR_MERCHANT_REASON_THRESHOLD:
        reasons.append("Similar merchant")
    if exact_amount_match:
        reasons.append("Exact amount")
    elif amounts_match:
        reasons.append("Similar amount")
    if dates_match:
        reasons.append("Same date range")
    return tuple(reasons)


class DuplicateService:
    """Service for finding and marking duplicate entries."""

    def __init__(self, db: Database, flag_state: Optional[FlagStateManager] = None):
        """Initialize duplicate service.

        Args:
            db: Database instance
            flag_state: Flag state manager; one is created when omitted
        """
        self.db = db
        self.flag_state = flag_state or FlagStateManager(db)

    def find_duplicates(
        self,
        user_id: str,
        entry_type: str,
        merchant_name: Optional[str],
        amount: Any,
        entry_date: Any,
    ) -> DuplicateDetectionResult:
        """Find entries of the opposite kind that may record the same purchase.

        Args:
            user_id: Calling user
            entry_type: Kind of the candidate entry
            merchant_name: Candidate merchant
            amount: Candidate amount (Decimal or decimal string)
            entry_date: Candidate date (date or date string)

        Returns:
            Matches with confidence above 0.5, best first. An empty result is
            returned when merchant, amount or date is missing.
        """
        target_type = opposite_entry_type(entry_type)
        merchant_name = (merchant_name or "").strip()
        candidate_amount = coerce_amount(amount)
        candidate_date = coerce_date(entry_date)
        if not merchant_name or candidate_amount is None or candidate_date is None:
            logger.debug("Duplicate detection skipped, incomplete input", entry_type=entry_type)
            return DuplicateDetectionResult.empty()

        start, end = date_window(candidate_date, DUPLICATE_DATE_WINDOW_DAYS)
        scored = [
            item
            for item in self.db.find_similar_entries(
                user_id, target_type, merchant_name, SIMILARITY_THRESHOLD, start_date=start, end_date=end
            )
            if not FlagBag.from_dict(item.entry.flags).is_duplicate
        ]
        scored.sort(key=lambda item: (-item.similarity, abs(abs(item.entry.amount) - abs(candidate_amount))))

        matches = []
        for item in scored[:DUPLICATE_MAX_CANDIDATES]:
            amount_ok = amounts_match(candidate_amount, item.entry.amount)
            exact_ok = exact_amount_match(candidate_amount, item.entry.amount)
            date_ok = dates_match(candidate_date, item.entry.date)
            confidence = calculate_confidence(item.similarity, amount_ok, exact_ok, date_ok)
            if confidence <= DUPLICATE_MIN_CONFIDENCE:
                continue
            matches.append(
                DuplicateMatch(
                    entry=item.entry,
                    similarity=item.similarity,
                    confidence=confidence,
                    amounts_match=amount_ok,
                    exact_amount_match=exact_ok,
                    dates_match=date_ok,
                    reasons=match_reasons(item.similarity, amount_ok, exact_ok, date_ok),
                )
            )

        top_match = max(matches, key=lambda m: m.confidence) if matches else None
        logger.debug(
            "Duplicate detection finished",
            entry_type=entry_type,
            candidates=len(scored),
            matches=len(matches),
        )
        return DuplicateDetectionResult(has_duplicates=bool(matches), matches=matches, top_match=top_match)

    def find_duplicates_for_entry(self, user_id: str, entry_type: str, entry_id: int) -> DuplicateDetectionResult:
        """Run duplicate detection for an existing entry the user owns."""
        entry = self.db.get_entry(entry_type, entry_id, user_id)
        if entry is None:
            return DuplicateDetectionResult.empty()
        return self.find_duplicates(user_id, entry_type, entry.merchant_name, entry.amount, entry.date)

    def mark_as_duplicate(
        self,
        user_id: str,
        entry_type: str,
        entry_id: int,
        linked_entry_type: str,
        linked_entry_id: int,
        confidence: Optional[float] = None,
    ) -> bool:
        """Flag an entry as a duplicate of another and exclude it from totals.

        Only the marked entry changes; the linked entry keeps counting.
        """
        if linked_entry_type not in ENTRY_TYPES:
            raise ValidationError(invalid_entry_type(linked_entry_type))

        def apply(bag: FlagBag) -> None:
            bag.set_concern(
                DUPLICATE,
                {
                    "isDuplicate": True,
                    "linkedTransactionId": linked_entry_id,
                    "linkedTransactionType": linked_entry_type,
                    "duplicateConfidence": confidence,
                },
                exclusion_reason=REASON_DUPLICATE,
            )
            bag.verify()

        return self.flag_state.update(entry_type, entry_id, user_id, apply)

    def unmark_as_duplicate(self, user_id: str, entry_type: str, entry_id: int) -> bool:
        """Remove the duplicate flags, leaving other concerns untouched."""
        return self.flag_state.update(entry_type, entry_id, user_id, lambda bag: bag.clear_concern(DUPLICATE))
