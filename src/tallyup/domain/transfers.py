"""Internal transfer and credit card payment detection.

Money moved between a user's own accounts shows up twice: once leaving
checking and once arriving on a card or savings account. Such transactions
are excluded from spend totals. Detection first looks at the description
for transfer language and then, for a single transaction, at the user's
other transactions for the opposite amount.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from tallyup.database.base import Database
from tallyup.domain.constants import (
    BANK_TRANSACTION,
    TRANSFER_AMOUNT_TOLERANCE,
    TRANSFER_DATE_WINDOW_DAYS,
    TRANSFER_MAX_MATCHES,
)
from tallyup.domain.entities import FinancialEntry
from tallyup.domain.errors import ValidationError
from tallyup.domain.flag_state import FlagStateManager
from tallyup.domain.flags import (
    FlagBag,
    REASON_CREDIT_CARD_PAYMENT,
    REASON_INTERNAL_TRANSFER,
    TRANSFER,
)
from tallyup.logger import get_logger
from tallyup.utils.amount_parser import coerce_amount
from tallyup.utils.date_parser import coerce_date, date_window

logger = get_logger(__name__)

TRANSFER_TYPE_INTERNAL = "internal"
TRANSFER_TYPE_CREDIT_CARD = "credit_card_payment"
TRANSFER_TYPES = (TRANSFER_TYPE_INTERNAL, TRANSFER_TYPE_CREDIT_CARD)

METHOD_DESCRIPTION_PATTERN = "description_pattern"
METHOD_AMOUNT_DATE_MATCH = "amount_date_match"

MATCH_REASON = "Matching opposite amount on same date"

CREDIT_CARD_PAYMENT_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"credit\s*card\s*payment",
        r"^payment.*thank\s*you",
        r"^autopay",
        r"^automatic\s*payment",
        r"^(chase|citi|amex|american\s*express|capital\s*one|discover|barclaycard)\b.*\b(pmt|payment)\b",
    )
]

INTERNAL_TRANSFER_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^transfer\s*to",
        r"^transfer\s*from",
        r"^payment\s*to.*credit\s*card",
        r"^e-transfer",
        r"^interac\s*e-transfer",
        r"^wire\s*transfer",
        r"^ach\s*transfer",
        r"^zelle",
        r"\bxfer\b",
        r"online\s*transfer",
        r"\b(to|from)\s+(checking|savings)\b",
    )
]


@dataclass(frozen=True)
class TransferMatch:
    entry: FinancialEntry
    confidence: float
    reason: str
    amount_difference: Any


@dataclass(frozen=True)
class TransferDetectionResult:
    """Outcome of transfer detection for one transaction."""

    is_transfer: bool
    transfer_type: Optional[str] = None
    matches: list[TransferMatch] = field(default_factory=list)
    auto_detected: bool = False
    detection_method: Optional[str] = None

    @classmethod
    def not_detected(cls) -> "TransferDetectionResult":
        return cls(is_transfer=False)


@dataclass(frozen=True)
class AutoDetectResult:
    flagged_count: int
    entry_ids: list[int] = field(default_factory=list)


def is_credit_card_payment(description: Optional[str]) -> bool:
    if not description:
        return False
    text = description.strip()
    return any(pattern.search(text) for pattern in CREDIT_CARD_PAYMENT_PATTERNS)


def is_internal_transfer(description: Optional[str]) -> bool:
    if not description:
        return False
    text = description.strip()
    return any(pattern.search(text) for pattern in INTERNAL_TRANSFER_PATTERNS)


def detect_credit_card_payment(description: Optional[str]) -> TransferDetectionResult:
    """Classify a description as a credit card payment."""
    if is_credit_card_payment(description):
        return TransferDetectionResult(
            is_transfer=True,
            transfer_type=TRANSFER_TYPE_CREDIT_CARD,
            auto_detected=True,
            detection_method=METHOD_DESCRIPTION_PATTERN,
        )
    return TransferDetectionResult.not_detected()


def detect_internal_transfer_by_description(description: Optional[str]) -> TransferDetectionResult:
    """Classify a description as a transfer between the user's accounts."""
    if is_internal_transfer(description):
        return TransferDetectionResult(
            is_transfer=True,
            transfer_type=TRANSFER_TYPE_INTERNAL,
            auto_detected=True,
            detection_method=METHOD_DESCRIPTION_PATTERN,
        )
    return TransferDetectionResult.not_detected()


def detect_by_description(description: Optional[str]) -> TransferDetectionResult:
    """Apply the credit card patterns, then the internal transfer patterns."""
    result = detect_credit_card_payment(description)
    if result.is_transfer:
        return result
    return detect_internal_transfer_by_description(description)


def exclusion_reason_for(transfer_type: str) -> str:
    if transfer_type not in TRANSFER_TYPES:
        raise ValidationError(f"Unknown transfer type '{transfer_type}'")
    if transfer_type == TRANSFER_TYPE_CREDIT_CARD:
        return REASON_CREDIT_CARD_PAYMENT
    return REASON_INTERNAL_TRANSFER


class TransferService:
    """Service for detecting and marking internal transfers."""

    def __init__(self, db: Database, flag_state: Optional[FlagStateManager] = None):
        self.db = db
        self.flag_state = flag_state or FlagStateManager(db)

    def find_matching_transfers(
        self,
        user_id: str,
        amount: Any,
        entry_date: Any,
        exclude_id: Optional[int] = None,
    ) -> TransferDetectionResult:
        """Find the user's bank transactions carrying the opposite amount.

        Looks within two days either side for an amount equal to the negated
        candidate amount within $0.01. Transactions already flagged as
        internal transfers are skipped.

        Args:
            user_id: Calling user
            amount: Candidate amount (Decimal or decimal string)
            entry_date: Candidate date
            exclude_id: Bank transaction to leave out, normally the candidate itself

        Returns:
            Up to five matches, closest amount first, then closest date
        """
        candidate_amount = coerce_amount(amount)
        candidate_date = coerce_date(entry_date)
        if candidate_amount is None or candidate_date is None:
            return TransferDetectionResult.not_detected()

        opposite = -candidate_amount
        start, end = date_window(candidate_date, TRANSFER_DATE_WINDOW_DAYS)
        rows = self.db.find_bank_transactions_by_amount(
            user_id,
            opposite - TRANSFER_AMOUNT_TOLERANCE,
            opposite + TRANSFER_AMOUNT_TOLERANCE,
            start,
            end,
            exclude_id=exclude_id,
        )
        rows = [row for row in rows if not FlagBag.from_dict(row.flags).is_internal_transfer]
        rows.sort(key=lambda row: (abs(row.amount - opposite), abs((row.date - candidate_date).days)))

        matches = [
            TransferMatch(
                entry=row,
                confidence=1.0,
                reason=MATCH_REASON,
                amount_difference=abs(row.amount - opposite),
            )
            for row in rows[:TRANSFER_MAX_MATCHES]
            if abs(row.amount - opposite) <= TRANSFER_AMOUNT_TOLERANCE
        ]
        logger.debug("Transfer matching finished", amount=str(candidate_amount), matches=len(matches))
        return TransferDetectionResult(
            is_transfer=bool(matches),
            transfer_type=TRANSFER_TYPE_INTERNAL,
            matches=matches,
            auto_detected=bool(matches),
            detection_method=METHOD_AMOUNT_DATE_MATCH if matches else None,
        )

    def detect_transfer(
        self,
        user_id: str,
        description: Optional[str],
        amount: Any = None,
        entry_date: Any = None,
        exclude_id: Optional[int] = None,
    ) -> TransferDetectionResult:
        """Detect a transfer by description first, then by opposite amount."""
        result = detect_by_description(description)
        if result.is_transfer:
            return result
        return self.find_matching_transfers(user_id, amount, entry_date, exclude_id=exclude_id)

    def detect_transfer_for_entry(self, user_id: str, entry_id: int) -> TransferDetectionResult:
        """Run transfer detection for one of the user's bank transactions."""
        entry = self.db.get_entry(BANK_TRANSACTION, entry_id, user_id)
        if entry is None:
            return TransferDetectionResult.not_detected()
        return self.detect_transfer(user_id, entry.description, entry.amount, entry.date, exclude_id=entry.id)

    def mark_as_internal_transfer(
        self, user_id: str, entry_id: int, transfer_type: str = TRANSFER_TYPE_INTERNAL
    ) -> bool:
        """Flag a bank transaction as a user-confirmed transfer."""
        reason = exclusion_reason_for(transfer_type)

        def apply(bag: FlagBag) -> None:
            bag.set_concern(TRANSFER, {"isInternalTransfer": True}, exclusion_reason=reason)
            bag.verify()

        return self.flag_state.update(BANK_TRANSACTION, entry_id, user_id, apply)

    def unmark_as_internal_transfer(self, user_id: str, entry_id: int) -> bool:
        """Remove the transfer flags, leaving other concerns untouched."""
        return self.flag_state.update(BANK_TRANSACTION, entry_id, user_id, lambda bag: bag.clear_concern(TRANSFER))

    def auto_detect_internal_transfers(self, user_id: str) -> AutoDetectResult:
        """Flag the user's unflagged bank transactions whose description reads as a transfer.

        Only the description patterns are used here; opposite-amount matching
        needs one lookup per transaction and stays an interactive action.
        """
        flagged = []
        for entry in self.db.list_entries(user_id, BANK_TRANSACTION):
            bag = FlagBag.from_dict(entry.flags)
            if bag.is_internal_transfer or bag.is_excluded_from_totals:
                continue
            result = detect_by_description(entry.description)
            if not result.is_transfer:
                continue
            reason = exclusion_reason_for(result.transfer_type)

            def apply(bag: FlagBag, reason: str = reason) -> None:
                bag.set_concern(TRANSFER, {"isInternalTransfer": True}, exclusion_reason=reason)
                bag.auto_detect(METHOD_DESCRIPTION_PATTERN)

            if self.flag_state.update(BANK_TRANSACTION, entry.id, user_id, apply):
                flagged.append(entry.id)

        logger.info("Auto-detected internal transfers", user_id=user_id, flagged=len(flagged))
        return AutoDetectResult(flagged_count=len(flagged), entry_ids=flagged)
