"""Buy-now-pay-later purchases and installment plan credits.

A BNPL purchase is tracked so that its remaining installments can be
summed as an obligation. An installment plan credit is the refund a card
issuer posts when a purchase is moved to a plan (e.g. "Plan It"); it is not
income, so it is excluded from totals.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from tallyup.database.base import Database
from tallyup.domain.constants import (
    BANK_TRANSACTION,
    BNPL_MIN_CONFIDENCE,
    ENTRY_TYPES,
    INSTALLMENT_CREDIT_CONFIDENCE,
    INSTALLMENT_CREDIT_MIN_CONFIDENCE,
)
from tallyup.domain.errors import ValidationError
from tallyup.domain.flag_state import FlagStateManager
from tallyup.domain.flags import (
    BNPL,
    FlagBag,
    INSTALLMENT_CREDIT,
    REASON_INSTALLMENT_PLAN_CREDIT,
)
from tallyup.domain.transfers import AutoDetectResult
from tallyup.logger import get_logger
from tallyup.utils.amount_parser import coerce_amount

logger = get_logger(__name__)

PROVIDER_OTHER = "other"
BNPL_PROVIDERS = ("affirm", "klarna", "afterpay", "apple_pay_later", PROVIDER_OTHER)

BNPL_PROVIDER_PATTERNS = [
    (re.compile(r"affirm", re.IGNORECASE), "affirm", 1.0),
    (re.compile(r"klarna", re.IGNORECASE), "klarna", 1.0),
    (re.compile(r"afterpay", re.IGNORECASE), "afterpay", 1.0),
    (re.compile(r"apple\s*pay\s*later", re.IGNORECASE), "apple_pay_later", 1.0),
    (re.compile(r"sezzle", re.IGNORECASE), PROVIDER_OTHER, 0.9),
    (re.compile(r"zip\s*pay", re.IGNORECASE), PROVIDER_OTHER, 0.9),
    (re.compile(r"quadpay", re.IGNORECASE), PROVIDER_OTHER, 0.9),
    (re.compile(r"splitit", re.IGNORECASE), PROVIDER_OTHER, 0.9),
]

INSTALLMENT_PLAN_CREDIT_PATTERNS = [
    re.compile(r"installment\s*plan", re.IGNORECASE),
    re.compile(r"plan\s*it", re.IGNORECASE),
    re.compile(r"pay\s*over\s*time", re.IGNORECASE),
]

METHOD_MERCHANT_PATTERN = "merchant_pattern"
METHOD_MERCHANT_DESCRIPTION_PATTERN = "merchant_description_pattern"


@dataclass(frozen=True)
class BnplDetectionResult:
    is_bnpl: bool
    provider: Optional[str] = None
    confidence: float = 0.0


@dataclass(frozen=True)
class InstallmentCreditDetectionResult:
    is_installment_plan_credit: bool
    confidence: float = 0.0
    detection_method: Optional[str] = None


@dataclass(frozen=True)
class BnplTransaction:
    entry_type: str
    id: int
    merchant_name: str
    amount: Decimal
    date: Optional[date]
    provider: Optional[str] = None
    original_amount: Optional[Decimal] = None
    remaining_installments: Optional[int] = None


@dataclass(frozen=True)
class BnplObligations:
    total_obligations: Decimal = Decimal("0")
    upcoming_installments: int = 0
    transactions: list[BnplTransaction] = field(default_factory=list)


def detect_bnpl_provider(merchant_name: Optional[str]) -> BnplDetectionResult:
    """Recognize a BNPL provider in a merchant name."""
    if not merchant_name:
        return BnplDetectionResult(is_bnpl=False)
    for pattern, provider, confidence in BNPL_PROVIDER_PATTERNS:
        if pattern.search(merchant_name):
            return BnplDetectionResult(is_bnpl=True, provider=provider, confidence=confidence)
    return BnplDetectionResult(is_bnpl=False)


def detect_installment_plan_credit(
    merchant_name: Optional[str], description: Optional[str], amount: Any
) -> InstallmentCreditDetectionResult:
    """Recognize an installment plan credit.

    Only credits (positive amounts) qualify; merchant and description are
    searched together.
    """
    value = coerce_amount(amount)
    if value is None or value <= 0:
        return InstallmentCreditDetectionResult(is_installment_plan_credit=False)
    text = f"{merchant_name or ''} {description or ''}"
    if any(pattern.search(text) for pattern in INSTALLMENT_PLAN_CREDIT_PATTERNS):
        return InstallmentCreditDetectionResult(
            is_installment_plan_credit=True,
            confidence=INSTALLMENT_CREDIT_CONFIDENCE,
            detection_method=METHOD_MERCHANT_DESCRIPTION_PATTERN,
        )
    return InstallmentCreditDetectionResult(is_installment_plan_credit=False)


def installment_amount(original_amount: Decimal, remaining_installments: int) -> Decimal:
    """Per-installment amount, assuming one installment has already been paid."""
    return original_amount / (remaining_installments + 1)


class InstallmentService:
    """Service for BNPL tracking and installment plan credits."""

    def __init__(self, db: Database, flag_state: Optional[FlagStateManager] = None):
        """Initialize installment service.

        Args:
            db: Database instance
            flag_state: Flag state manager; one is created when omitted
        """
        self.db = db
        self.flag_state = flag_state or FlagStateManager(db)

    # BNPL
    def auto_detect_bnpl(self, user_id: str) -> AutoDetectResult:
        """Flag receipts and bank transactions whose merchant is a BNPL provider."""
        flagged = []
        for entry_type in ENTRY_TYPES:
            for entry in self.db.list_entries(user_id, entry_type):
                if FlagBag.from_dict(entry.flags).is_bnpl_purchase:
                    continue
                detection = detect_bnpl_provider(entry.merchant_name)
                if not detection.is_bnpl or detection.confidence < BNPL_MIN_CONFIDENCE:
                    continue

                def apply(bag: FlagBag, detection: BnplDetectionResult = detection) -> None:
                    bag.set_concern(BNPL, {"isBnplPurchase": True, "bnplProvider": detection.provider})
                    bag.auto_detect(METHOD_MERCHANT_PATTERN, detection.confidence)

                if self.flag_state.update(entry_type, entry.id, user_id, apply):
                    flagged.append(entry.id)

        logger.info("Auto-detected BNPL purchases", user_id=user_id, flagged=len(flagged))
        return AutoDetectResult(flagged_count=len(flagged), entry_ids=flagged)

    def mark_as_bnpl(
        self,
        user_id: str,
        entry_type: str,
        entry_id: int,
        provider: str = PROVIDER_OTHER,
        original_amount: Any = None,
        remaining_installments: Optional[int] = None,
    ) -> bool:
        """Mark an entry as a BNPL purchase. Unknown providers are stored as "other"."""
        if provider not in BNPL_PROVIDERS:
            provider = PROVIDER_OTHER
        amount = coerce_amount(original_amount)
        self._check_installments(remaining_installments)

        def apply(bag: FlagBag) -> None:
            bag.set_concern(
                BNPL,
                {
                    "isBnplPurchase": True,
                    "bnplProvider": provider,
                    "bnplOriginalAmount": str(amount) if amount is not None else None,
                    "bnplRemainingInstallments": remaining_installments,
                },
            )
            bag.verify()

        return self.flag_state.update(entry_type, entry_id, user_id, apply)

    def update_bnpl_installments(
        self, user_id: str, entry_type: str, entry_id: int, remaining_installments: int
    ) -> bool:
        """Record how many installments are left on a BNPL purchase."""
        self._check_installments(remaining_installments)
        bag = self.flag_state.get_flags(entry_type, entry_id, user_id)
        if bag is None or not bag.is_bnpl_purchase:
            return False
        return self.flag_state.update(
            entry_type,
            entry_id,
            user_id,
            lambda bag: bag.set_concern(BNPL, {"bnplRemainingInstallments": remaining_installments}),
        )

    def unmark_as_bnpl(self, user_id: str, entry_type: str, entry_id: int) -> bool:
        return self.flag_state.update(entry_type, entry_id, user_id, lambda bag: bag.clear_concern(BNPL))

    def get_bnpl_transactions(self, user_id: str) -> list[BnplTransaction]:
        """List the user's BNPL purchases, newest first and undated last."""
        transactions = []
        for entry_type in ENTRY_TYPES:
            for entry in self.db.list_entries(user_id, entry_type):
                bag = FlagBag.from_dict(entry.flags)
                if not bag.is_bnpl_purchase:
                    continue
                transactions.append(
                    BnplTransaction(
                        entry_type=entry_type,
                        id=entry.id,
                        merchant_name=entry.merchant_name or "",
                        amount=entry.amount,
                        date=entry.date,
                        provider=bag.get("bnplProvider"),
                        original_amount=coerce_amount(bag.get("bnplOriginalAmount")),
                        remaining_installments=bag.get("bnplRemainingInstallments"),
                    )
                )
        transactions.sort(key=lambda t: (t.date is None, -(t.date.toordinal() if t.date else 0)))
        return transactions

    def get_bnpl_obligations(self, user_id: str) -> BnplObligations:
        """Sum what is still owed on the user's BNPL purchases.

        Purchases without an original amount or remaining installment count
        are listed but not counted.
        """
        transactions = self.get_bnpl_transactions(user_id)
        total = Decimal("0")
        upcoming = 0
        for transaction in transactions:
            if transaction.original_amount and transaction.remaining_installments:
                per_installment = installment_amount(transaction.original_amount, transaction.remaining_installments)
                total += per_installment * transaction.remaining_installments
                upcoming += transaction.remaining_installments
        return BnplObligations(
            total_obligations=total.quantize(Decimal("0.01")),
            upcoming_installments=upcoming,
            transactions=transactions,
        )

    # Installment plan credits
    def auto_detect_installment_plan_credits(self, user_id: str) -> AutoDetectResult:
        """Exclude the user's bank credits that read as installment plan conversions."""
        flagged = []
        for entry in self.db.list_entries(user_id, BANK_TRANSACTION):
            if entry.amount <= 0 or FlagBag.from_dict(entry.flags).is_excluded_from_totals:
                continue
            result = detect_installment_plan_credit(entry.merchant_name, entry.description, entry.amount)
            if not result.is_installment_plan_credit or result.confidence < INSTALLMENT_CREDIT_MIN_CONFIDENCE:
                continue

            def apply(bag: FlagBag, result: InstallmentCreditDetectionResult = result) -> None:
                bag.set_concern(
                    INSTALLMENT_CREDIT,
                    {"isInstallmentPlanCredit": True},
                    exclusion_reason=REASON_INSTALLMENT_PLAN_CREDIT,
                )
                bag.auto_detect(result.detection_method, result.confidence)

            if self.flag_state.update(BANK_TRANSACTION, entry.id, user_id, apply):
                flagged.append(entry.id)

        logger.info("Auto-detected installment plan credits", user_id=user_id, flagged=len(flagged))
        return AutoDetectResult(flagged_count=len(flagged), entry_ids=flagged)

    def mark_as_installment_plan_credit(self, user_id: str, entry_id: int) -> bool:
        def apply(bag: FlagBag) -> None:
            bag.set_concern(
                INSTALLMENT_CREDIT,
                {"isInstallmentPlanCredit": True},
                exclusion_reason=REASON_INSTALLMENT_PLAN_CREDIT,
            )
            bag.verify()

        return self.flag_state.update(BANK_TRANSACTION, entry_id, user_id, apply)

    def unmark_as_installment_plan_credit(self, user_id: str, entry_id: int) -> bool:
        return self.flag_state.update(
            BANK_TRANSACTION, entry_id, user_id, lambda bag: bag.clear_concern(INSTALLMENT_CREDIT)
        )

    @staticmethod
    def _check_installments(remaining_installments: Optional[int]) -> None:
        if remaining_installments is not None and remaining_installments < 0:
            raise ValidationError("Remaining installments cannot be negative")
