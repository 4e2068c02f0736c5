"""Transaction flag bag.

An entry carries a sparse bag of flags persisted as one JSON value. Several
concerns (duplicate, transfer, BNPL, installment credit, manual exclusion)
can coexist in the same bag and each has its own lifecycle. They share a
single exclusion pair, ``isExcludedFromTotals`` + ``exclusionReason``, which
is only ever set or removed as a unit.
"""

from datetime import datetime, UTC
from typing import Any, Mapping, Optional

# Exclusion reasons
REASON_MANUAL = "manual"
REASON_DUPLICATE = "duplicate"
REASON_INTERNAL_TRANSFER = "internal_transfer"
REASON_CREDIT_CARD_PAYMENT = "credit_card_payment"
REASON_BNPL_INSTALLMENT = "bnpl_installment"
REASON_INSTALLMENT_PLAN_CREDIT = "installment_plan_credit"

EXCLUSION_REASONS = (
    REASON_MANUAL,
    REASON_DUPLICATE,
    REASON_INTERNAL_TRANSFER,
    REASON_CREDIT_CARD_PAYMENT,
    REASON_BNPL_INSTALLMENT,
    REASON_INSTALLMENT_PLAN_CREDIT,
)

# Concerns
DUPLICATE = "duplicate"
TRANSFER = "transfer"
BNPL = "bnpl"
INSTALLMENT_CREDIT = "installment_credit"
MANUAL = "manual"

CONCERN_KEYS: dict[str, tuple[str, ...]] = {
    DUPLICATE: ("isDuplicate", "linkedTransactionId", "linkedTransactionType", "duplicateConfidence"),
    TRANSFER: ("isInternalTransfer", "transferToAccountId"),
    BNPL: ("isBnplPurchase", "bnplOriginalAmount", "bnplRemainingInstallments", "bnplProvider"),
    INSTALLMENT_CREDIT: ("isInstallmentPlanCredit",),
    MANUAL: (),
}

CONCERN_REASONS: dict[str, tuple[str, ...]] = {
    DUPLICATE: (REASON_DUPLICATE,),
    TRANSFER: (REASON_INTERNAL_TRANSFER, REASON_CREDIT_CARD_PAYMENT),
    BNPL: (REASON_BNPL_INSTALLMENT,),
    INSTALLMENT_CREDIT: (REASON_INSTALLMENT_PLAN_CREDIT,),
    MANUAL: (REASON_MANUAL,),
}

EXCLUDED_KEY = "isExcludedFromTotals"
REASON_KEY = "exclusionReason"

REASON_TEXT = {
    REASON_DUPLICATE: "Duplicate transaction",
    REASON_INTERNAL_TRANSFER: "Internal transfer",
    REASON_CREDIT_CARD_PAYMENT: "Credit card payment",
    REASON_BNPL_INSTALLMENT: "BNPL installment",
    REASON_INSTALLMENT_PLAN_CREDIT: "Installment plan credit",
    REASON_MANUAL: "Manually excluded",
}


class FlagBag:
    """Mutable view over an entry's flag dict.

    Callers load the persisted bag, apply one concern's change and write the
    result back, so keys owned by other concerns survive the update.
    """

    def __init__(self, data: Optional[Mapping[str, Any]] = None):
        self._data: dict[str, Any] = dict(data or {})
        self._normalize_exclusion()

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "FlagBag":
        return cls(data)

    def _normalize_exclusion(self) -> None:
        excluded = self._data.get(EXCLUDED_KEY)
        reason = self._data.get(REASON_KEY)
        if excluded is False:
            self._clear_exclusion()
        elif excluded is True and not reason:
            self._data[REASON_KEY] = REASON_MANUAL
        elif reason and excluded is not True:
            self._data[EXCLUDED_KEY] = True

    def _set_exclusion(self, reason: str) -> None:
        if reason not in EXCLUSION_REASONS:
            raise ValueError(f"Unknown exclusion reason '{reason}'")
        self._data[EXCLUDED_KEY] = True
        self._data[REASON_KEY] = reason

    def _clear_exclusion(self) -> None:
        self._data.pop(EXCLUDED_KEY, None)
        self._data.pop(REASON_KEY, None)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FlagBag):
            return self._data == other._data
        return NotImplemented

    def __repr__(self) -> str:
        return f"FlagBag({self._data!r})"

    def set_concern(
        self,
        concern: str,
        values: Mapping[str, Any],
        exclusion_reason: Optional[str] = None,
    ) -> "FlagBag":
        """Merge one concern's keys into the bag.

        Args:
            concern: Concern name (duplicate, transfer, bnpl, ...)
            values: Keys to set; each must belong to the concern
            exclusion_reason: When given, also excludes the entry from totals
                with this reason

        Raises:
            ValueError: If a key does not belong to the concern
        """
        allowed = CONCERN_KEYS[concern]
        for key, value in values.items():
            if key not in allowed:
                raise ValueError(f"Flag '{key}' does not belong to concern '{concern}'")
            if value is None:
                self._data.pop(key, None)
            else:
                self._data[key] = value
        if exclusion_reason is not None:
            if exclusion_reason not in CONCERN_REASONS[concern]:
                raise ValueError(
                    f"Exclusion reason '{exclusion_reason}' does not belong to concern '{concern}'"
                )
            self._set_exclusion(exclusion_reason)
        return self

    def clear_concern(self, concern: str) -> "FlagBag":
        """Remove one concern's keys.

        The shared exclusion pair is only cleared when the current reason
        belongs to this concern; an exclusion caused by something else stays.
        """
        for key in CONCERN_KEYS[concern]:
            self._data.pop(key, None)
        if self._data.get(REASON_KEY) in CONCERN_REASONS[concern]:
            self._clear_exclusion()
        return self

    def verify(self, detection_method: str = "user_manual", now: Optional[datetime] = None) -> "FlagBag":
        """Record that a user confirmed the current classification."""
        self._data["userVerified"] = True
        self._data["verifiedAt"] = (now or datetime.now(UTC)).isoformat()
        self._data["detectionMethod"] = detection_method
        self._data.pop("autoDetected", None)
        self._data.pop("detectionConfidence", None)
        return self

    def auto_detect(self, detection_method: str, confidence: Optional[float] = None) -> "FlagBag":
        """Record that the system set the current classification."""
        self._data["autoDetected"] = True
        self._data["detectionMethod"] = detection_method
        if confidence is None:
            self._data.pop("detectionConfidence", None)
        else:
            self._data["detectionConfidence"] = confidence
        return self

    @property
    def is_duplicate(self) -> bool:
        return self._data.get("isDuplicate") is True

    @property
    def is_internal_transfer(self) -> bool:
        return self._data.get("isInternalTransfer") is True

    @property
    def is_bnpl_purchase(self) -> bool:
        return self._data.get("isBnplPurchase") is True

    @property
    def exclusion_reason(self) -> Optional[str]:
        return self._data.get(REASON_KEY)

    @property
    def is_excluded_from_totals(self) -> bool:
        """Whether the entry is left out of spend totals."""
        return should_exclude_from_totals(self._data)

    @property
    def exclusion_reason_text(self) -> Optional[str]:
        if not self.is_excluded_from_totals:
            return None
        return exclusion_reason_text(self.exclusion_reason)

    def is_empty(self) -> bool:
        return not self._data

    def to_dict(self) -> Optional[dict[str, Any]]:
        """Return the bag for persistence, or None when nothing is set."""
        return dict(self._data) if self._data else None


def should_exclude_from_totals(flags: Optional[Mapping[str, Any]]) -> bool:
    """Return True if an entry with these flags is excluded from totals."""
    if not flags:
        return False
    if flags.get(EXCLUDED_KEY) is True:
        return True
    return flags.get("isDuplicate") is True or flags.get("isInternalTransfer") is True


def exclusion_reason_text(reason: Optional[str]) -> str:
    """Human-readable text for an exclusion reason."""
    return REASON_TEXT.get(reason or "", "Excluded from analytics")
