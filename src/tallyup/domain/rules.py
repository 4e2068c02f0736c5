"""Categorization rule matching and rule management."""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Iterable, Optional

from tallyup.database.base import Database
from tallyup.domain.constants import (
    FIELD_MERCHANT_NAME,
    MATCH_CONTAINS,
    MATCH_EXACT,
    MATCH_REGEX,
    MATCH_TYPES,
    RULE_CONFIDENCE,
    RULE_FIELDS,
)
from tallyup.domain.entities import CategoryRule
from tallyup.domain.errors import (
    NotFoundError,
    ValidationError,
    business_not_found,
    category_not_found,
    invalid_regex,
    rule_not_found,
)
from tallyup.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RuleUpsertResult:
    """Outcome of creating a rule: the rule ID and whether it already existed."""

    rule_id: int
    updated: bool


@dataclass(frozen=True)
class CategorizationResult:
    """Category suggestion for a merchant/description pair."""

    category_id: Optional[int]
    business_id: Optional[int]
    confidence: float
    method: str
    category_name: Optional[str] = None
    matched_rule_id: Optional[int] = None

    @classmethod
    def none(cls) -> "CategorizationResult":
        return cls(category_id=None, business_id=None, confidence=0.0, method="none")


@lru_cache(maxsize=512)
def _compile_pattern(pattern: str) -> Optional[re.Pattern]:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        logger.warning("Invalid regex pattern in rule", pattern=pattern, error=str(e))
        return None


def pattern_matches(value: Optional[str], pattern: str, match_type: str) -> bool:
    """Test a single value against a rule pattern.

    exact and contains compare trimmed, lower-cased strings. regex is a
    case-insensitive search; a pattern that fails to compile never matches.
    """
    if not value:
        return False

    if match_type == MATCH_EXACT:
        return value.strip().lower() == pattern.strip().lower()
    if match_type == MATCH_CONTAINS:
        return pattern.strip().lower() in value.strip().lower()
    if match_type == MATCH_REGEX:
        compiled = _compile_pattern(pattern)
        if compiled is None:
            return False
        return compiled.search(value) is not None
    return False


def matches(rule: CategoryRule, merchant_name: Optional[str] = None, description: Optional[str] = None) -> bool:
    """Return True if the rule's field value satisfies its pattern."""
    value = merchant_name if rule.field == FIELD_MERCHANT_NAME else description
    return pattern_matches(value, rule.value, rule.match_type)


def build_exclusion_predicate(rules: Iterable[CategoryRule], field: str) -> Callable[[Optional[str]], bool]:
    """Build a predicate that is True for values matching none of the rules.

    Only enabled rules targeting ``field`` take part. Used to keep merchants
    that are already automated by a rule out of suggestion lists.
    """
    relevant = [rule for rule in rules if rule.is_enabled and rule.field == field]

    def predicate(value: Optional[str]) -> bool:
        return not any(pattern_matches(value, rule.value, rule.match_type) for rule in relevant)

    return predicate


class RuleService:
    """Service for matching and managing categorization rules."""

    def __init__(self, db: Database):
        """Initialize rule service.

        Args:
            db: Database instance
        """
        self.db = db

    def list_rules(self, user_id: str, enabled_only: bool = False) -> list[CategoryRule]:
        """List a user's rules in creation order."""
        return self.db.list_category_rules(user_id, enabled_only=enabled_only)

    def get_rule(self, user_id: str, rule_id: int) -> CategoryRule:
        """Get a rule owned by the user.

        Raises:
            NotFoundError: If the rule doesn't exist or belongs to someone else
        """
        rule = self.db.get_category_rule(rule_id)
        if rule is None or rule.user_id != user_id:
            raise NotFoundError(rule_not_found(rule_id))
        return rule

    def categorize(
        self,
        user_id: str,
        merchant_name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> CategorizationResult:
        """Return the category of the first enabled rule that matches."""
        for rule in self.db.list_category_rules(user_id, enabled_only=True):
            if matches(rule, merchant_name=merchant_name, description=description):
                category = self.db.get_category(rule.category_id)
                logger.debug(
                    "Rule matched",
                    rule_id=rule.id,
                    field=rule.field,
                    pattern=rule.value,
                    category_id=rule.category_id,
                )
                return CategorizationResult(
                    category_id=rule.category_id,
                    business_id=rule.business_id,
                    confidence=RULE_CONFIDENCE,
                    method="rule",
                    category_name=category.name if category else None,
                    matched_rule_id=rule.id,
                )
        return CategorizationResult.none()

    def exclusion_predicate(self, user_id: str, field: str = FIELD_MERCHANT_NAME) -> Callable[[Optional[str]], bool]:
        """Predicate over field values that are not yet covered by the user's rules."""
        return build_exclusion_predicate(self.db.list_category_rules(user_id, enabled_only=True), field)

    def upsert_rule(
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
    ) -> RuleUpsertResult:
        """Create a rule, or update the user's existing rule for the same value.

        Values are compared case-insensitively per field, so a second rule for
        "STARBUCKS" updates the rule for "Starbucks" instead of adding a row.

        Raises:
            ValidationError: If field, match type or pattern is invalid
            NotFoundError: If the category or business is not usable by the user
        """
        normalized_value = (value or "").strip()
        self._validate_rule(field, match_type, normalized_value)
        self.check_category(user_id, category_id)
        self.check_business(user_id, business_id)

        display_name = display_name.strip() if display_name and display_name.strip() else None
        source = source.strip() if source and source.strip() else None
        created_from = created_from.strip() if created_from and created_from.strip() else None

        existing = self.db.find_category_rule(user_id, field, normalized_value)
        if existing is not None:
            self.db.update_category_rule(
                existing.id,
                {
                    "match_type": match_type,
                    "value": normalized_value,
                    "category_id": category_id,
                    "business_id": business_id,
                    "display_name": display_name if display_name is not None else existing.display_name,
                    "is_enabled": is_enabled,
                    "source": source,
                    "created_from": created_from,
                },
            )
            logger.info("Updated category rule", rule_id=existing.id, field=field, value=normalized_value)
            return RuleUpsertResult(rule_id=existing.id, updated=True)

        rule_id = self.db.create_category_rule(
            user_id=user_id,
            field=field,
            match_type=match_type,
            value=normalized_value,
            category_id=category_id,
            business_id=business_id,
            display_name=display_name,
            is_enabled=is_enabled,
            source=source,
            created_from=created_from,
        )
        logger.info("Created category rule", rule_id=rule_id, field=field, value=normalized_value)
        return RuleUpsertResult(rule_id=rule_id, updated=False)

    def create_merchant_rule(
        self,
        user_id: str,
        merchant_name: str,
        category_id: int,
        display_name: Optional[str] = None,
        business_id: Optional[int] = None,
        is_enabled: bool = True,
        source: str = "settings",
        created_from: Optional[str] = None,
    ) -> RuleUpsertResult:
        """Create (or update) an exact merchant-name rule."""
        return self.upsert_rule(
            user_id=user_id,
            field=FIELD_MERCHANT_NAME,
            match_type=MATCH_EXACT,
            value=merchant_name,
            category_id=category_id,
            business_id=business_id,
            display_name=display_name,
            is_enabled=is_enabled,
            source=source,
            created_from=created_from,
        )

    def create_rule_from_transaction(
        self,
        user_id: str,
        merchant_name: str,
        category_id: int,
        business_id: Optional[int] = None,
        display_name: Optional[str] = None,
        match_type: str = MATCH_CONTAINS,
        created_from: Optional[str] = None,
    ) -> RuleUpsertResult:
        """Promote a transaction's merchant into a rule.

        Only exact and contains are offered here; the display name defaults
        to the merchant name.
        """
        if match_type not in (MATCH_EXACT, MATCH_CONTAINS):
            raise ValidationError(f"Match type '{match_type}' is not allowed for transaction rules")
        merchant_name = (merchant_name or "").strip()
        return self.upsert_rule(
            user_id=user_id,
            field=FIELD_MERCHANT_NAME,
            match_type=match_type,
            value=merchant_name,
            category_id=category_id,
            business_id=business_id,
            display_name=display_name or merchant_name,
            source="transaction",
            created_from=created_from,
        )

    def update_rule(
        self,
        user_id: str,
        rule_id: int,
        category_id: int,
        match_type: str,
        field: str,
        value: str,
        business_id: Optional[int] = None,
    ) -> None:
        """Replace a rule's pattern and target."""
        self.get_rule(user_id, rule_id)
        value = (value or "").strip()
        self._validate_rule(field, match_type, value)
        self.check_category(user_id, category_id)
        self.check_business(user_id, business_id)
        self.db.update_category_rule(
            rule_id,
            {
                "category_id": category_id,
                "business_id": business_id,
                "match_type": match_type,
                "field": field,
                "value": value,
            },
        )

    def update_rule_display_name(self, user_id: str, rule_id: int, display_name: str) -> None:
        """Rename a rule."""
        display_name = (display_name or "").strip()
        if not display_name:
            raise ValidationError("Display name is required")
        if len(display_name) > 100:
            raise ValidationError("Display name must be at most 100 characters")
        self.get_rule(user_id, rule_id)
        self.db.update_category_rule(rule_id, {"display_name": display_name})

    def set_rule_enabled(self, user_id: str, rule_id: int, is_enabled: bool) -> None:
        """Enable or disable a rule."""
        self.get_rule(user_id, rule_id)
        self.db.update_category_rule(rule_id, {"is_enabled": is_enabled})

    def delete_rule(self, user_id: str, rule_id: int) -> None:
        """Delete a rule. Entries categorized by it keep their category."""
        self.get_rule(user_id, rule_id)
        self.db.delete_category_rule(rule_id)
        logger.info("Deleted category rule", rule_id=rule_id)

    @staticmethod
    def _validate_rule(field: str, match_type: str, value: str) -> None:
        if field not in RULE_FIELDS:
            raise ValidationError(f"Unknown rule field '{field}'")
        if match_type not in MATCH_TYPES:
            raise ValidationError(f"Unknown match type '{match_type}'")
        if not value:
            raise ValidationError("Pattern is required")
        if match_type == MATCH_REGEX:
            try:
                re.compile(value, re.IGNORECASE)
            except re.error as e:
                raise ValidationError(invalid_regex(value, str(e)))

    def check_category(self, user_id: str, category_id: int) -> None:
        category = self.db.get_category(category_id)
        if category is None or (category.user_id is not None and category.user_id != user_id):
            raise NotFoundError(category_not_found(category_id))

    def check_business(self, user_id: str, business_id: Optional[int]) -> None:
        if business_id is None:
            return
        business = self.db.get_business(business_id)
        if business is None or business.user_id != user_id:
            raise NotFoundError(business_not_found(business_id))
