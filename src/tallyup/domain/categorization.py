"""Category suggestion and assignment."""

from typing import Optional

from tallyup.database.base import Database
from tallyup.domain.constants import ENTRY_TYPES, FIELD_MERCHANT_NAME, HISTORY_CONFIDENCE, MATCH_EXACT
from tallyup.domain.errors import (
    NotFoundError,
    ValidationError,
    entry_not_found,
    invalid_entry_type,
)
from tallyup.domain.rules import CategorizationResult, RuleService, RuleUpsertResult
from tallyup.domain.similar import SimilarTransactionService
from tallyup.logger import get_logger

logger = get_logger(__name__)


class CategorizationService:
    """Suggests categories from rules and history, and assigns them to entries."""

    def __init__(
        self,
        db: Database,
        rule_service: Optional[RuleService] = None,
        similar_service: Optional[SimilarTransactionService] = None,
    ):
        self.db = db
        self.rule_service = rule_service or RuleService(db)
        self.similar_service = similar_service or SimilarTransactionService(db)

    def suggest_category(
        self,
        user_id: str,
        merchant_name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> CategorizationResult:
        """Suggest a category for a merchant.

        An enabled rule wins. Otherwise the most common category among the
        user's similar past entries is suggested at lower confidence.
        """
        result = self.rule_service.categorize(user_id, merchant_name=merchant_name, description=description)
        if result.category_id is not None:
            return result

        stats = self.similar_service.get_similar_transaction_stats(user_id, merchant_name)
        if stats.most_common_category is not None:
            logger.debug(
                "History match",
                merchant_name=merchant_name,
                category_id=stats.most_common_category.id,
                occurrences=stats.most_common_category.count,
            )
            return CategorizationResult(
                category_id=stats.most_common_category.id,
                business_id=stats.most_common_business.id if stats.most_common_business else None,
                confidence=HISTORY_CONFIDENCE,
                method="history",
                category_name=stats.most_common_category.name,
            )
        return CategorizationResult.none()

    def assign_category(
        self,
        user_id: str,
        entry_type: str,
        entry_id: int,
        category_id: Optional[int],
        business_id: Optional[int] = None,
        apply_to_future: bool = False,
    ) -> Optional[RuleUpsertResult]:
        """Set an entry's category and business.

        With ``apply_to_future`` an exact merchant rule is created (or
        updated) so later entries from the same merchant get the category.

        Returns:
            The rule upsert result when a rule was written, else None

        Raises:
            NotFoundError: If the entry, category or business is not the user's
        """
        if entry_type not in ENTRY_TYPES:
            raise ValidationError(invalid_entry_type(entry_type))
        entry = self.db.get_entry(entry_type, entry_id, user_id)
        if entry is None:
            raise NotFoundError(entry_not_found(entry_type, entry_id))
        if category_id is not None:
            self.rule_service.check_category(user_id, category_id)
        self.rule_service.check_business(user_id, business_id)

        self.db.update_entry_category(entry_type, entry_id, user_id, category_id, business_id)
        logger.info("Assigned category", entry_type=entry_type, entry_id=entry_id, category_id=category_id)

        if not apply_to_future or category_id is None or not entry.merchant_name:
            return None
        return self.rule_service.upsert_rule(
            user_id=user_id,
            field=FIELD_MERCHANT_NAME,
            match_type=MATCH_EXACT,
            value=entry.merchant_name,
            category_id=category_id,
            business_id=business_id,
            display_name=entry.merchant_name,
            source="categorization",
            created_from=f"{entry_type}:{entry_id}",
        )
