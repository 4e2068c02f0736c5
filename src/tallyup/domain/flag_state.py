"""Flag state manager.

Every flag mutation goes through ``FlagStateManager.update``: it loads the
entry's current bag under the caller's ownership scope, lets one concern
change it and writes the whole bag back. A caller who does not own the
entry gets a silent no-op so the existence of other users' rows is not
revealed.
"""

from typing import Callable, Optional

from tallyup.database.base import Database
from tallyup.domain.constants import ENTRY_TYPES
from tallyup.domain.errors import ValidationError, invalid_entry_type
from tallyup.domain.flags import FlagBag, MANUAL, REASON_MANUAL
from tallyup.logger import get_logger

logger = get_logger(__name__)


class FlagStateManager:
    """Applies partial flag updates to receipts and bank transactions."""

    def __init__(self, db: Database):
        """Initialize flag state manager.

        Args:
            db: Database instance
        """
        self.db = db

    def get_flags(self, entry_type: str, entry_id: int, user_id: str) -> Optional[FlagBag]:
        """Return an owned entry's flag bag, or None if the user cannot see it."""
        self._check_entry_type(entry_type)
        entry = self.db.get_entry(entry_type, entry_id, user_id)
        if entry is None:
            return None
        return FlagBag.from_dict(entry.flags)

    def update(
        self,
        entry_type: str,
        entry_id: int,
        user_id: str,
        mutate: Callable[[FlagBag], None],
    ) -> bool:
        """Read-modify-write an entry's flags.

        Args:
            entry_type: "receipt" or "bank_transaction"
            entry_id: Entry ID
            user_id: Calling user
            mutate: Function applying one concern's change to the bag in place

        Returns:
            True if the entry was updated, False if the caller does not own it
        """
        bag = self.get_flags(entry_type, entry_id, user_id)
        if bag is None:
            logger.debug("Flag update skipped", entry_type=entry_type, entry_id=entry_id)
            return False

        mutate(bag)
        updated = self.db.update_entry_flags(entry_type, entry_id, user_id, bag.to_dict())
        if updated:
            logger.info(
                "Updated transaction flags",
                entry_type=entry_type,
                entry_id=entry_id,
                excluded=bag.is_excluded_from_totals,
                exclusion_reason=bag.exclusion_reason,
            )
        return updated > 0

    def set_excluded_from_totals(
        self, entry_type: str, entry_id: int, user_id: str, exclude: bool
    ) -> bool:
        """Manually exclude an entry from totals, or undo a manual exclusion.

        Including an entry only clears a *manual* exclusion. An entry excluded
        as a duplicate or transfer stays excluded until that concern is
        unmarked.
        """

        def apply(bag: FlagBag) -> None:
            if exclude:
                bag.set_concern(MANUAL, {}, exclusion_reason=REASON_MANUAL)
                bag.verify()
            else:
                bag.clear_concern(MANUAL)

        return self.update(entry_type, entry_id, user_id, apply)

    @staticmethod
    def _check_entry_type(entry_type: str) -> None:
        if entry_type not in ENTRY_TYPES:
            raise ValidationError(invalid_entry_type(entry_type))
