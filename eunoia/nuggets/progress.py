# -*- coding: utf-8 -*-
"""Per-user, per-category bookkeeping of delivered nuggets."""

from __future__ import annotations

import logging
from typing import Dict, Optional, Set

from ..errors import NotAuthenticated, NuggetNotDelivered, NuggetNotFound, StorageError
from .models import Category, ProgressRecord, parse_category
from .storage import NuggetRepository, ProgressRepository

logger = logging.getLogger(__name__)


class ProgressTracker:
    def __init__(self, progress: ProgressRepository, nuggets: NuggetRepository) -> None:
        self.progress = progress
        self.nuggets = nuggets

    def _record(self, user_id: str, category: Category) -> Optional[ProgressRecord]:
        record = self.progress.get_record(user_id, category)
        if record is not None and (record.user_id != user_id or record.category != category):
            raise StorageError(f"Progress record {record.id} does not belong to the requesting user")
        return record

    def get_seen_set(self, user_id: str, category: Category | str) -> Set[str]:
        user_id = require_user(user_id)
        record = self._record(user_id, parse_category(category))
        return set(record.seen_nugget_ids) if record else set()

    def mark_seen(self, user_id: str, category: Category | str, nugget_id: str) -> bool:
        """Add `nugget_id` to the seen set; returns False if it was already there.

        Repeating the call is a no-op for the set but still refreshes `last_updated`.
        """
        user_id = require_user(user_id)
        category = parse_category(category)
        nugget = self.nuggets.get(nugget_id)
        if nugget is None or nugget.category != category:
            raise NuggetNotFound(nugget_id)
        added = self.progress.add_seen(user_id, category, nugget_id)
        logger.debug("mark_seen user=%s category=%s nugget=%s added=%s", user_id, category.value, nugget_id, added)
        return added

    def mark_added_to_journal(self, user_id: str, category: Category | str, nugget_id: str) -> bool:
        """Flag a delivered nugget as copied into the user's journal.

        Returns False if it was already flagged. Raises NuggetNotDelivered when
        the nugget is not in the user's seen set.
        """
        user_id = require_user(user_id)
        category = parse_category(category)
        flagged = self.progress.set_added_to_journal(user_id, category, nugget_id)
        if flagged is None:
            raise NuggetNotDelivered(nugget_id)
        return flagged

    def seen_counts(self, user_id: str) -> Dict[str, int]:
        user_id = require_user(user_id)
        counts = {category.value: 0 for category in Category}
        for record in self.progress.list_records(user_id):
            if record.user_id != user_id:
                raise StorageError(f"Progress record {record.id} does not belong to the requesting user")
            counts[record.category.value] = len(record.seen_nugget_ids)
        return counts


def require_user(user_id: Optional[str]) -> str:
    if not user_id or not str(user_id).strip():
        raise NotAuthenticated("A user id is required")
    return str(user_id)
