# -*- coding: utf-8 -*-
"""Rolling refill allocation.

A user is always served the oldest nugget of a category they have not seen.
Only when a user has exhausted the shared pool of a category is a new batch
generated, and that batch then serves every other user as well. A
per-category lease keeps concurrent callers from generating redundant
batches: whoever holds it generates, the others poll the pool for a while.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from ..config import Settings, settings as default_settings
from ..errors import GenerationFailed, GenerationInProgress, NoContentAvailable, NuggetNotFound
from .generator import NuggetGenerator
from .models import Category, LLMProvider, Nugget, parse_category
from .progress import ProgressTracker, require_user
from .storage import NuggetRepository

logger = logging.getLogger(__name__)


class NuggetAllocator:
    def __init__(
        self,
        nuggets: NuggetRepository,
        tracker: ProgressTracker,
        generator: NuggetGenerator,
        *,
        settings: Settings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.nuggets = nuggets
        self.tracker = tracker
        self.generator = generator
        self.settings = settings or default_settings
        self._sleep = sleep

    def fetch_nugget(
        self,
        category: Category | str,
        user_id: str,
        provider: LLMProvider | str | None = None,
    ) -> Nugget:
        user_id = require_user(user_id)
        category = parse_category(category)

        nugget = self._deliver_unseen(user_id, category)
        if nugget is not None:
            return nugget

        logger.info("User %s exhausted %s, refilling", user_id, category.value)
        failure = self._refill(user_id, category, provider)

        nugget = self._deliver_unseen(user_id, category)
        if nugget is not None:
            return nugget
        raise NoContentAvailable(f"No unseen nuggets left in {category.value}") from failure

    def mark_nugget_seen(self, nugget_id: str, user_id: str) -> Tuple[Nugget, bool]:
        user_id = require_user(user_id)
        nugget = self.nuggets.get(nugget_id)
        if nugget is None:
            raise NuggetNotFound(nugget_id)
        added = self.tracker.mark_seen(user_id, nugget.category, nugget.id)
        return nugget, added

    def mark_nugget_added_to_journal(self, nugget_id: str, user_id: str) -> Tuple[Nugget, bool]:
        user_id = require_user(user_id)
        nugget = self.nuggets.get(nugget_id)
        if nugget is None:
            raise NuggetNotFound(nugget_id)
        added = self.tracker.mark_added_to_journal(user_id, nugget.category, nugget.id)
        return nugget, added

    def generate_for_category(
        self,
        category: Category | str,
        count: int | None = None,
        provider: LLMProvider | str | None = None,
    ) -> List[Nugget]:
        """Generate one batch on demand, under the same lease as refills."""
        category = parse_category(category)
        owner = str(uuid4())
        if not self.nuggets.try_acquire_lease(category, owner, float(self.settings.generation_lease_seconds)):
            raise GenerationInProgress(f"Generation for {category.value} is already in progress")
        try:
            return self.generator.generate_batch(category, count, provider)
        finally:
            self.nuggets.release_lease(category, owner)

    def statistics(self) -> Dict[str, int]:
        return {category.value: self.nuggets.count(category) for category in Category}

    def _deliver_unseen(self, user_id: str, category: Category) -> Optional[Nugget]:
        while True:
            seen = self.tracker.get_seen_set(user_id, category)
            candidate = self.nuggets.first_unseen(category, seen)
            if candidate is None:
                return None
            if self.tracker.mark_seen(user_id, category, candidate.id):
                logger.debug("Delivered %s to %s (%s)", candidate.id, user_id, category.value)
                return candidate
            # A concurrent request already delivered this one; the next read excludes it.
            logger.debug("Nugget %s already delivered to %s, picking another", candidate.id, user_id)

    def _has_unseen(self, user_id: str, category: Category) -> bool:
        seen = self.tracker.get_seen_set(user_id, category)
        return self.nuggets.first_unseen(category, seen) is not None

    def _refill(
        self,
        user_id: str,
        category: Category,
        provider: LLMProvider | str | None,
    ) -> Optional[GenerationFailed]:
        owner = str(uuid4())
        poll = float(self.settings.generation_poll_seconds)
        waited = False
        while True:
            if self.nuggets.try_acquire_lease(category, owner, float(self.settings.generation_lease_seconds)):
                try:
                    # The previous holder may have refilled between our last poll and now.
                    if waited and self._has_unseen(user_id, category):
                        return None
                    return self._generate(category, provider)
                finally:
                    self.nuggets.release_lease(category, owner)

            if not waited:
                logger.warning("Generation for %s already in progress, waiting", category.value)
                waited = True
            # Wait as long as the holder's lease lives; an expired lease means the holder is gone.
            while True:
                self._sleep(poll)
                if self._has_unseen(user_id, category):
                    return None
                if not self.nuggets.lease_active(category):
                    break
            logger.info("Generation lease for %s ended without new nuggets for %s", category.value, user_id)

    def _generate(self, category: Category, provider: LLMProvider | str | None) -> Optional[GenerationFailed]:
        try:
            self.generator.generate_batch(category, self.settings.nuggets_per_batch, provider)
        except GenerationFailed as exc:
            logger.error("Refill of %s failed: %s", category.value, exc)
            return exc
        return None
