# -*- coding: utf-8 -*-
"""Client-facing operation surface: wires repositories, tracker, generator and allocator."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Optional, Set, Tuple

from ..config import Settings, settings as default_settings
from .allocator import NuggetAllocator
from .generator import CompletionFn, NuggetGenerator
from .memory import InMemoryLegacyNuggetSource, InMemoryNuggetRepository, InMemoryProgressRepository
from .migration import initialize_database, migrate_existing_nuggets
from .models import Category, LLMProvider, MigrationReport, Nugget
from .progress import ProgressTracker
from .storage import (
    LegacyNuggetSource,
    NuggetRepository,
    ProgressRepository,
    SqliteLegacyNuggetSource,
    SqliteNuggetRepository,
    SqliteProgressRepository,
)


@dataclass
class NuggetService:
    nuggets: NuggetRepository
    progress: ProgressRepository
    legacy: LegacyNuggetSource
    generator: NuggetGenerator
    settings: Settings = field(default_factory=lambda: default_settings)
    tracker: ProgressTracker = field(init=False)
    allocator: NuggetAllocator = field(init=False)

    def __post_init__(self) -> None:
        self.tracker = ProgressTracker(self.progress, self.nuggets)
        self.allocator = NuggetAllocator(self.nuggets, self.tracker, self.generator, settings=self.settings)

    def fetch_nugget(
        self, category: Category | str, user_id: str, provider: LLMProvider | str | None = None
    ) -> Nugget:
        return self.allocator.fetch_nugget(category, user_id, provider)

    def mark_nugget_seen(self, nugget_id: str, user_id: str) -> Tuple[Nugget, bool]:
        return self.allocator.mark_nugget_seen(nugget_id, user_id)

    def mark_nugget_added_to_journal(self, nugget_id: str, user_id: str) -> Tuple[Nugget, bool]:
        return self.allocator.mark_nugget_added_to_journal(nugget_id, user_id)

    def get_seen_set(self, user_id: str, category: Category | str) -> Set[str]:
        return self.tracker.get_seen_set(user_id, category)

    def progress_counts(self, user_id: str) -> Dict[str, int]:
        return self.tracker.seen_counts(user_id)

    def statistics(self) -> Dict[str, int]:
        return self.allocator.statistics()

    def generate_nuggets(
        self,
        category: Category | str,
        count: Optional[int] = None,
        provider: LLMProvider | str | None = None,
    ) -> List[Nugget]:
        return self.allocator.generate_for_category(category, count, provider)

    def initialize_database(
        self, count: Optional[int] = None, provider: LLMProvider | str | None = None
    ) -> Tuple[Dict[str, int], Dict[str, str]]:
        return initialize_database(
            self.nuggets, self.generator, count=count, provider=provider, settings=self.settings
        )

    def migrate_existing_nuggets(self) -> MigrationReport:
        return migrate_existing_nuggets(self.legacy, self.nuggets, self.progress)


def build_sqlite_service(settings: Settings | None = None, complete: CompletionFn | None = None) -> NuggetService:
    cfg = settings or default_settings
    nuggets = SqliteNuggetRepository(cfg.app_db_path)
    nuggets.init_db()
    return NuggetService(
        nuggets=nuggets,
        progress=SqliteProgressRepository(cfg.app_db_path),
        legacy=SqliteLegacyNuggetSource(cfg.app_db_path),
        generator=NuggetGenerator(nuggets, settings=cfg, complete=complete),
        settings=cfg,
    )


def build_memory_service(settings: Settings | None = None, complete: CompletionFn | None = None) -> NuggetService:
    cfg = settings or default_settings
    nuggets = InMemoryNuggetRepository()
    return NuggetService(
        nuggets=nuggets,
        progress=InMemoryProgressRepository(),
        legacy=InMemoryLegacyNuggetSource(),
        generator=NuggetGenerator(nuggets, settings=cfg, complete=complete),
        settings=cfg,
    )


@lru_cache(maxsize=1)
def get_nugget_service() -> NuggetService:
    return build_sqlite_service()
