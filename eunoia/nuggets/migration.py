# -*- coding: utf-8 -*-
"""One-shot jobs: seed empty categories and fold legacy per-user copies into the shared pool."""

from __future__ import annotations

import logging
from datetime import timezone
from typing import Dict, Optional, Tuple

from pydantic import ValidationError

from ..config import Settings, settings as default_settings
from ..errors import GenerationFailed, InvalidCategory
from .generator import NuggetGenerator
from .models import (
    Category,
    LegacyNugget,
    LLMProvider,
    MigrationReport,
    Nugget,
    content_fingerprint,
    parse_category,
    utc_now,
)
from .storage import LegacyNuggetSource, NuggetRepository, ProgressRepository

logger = logging.getLogger(__name__)


def initialize_database(
    nuggets: NuggetRepository,
    generator: NuggetGenerator,
    *,
    count: Optional[int] = None,
    provider: LLMProvider | str | None = None,
    settings: Settings | None = None,
) -> Tuple[Dict[str, int], Dict[str, str]]:
    """Generate a first batch for every category that has no nuggets yet.

    Returns (generated count per category, failure message per category).
    """
    cfg = settings or default_settings
    batch_size = cfg.initial_batch_size if count is None else int(count)
    if batch_size < 1:
        raise ValueError("count must be positive")
    generated: Dict[str, int] = {}
    failed: Dict[str, str] = {}
    for category in Category:
        if nuggets.count(category) > 0:
            logger.info("Category %s already has nuggets, skipping", category.value)
            continue
        try:
            batch = generator.generate_batch(category, batch_size, provider)
        except GenerationFailed as exc:
            logger.error("Seeding %s failed: %s", category.value, exc)
            failed[category.value] = exc.message
            continue
        generated[category.value] = len(batch)
    logger.info("Initialization finished: %d nuggets generated", sum(generated.values()))
    return generated, failed


def _validate_legacy(raw: Dict) -> Tuple[LegacyNugget, Category]:
    legacy = LegacyNugget.model_validate(raw)
    if not legacy.user_id:
        raise ValueError("missing user_id")
    if not (legacy.title or "").strip() or not (legacy.content or "").strip():
        raise ValueError("missing title or content")
    return legacy, parse_category(legacy.category)


def migrate_existing_nuggets(
    source: LegacyNuggetSource,
    nuggets: NuggetRepository,
    progress: ProgressRepository,
) -> MigrationReport:
    """Convert legacy per-user nugget copies into shared nuggets plus progress records.

    Identical content (same fingerprint) becomes a single canonical nugget; every
    legacy owner gets that canonical id in their seen set. Re-running is safe:
    already migrated content is reused, never duplicated. Malformed rows are
    skipped and listed in the report.
    """
    report = MigrationReport()
    for raw in source.list_legacy():
        report.scanned += 1
        legacy_id = str(raw.get("id") or "")
        try:
            legacy, category = _validate_legacy(raw)
        except (ValidationError, ValueError, InvalidCategory) as exc:
            logger.warning("Skipping legacy nugget %s: %s", legacy_id, exc)
            report.add_error(legacy_id, str(exc))
            continue

        title = legacy.title.strip()
        content = legacy.content.strip()
        fingerprint = content_fingerprint(category, title, content)
        canonical = nuggets.find_by_fingerprint(category, fingerprint)
        if canonical is None:
            created_at = legacy.date or utc_now()
            if created_at.tzinfo is None:
                created_at = created_at.replace(tzinfo=timezone.utc)
            stored = nuggets.add_batch(
                [Nugget(category=category, title=title, content=content, created_at=created_at)]
            )
            if stored:
                canonical = stored[0]
                report.migrated += 1
            else:
                # Lost a race against a concurrent insert of the same content.
                canonical = nuggets.find_by_fingerprint(category, fingerprint)
                report.reused += 1
        else:
            report.reused += 1

        if canonical is None:
            report.add_error(legacy_id, "canonical nugget could not be stored")
            continue
        if progress.add_seen(legacy.user_id, category, canonical.id):
            report.progress_backfilled += 1
        if legacy.is_added_to_journal and progress.set_added_to_journal(legacy.user_id, category, canonical.id):
            report.journal_backfilled += 1

    logger.info(
        "Migration finished: scanned=%d migrated=%d reused=%d skipped=%d journal=%d",
        report.scanned,
        report.migrated,
        report.reused,
        report.skipped,
        report.journal_backfilled,
    )
    return report
