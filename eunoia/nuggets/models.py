# -*- coding: utf-8 -*-
"""Learning nuggets: models and enums."""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from ..errors import InvalidCategory


class Category(str, Enum):
    growth = "Growth"
    relationships = "Relationships"
    health = "Health"
    productivity = "Productivity"
    finances = "Finances"
    creativity = "Creativity"
    mindfulness = "Mindfulness"
    career = "Career"
    focus = "Focus"


class LLMProvider(str, Enum):
    openai = "openai"
    deepseek = "deepseek"


def parse_category(value: Any) -> Category:
    """Accept a Category, its value ("Growth") or its name ("growth")."""
    if isinstance(value, Category):
        return value
    if isinstance(value, str):
        raw = value.strip()
        for category in Category:
            if raw == category.value or raw.lower() == category.name:
                return category
    raise InvalidCategory(value)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _normalize(text: str) -> str:
    return " ".join(text.split()).casefold()


def content_fingerprint(category: Category, title: str, content: str) -> str:
    raw = "\x1f".join([category.value, _normalize(title), _normalize(content)])
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class Nugget(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    category: Category
    title: str
    content: str
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def fingerprint(self) -> str:
        return content_fingerprint(self.category, self.title, self.content)


class ProgressRecord(BaseModel):
    id: str
    user_id: str
    category: Category
    seen_nugget_ids: Set[str] = Field(default_factory=set)
    journal_nugget_ids: Set[str] = Field(default_factory=set)
    last_updated: datetime


class LegacyNugget(BaseModel):
    """Pre-shared-pool copy of a nugget owned by a single user."""

    id: str
    user_id: Optional[str] = None
    category: Optional[str] = None
    title: Optional[str] = None
    content: Optional[str] = None
    date: Optional[datetime] = None
    is_added_to_journal: bool = False


class MigrationError(BaseModel):
    legacy_id: str
    message: str


class MigrationReport(BaseModel):
    scanned: int = 0
    migrated: int = 0
    reused: int = 0
    skipped: int = 0
    progress_backfilled: int = 0
    journal_backfilled: int = 0
    errors: List[MigrationError] = Field(default_factory=list)

    def add_error(self, legacy_id: str, message: str) -> None:
        self.skipped += 1
        self.errors.append(MigrationError(legacy_id=legacy_id, message=message))


# ---- API payloads ----


class NuggetResponse(BaseModel):
    id: str
    category: Category
    title: str
    content: str
    created_at: datetime


class SeenSetResponse(BaseModel):
    category: Category
    seen_nugget_ids: List[str]
    count: int


class MarkSeenResponse(BaseModel):
    status: str = "ok"
    nugget_id: str
    category: Category
    newly_seen: bool


class MarkJournalResponse(BaseModel):
    status: str = "ok"
    nugget_id: str
    category: Category
    newly_added: bool


class ProgressResponse(BaseModel):
    seen_counts: Dict[str, int]


class StatisticsResponse(BaseModel):
    counts: Dict[str, int]
    total: int


class InitializeRequest(BaseModel):
    count: Optional[int] = Field(default=None, ge=1, le=100)
    provider: Optional[LLMProvider] = None


class GenerateRequest(BaseModel):
    count: Optional[int] = Field(default=None, ge=1, le=100)
    provider: Optional[LLMProvider] = None


class GenerateResponse(BaseModel):
    category: Category
    generated: int
    nugget_ids: List[str]


class InitializeResponse(BaseModel):
    generated: Dict[str, int]
    failed: Dict[str, str] = Field(default_factory=dict)
    total: int
