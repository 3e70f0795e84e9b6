# -*- coding: utf-8 -*-
"""LLM-driven nugget batch generation."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from ..config import Settings, settings as default_settings
from ..errors import GenerationFailed
from .models import Category, LLMProvider, Nugget, parse_category, utc_now
from .providers import call_chat_completion, resolve_provider, resolve_provider_settings
from .storage import NuggetRepository

logger = logging.getLogger(__name__)

Messages = List[Dict[str, str]]
CompletionFn = Callable[[Messages, LLMProvider], str]

_SYSTEM_PROMPT = (
    "You write short, informative learning nuggets for a journaling app. "
    "Answer with JSON only, no markdown and no extra text."
)

_TITLE_RE = re.compile(r"^\s*(?:\d+[.)]\s*)?\**\s*title\s*\**\s*:\s*(.*)$", re.IGNORECASE)
_CONTENT_RE = re.compile(r"^\s*\**\s*content\s*\**\s*:\s*(.*)$", re.IGNORECASE)


def build_messages(category: Category, count: int) -> Messages:
    user_prompt = (
        f'Generate {count} unique, concise and educational learning nuggets on the topic "{category.value}".\n\n'
        "Requirements:\n"
        "- every nugget is fact-based and verifiable\n"
        "- plain, easy to understand language\n"
        "- at most 3 sentences per nugget, each one should create an aha moment\n"
        "- every nugget has a short, catchy title\n\n"
        'Return a JSON array of objects with the keys "title" and "content", for example:\n'
        '[{"title": "The power of habits", "content": "Habits drive roughly 40% of our daily actions."}]'
    )
    return [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]


def _extract_json_items(text: str) -> Optional[List[Any]]:
    text = text.strip()
    candidates = [text]
    match = re.search(r"\[[\s\S]*\]", text)
    if match:
        candidates.append(match.group(0))
    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            parsed = parsed.get("nuggets") or parsed.get("items")
        if isinstance(parsed, list):
            return parsed
    return None


def _parse_title_content_lines(text: str) -> List[Dict[str, str]]:
    """Parse the numbered `Title: ... / Content: ...` list format."""
    items: List[Dict[str, str]] = []
    title: Optional[str] = None
    for line in text.splitlines():
        title_match = _TITLE_RE.match(line)
        if title_match:
            title = title_match.group(1).strip()
            continue
        content_match = _CONTENT_RE.match(line)
        if content_match and title:
            items.append({"title": title, "content": content_match.group(1).strip()})
            title = None
    return items


def parse_nuggets(text: str) -> List[Dict[str, str]]:
    raw_items = _extract_json_items(text)
    if raw_items is None:
        raw_items = _parse_title_content_lines(text)
    items: List[Dict[str, str]] = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            continue
        title = raw.get("title")
        content = raw.get("content")
        if isinstance(title, str) and isinstance(content, str) and title.strip() and content.strip():
            items.append({"title": title.strip(), "content": content.strip()})
    return items


class NuggetGenerator:
    def __init__(
        self,
        repository: NuggetRepository,
        *,
        settings: Settings | None = None,
        complete: CompletionFn | None = None,
    ) -> None:
        self.repository = repository
        self.settings = settings or default_settings
        self._complete = complete or self._provider_completion

    def _provider_completion(self, messages: Messages, provider: LLMProvider) -> str:
        cfg = resolve_provider_settings(provider, self.settings)
        return call_chat_completion(cfg, messages)

    def generate_batch(
        self,
        category: Category | str,
        count: int | None = None,
        provider: LLMProvider | str | None = None,
    ) -> List[Nugget]:
        """Generate up to `count` nuggets and persist them as one batch.

        Returns the nuggets that were stored; content already in the pool is dropped.
        """
        category = parse_category(category)
        count = self.settings.nuggets_per_batch if count is None else int(count)
        if count < 1:
            raise ValueError("count must be positive")
        selected = resolve_provider(provider, self.settings)

        logger.info("Generating %d nuggets for %s with %s", count, category.value, selected.value)
        try:
            text = self._complete(build_messages(category, count), selected)
        except GenerationFailed:
            logger.error("Provider %s failed for %s", selected.value, category.value)
            raise
        except Exception as exc:
            logger.error("Provider %s failed for %s: %s", selected.value, category.value, exc)
            raise GenerationFailed(f"Nugget generation failed: {exc}", cause=exc) from exc

        items = parse_nuggets(text)[:count]
        if not items:
            raise GenerationFailed(f"{selected.value} response contained no usable nuggets")

        created_at = utc_now()
        batch = [
            Nugget(category=category, title=item["title"], content=item["content"], created_at=created_at)
            for item in items
        ]
        stored = self.repository.add_batch(batch)
        if len(stored) < len(batch):
            logger.warning(
                "Dropped %d duplicate nuggets for %s", len(batch) - len(stored), category.value
            )
        logger.info("Stored %d new nuggets for %s", len(stored), category.value)
        return stored
