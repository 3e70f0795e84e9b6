# -*- coding: utf-8 -*-

from __future__ import annotations

import json
import re
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from eunoia.config import Settings
from eunoia.nuggets.models import Category, Nugget


def make_settings(**overrides) -> Settings:
    cfg = Settings()
    cfg.generation_poll_seconds = 0.01
    cfg.generation_lease_seconds = 30.0
    cfg.nuggets_per_batch = 25
    cfg.initial_batch_size = 25
    cfg.llm_provider = "deepseek"
    for key, value in overrides.items():
        setattr(cfg, key, value)
    return cfg


class FakeProvider:
    """Completion function returning `count` distinct nuggets as a JSON array."""

    def __init__(
        self,
        *,
        fail: bool = False,
        reply: Optional[str] = None,
        gate: Optional[threading.Event] = None,
        delay: float = 0.0,
    ) -> None:
        self.fail = fail
        self.reply = reply
        self.gate = gate
        self.delay = delay
        self.entered = threading.Event()
        self.calls: List[Tuple[int, str]] = []
        self._lock = threading.Lock()
        self._serial = 0

    def __call__(self, messages: List[Dict[str, str]], provider) -> str:
        count = int(re.search(r"Generate (\d+)", messages[-1]["content"]).group(1))
        with self._lock:
            self.calls.append((count, getattr(provider, "value", str(provider))))
            start = self._serial
            self._serial += count
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=10)
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise RuntimeError("provider down")
        if self.reply is not None:
            return self.reply
        items = [
            {"title": f"Generated {n}", "content": f"Generated insight number {n}."}
            for n in range(start, start + count)
        ]
        return "Here are your nuggets:\n" + json.dumps(items)


def seed(repository, category: Category, titles: Sequence[str]) -> Dict[str, Nugget]:
    """Store one nugget per title, oldest first, keyed by title."""
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    nuggets = [
        Nugget(
            category=category,
            title=title,
            content=f"Content of {title}.",
            created_at=base + timedelta(minutes=i),
        )
        for i, title in enumerate(titles)
    ]
    repository.add_batch(nuggets)
    return {n.title: n for n in nuggets}
