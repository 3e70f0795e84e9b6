# -*- coding: utf-8 -*-
"""In-memory repositories with the same contract as the SQLite ones."""

from __future__ import annotations

import threading
import time
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple
from uuid import uuid4

from .models import Category, Nugget, ProgressRecord, utc_now


class InMemoryNuggetRepository:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._seq = 0
        self._nuggets: Dict[str, Tuple[int, Nugget]] = {}
        self._fingerprints: Dict[Tuple[Category, str], str] = {}
        self._leases: Dict[Category, Tuple[str, float]] = {}

    def add_batch(self, nuggets: Sequence[Nugget]) -> List[Nugget]:
        inserted: List[Nugget] = []
        with self._lock:
            for nugget in nuggets:
                key = (nugget.category, nugget.fingerprint)
                if nugget.id in self._nuggets or key in self._fingerprints:
                    continue
                self._seq += 1
                self._nuggets[nugget.id] = (self._seq, nugget)
                self._fingerprints[key] = nugget.id
                inserted.append(nugget)
        return inserted

    def get(self, nugget_id: str) -> Optional[Nugget]:
        with self._lock:
            entry = self._nuggets.get(nugget_id)
        return entry[1] if entry else None

    def find_by_fingerprint(self, category: Category, fingerprint: str) -> Optional[Nugget]:
        with self._lock:
            nugget_id = self._fingerprints.get((category, fingerprint))
            return self._nuggets[nugget_id][1] if nugget_id else None

    def list_by_category(self, category: Category) -> List[Nugget]:
        with self._lock:
            entries = [e for e in self._nuggets.values() if e[1].category == category]
        entries.sort(key=lambda e: (e[1].created_at, e[0]))
        return [nugget for _, nugget in entries]

    def first_unseen(self, category: Category, seen: Set[str]) -> Optional[Nugget]:
        for nugget in self.list_by_category(category):
            if nugget.id not in seen:
                return nugget
        return None

    def count(self, category: Category) -> int:
        with self._lock:
            return sum(1 for _, n in self._nuggets.values() if n.category == category)

    def try_acquire_lease(self, category: Category, owner: str, ttl_seconds: float) -> bool:
        now = time.time()
        with self._lock:
            current = self._leases.get(category)
            if current and current[1] > now:
                return False
            self._leases[category] = (owner, now + ttl_seconds)
            return True

    def release_lease(self, category: Category, owner: str) -> None:
        with self._lock:
            current = self._leases.get(category)
            if current and current[0] == owner:
                del self._leases[category]

    def lease_active(self, category: Category) -> bool:
        with self._lock:
            current = self._leases.get(category)
        return bool(current) and current[1] > time.time()


class InMemoryProgressRepository:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: Dict[Tuple[str, Category], ProgressRecord] = {}

    def get_record(self, user_id: str, category: Category) -> Optional[ProgressRecord]:
        with self._lock:
            record = self._records.get((user_id, category))
            return record.model_copy(deep=True) if record else None

    def add_seen(self, user_id: str, category: Category, nugget_id: str) -> bool:
        with self._lock:
            record = self._records.get((user_id, category))
            if record is None:
                record = ProgressRecord(
                    id=str(uuid4()),
                    user_id=user_id,
                    category=category,
                    last_updated=utc_now(),
                )
                self._records[(user_id, category)] = record
            added = nugget_id not in record.seen_nugget_ids
            record.seen_nugget_ids.add(nugget_id)
            record.last_updated = utc_now()
            return added

    def set_added_to_journal(self, user_id: str, category: Category, nugget_id: str) -> Optional[bool]:
        with self._lock:
            record = self._records.get((user_id, category))
            if record is None or nugget_id not in record.seen_nugget_ids:
                return None
            if nugget_id in record.journal_nugget_ids:
                return False
            record.journal_nugget_ids.add(nugget_id)
            return True

    def list_records(self, user_id: str) -> List[ProgressRecord]:
        with self._lock:
            records = [r.model_copy(deep=True) for (uid, _), r in self._records.items() if uid == user_id]
        return sorted(records, key=lambda r: r.category.value)


class InMemoryLegacyNuggetSource:
    def __init__(self, items: Optional[Sequence[Dict[str, Any]]] = None) -> None:
        self._items: List[Dict[str, Any]] = [dict(item) for item in items or []]

    def list_legacy(self) -> List[Dict[str, Any]]:
        return [dict(item) for item in self._items]

    def add_legacy(self, items: Sequence[Dict[str, Any]]) -> None:
        self._items.extend(dict(item) for item in items)
