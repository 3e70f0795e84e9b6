# -*- coding: utf-8 -*-
"""Nugget and progress storage (SQLite).

Two logical collections: the shared `learning_nuggets` pool and the per-user
`user_nuggets` progress records. The seen set of a record lives in
`user_nugget_seen`, one row per delivered nugget, so concurrent deliveries
merge with `INSERT OR IGNORE` instead of overwriting each other.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence, Set
from uuid import uuid4

from ..app_db import db_conn, init_app_db
from ..errors import StorageError
from .models import Category, Nugget, ProgressRecord, utc_now

logger = logging.getLogger(__name__)


class NuggetRepository(Protocol):
    def add_batch(self, nuggets: Sequence[Nugget]) -> List[Nugget]: ...

    def get(self, nugget_id: str) -> Optional[Nugget]: ...

    def find_by_fingerprint(self, category: Category, fingerprint: str) -> Optional[Nugget]: ...

    def first_unseen(self, category: Category, seen: Set[str]) -> Optional[Nugget]: ...

    def list_by_category(self, category: Category) -> List[Nugget]: ...

    def count(self, category: Category) -> int: ...

    def try_acquire_lease(self, category: Category, owner: str, ttl_seconds: float) -> bool: ...

    def release_lease(self, category: Category, owner: str) -> None: ...

    def lease_active(self, category: Category) -> bool: ...


class ProgressRepository(Protocol):
    def get_record(self, user_id: str, category: Category) -> Optional[ProgressRecord]: ...

    def add_seen(self, user_id: str, category: Category, nugget_id: str) -> bool: ...

    def set_added_to_journal(self, user_id: str, category: Category, nugget_id: str) -> Optional[bool]: ...

    def list_records(self, user_id: str) -> List[ProgressRecord]: ...


class LegacyNuggetSource(Protocol):
    def list_legacy(self) -> List[Dict[str, Any]]: ...


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _row_to_nugget(row: sqlite3.Row) -> Nugget:
    return Nugget(
        id=row["id"],
        category=Category(row["category"]),
        title=row["title"],
        content=row["content"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        logger.error("Storage failure while %s: %s", action, exc)
        raise StorageError(f"Storage failure while {action}: {exc}", cause=exc) from exc


class SqliteNuggetRepository:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def init_db(self) -> None:
        with _storage_errors("initializing the database"):
            init_app_db(self.db_path)

    def add_batch(self, nuggets: Sequence[Nugget]) -> List[Nugget]:
        """Insert all nuggets in one transaction; content already in the pool is skipped."""
        inserted: List[Nugget] = []
        with _storage_errors("saving nuggets"):
            with db_conn(self.db_path) as conn:
                for nugget in nuggets:
                    cur = conn.execute(
                        """
                        INSERT OR IGNORE INTO learning_nuggets (
                            id, category, title, content, fingerprint, created_at
                        ) VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        (
                            nugget.id,
                            nugget.category.value,
                            nugget.title,
                            nugget.content,
                            nugget.fingerprint,
                            _iso(nugget.created_at),
                        ),
                    )
                    if cur.rowcount == 1:
                        inserted.append(nugget)
        return inserted

    def get(self, nugget_id: str) -> Optional[Nugget]:
        with _storage_errors("reading a nugget"):
            with db_conn(self.db_path) as conn:
                row = conn.execute("SELECT * FROM learning_nuggets WHERE id = ?", (nugget_id,)).fetchone()
        return _row_to_nugget(row) if row else None

    def find_by_fingerprint(self, category: Category, fingerprint: str) -> Optional[Nugget]:
        with _storage_errors("looking up a fingerprint"):
            with db_conn(self.db_path) as conn:
                row = conn.execute(
                    "SELECT * FROM learning_nuggets WHERE category = ? AND fingerprint = ?",
                    (category.value, fingerprint),
                ).fetchone()
        return _row_to_nugget(row) if row else None

    def first_unseen(self, category: Category, seen: Set[str]) -> Optional[Nugget]:
        with _storage_errors("searching unseen nuggets"):
            with db_conn(self.db_path) as conn:
                cursor = conn.execute(
                    "SELECT * FROM learning_nuggets WHERE category = ? ORDER BY created_at ASC, rowid ASC",
                    (category.value,),
                )
                for row in cursor:
                    if row["id"] not in seen:
                        return _row_to_nugget(row)
        return None

    def list_by_category(self, category: Category) -> List[Nugget]:
        with _storage_errors("listing nuggets"):
            with db_conn(self.db_path) as conn:
                rows = conn.execute(
                    "SELECT * FROM learning_nuggets WHERE category = ? ORDER BY created_at ASC, rowid ASC",
                    (category.value,),
                ).fetchall()
        return [_row_to_nugget(r) for r in rows]

    def count(self, category: Category) -> int:
        with _storage_errors("counting nuggets"):
            with db_conn(self.db_path) as conn:
                row = conn.execute(
                    "SELECT COUNT(*) AS n FROM learning_nuggets WHERE category = ?",
                    (category.value,),
                ).fetchone()
        return int(row["n"])

    def try_acquire_lease(self, category: Category, owner: str, ttl_seconds: float) -> bool:
        now = time.time()
        with _storage_errors("acquiring the generation lease"):
            with db_conn(self.db_path) as conn:
                # Takes over only a lease that has already expired.
                cur = conn.execute(
                    """
                    INSERT INTO generation_leases (category, owner, expires_at) VALUES (?, ?, ?)
                    ON CONFLICT(category) DO UPDATE SET
                        owner = excluded.owner,
                        expires_at = excluded.expires_at
                    WHERE generation_leases.expires_at <= ?
                    """,
                    (category.value, owner, now + ttl_seconds, now),
                )
                return cur.rowcount == 1

    def release_lease(self, category: Category, owner: str) -> None:
        with _storage_errors("releasing the generation lease"):
            with db_conn(self.db_path) as conn:
                conn.execute(
                    "DELETE FROM generation_leases WHERE category = ? AND owner = ?",
                    (category.value, owner),
                )

    def lease_active(self, category: Category) -> bool:
        with _storage_errors("reading the generation lease"):
            with db_conn(self.db_path) as conn:
                row = conn.execute(
                    "SELECT expires_at FROM generation_leases WHERE category = ?",
                    (category.value,),
                ).fetchone()
        return bool(row) and float(row["expires_at"]) > time.time()


class SqliteProgressRepository:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def _load_record(self, conn: sqlite3.Connection, row: sqlite3.Row) -> ProgressRecord:
        seen_rows = conn.execute(
            "SELECT nugget_id, added_to_journal FROM user_nugget_seen WHERE record_id = ?",
            (row["id"],),
        ).fetchall()
        return ProgressRecord(
            id=row["id"],
            user_id=row["user_id"],
            category=Category(row["category"]),
            seen_nugget_ids={r["nugget_id"] for r in seen_rows},
            journal_nugget_ids={r["nugget_id"] for r in seen_rows if r["added_to_journal"]},
            last_updated=datetime.fromisoformat(row["last_updated"]),
        )

    def get_record(self, user_id: str, category: Category) -> Optional[ProgressRecord]:
        with _storage_errors("reading progress"):
            with db_conn(self.db_path) as conn:
                row = conn.execute(
                    "SELECT * FROM user_nuggets WHERE user_id = ? AND category = ?",
                    (user_id, category.value),
                ).fetchone()
                if not row:
                    return None
                return self._load_record(conn, row)

    def add_seen(self, user_id: str, category: Category, nugget_id: str) -> bool:
        now = _iso(utc_now())
        with _storage_errors("recording a seen nugget"):
            with db_conn(self.db_path) as conn:
                conn.execute(
                    """
                    INSERT INTO user_nuggets (id, user_id, category, last_updated) VALUES (?, ?, ?, ?)
                    ON CONFLICT(user_id, category) DO UPDATE SET last_updated = excluded.last_updated
                    """,
                    (str(uuid4()), user_id, category.value, now),
                )
                record = conn.execute(
                    "SELECT id FROM user_nuggets WHERE user_id = ? AND category = ?",
                    (user_id, category.value),
                ).fetchone()
                cur = conn.execute(
                    "INSERT OR IGNORE INTO user_nugget_seen (record_id, nugget_id, seen_at) VALUES (?, ?, ?)",
                    (record["id"], nugget_id, now),
                )
                return cur.rowcount == 1

    def set_added_to_journal(self, user_id: str, category: Category, nugget_id: str) -> Optional[bool]:
        """True when newly flagged, False when already flagged, None when never delivered."""
        with _storage_errors("flagging a journal nugget"):
            with db_conn(self.db_path) as conn:
                cur = conn.execute(
                    """
                    UPDATE user_nugget_seen SET added_to_journal = 1
                    WHERE nugget_id = ? AND added_to_journal = 0
                      AND record_id = (SELECT id FROM user_nuggets WHERE user_id = ? AND category = ?)
                    """,
                    (nugget_id, user_id, category.value),
                )
                if cur.rowcount == 1:
                    return True
                row = conn.execute(
                    """
                    SELECT 1 FROM user_nugget_seen s
                    JOIN user_nuggets r ON r.id = s.record_id
                    WHERE r.user_id = ? AND r.category = ? AND s.nugget_id = ?
                    """,
                    (user_id, category.value, nugget_id),
                ).fetchone()
                return False if row else None

    def list_records(self, user_id: str) -> List[ProgressRecord]:
        with _storage_errors("listing progress"):
            with db_conn(self.db_path) as conn:
                rows = conn.execute(
                    "SELECT * FROM user_nuggets WHERE user_id = ? ORDER BY category ASC",
                    (user_id,),
                ).fetchall()
                return [self._load_record(conn, r) for r in rows]


class SqliteLegacyNuggetSource:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def list_legacy(self) -> List[Dict[str, Any]]:
        with _storage_errors("reading legacy nuggets"):
            with db_conn(self.db_path) as conn:
                rows = conn.execute(
                    "SELECT * FROM legacy_learning_nuggets ORDER BY date ASC, rowid ASC"
                ).fetchall()
        items = []
        for row in rows:
            item = dict(row)
            item["is_added_to_journal"] = bool(item.get("is_added_to_journal"))
            items.append(item)
        return items

    def add_legacy(self, items: Sequence[Dict[str, Any]]) -> None:
        with _storage_errors("saving legacy nuggets"):
            with db_conn(self.db_path) as conn:
                conn.executemany(
                    """
                    INSERT OR REPLACE INTO legacy_learning_nuggets (
                        id, user_id, category, title, content, date, is_added_to_journal
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            item.get("id") or str(uuid4()),
                            item.get("user_id"),
                            item.get("category"),
                            item.get("title"),
                            item.get("content"),
                            _iso(item["date"]) if isinstance(item.get("date"), datetime) else item.get("date"),
                            1 if item.get("is_added_to_journal") else 0,
                        )
                        for item in items
                    ],
                )
