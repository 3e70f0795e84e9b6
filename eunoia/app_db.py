# -*- coding: utf-8 -*-
"""App database (shared nuggets + per-user progress), SQLite helpers."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


def connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def init_app_db(db_path: Path) -> None:
    conn = connect(db_path)
    try:
        cur = conn.cursor()
        cur.execute("PRAGMA journal_mode = WAL;")
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS learning_nuggets (
                id TEXT PRIMARY KEY,
                category TEXT NOT NULL,
                title TEXT NOT NULL,
                content TEXT NOT NULL,
                fingerprint TEXT NOT NULL,
                created_at TEXT NOT NULL
            );
            """
        )
        cur.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_learning_nuggets_category_fingerprint ON learning_nuggets(category, fingerprint);"
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_learning_nuggets_category_created ON learning_nuggets(category, created_at ASC);"
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS user_nuggets (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                category TEXT NOT NULL,
                last_updated TEXT NOT NULL,
                UNIQUE (user_id, category)
            );
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS user_nugget_seen (
                record_id TEXT NOT NULL,
                nugget_id TEXT NOT NULL,
                seen_at TEXT NOT NULL,
                added_to_journal INTEGER NOT NULL DEFAULT 0,
                PRIMARY KEY (record_id, nugget_id),
                FOREIGN KEY(record_id) REFERENCES user_nuggets(id) ON DELETE CASCADE,
                FOREIGN KEY(nugget_id) REFERENCES learning_nuggets(id)
            );
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS generation_leases (
                category TEXT PRIMARY KEY,
                owner TEXT NOT NULL,
                expires_at REAL NOT NULL
            );
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS legacy_learning_nuggets (
                id TEXT PRIMARY KEY,
                user_id TEXT,
                category TEXT,
                title TEXT,
                content TEXT,
                date TEXT,
                is_added_to_journal INTEGER NOT NULL DEFAULT 0
            );
            """
        )
        conn.commit()
    finally:
        conn.close()


@contextmanager
def db_conn(db_path: Path) -> Iterator[sqlite3.Connection]:
    conn = connect(db_path)
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()
