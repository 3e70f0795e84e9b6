# -*- coding: utf-8 -*-

from __future__ import annotations

import shutil
import tempfile
import threading
import unittest
from pathlib import Path

from eunoia.errors import InvalidCategory, NotAuthenticated, NuggetNotDelivered, NuggetNotFound, StorageError
from eunoia.nuggets.memory import InMemoryNuggetRepository, InMemoryProgressRepository
from eunoia.nuggets.models import Category, ProgressRecord, utc_now
from eunoia.nuggets.progress import ProgressTracker
from eunoia.nuggets.storage import SqliteNuggetRepository, SqliteProgressRepository

from tests.fakes import seed


class _ProgressTrackerCases:
    def make_repositories(self):
        raise NotImplementedError

    def setUp(self) -> None:
        self.nuggets, self.progress = self.make_repositories()
        self.tracker = ProgressTracker(self.progress, self.nuggets)
        self.growth = seed(self.nuggets, Category.growth, ["A", "B", "C"])
        self.health = seed(self.nuggets, Category.health, ["H"])

    def test_unknown_user_has_empty_seen_set(self) -> None:
        self.assertEqual(self.tracker.get_seen_set("u1", Category.growth), set())

    def test_mark_seen_adds_id(self) -> None:
        a = self.growth["A"].id
        self.assertTrue(self.tracker.mark_seen("u1", Category.growth, a))
        self.assertEqual(self.tracker.get_seen_set("u1", Category.growth), {a})

    def test_mark_seen_is_idempotent_but_refreshes_timestamp(self) -> None:
        a = self.growth["A"].id
        self.tracker.mark_seen("u1", Category.growth, a)
        first = self.progress.get_record("u1", Category.growth).last_updated

        self.assertFalse(self.tracker.mark_seen("u1", Category.growth, a))
        record = self.progress.get_record("u1", Category.growth)
        self.assertEqual(record.seen_nugget_ids, {a})
        self.assertGreaterEqual(record.last_updated, first)

    def test_records_are_per_user_and_category(self) -> None:
        self.tracker.mark_seen("u1", Category.growth, self.growth["A"].id)
        self.tracker.mark_seen("u2", Category.growth, self.growth["B"].id)
        self.tracker.mark_seen("u1", "Health", self.health["H"].id)

        self.assertEqual(self.tracker.get_seen_set("u1", Category.growth), {self.growth["A"].id})
        self.assertEqual(self.tracker.get_seen_set("u2", "growth"), {self.growth["B"].id})
        self.assertEqual(self.tracker.get_seen_set("u1", Category.health), {self.health["H"].id})

        counts = self.tracker.seen_counts("u1")
        self.assertEqual(counts["Growth"], 1)
        self.assertEqual(counts["Health"], 1)
        self.assertEqual(counts["Focus"], 0)

    def test_rejects_nugget_missing_from_category(self) -> None:
        with self.assertRaises(NuggetNotFound):
            self.tracker.mark_seen("u1", Category.growth, "missing")
        with self.assertRaises(NuggetNotFound):
            self.tracker.mark_seen("u1", Category.growth, self.health["H"].id)
        self.assertEqual(self.tracker.get_seen_set("u1", Category.growth), set())

    def test_rejects_missing_user_and_unknown_category(self) -> None:
        with self.assertRaises(NotAuthenticated):
            self.tracker.get_seen_set("", Category.growth)
        with self.assertRaises(InvalidCategory):
            self.tracker.get_seen_set("u1", "Astrology")

    def test_journal_flag_requires_delivery(self) -> None:
        a, b = self.growth["A"].id, self.growth["B"].id
        with self.assertRaises(NuggetNotDelivered):
            self.tracker.mark_added_to_journal("u1", Category.growth, a)

        self.tracker.mark_seen("u1", Category.growth, a)
        self.assertTrue(self.tracker.mark_added_to_journal("u1", "growth", a))
        self.assertFalse(self.tracker.mark_added_to_journal("u1", Category.growth, a))
        with self.assertRaises(NuggetNotDelivered):
            self.tracker.mark_added_to_journal("u1", Category.growth, b)
        with self.assertRaises(NuggetNotDelivered):
            self.tracker.mark_added_to_journal("u2", Category.growth, a)

        record = self.progress.get_record("u1", Category.growth)
        self.assertEqual(record.seen_nugget_ids, {a})
        self.assertEqual(record.journal_nugget_ids, {a})

    def test_concurrent_marks_for_same_user_both_land(self) -> None:
        ids = [self.growth["A"].id, self.growth["B"].id, self.growth["C"].id]
        barrier = threading.Barrier(len(ids))
        errors = []

        def worker(nugget_id: str) -> None:
            try:
                barrier.wait()
                self.tracker.mark_seen("u3", Category.growth, nugget_id)
            except Exception as exc:  # pragma: no cover - surfaced below
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(i,)) for i in ids]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        self.assertEqual(self.tracker.get_seen_set("u3", Category.growth), set(ids))


class TestInMemoryProgressTracker(_ProgressTrackerCases, unittest.TestCase):
    def make_repositories(self):
        return InMemoryNuggetRepository(), InMemoryProgressRepository()


class TestSqliteProgressTracker(_ProgressTrackerCases, unittest.TestCase):
    def make_repositories(self):
        self._tmp = Path(tempfile.mkdtemp(prefix="eunoia-test-"))
        self.addCleanup(shutil.rmtree, self._tmp, True)
        db_path = self._tmp / "eunoia.db"
        nuggets = SqliteNuggetRepository(db_path)
        nuggets.init_db()
        return nuggets, SqliteProgressRepository(db_path)


class _ForeignRecordRepository(InMemoryProgressRepository):
    def get_record(self, user_id, category):
        return ProgressRecord(id="r1", user_id="someone-else", category=category, last_updated=utc_now())


class TestForeignRecords(unittest.TestCase):
    def test_foreign_record_is_not_returned(self) -> None:
        tracker = ProgressTracker(_ForeignRecordRepository(), InMemoryNuggetRepository())
        with self.assertRaises(StorageError):
            tracker.get_seen_set("u1", Category.growth)


if __name__ == "__main__":
    unittest.main()
