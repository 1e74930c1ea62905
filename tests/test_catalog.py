import asyncio
import json
import tempfile
import threading
import time
import unittest
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from interviewer.catalog import (
    CategoryCatalog,
    CategoryDescriptor,
    CategoryLoadTimeout,
    TimedCache,
    aggregate_categories,
)
from interviewer.question_bank import QuestionRecord, parse_questions_csv


class _FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = float(now)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += float(seconds)


class _StaticSource:
    location = "memory://questions.csv"


class _CountingLoader:
    def __init__(self, records):
        self.records = list(records)
        self.calls = 0

    def __call__(self, _source):
        self.calls += 1
        return list(self.records)


def _record(domain: str, n: int = 0) -> QuestionRecord:
    return QuestionRecord(domain=domain, question=f"Q{n}?", answer=f"A{n}.")


RECORDS = [
    _record("webdev", 1),
    _record("security", 2),
    _record("webdev", 3),
    _record("database", 4),
    _record("cloud-computing", 5),
]


class TestAggregateCategories(unittest.TestCase):
    def test_counts_and_order(self):
        result = aggregate_categories(RECORDS)
        self.assertEqual(
            [c.name for c in result],
            ["cloud-computing", "Database", "Security", "Web Development"],
        )
        by_id = {c.id: c for c in result}
        self.assertEqual(by_id["webdev"].count, 2)
        self.assertEqual(by_id["webdev"].icon, "🌐")
        self.assertEqual(by_id["cloud-computing"].icon, "📚")
        self.assertEqual(sum(c.count for c in result), len(RECORDS))

    def test_end_to_end_single_row(self):
        records = parse_questions_csv(
            "Category,Question,Answer\nFront-end,What is a closure?,A function bundled with its lexical scope.\n"
        )
        self.assertEqual(
            aggregate_categories(records),
            [CategoryDescriptor(id="webdev", name="Web Development", icon="🌐", count=1)],
        )

    def test_empty_records(self):
        self.assertEqual(aggregate_categories([]), [])


class TestTimedCache(unittest.TestCase):
    def test_reports_age_from_injected_clock(self):
        clock = _FakeClock()
        cache = TimedCache(clock=clock)
        self.assertIsNone(cache.get("k"))
        cache.put("k", [1, 2])
        clock.advance(42)
        value, age = cache.get("k")
        self.assertEqual(value, [1, 2])
        self.assertEqual(age, 42)

    def test_persists_to_json_file(self):
        clock = _FakeClock()
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "cache.json"
            TimedCache(path, clock=clock).put("k", {"a": 1})
            payload = json.loads(path.read_text(encoding="utf-8"))
            self.assertEqual(payload["k"]["data"], {"a": 1})

            clock.advance(5)
            value, age = TimedCache(path, clock=clock).get("k")
            self.assertEqual(value, {"a": 1})
            self.assertEqual(age, 5)

    def test_corrupt_file_is_ignored(self):
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "cache.json"
            path.write_text("{not json", encoding="utf-8")
            self.assertIsNone(TimedCache(path).get("k"))

    def test_invalidate(self):
        cache = TimedCache(clock=_FakeClock())
        cache.put("k", 1)
        cache.invalidate("k")
        self.assertIsNone(cache.get("k"))


class TestCategoryCatalog(unittest.TestCase):
    def _catalog(self, loader, clock, **kwargs):
        return CategoryCatalog(
            _StaticSource(),
            cache=TimedCache(clock=clock),
            ttl_s=300,
            clock=clock,
            loader=loader,
            **kwargs,
        )

    def test_fresh_cache_skips_refetch(self):
        clock = _FakeClock()
        loader = _CountingLoader(RECORDS)
        catalog = self._catalog(loader, clock)

        first = catalog.load_categories_blocking()
        clock.advance(299)
        second = catalog.load_categories_blocking()

        self.assertEqual(first, second)
        self.assertEqual(loader.calls, 1)

    def test_stale_cache_refetches(self):
        clock = _FakeClock()
        loader = _CountingLoader(RECORDS)
        catalog = self._catalog(loader, clock)

        catalog.load_categories_blocking()
        clock.advance(300)
        catalog.load_categories_blocking()
        self.assertEqual(loader.calls, 2)

    def test_empty_result_is_not_cached(self):
        clock = _FakeClock()
        loader = _CountingLoader([])
        catalog = self._catalog(loader, clock)

        self.assertEqual(catalog.load_categories_blocking(), [])
        self.assertIsNone(catalog.cache.get(catalog.cache_key))
        catalog.load_categories_blocking()
        self.assertEqual(loader.calls, 2)

    def test_records_are_memoized_within_window(self):
        clock = _FakeClock()
        loader = _CountingLoader(RECORDS)
        catalog = self._catalog(loader, clock)

        self.assertEqual(len(catalog.records()), len(RECORDS))
        catalog.records()
        self.assertEqual(loader.calls, 1)
        clock.advance(301)
        catalog.records()
        self.assertEqual(loader.calls, 2)

    def test_timeout_raises_and_discards_late_result(self):
        release = threading.Event()

        def slow_loader(_source):
            release.wait(2.0)
            return list(RECORDS)

        catalog = CategoryCatalog(_StaticSource(), timeout_s=0.05, loader=slow_loader)
        with self.assertRaises(CategoryLoadTimeout):
            catalog.load_categories_blocking()

        release.set()
        time.sleep(0.1)
        self.assertIsNone(catalog.cache.get(catalog.cache_key))

    def test_hung_refresh_does_not_block_fresh_reads(self):
        entered = threading.Event()
        release = threading.Event()
        calls = []

        def loader(_source):
            calls.append(1)
            if len(calls) > 1:
                entered.set()
                release.wait(2.0)
            return list(RECORDS)

        catalog = CategoryCatalog(_StaticSource(), loader=loader)
        catalog.records()
        worker = threading.Thread(target=catalog.records, kwargs={"force_refresh": True})
        worker.start()
        try:
            self.assertTrue(entered.wait(2.0))
            started = time.perf_counter()
            self.assertEqual(len(catalog.records()), len(RECORDS))
            self.assertLess(time.perf_counter() - started, 0.5)
        finally:
            release.set()
            worker.join(2.0)

    def test_record_load_is_time_bounded(self):
        release = threading.Event()

        def slow_loader(_source):
            release.wait(2.0)
            return list(RECORDS)

        catalog = CategoryCatalog(_StaticSource(), timeout_s=0.05, loader=slow_loader)
        executor = ThreadPoolExecutor(max_workers=1)
        try:
            with self.assertRaises(CategoryLoadTimeout):
                asyncio.run(catalog.load_records(executor))
        finally:
            release.set()
            executor.shutdown(wait=True)

    def test_timeout_is_distinct_from_empty(self):
        self.assertTrue(issubclass(CategoryLoadTimeout, TimeoutError))


if __name__ == "__main__":
    unittest.main()
