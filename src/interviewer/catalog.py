"""
Category aggregation and the cached, time-bounded catalog loader.

The catalog owns the question bank for the running process: records are
fetched lazily, kept for a freshness window, and summarized into display-ready
category descriptors that are also cached (optionally on disk).
"""
from __future__ import annotations

import asyncio
import json
import threading
import time
import unicodedata
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from functools import partial
from pathlib import Path
from typing import Any, Callable, Iterable

from .categories import display_name, icon_for, slug_for_display_name
from .observability import get_logger
from .question_bank import QuestionRecord, load_questions
from .question_source import QuestionSource, source_from_location

logger = get_logger(__name__)

Clock = Callable[[], float]


class CategoryLoadTimeout(TimeoutError):
    """Raised when loading categories exceeds the configured time budget."""


@dataclass(frozen=True)
class CategoryDescriptor:
    id: str
    name: str
    icon: str
    count: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "CategoryDescriptor":
        return cls(
            id=str(payload["id"]),
            name=str(payload["name"]),
            icon=str(payload.get("icon", "")),
            count=int(payload["count"]),
        )


def _collation_key(name: str) -> tuple[str, str]:
    decomposed = unicodedata.normalize("NFKD", name)
    folded = "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()
    return folded, name


def aggregate_categories(records: Iterable[QuestionRecord]) -> list[CategoryDescriptor]:
    """Counts records per display name and returns descriptors sorted by name."""
    counts: Counter[str] = Counter(display_name(record.domain) for record in records)
    descriptors = [
        CategoryDescriptor(
            id=slug_for_display_name(name),
            name=name,
            icon=icon_for(name),
            count=count,
        )
        for name, count in counts.items()
    ]
    descriptors.sort(key=lambda item: _collation_key(item.name))
    return descriptors


class TimedCache:
    """
    Key/value cache that remembers when each entry was written.

    Expiry is left to callers: `get` reports the entry age against the injected
    clock. With a `path`, entries are mirrored to a JSON file so a later process
    can reuse them; concurrent writers simply overwrite each other.
    """

    def __init__(self, path: str | Path | None = None, clock: Clock = time.time):
        self._clock = clock
        self._path = Path(path) if path is not None else None
        self._lock = threading.Lock()
        self._entries: dict[str, dict[str, Any]] = self._read_disk()

    def _read_disk(self) -> dict[str, dict[str, Any]]:
        if self._path is None or not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("timed_cache_read_failed", path=str(self._path), error=str(exc))
            return {}
        if not isinstance(payload, dict):
            return {}
        return {
            str(key): entry
            for key, entry in payload.items()
            if isinstance(entry, dict) and isinstance(entry.get("timestamp"), (int, float))
        }

    def _write_disk(self):
        if self._path is None:
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            temp_path = self._path.with_suffix(".tmp")
            temp_path.write_text(json.dumps(self._entries, ensure_ascii=False), encoding="utf-8")
            temp_path.replace(self._path)
        except OSError as exc:
            logger.warning("timed_cache_write_failed", path=str(self._path), error=str(exc))

    def get(self, key: str) -> tuple[Any, float] | None:
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return None
        age_s = max(0.0, self._clock() - float(entry["timestamp"]))
        return entry.get("data"), age_s

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = {"data": value, "timestamp": self._clock()}
            self._write_disk()

    def invalidate(self, key: str) -> None:
        with self._lock:
            if self._entries.pop(key, None) is not None:
                self._write_disk()


class CategoryCatalog:
    """Lazily loaded question bank plus the category list derived from it."""

    def __init__(
        self,
        source: QuestionSource,
        *,
        cache: TimedCache | None = None,
        cache_key: str = "interviewer_categories_cache",
        ttl_s: float = 300.0,
        timeout_s: float = 15.0,
        clock: Clock = time.time,
        loader: Callable[[QuestionSource], list[QuestionRecord]] = load_questions,
    ):
        self.source = source
        self.cache = cache if cache is not None else TimedCache(clock=clock)
        self.cache_key = cache_key
        self.ttl_s = float(ttl_s)
        self.timeout_s = float(timeout_s)
        self._clock = clock
        self._loader = loader
        self._lock = threading.Lock()
        self._records: list[QuestionRecord] | None = None
        self._records_loaded_at = 0.0

    def _is_fresh(self, age_s: float) -> bool:
        return age_s < self.ttl_s

    def records(self, *, force_refresh: bool = False) -> list[QuestionRecord]:
        """Returns the question bank, refetching once the freshness window lapses."""
        with self._lock:
            if (
                not force_refresh
                and self._records is not None
                and self._is_fresh(self._clock() - self._records_loaded_at)
            ):
                return list(self._records)
        # Fetched unlocked: a hung source must not block readers of a fresh memo.
        records = list(self._loader(self.source))
        # An empty bank is not memoized so the next call retries the fetch.
        if records:
            with self._lock:
                self._records = records
                self._records_loaded_at = self._clock()
        return list(records)

    async def _bounded(self, fn, executor, event: str):
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(loop.run_in_executor(executor, fn), timeout=self.timeout_s)
        except asyncio.TimeoutError as exc:
            logger.warning(event, timeout_s=self.timeout_s, source=self.source.location)
            raise CategoryLoadTimeout(
                f"Loading the question bank took longer than {self.timeout_s:g} seconds."
            ) from exc

    async def load_records(self, executor=None) -> list[QuestionRecord]:
        """Question bank bounded by `timeout_s`, like `load_categories`."""
        return await self._bounded(self.records, executor, "question_load_timeout")

    def cached_categories(self) -> list[CategoryDescriptor] | None:
        hit = self.cache.get(self.cache_key)
        if hit is None:
            return None
        data, age_s = hit
        if not self._is_fresh(age_s) or not isinstance(data, list):
            logger.info("category_cache_stale", age_s=round(age_s, 2))
            return None
        try:
            categories = [CategoryDescriptor.from_dict(item) for item in data]
        except (KeyError, TypeError, ValueError):
            logger.warning("category_cache_invalid", key=self.cache_key)
            return None
        logger.info("category_cache_hit", age_s=round(age_s, 2), categories=len(categories))
        return categories

    def compute_categories(self, *, force_refresh: bool = False) -> list[CategoryDescriptor]:
        return aggregate_categories(self.records(force_refresh=force_refresh))

    def store_categories(self, categories: list[CategoryDescriptor]) -> None:
        if not categories:
            return
        self.cache.put(self.cache_key, [item.to_dict() for item in categories])

    async def load_categories(self, executor=None) -> list[CategoryDescriptor]:
        """
        Returns the category list, from cache when fresh.

        The fetch runs in `executor` and is bounded by `timeout_s`. The worker
        thread cannot be interrupted, so a late result is dropped here: nothing
        is cached or returned after the timeout fires.
        """
        cached = self.cached_categories()
        if cached is not None:
            return cached

        start = time.perf_counter()
        categories = await self._bounded(
            partial(self.compute_categories, force_refresh=True), executor, "category_load_timeout"
        )

        self.store_categories(categories)
        logger.info(
            "categories_loaded",
            categories=len(categories),
            elapsed_ms=round((time.perf_counter() - start) * 1000.0, 2),
        )
        return categories

    def load_categories_blocking(self) -> list[CategoryDescriptor]:
        # Private pool: asyncio.run would otherwise wait on a stuck fetch at shutdown.
        executor = ThreadPoolExecutor(max_workers=1)
        try:
            return asyncio.run(self.load_categories(executor))
        finally:
            executor.shutdown(wait=False)


def build_catalog() -> CategoryCatalog:
    """Catalog wired from the environment configuration."""
    from .config import (
        CATEGORY_CACHE_FILE,
        CATEGORY_CACHE_KEY,
        CATEGORY_CACHE_TTL_S,
        CATEGORY_LOAD_TIMEOUT_S,
        CSV_FETCH_TIMEOUT_S,
        PERSIST_CATEGORY_CACHE,
        QUESTIONS_SOURCE,
    )

    cache = TimedCache(CATEGORY_CACHE_FILE if PERSIST_CATEGORY_CACHE else None)
    return CategoryCatalog(
        source_from_location(QUESTIONS_SOURCE, timeout_s=CSV_FETCH_TIMEOUT_S),
        cache=cache,
        cache_key=CATEGORY_CACHE_KEY,
        ttl_s=CATEGORY_CACHE_TTL_S,
        timeout_s=CATEGORY_LOAD_TIMEOUT_S,
    )
