"""
CSV question bank loading and normalization.

Turns the raw CSV export into category-tagged QuestionRecord values. Rows that
cannot be placed in a category, or that lack a question or answer, are dropped
without error; a source that cannot be read at all yields an empty bank.
"""
from __future__ import annotations

import csv
import http.client
import io
from dataclasses import asdict, dataclass
from typing import Any, Iterable

from .categories import is_malformed_category, repair_category, resolve_slug
from .observability import get_logger
from .question_source import QuestionSource

logger = get_logger(__name__)


@dataclass(frozen=True)
class QuestionRecord:
    domain: str
    question: str
    answer: str
    difficulty: str = ""

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


def _field(row: dict[str, Any], name: str) -> str:
    """Case-insensitive column lookup; the capitalized header is tried first."""
    for key in (name.capitalize(), name.lower()):
        value = row.get(key)
        if value:
            return str(value)
    wanted = name.lower()
    for key, value in row.items():
        if key is not None and str(key).strip().lower() == wanted and value:
            return str(value)
    return ""


def normalize_row(row: dict[str, Any]) -> QuestionRecord | None:
    question = _field(row, "question").strip()
    answer = _field(row, "answer").strip()
    category = _field(row, "category").strip()

    if is_malformed_category(category):
        category = repair_category(question, answer) or ""
        if not category:
            return None

    slug = resolve_slug(category)
    if not question or not answer or not slug:
        return None

    return QuestionRecord(
        domain=slug,
        question=question,
        answer=answer,
        difficulty=_field(row, "difficulty").strip(),
    )


def normalize_rows(rows: Iterable[dict[str, Any]]) -> list[QuestionRecord]:
    records: list[QuestionRecord] = []
    for row in rows:
        record = normalize_row(row)
        if record is not None:
            records.append(record)
    return records


def parse_questions_csv(csv_text: str) -> list[QuestionRecord]:
    """Parses CSV text with a header row into records, keeping row order."""
    # DictReader skips empty lines; whitespace-only lines fail the question check.
    reader = csv.DictReader(io.StringIO(csv_text, newline=""))
    return normalize_rows(reader)


def load_questions(source: QuestionSource) -> list[QuestionRecord]:
    """Reads and normalizes the bank; any read or parse failure yields []."""
    try:
        csv_text = source.read_text()
        records = parse_questions_csv(csv_text)
    except (OSError, ValueError, csv.Error, http.client.HTTPException) as exc:
        logger.warning("csv_load_failed", source=source.location, error=str(exc))
        return []
    logger.info("csv_loaded", source=source.location, records=len(records))
    return records


def questions_for_domain(records: Iterable[QuestionRecord], domain: str) -> list[QuestionRecord]:
    wanted = str(domain or "").lower()
    return [record for record in records if record.domain.lower() == wanted]
