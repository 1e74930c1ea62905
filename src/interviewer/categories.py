"""
Category tables for the question bank.

Source CSV categories are free text; every record is stored under one of a
fixed set of canonical slugs. The tables below are the single source of truth
for that mapping, for display names, icons and for the repair rules applied to
category fields split apart by stray commas upstream.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable


# Declaration order matters: reverse lookups take the first match.
SLUG_TO_CATEGORY: dict[str, str] = {
    "webdev": "Web Development",
    "database": "Database",
    "datascience": "Data Science & AI",
    "systems": "Systems & Infrastructure",
    "devops": "DevOps & Tools",
    "programming": "Programming Fundamentals",
    "security": "Security",
}

CANONICAL_SLUGS: tuple[str, ...] = tuple(SLUG_TO_CATEGORY)

CATEGORY_GROUPS: dict[str, tuple[str, ...]] = {
    "Web Development": ("Front-end", "Back-end", "Full-stack", "Web Development"),
    "Database": ("Database and SQL", "Database Systems"),
    "Data Science & AI": (
        "Data Structures",
        "Algorithms",
        "Machine Learning",
        "Artificial Intelligence",
        "Data Engineering",
    ),
    "Systems & Infrastructure": ("System Design", "Distributed Systems", "Networking", "Low-level Systems"),
    "DevOps & Tools": ("DevOps", "Version Control", "Software Testing"),
    "Programming Fundamentals": ("General Programming", "General Program", "Languages and Frameworks"),
    "Security": ("Security",),
}

CATEGORY_TO_SLUG: dict[str, str] = {
    source: slug
    for slug, group_name in SLUG_TO_CATEGORY.items()
    for source in CATEGORY_GROUPS[group_name]
}

CATEGORY_ICONS: dict[str, str] = {
    "Web Development": "🌐",
    "Database": "🗄️",
    "Data Science & AI": "🤖",
    "Systems & Infrastructure": "🏗️",
    "DevOps & Tools": "🔧",
    "Programming Fundamentals": "📝",
    "Security": "🔒",
}
DEFAULT_ICON = "📚"

MALFORMED_CATEGORY_PREFIXES = ("and ", "-and ")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class RepairRule:
    """Keyword rule for re-homing a row whose category field was mangled."""

    name: str
    category: str
    matches: Callable[[str, str], bool]


def _mentions_join(question: str, answer: str) -> bool:
    return any(term in question for term in ("cross join", "inner join", "outer join")) or "join" in answer


def _mentions_browser_storage(question: str, answer: str) -> bool:
    return any(term in text for text in (question, answer) for term in ("cookie", "storage"))


# Evaluated in order; the first matching rule wins.
REPAIR_RULES: tuple[RepairRule, ...] = (
    RepairRule("sql_join", "Database and SQL", _mentions_join),
    RepairRule("browser_storage", "Web Development", _mentions_browser_storage),
)


def is_malformed_category(category: str) -> bool:
    return category.startswith(MALFORMED_CATEGORY_PREFIXES)


def repair_category(question: str, answer: str) -> str | None:
    """Infers a source category from card text, or None when no rule applies."""
    question_text = question.lower()
    answer_text = answer.lower()
    for rule in REPAIR_RULES:
        if rule.matches(question_text, answer_text):
            return rule.category
    return None


def slugify(text: str) -> str:
    return _WHITESPACE_RE.sub("-", text.lower())


def resolve_slug(category: str) -> str:
    """Maps a source category to its canonical slug, slugifying unknown names."""
    return CATEGORY_TO_SLUG.get(category) or slugify(category)


def display_name(slug: str) -> str:
    return SLUG_TO_CATEGORY.get(slug, slug)


def slug_for_display_name(name: str) -> str:
    for slug, category_name in SLUG_TO_CATEGORY.items():
        if category_name == name:
            return slug
    return slugify(name)


def icon_for(name: str) -> str:
    return CATEGORY_ICONS.get(name, DEFAULT_ICON)
