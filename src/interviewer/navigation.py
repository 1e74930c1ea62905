"""
In-band command parsing for assistant replies.

The assistant may embed `[NAVIGATE:<slug>]` anywhere in its prose. The first
directive decides the destination; every directive is scrubbed from the text
shown to the user. Slugs are not validated here.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

NAVIGATE_VERB = "NAVIGATE"

# verb -> pattern capturing the directive argument
DIRECTIVE_PATTERNS: dict[str, re.Pattern[str]] = {
    NAVIGATE_VERB: re.compile(r"\[NAVIGATE:([^\]]+)\]"),
}
_STRIP_RES: dict[str, re.Pattern[str]] = {
    verb: re.compile(r"[ \t]*" + pattern.pattern) for verb, pattern in DIRECTIVE_PATTERNS.items()
}


@dataclass(frozen=True)
class NavigationDirective:
    target_slug: str

    @property
    def route(self) -> str:
        return f"/practice/{self.target_slug}"


@dataclass(frozen=True)
class InterpretedReply:
    display_text: str
    navigation: NavigationDirective | None = None

    @property
    def target_slug(self) -> str | None:
        return self.navigation.target_slug if self.navigation else None


def strip_directives(text: str) -> str:
    cleaned = str(text or "")
    for pattern in _STRIP_RES.values():
        cleaned = pattern.sub("", cleaned)
    return cleaned.strip()


def interpret_reply(text: str) -> InterpretedReply:
    """Splits an assistant reply into display text and an optional navigation."""
    raw = str(text or "")
    match = DIRECTIVE_PATTERNS[NAVIGATE_VERB].search(raw)
    if match is None:
        return InterpretedReply(display_text=raw)
    return InterpretedReply(
        display_text=strip_directives(raw),
        navigation=NavigationDirective(target_slug=match.group(1)),
    )
