"""Practice sessions: one category's cards in shuffled, circular order."""
from __future__ import annotations

import random
import threading
import uuid
from collections import OrderedDict
from typing import Iterable

from .categories import display_name
from .question_bank import QuestionRecord, questions_for_domain


class NoQuestionsForDomain(LookupError):
    """The requested category has no cards."""


class PracticeSession:
    """
    Cursor over the cards of a single domain.

    Cards are shuffled once at construction; pass `rng` for a reproducible
    order. `advance` and `retreat` wrap around at either end.
    """

    def __init__(
        self,
        records: Iterable[QuestionRecord],
        domain: str,
        *,
        rng: random.Random | None = None,
    ):
        self.domain = str(domain)
        self.cards: list[QuestionRecord] = questions_for_domain(records, self.domain)
        (rng or random).shuffle(self.cards)
        self.position = 0

    @property
    def display_name(self) -> str:
        return display_name(self.domain)

    @property
    def total(self) -> int:
        return len(self.cards)

    @property
    def is_empty(self) -> bool:
        return not self.cards

    @property
    def progress(self) -> str:
        return f"{self.position + 1} / {self.total}"

    def current(self) -> QuestionRecord:
        if self.is_empty:
            raise NoQuestionsForDomain(f"No questions found for this domain: {self.domain}")
        return self.cards[self.position]

    def advance(self) -> QuestionRecord:
        if self.position < self.total - 1:
            self.position += 1
        else:
            self.position = 0
        return self.current()

    def retreat(self) -> QuestionRecord:
        if self.position > 0:
            self.position -= 1
        else:
            self.position = self.total - 1
        return self.current()


class PracticeSessionStore:
    """Bounded, thread-safe LRU of practice sessions keyed by session id."""

    def __init__(self, max_size: int = 256):
        self._sessions: OrderedDict[str, PracticeSession] = OrderedDict()
        self._max = max(1, int(max_size))
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def add(self, session: PracticeSession) -> str:
        session_id = uuid.uuid4().hex
        with self._lock:
            if len(self._sessions) >= self._max:
                self._sessions.popitem(last=False)
            self._sessions[session_id] = session
        return session_id

    def get(self, session_id: str) -> PracticeSession | None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                self._sessions.move_to_end(session_id)
            return session
