"""AI explanations for a single flashcard, in English or French."""
from __future__ import annotations

import threading
from collections import OrderedDict

from .chat_relay import ChatRelay, RelayInputError

EXPLANATION_PROMPTS: dict[str, str] = {
    "en": (
        "Please provide a detailed, easy-to-understand explanation for this technical interview "
        "question and answer:\n\nQuestion: {question}\n\nAnswer: {answer}\n\n"
        "Please explain the concepts clearly, provide context, and help me understand this better."
    ),
    "fr": (
        "Veuillez fournir une explication détaillée et facile à comprendre pour cette question et "
        "réponse d'entretien technique:\n\nQuestion: {question}\n\nRéponse: {answer}\n\n"
        "Veuillez expliquer les concepts clairement, fournir du contexte et m'aider à mieux "
        "comprendre. Répondez en français."
    ),
}
SUPPORTED_LANGUAGES = tuple(EXPLANATION_PROMPTS)


def build_explanation_prompt(question: str, answer: str, language: str = "en") -> str:
    template = EXPLANATION_PROMPTS.get(str(language or "").lower())
    if template is None:
        raise RelayInputError(f"Unsupported explanation language: {language!r}")
    return template.format(question=question, answer=answer)


def request_explanation(relay: ChatRelay, question: str, answer: str, language: str = "en") -> str:
    """Asks the relay to explain one card. No categories are sent."""
    if not all(isinstance(text, str) and text.strip() for text in (question, answer)):
        raise RelayInputError("Question and answer are required")
    content = build_explanation_prompt(question, answer, language)
    return relay.relay([{"role": "user", "content": content}], categories=[], kind="explanation")


class ExplanationCache:
    """Per-client LRU memo so toggling languages on the same card does not refetch."""

    def __init__(self, relay: ChatRelay, max_size: int = 128):
        self._relay = relay
        self._max = max(1, int(max_size))
        self._lock = threading.Lock()
        self._explanations: OrderedDict[tuple[str, str, str], str] = OrderedDict()

    def __len__(self) -> int:
        with self._lock:
            return len(self._explanations)

    def explain(self, question: str, answer: str, language: str = "en") -> str:
        key = (question, answer, str(language or "").lower())
        with self._lock:
            cached = self._explanations.get(key)
            if cached is not None:
                self._explanations.move_to_end(key)
                return cached
        text = request_explanation(self._relay, question, answer, language)
        with self._lock:
            self._explanations[key] = text
            self._explanations.move_to_end(key)
            while len(self._explanations) > self._max:
                self._explanations.popitem(last=False)
        return text
