"""
Relay between the interview assistant UI and the Groq chat completion API.

A system prompt listing the practice categories is prepended to the caller's
transcript so the model can answer with `[NAVIGATE:<slug>]` directives. The
relay returns raw model text; interpretation happens in `navigation`.
"""
from __future__ import annotations

import time
from typing import Any, Callable, Iterable, Mapping

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_groq import ChatGroq

from .config import CHAT_MAX_TOKENS, CHAT_MODEL_NAME, CHAT_TEMPERATURE, groq_api_key
from .metrics import MetricsCollector, metrics_collector
from .observability import get_logger

logger = get_logger(__name__)

NO_RESPONSE_FALLBACK = "No response generated"
BASE_SYSTEM_PROMPT = (
    "You are a helpful technical interview assistant. Help users understand technical "
    "interview questions, provide explanations, and give coding tips. Be concise and clear."
)
NAVIGATION_REMINDER = (
    "You can also help users navigate to practice categories. When they ask about a "
    "category or want to practice it, use the [NAVIGATE:slug] format in your response."
)
_MESSAGE_CLASSES: dict[str, type[BaseMessage]] = {
    "user": HumanMessage,
    "assistant": AIMessage,
}


class RelayError(Exception):
    status_code = 500


class RelayConfigurationError(RelayError):
    """The provider credential is missing; needs operator attention."""

    status_code = 500


class RelayInputError(RelayError):
    status_code = 400


class RelayProviderError(RelayError):
    status_code = 500


def _category_pairs(categories: Iterable[Any] | None) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    # Anything but a list of {id, name} entries contributes nothing.
    if isinstance(categories, (str, bytes, Mapping)) or not isinstance(categories, Iterable):
        return pairs
    for category in categories:
        if isinstance(category, Mapping):
            slug, name = category.get("id"), category.get("name")
        else:
            slug, name = getattr(category, "id", None), getattr(category, "name", None)
        if slug and name:
            pairs.append((str(slug), str(name)))
    return pairs


def build_system_prompt(categories: Iterable[Any] | None = None) -> str:
    prompt = BASE_SYSTEM_PROMPT
    pairs = _category_pairs(categories)
    if pairs:
        listing = "\n".join(f"- {name} (slug: {slug})" for slug, name in pairs)
        example_slug = pairs[0][0]
        prompt += (
            f"\n\nAvailable practice categories:\n{listing}\n\n"
            "When a user asks to practice a specific category, navigate to it, or wants to see "
            "questions from a category, respond with a special format: [NAVIGATE:category-slug] "
            "where category-slug is exactly one of the slugs from the list above. For example, "
            f"[NAVIGATE:{example_slug}]. Always include helpful text before the navigation command."
        )
    return f"{prompt}\n\n{NAVIGATION_REMINDER}"


def _coerce_message(message: Any) -> tuple[str, str]:
    if isinstance(message, Mapping):
        role, content = message.get("role"), message.get("content")
    else:
        role, content = getattr(message, "role", None), getattr(message, "content", None)
    if role not in _MESSAGE_CLASSES or not isinstance(content, str):
        raise RelayInputError("Each message needs a role of 'user' or 'assistant' and text content")
    return role, content


def build_chat_messages(messages: Any, categories: Iterable[Any] | None = None) -> list[BaseMessage]:
    if not isinstance(messages, (list, tuple)) or not messages:
        raise RelayInputError("Messages are required")
    chat: list[BaseMessage] = [SystemMessage(content=build_system_prompt(categories))]
    for message in messages:
        role, content = _coerce_message(message)
        chat.append(_MESSAGE_CLASSES[role](content=content))
    return chat


def _token_usage(response: Any) -> tuple[int, int]:
    usage = getattr(response, "usage_metadata", None) or {}
    return int(usage.get("input_tokens", 0) or 0), int(usage.get("output_tokens", 0) or 0)


class ChatRelay:
    """Forwards a conversation to Groq and returns the assistant's raw text."""

    def __init__(
        self,
        *,
        model_name: str = CHAT_MODEL_NAME,
        temperature: float = CHAT_TEMPERATURE,
        max_tokens: int = CHAT_MAX_TOKENS,
        api_key_provider: Callable[[], str] = groq_api_key,
        llm_factory: Callable[..., Any] = ChatGroq,
        metrics: MetricsCollector = metrics_collector,
    ):
        self.model_name = model_name
        self.temperature = float(temperature)
        self.max_tokens = int(max_tokens)
        self._api_key_provider = api_key_provider
        self._llm_factory = llm_factory
        self._metrics = metrics

    def _initialize_llm(self, api_key: str):
        return self._llm_factory(
            model=self.model_name,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            api_key=api_key,
        )

    def relay(self, messages: Any, categories: Iterable[Any] | None = None, *, kind: str = "chat") -> str:
        api_key = self._api_key_provider()
        if not api_key:
            logger.error("chat_relay_missing_credentials", model=self.model_name)
            raise RelayConfigurationError("GROQ_API_KEY is not configured")

        chat_messages = build_chat_messages(messages, categories)

        start = time.perf_counter()
        try:
            response = self._initialize_llm(api_key).invoke(chat_messages)
        except Exception as exc:
            latency_ms = (time.perf_counter() - start) * 1000.0
            self._metrics.record_call(kind, self.model_name, latency_ms, success=False)
            logger.error("chat_relay_failed", model=self.model_name, kind=kind, error=str(exc))
            raise RelayProviderError(str(exc) or "Failed to get response from chatbot") from exc

        latency_ms = (time.perf_counter() - start) * 1000.0
        input_tokens, output_tokens = _token_usage(response)
        self._metrics.record_call(
            kind,
            self.model_name,
            latency_ms,
            success=True,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
        content = getattr(response, "content", response)
        text = content if isinstance(content, str) else ""
        logger.info(
            "chat_relay_completed",
            model=self.model_name,
            kind=kind,
            turns=len(chat_messages) - 1,
            latency_ms=round(latency_ms, 2),
        )
        return text or NO_RESPONSE_FALLBACK
