"""
Relay call metrics for the Interviewer service.

Each Groq call is recorded under its kind ("chat" or "explanation") so the
snapshot can tell assistant traffic apart from card explanations. Calls are
also appended to <METRICS_DIR>/relay_calls.jsonl.
"""
from __future__ import annotations

import json
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path

import psutil

from .config import METRICS_DIR
from .observability import get_logger

logger = get_logger(__name__)

# USD per million tokens, (input, output).
GROQ_PRICES_PER_MTOK: dict[str, tuple[float, float]] = {
    "llama-3.1-8b-instant": (0.05, 0.08),
    "llama-3.3-70b-versatile": (0.59, 0.79),
    "gemma2-9b-it": (0.20, 0.20),
}
FALLBACK_PRICE_PER_MTOK = (0.30, 0.40)


def call_cost_usd(model: str, input_tokens: int, output_tokens: int) -> float:
    input_price, output_price = GROQ_PRICES_PER_MTOK.get(model, FALLBACK_PRICE_PER_MTOK)
    return (input_tokens * input_price + output_tokens * output_price) / 1_000_000


@dataclass
class CallStats:
    """Running totals for one group of relay calls."""

    calls: int = 0
    failures: int = 0
    latency_total_ms: float = 0.0
    latency_min_ms: float = 0.0
    latency_max_ms: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0

    def add(self, latency_ms: float, success: bool, input_tokens: int, output_tokens: int, cost_usd: float):
        if self.calls == 0 or latency_ms < self.latency_min_ms:
            self.latency_min_ms = latency_ms
        self.latency_max_ms = max(self.latency_max_ms, latency_ms)
        self.calls += 1
        self.failures += 0 if success else 1
        self.latency_total_ms += latency_ms
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens
        self.cost_usd += cost_usd

    def snapshot(self) -> dict:
        avg_ms = self.latency_total_ms / self.calls if self.calls else 0.0
        return {
            "calls": self.calls,
            "failures": self.failures,
            "avg_latency_ms": round(avg_ms, 2),
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cost_usd": round(self.cost_usd, 6),
        }


class MetricsCollector:
    """Thread-safe tally of relay calls, overall and per kind."""

    def __init__(self, log_dir: str | Path = METRICS_DIR):
        self._lock = threading.Lock()
        self._started_at = time.time()
        self._overall = CallStats()
        self._by_kind: dict[str, CallStats] = {}
        self._log_path = Path(log_dir) / "relay_calls.jsonl"
        self._log_path.parent.mkdir(parents=True, exist_ok=True)
        self._process = psutil.Process(os.getpid())

    def record_call(
        self,
        kind: str,
        model: str,
        latency_ms: float,
        *,
        success: bool,
        input_tokens: int = 0,
        output_tokens: int = 0,
    ) -> None:
        cost_usd = call_cost_usd(model, input_tokens, output_tokens)
        with self._lock:
            for stats in (self._overall, self._by_kind.setdefault(kind, CallStats())):
                stats.add(latency_ms, success, input_tokens, output_tokens, cost_usd)
        self._append_log(
            {
                "ts": time.strftime("%Y-%m-%dT%H:%M:%S%z"),
                "kind": kind,
                "model": model,
                "latency_ms": round(latency_ms, 2),
                "success": success,
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
                "cost_usd": round(cost_usd, 8),
            }
        )

    def _append_log(self, entry: dict) -> None:
        try:
            with open(self._log_path, "a", encoding="utf-8") as fh:
                fh.write(json.dumps(entry) + "\n")
        except OSError as exc:
            logger.warning("metrics_log_write_failed", path=str(self._log_path), error=str(exc))

    def get_summary(self) -> dict:
        with self._lock:
            overall = CallStats(**vars(self._overall))
            by_kind = {kind: stats.snapshot() for kind, stats in sorted(self._by_kind.items())}

        uptime_s = time.time() - self._started_at
        rss_mb = self._process.memory_info().rss / (1024 * 1024)
        calls = overall.calls
        return {
            "latency": {
                "avg_ms": overall.snapshot()["avg_latency_ms"],
                "min_ms": round(overall.latency_min_ms, 2),
                "max_ms": round(overall.latency_max_ms, 2),
            },
            "throughput": {
                "total_requests": calls,
                "requests_per_second": round(calls / uptime_s, 4) if uptime_s > 0 else 0.0,
                "uptime_seconds": round(uptime_s, 1),
            },
            "memory": {"rss_mb": round(rss_mb, 1)},
            "cost": {
                "total_usd": round(overall.cost_usd, 6),
                "total_input_tokens": overall.input_tokens,
                "total_output_tokens": overall.output_tokens,
            },
            "errors": {
                "count": overall.failures,
                "rate_percent": round(overall.failures / calls * 100, 2) if calls else 0.0,
            },
            "by_kind": by_kind,
        }


# Shared by the relay and the API server.
metrics_collector = MetricsCollector()
