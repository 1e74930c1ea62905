"""
Question bank source abstraction.
Default implementation reads a local CSV file; an HTTP source fetches it from a URL.
"""
from __future__ import annotations

import http.client
import urllib.request
from pathlib import Path
from typing import Protocol


class QuestionSource(Protocol):
    @property
    def location(self) -> str:
        ...

    def read_text(self) -> str:
        ...


class LocalQuestionSource:
    def __init__(self, path: Path):
        self._path = Path(path)

    @property
    def location(self) -> str:
        return str(self._path)

    def read_text(self) -> str:
        return self._path.read_text(encoding="utf-8-sig")


class HttpQuestionSource:
    def __init__(self, url: str, timeout_s: float = 10.0):
        self._url = str(url)
        self._timeout_s = float(timeout_s)

    @property
    def location(self) -> str:
        return self._url

    def read_text(self) -> str:
        req = urllib.request.Request(self._url, headers={"Accept": "text/csv"}, method="GET")
        try:
            with urllib.request.urlopen(req, timeout=self._timeout_s) as resp:
                return resp.read().decode("utf-8-sig")
        except http.client.HTTPException as exc:
            # Malformed status lines and truncated bodies are not OSErrors.
            raise OSError(f"Malformed response from {self._url}: {exc!r}") from exc


def source_from_location(location: str | Path, timeout_s: float = 10.0) -> QuestionSource:
    raw = str(location)
    if raw.lower().startswith(("http://", "https://")):
        return HttpQuestionSource(raw, timeout_s=timeout_s)
    return LocalQuestionSource(Path(raw))
