"""Fake HTTP session used to exercise the Gemini gateway offline."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union


@dataclass
class FakeResponse:
    status_code: int
    payload: Any = None
    body: Optional[str] = None

    @property
    def text(self) -> str:
        if self.body is not None:
            return self.body
        if self.payload is None:
            return ""
        return json.dumps(self.payload)

    def json(self) -> Any:
        if self.payload is None:
            raise ValueError("No JSON object could be decoded")
        return self.payload


def text_response(text: str) -> FakeResponse:
    return FakeResponse(
        200, {"candidates": [{"content": {"parts": [{"text": text}]}}]}
    )


def rate_limited() -> FakeResponse:
    return FakeResponse(429, body='{"error": "RESOURCE_EXHAUSTED"}')


@dataclass
class FakeSession:
    """Queue of canned responses (or exceptions) returned by ``post``."""

    queue: List[Union[FakeResponse, Exception]] = field(default_factory=list)
    calls: List[dict] = field(default_factory=list)

    def push(self, *items: Union[FakeResponse, Exception]) -> "FakeSession":
        self.queue.extend(items)
        return self

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"url": url, **kwargs})
        if not self.queue:
            raise AssertionError("FakeSession received an unexpected request")
        item = self.queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item
