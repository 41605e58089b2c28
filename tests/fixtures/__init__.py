"""Shared testing fixtures for the invest_quiz test suite."""

from .gemini import FakeResponse, FakeSession, rate_limited, text_response  # noqa: F401
from .questions import make_question, question_payload  # noqa: F401

__all__ = [
    "FakeResponse",
    "FakeSession",
    "make_question",
    "question_payload",
    "rate_limited",
    "text_response",
]
