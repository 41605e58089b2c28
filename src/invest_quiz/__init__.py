"""Investment education quiz engine with Gemini-generated content."""

from __future__ import annotations

from .bank import QuestionBank, load_default_bank
from .engine import (
    calculate_score,
    check_answer,
    generate_quiz,
    generate_review_quiz,
    shuffle_choices,
)
from .errors import QuizError
from .gemini import GeminiGateway
from .models import (
    AppSettings,
    Question,
    QuizResult,
    QuizSession,
    UserProgress,
    WeaknessAnalysis,
)
from .storage import JsonFileStorage
from .store import QuizStatus, QuizStore

__all__ = [
    "AppSettings",
    "GeminiGateway",
    "JsonFileStorage",
    "Question",
    "QuestionBank",
    "QuizError",
    "QuizResult",
    "QuizSession",
    "QuizStatus",
    "QuizStore",
    "UserProgress",
    "WeaknessAnalysis",
    "calculate_score",
    "check_answer",
    "generate_quiz",
    "generate_review_quiz",
    "load_default_bank",
    "shuffle_choices",
]
