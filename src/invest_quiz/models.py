"""Data model for questions, quiz sessions and cumulative progress.

Records that are handed to callers (``Question``, ``QuizResult``,
``CategoryStat``) are frozen dataclasses with tuple fields, so a caller can
never mutate the canonical bank through a reference it was given. Mutable
aggregates (``QuizSession``, ``UserProgress``) are owned by the store and are
copied before they are folded.

JSON payloads keep the camelCase keys of the persisted format.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Mapping, MutableMapping, Sequence

from .errors import ValidationError

__all__ = [
    "DIFFICULTIES",
    "Question",
    "QuizSession",
    "CategoryScore",
    "QuizResult",
    "CategoryStat",
    "UserProgress",
    "WeaknessAnalysis",
    "AppSettings",
    "is_question",
    "is_user_progress",
    "is_app_settings",
]


DIFFICULTIES: tuple[str, ...] = ("beginner", "intermediate", "advanced")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_choice_index(value: Any) -> bool:
    return _is_int(value) and 0 <= value <= 3


def _is_string_list(value: Any, length: int | None = None) -> bool:
    if not isinstance(value, (list, tuple)):
        return False
    if not all(isinstance(item, str) for item in value):
        return False
    return length is None or len(value) == length


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


@dataclass(frozen=True)
class Question:
    """Immutable multiple-choice question with exactly four choices."""

    id: str
    category: str
    difficulty: str
    question: str
    choices: tuple[str, ...]
    correct_answer: int
    explanation: str
    tags: tuple[str, ...] = ()
    ai_generated: bool = False
    created_at: datetime | None = None

    @property
    def correct_choice(self) -> str:
        return self.choices[self.correct_answer]

    def with_choices(
        self, choices: Sequence[str], correct_answer: int
    ) -> "Question":
        """Return a copy with reordered choices and a remapped answer."""

        return replace(
            self, choices=tuple(choices), correct_answer=correct_answer
        )

    def to_dict(self) -> MutableMapping[str, Any]:
        payload: MutableMapping[str, Any] = {
            "id": self.id,
            "category": self.category,
            "difficulty": self.difficulty,
            "question": self.question,
            "choices": list(self.choices),
            "correctAnswer": self.correct_answer,
            "explanation": self.explanation,
        }
        if self.tags:
            payload["tags"] = list(self.tags)
        if self.ai_generated:
            payload["aiGenerated"] = True
        if self.created_at is not None:
            payload["createdAt"] = self.created_at.isoformat()
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Question":
        try:
            return cls(
                id=str(payload["id"]),
                category=str(payload["category"]),
                difficulty=str(payload["difficulty"]),
                question=str(payload["question"]),
                choices=tuple(str(choice) for choice in payload["choices"]),
                correct_answer=int(payload["correctAnswer"]),
                explanation=str(payload["explanation"]),
                tags=tuple(str(tag) for tag in payload.get("tags") or ()),
                ai_generated=bool(payload.get("aiGenerated", False)),
                created_at=_parse_timestamp(payload.get("createdAt")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(
                f"Question payload is malformed: {exc}"
            ) from exc


@dataclass
class QuizSession:
    """One attempt at an ordered sequence of questions."""

    id: str
    category: str
    difficulty: str
    questions: tuple[Question, ...]
    answers: list[int | None]
    started_at: datetime
    current_index: int = 0
    completed_at: datetime | None = None

    @property
    def current(self) -> Question:
        return self.questions[self.current_index]

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None


@dataclass(frozen=True)
class CategoryScore:
    correct: int
    total: int
    accuracy: float


@dataclass(frozen=True)
class QuizResult:
    """Score derived once from a completed session."""

    total_questions: int
    correct_answers: int
    accuracy: float
    category_breakdown: Mapping[str, CategoryScore] = field(
        default_factory=dict
    )


@dataclass(frozen=True)
class CategoryStat:
    correct: int = 0
    total: int = 0

    @property
    def accuracy(self) -> float:
        if self.total == 0:
            return 0.0
        return self.correct / self.total * 100

    def add(self, correct: int, total: int) -> "CategoryStat":
        return CategoryStat(self.correct + correct, self.total + total)


@dataclass
class UserProgress:
    """Durable cross-session statistics."""

    total_quizzes: int = 0
    total_correct: int = 0
    total_questions: int = 0
    category_stats: dict[str, CategoryStat] = field(default_factory=dict)
    study_days: int = 0
    last_study_date: str = ""
    wrong_questions: list[str] = field(default_factory=list)

    @property
    def accuracy(self) -> float:
        if self.total_questions == 0:
            return 0.0
        return self.total_correct / self.total_questions * 100

    def copy(self) -> "UserProgress":
        return replace(
            self,
            category_stats=dict(self.category_stats),
            wrong_questions=list(self.wrong_questions),
        )

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "totalQuizzes": self.total_quizzes,
            "totalCorrect": self.total_correct,
            "totalQuestions": self.total_questions,
            "categoryStats": {
                name: {"correct": stat.correct, "total": stat.total}
                for name, stat in self.category_stats.items()
            },
            "studyDays": self.study_days,
            "lastStudyDate": self.last_study_date,
            "wrongQuestions": list(self.wrong_questions),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "UserProgress":
        if not is_user_progress(payload):
            raise ValidationError("User progress payload is malformed.")
        stats = payload["categoryStats"]
        return cls(
            total_quizzes=payload["totalQuizzes"],
            total_correct=payload["totalCorrect"],
            total_questions=payload["totalQuestions"],
            category_stats={
                str(name): CategoryStat(value["correct"], value["total"])
                for name, value in stats.items()
            },
            study_days=payload["studyDays"],
            last_study_date=payload["lastStudyDate"],
            wrong_questions=list(dict.fromkeys(payload["wrongQuestions"])),
        )


@dataclass(frozen=True)
class WeaknessAnalysis:
    """AI-derived summary of the user's weakest category."""

    weakest_category: str
    analysis: str
    advice: str
    recommended_topics: tuple[str, ...]

    @classmethod
    def from_dict(cls, payload: Any) -> "WeaknessAnalysis":
        if not isinstance(payload, Mapping):
            raise ValidationError("Weakness analysis must be a JSON object.")
        for key in ("weakestCategory", "analysis", "advice"):
            if not isinstance(payload.get(key), str):
                raise ValidationError(
                    f"Weakness analysis field '{key}' must be a string."
                )
        topics = payload.get("recommendedTopics", [])
        if not _is_string_list(topics):
            raise ValidationError(
                "Weakness analysis field 'recommendedTopics' must be a "
                "list of strings."
            )
        return cls(
            weakest_category=payload["weakestCategory"],
            analysis=payload["analysis"],
            advice=payload["advice"],
            recommended_topics=tuple(topics),
        )


@dataclass(frozen=True)
class AppSettings:
    gemini_api_key: str | None = None
    show_explanation_immediately: bool = True
    shuffle_choices: bool = False

    def to_dict(self) -> MutableMapping[str, Any]:
        payload: MutableMapping[str, Any] = {
            "showExplanationImmediately": self.show_explanation_immediately,
            "shuffleChoices": self.shuffle_choices,
        }
        if self.gemini_api_key is not None:
            payload["geminiApiKey"] = self.gemini_api_key
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AppSettings":
        if not is_app_settings(payload):
            raise ValidationError("Settings payload is malformed.")
        return cls(
            gemini_api_key=payload.get("geminiApiKey"),
            show_explanation_immediately=payload["showExplanationImmediately"],
            shuffle_choices=payload["shuffleChoices"],
        )


def is_question(value: Any) -> bool:
    """Return True when ``value`` has the persisted question shape."""

    if not isinstance(value, Mapping):
        return False
    if not (
        isinstance(value.get("id"), str)
        and isinstance(value.get("category"), str)
        and value.get("difficulty") in DIFFICULTIES
        and isinstance(value.get("question"), str)
        and _is_string_list(value.get("choices"), 4)
        and _is_choice_index(value.get("correctAnswer"))
        and isinstance(value.get("explanation"), str)
    ):
        return False
    tags = value.get("tags")
    if tags is not None and not _is_string_list(tags):
        return False
    ai_generated = value.get("aiGenerated")
    if ai_generated is not None and not isinstance(ai_generated, bool):
        return False
    created_at = value.get("createdAt")
    if created_at is not None and _parse_timestamp(created_at) is None:
        return False
    return True


def _is_category_stat(value: Any) -> bool:
    if not isinstance(value, Mapping):
        return False
    correct = value.get("correct")
    total = value.get("total")
    return (
        _is_int(correct)
        and _is_int(total)
        and 0 <= correct <= total
    )


def is_user_progress(value: Any) -> bool:
    """Return True when ``value`` is a structurally valid progress record.

    Category sums may exceed the aggregate totals because ``record_result``
    and ``finish_quiz`` fold into the same counters; they may never be lower.
    """

    if not isinstance(value, Mapping):
        return False
    counters = ("totalQuizzes", "totalCorrect", "totalQuestions", "studyDays")
    if not all(_is_int(value.get(key)) and value[key] >= 0 for key in counters):
        return False
    if not isinstance(value.get("lastStudyDate"), str):
        return False
    wrong = value.get("wrongQuestions")
    if not _is_string_list(wrong):
        return False
    if value["totalCorrect"] > value["totalQuestions"]:
        return False
    stats = value.get("categoryStats")
    if not isinstance(stats, Mapping):
        return False
    if not all(_is_category_stat(stat) for stat in stats.values()):
        return False
    summed_correct = sum(stat["correct"] for stat in stats.values())
    summed_total = sum(stat["total"] for stat in stats.values())
    return (
        summed_correct >= value["totalCorrect"]
        and summed_total >= value["totalQuestions"]
    )


def is_app_settings(value: Any) -> bool:
    if not isinstance(value, Mapping):
        return False
    if not isinstance(value.get("showExplanationImmediately"), bool):
        return False
    if not isinstance(value.get("shuffleChoices"), bool):
        return False
    key = value.get("geminiApiKey")
    return key is None or isinstance(key, str)
