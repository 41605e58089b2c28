"""Structural and quality validation for quiz questions.

``validate_question`` accepts either a :class:`~invest_quiz.models.Question`
or a raw camelCase mapping decoded from untrusted JSON, and reports only the
first violation it finds.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Union

from .errors import (
    ChoiceTooLongError,
    ChoiceTooShortError,
    DuplicateChoicesError,
    ExplanationTooShortError,
    QuestionTooLongError,
    QuestionTooShortError,
    ValidationError,
)
from .models import DIFFICULTIES, Question

__all__ = [
    "MIN_CHOICE_LENGTH",
    "MAX_CHOICE_LENGTH",
    "MIN_QUESTION_LENGTH",
    "MAX_QUESTION_LENGTH",
    "MIN_EXPLANATION_LENGTH",
    "validate_question",
    "validate_question_bank",
    "check_generated_quality",
]


MIN_CHOICE_LENGTH = 2
MAX_CHOICE_LENGTH = 200
MIN_QUESTION_LENGTH = 10
MAX_QUESTION_LENGTH = 500
MIN_EXPLANATION_LENGTH = 10

QuestionLike = Union[Question, Mapping[str, Any]]

_FIELD_KEYS = {
    "id": "id",
    "category": "category",
    "difficulty": "difficulty",
    "question": "question",
    "choices": "choices",
    "correct_answer": "correctAnswer",
    "explanation": "explanation",
}


def _read(question: QuestionLike, name: str) -> Any:
    if isinstance(question, Mapping):
        return question.get(_FIELD_KEYS[name])
    return getattr(question, name, None)


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def validate_question(question: QuestionLike) -> None:
    """Raise ``ValidationError`` for the first structural violation."""

    if _is_blank(_read(question, "id")):
        raise ValidationError("Question ID is required")
    if _is_blank(_read(question, "category")):
        raise ValidationError("Question category is required")
    if _is_blank(_read(question, "question")):
        raise ValidationError("Question text is required")

    choices = _read(question, "choices")
    if not isinstance(choices, (list, tuple)) or len(choices) != 4:
        raise ValidationError("Question must have exactly 4 choices")
    if any(_is_blank(choice) for choice in choices):
        raise ValidationError("All choices must be non-empty")

    answer = _read(question, "correct_answer")
    if (
        not isinstance(answer, int)
        or isinstance(answer, bool)
        or not 0 <= answer <= 3
    ):
        raise ValidationError("Correct answer index must be between 0 and 3")

    if _is_blank(_read(question, "explanation")):
        raise ValidationError("Explanation is required")
    if _read(question, "difficulty") not in DIFFICULTIES:
        raise ValidationError(
            "Difficulty must be beginner, intermediate, or advanced"
        )


def validate_question_bank(questions: Iterable[QuestionLike]) -> None:
    """Validate every question, then reject the first duplicate id."""

    items = list(questions)
    if not items:
        raise ValidationError("Question bank cannot be empty")
    for question in items:
        validate_question(question)
    seen: set[str] = set()
    for question in items:
        qid = _read(question, "id")
        if qid in seen:
            raise ValidationError(f"Duplicate question ID found: {qid}")
        seen.add(qid)


def check_generated_quality(question: QuestionLike) -> None:
    """Apply the stricter gates used for AI-generated questions.

    Assumes ``validate_question`` already passed.
    """

    qid = _read(question, "id")
    choices = [str(choice).strip() for choice in _read(question, "choices")]

    if len({choice.lower() for choice in choices}) != len(choices):
        raise DuplicateChoicesError(
            f"Question ID {qid}: Duplicate choices detected"
        )
    for index, choice in enumerate(choices):
        if len(choice) < MIN_CHOICE_LENGTH:
            raise ChoiceTooShortError(
                f"Question ID {qid}: Choice {index} is too short"
            )
        if len(choice) > MAX_CHOICE_LENGTH:
            raise ChoiceTooLongError(
                f"Question ID {qid}: Choice {index} is too long"
            )

    text = str(_read(question, "question")).strip()
    if len(text) < MIN_QUESTION_LENGTH:
        raise QuestionTooShortError(
            f"Question ID {qid}: Question text is too short"
        )
    if len(text) > MAX_QUESTION_LENGTH:
        raise QuestionTooLongError(
            f"Question ID {qid}: Question text is too long"
        )

    explanation = str(_read(question, "explanation")).strip()
    if len(explanation) < MIN_EXPLANATION_LENGTH:
        raise ExplanationTooShortError(
            f"Question ID {qid}: Explanation is too short"
        )
