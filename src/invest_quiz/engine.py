"""Pure quiz-building and scoring helpers."""

from __future__ import annotations

import random
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from .bank import QuestionBank
from .errors import InvalidCountError, LengthMismatchError
from .models import CategoryScore, Question, QuizResult
from .utils import fisher_yates_shuffle

__all__ = [
    "DEFAULT_QUIZ_COUNT",
    "generate_quiz",
    "check_answer",
    "calculate_score",
    "generate_review_quiz",
    "shuffle_choices",
]

DEFAULT_QUIZ_COUNT = 10


def generate_quiz(
    bank: QuestionBank,
    *,
    category: Optional[str] = None,
    difficulty: Optional[str] = None,
    count: int = DEFAULT_QUIZ_COUNT,
    rng: Optional[random.Random] = None,
) -> List[Question]:
    return bank.pick_random_questions(
        category=category, difficulty=difficulty, count=count, rng=rng
    )


def check_answer(question: Question, answer: Optional[int]) -> bool:
    if answer is None:
        return False
    return question.correct_answer == answer


def _percent(correct: int, total: int) -> float:
    return (correct / total) * 100 if total else 0.0


def calculate_score(
    answers: Sequence[Optional[int]], questions: Sequence[Question]
) -> QuizResult:
    """Score ``answers`` against ``questions`` position by position."""
    if len(answers) != len(questions):
        raise LengthMismatchError(
            "Answers length must match questions length"
        )

    per_category: Dict[str, Dict[str, int]] = defaultdict(
        lambda: {"correct": 0, "total": 0}
    )
    correct = 0
    for answer, question in zip(answers, questions):
        stats = per_category[question.category]
        stats["total"] += 1
        if check_answer(question, answer):
            stats["correct"] += 1
            correct += 1

    breakdown = {
        name: CategoryScore(
            correct=values["correct"],
            total=values["total"],
            accuracy=_percent(values["correct"], values["total"]),
        )
        for name, values in per_category.items()
    }
    total = len(questions)
    return QuizResult(
        total_questions=total,
        correct_answers=correct,
        accuracy=_percent(correct, total),
        category_breakdown=breakdown,
    )


def generate_review_quiz(
    wrong_questions: Sequence[Question],
    count: int,
    *,
    rng: Optional[random.Random] = None,
) -> List[Question]:
    """Build a review quiz from previously missed questions.

    Small pools are returned whole and in order; larger pools are sampled
    uniformly down to ``count``.
    """
    if not isinstance(count, int) or isinstance(count, bool) or count <= 0:
        raise InvalidCountError("Question count must be a positive integer")
    if not wrong_questions:
        return []
    if len(wrong_questions) <= count:
        return list(wrong_questions)
    pool = list(wrong_questions)
    fisher_yates_shuffle(pool, rng)
    return pool[:count]


def shuffle_choices(
    question: Question, *, rng: Optional[random.Random] = None
) -> Question:
    """Return a copy of ``question`` with its choices permuted."""
    order = fisher_yates_shuffle(list(range(len(question.choices))), rng)
    choices = [question.choices[index] for index in order]
    return question.with_choices(
        choices, order.index(question.correct_answer)
    )
