"""Curated question bank.

The bank is loaded once from the packaged JSONL dataset and never mutated.
Every query returns a fresh list; the ``Question`` records inside it are
frozen, so callers cannot alter the canonical pool.
"""

from __future__ import annotations

import logging
import random
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .errors import InsufficientPoolError, InvalidCountError
from .models import DIFFICULTIES, Question
from .utils import fisher_yates_shuffle, read_jsonl
from .validation import validate_question_bank

__all__ = [
    "QuestionBank",
    "load_default_bank",
]

_LOGGER = logging.getLogger(__name__)

_DATA_PACKAGE = "invest_quiz.data"
_DATA_FILENAME = "questions.jsonl"


class QuestionBank:
    """Immutable pool of curated questions with filtering and sampling."""

    def __init__(self, questions: Iterable[Question]) -> None:
        self._questions: tuple[Question, ...] = tuple(questions)
        validate_question_bank(self._questions)
        self._by_id = {question.id: question for question in self._questions}

    @classmethod
    def from_jsonl(cls, path: Path) -> "QuestionBank":
        records = read_jsonl(path)
        validate_question_bank(records)
        return cls(Question.from_dict(record) for record in records)

    def __len__(self) -> int:
        return len(self._questions)

    def get_all_questions(self) -> List[Question]:
        return list(self._questions)

    def get_question(self, question_id: str) -> Optional[Question]:
        return self._by_id.get(question_id)

    def get_questions_by_category(self, category: str) -> List[Question]:
        return [q for q in self._questions if q.category == category]

    def get_questions_by_difficulty(self, difficulty: str) -> List[Question]:
        return [q for q in self._questions if q.difficulty == difficulty]

    def pick_random_questions(
        self,
        *,
        count: int,
        category: Optional[str] = None,
        difficulty: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ) -> List[Question]:
        """Return ``count`` distinct questions matching the optional filters.

        Filters combine with AND; ``None`` (or an empty string) matches
        everything.
        """
        if not isinstance(count, int) or isinstance(count, bool) or count <= 0:
            raise InvalidCountError(
                "Question count must be a positive integer"
            )
        pool = [
            q
            for q in self._questions
            if (not category or q.category == category)
            and (not difficulty or q.difficulty == difficulty)
        ]
        if len(pool) < count:
            raise InsufficientPoolError(count, len(pool))
        fisher_yates_shuffle(pool, rng)
        return pool[:count]

    def get_available_categories(self) -> List[str]:
        return sorted({q.category for q in self._questions})

    def get_available_difficulties(self) -> List[str]:
        seen = dict.fromkeys(q.difficulty for q in self._questions)
        return [level for level in seen if level in DIFFICULTIES]


def _default_records() -> Sequence[dict]:
    resource = resources.files(_DATA_PACKAGE).joinpath(_DATA_FILENAME)
    with resources.as_file(resource) as path:
        return read_jsonl(path)


@lru_cache(maxsize=1)
def load_default_bank() -> QuestionBank:
    """Load the packaged curated dataset once per process."""

    records = _default_records()
    validate_question_bank(records)
    bank = QuestionBank(Question.from_dict(record) for record in records)
    _LOGGER.debug(
        "Loaded curated question bank",
        extra={
            "questions": len(bank),
            "categories": bank.get_available_categories(),
        },
    )
    return bank
