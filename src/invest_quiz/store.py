"""Quiz session and cumulative progress store.

A ``QuizStore`` owns the live quiz session, the last result, the durable
``UserProgress`` and the working question pool (curated bank plus cached AI
questions). Status moves ``IDLE -> IN_PROGRESS -> COMPLETED`` and back to
``IDLE`` on :meth:`QuizStore.reset`.

Progress is written through to storage before any mutating method returns.
"""

from __future__ import annotations

import enum
import logging
import uuid
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .bank import QuestionBank, load_default_bank
from .engine import calculate_score, check_answer
from .models import CategoryStat, Question, QuizResult, QuizSession, UserProgress
from .storage import (
    JsonFileStorage,
    is_ai_question,
    load_ai_questions,
    load_progress,
    save_ai_questions,
    save_progress,
)
from .utils import utc_now

__all__ = [
    "QuizStatus",
    "QuizStore",
]

_LOGGER = logging.getLogger(__name__)

class QuizStatus(enum.Enum):
    IDLE = "idle"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


def _new_session_id() -> str:
    return uuid.uuid4().hex


class QuizStore:
    def __init__(
        self,
        storage: JsonFileStorage,
        bank: Optional[QuestionBank] = None,
        *,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = _new_session_id,
    ) -> None:
        self._storage = storage
        self._bank = bank
        self._clock = clock
        self._id_factory = id_factory

        self.status = QuizStatus.IDLE
        self.current_session: Optional[QuizSession] = None
        self.last_result: Optional[QuizResult] = None
        self.progress: UserProgress = load_progress(storage) or UserProgress()
        self._ai_questions: List[Question] = load_ai_questions(storage)
        self.questions: List[Question] = []

    @property
    def bank(self) -> QuestionBank:
        if self._bank is None:
            self._bank = load_default_bank()
        return self._bank

    def _set_status(self, status: QuizStatus) -> None:
        if status is not self.status:
            _LOGGER.debug(
                "Quiz status change",
                extra={"from": self.status.value, "to": status.value},
            )
        self.status = status

    # Session lifecycle -------------------------------------------------

    def start_quiz(
        self, category: str, difficulty: str, questions: Iterable[Question]
    ) -> Optional[QuizSession]:
        items = tuple(questions)
        self.last_result = None
        if not items:
            self.current_session = None
            self._set_status(QuizStatus.IDLE)
            return None

        self.current_session = QuizSession(
            id=self._id_factory(),
            category=category,
            difficulty=difficulty,
            questions=items,
            answers=[None] * len(items),
            started_at=self._clock(),
        )
        self._set_status(QuizStatus.IN_PROGRESS)
        return self.current_session

    def answer_question(self, answer: int) -> None:
        """Record ``answer`` for the current question without advancing.

        Ignored unless a quiz is in progress and ``answer`` is an int in 0..3.
        """

        session = self.current_session
        if session is None or self.status is not QuizStatus.IN_PROGRESS:
            return
        if not isinstance(answer, int) or isinstance(answer, bool):
            return
        if not 0 <= answer <= 3:
            return
        session.answers[session.current_index] = answer

    def next_question(self) -> None:
        session = self.current_session
        if session is None:
            return
        session.current_index = min(
            session.current_index + 1, len(session.questions) - 1
        )

    def previous_question(self) -> None:
        session = self.current_session
        if session is None:
            return
        session.current_index = max(session.current_index - 1, 0)

    def current_question(self) -> Optional[Question]:
        session = self.current_session
        if session is None:
            return None
        return session.current

    def score(self) -> Tuple[int, int]:
        session = self.current_session
        if session is None:
            return 0, 0
        correct = sum(
            1
            for answer, question in zip(session.answers, session.questions)
            if check_answer(question, answer)
        )
        return correct, len(session.questions)

    def finish_quiz(self) -> Optional[QuizResult]:
        """Score the live session and fold it into progress.

        Only acts while a quiz is in progress; otherwise returns the last
        result unchanged so a session is never counted twice.
        """

        session = self.current_session
        if session is None or self.status is not QuizStatus.IN_PROGRESS:
            return self.last_result

        session.completed_at = self._clock()
        result = calculate_score(session.answers, session.questions)

        updated = self.progress.copy()
        updated.total_quizzes += 1
        updated.total_correct += result.correct_answers
        updated.total_questions += result.total_questions
        for category, score in result.category_breakdown.items():
            current = updated.category_stats.get(category, CategoryStat())
            updated.category_stats[category] = current.add(
                score.correct, score.total
            )
        wrong_ids = [
            question.id
            for answer, question in zip(session.answers, session.questions)
            if not check_answer(question, answer)
        ]
        updated.wrong_questions = list(
            dict.fromkeys([*updated.wrong_questions, *wrong_ids])
        )
        self._touch_study_day(updated)
        self._commit_progress(updated)

        self.last_result = result
        self._set_status(QuizStatus.COMPLETED)
        _LOGGER.info(
            "Quiz finished",
            extra={
                "session": session.id,
                "correct": result.correct_answers,
                "total": result.total_questions,
            },
        )
        return result

    def reset(self) -> None:
        self.current_session = None
        self.last_result = None
        self._set_status(QuizStatus.IDLE)

    # Progress ----------------------------------------------------------

    def record_result(self, correct: int, total: int, category: str) -> None:
        """Fold an externally scored result straight into progress."""

        updated = self.progress.copy()
        updated.total_quizzes += 1
        updated.total_correct += correct
        updated.total_questions += total
        current = updated.category_stats.get(category, CategoryStat())
        updated.category_stats[category] = current.add(correct, total)
        self._touch_study_day(updated)
        self._commit_progress(updated)

    def add_wrong_question(self, question_id: str) -> None:
        if question_id in self.progress.wrong_questions:
            return
        updated = self.progress.copy()
        updated.wrong_questions.append(question_id)
        self._commit_progress(updated)

    def remove_wrong_question(self, question_id: str) -> None:
        if question_id not in self.progress.wrong_questions:
            return
        updated = self.progress.copy()
        updated.wrong_questions.remove(question_id)
        self._commit_progress(updated)

    def category_accuracy(self, category: str) -> int:
        stat = self.progress.category_stats.get(category)
        if stat is None or stat.total == 0:
            return 0
        return round(stat.correct / stat.total * 100)

    def _touch_study_day(self, progress: UserProgress) -> None:
        today = self._clock().date().isoformat()
        if progress.last_study_date != today:
            progress.study_days += 1
            progress.last_study_date = today

    def _commit_progress(self, progress: UserProgress) -> None:
        save_progress(self._storage, progress)
        self.progress = progress

    # Question pool -----------------------------------------------------

    def load_questions(self) -> List[Question]:
        """Populate the working pool from the bank and the AI cache."""

        loaded = self.bank.get_all_questions()
        known = {question.id for question in loaded}
        for question in self._ai_questions:
            if question.id not in known:
                loaded.append(question)
                known.add(question.id)
        self.questions = loaded
        _LOGGER.debug(
            "Loaded working questions", extra={"count": len(loaded)}
        )
        return list(loaded)

    def add_ai_generated_question(self, question: Question) -> None:
        self.add_ai_generated_questions([question])

    def add_ai_generated_questions(self, questions: Iterable[Question]) -> None:
        incoming = list(questions)
        if not incoming:
            return
        replaced = {question.id for question in incoming}
        cached = [q for q in self._ai_questions if q.id not in replaced]
        cached.extend(q for q in incoming if is_ai_question(q))
        save_ai_questions(self._storage, cached)

        self._ai_questions = cached
        pool = [q for q in self.questions if q.id not in replaced]
        pool.extend(incoming)
        self.questions = pool

    def get_wrong_questions(self) -> List[Question]:
        by_id: Dict[str, Question] = {q.id: q for q in self.questions}
        return [
            by_id[question_id]
            for question_id in self.progress.wrong_questions
            if question_id in by_id
        ]
