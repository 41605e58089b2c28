from __future__ import annotations

import json
import logging

import pytest

from fixtures import make_question, question_payload

from invest_quiz.errors import ValidationError
from invest_quiz.models import AppSettings, CategoryStat, UserProgress
from invest_quiz.storage import (
    AI_QUESTIONS_KEY,
    PROGRESS_KEY,
    SETTINGS_KEY,
    clear_storage,
    load_ai_questions,
    load_progress,
    load_settings,
    save_ai_questions,
    save_progress,
    save_settings,
)


def test_get_item_missing_returns_none(storage):
    assert storage.get_item("nothing-here") is None


def test_set_get_remove_round_trip(storage):
    storage.set_item("greeting", "hello")
    assert storage.get_item("greeting") == "hello"
    assert storage.path_for("greeting").stat().st_mode & 0o777 == 0o600

    storage.remove_item("greeting")
    assert storage.get_item("greeting") is None
    storage.remove_item("greeting")


@pytest.mark.parametrize("key", ["", "../escape", "a/b", ".hidden"])
def test_path_for_rejects_unsafe_keys(storage, key):
    with pytest.raises(ValueError):
        storage.path_for(key)


def test_progress_round_trip(storage):
    progress = UserProgress(
        total_quizzes=1,
        total_correct=2,
        total_questions=3,
        category_stats={"Bonds": CategoryStat(2, 3)},
        study_days=1,
        last_study_date="2024-05-01",
        wrong_questions=["q3"],
    )
    save_progress(storage, progress)

    assert load_progress(storage) == progress
    raw = json.loads(storage.get_item(PROGRESS_KEY))
    assert raw["categoryStats"] == {"Bonds": {"correct": 2, "total": 3}}


def test_load_progress_absent(storage):
    assert load_progress(storage) is None


@pytest.mark.parametrize(
    "raw",
    [
        "{not json",
        json.dumps({"totalQuizzes": 1}),
        json.dumps(
            {
                "totalQuizzes": 1,
                "totalCorrect": 5,
                "totalQuestions": 3,
                "categoryStats": {},
                "studyDays": 1,
                "lastStudyDate": "",
                "wrongQuestions": [],
            }
        ),
    ],
)
def test_invalid_progress_is_removed(storage, raw, caplog):
    storage.set_item(PROGRESS_KEY, raw)

    with caplog.at_level(logging.WARNING, logger="invest_quiz.storage"):
        assert load_progress(storage) is None

    assert storage.get_item(PROGRESS_KEY) is None
    assert any("invalid storage item" in r.message for r in caplog.records)


def test_save_progress_rejects_invalid_record(storage):
    save_progress(storage, UserProgress(total_quizzes=1))
    before = storage.get_item(PROGRESS_KEY)

    with pytest.raises(ValidationError, match="consistency"):
        save_progress(storage, UserProgress(total_correct=5, total_questions=1))
    with pytest.raises(ValidationError):
        save_progress(storage, UserProgress(total_correct=1, total_questions=2))

    assert storage.get_item(PROGRESS_KEY) == before


def test_settings_round_trip_and_invalid(storage):
    settings = AppSettings(show_explanation_immediately=False)
    save_settings(storage, settings)
    assert load_settings(storage) == settings

    storage.set_item(SETTINGS_KEY, json.dumps({"shuffleChoices": "yes"}))
    assert load_settings(storage) is None
    assert storage.get_item(SETTINGS_KEY) is None


def test_ai_questions_round_trip(storage):
    questions = [make_question("ai-1"), make_question("ai-2")]
    save_ai_questions(storage, questions)
    assert load_ai_questions(storage) == questions


def test_ai_questions_skip_invalid_items(storage):
    storage.set_item(
        AI_QUESTIONS_KEY,
        json.dumps(
            [
                question_payload("ai-1"),
                question_payload("ai-2", correctAnswer=9),
                "junk",
            ]
        ),
    )
    assert [q.id for q in load_ai_questions(storage)] == ["ai-1"]


def test_ai_questions_drop_unusable_entries(storage):
    storage.set_item(
        AI_QUESTIONS_KEY,
        json.dumps(
            [
                question_payload("ai-1"),
                question_payload("ai-blank", explanation=""),
                question_payload(
                    "ai-dupes", choices=["Cash", "cash ", "Bonds", "Gold"]
                ),
                question_payload("bond-001"),
                question_payload("curated", aiGenerated=True),
            ]
        ),
    )

    assert [q.id for q in load_ai_questions(storage)] == ["ai-1", "curated"]


@pytest.mark.parametrize("raw", ["{corrupt", json.dumps({"id": "x"})])
def test_corrupt_ai_cache_reads_as_empty(storage, raw):
    storage.set_item(AI_QUESTIONS_KEY, raw)
    assert load_ai_questions(storage) == []
    assert storage.get_item(AI_QUESTIONS_KEY) == raw


def test_clear_storage_removes_progress_and_settings(storage):
    save_progress(storage, UserProgress())
    save_settings(storage, AppSettings())
    save_ai_questions(storage, [make_question("ai-1")])

    clear_storage(storage)

    assert storage.get_item(PROGRESS_KEY) is None
    assert storage.get_item(SETTINGS_KEY) is None
    assert storage.get_item(AI_QUESTIONS_KEY) is not None
