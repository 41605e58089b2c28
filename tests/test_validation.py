from __future__ import annotations

import pytest

from fixtures import make_question, question_payload

from invest_quiz.errors import (
    ChoiceTooLongError,
    ChoiceTooShortError,
    DuplicateChoicesError,
    ExplanationTooShortError,
    QuestionTooLongError,
    QuestionTooShortError,
    ValidationError,
)
from invest_quiz.validation import (
    check_generated_quality,
    validate_question,
    validate_question_bank,
)


@pytest.mark.parametrize(
    ("override", "message"),
    [
        ({"id": ""}, "Question ID is required"),
        ({"category": "  "}, "Question category is required"),
        ({"question": ""}, "Question text is required"),
        ({"choices": ["a", "b", "c"]}, "Question must have exactly 4 choices"),
        ({"choices": "abcd"}, "Question must have exactly 4 choices"),
        ({"choices": ["a", " ", "c", "d"]}, "All choices must be non-empty"),
        ({"correctAnswer": 4}, "Correct answer index must be between 0 and 3"),
        ({"correctAnswer": "1"}, "Correct answer index must be between 0 and 3"),
        ({"explanation": ""}, "Explanation is required"),
        (
            {"difficulty": "expert"},
            "Difficulty must be beginner, intermediate, or advanced",
        ),
    ],
)
def test_validate_question_reports_violation(override, message):
    with pytest.raises(ValidationError) as excinfo:
        validate_question(question_payload(**override))
    assert str(excinfo.value) == message


def test_validate_question_reports_first_violation_only():
    payload = question_payload(id="", explanation="", difficulty="expert")
    with pytest.raises(ValidationError, match="Question ID is required"):
        validate_question(payload)


def test_validate_question_accepts_record_and_mapping():
    validate_question(make_question())
    validate_question(question_payload())


def test_validate_question_bank_rejects_empty():
    with pytest.raises(ValidationError, match="Question bank cannot be empty"):
        validate_question_bank([])


def test_validate_question_bank_reports_first_duplicate():
    bank = [
        make_question("a"),
        make_question("b"),
        make_question("a"),
        make_question("b"),
    ]
    with pytest.raises(ValidationError) as excinfo:
        validate_question_bank(bank)
    assert str(excinfo.value) == "Duplicate question ID found: a"


def test_validate_question_bank_validates_items_before_duplicates():
    bank = [make_question("a"), make_question("a"), make_question("")]
    with pytest.raises(ValidationError, match="Question ID is required"):
        validate_question_bank(bank)


@pytest.mark.parametrize(
    ("override", "error"),
    [
        (
            {"choices": ["Stocks", "stocks ", "Bonds", "Cash"]},
            DuplicateChoicesError,
        ),
        ({"choices": ["A", "Bonds", "Cash", "Gold"]}, ChoiceTooShortError),
        ({"choices": ["x" * 201, "Bonds", "Cash", "Gold"]}, ChoiceTooLongError),
        ({"question": "Short?"}, QuestionTooShortError),
        ({"question": "q" * 501}, QuestionTooLongError),
        ({"explanation": "Too short"}, ExplanationTooShortError),
    ],
)
def test_check_generated_quality_gates(override, error):
    with pytest.raises(error) as excinfo:
        check_generated_quality(question_payload("ai-7", **override))
    assert "Question ID ai-7" in str(excinfo.value)
    assert isinstance(excinfo.value, ValidationError)


def test_check_generated_quality_reports_choice_index():
    payload = question_payload(choices=["Bonds", "Cash", "X", "Gold"])
    with pytest.raises(ChoiceTooShortError, match="Choice 2 is too short"):
        check_generated_quality(payload)


def test_check_generated_quality_passes_valid_question():
    check_generated_quality(make_question())
