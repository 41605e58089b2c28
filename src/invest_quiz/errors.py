"""Exception hierarchy shared across invest_quiz modules."""

from __future__ import annotations

__all__ = [
    "QuizError",
    "ValidationError",
    "QualityGateError",
    "DuplicateChoicesError",
    "ChoiceTooShortError",
    "ChoiceTooLongError",
    "QuestionTooShortError",
    "QuestionTooLongError",
    "ExplanationTooShortError",
    "InvalidCountError",
    "InsufficientPoolError",
    "LengthMismatchError",
    "GatewayError",
    "MissingApiKeyError",
    "NetworkError",
    "ApiError",
    "MaxRetriesReachedError",
    "EmptyResponseError",
    "MalformedResponseError",
    "StorageError",
]


class QuizError(RuntimeError):
    """Base class for every error raised by invest_quiz."""


class ValidationError(QuizError, ValueError):
    """Raised when question, session or progress data is malformed."""


class QualityGateError(ValidationError):
    """Raised when a generated question fails a quality check."""


class DuplicateChoicesError(QualityGateError):
    pass


class ChoiceTooShortError(QualityGateError):
    pass


class ChoiceTooLongError(QualityGateError):
    pass


class QuestionTooShortError(QualityGateError):
    pass


class QuestionTooLongError(QualityGateError):
    pass


class ExplanationTooShortError(QualityGateError):
    pass


class InvalidCountError(QuizError, ValueError):
    """Raised when a requested question count is not a positive integer."""


class InsufficientPoolError(QuizError, ValueError):
    """Raised when fewer questions match the filters than were requested."""

    def __init__(self, requested: int, available: int) -> None:
        super().__init__(
            f"Not enough questions: requested {requested}, "
            f"only {available} available"
        )
        self.requested = requested
        self.available = available


class LengthMismatchError(QuizError, ValueError):
    """Raised when answers and questions differ in length."""


class GatewayError(QuizError):
    """Base class for failures talking to the generative API."""


class MissingApiKeyError(GatewayError):
    """Raised when no Gemini API key is configured anywhere."""


class NetworkError(GatewayError):
    """Raised when the request never produced an HTTP response."""


class ApiError(GatewayError):
    """Raised for non-retryable HTTP error responses."""

    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"Gemini API error: {status}. Details: {body}")
        self.status = status
        self.body = body


class MaxRetriesReachedError(GatewayError):
    """Raised when rate limiting persists past the retry budget."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Max retries reached after {attempts} attempts")
        self.attempts = attempts


class EmptyResponseError(GatewayError):
    """Raised when the API answered without any usable text."""


class MalformedResponseError(GatewayError):
    """Raised when generated text cannot be parsed into the expected shape."""


class StorageError(QuizError):
    """Raised when a record cannot be written to the local data store."""
