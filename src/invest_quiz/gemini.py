"""Gateway to the Gemini ``generateContent`` REST API.

Every call runs a small state machine::

    IDLE -> CALLING -> SUCCESS
                    -> RETRY_WAIT -> CALLING   (HTTP 429 only)
                    -> FAILED

Rate-limited calls back off exponentially (``base * 2**n``) up to the retry
budget; every other failure ends the call immediately. Generated questions
are validated as a batch: one bad item rejects all of them.
"""

from __future__ import annotations

import enum
import json
import logging
import re
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

import requests

from .core.config import GeminiConfig, default_config
from .errors import (
    ApiError,
    EmptyResponseError,
    MalformedResponseError,
    MaxRetriesReachedError,
    NetworkError,
    ValidationError,
)
from .models import Question, UserProgress, WeaknessAnalysis
from .utils import utc_now
from .validation import check_generated_quality, validate_question

__all__ = [
    "CallState",
    "RetryPolicy",
    "RetryState",
    "GeminiGateway",
]

_LOGGER = logging.getLogger(__name__)

_RATE_LIMITED = 429
_LOG_SNIPPET = 500

_FENCE_RE = re.compile(r"```(?:json)?[ \t]*\n?(.*?)(?:```|$)", re.DOTALL)


class CallState(enum.Enum):
    IDLE = "idle"
    CALLING = "calling"
    RETRY_WAIT = "retry_wait"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class RetryPolicy:
    """Retry bound and exponential delay schedule for rate-limited calls."""

    max_retries: int = 3
    base_delay: float = 1.0

    def delay_for(self, retry_index: int) -> float:
        return self.base_delay * (2 ** retry_index)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


@dataclass
class RetryState:
    """Tracks one call's progress through the retry state machine."""

    policy: RetryPolicy
    state: CallState = CallState.IDLE
    attempts: int = 0
    delays: List[float] = field(default_factory=list)

    def begin_attempt(self) -> None:
        self.state = CallState.CALLING
        self.attempts += 1

    def can_retry(self) -> bool:
        return self.attempts < self.policy.max_attempts

    def schedule_retry(self) -> float:
        delay = self.policy.delay_for(self.attempts - 1)
        self.delays.append(delay)
        self.state = CallState.RETRY_WAIT
        return delay

    def succeed(self) -> None:
        self.state = CallState.SUCCESS

    def fail(self) -> None:
        self.state = CallState.FAILED


class GeminiGateway:
    """Blocking client for question generation and study feedback.

    ``api_key_provider`` is called on every request so a key saved mid-run is
    picked up. ``session`` only needs a ``requests``-style ``post`` method and
    ``sleep`` receives backoff delays in seconds.
    """

    def __init__(
        self,
        api_key_provider: Callable[[], str],
        config: Optional[GeminiConfig] = None,
        *,
        session: Any = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._api_key_provider = api_key_provider
        self._config = config or default_config().gemini
        self._session = session
        self._sleep = sleep
        self._clock = clock
        self.last_call: Optional[RetryState] = None

    @property
    def config(self) -> GeminiConfig:
        return self._config

    def _http(self) -> Any:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def _request_body(self, prompt: str) -> Dict[str, Any]:
        cfg = self._config
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": cfg.temperature,
                "topK": cfg.top_k,
                "topP": cfg.top_p,
                "maxOutputTokens": cfg.max_output_tokens,
            },
        }

    def call_api(self, prompt: str, max_retries: Optional[int] = None) -> str:
        """Send ``prompt`` and return the first candidate's text."""

        api_key = self._api_key_provider()
        policy = RetryPolicy(
            max_retries=(
                self._config.max_retries if max_retries is None else max_retries
            ),
            base_delay=self._config.backoff_base_seconds,
        )
        tracker = RetryState(policy)
        self.last_call = tracker
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": api_key,
        }
        body = self._request_body(prompt)

        while True:
            tracker.begin_attempt()
            _LOGGER.debug(
                "Calling Gemini",
                extra={
                    "model": self._config.model,
                    "attempt": tracker.attempts,
                },
            )
            try:
                response = self._http().post(
                    self._config.url,
                    headers=headers,
                    json=body,
                    timeout=self._config.request_timeout_seconds,
                )
            except requests.RequestException as exc:
                tracker.fail()
                _LOGGER.error(
                    "Gemini request failed", extra={"error": str(exc)}
                )
                raise NetworkError(f"Gemini request failed: {exc}") from exc

            status = response.status_code
            if status == _RATE_LIMITED:
                if tracker.can_retry():
                    delay = tracker.schedule_retry()
                    _LOGGER.warning(
                        "Gemini rate limited; backing off",
                        extra={"attempt": tracker.attempts, "delay": delay},
                    )
                    self._sleep(delay)
                    continue
                tracker.fail()
                raise MaxRetriesReachedError(tracker.attempts)

            if not 200 <= status < 300:
                tracker.fail()
                _LOGGER.error(
                    "Gemini API error",
                    extra={"status": status, "body": response.text[:_LOG_SNIPPET]},
                )
                raise ApiError(status, response.text)

            try:
                payload = response.json()
            except ValueError as exc:
                tracker.fail()
                raise MalformedResponseError(
                    "Gemini API returned a non-JSON body"
                ) from exc

            try:
                text = _first_candidate_text(payload)
            except EmptyResponseError:
                tracker.fail()
                raise
            tracker.succeed()
            return text

    def generate_questions(
        self, category: str, difficulty: str, count: int
    ) -> List[Question]:
        """Generate ``count`` new questions, all validated or none returned."""

        raw = self.call_api(_questions_prompt(category, difficulty, count))
        text = _slice_between(_strip_code_fences(raw), "[", "]")
        payload = _parse_json(text, context="generate_questions")
        if not isinstance(payload, list) or not payload:
            raise MalformedResponseError(
                "Gemini response is not a non-empty JSON array of questions"
            )

        stamp_ms = int(self._clock().timestamp() * 1000)
        records: List[Dict[str, Any]] = []
        for index, item in enumerate(payload):
            if not isinstance(item, Mapping):
                raise MalformedResponseError(
                    f"Generated item {index} is not a JSON object"
                )
            record = dict(item)
            if not record.get("id"):
                record["id"] = f"ai-{category}-{difficulty}-{stamp_ms}-{index}"
            if not record.get("category"):
                record["category"] = category
            if not record.get("difficulty"):
                record["difficulty"] = difficulty
            validate_question(record)
            check_generated_quality(record)
            records.append(record)

        seen: set[str] = set()
        for record in records:
            if record["id"] in seen:
                raise ValidationError(
                    f"Duplicate question ID found: {record['id']}"
                )
            seen.add(record["id"])

        created = self._clock()
        questions = [
            replace(
                Question.from_dict(record),
                ai_generated=True,
                created_at=created,
            )
            for record in records
        ]
        _LOGGER.info(
            "Generated questions",
            extra={
                "category": category,
                "difficulty": difficulty,
                "count": len(questions),
            },
        )
        return questions

    def enhance_explanation(self, question: Question) -> str:
        text = self.call_api(_explanation_prompt(question)).strip()
        if not text:
            raise EmptyResponseError("Gemini returned an empty explanation")
        return text

    def analyze_weakness(self, progress: UserProgress) -> WeaknessAnalysis:
        raw = self.call_api(_weakness_prompt(progress))
        text = _slice_between(_strip_code_fences(raw), "{", "}")
        payload = _parse_json(text, context="analyze_weakness")
        try:
            return WeaknessAnalysis.from_dict(payload)
        except ValidationError as exc:
            raise MalformedResponseError(str(exc)) from exc


def _first_candidate_text(payload: Any) -> str:
    candidates = payload.get("candidates") if isinstance(payload, Mapping) else None
    if not isinstance(candidates, list) or not candidates:
        raise EmptyResponseError("No response from Gemini API")
    first = candidates[0]
    content = first.get("content") if isinstance(first, Mapping) else None
    parts = content.get("parts") if isinstance(content, Mapping) else None
    if isinstance(parts, list):
        for part in parts:
            if isinstance(part, Mapping) and isinstance(part.get("text"), str):
                return part["text"]
    raise EmptyResponseError("Gemini candidate contained no text")


def _strip_code_fences(text: str) -> str:
    stripped = text.strip()
    match = _FENCE_RE.search(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def _slice_between(text: str, opener: str, closer: str) -> str:
    start = text.find(opener)
    end = text.rfind(closer)
    if start != -1 and end > start:
        return text[start : end + 1]
    return text


def _parse_json(text: str, *, context: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        _LOGGER.error(
            "Failed to parse Gemini JSON",
            extra={
                "context": context,
                "error": str(exc),
                "head": text[:_LOG_SNIPPET],
                "tail": text[-_LOG_SNIPPET:],
            },
        )
        raise MalformedResponseError(
            f"Failed to parse Gemini API response as JSON: {exc}"
        ) from exc


def _questions_prompt(category: str, difficulty: str, count: int) -> str:
    return f"""You are an investment education expert. Write {count} investment quiz questions.

Requirements:
- Category: {category}
- Difficulty: {difficulty}
- Format: multiple choice with exactly 4 choices
- Every question includes an explanation
- Questions are for education only and are not investment advice

Return a JSON array in this format:
[
  {{
    "id": "ai-generated-unique-id",
    "category": "{category}",
    "difficulty": "{difficulty}",
    "question": "Question text",
    "choices": ["Choice 1", "Choice 2", "Choice 3", "Choice 4"],
    "correctAnswer": 0,
    "explanation": "Explanation text"
  }}
]

Rules:
- Output valid RFC 8259 JSON only, with double-quoted property names
- No trailing commas
- Escape newlines and double quotes inside strings
- Do not add any text outside the JSON"""


def _explanation_prompt(question: Question) -> str:
    return f"""Rewrite the explanation of this investment quiz question so a beginner can follow it.
Define technical terms and use a concrete example.

Question: {question.question}
Correct answer: {question.correct_choice}
Current explanation: {question.explanation}

Write a more detailed, easy-to-understand explanation. Markdown is fine."""


def _weakness_prompt(progress: UserProgress) -> str:
    ranked = sorted(
        progress.category_stats.items(), key=lambda item: item[1].accuracy
    )
    stats_text = "\n".join(
        f"{name}: {stat.correct}/{stat.total} correct ({round(stat.accuracy)}%)"
        for name, stat in ranked
    )
    return f"""You are an investment education expert. Analyse this learner's study data and give advice on their weak points.

Study statistics:
- Quizzes taken: {progress.total_quizzes}
- Correct answers: {progress.total_correct}/{progress.total_questions}
- Overall accuracy: {round(progress.accuracy)}%
- Study days: {progress.study_days}
- Questions answered wrongly: {len(progress.wrong_questions)}

Accuracy by category:
{stats_text}

Return the analysis as JSON in this format:
{{
  "weakestCategory": "Category with the lowest accuracy",
  "analysis": "Detailed analysis of the weakness (2-3 sentences)",
  "advice": "Concrete study advice (3-4 sentences)",
  "recommendedTopics": ["Topic 1", "Topic 2", "Topic 3"]
}}

Rules:
- Return JSON only, without prose or code fences
- Keep every string on one line
- Escape double quotes inside strings
- Output must be valid JSON"""
