"""Local key-value persistence for progress, settings and cached AI questions.

``JsonFileStorage`` mirrors the browser local-storage contract: string values
addressed by string keys, with a missing key reading as ``None``. Each key is
one file under the storage directory, replaced atomically on write.

Typed helpers on top of it treat anything unreadable or structurally invalid
as absent.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional

from .errors import StorageError, ValidationError
from .models import (
    AppSettings,
    Question,
    UserProgress,
    is_app_settings,
    is_question,
    is_user_progress,
)
from .validation import check_generated_quality, validate_question

__all__ = [
    "PROGRESS_KEY",
    "SETTINGS_KEY",
    "AI_QUESTIONS_KEY",
    "API_KEY_KEY",
    "AI_ID_PREFIX",
    "JsonFileStorage",
    "is_ai_question",
    "load_progress",
    "save_progress",
    "load_settings",
    "save_settings",
    "load_ai_questions",
    "save_ai_questions",
    "clear_storage",
]

_LOGGER = logging.getLogger(__name__)

PROGRESS_KEY = "investment-quiz-progress"
SETTINGS_KEY = "investment-quiz-settings"
AI_QUESTIONS_KEY = "investment-quiz-ai-questions"
API_KEY_KEY = "gemini_api_key"

AI_ID_PREFIX = "ai-"


def is_ai_question(question: Question) -> bool:
    return question.ai_generated or question.id.startswith(AI_ID_PREFIX)


class JsonFileStorage:
    """String key-value store backed by one file per key."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self._root / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        target = self.path_for(key)
        try:
            return target.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            _LOGGER.warning(
                "Failed to read storage item",
                extra={"key": key, "error": str(exc)},
            )
            return None

    def set_item(self, key: str, value: str) -> None:
        target = self.path_for(key)
        try:
            _atomic_write_text(target, value)
        except OSError as exc:
            raise StorageError(
                f"Failed to write storage item '{key}': {exc}"
            ) from exc

    def remove_item(self, key: str) -> None:
        try:
            self.path_for(key).unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StorageError(
                f"Failed to remove storage item '{key}': {exc}"
            ) from exc


def _atomic_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        "w",
        delete=False,
        encoding="utf-8",
        dir=str(path.parent),
    )
    try:
        handle.write(text)
        handle.flush()
        os.fsync(handle.fileno())
    finally:
        handle.close()
    os.replace(handle.name, path)
    try:
        path.chmod(0o600)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass


def _read_json(storage: JsonFileStorage, key: str) -> Any:
    raw = storage.get_item(key)
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        _LOGGER.warning("Discarding unparsable storage item", extra={"key": key})
        return None


def _load_checked(
    storage: JsonFileStorage,
    key: str,
    check: Callable[[Any], bool],
) -> Any:
    payload = _read_json(storage, key)
    if payload is None or not check(payload):
        if storage.get_item(key) is not None:
            _LOGGER.warning(
                "Removing invalid storage item", extra={"key": key}
            )
            storage.remove_item(key)
        return None
    return payload


def _write_json(storage: JsonFileStorage, key: str, payload: Any) -> None:
    storage.set_item(key, json.dumps(payload, ensure_ascii=False, indent=2))


def load_progress(storage: JsonFileStorage) -> Optional[UserProgress]:
    payload = _load_checked(storage, PROGRESS_KEY, is_user_progress)
    if payload is None:
        return None
    return UserProgress.from_dict(payload)


def save_progress(storage: JsonFileStorage, progress: UserProgress) -> None:
    payload = progress.to_dict()
    if not is_user_progress(payload):
        raise ValidationError("Progress record failed consistency checks")
    _write_json(storage, PROGRESS_KEY, payload)


def load_settings(storage: JsonFileStorage) -> Optional[AppSettings]:
    payload = _load_checked(storage, SETTINGS_KEY, is_app_settings)
    if payload is None:
        return None
    return AppSettings.from_dict(payload)


def save_settings(storage: JsonFileStorage, settings: AppSettings) -> None:
    _write_json(storage, SETTINGS_KEY, settings.to_dict())


def load_ai_questions(storage: JsonFileStorage) -> List[Question]:
    """Return cached AI questions, skipping entries that are not usable.

    An entry is kept only if it is AI-tagged and passes both the structural
    validator and the generation quality gates. A corrupt cache is left in
    place and read as empty.
    """

    payload = _read_json(storage, AI_QUESTIONS_KEY)
    if payload is None:
        return []
    if not isinstance(payload, list):
        _LOGGER.warning(
            "Ignoring AI question cache that is not a list",
            extra={"key": AI_QUESTIONS_KEY},
        )
        return []
    questions: List[Question] = []
    skipped = 0
    for item in payload:
        question = _cached_question(item)
        if question is None:
            skipped += 1
        else:
            questions.append(question)
    if skipped:
        _LOGGER.warning(
            "Skipped invalid cached AI questions", extra={"skipped": skipped}
        )
    return questions


def _cached_question(item: Any) -> Optional[Question]:
    if not is_question(item):
        return None
    question = Question.from_dict(item)
    if not is_ai_question(question):
        return None
    try:
        validate_question(question)
        check_generated_quality(question)
    except ValidationError as exc:
        _LOGGER.debug(
            "Rejected cached AI question",
            extra={"id": question.id, "error": str(exc)},
        )
        return None
    return question


def save_ai_questions(
    storage: JsonFileStorage, questions: Iterable[Question]
) -> None:
    _write_json(
        storage,
        AI_QUESTIONS_KEY,
        [question.to_dict() for question in questions],
    )


def clear_storage(storage: JsonFileStorage) -> None:
    """Remove the progress and settings records."""

    storage.remove_item(PROGRESS_KEY)
    storage.remove_item(SETTINGS_KEY)
