"""Gemini API key management."""

from __future__ import annotations

import os
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import MissingApiKeyError, ValidationError
from .storage import API_KEY_KEY, JsonFileStorage, load_settings

__all__ = [
    "ENV_KEYS",
    "save_api_key",
    "load_api_key",
    "clear_api_key",
    "has_api_key",
    "mask_api_key",
    "resolve_api_key",
]

ENV_KEYS = ("GEMINI_API_KEY", "GOOGLE_API_KEY")


def save_api_key(storage: JsonFileStorage, key: str) -> None:
    if not key or not key.strip():
        raise ValidationError("API key cannot be empty")
    storage.set_item(API_KEY_KEY, key.strip())


def load_api_key(storage: JsonFileStorage) -> Optional[str]:
    key = storage.get_item(API_KEY_KEY)
    if not key or not key.strip():
        return None
    return key


def clear_api_key(storage: JsonFileStorage) -> None:
    storage.remove_item(API_KEY_KEY)


def has_api_key(storage: JsonFileStorage) -> bool:
    return load_api_key(storage) is not None


def mask_api_key(key: str) -> str:
    """Return a display-safe form of ``key``.

    >>> mask_api_key("AIzaSyExample1234")
    'AIza***...***1234'
    >>> mask_api_key("abc12")
    '***c12'
    """

    if not key:
        return ""
    if len(key) < 8:
        return "***" + key[-3:]
    return f"{key[:4]}***...***{key[-4:]}"


def resolve_api_key(
    storage: JsonFileStorage, env: Mapping[str, str] | None = None
) -> str:
    """Find the key to use for Gemini calls.

    Stored secrets win over the environment. When ``env`` is omitted the
    process environment is used after loading any ``.env`` file.
    """

    stored = load_api_key(storage)
    if stored:
        return stored.strip()

    settings = load_settings(storage)
    if settings is not None and settings.gemini_api_key:
        if settings.gemini_api_key.strip():
            return settings.gemini_api_key.strip()

    if env is None:
        load_dotenv()
        env = os.environ
    for name in ENV_KEYS:
        value = (env.get(name) or "").strip()
        if value:
            return value

    raise MissingApiKeyError(
        "Gemini API key is not configured. Run "
        "'invest-quiz settings set-key <KEY>' or set the GEMINI_API_KEY "
        "environment variable."
    )
