from __future__ import annotations

import pytest

from invest_quiz import credentials
from invest_quiz.credentials import (
    clear_api_key,
    has_api_key,
    load_api_key,
    mask_api_key,
    resolve_api_key,
    save_api_key,
)
from invest_quiz.errors import MissingApiKeyError, ValidationError
from invest_quiz.models import AppSettings
from invest_quiz.storage import API_KEY_KEY, save_settings


@pytest.mark.parametrize(
    ("key", "masked"),
    [
        ("", ""),
        ("abc", "***abc"),
        ("abcdefg", "***efg"),
        ("abcdefgh", "abcd***...***efgh"),
        ("AIzaSyExample1234", "AIza***...***1234"),
    ],
)
def test_mask_api_key(key, masked):
    assert mask_api_key(key) == masked


def test_save_api_key_trims_and_persists(storage):
    save_api_key(storage, "  secret-key  ")
    assert storage.get_item(API_KEY_KEY) == "secret-key"
    assert load_api_key(storage) == "secret-key"
    assert has_api_key(storage)


@pytest.mark.parametrize("value", ["", "   "])
def test_save_api_key_rejects_blank(storage, value):
    with pytest.raises(ValidationError, match="API key cannot be empty"):
        save_api_key(storage, value)
    assert not has_api_key(storage)


def test_load_api_key_treats_blank_record_as_absent(storage):
    storage.set_item(API_KEY_KEY, "  ")
    assert load_api_key(storage) is None


def test_clear_api_key(storage):
    save_api_key(storage, "secret")
    clear_api_key(storage)
    assert load_api_key(storage) is None
    clear_api_key(storage)


def test_resolve_prefers_stored_key(storage):
    save_api_key(storage, "stored")
    save_settings(storage, AppSettings(gemini_api_key="from-settings"))
    assert resolve_api_key(storage, env={"GEMINI_API_KEY": "env"}) == "stored"


def test_resolve_falls_back_to_settings_then_env(storage):
    save_settings(storage, AppSettings(gemini_api_key="from-settings"))
    assert resolve_api_key(storage, env={}) == "from-settings"

    save_settings(storage, AppSettings())
    assert resolve_api_key(storage, env={"GEMINI_API_KEY": " env "}) == "env"
    assert resolve_api_key(storage, env={"GOOGLE_API_KEY": "google"}) == "google"


def test_resolve_without_any_key_raises(storage):
    with pytest.raises(MissingApiKeyError, match="settings set-key"):
        resolve_api_key(storage, env={"GEMINI_API_KEY": ""})


def test_resolve_reads_process_environment(storage, monkeypatch):
    loaded = []
    monkeypatch.setattr(credentials, "load_dotenv", lambda: loaded.append(True))
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("GOOGLE_API_KEY", "process-key")

    assert resolve_api_key(storage) == "process-key"
    assert loaded == [True]
