from __future__ import annotations

from pathlib import Path

import pytest

from invest_quiz.core import config as config_mod


def _write_config(path: Path, content: str) -> Path:
    path.write_text(content.strip() + "\n", encoding="utf-8")
    return path


def test_defaults_without_any_file(tmp_path):
    config = config_mod.load_config(env={}, config_dir=tmp_path)

    assert config.source is None
    assert config.gemini.model == "gemini-2.5-flash"
    assert config.gemini.url.endswith(
        "/v1beta/models/gemini-2.5-flash:generateContent"
    )
    assert config.gemini.max_retries == 3
    assert config.gemini.backoff_base_seconds == 1.0
    assert config.quiz.question_count == 10
    assert config.logging.level == "INFO"
    assert config == config_mod.default_config()


def test_partial_override_merges_with_defaults(tmp_path):
    path = _write_config(
        tmp_path / "custom.toml",
        """
[gemini]
model = "gemini-pro"
max_retries = 0

[logging]
level = "debug"
""",
    )

    config = config_mod.load_config(path, env={})

    assert config.source == path
    assert config.gemini.model == "gemini-pro"
    assert config.gemini.max_retries == 0
    assert config.gemini.temperature == pytest.approx(0.7)
    assert config.logging.level == "DEBUG"
    assert config.quiz.review_count == 10


def test_config_dir_file_is_discovered(tmp_path):
    _write_config(
        tmp_path / config_mod.CONFIG_FILENAME,
        """
[quiz]
question_count = 5
""",
    )

    config = config_mod.load_config(env={}, config_dir=tmp_path)

    assert config.quiz.question_count == 5
    assert config.source == tmp_path / config_mod.CONFIG_FILENAME


def test_environment_variable_beats_config_dir(tmp_path):
    _write_config(
        tmp_path / config_mod.CONFIG_FILENAME, "[quiz]\nquestion_count = 5"
    )
    env_file = _write_config(
        tmp_path / "env.toml", "[quiz]\nquestion_count = 7"
    )

    config = config_mod.load_config(
        env={config_mod.CONFIG_PATH_ENV: str(env_file)}, config_dir=tmp_path
    )

    assert config.quiz.question_count == 7


def test_missing_explicit_or_env_file_errors(tmp_path):
    with pytest.raises(config_mod.ConfigError, match="not found"):
        config_mod.load_config(tmp_path / "absent.toml", env={})

    with pytest.raises(config_mod.ConfigError, match=config_mod.CONFIG_PATH_ENV):
        config_mod.load_config(
            env={config_mod.CONFIG_PATH_ENV: str(tmp_path / "absent.toml")}
        )


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("[gemini\nmodel = 1", "Failed to parse"),
        ("[extras]\nfoo = 1", "Unknown configuration key 'extras'"),
        ("[gemini]\nseed = 1", "Unknown configuration key 'gemini.seed'"),
        ("gemini = 3", "Expected table for 'gemini'"),
        ("[gemini]\ntemperature = 3.5", "gemini.temperature"),
        ("[gemini]\ntop_p = -0.1", "gemini.top_p"),
        ("[gemini]\nmax_retries = -1", "gemini.max_retries"),
        ("[gemini]\ntop_k = true", "gemini.top_k"),
        ("[gemini]\nmodel = '  '", "gemini.model"),
        ("[gemini]\nendpoint = 'https://example.com'", "placeholder"),
        ("[quiz]\nquestion_count = 0", "quiz.question_count"),
        ("[logging]\nlevel = 'LOUD'", "logging.level"),
        ("[logging]\nverbose = 'yes'", "logging.verbose"),
    ],
)
def test_invalid_config_values(tmp_path, content, message):
    path = _write_config(tmp_path / "bad.toml", content)

    with pytest.raises(config_mod.ConfigError, match=message):
        config_mod.load_config(path, env={})


def test_write_config_template_round_trips(tmp_path):
    target = tmp_path / "nested" / config_mod.CONFIG_FILENAME

    written = config_mod.write_config_template(target)

    assert written == target
    assert config_mod.load_config(target, env={}).gemini == (
        config_mod.default_config().gemini
    )
    with pytest.raises(config_mod.ConfigError, match="already exists"):
        config_mod.write_config_template(target)
    config_mod.write_config_template(target, overwrite=True)
