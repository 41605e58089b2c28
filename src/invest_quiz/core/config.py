"""TOML configuration for invest-quiz.

The config file is optional. When present its tables are merged over the
built-in defaults (unknown keys are rejected) and the result is validated into
frozen dataclasses.
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError as exc:  # pragma: no cover - should never happen
    raise RuntimeError("Python 3.11+ required for tomllib support") from exc

__all__ = [
    "CONFIG_PATH_ENV",
    "CONFIG_FILENAME",
    "ConfigError",
    "GeminiConfig",
    "QuizDefaults",
    "LoggingConfig",
    "QuizConfig",
    "load_config",
    "default_config",
    "write_config_template",
]


CONFIG_PATH_ENV = "INVEST_QUIZ_CONFIG"
CONFIG_FILENAME = "invest-quiz.toml"

DEFAULT_ENDPOINT = (
    "https://generativelanguage.googleapis.com/v1beta/models/"
    "{model}:generateContent"
)


class ConfigError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


@dataclass(frozen=True)
class GeminiConfig:
    model: str
    endpoint: str
    temperature: float
    top_k: int
    top_p: float
    max_output_tokens: int
    max_retries: int
    backoff_base_seconds: float
    request_timeout_seconds: int

    @property
    def url(self) -> str:
        return self.endpoint.format(model=self.model)


@dataclass(frozen=True)
class QuizDefaults:
    question_count: int
    review_count: int


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    verbose: bool


@dataclass(frozen=True)
class QuizConfig:
    gemini: GeminiConfig
    quiz: QuizDefaults
    logging: LoggingConfig
    source: Optional[Path] = None


_DEFAULTS: Dict[str, Any] = {
    "gemini": {
        "model": "gemini-2.5-flash",
        "endpoint": DEFAULT_ENDPOINT,
        "temperature": 0.7,
        "top_k": 40,
        "top_p": 0.95,
        "max_output_tokens": 8192,
        "max_retries": 3,
        "backoff_base_seconds": 1.0,
        "request_timeout_seconds": 60,
    },
    "quiz": {
        "question_count": 10,
        "review_count": 10,
    },
    "logging": {
        "level": "INFO",
        "verbose": False,
    },
}

_TEMPLATE = """\
# invest-quiz configuration
# Every key is optional; omitted keys keep their defaults.

[gemini]
model = "gemini-2.5-flash"
temperature = 0.7
top_k = 40
top_p = 0.95
max_output_tokens = 8192
# Rate-limited (HTTP 429) calls are retried this many times with
# exponential backoff: base, 2*base, 4*base, ...
max_retries = 3
backoff_base_seconds = 1.0
request_timeout_seconds = 60

[quiz]
question_count = 10
review_count = 10

[logging]
level = "INFO"
verbose = false
"""


def default_config() -> QuizConfig:
    return _build_config(copy.deepcopy(_DEFAULTS), source=None)


def load_config(
    path: Optional[Path] = None,
    *,
    env: Mapping[str, str] | None = None,
    config_dir: Optional[Path] = None,
) -> QuizConfig:
    """Load configuration from ``path``, ``$INVEST_QUIZ_CONFIG`` or the
    workspace config directory, falling back to defaults when none exists.
    """

    target = _resolve_path(path, env=env, config_dir=config_dir)
    tree = copy.deepcopy(_DEFAULTS)
    if target is None:
        return _build_config(tree, source=None)

    try:
        with target.open("rb") as handle:
            override = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse config TOML: {exc}") from exc
    _merge_dict(tree, override)
    return _build_config(tree, source=target)


def write_config_template(path: Path, *, overwrite: bool = False) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists() and not overwrite:
        raise ConfigError(f"Config already exists: {path}")
    path.write_text(_TEMPLATE, encoding="utf-8")
    return path


def _resolve_path(
    explicit: Optional[Path],
    *,
    env: Mapping[str, str] | None,
    config_dir: Optional[Path],
) -> Optional[Path]:
    if explicit is not None:
        if not explicit.is_file():
            raise ConfigError(f"Config file not found: {explicit}")
        return explicit
    env_map = os.environ if env is None else env
    from_env = (env_map.get(CONFIG_PATH_ENV) or "").strip()
    if from_env:
        candidate = Path(from_env).expanduser()
        if not candidate.is_file():
            raise ConfigError(
                f"{CONFIG_PATH_ENV} points to a missing file: {candidate}"
            )
        return candidate
    if config_dir is not None:
        candidate = config_dir / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def _merge_dict(
    base: MutableMapping[str, Any],
    override: Mapping[str, Any],
    *,
    path: str = "",
) -> None:
    for key, value in override.items():
        dotted = f"{path}{key}"
        if key not in base:
            raise ConfigError(f"Unknown configuration key '{dotted}'.")
        if isinstance(base[key], MutableMapping):
            if not isinstance(value, Mapping):
                raise ConfigError(
                    "Expected table for '{0}', found {1}.".format(
                        dotted, type(value).__name__
                    )
                )
            _merge_dict(base[key], value, path=f"{dotted}.")
        else:
            base[key] = value


def _require_positive_int(value: Any, *, field: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ConfigError(f"'{field}' must be a positive integer.")
    return value


def _require_non_negative_int(value: Any, *, field: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ConfigError(f"'{field}' must be a non-negative integer.")
    return value


def _require_float_range(
    value: Any, *, field: str, min_value: float, max_value: float
) -> float:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ConfigError(f"'{field}' must be a number.")
    number = float(value)
    if not (min_value <= number <= max_value):
        raise ConfigError(
            f"'{field}' must be between {min_value} and {max_value}."
        )
    return number


def _require_string(value: Any, *, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{field}' must be a non-empty string.")
    return value.strip()


def _require_bool(value: Any, *, field: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"'{field}' must be a boolean.")
    return value


def _build_gemini(section: Mapping[str, Any]) -> GeminiConfig:
    endpoint = _require_string(section.get("endpoint"), field="gemini.endpoint")
    if "{model}" not in endpoint:
        raise ConfigError("gemini.endpoint must contain a '{model}' placeholder.")
    return GeminiConfig(
        model=_require_string(section.get("model"), field="gemini.model"),
        endpoint=endpoint,
        temperature=_require_float_range(
            section.get("temperature"),
            field="gemini.temperature",
            min_value=0.0,
            max_value=2.0,
        ),
        top_k=_require_positive_int(section.get("top_k"), field="gemini.top_k"),
        top_p=_require_float_range(
            section.get("top_p"),
            field="gemini.top_p",
            min_value=0.0,
            max_value=1.0,
        ),
        max_output_tokens=_require_positive_int(
            section.get("max_output_tokens"), field="gemini.max_output_tokens"
        ),
        max_retries=_require_non_negative_int(
            section.get("max_retries"), field="gemini.max_retries"
        ),
        backoff_base_seconds=_require_float_range(
            section.get("backoff_base_seconds"),
            field="gemini.backoff_base_seconds",
            min_value=0.0,
            max_value=60.0,
        ),
        request_timeout_seconds=_require_positive_int(
            section.get("request_timeout_seconds"),
            field="gemini.request_timeout_seconds",
        ),
    )


def _build_quiz(section: Mapping[str, Any]) -> QuizDefaults:
    return QuizDefaults(
        question_count=_require_positive_int(
            section.get("question_count"), field="quiz.question_count"
        ),
        review_count=_require_positive_int(
            section.get("review_count"), field="quiz.review_count"
        ),
    )


def _build_logging(section: Mapping[str, Any]) -> LoggingConfig:
    level = _require_string(section.get("level"), field="logging.level").upper()
    if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ConfigError(
            "logging.level must be one of "
            "DEBUG, INFO, WARNING, ERROR, CRITICAL."
        )
    verbose = _require_bool(section.get("verbose"), field="logging.verbose")
    return LoggingConfig(level=level, verbose=verbose)


def _build_config(
    tree: Mapping[str, Any], *, source: Optional[Path]
) -> QuizConfig:
    return QuizConfig(
        gemini=_build_gemini(tree["gemini"]),
        quiz=_build_quiz(tree["quiz"]),
        logging=_build_logging(tree["logging"]),
        source=source,
    )
