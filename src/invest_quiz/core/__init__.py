"""Ambient helpers shared by invest_quiz: config, logging and data home."""

from __future__ import annotations

from .config import (
    ConfigError,
    GeminiConfig,
    LoggingConfig,
    QuizConfig,
    QuizDefaults,
    default_config,
    load_config,
    write_config_template,
)
from .logging import JsonLogFormatter, configure_logger
from .workspace import (
    WORKSPACE_ENV,
    WorkspaceError,
    WorkspaceLayout,
    ensure_workspace,
)

__all__ = [
    "ConfigError",
    "GeminiConfig",
    "LoggingConfig",
    "QuizConfig",
    "QuizDefaults",
    "default_config",
    "load_config",
    "write_config_template",
    "JsonLogFormatter",
    "configure_logger",
    "WORKSPACE_ENV",
    "WorkspaceError",
    "WorkspaceLayout",
    "ensure_workspace",
]
