from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from invest_quiz.core import logging as core_logging


def _close(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def _console_handlers(logger: logging.Logger) -> list[logging.Handler]:
    return [
        handler
        for handler in logger.handlers
        if getattr(handler, "_invest_quiz_console", False)
    ]


def test_configure_logger_writes_json_lines(tmp_path):
    log_dir = tmp_path / "logs"
    logger, log_path = core_logging.configure_logger(
        "invest_quiz.test_json",
        log_dir=log_dir,
        level="INFO",
        filename="quiz.log",
    )

    logger.debug("filtered out")
    logger.info("Quiz finished", extra={"correct": 3, "total": 5})

    class _Opaque:
        def __repr__(self):
            return "opaque"

    try:
        raise ValueError("boom")
    except ValueError:
        logger.exception(
            "Command failed",
            extra={
                "paths": [Path(log_dir), 1],
                "mapping": {"k": ("v",)},
                "obj": _Opaque(),
            },
        )
    for handler in logger.handlers:
        handler.flush()

    lines = log_path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    assert first["message"] == "Quiz finished"
    assert first["level"] == "INFO"
    assert first["logger"] == "invest_quiz.test_json"
    assert first["extra"] == {"correct": 3, "total": 5}

    last = json.loads(lines[-1])
    assert "ValueError: boom" in last["exception"]
    assert last["extra"]["obj"] == "opaque"
    assert last["extra"]["paths"] == [str(log_dir), 1]
    assert last["extra"]["mapping"] == {"k": ["v"]}
    assert log_path.stat().st_mode & 0o777 == 0o600

    _close(logger)


def test_verbose_writes_debug_records(tmp_path):
    logger, log_path = core_logging.configure_logger(
        "invest_quiz.test_debug",
        log_dir=tmp_path,
        level="WARNING",
        verbose=True,
        filename="debug.log",
    )
    logger.debug("Loaded working questions")
    for handler in logger.handlers:
        handler.flush()

    assert "Loaded working questions" in log_path.read_text(encoding="utf-8")
    _close(logger)


def test_console_handler_toggle(tmp_path):
    name = "invest_quiz.test_toggle"

    logger, _ = core_logging.configure_logger(
        name, log_dir=tmp_path, verbose=True, filename="toggle.log"
    )
    assert len(_console_handlers(logger)) == 1

    core_logging.configure_logger(
        name, log_dir=tmp_path, verbose=True, filename="toggle.log"
    )
    assert len(_console_handlers(logger)) == 1

    core_logging.configure_logger(
        name, log_dir=tmp_path, verbose=False, filename="toggle.log"
    )
    assert not _console_handlers(logger)
    assert len(logger.handlers) == 1

    _close(logger)


def test_configure_logger_default_filename(tmp_path):
    logger, log_path = core_logging.configure_logger(
        "invest_quiz.cli", log_dir=tmp_path
    )
    assert log_path.name == "cli.log"
    _close(logger)


def test_configure_logger_fallback_directory(tmp_path, monkeypatch):
    target = tmp_path / "blocked"
    fallback = tmp_path / "fallback"
    original_mkdir = Path.mkdir

    def fake_mkdir(self, *args, **kwargs):  # noqa: ANN001
        if self == target:
            raise PermissionError("denied")
        return original_mkdir(self, *args, **kwargs)

    monkeypatch.setattr(Path, "mkdir", fake_mkdir)
    monkeypatch.setattr(core_logging, "_fallback_log_dir", lambda: fallback)

    logger, log_path = core_logging.configure_logger(
        "invest_quiz.test_blocked", log_dir=target, filename="blocked.log"
    )

    assert log_path == fallback / "blocked.log"
    assert log_path.exists()
    _close(logger)


def test_configure_logger_rotating_handler_fallback(tmp_path, monkeypatch):
    calls = {"count": 0}
    fallback_dir = tmp_path / "rotate-fallback"
    original_handler = core_logging.RotatingFileHandler

    def fake_handler(path, *args, **kwargs):  # noqa: ANN001
        calls["count"] += 1
        if calls["count"] == 1:
            raise PermissionError("denied")
        return original_handler(path, *args, **kwargs)

    monkeypatch.setattr(core_logging, "RotatingFileHandler", fake_handler)
    monkeypatch.setattr(core_logging, "_fallback_log_dir", lambda: fallback_dir)

    logger, log_path = core_logging.configure_logger(
        "invest_quiz.test_rotating",
        log_dir=tmp_path / "primary",
        filename="rotate.log",
    )

    assert log_path.parent == fallback_dir
    assert calls["count"] == 2
    _close(logger)


def test_fallback_log_dir_uses_tempdir(tmp_path, monkeypatch):
    monkeypatch.setattr(tempfile, "gettempdir", lambda: str(tmp_path))
    assert core_logging._fallback_log_dir() == tmp_path / "invest-quiz-logs"


def test_coerce_level_defaults():
    assert core_logging._coerce_level("warning") == logging.WARNING
    assert core_logging._coerce_level("bogus") == logging.INFO
