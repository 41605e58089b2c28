"""Data home resolution for invest-quiz runtime artifacts."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, MutableMapping


WORKSPACE_ENV = "INVEST_QUIZ_DATA_HOME"
DEFAULT_WORKSPACE = Path.home() / ".invest-quiz-data"

_SUBDIRS = {
    "config": "config",
    "logs": "logs",
    "storage": "storage",
}


class WorkspaceError(RuntimeError):
    """Raised when the workspace layout cannot be prepared."""


@dataclass(frozen=True)
class WorkspaceLayout:
    """Resolved workspace paths."""

    home: Path
    directories: Mapping[str, Path]

    def path_for(self, key: str) -> Path:
        try:
            return self.directories[key]
        except KeyError as exc:
            raise KeyError(f"Unknown workspace directory '{key}'.") from exc

    @property
    def config_dir(self) -> Path:
        return self.path_for("config")

    @property
    def logs_dir(self) -> Path:
        return self.path_for("logs")

    @property
    def storage_dir(self) -> Path:
        return self.path_for("storage")


def ensure_workspace(
    *,
    env: Mapping[str, str] | None = None,
    path: Path | None = None,
    create: bool = True,
) -> WorkspaceLayout:
    """Ensure the data home exists and return its layout.

    Without an explicit override a temp-dir fallback is tried when the home
    directory is not writable.
    """

    env_map = os.environ if env is None else env
    base, has_override = _resolve_base(env_map, override=path)

    candidates: list[Path] = [base]
    if create and not has_override:
        fallback = Path(tempfile.gettempdir()) / "invest-quiz-data"
        if fallback != base:
            candidates.append(fallback)

    last_error: Exception | None = None
    for candidate in candidates:
        try:
            return _materialize_layout(candidate, create=create)
        except PermissionError as exc:
            last_error = exc
    raise WorkspaceError(
        "Unable to prepare workspace at {0}".format(base)
    ) from last_error


def _resolve_base(
    env: Mapping[str, str], *, override: Path | None
) -> tuple[Path, bool]:
    if override is not None:
        return override.expanduser().absolute(), True
    custom = (env.get(WORKSPACE_ENV) or "").strip()
    if custom:
        return Path(custom).expanduser().absolute(), True
    return DEFAULT_WORKSPACE, False


def _materialize_layout(base: Path, *, create: bool) -> WorkspaceLayout:
    if base.exists() and not base.is_dir():
        raise WorkspaceError(
            "Configured workspace exists and is not a directory: {0}".format(
                base
            )
        )
    if create:
        _ensure_dir(base)

    directories: MutableMapping[str, Path] = {}
    for key, relative in _SUBDIRS.items():
        candidate = base / relative
        if create:
            _ensure_dir(candidate)
        elif candidate.exists() and not candidate.is_dir():
            raise WorkspaceError(
                "Expected workspace directory for '{0}' but found a file: "
                "{1}".format(key, candidate)
            )
        directories[key] = candidate

    return WorkspaceLayout(
        home=base, directories=MappingProxyType(dict(directories))
    )


def _ensure_dir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except FileExistsError as exc:  # pragma: no cover - depends on platform
        raise WorkspaceError(
            "Expected directory but found a non-directory entry: {0}".format(
                path
            )
        ) from exc
    try:
        path.chmod(0o700)
    except (PermissionError, NotImplementedError):
        return
