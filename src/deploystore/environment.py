from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Dict, Optional, Union

from platformdirs import PlatformDirs

from .config import StoreConfig

__all__ = [
    "AUTHORING",
    "PACKAGED",
    "ENV_MODE",
    "ENV_PROJECT_ROOT",
    "ENV_DATA_DIR",
    "HostEnvironment",
    "is_frozen",
    "executable_dir",
]

AUTHORING = "authoring"
PACKAGED = "packaged"

# Environment variable overrides (useful for tests and CI builds)
ENV_MODE = "DEPLOYSTORE_MODE"
ENV_PROJECT_ROOT = "DEPLOYSTORE_PROJECT_ROOT"
ENV_DATA_DIR = "DEPLOYSTORE_DATA_DIR"

_logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def is_frozen() -> bool:
    """Return True if running under a frozen bundle (e.g., PyInstaller)."""
    return bool(getattr(sys, "frozen", False))


def executable_dir() -> Path:
    """Return the directory that contains the running executable.

    Frozen builds resolve sys.executable; source runs fall back to the
    working directory.
    """
    if is_frozen():
        try:
            return Path(sys.executable).resolve().parent
        except Exception as exc:  # pragma: no cover - highly unlikely
            _logger.warning("Failed to resolve executable dir: %s", exc)
    return Path.cwd().resolve()


def _bundle_dir() -> Path:
    # PyInstaller one-file builds unpack into a temp dir exposed as _MEIPASS.
    meipass = getattr(sys, "_MEIPASS", None)
    if meipass:
        return Path(meipass).resolve()
    return executable_dir()


class HostEnvironment:
    """Answer where the process runs and which roots it may read and write.

    Authoring mode means the project tree is writable (running from source);
    packaged mode means a frozen build with a read-only bundle next to a
    writable per-installation data directory.

    Nothing here is cached: every query re-reads the interpreter state and
    environment, so callers always see the current answer.
    """

    def __init__(
        self,
        config: Optional[StoreConfig] = None,
        *,
        mode: Optional[str] = None,
        project_root: Optional[PathLike] = None,
        data_root: Optional[PathLike] = None,
    ) -> None:
        if mode is not None and mode not in (AUTHORING, PACKAGED):
            raise ValueError(f"mode must be {AUTHORING!r} or {PACKAGED!r}, got {mode!r}")
        # Packaged YAML defaults plus DEPLOYSTORE_* overrides unless a config is given.
        self.config = config or StoreConfig.load()
        self._mode = mode
        self._project_root = Path(project_root) if project_root is not None else None
        self._data_root = Path(data_root) if data_root is not None else None

    def is_authoring_mode(self) -> bool:
        if self._mode is not None:
            return self._mode == AUTHORING
        env = os.getenv(ENV_MODE, "").strip().lower()
        if env in (AUTHORING, PACKAGED):
            return env == AUTHORING
        if env:
            _logger.warning("Ignoring unknown %s value %r", ENV_MODE, env)
        return not is_frozen()

    def mode(self) -> str:
        return AUTHORING if self.is_authoring_mode() else PACKAGED

    def project_root(self) -> Path:
        """Return the project tree in authoring mode, the bundle directory when packaged."""
        if self._project_root is not None:
            return self._project_root.expanduser().resolve()
        if not self.is_authoring_mode():
            return _bundle_dir()
        env = os.getenv(ENV_PROJECT_ROOT)
        if env:
            return Path(env).expanduser().resolve()
        if self.config.project_root is not None:
            return Path(self.config.project_root).expanduser().resolve()
        return Path.cwd().resolve()

    def writable_data_root(self) -> Path:
        if self._data_root is not None:
            return self._data_root.expanduser().resolve()
        env = os.getenv(ENV_DATA_DIR)
        if env:
            return Path(env).expanduser().resolve()
        dirs = PlatformDirs(appname=self.config.app_name, appauthor=self.config.app_author)
        return Path(dirs.user_data_dir).expanduser().resolve()

    def resources_root(self) -> Path:
        """Bundled-resource directory: written in authoring mode, read-only once packaged."""
        return self.project_root() / self.config.files.resources_dir

    def developer_root(self) -> Path:
        return self.project_root() / self.config.files.developer_dir

    def log_path(self) -> Path:
        return self.writable_data_root() / f"{self.config.log.file_name}.txt"

    def describe(self) -> Dict[str, str]:
        return {
            "mode": self.mode(),
            "frozen": str(is_frozen()),
            "project_root": str(self.project_root()),
            "resources_root": str(self.resources_root()),
            "developer_root": str(self.developer_root()),
            "writable_data_root": str(self.writable_data_root()),
            "log_file": str(self.log_path()),
        }
