from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = "DEPLOYSTORE_PREFIX"
ENV_CONSOLE_LOG = "DEPLOYSTORE_CONSOLE_LOG"
ENV_FILE_LOG = "DEPLOYSTORE_FILE_LOG"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class FileLayout:
    """Naming of object files, the tracker and the backend directories."""

    prefix: str = "DS_"
    extension: str = "bytes"
    tracker_name: str = "PersistentTracker"
    resources_dir: str = "Resources"
    developer_dir: str = "DeveloperSaves"

    def object_file_name(self, name: str) -> str:
        return f"{self.prefix}{name}.{self.extension}"

    @property
    def tracker_file_name(self) -> str:
        return f"{self.tracker_name}.{self.extension}"


@dataclass(frozen=True)
class LogSettings:
    file_name: str = "DS_Log"
    console: bool = True
    file: bool = True


@dataclass(frozen=True)
class SavingSettings:
    persistent_retries: int = 0
    retry_delay: float = 0.05
    max_workers: int = 4


@dataclass(frozen=True)
class StoreConfig:
    app_name: str = "DeployStore"
    app_author: str = "DeployStore"
    project_root: Optional[Path] = None
    files: FileLayout = field(default_factory=FileLayout)
    log: LogSettings = field(default_factory=LogSettings)
    saving: SavingSettings = field(default_factory=SavingSettings)

    @staticmethod
    def _load_yaml(path: Path) -> dict:
        with path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    @classmethod
    def _deep_merge(cls, base: dict, overlay: dict) -> dict:
        merged = dict(base)
        for k, v in (overlay or {}).items():
            if isinstance(v, dict) and isinstance(base.get(k), dict):
                merged[k] = cls._deep_merge(base[k], v)
            else:
                merged[k] = v
        return merged

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoreConfig":
        files = data.get("files", {}) or {}
        log = data.get("log", {}) or {}
        saving = data.get("saving", {}) or {}
        root = data.get("project_root")
        return cls(
            app_name=str(data.get("app_name", "DeployStore")),
            app_author=str(data.get("app_author", "DeployStore")),
            project_root=Path(root).expanduser() if root else None,
            files=FileLayout(
                prefix=str(files.get("prefix", "DS_")),
                extension=str(files.get("extension", "bytes")).lstrip("."),
                tracker_name=str(files.get("tracker_name", "PersistentTracker")),
                resources_dir=str(files.get("resources_dir", "Resources")),
                developer_dir=str(files.get("developer_dir", "DeveloperSaves")),
            ),
            log=LogSettings(
                file_name=str(log.get("file_name", "DS_Log")),
                console=bool(log.get("console", True)),
                file=bool(log.get("file", True)),
            ),
            saving=SavingSettings(
                persistent_retries=max(0, int(saving.get("persistent_retries", 0))),
                retry_delay=max(0.0, float(saving.get("retry_delay", 0.05))),
                max_workers=max(1, int(saving.get("max_workers", 4))),
            ),
        )

    @classmethod
    def load(cls, user_path: Optional[Path] = None) -> "StoreConfig":
        """Load the packaged defaults, overlay an optional user YAML file, then env overrides."""
        try:
            text = resources.files("deploystore.data").joinpath("default_config.yaml").read_text(encoding="utf-8")
            default_data = yaml.safe_load(text) or {}
        except FileNotFoundError:
            logger.warning("Default config not found; falling back to dataclass defaults.")
            default_data = {}

        user_data: dict = {}
        if user_path is not None:
            if user_path.exists():
                user_data = cls._load_yaml(user_path)
                logger.info("Loaded user config from %s", user_path)
            else:
                logger.warning("User config file not found: %s", user_path)

        merged = cls._apply_env(cls._deep_merge(default_data, user_data))
        config = cls.from_dict(merged)
        logger.debug("Config merged: %s", config)
        return config

    @classmethod
    def _apply_env(cls, data: dict) -> dict:
        overlay: Dict[str, Any] = {}
        prefix = os.getenv(ENV_PREFIX)
        if prefix is not None:
            overlay.setdefault("files", {})["prefix"] = prefix
        for env_var, key in ((ENV_CONSOLE_LOG, "console"), (ENV_FILE_LOG, "file")):
            flag = _parse_flag(os.getenv(env_var))
            if flag is not None:
                overlay.setdefault("log", {})[key] = flag
        return cls._deep_merge(data, overlay)


def _parse_flag(raw: Optional[str]) -> Optional[bool]:
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    logger.warning("Ignoring unrecognised boolean value %r", raw)
    return None
