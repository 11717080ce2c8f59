from __future__ import annotations

import logging
import os
import tempfile
from enum import Enum
from pathlib import Path

from .config import FileLayout
from .errors import InvalidNameError

logger = logging.getLogger(__name__)


class Backend(str, Enum):
    """Physical storage location an object is routed to."""

    PERSISTENT = "persistent"  # project Resources dir, shipped with builds
    DEVELOPER = "developer"  # project dir that is never bundled
    RUNTIME = "runtime"  # per-installation writable data dir


def validate_name(name: str) -> str:
    if not isinstance(name, str) or not name:
        raise InvalidNameError("Object name must be a non-empty string")
    if name in (".", "..") or any(sep in name for sep in ("/", "\\", "\0")):
        raise InvalidNameError(f"Object name {name!r} cannot contain path separators")
    return name


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Atomically write bytes to a path using a temporary file and replace.

    Either the old file remains or the new file fully replaces it.
    """
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    finally:
        try:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
        except OSError:
            logger.debug("Could not remove temp file %s", tmp_name, exc_info=True)


class FileBackend:
    """A directory holding one ``<prefix><name>.<ext>`` file per object."""

    def __init__(self, kind: Backend, root: Path, layout: FileLayout) -> None:
        self.kind = kind
        self.root = Path(root)
        self.layout = layout

    def __repr__(self) -> str:
        return f"FileBackend({self.kind.value!r}, {str(self.root)!r})"

    def path_for(self, name: str) -> Path:
        return self.root / self.layout.object_file_name(validate_name(name))

    def ensure_root(self) -> bool:
        """Create the root directory if missing. Returns True only when it was created."""
        if self.root.is_dir():
            return False
        try:
            self.root.mkdir(parents=True)
        except FileExistsError:
            # Lost a race with another writer; the directory is there now.
            return False
        return True

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def write(self, name: str, data: bytes) -> Path:
        path = self.path_for(name)
        atomic_write_bytes(path, data)
        logger.debug("Wrote %d bytes to %s", len(data), path)
        return path

    def read(self, name: str) -> bytes:
        """Read the stored bytes. Raises FileNotFoundError when nothing is stored."""
        return self.path_for(name).read_bytes()
