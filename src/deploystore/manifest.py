from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from .backends import atomic_write_bytes
from .codec import BinaryCodec, Encodable, PickleCodec
from .errors import CodecError, ManifestCorruptError, ManifestError

logger = logging.getLogger(__name__)

_registry_lock = threading.Lock()
_path_locks: Dict[Path, threading.RLock] = {}


def manifest_lock(path: Path) -> threading.RLock:
    """Return the process-wide lock guarding the tracker at ``path``.

    Every read-modify-write of one tracker file goes through the same lock,
    no matter how many ManifestStore instances point at it.
    """
    key = Path(path).expanduser().resolve()
    with _registry_lock:
        lock = _path_locks.get(key)
        if lock is None:
            lock = threading.RLock()
            _path_locks[key] = lock
        return lock


@dataclass
class Manifest(Encodable):
    """Ordered names of every object saved to the persistent backend.

    Duplicates are kept: a name saved twice is listed twice.
    """

    names: List[str] = field(default_factory=list)

    def append(self, name: str) -> None:
        self.names.append(name)

    def unique_names(self) -> List[str]:
        return list(dict.fromkeys(self.names))

    def __contains__(self, name: object) -> bool:
        return name in self.names

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)


class ManifestStore:
    """Owns the tracker file. Used as load -> append -> persist per save."""

    def __init__(self, path: Path, codec: Optional[BinaryCodec] = None) -> None:
        self.path = Path(path)
        self.codec = codec or PickleCodec()
        self.lock = manifest_lock(self.path)
        self._manifest: Optional[Manifest] = None

    @property
    def manifest(self) -> Manifest:
        if self._manifest is None:
            raise ManifestError("Manifest not loaded; call load_or_create() first")
        return self._manifest

    def exists(self) -> bool:
        return self.path.is_file()

    def load_or_create(self) -> Manifest:
        """Decode the tracker if present, else start an empty manifest.

        A tracker that exists but cannot be read or decoded raises; it is never
        swapped for an empty manifest, which would drop the saved history.
        """
        with self.lock:
            if not self.path.exists():
                logger.debug("No tracker at %s; starting an empty manifest", self.path)
                self._manifest = Manifest()
                return self._manifest
            try:
                data = self.path.read_bytes()
            except OSError as e:
                raise ManifestError(f"Unable to read tracker {self.path}: {e}") from e
            self._manifest = decode_manifest(self.codec, data, source=str(self.path))
            return self._manifest

    def append(self, name: str) -> None:
        with self.lock:
            self.manifest.append(name)

    def persist(self) -> None:
        with self.lock:
            try:
                data = self.codec.serialize(self.manifest)
            except CodecError as e:
                raise ManifestError(f"Unable to encode manifest: {e}") from e
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                atomic_write_bytes(self.path, data)
            except OSError as e:
                raise ManifestError(f"Unable to write tracker {self.path}: {e}") from e
            logger.debug("Persisted manifest with %d names to %s", len(self.manifest), self.path)

    def record(self, name: str) -> Manifest:
        """Run one locked load -> append -> persist cycle for ``name``."""
        with self.lock:
            self.load_or_create()
            self.append(name)
            self.persist()
            return self.manifest


def decode_manifest(codec: BinaryCodec, data: bytes, source: str = "tracker") -> Manifest:
    try:
        manifest = codec.deserialize(data, Manifest)
    except CodecError as e:
        raise ManifestCorruptError(f"Corrupt tracker {source}: {e}") from e
    names = getattr(manifest, "names", None)
    if not isinstance(names, list):
        raise ManifestCorruptError(f"Corrupt tracker {source}: names is {type(names).__name__}, not a list")
    if not all(isinstance(n, str) for n in names):
        raise ManifestCorruptError(f"Corrupt tracker {source}: non-string entry")
    return manifest
