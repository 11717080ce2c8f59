from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Protocol

from .backends import Backend, FileBackend, validate_name
from .codec import BinaryCodec, PickleCodec
from .diagnostics import DiagnosticLog, Severity
from .environment import HostEnvironment
from .errors import InvalidNameError, ManifestCorruptError, StoreError
from .manifest import decode_manifest

logger = logging.getLogger(__name__)


class BundleResources(Protocol):
    def read(self, logical_name: str) -> Optional[bytes]: ...


class DirectoryBundle:
    """Read-only view of the bundled Resources directory.

    Logical names are file names without the extension, so the tracker is
    looked up as ``PersistentTracker`` and an object as ``DS_<name>``.
    """

    def __init__(self, root: Path, extension: str) -> None:
        self.root = Path(root)
        self.extension = extension

    def path_for(self, logical_name: str) -> Path:
        return self.root / f"{logical_name}.{self.extension}"

    def read(self, logical_name: str) -> Optional[bytes]:
        try:
            return self.path_for(logical_name).read_bytes()
        except FileNotFoundError:
            return None


@dataclass
class UnpackReport:
    tracker_found: bool = False
    copied: List[str] = field(default_factory=list)
    kept: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.tracker_found and not self.missing and not self.failed


class BundleUnpacker:
    """Copies bundled persistent saves into the writable data root.

    Run once at the start of a packaged session, before anything reads or
    writes the runtime backend; :meth:`ensure_unpacked` enforces the
    once-only part. Names that already have a runtime file are left alone,
    so a later session never reverts what the player saved.
    """

    def __init__(
        self,
        environment: HostEnvironment,
        log: DiagnosticLog,
        codec: Optional[BinaryCodec] = None,
        bundle: Optional[BundleResources] = None,
    ) -> None:
        self.environment = environment
        self.log = log
        self.codec = codec or PickleCodec()
        self._bundle = bundle
        self._once_lock = threading.Lock()
        self._session_result: Optional[bool] = None
        self.last_report: Optional[UnpackReport] = None

    @property
    def bundle(self) -> BundleResources:
        if self._bundle is not None:
            return self._bundle
        layout = self.environment.config.files
        return DirectoryBundle(self.environment.resources_root(), layout.extension)

    @property
    def has_run(self) -> bool:
        return self._session_result is not None

    def ensure_unpacked(self) -> bool:
        """Unpack on the first call and return that result on every later call."""
        with self._once_lock:
            if self._session_result is None:
                self._session_result = self.unpack_persistent_saves()
            return self._session_result

    def unpack_persistent_saves(self) -> bool:
        layout = self.environment.config.files
        report = UnpackReport()
        self.last_report = report
        bundle = self.bundle

        try:
            tracker_bytes = bundle.read(layout.tracker_name)
        except OSError as exc:
            self.log.append(f"Could not read bundled tracker '{layout.tracker_name}': {exc}", Severity.ERROR)
            return False
        if tracker_bytes is None:
            self.log.append(
                f"No bundled tracker '{layout.tracker_name}' found; nothing to unpack yet.",
                Severity.WARNING,
            )
            return False
        try:
            manifest = decode_manifest(self.codec, tracker_bytes, source=f"bundled {layout.tracker_name}")
        except ManifestCorruptError as exc:
            self.log.append(f"Bundled tracker is unreadable, unpack aborted: {exc}", Severity.ERROR)
            return False
        report.tracker_found = True

        runtime = FileBackend(Backend.RUNTIME, self.environment.writable_data_root(), layout)
        try:
            if runtime.ensure_root():
                self.log.append(f"Created runtime data directory {runtime.root}")
        except OSError as exc:
            self.log.append(f"Runtime data directory {runtime.root} is unusable, unpack aborted: {exc}", Severity.ERROR)
            return False

        for name in manifest.unique_names():
            try:
                validate_name(name)
            except InvalidNameError as exc:
                report.failed.append(name)
                self.log.append(f"Refusing to unpack tracker entry: {exc}", Severity.ERROR)
                continue
            # A runtime copy means this installation already unpacked or edited it.
            if runtime.exists(name):
                report.kept.append(name)
                continue
            try:
                data = bundle.read(f"{layout.prefix}{name}")
            except OSError as exc:
                report.failed.append(name)
                self.log.append(f"Could not read bundled save '{name}': {exc}", Severity.ERROR)
                continue
            if data is None:
                report.missing.append(name)
                self.log.append(f"Bundled save '{name}' is listed in the tracker but missing.", Severity.WARNING)
                continue
            try:
                runtime.write(name, data)
            except (OSError, StoreError) as exc:
                report.failed.append(name)
                self.log.append(f"Could not unpack save '{name}' to {runtime.root}: {exc}", Severity.ERROR)
                continue
            report.copied.append(name)

        self.log.append(
            f"Unpacked {len(report.copied)} of {len(manifest.unique_names())} persistent saves into {runtime.root}"
            f" ({len(report.kept)} already present)"
        )
        logger.debug("Unpack report: %s", report)
        return True
