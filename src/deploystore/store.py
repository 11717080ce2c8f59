from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Optional, Type, TypeVar

from .backends import Backend, FileBackend, validate_name
from .codec import BinaryCodec, PickleCodec, require_encodable
from .config import StoreConfig
from .diagnostics import DiagnosticLog, LogConfig, Severity
from .environment import HostEnvironment
from .errors import CodecError, InvalidNameError, ManifestError, NotEncodableError
from .manifest import ManifestStore
from .results import LoadResult, LoadStatus, SaveResult
from .unpacker import BundleResources, BundleUnpacker

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _type_name(obj: Any) -> str:
    return type(obj).__name__


def _is_manifest_io_error(exc: Exception) -> bool:
    return isinstance(exc, ManifestError) and isinstance(exc.__cause__, OSError)


class ObjectStore:
    """Save and load encodable objects by name.

    Routing:
    - authoring mode, persistent: project Resources dir, tracked in the manifest
      so packaged builds can unpack it
    - authoring mode, not persistent: project developer dir, never bundled
    - packaged mode: the writable data root (the persistent flag is ignored)

    Neither save nor load raises: failures are written to the diagnostic log
    and returned as result codes.
    """

    def __init__(
        self,
        config: Optional[StoreConfig] = None,
        *,
        environment: Optional[HostEnvironment] = None,
        codec: Optional[BinaryCodec] = None,
        log: Optional[DiagnosticLog] = None,
        bundle: Optional[BundleResources] = None,
    ) -> None:
        self.environment = environment or HostEnvironment(config)
        self.config = config or self.environment.config
        self.codec = codec or PickleCodec()
        self.log = log or DiagnosticLog(
            self.environment.log_path(),
            LogConfig(console_enabled=self.config.log.console, file_enabled=self.config.log.file),
        )
        self.unpacker = BundleUnpacker(self.environment, self.log, codec=self.codec, bundle=bundle)
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    # Routing

    def backend_for(self, persistent: bool) -> FileBackend:
        layout = self.config.files
        env = self.environment
        if not env.is_authoring_mode():
            return FileBackend(Backend.RUNTIME, env.writable_data_root(), layout)
        if persistent:
            return FileBackend(Backend.PERSISTENT, env.resources_root(), layout)
        return FileBackend(Backend.DEVELOPER, env.developer_root(), layout)

    def manifest_store(self) -> ManifestStore:
        path = self.environment.resources_root() / self.config.files.tracker_file_name
        return ManifestStore(path, codec=self.codec)

    def path_for(self, name: str, persistent: bool) -> Path:
        return self.backend_for(persistent).path_for(name)

    def exists(self, name: str, persistent: bool) -> bool:
        try:
            return self.backend_for(persistent).exists(name)
        except InvalidNameError:
            return False

    # Saving

    def save(self, obj: Any, name: str, persistent_in_build: bool) -> SaveResult:
        type_name = _type_name(obj)
        try:
            require_encodable(obj)
        except NotEncodableError as exc:
            msg = f"Cannot save '{name}': {exc}."
            self.log.append(msg, Severity.WARNING)
            return SaveResult(success=False, message=msg, code="NOT_ENCODABLE")
        try:
            validate_name(name)
        except InvalidNameError as exc:
            msg = f"Cannot save {type_name}: {exc}"
            self.log.append(msg, Severity.WARNING)
            return SaveResult(success=False, message=msg, code="INVALID_NAME")

        self._unpack_before_runtime_access()
        backend = self.backend_for(persistent_in_build)
        tracked = backend.kind is Backend.PERSISTENT
        try:
            return self._save_to(backend, obj, name, tracked)
        except Exception as exc:  # pragma: no cover - unexpected failures are still reported
            msg = f"Unexpected error saving {type_name} '{name}' to the {backend.kind.value} backend: {exc}"
            logger.exception(msg)
            self.log.append(msg, Severity.ERROR)
            return SaveResult(success=False, message=msg, code="UNKNOWN")

    def _save_to(self, backend: FileBackend, obj: Any, name: str, tracked: bool) -> SaveResult:
        type_name = _type_name(obj)
        role = f"{backend.kind.value} object file"
        try:
            data = self.codec.serialize(obj)
        except CodecError as exc:
            msg = f"Could not encode {type_name} '{name}': {exc}"
            self.log.append(msg, Severity.ERROR)
            return SaveResult(success=False, message=msg, code="ENCODE_ERROR")

        attempts = 1 + (self.config.saving.persistent_retries if tracked else 0)
        try:
            path = self._retrying(attempts, lambda: self._write_object(backend, name, data))
        except OSError as exc:
            msg = f"IO error writing {role} for {type_name} '{name}': {exc}"
            self.log.append(msg, Severity.ERROR)
            return SaveResult(success=False, message=msg, code="IO_ERROR")

        if not tracked:
            msg = f"Saved {type_name} '{name}' to {path}"
            self.log.append(msg)
            return SaveResult(success=True, message=msg, path=path, wrote_object=True)

        # The name only enters the manifest once its bytes are on disk.
        try:
            self._record_in_manifest(name, attempts)
        except ManifestError as exc:
            msg = (
                f"Saved {type_name} '{name}' to {path} but the tracker was not updated; "
                f"it will not be unpacked in builds: {exc}"
            )
            self.log.append(msg, Severity.ERROR)
            return SaveResult(success=False, message=msg, path=path, wrote_object=True, code="MANIFEST_ERROR")

        msg = f"Saved {type_name} '{name}' to {path} and recorded it for builds"
        self.log.append(msg)
        return SaveResult(success=True, message=msg, path=path, wrote_object=True, wrote_manifest=True)

    def _write_object(self, backend: FileBackend, name: str, data: bytes) -> Path:
        if backend.ensure_root():
            self.log.append(f"Created {backend.kind.value} save directory {backend.root}")
        return backend.write(name, data)

    def _record_in_manifest(self, name: str, attempts: int) -> None:
        store = self.manifest_store()
        # Only IO trouble is worth another attempt; a corrupt tracker stays corrupt.
        self._retrying(attempts, lambda: store.record(name), retryable=_is_manifest_io_error)

    def _retrying(
        self,
        attempts: int,
        fn: Callable[[], T],
        retryable: Callable[[Exception], bool] = lambda exc: isinstance(exc, OSError),
    ) -> T:
        delay = self.config.saving.retry_delay
        for attempt in range(1, attempts + 1):
            try:
                return fn()
            except Exception as exc:
                if attempt >= attempts or not retryable(exc):
                    raise
                logger.warning("Attempt %d/%d failed: %s; retrying", attempt, attempts, exc)
                if delay:
                    time.sleep(delay)
        raise AssertionError("unreachable")  # pragma: no cover

    def save_async(self, obj: Any, name: str, persistent_in_build: bool) -> "Future[SaveResult]":
        """Run :meth:`save` on the store's worker pool.

        Tracker updates stay serialized through the per-tracker lock, so
        concurrent persistent saves never drop each other's names.
        """
        return self._pool().submit(self.save, obj, name, persistent_in_build)

    def _pool(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.config.saving.max_workers,
                    thread_name_prefix="deploystore-save",
                )
            return self._executor

    def close(self) -> None:
        """Wait for pending background saves and release the worker pool."""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def __enter__(self) -> "ObjectStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # Loading

    def start_session(self) -> bool:
        """Unpack bundled saves once when running packaged; no-op while authoring."""
        if self.environment.is_authoring_mode():
            return False
        return self.unpacker.ensure_unpacked()

    def _unpack_before_runtime_access(self) -> None:
        # Both flags route to the runtime backend when packaged.
        if not self.environment.is_authoring_mode():
            self.unpacker.ensure_unpacked()

    def load(self, name: str, expected_type: Optional[Type[T]] = None, persistent: bool = False) -> LoadResult[T]:
        self._unpack_before_runtime_access()
        type_label = expected_type.__name__ if expected_type is not None else "object"
        try:
            backend = self.backend_for(persistent)
            path = backend.path_for(name)
        except InvalidNameError as exc:
            msg = f"Cannot load {type_label}: {exc}"
            self.log.append(msg, Severity.WARNING)
            return LoadResult(LoadStatus.INVALID_NAME, message=msg)

        try:
            data = backend.read(name)
        except FileNotFoundError:
            msg = f"No saved {type_label} named '{name}' in the {backend.kind.value} backend ({path})"
            self.log.append(msg, Severity.WARNING)
            return LoadResult(LoadStatus.MISSING, message=msg, path=path)
        except OSError as exc:
            msg = f"IO error reading {backend.kind.value} object file for {type_label} '{name}': {exc}"
            self.log.append(msg, Severity.ERROR)
            return LoadResult(LoadStatus.IO_ERROR, message=msg, path=path)

        try:
            value = self.codec.deserialize(data, expected_type)
        except CodecError as exc:
            msg = f"Saved {type_label} '{name}' at {path} could not be decoded: {exc}"
            self.log.append(msg, Severity.ERROR)
            return LoadResult(LoadStatus.CORRUPT, message=msg, path=path)

        msg = f"Loaded {_type_name(value)} '{name}' from {path}"
        self.log.append(msg)
        return LoadResult(LoadStatus.FOUND, value=value, message=msg, path=path)

    def unpack_persistent_saves(self) -> bool:
        return self.unpacker.unpack_persistent_saves()
