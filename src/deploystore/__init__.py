"""Cross-environment persistent object store.

Saves named objects from a game or tool either into the project tree (while
authoring) or into the per-installation data directory (once packaged), and
carries build-persistent saves from the read-only bundle into the writable
data directory on first run.

- ObjectStore: save/load API and routing
- ManifestStore: tracker of names saved for builds
- BundleUnpacker: one-time copy of bundled saves at packaged startup
- DiagnosticLog: delimiter-framed text log of store activity
"""
from .backends import Backend, FileBackend
from .codec import BinaryCodec, Encodable, PickleCodec, is_encodable
from .config import FileLayout, LogSettings, SavingSettings, StoreConfig
from .diagnostics import DiagnosticLog, LogConfig, LogEntry, Severity
from .environment import AUTHORING, PACKAGED, HostEnvironment
from .errors import (
    CodecError,
    InvalidNameError,
    ManifestCorruptError,
    ManifestError,
    NotEncodableError,
    StoreError,
)
from .manifest import Manifest, ManifestStore
from .results import LoadResult, LoadStatus, SaveResult
from .store import ObjectStore
from .unpacker import BundleUnpacker, DirectoryBundle, UnpackReport

__version__ = "0.1.0"

__all__ = [
    "AUTHORING",
    "PACKAGED",
    "Backend",
    "BinaryCodec",
    "BundleUnpacker",
    "CodecError",
    "DiagnosticLog",
    "DirectoryBundle",
    "Encodable",
    "FileBackend",
    "FileLayout",
    "HostEnvironment",
    "InvalidNameError",
    "LoadResult",
    "LoadStatus",
    "LogConfig",
    "LogEntry",
    "LogSettings",
    "Manifest",
    "ManifestCorruptError",
    "ManifestError",
    "ManifestStore",
    "NotEncodableError",
    "ObjectStore",
    "PickleCodec",
    "SaveResult",
    "SavingSettings",
    "Severity",
    "StoreConfig",
    "StoreError",
    "UnpackReport",
    "is_encodable",
]
