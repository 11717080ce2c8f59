"""Helpers for shipping persistent saves inside a PyInstaller build."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from .backends import Backend, FileBackend
from .codec import BinaryCodec
from .environment import HostEnvironment
from .errors import InvalidNameError
from .manifest import ManifestStore


@dataclass
class BundleCheck:
    tracker_found: bool = False
    present: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.tracker_found and not self.missing


def add_data_argument(environment: HostEnvironment) -> str:
    """Return the ``--add-data`` value that bundles the Resources dir under the same name."""
    return f"{environment.resources_root()}{os.pathsep}{environment.config.files.resources_dir}"


def verify_bundle(environment: HostEnvironment, codec: Optional[BinaryCodec] = None) -> BundleCheck:
    """Check that every tracked name has its object file before building.

    Raises ManifestError when the tracker exists but cannot be decoded.
    """
    layout = environment.config.files
    store = ManifestStore(environment.resources_root() / layout.tracker_file_name, codec=codec)
    check = BundleCheck(tracker_found=store.exists())
    if not check.tracker_found:
        return check
    resources = FileBackend(Backend.PERSISTENT, environment.resources_root(), layout)
    for name in store.load_or_create().unique_names():
        try:
            present = resources.exists(name)
        except InvalidNameError:
            present = False
        (check.present if present else check.missing).append(name)
    return check
