from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class SaveResult:
    success: bool
    message: str
    path: Optional[Path] = None
    wrote_object: bool = False
    wrote_manifest: bool = False
    code: str = "OK"  # OK | NOT_ENCODABLE | INVALID_NAME | ENCODE_ERROR | IO_ERROR | MANIFEST_ERROR | UNKNOWN


class LoadStatus(str, Enum):
    FOUND = "found"
    MISSING = "missing"
    CORRUPT = "corrupt"
    IO_ERROR = "io_error"
    INVALID_NAME = "invalid_name"


@dataclass
class LoadResult(Generic[T]):
    """Outcome of a load.

    ``MISSING`` (nothing stored) and ``CORRUPT`` (stored but undecodable) are
    separate statuses, and a stored falsy value still comes back as ``FOUND``.
    """

    status: LoadStatus
    value: Optional[T] = None
    message: str = ""
    path: Optional[Path] = None

    @property
    def found(self) -> bool:
        return self.status is LoadStatus.FOUND

    def value_or(self, default: T) -> T:
        if self.status is LoadStatus.FOUND:
            return self.value  # type: ignore[return-value]
        return default

    def __bool__(self) -> bool:
        return self.found
