"""Append-only diagnostic log.

Each entry is written as one block::

    [WARNING]
    ========================================
    message text, possibly over several lines
    ========================================
    ~

The closing marker line plus ``~`` terminates the entry and is what
:meth:`DiagnosticLog.parse_records` splits on. Message lines that would read
as a marker are escaped with a leading backslash so an entry can never be
split in two.
"""
from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

MARKER = "=" * 40
TERMINATOR = "~\n"
ENTRY_END = f"{MARKER}\n{TERMINATOR}"
TORN = "~torn~"
# Written after a torn tail so the next entry starts on a clean boundary.
TORN_SEAL = f"\n{TORN}\n{ENTRY_END}"

_RESERVED_LINES = (MARKER, TERMINATOR.rstrip("\n"), TORN)


class Severity(str, Enum):
    STANDARD = "STANDARD"
    WARNING = "WARNING"
    ERROR = "ERROR"

    @property
    def log_level(self) -> int:
        return {
            Severity.STANDARD: logging.INFO,
            Severity.WARNING: logging.WARNING,
            Severity.ERROR: logging.ERROR,
        }[self]


@dataclass
class LogConfig:
    """Output switches for one DiagnosticLog instance."""

    console_enabled: bool = True
    file_enabled: bool = True


@dataclass(frozen=True)
class LogEntry:
    severity: Severity
    message: str


def _escape(message: str) -> str:
    lines = message.split("\n")
    return "\n".join("\\" + line if line.lstrip("\\") in _RESERVED_LINES else line for line in lines)


def _unescape(body: str) -> str:
    lines = body.split("\n")
    return "\n".join(
        line[1:] if line.startswith("\\") and line.lstrip("\\") in _RESERVED_LINES else line
        for line in lines
    )


def format_entry(message: str, severity: Severity) -> str:
    return f"[{severity.value}]\n{MARKER}\n{_escape(message)}\n{ENTRY_END}"


class DiagnosticLog:
    def __init__(self, path: Path, config: Optional[LogConfig] = None) -> None:
        self.path = Path(path)
        self.config = config or LogConfig()
        self._lock = threading.Lock()

    @property
    def console_enabled(self) -> bool:
        return self.config.console_enabled

    @console_enabled.setter
    def console_enabled(self, value: bool) -> None:
        self.config.console_enabled = bool(value)

    @property
    def file_enabled(self) -> bool:
        return self.config.file_enabled

    @file_enabled.setter
    def file_enabled(self, value: bool) -> None:
        self.config.file_enabled = bool(value)

    def append(self, message: str, severity: Severity = Severity.STANDARD) -> None:
        """Echo to the console logger and append one framed entry to the file.

        IO failures are reported on the console logger and never raised.
        """
        message = str(message)
        if self.config.console_enabled:
            logger.log(severity.log_level, message)
        if not self.config.file_enabled:
            return
        entry = format_entry(message, severity)
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                prefix = TORN_SEAL if self._has_torn_tail() else ""
                with self.path.open("a", encoding="utf-8", newline="\n") as f:
                    f.write(prefix + entry)
                    f.flush()
                    os.fsync(f.fileno())
            except OSError as exc:
                logger.error("Failed to write diagnostic log %s: %s", self.path, exc)

    def _has_torn_tail(self) -> bool:
        try:
            size = self.path.stat().st_size
        except FileNotFoundError:
            return False
        if size == 0:
            return False
        tail_len = len(ENTRY_END.encode("utf-8"))
        with self.path.open("rb") as f:
            f.seek(max(0, size - tail_len))
            tail = f.read()
        return tail != ENTRY_END.encode("utf-8")

    def clear(self) -> None:
        """Truncate the log file if it exists."""
        with self._lock:
            if not self.path.exists():
                return
            try:
                with self.path.open("w", encoding="utf-8"):
                    pass
            except OSError as exc:
                logger.error("Failed to clear diagnostic log %s: %s", self.path, exc)

    def read_text(self) -> str:
        try:
            with self.path.open("r", encoding="utf-8", newline="") as f:
                return f.read()
        except FileNotFoundError:
            return ""

    def parse_records(self) -> List[LogEntry]:
        with self._lock:
            text = self.read_text()
        if not text:
            return []
        chunks = text.split(ENTRY_END)
        # The terminal delimiter leaves one fragment after it; it is empty
        # unless the last write was cut short.
        tail = chunks.pop()
        if tail.strip():
            logger.warning("Dropping incomplete trailing entry in %s", self.path)
        entries: List[LogEntry] = []
        for chunk in chunks:
            entry = self._parse_chunk(chunk.lstrip("\n"))
            if entry is not None:
                entries.append(entry)
        return entries

    def parse_entries(self) -> List[str]:
        return [entry.message for entry in self.parse_records()]

    def _parse_chunk(self, chunk: str) -> Optional[LogEntry]:
        if chunk == f"{TORN}\n" or chunk.endswith(f"\n{TORN}\n"):
            logger.warning("Skipping torn entry in %s", self.path)
            return None
        header, _, rest = chunk.partition("\n")
        opening = f"{MARKER}\n"
        if not (header.startswith("[") and header.endswith("]")) or not rest.startswith(opening):
            logger.warning("Skipping malformed entry in %s", self.path)
            return None
        try:
            severity = Severity(header[1:-1])
        except ValueError:
            logger.warning("Skipping entry with unknown severity %s in %s", header, self.path)
            return None
        body = rest[len(opening):]
        if body.endswith("\n"):
            body = body[:-1]
        return LogEntry(severity=severity, message=_unescape(body))
