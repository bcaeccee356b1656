"""
Size/age based rotation and retention for a single active log file.

Layout on disk:
  logs/app.log                      <- active file
  logs/app.log.2025-09-05_16-38-08  <- rotated copies, pruned by age and count

Notes / Pitfalls:
- A missing active file is "not due", never an error.
- Cleanup is best effort: one file failing to delete does not stop the rest.
- The rotator itself takes no locks; callers serialize (see AppLogger).
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable
from contextlib import nullcontext
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from spotlight.errors import RotationError

log = logging.getLogger(__name__)

MAX_LOG_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB
MAX_LOG_AGE = 5 * 24 * 3600.0  # 5 days
MAX_LOG_FILES = 10

ROTATED_SUFFIX_FORMAT = "%Y-%m-%d_%H-%M-%S"
BANNER_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_size(num_bytes: int) -> str:
    """Human readable byte count: 512 B, 1.5 KB, 10.0 MB."""
    unit = 1024
    if num_bytes < unit:
        return f"{num_bytes} B"
    div, exp = unit, 0
    n = num_bytes // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{num_bytes / div:.1f} {'KMGTPE'[exp]}B"


def format_age(seconds: float) -> str:
    """Round to the minute, e.g. 1h5m0s."""
    minutes = int(round(seconds / 60.0))
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h{minutes}m0s"
    if minutes:
        return f"{minutes}m0s"
    return "0s"


@dataclass(frozen=True)
class LogFileInfo:
    path: Path
    mtime: float
    size: int


@dataclass
class LogStats:
    current_size: int = 0
    current_age: float = 0.0
    rotated_count: int = 0
    total_size: int = 0

    def __str__(self) -> str:
        return (
            f"Current: {format_size(self.current_size)} (age: {format_age(self.current_age)}), "
            f"Rotated files: {self.rotated_count}, Total size: {format_size(self.total_size)}"
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "currentSize": format_size(self.current_size),
            "currentAge": format_age(self.current_age),
            "rotatedFiles": self.rotated_count,
            "totalSize": format_size(self.total_size),
        }


class LogRotator:
    """Rotation policy for ``path``: rotate on size or age, keep ``max_files``."""

    def __init__(
        self,
        path: str | os.PathLike[str],
        max_size: int = MAX_LOG_FILE_SIZE,
        max_age: float = MAX_LOG_AGE,
        max_files: int = MAX_LOG_FILES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.path = Path(path)
        self.max_size = max_size
        self.max_age = max_age
        self.max_files = max_files
        self._clock = clock

    def should_rotate(self) -> bool:
        try:
            st = self.path.stat()
        except FileNotFoundError:
            return False
        if st.st_size >= self.max_size:
            return True
        return self._clock() - st.st_mtime >= self.max_age

    def rotate_log(self) -> Path | None:
        """Move the active file aside and start a fresh one.

        Returns the rotated path, or None when there was no active file to
        move (a fresh one is created instead). Raises RotationError when the
        rename or the recreate fails.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RotationError(f"failed to create log directory: {e}") from e

        if not self.path.exists():
            try:
                self._create_empty_log_file()
            except OSError as e:
                raise RotationError(f"failed to create log file: {e}") from e
            return None

        rotated = self._rotated_name()
        try:
            os.rename(self.path, rotated)
        except OSError as e:
            raise RotationError(f"failed to rotate log file: {e}") from e

        try:
            self._create_empty_log_file()
        except OSError as e:
            raise RotationError(f"failed to create new log file after rotation: {e}") from e

        try:
            self.cleanup_old_logs()
        except OSError as e:
            log.warning("failed to cleanup old logs: %s", e)

        return rotated

    def _rotated_name(self) -> Path:
        stamp = datetime.fromtimestamp(self._clock()).strftime(ROTATED_SUFFIX_FORMAT)
        candidate = self.path.with_name(f"{self.path.name}.{stamp}")
        n = 1
        # two rotations inside one second must not clobber each other
        while candidate.exists():
            candidate = self.path.with_name(f"{self.path.name}.{stamp}.{n}")
            n += 1
        return candidate

    def _create_empty_log_file(self) -> None:
        stamp = datetime.fromtimestamp(self._clock()).strftime(BANNER_TIME_FORMAT)
        with open(self.path, "w", encoding="utf-8") as f:
            f.write(f"INFO: {stamp} Log file created/rotated\n")

    def rotated_files(self) -> list[LogFileInfo]:
        """Rotated siblings of the active file, newest first."""
        files: list[LogFileInfo] = []
        for match in self.path.parent.glob(f"{self.path.name}.*"):
            if match == self.path:
                continue
            try:
                st = match.stat()
            except OSError:
                continue
            files.append(LogFileInfo(path=match, mtime=st.st_mtime, size=st.st_size))
        files.sort(key=lambda f: f.mtime, reverse=True)
        return files

    def cleanup_old_logs(self) -> list[Path]:
        """Delete rotated files past max_age or beyond the newest max_files."""
        cutoff = self._clock() - self.max_age
        removed: list[Path] = []
        for i, info in enumerate(self.rotated_files()):
            # age and count are independent; either one condemns the file
            if info.mtime < cutoff or i >= self.max_files:
                try:
                    info.path.unlink()
                except OSError as e:
                    log.warning("failed to remove old log file %s: %s", info.path, e)
                    continue
                log.info("cleaned up old log file: %s", info.path)
                removed.append(info.path)
        return removed

    def get_stats(self) -> LogStats:
        stats = LogStats()
        try:
            st = self.path.stat()
        except FileNotFoundError:
            pass
        else:
            stats.current_size = st.st_size
            stats.current_age = max(0.0, self._clock() - st.st_mtime)

        for info in self.rotated_files():
            stats.rotated_count += 1
            stats.total_size += info.size
        stats.total_size += stats.current_size
        return stats


class RotationScheduler:
    """Background thread that rotates ``rotator`` every ``interval`` seconds if due.

    ``on_rotate`` runs after each successful rotation (AppLogger uses it to
    reopen its file handle). With ``lock`` the check, rotation and callback
    run while holding it.
    """

    def __init__(
        self,
        rotator: LogRotator,
        interval: float,
        on_rotate: Callable[[], None] | None = None,
        lock: threading.RLock | None = None,
    ) -> None:
        self.rotator = rotator
        self.interval = interval
        self.on_rotate = on_rotate
        self._lock = lock
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._run, name="log-rotation-scheduler", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.check()

    def check(self) -> bool:
        """One scheduler tick. Returns True if a rotation happened."""
        with self._lock if self._lock is not None else nullcontext():
            try:
                due = self.rotator.should_rotate()
            except OSError as e:
                log.error("error checking log rotation: %s", e)
                return False
            if not due:
                return False
            try:
                self.rotator.rotate_log()
            except RotationError as e:
                log.error("error rotating log: %s", e)
                return False
            log.info("log rotated successfully at %s", datetime.now().strftime(BANNER_TIME_FORMAT))
            if self.on_rotate is not None:
                self.on_rotate()
            return True
