"""
Application logger with built-in log rotation.

Two named streams (info, error) write to the active log file and, optionally,
to stdout. Every write checks the rotator first, so rotation can happen in
the middle of a request and not only on the background timer.

Notes / Pitfalls:
- Writes, on-write rotation and scheduled rotation share one RLock.
- If the log file cannot be reopened after a rotation, output falls back to
  stdout until the next successful reopen.
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from pathlib import Path
from typing import IO, Any

from spotlight.errors import RotationError
from spotlight.logging_conf import JsonFormatter
from spotlight.rotation import LogRotator, LogStats, RotationScheduler, format_age, format_size

FILE_FORMAT = "%(levelname)s: %(asctime)s %(filename)s:%(lineno)d: %(message)s"
DATE_FORMAT = "%Y/%m/%d %H:%M:%S"

DEFAULT_CHECK_INTERVAL = 600.0  # 10 minutes


class AppLogger:
    def __init__(
        self,
        path: str | os.PathLike[str],
        rotator: LogRotator | None = None,
        *,
        name: str = "spotlight",
        level: int | str = logging.INFO,
        console: bool = True,
        json_console: bool = False,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
        start_scheduler: bool = True,
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.rotator = rotator or LogRotator(self.path)

        self._lock = threading.RLock()
        self._closed = False
        self._file: IO[str] | None = open(self.path, "a", encoding="utf-8")

        self._file_handler = logging.StreamHandler(self._file)
        self._file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))

        self._console_handler: logging.Handler | None = None
        if console:
            self._console_handler = logging.StreamHandler(sys.stdout)
            self._console_handler.setFormatter(
                JsonFormatter() if json_console else logging.Formatter(FILE_FORMAT, DATE_FORMAT)
            )

        # unregistered loggers so separate instances never share handlers
        self._info = self._make_stream(f"{name}.info", level)
        self._error = self._make_stream(f"{name}.error", level)

        self._scheduler = RotationScheduler(
            self.rotator, check_interval, on_rotate=self._reopen_log_file, lock=self._lock
        )
        if start_scheduler:
            self._scheduler.start()

        self.info("Logger initialized with rotation enabled")
        self._log_rotation_info()

    def _make_stream(self, name: str, level: int | str) -> logging.Logger:
        lg = logging.Logger(name, level)
        lg.propagate = False
        lg.addHandler(self._file_handler)
        if self._console_handler is not None:
            lg.addHandler(self._console_handler)
        return lg

    # ------------------------------------------------------------------
    # write path
    # ------------------------------------------------------------------
    def info(self, msg: str) -> None:
        with self._lock:
            self._check_and_rotate()
            self._info.info(msg, stacklevel=2)

    def error(self, msg: str) -> None:
        with self._lock:
            self._check_and_rotate()
            self._error.error(msg, stacklevel=2)

    def infof(self, fmt: str, *args: Any) -> None:
        with self._lock:
            self._check_and_rotate()
            self._info.info(fmt, *args, stacklevel=2)

    def errorf(self, fmt: str, *args: Any) -> None:
        with self._lock:
            self._check_and_rotate()
            self._error.error(fmt, *args, stacklevel=2)

    def fatal(self, msg: str) -> None:
        """Log and terminate the process with status 1.

        Uses os._exit, so it works from request worker threads too; atexit
        hooks and finally blocks do not run.
        """
        with self._lock:
            self._error.error(msg, stacklevel=2)
            self._release_for_exit()
        os._exit(1)

    def fatalf(self, fmt: str, *args: Any) -> None:
        with self._lock:
            self._error.error(fmt, *args, stacklevel=2)
            self._release_for_exit()
        os._exit(1)

    def _release_for_exit(self) -> None:
        self._closed = True
        self._flush()
        if self._console_handler is not None:
            self._console_handler.flush()
        for lg in (self._info, self._error):
            lg.removeHandler(self._file_handler)
        if self._file is not None:
            self._file.close()
            self._file = None

    # ------------------------------------------------------------------
    # rotation
    # ------------------------------------------------------------------
    def _check_and_rotate(self) -> None:
        if self._closed:
            return
        try:
            due = self.rotator.should_rotate()
        except OSError:
            return
        if due:
            try:
                self._rotate_now()
            except RotationError:
                pass

    def _rotate_now(self) -> None:
        self._flush()
        try:
            self.rotator.rotate_log()
        except RotationError as e:
            # keep writing to whatever file is there now
            self._reopen_log_file()
            self._error.error("Log rotation failed: %s", e)
            raise

        self._reopen_log_file()
        self._info.info("Log rotation completed")
        self._log_rotation_info()

    def _reopen_log_file(self) -> None:
        old = self._file
        try:
            new = open(self.path, "a", encoding="utf-8")
        except OSError as e:
            self._file_handler.setStream(sys.stdout)
            self._detach_console()
            self._file = None
            if old is not None:
                old.close()
            self._error.error("Failed to reopen log file, falling back to stdout: %s", e)
            return

        self._file_handler.setStream(new)
        self._attach_console()
        self._file = new
        if old is not None:
            old.close()

    def _detach_console(self) -> None:
        # the file handler already writes to stdout; avoid doubled lines
        if self._console_handler is not None:
            self._info.removeHandler(self._console_handler)
            self._error.removeHandler(self._console_handler)

    def _attach_console(self) -> None:
        if self._console_handler is not None:
            self._info.addHandler(self._console_handler)
            self._error.addHandler(self._console_handler)

    def _log_rotation_info(self) -> None:
        try:
            stats = self.rotator.get_stats()
        except OSError:
            pass
        else:
            self._info.info("Log stats: %s", stats)
        self._info.info(
            "Log rotation: max size %s, max age %s, max files %d",
            format_size(self.rotator.max_size),
            format_age(self.rotator.max_age),
            self.rotator.max_files,
        )

    def _flush(self) -> None:
        self._file_handler.flush()

    @property
    def falling_back(self) -> bool:
        """True while output goes to stdout because the file could not be reopened."""
        return self._file is None and not self._closed

    # ------------------------------------------------------------------
    # management surface
    # ------------------------------------------------------------------
    def get_stats(self) -> LogStats:
        return self.rotator.get_stats()

    def force_rotate(self) -> None:
        """Rotate now regardless of size/age. Raises RotationError on failure."""
        self.info("Manual log rotation requested")
        with self._lock:
            self._rotate_now()

    def cleanup_old_logs(self) -> list[Path]:
        self.info("Manual log cleanup requested")
        with self._lock:
            return self.rotator.cleanup_old_logs()

    def close(self) -> None:
        """Flush and release the log file; stops the rotation scheduler."""
        with self._lock:
            if self._closed:
                return
            self._info.info("Logger shutting down")
            self._closed = True

        # the scheduler thread may be blocked on our lock, so join outside it
        self._scheduler.stop()

        with self._lock:
            self._flush()
            for lg in (self._info, self._error):
                lg.removeHandler(self._file_handler)
            if self._file is not None:
                self._file.close()
                self._file = None
