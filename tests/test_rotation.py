"""Unit tests for LogRotator, LogStats and RotationScheduler."""

from __future__ import annotations

import os
import threading
from datetime import datetime
from pathlib import Path

import pytest

from spotlight import rotation
from spotlight.errors import RotationError
from spotlight.rotation import (
    LogRotator,
    LogStats,
    RotationScheduler,
    format_age,
    format_size,
)


def _write(path: Path, size: int = 0, mtime: float | None = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


def _siblings(path: Path) -> list[Path]:
    return sorted(p for p in path.parent.glob(f"{path.name}.*"))


class TestShouldRotate:
    def test_missing_file_is_not_due(self, log_path, clock):
        rotator = LogRotator(log_path, clock=clock)
        assert rotator.should_rotate() is False

    def test_size_threshold_is_inclusive(self, log_path, clock):
        rotator = LogRotator(log_path, max_size=100, clock=clock)

        _write(log_path, 99, mtime=clock.now)
        assert rotator.should_rotate() is False

        _write(log_path, 100, mtime=clock.now)
        assert rotator.should_rotate() is True

    def test_age_threshold_is_inclusive(self, log_path, clock):
        rotator = LogRotator(log_path, max_age=3600, clock=clock)

        _write(log_path, 1, mtime=clock.now - 3599)
        assert rotator.should_rotate() is False

        os.utime(log_path, (clock.now - 3600, clock.now - 3600))
        assert rotator.should_rotate() is True

    def test_other_stat_errors_propagate(self, tmp_path, clock):
        not_a_dir = tmp_path / "plain-file"
        not_a_dir.write_text("x")
        rotator = LogRotator(not_a_dir / "app.log", clock=clock)

        with pytest.raises(OSError):
            rotator.should_rotate()


class TestRotateLog:
    def test_missing_active_file_creates_banner_only(self, log_path, clock):
        rotator = LogRotator(log_path, clock=clock)

        assert rotator.rotate_log() is None

        lines = log_path.read_text().splitlines()
        assert len(lines) == 1
        assert lines[0].startswith("INFO: ")
        assert lines[0].endswith("Log file created/rotated")
        assert _siblings(log_path) == []

    def test_rotates_to_timestamped_sibling(self, log_path, clock):
        _write(log_path, 10, mtime=clock.now)
        rotator = LogRotator(log_path, clock=clock)

        rotated = rotator.rotate_log()

        stamp = datetime.fromtimestamp(clock.now).strftime("%Y-%m-%d_%H-%M-%S")
        assert rotated == log_path.with_name(f"app.log.{stamp}")
        assert rotated.read_bytes() == b"x" * 10
        assert "Log file created/rotated" in log_path.read_text()

    def test_same_second_rotation_does_not_overwrite(self, log_path, clock):
        rotator = LogRotator(log_path, clock=clock)
        _write(log_path, 5, mtime=clock.now)
        first = rotator.rotate_log()
        _write(log_path, 7, mtime=clock.now)
        second = rotator.rotate_log()

        assert first != second
        assert first.read_bytes() == b"x" * 5
        assert second.read_bytes() == b"x" * 7
        assert second.name.endswith(".1")

    def test_creates_missing_directory(self, tmp_path, clock):
        path = tmp_path / "deep" / "nested" / "app.log"
        LogRotator(path, clock=clock).rotate_log()
        assert path.exists()

    def test_rename_failure_raises(self, log_path, clock, monkeypatch):
        _write(log_path, 10)

        def boom(src, dst):
            raise PermissionError("read-only")

        monkeypatch.setattr(rotation.os, "rename", boom)
        with pytest.raises(RotationError, match="failed to rotate log file"):
            LogRotator(log_path, clock=clock).rotate_log()
        assert log_path.read_bytes() == b"x" * 10

    def test_cleanup_failure_does_not_fail_rotation(self, log_path, clock, monkeypatch):
        _write(log_path, 10)
        rotator = LogRotator(log_path, clock=clock)

        def broken_cleanup():
            raise OSError("disk on fire")

        monkeypatch.setattr(rotator, "cleanup_old_logs", broken_cleanup)
        assert rotator.rotate_log() is not None
        assert log_path.exists()

    def test_rotation_prunes_history(self, log_path, clock):
        rotator = LogRotator(log_path, max_files=2, clock=clock)
        for i in range(4):
            _write(log_path.with_name(f"app.log.old{i}"), 1, mtime=clock.now - 100 * (i + 1))
        _write(log_path, 10, mtime=clock.now)

        rotator.rotate_log()

        # the fresh rotation plus the newest remaining old file
        assert len(_siblings(log_path)) == 2


class TestCleanupOldLogs:
    def test_keeps_newest_max_files(self, log_path, clock):
        max_files = 4
        rotator = LogRotator(log_path, max_files=max_files, clock=clock)
        _write(log_path, 1, mtime=clock.now)
        made = [
            _write(log_path.with_name(f"app.log.{i:02d}"), 1, mtime=clock.now - 60 * i)
            for i in range(max_files + 3)
        ]

        removed = rotator.cleanup_old_logs()

        remaining = _siblings(log_path)
        assert len(remaining) == max_files
        assert set(remaining) == set(made[:max_files])
        assert set(removed) == set(made[max_files:])
        assert log_path.exists()

    def test_age_and_count_are_independent(self, log_path, clock):
        """Old files go even when under the count limit."""
        rotator = LogRotator(log_path, max_age=1000, max_files=10, clock=clock)
        fresh = _write(log_path.with_name("app.log.fresh"), 1, mtime=clock.now - 10)
        stale = _write(log_path.with_name("app.log.stale"), 1, mtime=clock.now - 1001)

        rotator.cleanup_old_logs()

        assert fresh.exists()
        assert not stale.exists()

    def test_active_file_never_deleted(self, log_path, clock):
        rotator = LogRotator(log_path, max_age=10, max_files=0, clock=clock)
        _write(log_path, 1, mtime=clock.now - 10_000)
        _write(log_path.with_name("app.log.a"), 1, mtime=clock.now)

        rotator.cleanup_old_logs()

        assert log_path.exists()
        assert _siblings(log_path) == []

    def test_delete_failure_does_not_stop_others(self, log_path, clock, monkeypatch):
        rotator = LogRotator(log_path, max_files=0, clock=clock)
        stuck = _write(log_path.with_name("app.log.stuck"), 1, mtime=clock.now)
        other = _write(log_path.with_name("app.log.other"), 1, mtime=clock.now - 5)

        real_unlink = Path.unlink

        def flaky_unlink(self, *args, **kwargs):
            if self == stuck:
                raise PermissionError("busy")
            return real_unlink(self, *args, **kwargs)

        monkeypatch.setattr(Path, "unlink", flaky_unlink)
        removed = rotator.cleanup_old_logs()

        assert removed == [other]
        assert stuck.exists()
        assert not other.exists()

    def test_unrelated_files_ignored(self, log_path, clock):
        rotator = LogRotator(log_path, max_files=0, clock=clock)
        unrelated = _write(log_path.with_name("other.log.1"), 1, mtime=clock.now)
        rotator.cleanup_old_logs()
        assert unrelated.exists()


class TestStats:
    def test_stats_cover_active_and_rotated(self, log_path, clock):
        rotator = LogRotator(log_path, clock=clock)
        _write(log_path, 100, mtime=clock.now - 120)
        _write(log_path.with_name("app.log.1"), 50, mtime=clock.now)
        _write(log_path.with_name("app.log.2"), 25, mtime=clock.now)

        stats = rotator.get_stats()

        assert stats.current_size == 100
        assert stats.current_age == pytest.approx(120)
        assert stats.rotated_count == 2
        assert stats.total_size == 175

    def test_stats_without_active_file(self, log_path, clock):
        log_path.parent.mkdir(parents=True)
        stats = LogRotator(log_path, clock=clock).get_stats()
        assert stats == LogStats()

    def test_rotated_files_newest_first(self, log_path, clock):
        rotator = LogRotator(log_path, clock=clock)
        old = _write(log_path.with_name("app.log.old"), 1, mtime=clock.now - 500)
        new = _write(log_path.with_name("app.log.new"), 1, mtime=clock.now)
        assert [f.path for f in rotator.rotated_files()] == [new, old]

    def test_string_forms(self):
        stats = LogStats(current_size=2048, current_age=3900, rotated_count=3, total_size=10 * 1024 * 1024)
        assert str(stats) == "Current: 2.0 KB (age: 1h5m0s), Rotated files: 3, Total size: 10.0 MB"
        assert stats.to_dict()["rotatedFiles"] == 3

    @pytest.mark.parametrize(
        "num_bytes,expected",
        [(0, "0 B"), (1023, "1023 B"), (1536, "1.5 KB"), (10 * 1024 * 1024, "10.0 MB"), (3 * 1024**3, "3.0 GB")],
    )
    def test_format_size(self, num_bytes, expected):
        assert format_size(num_bytes) == expected

    def test_format_age(self):
        assert format_age(0) == "0s"
        assert format_age(300) == "5m0s"
        assert format_age(5 * 24 * 3600) == "120h0m0s"


class TestRotationScheduler:
    def test_check_rotates_and_calls_back(self, log_path, clock):
        rotator = LogRotator(log_path, max_size=10, clock=clock)
        _write(log_path, 20, mtime=clock.now)
        calls = []
        scheduler = RotationScheduler(rotator, 60, on_rotate=lambda: calls.append(1))

        assert scheduler.check() is True
        assert calls == [1]
        assert len(_siblings(log_path)) == 1

    def test_check_not_due_skips_callback(self, log_path, clock):
        rotator = LogRotator(log_path, max_size=10, clock=clock)
        _write(log_path, 1, mtime=clock.now)
        calls = []
        scheduler = RotationScheduler(rotator, 60, on_rotate=lambda: calls.append(1))

        assert scheduler.check() is False
        assert calls == []

    def test_check_swallows_rotation_errors(self, log_path, clock, monkeypatch):
        rotator = LogRotator(log_path, max_size=10, clock=clock)
        _write(log_path, 20)
        def boom(src, dst):
            raise OSError("nope")

        monkeypatch.setattr(rotation.os, "rename", boom)
        calls = []
        scheduler = RotationScheduler(rotator, 60, on_rotate=lambda: calls.append(1))

        assert scheduler.check() is False
        assert calls == []

    def test_background_thread_rotates(self, log_path):
        rotator = LogRotator(log_path, max_size=200)
        _write(log_path, 300)
        rotated = threading.Event()
        scheduler = RotationScheduler(rotator, 0.01, on_rotate=rotated.set)

        scheduler.start()
        try:
            assert rotated.wait(2.0)
        finally:
            scheduler.stop()

        assert not scheduler.running
        assert len(_siblings(log_path)) >= 1

    def test_check_holds_given_lock(self, log_path, clock):
        lock = threading.RLock()
        rotator = LogRotator(log_path, max_size=10, clock=clock)
        _write(log_path, 20)
        seen = []

        def on_rotate():
            t = threading.Thread(target=lambda: seen.append(lock.acquire(blocking=False)))
            t.start()
            t.join()

        RotationScheduler(rotator, 60, on_rotate=on_rotate, lock=lock).check()
        assert seen == [False]
