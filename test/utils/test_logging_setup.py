"""Unit tests for log file setup and retention."""

import logging
import os
import re
import time

from ralph_loop.utils.logging import cleanup_old_logs, new_session_id, resolve_level, setup_logging


class TestSessionId:
    def test_six_hex_chars(self):
        assert re.fullmatch(r"[0-9a-f]{6}", new_session_id())


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_writes_records_with_session_id(self, tmp_path):
        logger = setup_logging("debug", "abc123", log_dir=tmp_path)
        try:
            logging.getLogger("ralph_loop.stream.parser").debug("hello from parser")
            for handler in logger.handlers:
                handler.flush()
            contents = (tmp_path / "ralph.log").read_text(encoding="utf-8")
            assert "abc123" in contents
            assert "hello from parser" in contents
        finally:
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()

    def test_level_aliases(self):
        assert resolve_level("trace") == logging.DEBUG
        assert resolve_level("WARN") == logging.WARNING
        assert resolve_level("unknown") == logging.INFO


class TestCleanupOldLogs:
    """Tests for cleanup_old_logs()."""

    def test_removes_only_old_log_files(self, tmp_path):
        old = tmp_path / "ralph.log.2020-01-01"
        recent = tmp_path / "ralph.log"
        other = tmp_path / "notes.txt"
        for path in (old, recent, other):
            path.write_text("x")
        stale = time.time() - 30 * 24 * 60 * 60
        os.utime(old, (stale, stale))
        os.utime(other, (stale, stale))

        assert cleanup_old_logs(tmp_path, retention_days=14) == 1
        assert not old.exists()
        assert recent.exists()
        assert other.exists()

    def test_missing_dir(self, tmp_path):
        assert cleanup_old_logs(tmp_path / "none") == 0
