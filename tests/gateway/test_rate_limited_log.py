"""
Tests for the shared rate-limited logging implementation.
"""
import threading
from unittest.mock import MagicMock, patch

from cachetools import TTLCache

from baas_sdk.gateway import _rate_limited_log
from baas_sdk.gateway._rate_limited_log import rate_limited_log, reset_rate_limited_log


class FakeTimer:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestRateLimitedLog:
    """Tests for the rate-limited logging implementation."""

    def test_first_message_logged_then_suppressed(self):
        mock_logger = MagicMock()
        assert rate_limited_log("Resolution failed", logger_instance=mock_logger) is True
        mock_logger.warning.assert_called_once_with("Resolution failed")

        mock_logger.reset_mock()
        assert rate_limited_log("Resolution failed", logger_instance=mock_logger) is False
        mock_logger.warning.assert_not_called()

    def test_level_and_message_are_separate_keys(self):
        mock_logger = MagicMock()
        rate_limited_log("Test message", level="warning", logger_instance=mock_logger)
        rate_limited_log("Test message", level="error", logger_instance=mock_logger)
        rate_limited_log("Other message", level="warning", logger_instance=mock_logger)
        mock_logger.error.assert_called_once_with("Test message")
        assert mock_logger.warning.call_count == 2

    def test_unknown_level_falls_back_to_warning(self):
        mock_logger = MagicMock(spec=["warning"])
        rate_limited_log("x", level="nonsense", logger_instance=mock_logger)
        mock_logger.warning.assert_called_once_with("x")

    def test_interval_expiry(self):
        timer = FakeTimer()
        cache = TTLCache(maxsize=16, ttl=3600, timer=timer)
        mock_logger = MagicMock()
        with patch.object(_rate_limited_log, "_log_cache", cache):
            assert rate_limited_log("msg", interval=10, logger_instance=mock_logger)
            timer.now = 5
            assert not rate_limited_log("msg", interval=10, logger_instance=mock_logger)
            timer.now = 11
            assert rate_limited_log("msg", interval=10, logger_instance=mock_logger)
        assert mock_logger.warning.call_count == 2

    def test_reset_forgets_messages(self):
        mock_logger = MagicMock()
        rate_limited_log("again", logger_instance=mock_logger)
        reset_rate_limited_log()
        rate_limited_log("again", logger_instance=mock_logger)
        assert mock_logger.warning.call_count == 2

    def test_concurrent_callers_log_once(self):
        mock_logger = MagicMock()
        barrier = threading.Barrier(10)
        results = []

        def worker():
            barrier.wait()
            results.append(rate_limited_log("burst", logger_instance=mock_logger))

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert results.count(True) == 1
        mock_logger.warning.assert_called_once_with("burst")
