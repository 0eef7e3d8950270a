"""
Tests for logging setup.
"""
import logging

from market_terminal.logging_config import setup_logging


class TestSetupLogging:

    def test_level_override_and_quiet_http_client(self):
        setup_logging("debug")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_repeated_setup_keeps_one_handler(self):
        setup_logging("INFO")
        setup_logging("INFO")

        assert len(logging.getLogger().handlers) == 1
