"""Tests for the logging setup."""

import logging
import os
import tempfile

from reddit_harvester.utils.logging_utils import setup_logging


def test_setup_logging_creates_rotating_file():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    with tempfile.TemporaryDirectory() as temp_dir:
        log_file = os.path.join(temp_dir, "logs", "harvester.log")
        try:
            setup_logging("debug", log_file)

            assert root.level == logging.DEBUG
            assert logging.getLogger("aiohttp").level == logging.WARNING
            assert os.path.isdir(os.path.dirname(log_file))
            assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in root.handlers)
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers = saved_handlers
            root.setLevel(saved_level)
