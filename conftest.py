"""Project-level pytest configuration."""

import logging

import pytest


@pytest.fixture(autouse=True)
def _quiet_third_party_loggers():
    """Keep aiohttp and asyncio debug chatter out of captured test logs."""
    for name in ("aiohttp", "asyncio"):
        logging.getLogger(name).setLevel(logging.WARNING)
    yield
