"""Pytest configuration and fixtures for jarbackup tests."""

import logging
import tempfile
from pathlib import Path

import pytest
from hypothesis import settings, Phase

from jarbackup.logger import LOGGER_NAME


# Configure hypothesis to use fewer examples for faster test runs
# Disable shrinking phase to speed up tests further
settings.register_profile(
    "fast",
    max_examples=10,
    deadline=10000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate]
)
settings.register_profile("ci", max_examples=50, deadline=10000)
settings.register_profile("dev", max_examples=2, deadline=10000)

# Use the fast profile by default
settings.load_profile("fast")


@pytest.fixture
def temp_dir():
    """Create a temporary working directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def cleanup_logger():
    """Clean up logger handlers after each test."""
    yield
    logging.getLogger(LOGGER_NAME).handlers.clear()
