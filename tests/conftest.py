"""Shared fixtures for the examparse test suite."""

from __future__ import annotations

import logging

import pytest


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers ExamEngine attached so streams never outlive a test."""
    yield
    package_logger = logging.getLogger("examparse")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
