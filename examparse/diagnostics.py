"""
Diagnostics
===========
Warning collection shared by every pipeline stage.

Warnings are plain strings meant for logs and telemetry. They are collected
into the caller's list (deduplicated, in first-seen order) and echoed to the
module logger at DEBUG level. classify_warning() buckets them into a small
taxonomy for the validation report.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class WarningKind(str, Enum):
    """Soft error taxonomy."""
    NORMALIZATION = "normalization"
    STRUCTURAL = "structural"
    CONTAMINATION = "contamination"


_NORMALIZATION_MARKERS = (
    "Fullwidth",
    "Found () before",
    "Empty input",
    "Options inline",
)

_CONTAMINATION_MARKERS = (
    "truncated",
    "passage prefix removed",
)


def add_warning(
    warnings: Optional[list[str]],
    message: str,
    source: Optional[logging.Logger] = None,
):
    """Record ``message`` once; a ``None`` list only logs."""
    (source or logger).debug(message)
    if warnings is not None and message not in warnings:
        warnings.append(message)


def classify_warning(message: str) -> WarningKind:
    if any(marker in message for marker in _CONTAMINATION_MARKERS):
        return WarningKind.CONTAMINATION
    if any(message.startswith(marker) for marker in _NORMALIZATION_MARKERS):
        return WarningKind.NORMALIZATION
    return WarningKind.STRUCTURAL
