"""
Option Extractor
================
Pulls "(A)".."(J)" answer choices out of a question segment.

Sources frequently glue the next passage, the next question or the answer
line onto the last option. Every body therefore passes a contamination
guard: a hard window after the last marker, an answer/header cut, a length
cap with sentence-aware truncation, and passage-echo stripping.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from .diagnostics import add_warning
from .evidence import split_sentences
from .models import OptionLayout, OptionRecord
from .patterns import (
    ANSWER_INDICATOR,
    HEADER_LINE,
    NUMBERED_BLANK,
    OPTION_MARKER,
    OPTION_TAIL_JUNK,
)
from .thresholds import OPTION_THRESHOLDS

logger = logging.getLogger(__name__)

_SENTENCE_END = re.compile(r"[.!?](?=\s)")
_Q_MARKER = re.compile(r"(?<![A-Za-z0-9])Q[ \t]*\d{1,3}(?!\d)", re.IGNORECASE)


@dataclass
class ExtractedOptions:
    """Options found in a segment plus the span they occupy."""
    options: list[OptionRecord]
    start: int
    end: int
    layout: OptionLayout

    @property
    def keys(self) -> list[str]:
        return [o.key for o in self.options]


def extract_options(
    text: str,
    passage: str = "",
    warnings: Optional[list[str]] = None,
    *,
    fill_in: bool = False,
) -> Optional[ExtractedOptions]:
    """
    Extract the option set of a question segment.

    Args:
        text: Normalized question segment.
        passage: Shared passage, used to detect echoed passage text.
        warnings: Optional list that receives extraction warnings.
        fill_in: True when "(n)" marks blanks rather than headers.

    Returns:
        ExtractedOptions, or None when fewer than two markers are present.
    """
    markers = list(OPTION_MARKER.finditer(text))
    if len(markers) < OPTION_THRESHOLDS.min_markers:
        return None

    records: list[OptionRecord] = []
    seen: set[str] = set()
    span_end = markers[-1].end()

    for index, marker in enumerate(markers):
        key = marker.group("key").upper()
        body_start = marker.end()
        if index + 1 < len(markers):
            body_end = markers[index + 1].start()
        else:
            body_end = _last_option_end(text, body_start, fill_in)
            span_end = body_end

        body = _cut_trailing_sections(text[body_start:body_end], fill_in)
        body = _guard_length(key, body, warnings)
        body = _strip_passage_echo(key, body, passage, warnings)

        if not body:
            logger.debug(f"Dropping empty option {key}")
            continue
        if key in seen:
            add_warning(
                warnings,
                f"Option {key} duplicated; later occurrence ignored",
                logger,
            )
            continue
        if len(records) >= OPTION_THRESHOLDS.max_options:
            logger.debug(f"Option limit reached; ignoring option {key}")
            continue

        seen.add(key)
        records.append(OptionRecord(key=key, text=body))

    if not records:
        return None

    missing = [k for k in "ABCD" if k not in seen]
    if missing:
        add_warning(warnings, f"Options missing: {', '.join(missing)}", logger)

    layout = OptionLayout.INLINE
    if "\n" in text[markers[0].start():markers[-1].start()]:
        layout = OptionLayout.MULTI_LINE
    else:
        add_warning(
            warnings,
            f"Options inline ({records[0].key}-{records[-1].key})",
            logger,
        )

    return ExtractedOptions(
        options=records,
        start=markers[0].start(),
        end=span_end,
        layout=layout,
    )


# ─── Boundary Helpers ─────────────────────────────────────────────────────────


def _next_header_start(text: str, pos: int, fill_in: bool) -> Optional[int]:
    for match in HEADER_LINE.finditer(text, pos):
        if match.start() <= pos:
            continue
        if fill_in and match.group("paren") is not None:
            continue
        return match.start()
    return None


def _last_option_end(text: str, body_start: int, fill_in: bool) -> int:
    """The last option stops at the next header, the answer line or the window."""
    candidates = [
        len(text),
        body_start + OPTION_THRESHOLDS.last_option_window,
    ]
    header_start = _next_header_start(text, body_start, fill_in)
    if header_start is not None:
        candidates.append(header_start)
    answer = ANSWER_INDICATOR.search(text, body_start)
    if answer:
        candidates.append(answer.start())
    return min(candidates)


def _cut_trailing_sections(body: str, fill_in: bool) -> str:
    answer = ANSWER_INDICATOR.search(body)
    if answer:
        body = body[:answer.start()]
    header_start = _next_header_start(body, 0, fill_in)
    if header_start is not None:
        body = body[:header_start]
    return body


def _collapse(body: str) -> str:
    body = " ".join(body.split())
    while True:
        trimmed = OPTION_TAIL_JUNK.sub("", body).rstrip()
        if trimmed == body:
            return body
        body = trimmed


# ─── Contamination Guard ──────────────────────────────────────────────────────


def _truncation_point(body: str) -> Optional[int]:
    """Nearest sentence end, paragraph break or numbered marker."""
    points = []
    sentence_end = _SENTENCE_END.search(body)
    if sentence_end:
        points.append(sentence_end.end())
    paragraph = body.find("\n\n")
    if paragraph > 0:
        points.append(paragraph)
    for pattern in (NUMBERED_BLANK, _Q_MARKER):
        marker = pattern.search(body, 1)
        if marker:
            points.append(marker.start())
    points = [p for p in points if p > 0]
    return min(points) if points else None


def _guard_length(key: str, body: str, warnings: Optional[list[str]]) -> str:
    limit = OPTION_THRESHOLDS.option_max_chars
    collapsed = _collapse(body)
    if len(collapsed) <= limit:
        return collapsed

    cut = _truncation_point(body)
    if cut is not None:
        collapsed = _collapse(body[:cut])
    if len(collapsed) > limit:
        head = collapsed[:limit]
        collapsed = head.rsplit(" ", 1)[0] if " " in head else head
        collapsed = _collapse(collapsed)

    add_warning(
        warnings, f"Option {key} truncated (possible passage leak)", logger
    )
    return collapsed


def _strip_passage_echo(
    key: str,
    body: str,
    passage: str,
    warnings: Optional[list[str]],
) -> str:
    if not passage or not body:
        return body

    min_chars = OPTION_THRESHOLDS.sentence_echo_min_sentence_chars
    probe = " ".join(passage[:OPTION_THRESHOLDS.passage_echo_chars].split())
    prefix = None
    if len(probe) >= min_chars:
        prefix = re.match(re.escape(probe), body, re.IGNORECASE)
    if prefix:
        add_warning(
            warnings, f"Option {key} had passage prefix removed", logger
        )
        body = _collapse(body[prefix.end():])

    if len(body) <= OPTION_THRESHOLDS.sentence_echo_min_option_chars:
        return body

    sentences = split_sentences(passage)[:OPTION_THRESHOLDS.sentence_echo_sentences]
    for sentence in sentences:
        if len(sentence) <= min_chars:
            continue
        echo = re.search(
            re.escape(sentence[:OPTION_THRESHOLDS.sentence_echo_probe_chars]),
            body,
            re.IGNORECASE,
        )
        if echo:
            add_warning(
                warnings,
                f"Option {key} truncated (passage contamination detected)",
                logger,
            )
            return _collapse(body[:echo.start()])
    return body
