"""
Boundary Splitter
=================
Line-level state machine that separates a normalized document into a shared
passage and one text segment per question.

Header grammar (line-anchored):
    [()]  (12) | Q12 | 第12題 | Question 12

Fill-in passages (paragraph organization / contextual completion) carry
"(n)" blanks inside running text. When one is detected, the "(n)" header form
is switched off so the blanks stay in the passage.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .diagnostics import add_warning
from .models import NumberedBlank, SplitTier
from .patterns import (
    HEADER_LINE,
    NUMBERED_BLANK,
    OPTION_MARKER,
    PARAGRAPH_BREAK,
    TERMINAL_CHARS,
)
from .thresholds import CLASSIFIER_THRESHOLDS, OPTION_THRESHOLDS

logger = logging.getLogger(__name__)

_EMPTY_BRACKET_TAIL = re.compile(r"\([ \t]*\)$")


@dataclass
class HeaderMatch:
    """A question header found at the start of a line."""
    number: int
    form: str
    start: int
    end: int
    has_empty_prefix: bool = False


@dataclass
class Segmentation:
    """Result of splitting a normalized document."""
    passage: str = ""
    segments: list[str] = field(default_factory=list)
    tier: SplitTier = SplitTier.EMPTY
    fill_in: bool = False


class SplitterState(Enum):
    """Which part of the document the current line belongs to."""
    PASSAGE = "PASSAGE"
    QUESTION = "QUESTION"


# ─── Header & Blank Detection ─────────────────────────────────────────────────


def match_header(line: str, *, fill_in: bool = False) -> Optional[HeaderMatch]:
    """
    Match a question header at the start of ``line``.

    The "(n)" form is ignored for fill-in passages, where it marks a blank.
    """
    match = HEADER_LINE.match(line)
    if not match:
        return None

    for form in ("paren", "q", "cjk", "word"):
        value = match.group(form)
        if value is not None:
            break

    if form == "paren" and fill_in:
        return None

    return HeaderMatch(
        number=int(value),
        form=form,
        start=match.start(),
        end=match.end(),
        has_empty_prefix=match.group("empty") is not None,
    )


def _is_embedded(text: str, start: int) -> bool:
    """True when a marker sits mid-sentence rather than opening a line."""
    line_start = text.rfind("\n", 0, start) + 1
    prefix = text[line_start:start].rstrip()
    if not prefix:
        return False
    if prefix.endswith(tuple(TERMINAL_CHARS)):
        return False
    return not _EMPTY_BRACKET_TAIL.search(prefix)


def detect_fill_in(text: str) -> bool:
    """
    Decide whether ``text`` is a fill-in passage with numbered blanks.

    Requires at least two distinct "(n)" markers with no option marker between
    them, and either two markers embedded mid-sentence or an option set that
    only starts after the last marker.
    """
    markers = list(NUMBERED_BLANK.finditer(text))
    numbers = {int(m.group("number")) for m in markers}
    if len(numbers) < CLASSIFIER_THRESHOLDS.min_numbered_blanks:
        return False

    first_start = markers[0].start()
    last_end = markers[-1].end()
    option_starts = [m.start() for m in OPTION_MARKER.finditer(text)]
    if any(first_start < pos < last_end for pos in option_starts):
        return False

    embedded = {
        int(m.group("number")) for m in markers if _is_embedded(text, m.start())
    }
    if len(embedded) >= CLASSIFIER_THRESHOLDS.min_numbered_blanks:
        return True

    return any(pos > last_end for pos in option_starts)


def find_numbered_blanks(passage: str) -> list[NumberedBlank]:
    """List the "(n)" blanks of a fill-in passage with paragraph coordinates."""
    paragraph_starts = [0] + [m.end() for m in PARAGRAPH_BREAK.finditer(passage)]
    blanks = []
    for match in NUMBERED_BLANK.finditer(passage):
        paragraph_index = sum(
            1 for start in paragraph_starts[1:] if start <= match.start()
        )
        blanks.append(NumberedBlank(
            number=int(match.group("number")),
            start=match.start(),
            end=match.end(),
            paragraph_index=paragraph_index,
        ))
    return blanks


# ─── Splitter ─────────────────────────────────────────────────────────────────


class BoundarySplitter:
    """
    Two-state line machine. Lines before the first header accumulate into the
    passage; every header line opens a new question segment.
    """

    def __init__(self, fill_in: bool = False):
        self.fill_in = fill_in
        self.state = SplitterState.PASSAGE
        self.passage_lines: list[str] = []
        self.segments: list[list[str]] = []

    def split(self, text: str) -> tuple[str, list[str]]:
        """Split ``text`` into (passage, question segments)."""
        self.state = SplitterState.PASSAGE
        self.passage_lines = []
        self.segments = []

        for line_no, line in enumerate(text.split("\n"), start=1):
            self._process_line(line, line_no)

        passage = "\n".join(self.passage_lines).strip()
        segments = [
            "\n".join(lines).strip()
            for lines in self.segments
            if "\n".join(lines).strip()
        ]
        return passage, segments

    def _process_line(self, line: str, line_no: int):
        header = match_header(line, fill_in=self.fill_in)
        if header:
            self._start_new_segment(header, line_no)
            self.segments[-1].append(line)
            return

        if self.state == SplitterState.PASSAGE:
            self.passage_lines.append(line)
        else:
            self.segments[-1].append(line)

    def _start_new_segment(self, header: HeaderMatch, line_no: int):
        logger.debug(
            f"Detected header {header.form}={header.number} on line {line_no}"
        )
        self.state = SplitterState.QUESTION
        self.segments.append([])


def _headerless_split(text: str, fill_in: bool) -> tuple[str, str]:
    """
    Cut text with options but no header at the last paragraph or sentence
    break before the first option marker.

    A fill-in passage keeps everything up to the first option: its blanks
    are the questions.
    """
    first_option = OPTION_MARKER.search(text)
    if fill_in:
        return text[:first_option.start()].strip(), text[first_option.start():].strip()

    # The sentence directly before the options is the stem, not a cut point
    text_before = text[:first_option.start()].rstrip()
    boundary = max(
        text_before.rfind("\n\n"),
        text_before.rfind(". "),
        text_before.rfind(".\n"),
    )
    if boundary > 0:
        return text_before[:boundary + 1].strip(), text[boundary + 1:].strip()
    return "", text.strip()


def split_document(text: str, warnings: list[str]) -> Segmentation:
    """
    Split normalized text into a passage and question segments.

    Tiers, in order:
        1. headers present: one segment per header
        2. no header but enough option markers: one synthetic question
        3. otherwise the whole text is passage
    """
    if not text.strip():
        return Segmentation()

    fill_in = detect_fill_in(text)
    if fill_in:
        logger.debug("Numbered blanks detected; treating text as fill-in passage")

    passage, segments = BoundarySplitter(fill_in=fill_in).split(text)
    if segments:
        return Segmentation(
            passage=passage,
            segments=segments,
            tier=SplitTier.HEADERS,
            fill_in=fill_in,
        )

    option_keys = [m.group("key").upper() for m in OPTION_MARKER.finditer(text)]
    if len(option_keys) >= OPTION_THRESHOLDS.fallback_min_markers:
        _warn(warnings, "Detected options but no question header")
        if option_keys.count("A") > 1:
            _warn(warnings, "Multiple option sets detected without question headers")
        passage, question_text = _headerless_split(text, fill_in)
        return Segmentation(
            passage=passage,
            segments=[question_text],
            tier=SplitTier.FALLBACK_NO_HEADER,
            fill_in=fill_in,
        )

    _warn(warnings, "No question markers detected")
    return Segmentation(
        passage=text.strip(),
        tier=SplitTier.PASSAGE_ONLY,
        fill_in=fill_in,
    )


def _warn(warnings: list[str], message: str):
    add_warning(warnings, message, logger)
