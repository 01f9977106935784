"""
Text Normalizer
===============
Folds the encoding noise of pasted and OCR'd exam text into a canonical form.

    - Full-width ASCII variants (U+FF01..U+FF5E) become half-width
    - "。" becomes "."
    - NBSP, ideographic and typographic spaces become ASCII spaces
    - Zero-width characters and BOM are dropped
    - Line endings become LF, horizontal whitespace runs collapse
    - A question header found mid-line is moved to its own line

Content is never reordered. normalize() is idempotent.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .diagnostics import add_warning
from .patterns import HEADER_INLINE, HEADER_LINE, TERMINAL_CHARS
from .splitter import detect_fill_in

logger = logging.getLogger(__name__)

_FULLWIDTH_FIRST = 0xFF01
_FULLWIDTH_LAST = 0xFF5E
_FULLWIDTH_OFFSET = 0xFEE0

_SPACE_CODEPOINTS = (0x00A0, 0x3000, 0x202F, 0x205F, *range(0x2000, 0x200B))
_ZERO_WIDTH_CODEPOINTS = (0x200B, 0x200C, 0x200D, 0x2060, 0xFEFF)


def _build_translation() -> dict[int, Optional[str]]:
    table: dict[int, Optional[str]] = {
        cp: chr(cp - _FULLWIDTH_OFFSET)
        for cp in range(_FULLWIDTH_FIRST, _FULLWIDTH_LAST + 1)
    }
    table[ord("。")] = "."
    for cp in _SPACE_CODEPOINTS:
        table[cp] = " "
    for cp in _ZERO_WIDTH_CODEPOINTS:
        table[cp] = None
    return table


_TRANSLATION = _build_translation()

_FULLWIDTH_PRESENT = re.compile("[！-～。]")
_HORIZONTAL_WS = re.compile(r"[ \t\f\v]+")
_TRAILING_WS = re.compile(r" +$", re.MULTILINE)


def normalize(raw: str, warnings: Optional[list[str]] = None) -> str:
    """
    Normalize raw question text.

    Args:
        raw: Arbitrary pasted text.
        warnings: Optional list that receives normalization warnings.

    Returns:
        Normalized text; "" for empty or whitespace-only input.
    """
    if not raw or not raw.strip():
        add_warning(warnings, "Empty input", logger)
        return ""

    if _FULLWIDTH_PRESENT.search(raw):
        add_warning(warnings, "Fullwidth brackets normalized", logger)

    text = raw.replace("\r\n", "\n").replace("\r", "\n")
    text = text.translate(_TRANSLATION)
    text = _HORIZONTAL_WS.sub(" ", text)
    text = _TRAILING_WS.sub("", text)
    text = _break_before_headers(text)

    for match in HEADER_LINE.finditer(text):
        if match.group("empty") is not None:
            add_warning(warnings, "Found () before (1)", logger)
            break

    text = text.strip()
    if not text:
        add_warning(warnings, "Empty input", logger)
    return text


def _break_before_headers(text: str) -> str:
    """
    Insert a line break before every header that starts mid-line after
    terminal punctuation or behind a noisy empty bracket.
    """
    fill_in = detect_fill_in(text)
    pieces = []
    cursor = 0

    for match in HEADER_INLINE.finditer(text):
        if fill_in and match.group("paren") is not None:
            continue

        line_start = text.rfind("\n", 0, match.start()) + 1
        prefix = text[line_start:match.start()].rstrip()
        if not prefix:
            continue
        if match.group("empty") is None and not prefix.endswith(tuple(TERMINAL_CHARS)):
            continue

        logger.debug(f"Moving mid-line header {match.group(0)!r} to its own line")
        pieces.append(text[cursor:match.start()].rstrip(" "))
        pieces.append("\n")
        cursor = match.start()

    pieces.append(text[cursor:])
    return "".join(pieces)
