"""
Question Block Parser
=====================
Turns one question segment into a QuestionBlock: header stripped, options
extracted, answer key located and removed, stem cleaned.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .diagnostics import add_warning
from .models import QuestionBlock
from .options import ExtractedOptions, extract_options
from .patterns import (
    ANSWER_INDICATOR,
    HEADER_LINE,
    OPTION_MARKER,
    QUOTE_CHARS,
    STEM_LABEL,
)
from .splitter import match_header
from .thresholds import STEM_THRESHOLDS

logger = logging.getLogger(__name__)

_STEM_TAIL_JUNK = re.compile(r"[ \t]*[【\[(（]$")


def parse_question_block(
    chunk: str,
    ordinal: int,
    passage: str,
    warnings: Optional[list[str]] = None,
    *,
    fill_in: bool = False,
    group_id: str = "",
) -> Optional[QuestionBlock]:
    """
    Parse a single question segment.

    Args:
        chunk: Normalized segment text, header line included.
        ordinal: Sequential position of the question in the document.
        passage: Shared passage, used for contamination checks.
        warnings: Optional list that receives parse warnings.
        fill_in: True when "(n)" marks blanks rather than headers.
        group_id: Passage group id copied onto the question.

    Returns:
        QuestionBlock, or None when the segment holds no content at all.
    """
    question_id = f"Q{ordinal}"
    body = chunk.strip()

    header = match_header(body, fill_in=fill_in)
    if header:
        if header.has_empty_prefix:
            add_warning(warnings, "Found () before (1)", logger)
        body = body[header.end:].lstrip(":：.、 \t").strip()

    if not body:
        logger.debug(f"Segment for {question_id} is empty after header")
        return None

    extracted = extract_options(body, passage, warnings, fill_in=fill_in)
    answer_key, stem_text = _locate_answer(body, extracted)

    stem = clean_stem(stem_text)
    stem = remove_passage_prefix(stem, passage, question_id, warnings)
    if not stem:
        add_warning(warnings, f"Question {question_id} missing stem", logger)

    return QuestionBlock(
        ordinal=ordinal,
        id=question_id,
        stem=stem,
        options=extracted.options if extracted else [],
        answer_key=answer_key,
        raw_source=chunk,
        group_id=group_id,
        option_layout=extracted.layout if extracted else None,
    )


def _locate_answer(
    body: str,
    extracted: Optional[ExtractedOptions],
) -> tuple[Optional[str], str]:
    """
    Find the answer key and return it with the stem region, answer removed.

    An answer after the start of the options wins over one inside the stem.
    """
    if extracted is None:
        return _locate_answer_without_options(body)

    stem_text = body[:extracted.start]
    after = ANSWER_INDICATOR.search(body, extracted.start)
    if after:
        return after.group("key").upper(), stem_text

    embedded = ANSWER_INDICATOR.search(stem_text)
    if embedded:
        stem_text = stem_text[:embedded.start()] + " " + stem_text[embedded.end():]
        return embedded.group("key").upper(), stem_text

    return None, stem_text


def _locate_answer_without_options(body: str) -> tuple[Optional[str], str]:
    """Answer and stem for a segment whose option markers yielded no set."""
    answer_key = None
    answer = ANSWER_INDICATOR.search(body)
    if answer:
        answer_key = answer.group("key").upper()
        body = body[:answer.start()] + " " + body[answer.end():]

    # A lone or empty marker still ends the stem
    marker = OPTION_MARKER.search(body)
    if marker:
        body = body[:marker.start()]
    return answer_key, body


def clean_stem(text: str) -> str:
    """
    Strip header remnants, "Question:" labels and wrapping quotes; collapse
    whitespace inside lines while keeping line structure.
    """
    text = text.strip()
    remnant = HEADER_LINE.match(text)
    if remnant:
        text = text[remnant.end():]
    text = STEM_LABEL.sub("", text.strip())

    lines = [" ".join(line.split()) for line in text.split("\n")]
    text = "\n".join(line for line in lines if line)

    if len(text) >= 2 and text[0] in QUOTE_CHARS and text[-1] in QUOTE_CHARS:
        text = text[1:-1].strip()

    return _STEM_TAIL_JUNK.sub("", text).strip()


def remove_passage_prefix(
    stem: str,
    passage: str,
    question_id: str,
    warnings: Optional[list[str]] = None,
) -> str:
    """Drop a leading copy of the passage opening from a stem."""
    if not stem or not passage:
        return stem

    length = min(
        STEM_THRESHOLDS.passage_prefix_max_chars,
        int(len(passage) * STEM_THRESHOLDS.passage_prefix_ratio),
    )
    fragment = passage[:length].split()
    if len(" ".join(fragment)) < STEM_THRESHOLDS.passage_prefix_min_chars:
        return stem

    echo = re.match(
        r"\s+".join(re.escape(word) for word in fragment), stem, re.IGNORECASE
    )
    if not echo:
        return stem

    add_warning(
        warnings,
        f"Question {question_id} stem had passage prefix removed",
        logger,
    )
    return stem[echo.end():].strip()
