"""
Passage/Question Separator
==========================
Full document parse: normalize, split at question boundaries, parse each
question block and renumber the survivors 1..N.

Usage:
    document = parse_document(raw_text)
    for question in document.questions:
        print(question.id, question.stem, question.option_keys)
"""

from __future__ import annotations

import hashlib
import logging

from .block_parser import parse_question_block
from .diagnostics import add_warning
from .models import ParsedDocument, QuestionBlock, SplitTier
from .normalizer import normalize
from .splitter import find_numbered_blanks, split_document

logger = logging.getLogger(__name__)


def make_group_id(passage: str, normalized_text: str = "") -> str:
    """
    Stable id for the passage a group of questions shares.

    Falls back to the whole normalized text when there is no passage.
    """
    basis = passage.strip() or normalized_text.strip()
    if not basis:
        return ""
    digest = hashlib.md5(basis.encode("utf-8")).hexdigest()
    return f"reading-{digest[:8]}"


def parse_document(raw: str) -> ParsedDocument:
    """
    Parse raw exam text into a passage and its questions.

    Never raises for text input: problems surface as warnings and the
    document degrades to fewer (or zero) questions.
    """
    warnings: list[str] = []
    text = normalize(raw, warnings)
    if not text:
        return ParsedDocument(warnings=warnings, tier=SplitTier.EMPTY)

    segmentation = split_document(text, warnings)
    group_id = make_group_id(segmentation.passage, text)

    questions: list[QuestionBlock] = []
    for chunk in segmentation.segments:
        block = parse_question_block(
            chunk,
            len(questions) + 1,
            segmentation.passage,
            warnings,
            fill_in=segmentation.fill_in,
            group_id=group_id,
        )
        if block is None:
            continue
        if not block.options:
            add_warning(warnings, f"Question {block.id} missing options", logger)
        questions.append(block)

    if segmentation.segments and not questions:
        add_warning(warnings, "No valid questions parsed", logger)

    blanks = []
    if segmentation.fill_in:
        blanks = find_numbered_blanks(segmentation.passage)

    logger.debug(
        f"Parsed {len(questions)} question(s), tier={segmentation.tier.value}, "
        f"passage={len(segmentation.passage)} chars, "
        f"{len(warnings)} warning(s)"
    )

    return ParsedDocument(
        passage=segmentation.passage,
        questions=questions,
        group_id=group_id,
        warnings=warnings,
        tier=segmentation.tier,
        blanks=blanks,
    )
