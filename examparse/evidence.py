"""
Evidence Aligner
================
Finds the passage sentence that best supports a reading question.

Scoring is lexical and deterministic:
    +2  for every question token present in the sentence
    +1  for every question token of 4+ chars whose 4-char prefix
        starts a sentence token

The highest score wins; ties keep the earliest (paragraph, sentence).
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Sequence

from .models import EvidenceSpan, QuestionFocus
from .patterns import PARAGRAPH_BREAK, SENTENCE_BOUNDARY, WHITESPACE_RUN
from .thresholds import EVIDENCE_THRESHOLDS

logger = logging.getLogger(__name__)

STOPWORDS = frozenset({
    "the", "there", "this", "that", "those", "these", "and", "but", "for",
    "with", "from", "were", "have", "has", "been", "being", "into", "about",
    "after", "before", "their", "would", "could", "should", "because",
    "since", "than", "then", "when", "where", "what", "which", "while",
    "whose", "upon", "through", "among", "around", "between", "under",
    "over", "therefore", "is", "are", "was", "be", "of", "in", "on", "at",
    "a", "an", "to", "by", "it", "its", "reading", "passage", "article",
})

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")

_FOCUS_RULES = [
    (QuestionFocus.MAIN_IDEA,
     re.compile(r"main idea|title|purpose|author|primarily|mainly")),
    (QuestionFocus.INFERENCE,
     re.compile(r"infer|imply|suggest|probably|likely|reason")),
    (QuestionFocus.WORD_MEANING,
     re.compile(r"closest|meaning|word|phrase|refer")),
]


# ─── Text Units ───────────────────────────────────────────────────────────────


def tokenize(text: str) -> list[str]:
    """Lowercased content tokens, stop words removed, first occurrence order."""
    cleaned = _NON_ALNUM.sub(" ", text.lower())
    tokens = []
    for token in cleaned.split():
        if len(token) < EVIDENCE_THRESHOLDS.min_token_chars:
            continue
        if token in STOPWORDS or token in tokens:
            continue
        tokens.append(token)
    return tokens


def split_paragraphs(passage: str) -> list[str]:
    return [p.strip() for p in PARAGRAPH_BREAK.split(passage) if p.strip()]


def split_sentences(paragraph: str) -> list[str]:
    collapsed = WHITESPACE_RUN.sub(" ", paragraph)
    return [s.strip() for s in SENTENCE_BOUNDARY.split(collapsed) if s.strip()]


# ─── Scoring ──────────────────────────────────────────────────────────────────


def score_sentence(
    question_tokens: Sequence[str],
    sentence_tokens: Sequence[str],
) -> tuple[int, list[str]]:
    """Score one sentence; returns (score, matched question tokens)."""
    if not sentence_tokens:
        return 0, []

    prefix_len = EVIDENCE_THRESHOLDS.prefix_chars
    sentence_set = set(sentence_tokens)
    score = 0
    matched = []

    for token in question_tokens:
        hit = False
        if token in sentence_set:
            score += EVIDENCE_THRESHOLDS.exact_match_points
            hit = True
        if len(token) >= prefix_len and any(
            word.startswith(token[:prefix_len]) for word in sentence_tokens
        ):
            score += EVIDENCE_THRESHOLDS.prefix_match_points
            hit = True
        if hit:
            matched.append(token)

    return score, matched


def select_evidence(
    stem: str,
    option_texts: Sequence[str],
    paragraphs: Sequence[str],
) -> EvidenceSpan:
    """
    Pick the passage sentence that best supports a question.

    Args:
        stem: Question stem.
        option_texts: Texts of the options to align (all, or just the answer).
        paragraphs: Passage paragraphs in reading order.

    Returns:
        EvidenceSpan with paragraph/sentence coordinates and the score.
    """
    tokens = tokenize(f"{stem} {' '.join(option_texts)}")
    if not paragraphs or not tokens:
        return EvidenceSpan(
            paragraph_index=0,
            text=paragraphs[0] if paragraphs else "",
        )

    best: tuple[int, int, Optional[int], str, list[str]] = (-1, 0, None, "", [])

    for paragraph_index, paragraph in enumerate(paragraphs):
        sentences = split_sentences(paragraph)
        if not sentences:
            score, matched = score_sentence(tokens, tokenize(paragraph))
            if score > best[0]:
                best = (score, paragraph_index, None, paragraph, matched)
            continue

        for sentence_index, sentence in enumerate(sentences):
            score, matched = score_sentence(tokens, tokenize(sentence))
            if score > best[0]:
                best = (score, paragraph_index, sentence_index, sentence, matched)

    score, paragraph_index, sentence_index, text, matched = best
    logger.debug(
        f"Evidence at paragraph {paragraph_index}, sentence {sentence_index} "
        f"(score={score})"
    )
    return EvidenceSpan(
        paragraph_index=paragraph_index,
        sentence_index=sentence_index,
        text=text,
        score=score,
        matched_tokens=tuple(matched),
    )


def detect_question_focus(stem: str) -> QuestionFocus:
    """Tag what a reading question asks about."""
    lower = stem.lower()
    for focus, pattern in _FOCUS_RULES:
        if pattern.search(lower):
            return focus
    return QuestionFocus.DETAIL
