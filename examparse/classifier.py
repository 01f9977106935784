"""
Type Classifier
===============
Routes a question to one of seven explanation archetypes (or the fallback)
from the shape of its stem and options.

Rules are pure guard functions tried in priority order; the first one that
returns a result wins:

    1. numbered blanks      -> paragraph organization / contextual completion
    2. grammar option set   -> grammar           (before vocabulary)
    3. single blank + words -> vocabulary
    4. speaker turns        -> dialogue
    5. underscore blanks    -> cloze
    6. passage + questions  -> reading          (confirmed by a parse)
    7. many sentences       -> reading
    8. grammar cue words    -> grammar
    9. one sentence + words -> vocabulary
   10.                      -> fallback

Every result carries the full feature vector, so downstream logs can explain
any routing decision.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Optional, Sequence, Union

from .document import parse_document
from .models import (
    Archetype,
    ChoiceShape,
    ClassificationFeatures,
    ClassificationResult,
    OptionLayout,
    OptionRecord,
)
from .normalizer import normalize
from .patterns import (
    CIRCLED_NUMBERS,
    GRAMMAR_FUNCTION_WORD,
    GRAMMAR_STEM_CUES,
    GRAMMAR_VERB_FORM,
    NUMBERED_BLANK,
    OPTION_MARKER,
    QUESTION_MARKER_LINE,
    SENTENCE_TERMINATORS,
    SINGLE_BLANK,
    SPEAKER_TURN_ANY,
    SPEAKER_TURN_LINE,
    UNDERSCORE_RUN,
)
from .splitter import detect_fill_in
from .thresholds import CLASSIFIER_THRESHOLDS, CONFIDENCE

logger = logging.getLogger(__name__)

OptionInput = Union[OptionRecord, str]

_OPTION_KEYS = "ABCDEFGHIJ"
_CIRCLED = str.maketrans(CIRCLED_NUMBERS)
_HEADER_PREFIX = re.compile(r"[ \t]*(?:\([ \t]*\)[ \t]*)?")
_OPTION_EDGE_PUNCT = " \t.,;"


# ─── Option Shape ─────────────────────────────────────────────────────────────


def _is_sentence_shaped(text: str) -> bool:
    return (
        "A" <= text[:1] <= "Z"
        and text.endswith((".", "?", "!"))
        and len(text.split()) >= CLASSIFIER_THRESHOLDS.sentence_min_tokens
    )


def _is_word_shaped(text: str) -> bool:
    return (
        not text.endswith((".", "?", "!"))
        and len(text.split()) <= CLASSIFIER_THRESHOLDS.word_phrase_max_tokens
    )


def detect_choice_shape(option_texts: Sequence[str]) -> tuple[ChoiceShape, float, float]:
    """
    Classify an option set as sentences, words/phrases or mixed.

    Returns:
        (shape, sentence-shaped ratio, word/phrase-shaped ratio)
    """
    if not option_texts:
        return ChoiceShape.NONE, 0.0, 0.0

    total = len(option_texts)
    sentence_ratio = sum(_is_sentence_shaped(t) for t in option_texts) / total
    word_ratio = sum(_is_word_shaped(t) for t in option_texts) / total

    majority = CLASSIFIER_THRESHOLDS.shape_majority_ratio
    if sentence_ratio >= majority:
        shape = ChoiceShape.SENTENCES
    elif word_ratio >= majority:
        shape = ChoiceShape.WORDS_PHRASES
    else:
        shape = ChoiceShape.MIXED
    return shape, sentence_ratio, word_ratio


# ─── Feature Extraction ───────────────────────────────────────────────────────


def _count_numbered_blanks(text: str) -> int:
    """Distinct "(n)" blanks; line-opening headers only count in fill-in text."""
    fill_in = detect_fill_in(text)
    numbers = set()
    for match in NUMBERED_BLANK.finditer(text):
        line_start = text.rfind("\n", 0, match.start()) + 1
        opens_line = _HEADER_PREFIX.fullmatch(text[line_start:match.start()])
        if opens_line and not fill_in:
            continue
        numbers.add(int(match.group("number")))
    return len(numbers)


def _count_sentences(text: str) -> int:
    return sum(1 for piece in SENTENCE_TERMINATORS.split(text) if piece.strip())


def extract_features(
    text: str,
    option_texts: Sequence[str],
    option_layout: Optional[OptionLayout] = None,
) -> ClassificationFeatures:
    shape, sentence_ratio, word_ratio = detect_choice_shape(option_texts)
    bare_options = [t.strip(_OPTION_EDGE_PUNCT) for t in option_texts]

    grammar_count = sum(
        1 for t in bare_options
        if GRAMMAR_FUNCTION_WORD.fullmatch(t) or GRAMMAR_VERB_FORM.fullmatch(t)
    )
    verb_form_count = sum(
        1 for t in bare_options if GRAMMAR_VERB_FORM.fullmatch(t)
    )

    return ClassificationFeatures(
        numbered_blank_count=_count_numbered_blanks(text),
        has_single_blank=SINGLE_BLANK.search(text) is not None,
        option_count=len(option_texts),
        choice_shape=shape,
        sentence_shaped_ratio=sentence_ratio,
        word_shaped_ratio=word_ratio,
        all_single_words=bool(option_texts) and all(
            len(t.split()) == 1 for t in option_texts
        ),
        grammar_option_count=grammar_count,
        verb_form_option_count=verb_form_count,
        stem_chars=len(text),
        sentence_count=_count_sentences(text),
        question_marker_count=len(QUESTION_MARKER_LINE.findall(text)),
        underscore_blank_count=len(UNDERSCORE_RUN.findall(text)),
        option_layout=option_layout,
    )


# ─── Result Assembly ──────────────────────────────────────────────────────────


def _result(
    archetype: Archetype,
    confidence: float,
    rule: str,
    detail: str,
    features: ClassificationFeatures,
    group_id: Optional[str] = None,
) -> ClassificationResult:
    reason = (
        f"{archetype.value} ({rule}): {detail}; "
        f"blanks={features.numbered_blank_count}, "
        f"shape={features.choice_shape.value}, "
        f"options={features.option_count}, "
        f"stem_chars={features.stem_chars}, "
        f"passage_chars={features.passage_chars}, "
        f"confidence={confidence:.2f}"
    )
    signals = features.as_signals() + [
        f"rule={rule}",
        f"archetype={archetype.value}",
        f"confidence={confidence:.2f}",
    ]
    logger.debug(f"Routed to {archetype.code}: {reason}")
    return ClassificationResult(
        archetype=archetype,
        confidence=confidence,
        rule=rule,
        reason=reason,
        signals=tuple(signals),
        features=features,
        group_id=group_id,
    )


# ─── Guard Rules ──────────────────────────────────────────────────────────────


class _Item:
    """Normalized inputs shared by the guard rules."""

    def __init__(
        self,
        text: str,
        options: list[OptionRecord],
        features: ClassificationFeatures,
    ):
        self.text = text
        self.options = options
        self.option_texts = [o.text for o in options]
        self.features = features


def _numbered_blank_rule(item: _Item) -> Optional[ClassificationResult]:
    f = item.features
    if f.numbered_blank_count < CLASSIFIER_THRESHOLDS.min_numbered_blanks:
        return None

    if f.choice_shape == ChoiceShape.SENTENCES:
        return _result(
            Archetype.PARAGRAPH_ORGANIZATION, CONFIDENCE.paragraph_organization,
            "numbered_blanks", "numbered blanks with sentence options", f,
        )
    if f.choice_shape == ChoiceShape.WORDS_PHRASES:
        return _result(
            Archetype.CONTEXTUAL_COMPLETION, CONFIDENCE.contextual_completion,
            "numbered_blanks", "numbered blanks with word/phrase options", f,
        )

    if item.option_texts:
        total = len(item.option_texts)
        max_tokens = CLASSIFIER_THRESHOLDS.word_phrase_max_tokens
        sentence_like = sum(
            1 for t in item.option_texts
            if _is_sentence_shaped(t) or len(t.split()) > max_tokens
        ) / total
        if sentence_like > f.word_shaped_ratio:
            return _result(
                Archetype.PARAGRAPH_ORGANIZATION,
                CONFIDENCE.numbered_blank_majority,
                "numbered_blanks_majority",
                f"mixed options leaning to sentences ({sentence_like:.2f})", f,
            )
        if f.word_shaped_ratio > sentence_like:
            return _result(
                Archetype.CONTEXTUAL_COMPLETION,
                CONFIDENCE.numbered_blank_majority,
                "numbered_blanks_majority",
                f"mixed options leaning to words ({f.word_shaped_ratio:.2f})", f,
            )

    # Numbered blanks never fall through to the reading rules
    return _result(
        Archetype.FALLBACK, CONFIDENCE.fallback, "numbered_blanks_guard",
        "numbered blanks without a decisive option shape", f,
    )


def _grammar_rule(item: _Item) -> Optional[ClassificationResult]:
    f = item.features
    if not f.has_single_blank:
        return None
    if f.option_count != CLASSIFIER_THRESHOLDS.choice_option_count:
        return None
    if (f.grammar_option_count >= CLASSIFIER_THRESHOLDS.grammar_min_matches
            or f.verb_form_option_count >= CLASSIFIER_THRESHOLDS.grammar_min_verb_forms):
        return _result(
            Archetype.GRAMMAR, CONFIDENCE.grammar, "grammar_options",
            "single blank with grammatical-form options", f,
        )
    return None


def _vocabulary_rule(item: _Item) -> Optional[ClassificationResult]:
    f = item.features
    if (f.has_single_blank
            and f.option_count == CLASSIFIER_THRESHOLDS.choice_option_count
            and f.choice_shape == ChoiceShape.WORDS_PHRASES
            and f.stem_chars < CLASSIFIER_THRESHOLDS.vocabulary_max_stem_chars):
        return _result(
            Archetype.VOCABULARY, CONFIDENCE.vocabulary, "single_blank_words",
            "single blank with word/phrase options", f,
        )
    return None


def _dialogue_rule(item: _Item) -> Optional[ClassificationResult]:
    lines = item.text.split("\n")
    for index, line in enumerate(lines):
        if SPEAKER_TURN_LINE.match(line):
            return _result(
                Archetype.DIALOGUE, CONFIDENCE.dialogue, "speaker_turns",
                "line-initial speaker turn", item.features,
            )
        next_line = lines[index + 1] if index + 1 < len(lines) else ""
        if "?" in line and SPEAKER_TURN_ANY.search(next_line):
            return _result(
                Archetype.DIALOGUE, CONFIDENCE.dialogue, "speaker_turns",
                "question followed by a speaker turn", item.features,
            )
    return None


def _cloze_rule(item: _Item) -> Optional[ClassificationResult]:
    f = item.features
    if f.underscore_blank_count >= CLASSIFIER_THRESHOLDS.cloze_min_blanks:
        return _result(
            Archetype.CLOZE, CONFIDENCE.cloze, "underscore_blanks",
            "multiple underscore blanks", f,
        )
    return None


def _reading_parse_rule(item: _Item) -> Optional[ClassificationResult]:
    f = item.features
    if f.stem_chars <= CLASSIFIER_THRESHOLDS.reading_min_stem_chars:
        return None
    if not (f.question_marker_count >= CLASSIFIER_THRESHOLDS.reading_min_question_markers
            or f.sentence_count > CLASSIFIER_THRESHOLDS.reading_parse_min_sentences):
        return None

    text = item.text
    if len(OPTION_MARKER.findall(text)) < 2 and item.options:
        attached = "\n".join(f"({o.key}) {o.text}" for o in item.options)
        text = f"{text}\n{attached}"

    parsed = parse_document(text)
    if (len(parsed.passage) <= CLASSIFIER_THRESHOLDS.reading_min_passage_chars
            or not parsed.questions):
        return None

    features = f.model_copy(update={"passage_chars": len(parsed.passage)})
    return _result(
        Archetype.READING, CONFIDENCE.reading_parsed, "passage_with_questions",
        f"shared passage with {len(parsed.questions)} question(s)",
        features, group_id=parsed.group_id,
    )


def _long_text_rule(item: _Item) -> Optional[ClassificationResult]:
    f = item.features
    if f.sentence_count > CLASSIFIER_THRESHOLDS.reading_min_sentences:
        return _result(
            Archetype.READING, CONFIDENCE.reading_long, "multi_sentence",
            f"{f.sentence_count} sentences of context", f,
        )
    return None


def _loose_grammar_rule(item: _Item) -> Optional[ClassificationResult]:
    f = item.features
    if not item.option_texts or f.all_single_words:
        return None
    lower = item.text.lower()
    if any(cue.search(lower) for cue in GRAMMAR_STEM_CUES):
        return _result(
            Archetype.GRAMMAR, CONFIDENCE.grammar_loose, "grammar_cues",
            "grammar cue words in stem with multi-word options", f,
        )
    return None


def _loose_vocabulary_rule(item: _Item) -> Optional[ClassificationResult]:
    f = item.features
    if (f.all_single_words
            and f.sentence_count <= CLASSIFIER_THRESHOLDS.single_sentence_max):
        return _result(
            Archetype.VOCABULARY, CONFIDENCE.vocabulary_loose, "single_words",
            "single sentence with single-word options", f,
        )
    return None


_RULES: list[Callable[[_Item], Optional[ClassificationResult]]] = [
    _numbered_blank_rule,
    _grammar_rule,
    _vocabulary_rule,
    _dialogue_rule,
    _cloze_rule,
    _reading_parse_rule,
    _long_text_rule,
    _loose_grammar_rule,
    _loose_vocabulary_rule,
]


# ─── Entry Point ──────────────────────────────────────────────────────────────


def _coerce_options(options: Sequence[OptionInput]) -> list[OptionRecord]:
    records = []
    for index, option in enumerate(options):
        if isinstance(option, OptionRecord):
            key, raw = option.key, option.text
        else:
            key, raw = _OPTION_KEYS[min(index, len(_OPTION_KEYS) - 1)], str(option)
        text = " ".join(normalize(raw).split())
        if text:
            records.append(OptionRecord(key=key, text=text))
    return records


def classify(
    stem: str,
    options: Sequence[OptionInput] = (),
    *,
    option_layout: Optional[OptionLayout] = None,
) -> ClassificationResult:
    """
    Route a question to an explanation archetype.

    Args:
        stem: Question text, optionally preceded by its passage.
        options: OptionRecords or plain option strings (keyed A, B, C...).
        option_layout: Layout reported by the option extractor, if known.

    Returns:
        ClassificationResult; never raises for text input.
    """
    text = normalize(stem.translate(_CIRCLED))
    records = _coerce_options(options)
    features = extract_features(
        text, [r.text for r in records], option_layout
    )
    item = _Item(text, records, features)

    for rule in _RULES:
        result = rule(item)
        if result is not None:
            return result

    return _result(
        Archetype.FALLBACK, CONFIDENCE.fallback, "fallback",
        "no routing rule matched", features,
    )
