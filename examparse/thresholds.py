"""Centralized tuning thresholds.

The option guard, stem cleaning, classifier and evidence scorer all depend on
empirically tuned numbers. They live here, grouped per consumer, so that the
parsing logic reads as rules rather than as a wall of magic numbers.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class OptionGuardThresholds:
    """Limits for option extraction and passage-leak detection."""

    min_markers: int = 2  # Fewer markers means "no options"
    fallback_min_markers: int = 3  # Headerless text needs this many to split
    max_options: int = 10  # A..J
    option_max_chars: int = 150  # Longer bodies are assumed to have leaked
    last_option_window: int = 200  # Hard window after the last marker
    passage_echo_chars: int = 100  # Passage prefix compared against options
    sentence_echo_min_option_chars: int = 100
    sentence_echo_probe_chars: int = 30
    sentence_echo_min_sentence_chars: int = 20
    sentence_echo_sentences: int = 3


@dataclass(frozen=True)
class StemThresholds:
    """Limits for stem cleaning."""

    passage_prefix_max_chars: int = 200
    passage_prefix_ratio: float = 0.3
    passage_prefix_min_chars: int = 20  # Shorter fragments are too ambiguous


@dataclass(frozen=True)
class ClassifierThresholds:
    """Decision boundaries for archetype routing."""

    min_numbered_blanks: int = 2
    shape_majority_ratio: float = 0.6
    sentence_min_tokens: int = 4  # Sentence-shaped options
    word_phrase_max_tokens: int = 5  # Word/phrase-shaped options
    choice_option_count: int = 4  # Vocabulary and grammar sets
    grammar_min_matches: int = 3
    grammar_min_verb_forms: int = 2
    vocabulary_max_stem_chars: int = 300
    cloze_min_blanks: int = 2
    reading_min_stem_chars: int = 100
    reading_min_question_markers: int = 2
    reading_parse_min_sentences: int = 2  # Strictly more than this
    reading_min_passage_chars: int = 50  # Strictly more than this
    reading_min_sentences: int = 3  # Strictly more than this
    single_sentence_max: int = 1


@dataclass(frozen=True)
class ConfidenceLevels:
    """Confidence attached to each routing rule."""

    paragraph_organization: float = 0.9
    contextual_completion: float = 0.9
    numbered_blank_majority: float = 0.7
    grammar: float = 0.85
    vocabulary: float = 0.9
    dialogue: float = 0.9
    cloze: float = 0.88
    reading_parsed: float = 0.86
    reading_long: float = 0.85
    grammar_loose: float = 0.75
    vocabulary_loose: float = 0.8
    fallback: float = 0.5


@dataclass(frozen=True)
class EvidenceThresholds:
    """Scoring weights for evidence alignment."""

    min_token_chars: int = 3  # Shorter tokens are dropped
    prefix_chars: int = 4
    exact_match_points: int = 2
    prefix_match_points: int = 1


# Global instances for easy import
OPTION_THRESHOLDS = OptionGuardThresholds()
STEM_THRESHOLDS = StemThresholds()
CLASSIFIER_THRESHOLDS = ClassifierThresholds()
CONFIDENCE = ConfidenceLevels()
EVIDENCE_THRESHOLDS = EvidenceThresholds()
