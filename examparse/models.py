"""
Data Models
===========
Pydantic models for structured question extraction and routing output.
All models serialize to JSON for downstream explanation dispatchers.
"""

from __future__ import annotations

from collections import Counter
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


# ─── Enums ────────────────────────────────────────────────────────────────────


class Archetype(str, Enum):
    """Explanation archetype a question is routed to."""
    VOCABULARY = "vocabulary"
    GRAMMAR = "grammar"
    CLOZE = "cloze"
    READING = "reading"
    DIALOGUE = "dialogue"
    PARAGRAPH_ORGANIZATION = "paragraph_organization"
    CONTEXTUAL_COMPLETION = "contextual_completion"
    FALLBACK = "fallback"

    @property
    def code(self) -> str:
        """Template code used by the explanation dispatcher."""
        return _ARCHETYPE_CODES[self]


_ARCHETYPE_CODES = {
    Archetype.VOCABULARY: "E1",
    Archetype.GRAMMAR: "E2",
    Archetype.CLOZE: "E3",
    Archetype.READING: "E4",
    Archetype.DIALOGUE: "E5",
    Archetype.PARAGRAPH_ORGANIZATION: "E6",
    Archetype.CONTEXTUAL_COMPLETION: "E7",
    Archetype.FALLBACK: "FALLBACK",
}


class OptionLayout(str, Enum):
    """How an option set was laid out in the source."""
    INLINE = "inline"
    MULTI_LINE = "multi_line"


class ChoiceShape(str, Enum):
    """Dominant linguistic shape of an option set."""
    SENTENCES = "sentences"
    WORDS_PHRASES = "words_phrases"
    MIXED = "mixed"
    NONE = "none"


class SplitTier(str, Enum):
    """Which boundary rule produced the question segments."""
    HEADERS = "headers"
    FALLBACK_NO_HEADER = "fallback_no_header"
    PASSAGE_ONLY = "passage_only"
    EMPTY = "empty"


class QuestionFocus(str, Enum):
    """What a reading question asks about."""
    MAIN_IDEA = "main_idea"
    INFERENCE = "inference"
    WORD_MEANING = "word_meaning"
    DETAIL = "detail"


# ─── Question Models ──────────────────────────────────────────────────────────


class OptionRecord(BaseModel):
    """A single answer choice."""
    model_config = ConfigDict(frozen=True)

    key: str = Field(pattern=r"^[A-J]$")
    text: str = Field(min_length=1)


class QuestionBlock(BaseModel):
    """
    One question extracted from a document.
    The stem never carries option markers or the question header.
    """
    model_config = ConfigDict(frozen=True)

    ordinal: int = Field(ge=1)
    id: str = Field(description='Sequential id, "Q{ordinal}"')
    stem: str = ""
    options: list[OptionRecord] = Field(default_factory=list, max_length=10)
    answer_key: Optional[str] = Field(default=None, pattern=r"^[A-J]$")
    raw_source: str = Field(
        default="",
        description="Normalized text of the segment the question came from"
    )
    group_id: str = ""
    option_layout: Optional[OptionLayout] = None

    @computed_field
    @property
    def option_keys(self) -> list[str]:
        return [o.key for o in self.options]

    @computed_field
    @property
    def answer_in_options(self) -> bool:
        return self.answer_key is not None and self.answer_key in self.option_keys

    def option_text(self, key: str) -> Optional[str]:
        for option in self.options:
            if option.key == key:
                return option.text
        return None


class NumberedBlank(BaseModel):
    """Position of a "(n)" blank inside a fill-in passage."""
    model_config = ConfigDict(frozen=True)

    number: int = Field(ge=1)
    start: int = Field(ge=0)
    end: int = Field(ge=0)
    paragraph_index: int = Field(ge=0)

    @computed_field
    @property
    def anchor_id(self) -> str:
        return f"blank-{self.number}"


class ParsedDocument(BaseModel):
    """
    A passage plus the questions that share it.
    group_id is stable for a given passage and copied onto every question.
    """
    passage: str = ""
    questions: list[QuestionBlock] = Field(default_factory=list)
    group_id: str = ""
    warnings: list[str] = Field(default_factory=list)
    tier: SplitTier = SplitTier.EMPTY
    blanks: list[NumberedBlank] = Field(default_factory=list)

    @computed_field
    @property
    def question_count(self) -> int:
        return len(self.questions)


# ─── Classification Models ────────────────────────────────────────────────────


class ClassificationFeatures(BaseModel):
    """Feature vector the classifier considered."""
    model_config = ConfigDict(frozen=True)

    numbered_blank_count: int = 0
    has_single_blank: bool = False
    option_count: int = 0
    choice_shape: ChoiceShape = ChoiceShape.NONE
    sentence_shaped_ratio: float = 0.0
    word_shaped_ratio: float = 0.0
    all_single_words: bool = False
    grammar_option_count: int = 0
    verb_form_option_count: int = 0
    stem_chars: int = 0
    sentence_count: int = 0
    question_marker_count: int = 0
    underscore_blank_count: int = 0
    passage_chars: int = 0
    option_layout: Optional[OptionLayout] = None

    def as_signals(self) -> list[str]:
        signals = []
        for name, value in self.model_dump(mode="json").items():
            if isinstance(value, float):
                value = f"{value:.2f}"
            signals.append(f"{name}={value}")
        return signals


class ClassificationResult(BaseModel):
    """Routing decision for a single question."""
    model_config = ConfigDict(frozen=True)

    archetype: Archetype
    confidence: float = Field(ge=0.0, le=1.0)
    rule: str
    reason: str
    signals: tuple[str, ...] = ()
    features: ClassificationFeatures = Field(
        default_factory=ClassificationFeatures
    )
    group_id: Optional[str] = None

    @computed_field
    @property
    def template_code(self) -> str:
        return self.archetype.code


class EvidenceSpan(BaseModel):
    """
    Passage sentence that best supports a reading question.
    score is exposed so callers can decide what counts as weak evidence.
    """
    model_config = ConfigDict(frozen=True)

    paragraph_index: int = Field(ge=0)
    sentence_index: Optional[int] = Field(default=None, ge=0)
    text: str = ""
    score: int = Field(default=0, ge=0)
    matched_tokens: tuple[str, ...] = ()


# ─── Validation / Routing Result Models ───────────────────────────────────────


class ValidationReport(BaseModel):
    """Post-parse validation report."""
    total_questions: int = 0
    structured_successfully: int = 0
    questions_missing_stem: list[str] = Field(default_factory=list)
    questions_missing_options: list[str] = Field(default_factory=list)
    questions_missing_answer: list[str] = Field(default_factory=list)
    answers_not_in_options: list[str] = Field(default_factory=list)
    incomplete_option_sets: list[str] = Field(default_factory=list)
    warning_breakdown: dict[str, int] = Field(default_factory=dict)

    @computed_field
    @property
    def success_rate(self) -> float:
        if self.total_questions == 0:
            return 0.0
        return round(
            self.structured_successfully / self.total_questions * 100,
            2
        )

    @computed_field
    @property
    def contamination_count(self) -> int:
        return self.warning_breakdown.get("contamination", 0)


class RoutedQuestion(BaseModel):
    """A question together with its routing decision."""
    question: QuestionBlock
    classification: ClassificationResult
    evidence: Optional[EvidenceSpan] = None
    focus: Optional[QuestionFocus] = None


class RoutingResult(BaseModel):
    """
    Complete output of a routing run.
    This is the top-level JSON structure handed to explanation dispatchers.
    """
    engine_version: str = "1.0.0"
    document: ParsedDocument
    routes: list[RoutedQuestion] = Field(default_factory=list)
    validation: ValidationReport = Field(default_factory=ValidationReport)

    @computed_field
    @property
    def archetype_breakdown(self) -> dict[str, int]:
        counts = Counter(r.classification.archetype.value for r in self.routes)
        return dict(sorted(counts.items()))
