"""
Test Suite for Archetype Routing
================================
Tests for classification, evidence alignment, validation, the routing
engine and the CLI.
"""

from __future__ import annotations

import json
import logging

import pytest
from click.testing import CliRunner

from examparse.classifier import classify, detect_choice_shape
from examparse.cli import cli
from examparse.diagnostics import WarningKind, add_warning, classify_warning
from examparse.document import parse_document
from examparse.engine import EngineConfig, ExamEngine, compose_context
from examparse.evidence import (
    detect_question_focus,
    score_sentence,
    select_evidence,
    tokenize,
)
from examparse.models import (
    Archetype,
    ChoiceShape,
    OptionRecord,
    ParsedDocument,
    QuestionBlock,
    QuestionFocus,
)
from examparse.validator import ValidationEngine


# ─── Sample Inputs ────────────────────────────────────────────────────────────

SHARED_PASSAGE_DOC = (
    "The passage discusses the importance of assessment in education.\n\n"
    "Teachers use various methods to evaluate student performance.\n\n"
    "(1) What is the main idea?\n"
    "(A) Assessment is important\n"
    "(B) Teachers are busy\n"
    "(C) Students dislike tests\n"
    "(D) Schools need money\n"
    "(2) According to the passage, what do teachers use?\n"
    "(A) Various methods\n"
    "(B) Only exams\n"
    "(C) No tools\n"
    "(D) Computers"
)

GARDEN_STEM = (
    "Gardening has become popular in cities (1) Many residents grow herbs "
    "on balconies (2) Community gardens bring neighbors together (3)"
)

GARDEN_SENTENCES = [
    "It saves money on groceries.",
    "People enjoy fresh air while working.",
    "Some buildings even have rooftop farms.",
    "Local councils support these projects.",
]

FILL_IN_DOC = GARDEN_STEM + "\n" + " ".join(
    f"({key}) {text}" for key, text in zip("ABCD", GARDEN_SENTENCES)
)

TRANSITIONS = ["however", "for example", "in addition", "as a result"]

WOLF_PARAGRAPHS = [
    "Wolves live in packs across the northern forests. "
    "A pack usually has six to ten members.",
    "Wolves attack large prey when they hunt together. "
    "Working as a group lets them bring down elk and moose.",
    "Young wolves learn to hunt by watching older members of the pack.",
]


# ═══════════════════════════════════════════════════════════════════════════════
# CLASSIFIER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestChoiceShape:
    """Test option-set shape detection."""

    def test_sentences(self):
        shape, sentence_ratio, _ = detect_choice_shape(GARDEN_SENTENCES)
        assert shape == ChoiceShape.SENTENCES
        assert sentence_ratio == 1.0

    def test_words(self):
        shape, _, word_ratio = detect_choice_shape(TRANSITIONS)
        assert shape == ChoiceShape.WORDS_PHRASES
        assert word_ratio == 1.0

    def test_mixed(self):
        shape, _, _ = detect_choice_shape(["The rain falls on the plain.", "rain"])
        assert shape == ChoiceShape.MIXED

    def test_empty(self):
        assert detect_choice_shape([]) == (ChoiceShape.NONE, 0.0, 0.0)


class TestNumberedBlankRouting:
    """Test paragraph organization and contextual completion."""

    def test_paragraph_organization(self):
        result = classify(GARDEN_STEM, GARDEN_SENTENCES)
        assert result.archetype == Archetype.PARAGRAPH_ORGANIZATION
        assert result.confidence == 0.9
        assert result.template_code == "E6"
        assert result.features.numbered_blank_count == 3

    def test_contextual_completion(self):
        result = classify(GARDEN_STEM, TRANSITIONS)
        assert result.archetype == Archetype.CONTEXTUAL_COMPLETION
        assert result.confidence == 0.9
        assert result.template_code == "E7"

    def test_majority_leaning_to_sentences(self):
        result = classify(GARDEN_STEM, [
            "The rain falls on the plain.",
            "the rain falls on the wide open plain",
            "rain",
        ])
        assert result.archetype == Archetype.PARAGRAPH_ORGANIZATION
        assert result.confidence == 0.7
        assert result.rule == "numbered_blanks_majority"

    def test_tied_shapes_fall_back(self):
        result = classify(GARDEN_STEM, ["The rain falls on the plain.", "rain"])
        assert result.archetype == Archetype.FALLBACK
        assert result.rule == "numbered_blanks_guard"

    def test_no_options_never_reading(self):
        result = classify(GARDEN_STEM)
        assert result.archetype == Archetype.FALLBACK
        assert result.rule == "numbered_blanks_guard"

    def test_circled_numbers_count_as_blanks(self):
        result = classify(
            "Cities grew quickly ① as trade expanded ② and ports became busy.",
            TRANSITIONS,
        )
        assert result.features.numbered_blank_count == 2
        assert result.archetype == Archetype.CONTEXTUAL_COMPLETION

    def test_years_are_not_blanks(self):
        result = classify("In (2019) the city built a new port.")
        assert result.features.numbered_blank_count == 0


class TestSingleBlankRouting:
    """Test grammar and vocabulary routing of single-blank stems."""

    def test_grammar_before_vocabulary(self):
        # Word-shaped options would also satisfy the vocabulary rule
        result = classify(
            "The boy ( ) is standing there is my brother.",
            ["who", "which", "whose", "what"],
        )
        assert result.archetype == Archetype.GRAMMAR
        assert result.confidence == 0.85
        assert result.rule == "grammar_options"

    def test_grammar_verb_forms(self):
        result = classify(
            "She seems ( ) the answer already.",
            ["to know", "has known", "had known", "knowing"],
        )
        assert result.archetype == Archetype.GRAMMAR

    def test_vocabulary(self):
        result = classify(
            "He was ( ) for his bravery.",
            ["praised", "criticized", "ignored", "punished"],
        )
        assert result.archetype == Archetype.VOCABULARY
        assert result.confidence == 0.9
        assert result.rule == "single_blank_words"
        assert result.template_code == "E1"

    def test_option_records_accepted(self):
        options = [
            OptionRecord(key=key, text=text)
            for key, text in zip("ABCD", ["praised", "criticized", "ignored", "punished"])
        ]
        result = classify("He was ( ) for his bravery.", options)
        assert result.archetype == Archetype.VOCABULARY


class TestOtherRouting:
    """Test dialogue, cloze, reading, loose rules and fallback."""

    def test_dialogue(self):
        result = classify(
            "Woman: Excuse me, is this seat taken?\nMan: No, please sit down.",
            ["Thank you.", "Never mind.", "You are welcome.", "Go away."],
        )
        assert result.archetype == Archetype.DIALOGUE
        assert result.confidence == 0.9

    def test_cloze(self):
        result = classify(
            "The weather was ____ and the streets were ____ after the storm.",
            ["warm, busy", "cold, empty", "dry, wet", "hot, quiet"],
        )
        assert result.archetype == Archetype.CLOZE
        assert result.confidence == 0.88

    def test_reading_with_shared_passage(self):
        result = classify(SHARED_PASSAGE_DOC)
        assert result.archetype == Archetype.READING
        assert result.confidence == 0.86
        assert result.rule == "passage_with_questions"
        assert result.group_id == parse_document(SHARED_PASSAGE_DOC).group_id
        assert result.features.passage_chars > 50

    def test_reading_from_long_text(self):
        result = classify(
            "Bees visit many flowers each day. They collect nectar and pollen. "
            "Pollen sticks to their legs. Flowers need this to make seeds. "
            "Farmers value bees for this work."
        )
        assert result.archetype == Archetype.READING
        assert result.confidence == 0.85
        assert result.rule == "multi_sentence"

    def test_single_word_options_without_blank(self):
        result = classify(
            "Which word best links the two ideas in the sentence?",
            ["therefore", "however", "moreover", "nevertheless"],
        )
        assert result.archetype == Archetype.VOCABULARY
        assert result.confidence == 0.8
        assert result.rule == "single_words"

    def test_grammar_cues_in_stem(self):
        result = classify(
            "Choose the sentence that is grammatically correct.",
            [
                "He go to school every day.",
                "He goes to school every day.",
                "He going to school every day.",
                "He gone to school every day.",
            ],
        )
        assert result.archetype == Archetype.GRAMMAR
        assert result.confidence == 0.75

    def test_fallback(self):
        result = classify("Pick one.", ["red apple pie", "blue sky"])
        assert result.archetype == Archetype.FALLBACK
        assert result.confidence == 0.5
        assert result.template_code == "FALLBACK"

    def test_empty_stem(self):
        result = classify("")
        assert result.archetype == Archetype.FALLBACK


class TestClassificationResult:
    """Test result determinism and explanations."""

    def test_deterministic(self):
        args = ("He was ( ) for his bravery.", ["praised", "criticized", "ignored", "punished"])
        assert classify(*args) == classify(*args)

    def test_signals_and_reason(self):
        result = classify(
            "He was ( ) for his bravery.",
            ["praised", "criticized", "ignored", "punished"],
        )
        assert "rule=single_blank_words" in result.signals
        assert "archetype=vocabulary" in result.signals
        assert "option_count=4" in result.signals
        assert "has_single_blank=True" in result.signals
        assert result.reason.startswith("vocabulary (single_blank_words)")
        assert "confidence=0.90" in result.reason


# ═══════════════════════════════════════════════════════════════════════════════
# EVIDENCE TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestTokenize:
    """Test evidence tokenization."""

    def test_stopwords_and_short_tokens(self):
        assert tokenize("Why do the wolves attack in the passage?") == [
            "why", "wolves", "attack",
        ]

    def test_unique_in_order(self):
        assert tokenize("Rivers, rivers and RIVERS flow.") == ["rivers", "flow"]


class TestScoreSentence:
    """Test lexical overlap scoring."""

    def test_exact_and_prefix_stack(self):
        score, matched = score_sentence(["wolves"], ["wolves", "hunt"])
        assert score == 3
        assert matched == ["wolves"]

    def test_prefix_only(self):
        score, matched = score_sentence(["hunting"], ["hunted"])
        assert score == 1
        assert matched == ["hunting"]

    def test_short_token_no_prefix_bonus(self):
        assert score_sentence(["elk"], ["elks"]) == (0, [])

    def test_empty_sentence(self):
        assert score_sentence(["wolves"], []) == (0, [])


class TestSelectEvidence:
    """Test evidence sentence selection."""

    def test_best_sentence(self):
        span = select_evidence(
            "Why do wolves attack large prey?", [], WOLF_PARAGRAPHS
        )
        assert span.paragraph_index == 1
        assert span.sentence_index == 0
        assert span.text == "Wolves attack large prey when they hunt together."
        assert span.score == 12
        assert "attack" in span.matched_tokens

    def test_tie_keeps_earliest(self):
        span = select_evidence(
            "Why do cats sleep?", [], ["Cats sleep a lot.", "Cats sleep a lot too."]
        )
        assert span.paragraph_index == 0
        assert span.sentence_index == 0

    def test_zero_scores(self):
        span = select_evidence("Why do birds sing?", [], ["Fish swim in water."])
        assert span.paragraph_index == 0
        assert span.sentence_index == 0
        assert span.score == 0

    def test_no_paragraphs(self):
        span = select_evidence("Why?", [], [])
        assert span.paragraph_index == 0
        assert span.text == ""

    def test_no_tokens(self):
        span = select_evidence("Is it?", [], ["Some text here."])
        assert span.paragraph_index == 0
        assert span.sentence_index is None
        assert span.text == "Some text here."

    def test_option_text_contributes(self):
        span = select_evidence(
            "What is true?", ["They bring down elk and moose"], WOLF_PARAGRAPHS
        )
        assert span.paragraph_index == 1
        assert span.sentence_index == 1


class TestQuestionFocus:
    """Test reading question focus tags."""

    @pytest.mark.parametrize("stem,focus", [
        ("What is the main idea of the passage?", QuestionFocus.MAIN_IDEA),
        ("What can be inferred about the wolves?", QuestionFocus.INFERENCE),
        ("The word 'vast' is closest in meaning to", QuestionFocus.WORD_MEANING),
        ("When did the wolves leave?", QuestionFocus.DETAIL),
    ])
    def test_focus(self, stem, focus):
        assert detect_question_focus(stem) == focus


# ═══════════════════════════════════════════════════════════════════════════════
# DIAGNOSTICS & VALIDATION TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestDiagnostics:
    """Test warning collection and taxonomy."""

    def test_add_warning_dedupes(self):
        warnings = []
        add_warning(warnings, "Options missing: C, D")
        add_warning(warnings, "Options missing: C, D")
        assert warnings == ["Options missing: C, D"]

    def test_add_warning_without_list(self):
        add_warning(None, "Empty input")

    @pytest.mark.parametrize("message,kind", [
        ("Fullwidth brackets normalized", WarningKind.NORMALIZATION),
        ("Found () before (1)", WarningKind.NORMALIZATION),
        ("Options inline (A-D)", WarningKind.NORMALIZATION),
        ("Option B truncated (possible passage leak)", WarningKind.CONTAMINATION),
        ("Question Q1 stem had passage prefix removed", WarningKind.CONTAMINATION),
        ("Question Q2 missing stem", WarningKind.STRUCTURAL),
        ("No question markers detected", WarningKind.STRUCTURAL),
    ])
    def test_classify_warning(self, message, kind):
        assert classify_warning(message) == kind


class TestValidationEngine:
    """Test validation report generation."""

    def _make_document(self) -> ParsedDocument:
        full = [OptionRecord(key=k, text=f"option {k}") for k in "ABCD"]
        return ParsedDocument(
            questions=[
                QuestionBlock(ordinal=1, id="Q1", stem="Complete?",
                              options=full, answer_key="A"),
                QuestionBlock(ordinal=2, id="Q2", stem="",
                              options=full[:2], answer_key="C"),
                QuestionBlock(ordinal=3, id="Q3", stem="No options here"),
            ],
            warnings=[
                "Option B truncated (possible passage leak)",
                "Fullwidth brackets normalized",
                "Question Q3 missing options",
            ],
        )

    def test_report(self):
        report = ValidationEngine().validate(self._make_document())
        assert report.total_questions == 3
        assert report.structured_successfully == 1
        assert report.success_rate == 33.33
        assert report.questions_missing_stem == ["Q2"]
        assert report.questions_missing_options == ["Q3"]
        assert report.incomplete_option_sets == ["Q2"]
        assert report.questions_missing_answer == ["Q3"]
        assert report.answers_not_in_options == ["Q2"]

    def test_warning_breakdown(self):
        report = ValidationEngine().validate(self._make_document())
        assert report.warning_breakdown == {
            "contamination": 1,
            "normalization": 1,
            "structural": 1,
        }
        assert report.contamination_count == 1

    def test_empty_document(self):
        report = ValidationEngine().validate(
            ParsedDocument(warnings=["No question markers detected"])
        )
        assert report.total_questions == 0
        assert report.warning_breakdown == {"structural": 1}


# ═══════════════════════════════════════════════════════════════════════════════
# ENGINE TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestExamEngine:
    """Test the full routing pipeline."""

    def test_compose_context(self):
        assert compose_context("Passage.", "Stem?") == "Passage.\n\nStem?"
        assert compose_context("  ", "Stem?") == "Stem?"

    def test_route_shared_passage(self):
        result = ExamEngine().route(SHARED_PASSAGE_DOC)
        document = result.document

        assert len(result.routes) == 2
        for routed in result.routes:
            assert routed.classification.archetype == Archetype.READING
            assert routed.classification.confidence == 0.86
            assert routed.classification.group_id == document.group_id
            assert routed.evidence is not None
            assert routed.evidence.text in document.passage
        assert result.routes[0].focus == QuestionFocus.MAIN_IDEA
        assert result.routes[1].focus == QuestionFocus.DETAIL
        assert result.archetype_breakdown == {"reading": 2}

    def test_route_validation(self):
        result = ExamEngine().route(SHARED_PASSAGE_DOC)
        assert result.validation.total_questions == 2
        assert result.validation.structured_successfully == 2
        assert result.validation.questions_missing_answer == ["Q1", "Q2"]

    def test_route_fill_in(self):
        result = ExamEngine().route(FILL_IN_DOC)
        routed = result.routes[0]
        assert routed.classification.archetype == Archetype.PARAGRAPH_ORGANIZATION
        assert routed.evidence is None
        assert [b.number for b in result.document.blanks] == [1, 2, 3]

    def test_evidence_disabled(self):
        engine = ExamEngine(EngineConfig(align_evidence=False))
        result = engine.route(SHARED_PASSAGE_DOC)
        assert all(r.evidence is None for r in result.routes)
        assert result.routes[0].focus == QuestionFocus.MAIN_IDEA

    def test_validation_disabled(self):
        engine = ExamEngine(EngineConfig(validate=False))
        result = engine.route(SHARED_PASSAGE_DOC)
        assert result.validation.total_questions == 0

    def test_empty_input(self):
        result = ExamEngine().route("")
        assert result.routes == []
        assert result.document.warnings == ["Empty input"]

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "engine.log"
        engine = ExamEngine(EngineConfig(log_level="INFO", log_file=str(log_file)))
        engine.route(SHARED_PASSAGE_DOC)
        assert log_file.exists()
        assert "VALIDATION REPORT" in log_file.read_text(encoding="utf-8")

    def test_log_file_handler_added_once(self, tmp_path):
        log_file = str(tmp_path / "engine.log")
        ExamEngine(EngineConfig(log_file=log_file))
        ExamEngine(EngineConfig(log_file=log_file))
        handlers = [
            h for h in logging.getLogger("examparse").handlers
            if isinstance(h, logging.FileHandler)
        ]
        assert len(handlers) == 1

    def test_json_serializable(self):
        result = ExamEngine().route(SHARED_PASSAGE_DOC)
        data = json.loads(result.model_dump_json())
        assert data["engine_version"] == "1.0.0"
        assert data["routes"][0]["classification"]["template_code"] == "E4"
        assert data["document"]["question_count"] == 2


# ═══════════════════════════════════════════════════════════════════════════════
# CLI TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestCli:
    """Test the click command group."""

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "1.0.0" in result.output

    def test_parse_json(self):
        result = CliRunner().invoke(
            cli, ["parse", "-", "--json-output"], input=SHARED_PASSAGE_DOC
        )
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["question_count"] == 2
        assert data["questions"][0]["id"] == "Q1"

    def test_parse_file(self, tmp_path):
        source = tmp_path / "exam.txt"
        source.write_text(SHARED_PASSAGE_DOC, encoding="utf-8")
        result = CliRunner().invoke(cli, ["parse", str(source), "--json-output"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["tier"] == "headers"

    def test_classify_json(self):
        result = CliRunner().invoke(
            cli,
            [
                "classify", "-",
                "-o", "therefore", "-o", "however",
                "-o", "moreover", "-o", "nevertheless",
                "--json-output",
            ],
            input="Which word best links the two ideas in the sentence?\n",
        )
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["archetype"] == "vocabulary"
        assert data["template_code"] == "E1"

    def test_route_table_output(self):
        result = CliRunner().invoke(
            cli, ["route", "-", "--log-level", "ERROR"], input=SHARED_PASSAGE_DOC
        )
        assert result.exit_code == 0
        assert "Validation Report" in result.output
        assert "Routing" in result.output
