"""
Exam Routing Engine
===================
Main orchestrator that combines parsing, classification, evidence alignment
and validation into a complete routing pipeline.

Usage:
    engine = ExamEngine(config)
    result = engine.route(raw_text)
    # result is a RoutingResult with structured JSON output

Architecture:
    raw text → normalize → split → QuestionBlocks → classify →
    (reading) select_evidence → ValidationEngine → RoutingResult (JSON)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from . import __version__
from .classifier import OptionInput, classify
from .document import parse_document
from .evidence import detect_question_focus, select_evidence, split_paragraphs
from .models import (
    Archetype,
    ClassificationResult,
    OptionLayout,
    ParsedDocument,
    QuestionBlock,
    RoutedQuestion,
    RoutingResult,
    ValidationReport,
)
from .validator import ValidationEngine

logger = logging.getLogger(__name__)

_LOG_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
_LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


@dataclass
class EngineConfig:
    """Configuration for the routing engine."""

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Evidence alignment for reading questions
    align_evidence: bool = True
    prefer_answer_evidence: bool = True

    # Post-parse validation
    validate: bool = True


def compose_context(passage: str, stem: str) -> str:
    """Text the classifier sees for one question: its passage, then its stem."""
    if passage.strip():
        return f"{passage.strip()}\n\n{stem}".strip()
    return stem


class ExamEngine:
    """
    Main question routing engine.

    Orchestrates the full pipeline:
        1. Normalization and boundary splitting
        2. Question block parsing
        3. Archetype classification per question
        4. Evidence alignment for reading questions
        5. Validation

    Holds no per-document state; safe to share across threads.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self._setup_logging()

    def _setup_logging(self):
        """Configure logging based on config."""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        # Configure root logger for the package
        package_logger = logging.getLogger("examparse")
        package_logger.setLevel(log_level)

        # Console handler
        if not package_logger.handlers:
            console = logging.StreamHandler()
            console.setLevel(log_level)
            console.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATEFMT))
            package_logger.addHandler(console)
        else:
            for handler in package_logger.handlers:
                handler.setLevel(log_level)

        # File handler, once per path
        if self.config.log_file and not self._has_file_handler(package_logger):
            log_dir = Path(self.config.log_file).parent
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(
                self.config.log_file, encoding="utf-8"
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(
                logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATEFMT)
            )
            package_logger.addHandler(file_handler)

    def _has_file_handler(self, package_logger: logging.Logger) -> bool:
        path = os.path.abspath(self.config.log_file)
        return any(
            isinstance(handler, logging.FileHandler)
            and handler.baseFilename == path
            for handler in package_logger.handlers
        )

    def parse(self, raw: str) -> ParsedDocument:
        """Parse raw text into a passage and its questions."""
        document = parse_document(raw)
        logger.info(
            f"Parsed {document.question_count} question(s) "
            f"[{document.tier.value}], {len(document.warnings)} warning(s)"
        )
        for warning in document.warnings:
            logger.debug(f"  warning: {warning}")
        return document

    def classify(
        self,
        stem: str,
        options: Sequence[OptionInput] = (),
        option_layout: Optional[OptionLayout] = None,
    ) -> ClassificationResult:
        """Classify a single stem and its options."""
        return classify(stem, options, option_layout=option_layout)

    def route(self, raw: str) -> RoutingResult:
        """
        Run the full pipeline over raw exam text.

        Args:
            raw: Pasted or OCR'd text holding a passage and/or questions.

        Returns:
            RoutingResult with the parsed document, one routing decision per
            question and the validation report.
        """
        document = self.parse(raw)
        paragraphs = split_paragraphs(document.passage)

        routes = []
        for question in document.questions:
            routes.append(self._route_question(document, question, paragraphs))
            logger.info(
                f"{question.id} → {routes[-1].classification.archetype.value} "
                f"({routes[-1].classification.confidence:.2f})"
            )

        validation = ValidationReport()
        if self.config.validate:
            validation = ValidationEngine().validate(document)

        return RoutingResult(
            engine_version=__version__,
            document=document,
            routes=routes,
            validation=validation,
        )

    def _route_question(
        self,
        document: ParsedDocument,
        question: QuestionBlock,
        paragraphs: list[str],
    ) -> RoutedQuestion:
        context = compose_context(document.passage, question.stem)
        classification = classify(
            context, question.options, option_layout=question.option_layout
        )
        if classification.group_id and document.group_id:
            # Keep the document's passage id so routes of one passage group together
            classification = classification.model_copy(
                update={"group_id": document.group_id}
            )

        if classification.archetype != Archetype.READING:
            return RoutedQuestion(question=question, classification=classification)

        evidence = None
        if self.config.align_evidence:
            evidence = select_evidence(
                question.stem, self._evidence_options(question), paragraphs
            )

        return RoutedQuestion(
            question=question,
            classification=classification,
            evidence=evidence,
            focus=detect_question_focus(question.stem),
        )

    def _evidence_options(self, question: QuestionBlock) -> list[str]:
        """Option texts to align: the keyed answer when known, else all."""
        if self.config.prefer_answer_evidence and question.answer_in_options:
            return [question.option_text(question.answer_key)]
        return [o.text for o in question.options]
