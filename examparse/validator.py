"""
Validation Engine
=================
Post-parse validation and reporting.

After parsing each document, generates a report:
    - Total Questions
    - Structured Successfully (stem + at least two options)
    - Questions Missing Stem / Options / Answer
    - Answers Not Found Among the Options
    - Incomplete A-D Option Sets
    - Warning breakdown by kind (normalization, structural, contamination)

Never silently ignores failures.
"""

from __future__ import annotations

import logging
from collections import Counter

from .diagnostics import classify_warning
from .models import ParsedDocument, ValidationReport

logger = logging.getLogger(__name__)

_CORE_KEYS = ("A", "B", "C", "D")


class ValidationEngine:
    """
    Validates a parsed document and produces a report.
    """

    def validate(self, document: ParsedDocument) -> ValidationReport:
        """
        Run full validation on a parsed document.

        Args:
            document: Output of parse_document().

        Returns:
            ValidationReport with all detected issues.
        """
        report = ValidationReport()
        report.warning_breakdown = dict(sorted(Counter(
            classify_warning(w).value for w in document.warnings
        ).items()))

        questions = document.questions
        if not questions:
            logger.warning("No questions to validate")
            return report

        report.total_questions = len(questions)

        structured_count = 0
        for q in questions:
            is_structured = bool(q.stem) and len(q.options) >= 2
            if is_structured:
                structured_count += 1

            if not q.stem:
                report.questions_missing_stem.append(q.id)

            if not q.options:
                report.questions_missing_options.append(q.id)
            elif any(key not in q.option_keys for key in _CORE_KEYS):
                report.incomplete_option_sets.append(q.id)

            if q.answer_key is None:
                report.questions_missing_answer.append(q.id)
            elif q.options and not q.answer_in_options:
                report.answers_not_in_options.append(q.id)

        report.structured_successfully = structured_count

        # Log summary
        logger.info("=" * 60)
        logger.info("VALIDATION REPORT")
        logger.info("=" * 60)
        logger.info(f"Total Questions: {report.total_questions}")
        logger.info(
            f"Structured Successfully: {report.structured_successfully} "
            f"({report.success_rate}%)"
        )
        logger.info(
            f"Questions Missing Stem: {len(report.questions_missing_stem)}"
        )
        logger.info(
            f"Questions Missing Options: "
            f"{len(report.questions_missing_options)}"
        )
        logger.info(
            f"Questions Missing Answer: "
            f"{len(report.questions_missing_answer)}"
        )
        logger.info(
            f"Answers Not In Options: {len(report.answers_not_in_options)}"
        )
        logger.info(
            f"Incomplete Option Sets: {len(report.incomplete_option_sets)}"
        )

        if report.warning_breakdown:
            logger.info("Warning Breakdown:")
            for kind, count in report.warning_breakdown.items():
                logger.info(f"  • {kind}: {count}")

        logger.info("=" * 60)

        return report
