"""
Exam Question Parser
====================
Deterministic extraction and routing engine for standardized-test questions.

Architecture:
    - Normalizer: Folds full-width variants, special spaces and noisy headers
    - Boundary Splitter: Detects question headers and separates the passage
    - Option Extractor: Pulls (A)..(J) options behind a contamination guard
    - Type Classifier: Routes each question to an explanation archetype
    - Evidence Aligner: Picks the passage sentence that best supports a question

Version: 1.0.0
"""

__version__ = "1.0.0"
