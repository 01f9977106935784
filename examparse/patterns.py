"""
Anchor Patterns
===============
Compiled regular expressions shared by the normalizer, splitter, option
extractor and classifier.

Every pattern is anchored or bounded: digit runs are capped at three and no
quantified group nests another unbounded quantifier, so matching stays linear
on adversarial input.
"""

from __future__ import annotations

import re

# ─── Question Headers ─────────────────────────────────────────────────────────

# Noisy "()" / "( )" that some sources print before the real header
_EMPTY_BRACKET = r"\([ \t]*\)"

# "(12)", "Q12", "Q12.", "第12題", "Question 12", "Question: 12"
_HEADER_FORMS = (
    r"(?:\([ \t]*(?P<paren>\d{1,3})[ \t]*\)"
    r"|(?<![A-Za-z0-9])Q[ \t]*(?P<q>\d{1,3})(?!\d)\.?"
    r"|第[ \t]*(?P<cjk>\d{1,3})[ \t]*題"
    r"|(?<![A-Za-z0-9])Question[ \t]*:?[ \t]*(?P<word>\d{1,3})(?!\d))"
)

# Header at the start of a line
HEADER_LINE = re.compile(
    rf"^[ \t]*(?P<empty>{_EMPTY_BRACKET}[ \t]*)?{_HEADER_FORMS}",
    re.IGNORECASE | re.MULTILINE,
)

# Header anywhere in a line (used to find mid-line headers)
HEADER_INLINE = re.compile(
    rf"(?P<empty>{_EMPTY_BRACKET}[ \t]*)?{_HEADER_FORMS}",
    re.IGNORECASE,
)

# Loose question-number markers counted by the classifier
QUESTION_MARKER_LINE = re.compile(
    r"^[ \t]*(?:\([ \t]*\)[ \t]*)?"
    r"(?:Q[ \t]*\d{1,3}(?!\d)"
    r"|\([ \t]*\d{1,3}[ \t]*\)"
    r"|\d{1,3}\.(?!\d)"
    r"|第[ \t]*\d{1,3}[ \t]*題"
    r"|Question[ \t]*:?[ \t]*\d{1,3}(?!\d))",
    re.IGNORECASE | re.MULTILINE,
)

# ─── Options & Answers ────────────────────────────────────────────────────────

# "(A)", "( b )"
OPTION_MARKER = re.compile(r"\([ \t]*(?P<key>[A-Ja-j])[ \t]*\)")

# "答案：B", "正確答案: (C)", "Answer: D", "Ans:A"
ANSWER_INDICATOR = re.compile(
    r"[【\[]?[ \t]*"
    r"(?:正確答案|答案|(?<![A-Za-z])(?:Correct[ \t]+)?(?:Answer|Ans))"
    r"[ \t]*[:：][ \t]*[(（【\[]?[ \t]*(?P<key>[A-Ja-j])(?![A-Za-z])"
    r"[ \t]*[)）】\]]?",
    re.IGNORECASE,
)

# Leftover bracket junk at the tail of an option body
OPTION_TAIL_JUNK = re.compile(r"(?:\([ \t]*\)|[【\[(（])$")

# ─── Blanks ───────────────────────────────────────────────────────────────────

# "(1)".."(99)"; four-digit years and three-digit numbers never qualify
NUMBERED_BLANK = re.compile(r"\([ \t]*(?P<number>[1-9]\d?)[ \t]*\)")

# "( )" / "()" single blank
SINGLE_BLANK = re.compile(_EMPTY_BRACKET)

# "___" and longer
UNDERSCORE_RUN = re.compile(r"_{3,}")

# Circled numerals used as blank markers by some sources
CIRCLED_NUMBERS = {
    **{chr(0x2460 + i): f"({i + 1})" for i in range(10)},  # ①..⑩
    **{chr(0x2776 + i): f"({i + 1})" for i in range(10)},  # ❶..❿
}

# ─── Stem Cleanup ─────────────────────────────────────────────────────────────

STEM_LABEL = re.compile(r"^(?:問題|Question)[ \t]*[:：][ \t]*", re.IGNORECASE)

QUOTE_CHARS = "\"'“”‘’「」『』"

# Characters that end a sentence or a closed clause on a line
TERMINAL_CHARS = ".?!)]\"'』」»”’"

# ─── Sentence Splitting ───────────────────────────────────────────────────────

SENTENCE_TERMINATORS = re.compile(r"[.!?]+")

SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?。！？])\s+")

PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n\s*")

WHITESPACE_RUN = re.compile(r"\s+")

# ─── Dialogue ─────────────────────────────────────────────────────────────────

_SPEAKER = (
    r"(?:[A-Z]|Man|Woman|Boy|Girl|Teacher|Student|Clerk|Customer|Waiter"
    r"|Waitress|Doctor|Patient|Mom|Dad|Mother|Father)"
)

# "A: Hello" at the start of a line
SPEAKER_TURN_LINE = re.compile(rf"^[ \t]*{_SPEAKER}[ \t]*:[ \t]*\S")

# "B: ..." anywhere in a line
SPEAKER_TURN_ANY = re.compile(rf"(?<![A-Za-z]){_SPEAKER}[ \t]*:[ \t]*\S")

# ─── Grammar Option Sets ──────────────────────────────────────────────────────

# Closed set of function words that signal a structure question
GRAMMAR_FUNCTION_WORD = re.compile(
    r"(?:as|while|if|unless|though|although|whether|what|which|that|who"
    r"|whom|whose|it|been|being|to[ \t]+\w+|as[ \t]+\w+|while[ \t]+\w+)",
    re.IGNORECASE,
)

# Verb-form options: infinitives, gerund phrases, perfect and passive forms
GRAMMAR_VERB_FORM = re.compile(
    r"(?:to[ \t]+\w+|as[ \t]+to[ \t]+\w+|as[ \t]+\w+ing|while[ \t]+\w+"
    r"|have[ \t]+\w+|has[ \t]+\w+|had[ \t]+\w+|been[ \t]+\w+)",
    re.IGNORECASE,
)

# Stem cues re-checked after the reading rules fail
GRAMMAR_STEM_CUES = [
    re.compile(r"\b(?:have|has|had|will|would|should|could|may|might|must)\b"),
    re.compile(r"\b(?:is|are|was|were|be|been|being)\b"),
    re.compile(r"\b(?:if|unless|whether|although|though|despite|while)\b"),
    re.compile(r"\b(?:who|whom|whose|which|that|where|when)\b"),
]
