"""
CLI Interface
=============
Command-line interface for the exam routing engine.

Usage:
    python -m examparse parse <source> [options]
    python -m examparse classify <source> -o "option" -o "option" [options]
    python -m examparse route <source> [options]

<source> is a text file, or "-" to read from stdin.
"""

from __future__ import annotations

import json
import sys

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .engine import EngineConfig, ExamEngine

console = Console()

_LOG_LEVELS = click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"])


@click.group()
@click.version_option(version=__version__, prog_name="examparse")
def cli():
    """Exam question extractor and explanation-archetype router."""
    pass


def _read_source(source) -> str:
    try:
        return source.read()
    except UnicodeDecodeError as e:
        console.print(f"[red]Error:[/] could not decode input as UTF-8 ({e})")
        sys.exit(1)


def _emit_json(model):
    click.echo(json.dumps(
        model.model_dump(mode="json"),
        indent=2,
        ensure_ascii=False,
    ))


@cli.command()
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option(
    "--log-level",
    default="WARNING",
    type=_LOG_LEVELS,
    help="Logging level",
)
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output only JSON result to stdout (for programmatic use)",
)
def parse(source, log_level: str, json_output: bool):
    """Split a document into its passage and structured questions."""
    if json_output:
        log_level = "ERROR"

    engine = ExamEngine(EngineConfig(log_level=log_level))
    document = engine.parse(_read_source(source))

    if json_output:
        _emit_json(document)
        return

    _print_banner("Parsing", source.name)
    _display_document(document)


@cli.command()
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option(
    "--option", "-o", "options",
    multiple=True,
    help="Option text, in order (A, B, C...). Repeat for each option.",
)
@click.option(
    "--log-level",
    default="WARNING",
    type=_LOG_LEVELS,
    help="Logging level",
)
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output only JSON result to stdout (for programmatic use)",
)
def classify(source, options: tuple[str, ...], log_level: str, json_output: bool):
    """Classify a single question stem into an explanation archetype."""
    if json_output:
        log_level = "ERROR"

    engine = ExamEngine(EngineConfig(log_level=log_level))
    result = engine.classify(_read_source(source), list(options))

    if json_output:
        _emit_json(result)
        return

    _print_banner("Classifying", source.name)
    _display_classification(result)


@cli.command()
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option(
    "--no-evidence",
    is_flag=True,
    default=False,
    help="Skip evidence alignment for reading questions",
)
@click.option(
    "--log-level",
    default="INFO",
    type=_LOG_LEVELS,
    help="Logging level",
)
@click.option(
    "--log-file",
    default=None,
    help="Path to log file",
)
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output only JSON result to stdout (for programmatic use)",
)
def route(
    source,
    no_evidence: bool,
    log_level: str,
    log_file: str,
    json_output: bool,
):
    """Parse a document and route every question to an archetype."""
    if json_output:
        # Suppress console output for JSON mode
        log_level = "ERROR"

    config = EngineConfig(
        log_level=log_level,
        log_file=log_file,
        align_evidence=not no_evidence,
    )

    try:
        engine = ExamEngine(config)
    except OSError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    result = engine.route(_read_source(source))

    if json_output:
        _emit_json(result)
        return

    _print_banner("Routing", source.name)
    _display_document(result.document)
    _display_routes(result)
    _display_validation_table(result.validation.model_dump())


# ─── Display Helpers ──────────────────────────────────────────────────────────


def _print_banner(action: str, name: str):
    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Exam Routing Engine v{__version__}[/]\n"
            f"[dim]{action}: {name}[/]",
            border_style="cyan",
        )
    )
    console.print()


def _display_document(document):
    """Display passage summary, questions and warnings."""
    table = Table(title="Document", border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")
    table.add_row("Tier", document.tier.value)
    table.add_row("Group ID", document.group_id or "(none)")
    table.add_row("Passage", f"{len(document.passage)} chars")
    table.add_row("Questions", str(document.question_count))
    if document.blanks:
        table.add_row(
            "Numbered Blanks",
            ", ".join(str(b.number) for b in document.blanks),
        )
    console.print(table)
    console.print()

    if document.questions:
        q_table = Table(title="Questions", border_style="cyan")
        q_table.add_column("ID", style="bold")
        q_table.add_column("Stem")
        q_table.add_column("Options")
        q_table.add_column("Answer", justify="center")
        for q in document.questions:
            q_table.add_row(
                q.id,
                _shorten(q.stem, 60) or "[red](missing)[/]",
                "\n".join(f"({o.key}) {_shorten(o.text, 40)}" for o in q.options)
                or "[red](none)[/]",
                q.answer_key or "-",
            )
        console.print(q_table)
        console.print()

    if document.warnings:
        w_table = Table(title="Warnings", border_style="yellow")
        w_table.add_column("Warning")
        for warning in document.warnings:
            w_table.add_row(warning)
        console.print(w_table)
        console.print()


def _display_classification(result):
    table = Table(title="Classification", border_style="green")
    table.add_column("Property", style="bold")
    table.add_column("Value")
    table.add_row("Archetype", f"{result.archetype.value} ({result.template_code})")
    table.add_row("Confidence", f"{result.confidence:.2f}")
    table.add_row("Rule", result.rule)
    table.add_row("Reason", result.reason)
    if result.group_id:
        table.add_row("Group ID", result.group_id)
    console.print(table)
    console.print()

    signals = Table(title="Signals", border_style="dim")
    signals.add_column("Signal")
    for signal in result.signals:
        signals.add_row(signal)
    console.print(signals)
    console.print()


def _display_routes(result):
    """Display routing decisions in a formatted table."""
    table = Table(title="Routing", border_style="green")
    table.add_column("ID", style="bold")
    table.add_column("Archetype")
    table.add_column("Confidence", justify="right")
    table.add_column("Evidence")

    for routed in result.routes:
        classification = routed.classification
        evidence = "-"
        if routed.evidence is not None:
            evidence = (
                f"¶{routed.evidence.paragraph_index} "
                f"(score {routed.evidence.score}): "
                f"{_shorten(routed.evidence.text, 50)}"
            )
        status = "[green]" if classification.confidence >= 0.85 else "[yellow]"
        table.add_row(
            routed.question.id,
            f"{classification.archetype.value} ({classification.template_code})",
            f"{status}{classification.confidence:.2f}[/]",
            evidence,
        )

    console.print(table)
    console.print()


def _display_validation_table(validation: dict):
    """Display validation report as a rich table."""
    table = Table(title="Validation Report", border_style="green")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_column("Status", justify="center")

    total = validation.get("total_questions", 0)
    success = validation.get("structured_successfully", 0)
    rate = validation.get("success_rate", 0)

    # Status icons
    def status_icon(count, threshold=0):
        if count <= threshold:
            return "[green]✓[/]"
        return "[red]✗[/]"

    table.add_row(
        "Total Questions",
        str(total),
        "[green]✓[/]" if total > 0 else "[red]✗[/]",
    )
    table.add_row(
        "Structured Successfully",
        f"{success} ({rate}%)",
        "[green]✓[/]" if rate >= 90 else "[yellow]⚠[/]",
    )

    for label, key in (
        ("Questions Missing Stem", "questions_missing_stem"),
        ("Questions Missing Options", "questions_missing_options"),
        ("Questions Missing Answer", "questions_missing_answer"),
        ("Answers Not In Options", "answers_not_in_options"),
        ("Incomplete Option Sets", "incomplete_option_sets"),
    ):
        ids = validation.get(key, [])
        table.add_row(label, str(len(ids)), status_icon(len(ids)))

    table.add_row(
        "Contamination Warnings",
        str(validation.get("contamination_count", 0)),
        status_icon(validation.get("contamination_count", 0)),
    )

    console.print(table)
    console.print()

    breakdown = validation.get("warning_breakdown", {})
    if breakdown:
        warning_table = Table(title="Warning Breakdown", border_style="yellow")
        warning_table.add_column("Kind", style="bold")
        warning_table.add_column("Count", justify="right")
        for kind, count in sorted(breakdown.items()):
            warning_table.add_row(kind, str(count))
        console.print(warning_table)
        console.print()


def _shorten(text: str, limit: int) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[:limit - 1].rstrip() + "…"


# ─── Entry point (for python -m examparse.cli) ────────────────────────────────


if __name__ == "__main__":
    cli()
