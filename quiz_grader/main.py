"""
Quiz Grader CLI Application.

Provides a command-line interface for grading a quiz attempt from JSON
files and for checking the grading configuration.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from quiz_grader.config import Settings, get_settings
from quiz_grader.grading import GradingEngine, InputShapeError
from quiz_grader.models import GradingResult

# Create Typer app
app = typer.Typer(
    name="quiz-grader",
    help="Automatic grading for quiz attempts",
    add_completion=False,
)

console = Console()


class InputFileError(Exception):
    """Raised when a quiz or answers file can't be loaded."""


def configure_logging(level: str = "INFO") -> None:
    """Route log records through rich so they don't break the progress display."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def load_questions(path: Path) -> list[dict[str, Any]]:
    """Load questions from a JSON list or from an object with a "questions" key."""
    data = _load_json(path)
    if isinstance(data, dict):
        data = data.get("questions")
    if not isinstance(data, list):
        raise InputFileError(f"{path}: expected a list of questions or a quiz with 'questions'")
    return data


def load_answers(path: Path) -> list[Any]:
    """Load answers from a JSON list or from an object with an "answers" key."""
    data = _load_json(path)
    if isinstance(data, dict):
        data = data.get("answers")
    if not isinstance(data, list):
        raise InputFileError(f"{path}: expected a list of answers or an object with 'answers'")
    return data


def _load_json(path: Path) -> Any:
    if not path.exists():
        raise InputFileError(f"File not found: {path}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise InputFileError(f"{path} is not valid JSON: {e}") from e


@app.command()
def grade(
    quiz_file: Annotated[Path, typer.Argument(help="JSON file with the quiz questions")],
    answers_file: Annotated[Path, typer.Argument(help="JSON file with the student's answers")],
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write the grading result as JSON"),
    ] = None,
    no_ai: Annotated[
        bool,
        typer.Option("--no-ai", help="Grade descriptive answers by similarity only"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show detailed output"),
    ] = False,
) -> None:
    """
    Grade a student's answers to a quiz.

    MCQs are graded by exact match; descriptive answers by the configured
    LLM, falling back to word-overlap similarity.
    """
    settings = get_settings()
    configure_logging("DEBUG" if verbose else settings.log_level)

    try:
        questions = load_questions(quiz_file)
        answers = load_answers(answers_file)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task(f"Grading {len(questions)} question(s)...", total=None)
            engine = GradingEngine(settings)
            result = asyncio.run(
                engine.grade_quiz_attempt(questions, answers, use_ai=False if no_ai else None)
            )

    except InputFileError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except InputShapeError as e:
        console.print(f"[red]Input Error:[/red] {e}")
        raise typer.Exit(1)

    _display_results(result, verbose)

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(result.model_dump_json(indent=2), encoding="utf-8")
        console.print(f"\n[green]Result saved to:[/green] {output}")


@app.command()
def config() -> None:
    """Show the effective grading configuration."""
    settings = get_settings()
    _display_config(settings)


@app.command()
def health() -> None:
    """
    Check if the LLM grading endpoint is reachable.

    Similarity grading works without it, but AI grading does not.
    """
    settings = get_settings()
    configure_logging(settings.log_level)
    console.print("[bold]Quiz Grader Health Check[/bold]\n")
    _display_config(settings)

    if not settings.ai_enabled:
        console.print("\n[yellow]⚠ LLM_API_KEY is not set; only similarity grading is available[/yellow]")
        raise typer.Exit(1)

    console.print("\n[dim]Checking API connectivity...[/dim]")
    engine = GradingEngine(settings)

    if asyncio.run(engine.health_check()):
        console.print("[green]✓ API is reachable[/green]")
    else:
        console.print("[red]✗ API is not reachable[/red]")
        raise typer.Exit(1)


def _display_config(settings: Settings) -> None:
    table = Table(title="Grading Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("AI grading", "enabled" if settings.ai_enabled else "disabled")
    table.add_row("API base URL", settings.llm_base_url)
    table.add_row("Model", settings.llm_model)
    table.add_row("Max retries", str(settings.max_retries))
    table.add_row("Timeout (ms)", str(settings.timeout_ms))
    table.add_row("Full-credit similarity", f"{settings.fallback_similarity_threshold:g}")
    table.add_row("Partial-credit similarity", f"{settings.partial_credit_threshold:g}")
    table.add_row("Max response tokens", str(settings.max_response_tokens))
    table.add_row(
        "Attempt deadline (ms)",
        str(settings.attempt_timeout_ms) if settings.attempt_timeout_ms else "none",
    )
    table.add_row("Warning threshold", str(settings.warning_threshold))

    console.print(table)


def _display_results(result: GradingResult, verbose: bool = False) -> None:
    """Display grading results in a formatted table."""

    score_color = "green" if result.percentage >= 70 else "yellow" if result.percentage >= 50 else "red"
    console.print(
        Panel(
            f"[{score_color}][bold]{result.total_marks:g} / {result.max_marks:g}[/bold] "
            f"({result.percentage:.2f}%)[/{score_color}]",
            title="Final Score",
        )
    )

    review = [a for a in result.graded_answers if a.graded_by == "manual-review"]
    if review:
        console.print(f"[yellow]⚠ {len(review)} question(s) need manual review[/yellow]")

    table = Table(title="Questions")
    table.add_column("#", justify="right")
    table.add_column("Type", style="cyan")
    table.add_column("Marks", justify="right")
    table.add_column("Graded by")
    table.add_column("Status")
    if verbose:
        table.add_column("Explanation")

    for i, answer in enumerate(result.graded_answers, start=1):
        status = "✅" if answer.is_correct else "⚠️" if answer.marks > 0 else "❌"
        row = [
            str(i),
            answer.type,
            f"{answer.marks:g}/{answer.max_marks:g}",
            answer.graded_by,
            status,
        ]
        if verbose:
            row.append(answer.explanation)
        table.add_row(*row)

    console.print(table)
    console.print(f"[dim]Graded in {result.processing_time_ms:.0f} ms[/dim]")


if __name__ == "__main__":
    app()
