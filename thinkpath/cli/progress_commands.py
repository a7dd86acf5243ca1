"""
CLI Progress Commands.

Commands:
    thinkpath practice record <user> - Record a scored question
    thinkpath progress show <user>   - Unified progress with per-dimension breakdown
    thinkpath recommend <user>       - Today's task and alternatives
    thinkpath mastery review <user>  - Concepts due for review
"""
from __future__ import annotations

from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from thinkpath.core.dimensions import DIMENSION_ORDER
from thinkpath.core.errors import EngineError, retry_on_conflict

console = Console()

practice_app = typer.Typer(name="practice", help="Record practice results", no_args_is_help=True)
progress_app = typer.Typer(name="progress", help="Unified progress views", no_args_is_help=True)
mastery_app = typer.Typer(name="mastery", help="Concept mastery and review", no_args_is_help=True)

URGENCY_STYLES = {"high": "[red]high[/red]", "medium": "[yellow]medium[/yellow]", "low": "[green]low[/green]"}


def _fail(error: EngineError) -> None:
    rprint(f"[red]{error.code}:[/red] {error.message}")
    raise typer.Exit(code=1)


def _get_practice_service():
    from thinkpath.adaptive.practice_service import PracticeService
    return PracticeService()


@practice_app.command("record")
def practice_record(
    user_id: str = typer.Argument(..., help="Learner id"),
    dimension: str = typer.Option(..., "--dimension", "-d", help="Thinking dimension"),
    level: int = typer.Option(1, "--level", "-l", help="Level practiced (1-5)"),
    score: float = typer.Option(..., "--score", "-s", help="Score 0-100"),
    tags: Optional[list[str]] = typer.Option(None, "--tag", help="Question tag (repeatable)"),
    concepts: Optional[list[str]] = typer.Option(None, "--concept", help="Concept key (repeatable)"),
) -> None:
    """Record one scored question and apply level unlocks."""
    service = _get_practice_service()
    try:
        result = retry_on_conflict(
            service.record_question_result,
            user_id,
            {
                "thinking_type_id": dimension,
                "level": level,
                "score": score,
                "tags": tags or [],
                "concept_keys": concepts or [],
            },
        )
    except EngineError as e:
        _fail(e)

    stats = result.level_progress.levels[level]
    rprint(
        f"Level {level}: {stats.questions_completed} questions, "
        f"average {stats.average_score:.1f}%"
    )
    if result.event:
        rprint(f"[bold green]Level {result.event.level} unlocked![/bold green]")
    else:
        rprint(f"[dim]{result.unlock.message}[/dim]")
    rprint(result.message)
    for concept in result.concepts_updated:
        rprint(f"  {concept.concept_key}: {concept.mastery_level:.0%}")


@progress_app.command("show")
def progress_show(
    user_id: str = typer.Argument(..., help="Learner id"),
) -> None:
    """Show unified progress."""
    from thinkpath.adaptive.progress_aggregator import ProgressAggregator

    try:
        progress = ProgressAggregator().get_unified_progress(user_id)
    except EngineError as e:
        _fail(e)

    content = Text()
    content.append(f"Overall: {progress.overall}%\n\n", style="bold")
    for name, contribution in progress.breakdown.contributions.items():
        value = getattr(progress.breakdown.signals, name)
        shown = "-" if value is None else f"{value:.0f}"
        content.append(f"{name:<16} {shown:>4}  (+{contribution})\n")
    content.append(f"\nTime: {progress.total_time_minutes} min total, {progress.last_7_days_minutes} min last 7 days")
    console.print(Panel(content, title=f"[bold]Progress: {user_id}[/bold]", border_style="blue"))

    table = Table(title="Dimensions")
    table.add_column("Dimension", style="bold")
    table.add_column("Level", justify="right")
    table.add_column("Overall", justify="right")
    for dimension_id in DIMENSION_ORDER:
        view = progress.dimensions[dimension_id]
        table.add_row(dimension_id, str(view.current_level), f"{view.overall}%")
    console.print(table)


def recommend(
    user_id: str = typer.Argument(..., help="Learner id"),
) -> None:
    """Show today's recommended task and alternatives."""
    from thinkpath.adaptive.recommender import Recommender

    try:
        recommendation = Recommender().recommend(user_id)
    except EngineError as e:
        _fail(e)

    task = recommendation.today_task
    content = Text()
    content.append(f"{task.thinking_type_id} - Level {task.level}\n", style="bold")
    content.append(f"{task.reason}\n")
    if task.step_id:
        content.append(f"Step: {task.step_id}\n", style="cyan")
    if task.target_concepts:
        content.append(f"Focus: {', '.join(task.target_concepts)}\n")
    console.print(Panel(content, title="[bold]Today's Task[/bold]", border_style="green"))

    if recommendation.alternatives:
        table = Table(title="Optional Practice")
        table.add_column("Dimension")
        table.add_column("Level", justify="right")
        table.add_column("Reason")
        for alt in recommendation.alternatives:
            table.add_row(alt.thinking_type_id, str(alt.level), alt.reason)
        console.print(table)


@mastery_app.command("review")
def mastery_review(
    user_id: str = typer.Argument(..., help="Learner id"),
) -> None:
    """List concepts that are due for review."""
    service = _get_practice_service()
    try:
        due = service.concepts_needing_review(user_id)
    except EngineError as e:
        _fail(e)

    if not due:
        rprint("[green]Nothing to review.[/green]")
        return

    table = Table(title="Concepts To Review")
    table.add_column("Dimension")
    table.add_column("Concept", style="bold")
    table.add_column("Mastery", justify="right")
    table.add_column("Days idle", justify="right")
    table.add_column("Urgency")
    for state in due:
        table.add_row(
            state.thinking_type_id,
            state.concept_key,
            f"{state.effective_mastery:.0%}",
            str(state.days_since_practice),
            URGENCY_STYLES[state.urgency.value],
        )
    console.print(table)
