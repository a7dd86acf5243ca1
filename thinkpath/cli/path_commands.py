"""
CLI Learning Path Commands.

Commands:
    thinkpath path generate <user>  - Build (or show the existing) learning path
    thinkpath path show <user>      - Current step, next steps, recent completions
    thinkpath path step <user> <id> - Start, update or complete a step
"""
from __future__ import annotations

from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from thinkpath.adaptive.models import LearningStyle, PathStep, StepAction, StepStatus
from thinkpath.core.errors import EngineError, retry_on_conflict

console = Console()

path_app = typer.Typer(
    name="path",
    help="Adaptive learning path - generate, inspect and advance steps",
    no_args_is_help=True,
)

STATUS_STYLES = {
    StepStatus.LOCKED: "[dim]locked[/dim]",
    StepStatus.AVAILABLE: "[cyan]available[/cyan]",
    StepStatus.IN_PROGRESS: "[yellow]in progress[/yellow]",
    StepStatus.COMPLETED: "[green]completed[/green]",
}


def _get_path_service():
    """Lazy load path service so --help works without a database."""
    from thinkpath.adaptive.learning_path_service import LearningPathService
    return LearningPathService()


def _fail(error: EngineError) -> None:
    rprint(f"[red]{error.code}:[/red] {error.message}")
    raise typer.Exit(code=1)


def _format_progress_bar(percent: float, width: int = 20) -> str:
    filled = int(percent / 100 * width)
    return "#" * filled + "-" * (width - filled)


def _steps_table(steps: list[PathStep], title: str) -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("Step", style="bold")
    table.add_column("Dimension")
    table.add_column("Lvl", justify="right")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    table.add_column("Time", justify="right")
    for step in steps:
        table.add_row(
            step.id,
            step.thinking_type_id,
            str(step.level),
            step.content_type.value,
            STATUS_STYLES[step.status],
            f"{step.progress_percent:.0f}%",
            f"{step.time_spent}/{step.estimated_time} min",
        )
    return table


@path_app.command("generate")
def path_generate(
    user_id: str = typer.Argument(..., help="Learner id"),
    dimension: Optional[str] = typer.Option(None, "--dimension", "-d", help="Target thinking dimension"),
    target_level: int = typer.Option(5, "--target-level", "-l", help="Highest level to include (1-5)"),
    time_available: Optional[int] = typer.Option(None, "--time", "-t", help="Minutes available per day"),
    style: LearningStyle = typer.Option(LearningStyle.BALANCED, "--style", "-s", help="Learning style"),
    force: bool = typer.Option(False, "--force", "-f", help="Replace an existing active path"),
) -> None:
    """Generate a learning path for a user."""
    service = _get_path_service()
    try:
        result = retry_on_conflict(
            service.generate_path,
            user_id,
            {
                "thinking_type_id": dimension,
                "target_level": target_level,
                "time_available": time_available,
                "learning_style": style,
                "force_regenerate": force,
            },
        )
    except EngineError as e:
        _fail(e)

    summary = result.summary
    content = Text()
    if result.cached:
        content.append("Existing path returned (use --force to regenerate)\n\n", style="yellow")
    content.append(f"Steps: {summary.total_steps}\n", style="bold")
    content.append(f"Estimated time: {summary.estimated_total_time} min\n")
    content.append(f"Dimensions: {', '.join(summary.dimensions_covered)}\n")
    content.append(f"Levels: {summary.level_min}-{summary.level_max}\n")
    content.append(f"Style: {summary.learning_style.value}\n")
    if summary.estimated_days:
        content.append(f"Estimated days: {summary.estimated_days}\n")
    console.print(Panel(content, title=f"[bold]Learning Path: {user_id}[/bold]", border_style="blue"))
    console.print(_steps_table(result.path.steps, "Steps"))


@path_app.command("show")
def path_show(
    user_id: str = typer.Argument(..., help="Learner id"),
    completed: bool = typer.Option(False, "--completed", "-c", help="Include recently completed steps"),
) -> None:
    """Show the current position in a user's active path."""
    service = _get_path_service()
    try:
        view = service.get_current_path(user_id, {"include_completed": completed})
    except EngineError as e:
        _fail(e)

    if view.path is None:
        rprint(f"[yellow]No active learning path for {user_id}.[/yellow]")
        rprint(f"  thinkpath path generate {user_id}")
        return

    path = view.path
    percent = path.completed_steps / path.total_steps * 100 if path.total_steps else 0
    content = Text()
    content.append(f"{_format_progress_bar(percent)} {percent:.0f}%\n", style="bold")
    content.append(f"Completed: {path.completed_steps}/{path.total_steps}\n")
    content.append(f"Time spent: {path.total_time_spent} min, left: {path.estimated_time_left} min\n")
    if view.current_step:
        content.append(f"Current: {view.current_step.title} ({view.current_step.status.value})\n")
    console.print(Panel(content, title=f"[bold]{user_id}[/bold]", border_style="blue"))

    if view.next_steps:
        console.print(_steps_table(view.next_steps, "Next Steps"))
    if view.recently_completed:
        console.print(_steps_table(view.recently_completed, "Recently Completed"))


@path_app.command("step")
def path_step(
    user_id: str = typer.Argument(..., help="Learner id"),
    step_id: str = typer.Argument(..., help="Step id, e.g. theory_causal_analysis_1"),
    action: StepAction = typer.Option(StepAction.START, "--action", "-a", help="start, update or complete"),
    progress: Optional[float] = typer.Option(None, "--progress", "-p", help="Progress percent (update)"),
    minutes: Optional[int] = typer.Option(None, "--minutes", "-m", help="Minutes spent to add"),
) -> None:
    """Advance a step of the active path."""
    service = _get_path_service()
    try:
        result = retry_on_conflict(
            service.update_progress,
            user_id,
            {"step_id": step_id, "action": action, "progress_percent": progress, "time_spent": minutes},
        )
    except EngineError as e:
        _fail(e)

    rprint(f"[green]OK[/green] {result.step.id} -> {STATUS_STYLES[result.step.status]}")
    for opened in result.unlocked_steps:
        rprint(f"  [cyan]unlocked[/cyan] {opened.id}")
    p = result.path_progress
    rprint(
        f"Path: {p.completed_steps}/{p.total_steps} ({p.progress_percent}%), "
        f"{p.estimated_time_left} min left"
    )
