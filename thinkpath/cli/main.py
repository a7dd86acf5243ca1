"""
Typer CLI for the thinkpath engine.

Commands:
    thinkpath db init                 - Initialize database tables
    thinkpath path generate <user>    - Generate a learning path
    thinkpath path show <user>        - Show the active path
    thinkpath path step <user> <id>   - Start / update / complete a step
    thinkpath practice record <user>  - Record a scored question
    thinkpath progress show <user>    - Unified progress
    thinkpath recommend <user>        - Today's task
    thinkpath mastery review <user>   - Concepts due for review

Usage:
    thinkpath --help
    thinkpath path generate alice --dimension causal_analysis --style theory_first
    thinkpath path step alice theory_causal_analysis_1 --action complete --minutes 20
"""

from __future__ import annotations

import typer
from loguru import logger
from rich import print as rprint

from thinkpath.cli.path_commands import path_app
from thinkpath.cli.progress_commands import mastery_app, practice_app, progress_app, recommend
from thinkpath.core.logging import setup_logging

app = typer.Typer(
    help="thinkpath: adaptive learning paths and progress for critical thinking practice",
    no_args_is_help=True,
)

app.add_typer(path_app, name="path")
app.add_typer(practice_app, name="practice")
app.add_typer(progress_app, name="progress")
app.add_typer(mastery_app, name="mastery")
app.command("recommend")(recommend)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging before any command runs."""
    setup_logging(level="DEBUG" if verbose else None)


# ========================================
# Database
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    from thinkpath.db.database import init_db

    logger.info("Initializing database tables...")
    init_db()
    rprint("[green]OK[/green] Database initialized!")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
