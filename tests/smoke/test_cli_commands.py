"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import os
import subprocess
import sys
from pathlib import Path

import pytest

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent


def run_cli_command(args: list[str], database_url: str | None = None, timeout: int = 60) -> tuple[int, str, str]:
    """
    Run a CLI command and return exit code, stdout, stderr.

    Args:
        args: Arguments after 'python -m thinkpath.cli.main'
        database_url: Overrides DATABASE_URL for the subprocess
        timeout: Maximum time to wait

    Returns:
        Tuple of (exit_code, stdout, stderr)
    """
    env = dict(os.environ)
    env["PYTHONPATH"] = str(PROJECT_ROOT)
    if database_url:
        env["DATABASE_URL"] = database_url

    result = subprocess.run(
        [sys.executable, "-m", "thinkpath.cli.main", *args],
        cwd=PROJECT_ROOT,
        env=env,
        capture_output=True,
        text=True,
        timeout=timeout,
    )

    return result.returncode, result.stdout, result.stderr


class TestCLIHelp:
    """Test that help commands work without a database."""

    def test_main_help(self):
        code, stdout, stderr = run_cli_command(["--help"])

        assert code == 0, f"Help failed: {stderr}"
        assert "thinkpath" in stdout.lower()
        assert "Commands" in stdout

    @pytest.mark.parametrize("group", ["path", "practice", "progress", "mastery", "db"])
    def test_group_help(self, group):
        code, stdout, stderr = run_cli_command([group, "--help"])

        assert code == 0, f"{group} help failed: {stderr}"


class TestCLIWithDatabase:
    """Run a short learner session against a throwaway SQLite file."""

    @pytest.fixture
    def database_url(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'cli.db'}"
        code, _, stderr = run_cli_command(["db", "init"], database_url=url)
        assert code == 0, f"db init failed: {stderr}"
        return url

    def test_generate_and_advance(self, database_url):
        code, stdout, stderr = run_cli_command(
            ["path", "generate", "alice", "--dimension", "causal_analysis", "--target-level", "2"],
            database_url=database_url,
        )
        assert code == 0, f"generate failed: {stderr}"
        assert "Steps: 4" in stdout

        code, stdout, stderr = run_cli_command(
            ["path", "step", "alice", "theory_causal_analysis_1", "--action", "complete", "--minutes", "20"],
            database_url=database_url,
        )
        assert code == 0, f"step failed: {stderr}"

        code, stdout, stderr = run_cli_command(["path", "show", "alice", "--completed"], database_url=database_url)
        assert code == 0, f"show failed: {stderr}"

    def test_locked_step_exits_nonzero(self, database_url):
        run_cli_command(["path", "generate", "bob", "--dimension", "causal_analysis", "--style", "theory_first"],
                        database_url=database_url)
        code, stdout, _ = run_cli_command(
            ["path", "step", "bob", "theory_causal_analysis_3", "--action", "start"],
            database_url=database_url,
        )
        assert code == 1
        assert "INVALID_TRANSITION" in stdout

    def test_practice_progress_and_recommend(self, database_url):
        code, _, stderr = run_cli_command(
            ["practice", "record", "carol", "--dimension", "fallacy_detection", "--score", "90", "--concept", "straw_man"],
            database_url=database_url,
        )
        assert code == 0, f"record failed: {stderr}"

        for args in (["progress", "show", "carol"], ["recommend", "carol"], ["mastery", "review", "carol"]):
            code, _, stderr = run_cli_command(args, database_url=database_url)
            assert code == 0, f"{' '.join(args)} failed: {stderr}"
