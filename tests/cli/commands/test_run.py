"""Tests for the run command."""
import sys

import pytest

from ralph_loop.cli.main import cli
from ralph_loop.core.run_storage import RunStorageManager
from ralph_loop.models.run import FailureReason, RunStatus, VerificationMode

FINISHING_AGENT = """\
    import json
    import sys
    from pathlib import Path

    sys.stdin.read()
    plan = [{"id": 1, "category": "feature", "description": "do it", "passes": True}]
    Path(".ralph/plan.md").write_text("```json\\n" + json.dumps(plan) + "\\n```\\n")
    print("working")
    print("RALPH_COMPLETE")
"""

IDLE_AGENT = """\
    import sys

    sys.stdin.read()
    print("looked around")
"""

CRASHING_AGENT = """\
    import sys

    sys.stdin.read()
    print("Traceback: something broke")
    sys.exit(3)
"""


def _check(exit_code, message=""):
    return [sys.executable, "-c", f"import sys; print({message!r}); sys.exit({exit_code})"]


PASSING_CHECKS = {"tests": _check(0), "lint": _check(0), "typecheck": _check(0)}


@pytest.fixture
def project(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def configure(project, write_script, write_config):
    def _configure(agent_source, checks=None):
        agent = write_script(project / "agent.py", agent_source)
        write_config(project / ".ralph", agent, checks or PASSING_CHECKS)
    return _configure


class TestRunCommand:
    """Test cases for the run command."""

    def test_dry_run_writes_nothing(self, cli_runner, project):
        """Test dry run prints the first prompt and creates no state."""
        result = cli_runner.invoke(cli, ['run', 'Add a parser', '--dry-run', '-n', '5'])

        assert result.exit_code == 0
        assert "# Iteration 1 of 5" in result.output
        assert "Add a parser" in result.output
        assert "## Plan the work" in result.output
        assert "No agent was invoked" in result.output
        assert not (project / ".ralph").exists()

    def test_dry_run_leaves_existing_state_untouched(self, cli_runner, project, configure):
        """Test dry run does not modify an existing state dir."""
        configure(IDLE_AGENT)
        before = sorted(p.name for p in (project / ".ralph").iterdir())

        result = cli_runner.invoke(cli, ['run', 'Add a parser', '--dry-run'])

        assert result.exit_code == 0
        assert sorted(p.name for p in (project / ".ralph").iterdir()) == before

    def test_success(self, cli_runner, project, configure):
        """Test a run that finishes on the first iteration exits 0."""
        configure(FINISHING_AGENT)

        result = cli_runner.invoke(cli, ['run', 'Add a parser', '-n', '3'])

        assert result.exit_code == 0, result.output
        assert "SUCCESS" in result.output
        run = RunStorageManager(project / ".ralph").latest_run()
        assert run.status == RunStatus.SUCCESS
        assert len(run.iterations) == 1
        assert run.iterations[0].saw_completion_sentinel is True
        assert run.iterations[0].checks_run == ["tests", "lint", "typecheck"]

    def test_exhaustion(self, cli_runner, project, configure):
        """Test a run that never passes exits 1 after the cap."""
        configure(IDLE_AGENT, {**PASSING_CHECKS, "tests": _check(1, "FAILED test_parser")})

        result = cli_runner.invoke(cli, ['run', 'Add a parser', '-n', '2'])

        assert result.exit_code == 1
        assert "Stopped after reaching 2 iterations without success" in result.output
        assert "Investigate manually" in result.output

        storage = RunStorageManager(project / ".ralph")
        run = storage.latest_run()
        assert run.status == RunStatus.MAX_ITERATIONS_REACHED
        assert [r.iteration for r in run.iterations] == [1, 2]
        assert run.iterations[-1].failed_checks == ["tests"]
        assert "[tests] FAILED test_parser" in run.iterations[-1].excerpt
        assert storage.verification_log_path(run.run_id).exists()
        assert storage.agent_log_path(run.run_id).exists()

    def test_quick_mode_skips_tests(self, cli_runner, project, configure):
        """Test quick mode ignores a failing test check."""
        configure(FINISHING_AGENT, {**PASSING_CHECKS, "tests": _check(1, "FAILED")})

        result = cli_runner.invoke(cli, ['run', 'Add a parser', '--mode', 'quick'])

        assert result.exit_code == 0, result.output
        run = RunStorageManager(project / ".ralph").latest_run()
        assert run.verification_mode == VerificationMode.QUICK
        assert run.iterations[0].checks_run == ["lint", "typecheck"]

    def test_agent_crash_is_recorded(self, cli_runner, project, configure):
        """Test a crashing agent is recorded as an agent failure."""
        configure(CRASHING_AGENT)

        result = cli_runner.invoke(cli, ['run', 'Add a parser', '-n', '1'])

        assert result.exit_code == 1
        record = RunStorageManager(project / ".ralph").latest_run().iterations[0]
        assert record.failure_reason == FailureReason.AGENT
        assert record.agent_exit_code == 3
        assert record.checks_run == []

    def test_task_from_file(self, cli_runner, project, configure):
        """Test reading the task description from a file."""
        configure(FINISHING_AGENT)
        (project / "task.md").write_text("Add a parser\n\nWith tests.\n")

        result = cli_runner.invoke(cli, ['run', '--file', 'task.md'])

        assert result.exit_code == 0, result.output
        assert RunStorageManager(project / ".ralph").latest_run().task == "Add a parser\n\nWith tests."

    def test_second_run_must_do_its_own_work(self, cli_runner, project, configure):
        """Test a new run in a used state dir does not reuse the finished plan."""
        configure(FINISHING_AGENT)
        first = cli_runner.invoke(cli, ['run', 'Add a parser'])
        assert first.exit_code == 0, first.output

        configure(IDLE_AGENT)
        result = cli_runner.invoke(cli, ['run', 'Write the docs', '-n', '1'])

        assert result.exit_code == 1
        storage = RunStorageManager(project / ".ralph")
        run = storage.latest_run()
        assert run.task == "Write the docs"
        assert run.status == RunStatus.MAX_ITERATIONS_REACHED
        prompt = (storage.get_run_dir(run.run_id) / "prompts" / "iteration-001.md").read_text()
        assert "## Plan the work" in prompt

    def test_dry_run_ignores_plan_of_previous_run(self, cli_runner, project, configure):
        """Test the dry-run prompt for a new task plans from scratch."""
        configure(FINISHING_AGENT)
        cli_runner.invoke(cli, ['run', 'Add a parser'])

        result = cli_runner.invoke(cli, ['run', 'Write the docs', '--dry-run'])

        assert result.exit_code == 0
        assert "## Plan the work" in result.output

    def test_empty_task(self, cli_runner, project):
        """Test a blank task is rejected."""
        result = cli_runner.invoke(cli, ['run', '   '])

        assert result.exit_code == 1
        assert "Task description cannot be empty" in result.output

    def test_invalid_budget(self, cli_runner, project):
        """Test a zero budget is a usage error."""
        result = cli_runner.invoke(cli, ['run', 'Add a parser', '--budget', '0'])
        assert result.exit_code == 2

    def test_invalid_config(self, cli_runner, project):
        """Test a malformed config aborts the run."""
        (project / ".ralph").mkdir()
        (project / ".ralph" / "config.yml").write_text("agent: [unclosed\n")

        result = cli_runner.invoke(cli, ['run', 'Add a parser'])

        assert result.exit_code == 1
        assert "Invalid YAML" in result.output

    def test_resume_continues_run(self, cli_runner, project, configure):
        """Test resuming an exhausted run with a higher cap."""
        configure(IDLE_AGENT, {**PASSING_CHECKS, "tests": _check(1, "FAILED")})
        first = cli_runner.invoke(cli, ['run', 'Add a parser', '-n', '1'])
        assert first.exit_code == 1
        run_id = RunStorageManager(project / ".ralph").latest_run().run_id

        configure(FINISHING_AGENT)
        result = cli_runner.invoke(cli, ['run', '--resume', run_id[:6], '-n', '3'])

        assert result.exit_code == 0, result.output
        assert f"Resuming run {run_id} at iteration 2" in result.output
        run = RunStorageManager(project / ".ralph").get_run(run_id)
        assert run.status == RunStatus.SUCCESS
        assert run.max_iterations == 3
        assert [r.iteration for r in run.iterations] == [1, 2]

    def test_resume_exhausted_run_needs_more_iterations(self, cli_runner, project, configure):
        """Test resume refuses a run with no iterations left."""
        configure(IDLE_AGENT, {**PASSING_CHECKS, "tests": _check(1)})
        cli_runner.invoke(cli, ['run', 'Add a parser', '-n', '1'])
        run_id = RunStorageManager(project / ".ralph").latest_run().run_id

        result = cli_runner.invoke(cli, ['run', '--resume', run_id])

        assert result.exit_code == 1
        assert "has used all 1 iterations" in result.output

    def test_resume_unknown_run(self, cli_runner, project, configure):
        """Test resuming an unknown run id fails."""
        configure(IDLE_AGENT)
        result = cli_runner.invoke(cli, ['run', '--resume', 'nope'])

        assert result.exit_code == 1
        assert "not found" in result.output
