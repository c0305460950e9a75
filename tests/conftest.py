import sys
import textwrap
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from ralph_loop.core.progress_store import ProgressStore
from ralph_loop.core.run_storage import RunStorageManager
from ralph_loop.models.task import Task


@pytest.fixture
def cli_runner():
    """Provides a Click CLI runner for testing commands."""
    return CliRunner()


@pytest.fixture
def state_dir(tmp_path):
    """A not-yet-created .ralph directory inside a temporary project."""
    return tmp_path / ".ralph"


@pytest.fixture
def progress_store(state_dir):
    return ProgressStore(state_dir)


@pytest.fixture
def run_storage(state_dir):
    return RunStorageManager(state_dir)


@pytest.fixture
def sample_tasks():
    return [
        Task(id=1, category="feature", description="Add parser"),
        Task(id=2, category="test", description="Cover parser edge cases", test_type="unit"),
    ]


@pytest.fixture
def write_script():
    """Write a small Python script used as a stand-in agent or check."""
    def _write(path: Path, source: str) -> Path:
        path.write_text(textwrap.dedent(source))
        return path
    return _write


@pytest.fixture
def write_config():
    """Write a config.yml pointing the agent and checks at local scripts."""
    def _write(state_dir: Path, agent_script: Path, checks: dict) -> Path:
        state_dir.mkdir(parents=True, exist_ok=True)
        config = {
            "agent": {"command": [sys.executable, str(agent_script)], "budget_flag": None},
            "checks": checks,
        }
        config_file = state_dir / "config.yml"
        config_file.write_text(yaml.safe_dump(config))
        return config_file
    return _write
