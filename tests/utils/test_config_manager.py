"""Tests for ConfigManager."""
import pytest

from ralph_loop.core.constants import COMPLETION_SENTINEL, DEFAULT_AGENT_COMMAND
from ralph_loop.models.config import RalphConfig
from ralph_loop.services.exceptions import ConfigError
from ralph_loop.utils.config_manager import ConfigManager


@pytest.fixture
def manager(tmp_path):
    return ConfigManager(tmp_path / ".ralph", tmp_path)


class TestConfigManager:
    """Test cases for ConfigManager."""

    def test_defaults_without_config_file(self, manager):
        """Test defaults apply when no config file exists."""
        config = manager.load_config()

        assert config.agent.command == DEFAULT_AGENT_COMMAND
        assert config.completion_sentinel == COMPLETION_SENTINEL
        assert config.checks["tests"] == ["make", "test"]

    def test_defaults_follow_project_type(self, tmp_path, manager):
        """Test node projects get npm based checks."""
        (tmp_path / "package.json").write_text("{}")
        assert manager.load_config().checks["typecheck"] == ["npx", "tsc", "--noEmit"]

    def test_python_project_defaults(self, tmp_path, manager):
        """Test python projects get pytest based checks."""
        (tmp_path / "pyproject.toml").write_text("[project]\n")
        assert manager.load_config().checks["tests"] == ["pytest", "-q"]

    def test_config_file_overrides(self, manager):
        """Test config values override defaults per key."""
        manager.state_dir.mkdir()
        manager.config_file.write_text(
            "agent:\n"
            "  command: [my-agent, --headless]\n"
            "  budget_flag: null\n"
            "checks:\n"
            "  tests: [npm, run, test:unit]\n"
            "excerpt_lines: 3\n"
        )

        config = manager.load_config()

        assert config.agent.command == ["my-agent", "--headless"]
        assert config.agent.budget_flag is None
        assert config.checks["tests"] == ["npm", "run", "test:unit"]
        assert config.checks["lint"] == ["make", "lint"]
        assert config.excerpt_lines == 3

    def test_invalid_yaml(self, manager):
        """Test malformed YAML raises ConfigError."""
        manager.state_dir.mkdir()
        manager.config_file.write_text("agent: [unclosed\n")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            manager.load_config()

    def test_non_mapping(self, manager):
        """Test a YAML list raises ConfigError."""
        manager.state_dir.mkdir()
        manager.config_file.write_text("- just\n- a list\n")

        with pytest.raises(ConfigError, match="must contain a mapping"):
            manager.load_config()

    def test_schema_violation(self, manager):
        """Test invalid values raise ConfigError."""
        manager.state_dir.mkdir()
        manager.config_file.write_text("agent:\n  command: []\n")

        with pytest.raises(ConfigError, match="Invalid configuration"):
            manager.load_config()

    def test_empty_file_uses_defaults(self, manager):
        """Test an empty config file is the same as none."""
        manager.state_dir.mkdir()
        manager.config_file.write_text("")
        assert manager.load_config().excerpt_lines == RalphConfig().excerpt_lines

    def test_save_and_reload(self, manager):
        """Test a saved config loads back."""
        config = RalphConfig(checks={"tests": ["tox"]}, check_timeout=60)
        manager.save_config(config)

        reloaded = manager.load_config()
        assert reloaded.checks["tests"] == ["tox"]
        assert reloaded.check_timeout == 60
