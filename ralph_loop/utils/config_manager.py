"""Configuration management utilities."""

import logging
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import ValidationError

from ..core.constants import CONFIG_FILE_NAME, DEFAULT_CHECK_COMMANDS
from ..models.config import RalphConfig
from ..services.exceptions import ConfigError
from .file_utils import atomic_write_text
from .path_finder import PathFinder

logger = logging.getLogger(__name__)


class ConfigManager:
    """Loads and saves ralph-loop configuration."""

    def __init__(self, state_dir: Path, project_root: Optional[Path] = None):
        """Initialize config manager.

        Args:
            state_dir: The .ralph directory for the project
            project_root: Project root used to pick default check commands
        """
        self.state_dir = state_dir
        self.project_root = project_root or state_dir.parent
        self.config_file = state_dir / CONFIG_FILE_NAME

    def load_config(self) -> RalphConfig:
        """Load configuration, filling in project-type defaults.

        Raises:
            ConfigError: If the config file is not valid YAML or fails validation
        """
        data = {}
        if self.config_file.exists():
            try:
                data = yaml.safe_load(self.config_file.read_text()) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {self.config_file}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"{self.config_file} must contain a mapping")

        try:
            config = RalphConfig(**data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration in {self.config_file}:\n{e}") from e

        checks = self.default_checks()
        checks.update(config.checks)
        config.checks = checks
        return config

    def default_checks(self) -> Dict[str, List[str]]:
        """Check commands for the detected project type."""
        project_type = PathFinder.detect_project_type(self.project_root)
        logger.info(f"Detected project type: {project_type}")
        return {name: list(argv) for name, argv in DEFAULT_CHECK_COMMANDS[project_type].items()}

    def save_config(self, config: RalphConfig) -> None:
        """Write configuration to config.yml."""
        atomic_write_text(
            self.config_file,
            yaml.safe_dump(config.to_yaml_dict(), sort_keys=False, default_flow_style=False),
        )
