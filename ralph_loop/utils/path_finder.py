"""Utilities for finding paths and executables."""

import shutil
from pathlib import Path
from typing import Optional

from ..core.constants import DATA_DIR_NAME, PROJECT_PATTERNS


class PathFinder:
    """Utility class for finding paths and executables."""

    @staticmethod
    def find_executable(name: str) -> Optional[str]:
        """Return the full path of an executable on PATH, if any."""
        return shutil.which(name)

    @staticmethod
    def detect_project_type(project_root: Path) -> str:
        """Detect the type of project based on files present."""
        for project_type, patterns in PROJECT_PATTERNS.items():
            for pattern in patterns:
                if (project_root / pattern).exists():
                    return project_type
        return "default"

    @staticmethod
    def default_state_dir(project_root: Path) -> Path:
        """State directory used when none is given explicitly."""
        return project_root / DATA_DIR_NAME
