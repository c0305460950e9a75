"""Utilities for ralph-loop."""

from .config_manager import ConfigManager
from .file_utils import append_text, atomic_write_text, tail_lines
from .path_finder import PathFinder

__all__ = [
    'ConfigManager',
    'PathFinder',
    'append_text',
    'atomic_write_text',
    'tail_lines',
]
