"""Completion detection for agent output."""

from .constants import COMPLETION_SENTINEL


class CompletionDetector:
    """Decides whether agent output signals that all tasks are complete.

    Detectors see output one line at a time, so they must not rely on
    seeing the whole output at once.
    """

    def check_line(self, line: str) -> bool:
        raise NotImplementedError


class SentinelDetector(CompletionDetector):
    """Detects a fixed marker string anywhere in a line of output."""

    def __init__(self, sentinel: str = COMPLETION_SENTINEL):
        if not sentinel:
            raise ValueError("sentinel must not be empty")
        self.sentinel = sentinel

    def check_line(self, line: str) -> bool:
        return self.sentinel in line
