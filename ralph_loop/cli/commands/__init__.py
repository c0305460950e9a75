"""CLI commands for ralph-loop."""
