"""Command line interface for ralph-loop."""
