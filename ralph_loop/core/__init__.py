"""Core loop functionality for ralph-loop."""
