"""Command-line interface for Asset Bridge."""
