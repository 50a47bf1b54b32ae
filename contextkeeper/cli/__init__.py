"""Command line interface for contextkeeper."""

from contextkeeper.cli.main import main

__all__ = ["main"]
