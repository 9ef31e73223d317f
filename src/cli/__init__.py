"""Command-line interface for the self-test harness.

This package provides the `selftest` CLI tool that discovers test-definition
files, runs them against the tool under test and reports the results.
"""

from .main import app, main

__all__ = [
    'app',
    'main',
]
