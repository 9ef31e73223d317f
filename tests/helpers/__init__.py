"""Test helper modules for the self-test harness.

This package provides utilities shared by unit and integration tests:
- definition_files: Write test-definition files into a tests directory
- threads: Feed a Matcher from a background thread
"""

from .definition_files import write_test_file
from .threads import later, wait_until

__all__ = [
    'write_test_file',
    'later',
    'wait_until',
]
