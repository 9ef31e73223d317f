"""End-to-end self-test harness for command-line tools.

Test-definition files register tests with define(); test bodies create a
Sandbox, start the tool under test with Sandbox.run() and assert on its
output and exit status. The TestRunner executes the tests and remembers
which files passed so that unchanged files can be skipped.
"""

from .config import ConfigLoader, HarnessConfig
from .errors import (
    ArgsFrozenError,
    ConfigError,
    DefineOutsideLoadError,
    FailureReason,
    HarnessError,
    MatchPendingError,
    RecursiveLoadError,
    SessionConstructionError,
    StateFilesystemError,
    TestFailure,
)
from .matcher import Matcher
from .models import ExitCode, ExitStatus, PassState, TestCase
from .registry import TestLoader, TestRegistry, define
from .report import ReportHandler
from .run import Run
from .runner import TestRunner
from .sandbox import Sandbox
from .state import PassStateManager

__all__ = [
    'ConfigLoader',
    'HarnessConfig',
    'ArgsFrozenError',
    'ConfigError',
    'DefineOutsideLoadError',
    'FailureReason',
    'HarnessError',
    'MatchPendingError',
    'RecursiveLoadError',
    'SessionConstructionError',
    'StateFilesystemError',
    'TestFailure',
    'Matcher',
    'ExitCode',
    'ExitStatus',
    'PassState',
    'TestCase',
    'TestLoader',
    'TestRegistry',
    'define',
    'ReportHandler',
    'Run',
    'TestRunner',
    'Sandbox',
    'PassStateManager',
]
