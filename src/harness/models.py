"""Data models for the self-test harness.

All models use dataclasses for clean, type-safe data structures.
"""

import signal
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Callable, Dict, Optional


class ExitCode(IntEnum):
    """Exit codes of the selftest command.

    - SUCCESS (0): Every executed test passed (including zero tests run)
    - FAILURE (1): At least one test failed, or the harness could not run
    """
    SUCCESS = 0
    FAILURE = 1


@dataclass(frozen=True)
class ExitStatus:
    """Terminal status of a spawned process.

    A process that exited normally has ``code`` set. A process killed by a
    signal has ``code`` None and ``signal`` set to the signal name. A
    process that could not be spawned at all has ``spawn_error`` set.

    Example:
        >>> ExitStatus.from_returncode(0)
        ExitStatus(code=0, signal=None, spawn_error=None)
        >>> ExitStatus.from_returncode(-9).signal
        'SIGKILL'
    """
    code: Optional[int] = None
    signal: Optional[str] = None
    spawn_error: Optional[str] = None

    @property
    def spawned(self) -> bool:
        return self.spawn_error is None

    @classmethod
    def from_returncode(cls, returncode: int) -> "ExitStatus":
        if returncode >= 0:
            return cls(code=returncode)
        try:
            name = signal.Signals(-returncode).name
        except ValueError:
            name = str(-returncode)
        return cls(signal=name)

    @classmethod
    def failed_to_spawn(cls, error: BaseException) -> "ExitStatus":
        return cls(spawn_error=str(error) or type(error).__name__)


@dataclass(frozen=True)
class TestCase:
    """A test registered by a test-definition file.

    Attributes:
        name: Human-readable test name
        source_file: Key of the file that defined the test (file stem)
        source_hash: SHA-1 hex digest of the file contents at load time
        body: Zero-argument callable executed by the runner
        source_path: Absolute path of the defining file
    """
    __test__ = False

    name: str
    source_file: str
    source_hash: str
    body: Callable[[], None] = field(repr=False, compare=False)
    source_path: Optional[Path] = None


@dataclass
class PassState:
    """Persisted record of the file hashes that last passed completely.

    Attributes:
        version: Format version (only version 1 is understood)
        last_passed_hashes: Maps source_file to the hash it last passed with
    """
    version: int = 1
    last_passed_hashes: Dict[str, str] = field(default_factory=dict)
