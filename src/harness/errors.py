"""Typed exception hierarchy for the self-test harness.

This module defines two distinct kinds of exceptions:

- TestFailure: the expected, structured outcome of a failed assertion
  inside a test body. The runner records it and moves on to the next test.
- HarnessError and its subclasses: programming and environment errors
  (misuse of the API, bad configuration, unwritable state). These are never
  treated as test failures and abort the run.
"""

import traceback
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional


class FailureReason(str, Enum):
    """Reasons a TestFailure can carry."""
    MATCH_TIMEOUT = "match-timeout"
    NO_MATCH = "no-match"
    JUNK_BEFORE = "junk-before"
    JUNK_AT_END = "junk-at-end"
    EXIT_TIMEOUT = "exit-timeout"
    SPAWN_FAILURE = "spawn-failure"
    WRONG_EXIT_CODE = "wrong-exit-code"

    def __str__(self) -> str:
        return self.value


class TestFailure(Exception):
    """Raised by assertion methods when the program under test misbehaves.

    Attributes:
        reason: FailureReason discriminating the failure
        details: Read-only mapping with reason-specific context
            (``output`` for no-match, ``expected``/``actual`` for
            wrong-exit-code)
        stack: Call stack captured when the failure was created

    Instances are immutable once constructed.
    """

    __test__ = False

    def __init__(self, reason: FailureReason, details: Optional[Mapping[str, Any]] = None):
        reason = FailureReason(reason)
        super().__init__(reason.value)
        object.__setattr__(self, "reason", reason)
        object.__setattr__(self, "details", MappingProxyType(dict(details or {})))
        object.__setattr__(self, "stack", traceback.extract_stack()[:-1])

    def __setattr__(self, name, value):
        # Python assigns __traceback__, __context__ etc. while raising
        if name.startswith("__"):
            object.__setattr__(self, name, value)
            return
        raise AttributeError(f"TestFailure is immutable (cannot set '{name}')")

    def __str__(self) -> str:
        return self.reason.value


class HarnessError(Exception):
    """Base exception for all harness errors that are not test failures."""
    pass


class MatchPendingError(HarnessError):
    """Raised when a second match is requested while one is still pending."""

    def __init__(self, stream: str):
        super().__init__(f"A match is already pending on {stream}")
        self.stream = stream


class ArgsFrozenError(HarnessError):
    """Raised when arguments are changed after the process has started."""

    def __init__(self):
        super().__init__("Cannot change arguments: the process has already started")


class SessionConstructionError(HarnessError):
    """Raised when a Run is constructed without a Sandbox."""

    def __init__(self):
        super().__init__("Run must be created through Sandbox.run()")


class DefineOutsideLoadError(HarnessError):
    """Raised when define() is called while no test file is being loaded."""

    def __init__(self, name: str):
        super().__init__(
            f"Test '{name}' defined outside of a test file load"
        )
        self.name = name


class RecursiveLoadError(HarnessError):
    """Raised when a test file is loaded while another load is in progress."""

    def __init__(self, file_path: str, active_path: str):
        super().__init__(
            f"Cannot load {file_path} while {active_path} is still loading"
        )
        self.file_path = file_path
        self.active_path = active_path


class ConfigError(HarnessError):
    """Raised when harness configuration is missing or invalid."""

    def __init__(self, message: str, config_field: Optional[str] = None):
        if config_field:
            full_message = f"Configuration error in field '{config_field}': {message}"
        else:
            full_message = f"Configuration error: {message}"
        super().__init__(full_message)
        self.config_field = config_field
        self.original_message = message


class StateFilesystemError(HarnessError):
    """Raised when pass-state file operations fail."""

    def __init__(self, file_path: str, operation: str, reason: Optional[str] = None):
        message = f"State file operation '{operation}' failed for {file_path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.file_path = file_path
        self.operation = operation
        self.reason = reason
