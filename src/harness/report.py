"""Progress and summary output of a self-test run, using the Rich library.

Everything is written to stderr so that stdout stays free for tools that
wrap the selftest command.
"""

import os
import traceback
from pathlib import Path
from typing import IO, Iterable, List, Optional

from rich.console import Console
from rich.markup import escape

from .errors import FailureReason, TestFailure
from .models import TestCase

# Frames from these files are harness internals, not test code
_HARNESS_DIR = str(Path(__file__).resolve().parent)


class ReportHandler:
    """Writes per-test progress lines and the final summary.

    Output per test is ``<name>... ok`` or ``<name>... fail!`` followed by
    the failure reason, its location in the test file and, for no-match
    failures, the last five lines of the output that was searched.

    Attributes:
        console: Rich Console instance used for all output
    """

    def __init__(self, no_color: bool = False, file: Optional[IO[str]] = None):
        self.console = Console(
            file=file,
            stderr=file is None,
            force_terminal=not no_color,
            no_color=no_color,
            highlight=False,
            soft_wrap=True,
        )

    def test_started(self, name: str) -> None:
        self.console.print(f"{escape(name)}... ", end="")

    def test_passed(self) -> None:
        self.console.print("[green]ok[/green]")

    def test_crashed(self) -> None:
        self.console.print("[red]exception[/red]\n")

    def test_failed(self, failure: TestFailure, location: Optional[str]) -> None:
        """Report a failed test.

        Args:
            failure: The TestFailure raised by the test body
            location: ``file:line`` of the failing call, if known
        """
        self.console.print("[red]fail![/red]")
        where = f" at {escape(location)}" if location else ""
        self.console.print(f"  => {failure.reason}{where}")

        if failure.reason == FailureReason.NO_MATCH:
            lines = failure.details.get('output', '').split('\n')
            # Output is expected to end in a newline
            if lines and lines[-1] == '':
                lines.pop()
            self.console.print("  => Last five lines:")
            for line in lines[-5:]:
                self.console.print(f"  |{escape(line)}")

    def no_tests(self, message: str) -> None:
        self.console.print(message)

    def summary(self, failure_count: int) -> None:
        if failure_count == 0:
            self.console.print("\n[green]All tests passed.[/green]")
        else:
            plural = "s" if failure_count > 1 else ""
            self.console.print(f"\n[red]{failure_count} failure{plural}.[/red]")

    def list_tests(self, tests: Iterable[TestCase]) -> None:
        for test in tests:
            self.console.print(f"{escape(test.source_file)}: {escape(test.name)}")


def failure_location(failure: TestFailure, test: Optional[TestCase] = None) -> Optional[str]:
    """Find the ``file:line`` in test code where a failure was raised.

    Prefers the innermost frame inside the test's own source file, then the
    innermost frame outside the harness package. Falls back to the stack
    captured when the failure was created.
    """
    frames: List[traceback.FrameSummary] = list(traceback.extract_tb(failure.__traceback__))
    if not frames:
        frames = list(failure.stack)

    chosen = None
    if test is not None and test.source_path is not None:
        source = str(test.source_path)
        for frame in frames:
            if os.path.abspath(frame.filename) == source:
                chosen = frame
    if chosen is None:
        for frame in frames:
            if not os.path.abspath(frame.filename).startswith(_HARNESS_DIR):
                chosen = frame
    if chosen is None:
        return None

    return f"{_relative(chosen.filename)}:{chosen.lineno}"


def _relative(frame_file: str) -> str:
    try:
        return os.path.relpath(frame_file)
    except ValueError:
        return frame_file
