"""Buffered pattern matching over one output stream of a child process.

The Matcher receives text from a reader thread through write() and lets
the test thread block in match() until the text it expects shows up,
the stream ends, or a timeout expires.
"""

import logging
import re
import threading
from concurrent.futures import Future
from typing import Optional, Tuple, Union

from .errors import FailureReason, MatchPendingError, TestFailure

logger = logging.getLogger(__name__)

Pattern = Union[str, "re.Pattern[str]"]


class _MatchRequest:
    """The single outstanding match() call of a Matcher."""

    def __init__(self, pattern: Pattern, strict: bool):
        self.pattern = pattern
        self.strict = strict
        self.future: Future = Future()


class Matcher:
    """Accumulates stream output and resolves match requests against it.

    Attributes:
        name: Stream label used in log and error messages
        buffer: Output not yet consumed by a successful match
        output: Everything ever written, never shrinks
        ended: True once the stream has been closed

    Only one match may be pending at a time. A pending request is resolved
    exactly once, by whichever comes first: a write that makes the pattern
    appear, end() of the stream, or expiry of the timeout.

    Example:
        >>> matcher = Matcher("stdout")
        >>> matcher.write("hello world\\n")
        >>> matcher.match("hello")
        'hello'
        >>> matcher.buffer
        ' world\\n'
    """

    def __init__(self, name: str = "stream"):
        self.name = name
        self.buffer = ""
        self.output = ""
        self.ended = False
        self._pending: Optional[_MatchRequest] = None
        self._lock = threading.RLock()

    def write(self, data: str) -> None:
        """Append data to the buffer and retry the pending match."""
        with self._lock:
            self.buffer += data
            self.output += data
            self._try_match()

    def match(self, pattern: Pattern, timeout: Optional[float] = None, strict: bool = False):
        """Wait for pattern to appear in the buffer and consume through it.

        Args:
            pattern: Literal string or compiled regular expression
            timeout: Seconds to wait; None or 0 waits until the stream ends
            strict: Require the match to start at the beginning of the buffer

        Returns:
            The literal for string patterns, the re.Match for regexes

        Raises:
            MatchPendingError: If another match is still pending
            TestFailure: match-timeout, no-match or junk-before
        """
        with self._lock:
            if self._pending is not None:
                raise MatchPendingError(self.name)
            request = _MatchRequest(pattern, strict)
            self._pending = request
            self._try_match()

        timer = None
        if timeout and not request.future.done():
            timer = threading.Timer(timeout, self._expire, args=(request, timeout))
            timer.daemon = True
            timer.start()

        try:
            return request.future.result()
        finally:
            if timer is not None:
                timer.cancel()

    def end(self) -> None:
        """Mark the stream closed; a pending unresolved match fails."""
        with self._lock:
            self.ended = True
            self._try_match()

    def match_empty(self) -> None:
        """Fail with junk-at-end if unconsumed output remains."""
        with self._lock:
            if self.buffer:
                raise TestFailure(FailureReason.JUNK_AT_END, {
                    'stream': self.name,
                    'junk': self.buffer,
                })

    def _expire(self, request: _MatchRequest, timeout: float) -> None:
        with self._lock:
            if self._pending is not request:
                return
            self._pending = None
            logger.debug(f"Match on {self.name} timed out after {timeout}s: {request.pattern!r}")
            request.future.set_exception(TestFailure(FailureReason.MATCH_TIMEOUT, {
                'stream': self.name,
                'pattern': request.pattern,
                'timeout': timeout,
            }))

    def _search(self, pattern: Pattern) -> Optional[Tuple[int, int, object]]:
        """Find the earliest occurrence of pattern in the buffer.

        Returns:
            (start, end, result) or None if there is no occurrence
        """
        if isinstance(pattern, re.Pattern):
            m = pattern.search(self.buffer)
            if m is None:
                return None
            return m.start(), m.end(), m

        index = self.buffer.find(pattern)
        if index == -1:
            return None
        return index, index + len(pattern), pattern

    def _try_match(self) -> None:
        # Caller holds self._lock
        request = self._pending
        if request is None:
            return

        found = self._search(request.pattern)
        if found is not None:
            start, end, result = found
            self._pending = None
            if request.strict and start != 0:
                request.future.set_exception(TestFailure(FailureReason.JUNK_BEFORE, {
                    'stream': self.name,
                    'pattern': request.pattern,
                    'junk': self.buffer[:start],
                }))
                return
            self.buffer = self.buffer[end:]
            request.future.set_result(result)
            return

        if self.ended:
            self._pending = None
            request.future.set_exception(TestFailure(FailureReason.NO_MATCH, {
                'stream': self.name,
                'pattern': request.pattern,
                'output': self.output,
            }))
