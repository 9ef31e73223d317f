"""Process session: one spawned run of the tool under test.

A Run owns the child process, one Matcher per output stream and the
exit status. Test bodies drive it through blocking assertion methods
(match, read, expect_exit, ...) while reader threads feed the matchers
in the background.
"""

import codecs
import logging
import os
import subprocess
import threading
from typing import IO, TYPE_CHECKING, Any, List, Mapping, Optional, Tuple

from .config import resolve_binary
from .errors import ArgsFrozenError, FailureReason, SessionConstructionError, TestFailure
from .latch import Latch
from .matcher import Matcher, Pattern
from .models import ExitStatus

if TYPE_CHECKING:
    from .sandbox import Sandbox

logger = logging.getLogger(__name__)

# Bytes requested per read from a child's output pipe
READ_CHUNK_SIZE = 4096


class Run:
    """A test run of the tool. Typically created through Sandbox.run().

    The process is started lazily by the first method that needs it
    (match, read, expect_exit, write, ...). Until then arguments may be
    added with set_args().

    Attributes:
        sandbox: Sandbox this run belongs to
        base_timeout: Seconds every timed wait is allowed by default
        extra_time: Seconds added to the next timed wait only
        stdout_matcher: Matcher fed from the child's stdout
        stderr_matcher: Matcher fed from the child's stderr

    Example:
        >>> run = sandbox.run("--version")
        >>> run.match("1.0")
        >>> run.expect_exit(0)
    """

    def __init__(self, sandbox: "Sandbox", args: Tuple[Any, ...] = ()):
        if sandbox is None:
            raise SessionConstructionError()
        self.sandbox = sandbox
        self.config = sandbox.config

        self._args: List[str] = []
        self.proc: Optional[subprocess.Popen] = None
        self.base_timeout = self.config.base_timeout
        self.extra_time = 0.0

        self.stdout_matcher = Matcher("stdout")
        self.stderr_matcher = Matcher("stderr")

        self._started = False
        self._exit: Latch[ExitStatus] = Latch()
        self._threads: List[threading.Thread] = []

        self.set_args(*args)

    @property
    def args(self) -> Tuple[str, ...]:
        return tuple(self._args)

    @property
    def exit_status(self) -> Optional[ExitStatus]:
        """ExitStatus once the process has exited or failed to spawn, else None."""
        return self._exit.value

    def set_args(self, *args: Any) -> None:
        """Append command-line arguments.

        May be called any number of times before the process starts.
        Mappings are flattened to ``--key value`` pairs in iteration order,
        everything else is converted with str().

        Raises:
            ArgsFrozenError: If the process has already started
        """
        if self._started:
            raise ArgsFrozenError()

        for arg in args:
            if isinstance(arg, Mapping):
                for key, value in arg.items():
                    self._args.append(f"--{key}")
                    self._args.append(str(value))
            else:
                self._args.append(str(arg))

    def match(self, pattern: Pattern, strict: bool = False):
        """Wait for pattern on stdout and consume stdout up to its end.

        Fails if the pattern does not appear before the timeout or before
        the program exits.
        """
        self._ensure_started()
        return self.stdout_matcher.match(pattern, self._take_timeout(), strict)

    def match_err(self, pattern: Pattern, strict: bool = False):
        """As match(), but for stderr."""
        self._ensure_started()
        return self.stderr_matcher.match(pattern, self._take_timeout(), strict)

    def read(self, pattern: Pattern):
        """Like match(), but the pattern must follow the last thing consumed."""
        return self.match(pattern, strict=True)

    def read_err(self, pattern: Pattern):
        """As read(), but for stderr."""
        return self.match_err(pattern, strict=True)

    def expect_exit(self, code: Optional[int] = None) -> None:
        """Wait for the process to exit, optionally checking its exit code.

        Only the exit code is compared; a process killed by a signal has
        no code and therefore never satisfies an expected code.

        Raises:
            TestFailure: exit-timeout, spawn-failure or wrong-exit-code
        """
        self._ensure_started()

        if not self._exit.is_set():
            timeout = self._take_timeout()
            if not self._exit.wait(timeout):
                raise TestFailure(FailureReason.EXIT_TIMEOUT, {'timeout': timeout})

        status = self._exit.value
        if not status.spawned:
            raise TestFailure(FailureReason.SPAWN_FAILURE, {'error': status.spawn_error})
        if code is not None and status.code != code:
            raise TestFailure(FailureReason.WRONG_EXIT_CODE, {
                'expected': {'code': code},
                'actual': {'code': status.code, 'signal': status.signal},
            })

    def expect_end(self) -> None:
        """Expect the program to exit with nothing further printed on either stream."""
        self.expect_exit()
        self.stdout_matcher.match_empty()
        self.stderr_matcher.match_empty()

    def wait_secs(self, secs: float) -> None:
        """Extend the timeout of the next timed operation by secs seconds."""
        self.extra_time += secs

    def write(self, text: str) -> None:
        """Send text to the program on its stdin."""
        self._ensure_started()
        if self.proc is None or self.proc.stdin is None or self.proc.stdin.closed:
            logger.warning("Cannot write to stdin: process is not running")
            return
        try:
            self.proc.stdin.write(text.encode('utf-8'))
            self.proc.stdin.flush()
        except BrokenPipeError:
            logger.warning("Cannot write to stdin: process closed its input")

    def close_input(self) -> None:
        """Close the program's stdin so that it reads end-of-file."""
        self._ensure_started()
        if self.proc is not None and self.proc.stdin is not None and not self.proc.stdin.closed:
            try:
                self.proc.stdin.close()
            except BrokenPipeError:
                logger.debug("stdin was already closed by the process")

    def kill(self) -> None:
        """Kill the process if it is still running."""
        if self.proc is not None and not self._exit.is_set():
            logger.debug(f"Killing process {self.proc.pid}")
            self.proc.kill()

    def _take_timeout(self) -> float:
        timeout = self.base_timeout + self.extra_time
        self.extra_time = 0.0
        return timeout

    def _ensure_started(self) -> None:
        if self._started:
            return
        self._started = True

        exec_path = resolve_binary(self.config)
        env = dict(os.environ)
        env[self.config.session_env_var] = str(self.sandbox.session_file)

        logger.debug(f"Spawning {exec_path} {' '.join(self._args)}")
        try:
            self.proc = subprocess.Popen(
                [exec_path, *self._args],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=env,
            )
        except OSError as e:
            logger.warning(f"Failed to spawn {exec_path}: {e}")
            self._exited(ExitStatus.failed_to_spawn(e))
            return

        readers = [
            threading.Thread(target=self._pump, args=(self.proc.stdout, self.stdout_matcher), daemon=True),
            threading.Thread(target=self._pump, args=(self.proc.stderr, self.stderr_matcher), daemon=True),
        ]
        watcher = threading.Thread(target=self._watch, args=(readers,), daemon=True)
        self._threads = readers + [watcher]
        for thread in self._threads:
            thread.start()

    def _pump(self, stream: IO[bytes], matcher: Matcher) -> None:
        decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
        try:
            while True:
                chunk = stream.read1(READ_CHUNK_SIZE)
                if not chunk:
                    break
                text = decoder.decode(chunk)
                if text:
                    matcher.write(text)
            tail = decoder.decode(b'', final=True)
            if tail:
                matcher.write(tail)
        finally:
            stream.close()

    def _watch(self, readers: List[threading.Thread]) -> None:
        # Output is complete only once both pipes reached EOF
        for reader in readers:
            reader.join()
        returncode = self.proc.wait()
        logger.debug(f"Process {self.proc.pid} exited with {returncode}")
        self._exited(ExitStatus.from_returncode(returncode))

    def _exited(self, status: ExitStatus) -> None:
        if not self._exit.set(status):
            return
        self.stdout_matcher.end()
        self.stderr_matcher.end()
