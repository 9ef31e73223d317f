"""Isolated working context for running the tool under test."""

import logging
import tempfile
from pathlib import Path
from typing import Any, Optional

from .config import ConfigLoader, HarnessConfig
from .run import Run

logger = logging.getLogger(__name__)


class Sandbox:
    """A private temp directory and session file shared by the runs it creates.

    Each test (or group of tests) creates its own Sandbox so that runs of
    the tool do not see each other's sessions or files. The directory is
    not removed automatically.

    Attributes:
        config: HarnessConfig used by every run of this sandbox
        root: Private temporary directory

    Example:
        >>> sandbox = Sandbox()
        >>> run = sandbox.run("login", {"user": "alice"})
        >>> run.args
        ('login', '--user', 'alice')
    """

    def __init__(self, config: Optional[HarnessConfig] = None):
        self.config = config or ConfigLoader.load()
        self.root = Path(tempfile.mkdtemp(prefix='selftest-'))
        logger.debug(f"Created sandbox at {self.root}")

    @property
    def session_file(self) -> Path:
        return self.root / self.config.session_file_name

    def run(self, *args: Any) -> Run:
        """Create a Run bound to this sandbox with the given arguments."""
        return Run(sandbox=self, args=args)
