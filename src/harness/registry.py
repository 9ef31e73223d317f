"""Discovery and registration of self-tests.

Test-definition files are plain Python modules in the tests directory.
Loading a file executes it; while it executes, calls to define() register
tests tagged with that file and the hash of its contents:

    from src.harness import Sandbox, define

    @define("prints version")
    def _():
        run = Sandbox().run("--version")
        run.match("1.0")
        run.expect_exit(0)
"""

import hashlib
import importlib.util
import logging
import re
import sys
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Union

from .errors import DefineOutsideLoadError, RecursiveLoadError
from .models import TestCase

logger = logging.getLogger(__name__)

# Ends in .py and does not start with '.' or '_'
TEST_FILE_PATTERN = re.compile(r'^[^._].*\.py$')

Body = Callable[[], None]


@dataclass
class LoadContext:
    """The test file currently being executed and the tests it defined."""
    source_file: str
    source_hash: str
    path: Path
    tests: List[TestCase] = field(default_factory=list)

    def define(self, name: str, body: Body) -> TestCase:
        test = TestCase(
            name=name,
            source_file=self.source_file,
            source_hash=self.source_hash,
            body=body,
            source_path=self.path,
        )
        self.tests.append(test)
        return test


_active_load: Optional[LoadContext] = None


@contextmanager
def _activate(context: LoadContext) -> Iterator[LoadContext]:
    global _active_load
    if _active_load is not None:
        raise RecursiveLoadError(str(context.path), str(_active_load.path))
    _active_load = context
    try:
        yield context
    finally:
        _active_load = None


def define(name: str, body: Optional[Body] = None) -> Union[TestCase, Callable[[Body], Body]]:
    """Register a test in the file currently being loaded.

    Can be called directly, ``define("name", func)``, or used as a
    decorator, ``@define("name")``.

    Raises:
        DefineOutsideLoadError: If no test file is being loaded
    """
    if body is None:
        def decorator(func: Body) -> Body:
            define(name, func)
            return func
        return decorator

    if _active_load is None:
        raise DefineOutsideLoadError(name)
    return _active_load.define(name, body)


def hash_file(path: Path) -> str:
    """Return the SHA-1 hex digest of a file's contents."""
    return hashlib.sha1(path.read_bytes()).hexdigest()


class TestLoader:
    """Finds and executes test-definition files in a directory."""

    __test__ = False

    def __init__(self, tests_dir: Union[str, Path]):
        self.tests_dir = Path(tests_dir)

    def test_files(self) -> List[Path]:
        """List test-definition files, sorted by path."""
        if not self.tests_dir.is_dir():
            logger.warning(f"Tests directory not found: {self.tests_dir}")
            return []
        return sorted(
            p for p in self.tests_dir.iterdir()
            if p.is_file() and TEST_FILE_PATTERN.match(p.name)
        )

    def load_file(self, path: Path) -> List[TestCase]:
        """Execute one test file and return the tests it defined.

        The file is hashed before it runs, so the hash always describes
        the code that produced the tests.

        Raises:
            RecursiveLoadError: If another file is still being loaded
        """
        path = Path(path).resolve()
        context = LoadContext(
            source_file=path.stem,
            source_hash=hash_file(path),
            path=path,
        )

        spec = importlib.util.spec_from_file_location(f"selftests.{path.stem}", path)
        module = importlib.util.module_from_spec(spec)
        with _activate(context):
            sys.modules[spec.name] = module
            try:
                spec.loader.exec_module(module)
            except BaseException:
                sys.modules.pop(spec.name, None)
                raise

        logger.debug(f"Loaded {len(context.tests)} test(s) from {path.name}")
        return context.tests

    def load_all(self) -> List[TestCase]:
        tests: List[TestCase] = []
        for path in self.test_files():
            tests.extend(self.load_file(path))
        return tests


class TestRegistry:
    """Holds the tests discovered in a tests directory.

    Discovery happens at most once per registry; later calls return the
    cached list.
    """

    __test__ = False

    def __init__(self, tests_dir: Union[str, Path]):
        self.loader = TestLoader(tests_dir)
        self._tests: Optional[List[TestCase]] = None

    def discover(self) -> List[TestCase]:
        if self._tests is None:
            self._tests = self.loader.load_all()
            logger.info(f"Discovered {len(self._tests)} test(s) in {self.loader.tests_dir}")
        return list(self._tests)

    @property
    def tests(self) -> List[TestCase]:
        return self.discover()
