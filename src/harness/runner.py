"""Test runner with change-aware skipping.

Runs the discovered tests in order, records which test files passed
completely, and on request skips files whose contents have not changed
since they last passed.
"""

import logging
from typing import Dict, List

from .errors import TestFailure
from .models import ExitCode, TestCase
from .registry import TestRegistry
from .report import ReportHandler, failure_location
from .state import PassStateManager

logger = logging.getLogger(__name__)


class TestRunner:
    """Orchestrates a self-test run.

    Only TestFailure is treated as a test failure. Any other exception
    escaping a test body aborts the whole run without saving the
    pass-state.

    Example:
        >>> runner = TestRunner(TestRegistry("selftests"),
        ...                     PassStateManager("~/.selftest-state.yaml"),
        ...                     ReportHandler())
        >>> exit_code = runner.run(only_changed=True)
    """

    __test__ = False

    def __init__(
        self,
        registry: TestRegistry,
        state_manager: PassStateManager,
        report: ReportHandler,
    ):
        self.registry = registry
        self.state_manager = state_manager
        self.report = report

    def run(self, only_changed: bool = False) -> ExitCode:
        """Run the tests.

        Args:
            only_changed: Skip test files whose hash matches the hash they
                last passed with

        Returns:
            ExitCode.SUCCESS if no test failed, ExitCode.FAILURE otherwise
        """
        tests = self.registry.discover()
        if not tests:
            self.report.no_tests("No tests defined.")
            return ExitCode.SUCCESS

        state = self.state_manager.load()

        if only_changed:
            tests = [
                test for test in tests
                if test.source_hash != state.last_passed_hashes.get(test.source_file)
            ]
            if not tests:
                self.report.no_tests("No tests changed.")
                return ExitCode.SUCCESS

        failure_count = 0
        failed_files: Dict[str, bool] = {}

        for test in tests:
            self.report.test_started(test.name)

            # Retracted below if any test in the file fails
            state.last_passed_hashes[test.source_file] = test.source_hash

            failure = self._run_test(test)
            if failure is None:
                self.report.test_passed()
                continue

            failure_count += 1
            failed_files[test.source_file] = True
            self.report.test_failed(failure, failure_location(failure, test))
            logger.info(f"Test '{test.name}' failed: {failure.reason}")

        for source_file in failed_files:
            state.last_passed_hashes.pop(source_file, None)

        self.state_manager.save(state)
        self.report.summary(failure_count)

        return ExitCode.SUCCESS if failure_count == 0 else ExitCode.FAILURE

    def list_tests(self) -> List[TestCase]:
        tests = self.registry.discover()
        self.report.list_tests(tests)
        return tests

    def _run_test(self, test: TestCase):
        try:
            test.body()
        except TestFailure as failure:
            return failure
        except Exception:
            self.report.test_crashed()
            logger.exception(f"Test '{test.name}' raised an unexpected exception")
            raise
        return None
