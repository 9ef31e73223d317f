"""Unit tests for harness.run.Run that do not spawn a real process."""

from unittest.mock import patch

import pytest

from src.harness.config import HarnessConfig
from src.harness.errors import (
    ArgsFrozenError,
    ConfigError,
    FailureReason,
    SessionConstructionError,
    TestFailure,
)
from src.harness.models import ExitStatus
from src.harness.run import Run
from src.harness.sandbox import Sandbox


@pytest.fixture
def offline_sandbox():
    return Sandbox(HarnessConfig(binary="tool-under-test", base_timeout=2.0))


class TestRunConstruction:
    """Test cases for creating runs."""

    def test_run_requires_sandbox(self):
        """Constructing a Run without a Sandbox is a programming error."""
        with pytest.raises(SessionConstructionError):
            Run(None)

    def test_sandbox_run_binds_sandbox(self, offline_sandbox):
        run = offline_sandbox.run()

        assert run.sandbox is offline_sandbox
        assert run.base_timeout == 2.0
        assert run.exit_status is None


class TestRunArgs:
    """Test cases for set_args()."""

    def test_values_are_stringified(self, offline_sandbox):
        run = offline_sandbox.run("deploy", 42, 1.5, True)

        assert run.args == ("deploy", "42", "1.5", "True")

    def test_mappings_flatten_to_options_in_order(self, offline_sandbox):
        """Mapping arguments become --key value pairs in iteration order."""
        run = offline_sandbox.run("deploy", {"site": "example", "port": 3000}, "now")

        assert run.args == ("deploy", "--site", "example", "--port", "3000", "now")

    def test_set_args_accumulates(self, offline_sandbox):
        run = offline_sandbox.run("first")
        run.set_args("second")
        run.set_args({"flag": "x"})

        assert run.args == ("first", "second", "--flag", "x")

    def test_args_is_a_copy(self, offline_sandbox):
        run = offline_sandbox.run("a")
        snapshot = run.args
        run.set_args("b")

        assert snapshot == ("a",)
        assert run.args == ("a", "b")

    def test_set_args_after_start_rejected(self, offline_sandbox):
        """Arguments are frozen once the process has been launched."""
        run = offline_sandbox.run("a")

        with patch('src.harness.run.subprocess.Popen', side_effect=FileNotFoundError("missing")):
            run._ensure_started()

        with pytest.raises(ArgsFrozenError):
            run.set_args("b")
        assert run.args == ("a",)


class TestRunTimeouts:
    """Test cases for timeout budgeting."""

    def test_wait_secs_accumulates_until_consumed(self, offline_sandbox):
        run = offline_sandbox.run()
        run.wait_secs(3)
        run.wait_secs(1.5)

        assert run._take_timeout() == 6.5
        assert run._take_timeout() == 2.0

    def test_extra_time_reset_after_use(self, offline_sandbox):
        run = offline_sandbox.run()
        run.wait_secs(10)
        run._take_timeout()

        assert run.extra_time == 0.0


class TestRunSpawnFailure:
    """Test cases for processes that cannot be started."""

    def test_spawn_error_sets_failed_status(self, offline_sandbox):
        run = offline_sandbox.run()

        with patch('src.harness.run.subprocess.Popen', side_effect=PermissionError("denied")):
            with pytest.raises(TestFailure) as exc_info:
                run.expect_exit(0)

        assert exc_info.value.reason == FailureReason.SPAWN_FAILURE
        assert run.exit_status == ExitStatus(spawn_error="denied")

    def test_spawn_failure_ends_streams(self, offline_sandbox):
        """A failed spawn ends both matchers so matches fail instead of hanging."""
        run = offline_sandbox.run()

        with patch('src.harness.run.subprocess.Popen', side_effect=FileNotFoundError("missing")):
            with pytest.raises(TestFailure) as exc_info:
                run.match("anything")

        assert exc_info.value.reason == FailureReason.NO_MATCH
        assert run.stderr_matcher.ended is True

    def test_exit_handler_runs_once(self, offline_sandbox):
        """Later exit notifications do not change the first status."""
        run = offline_sandbox.run()
        run._exited(ExitStatus(code=0))
        run._exited(ExitStatus(code=1))

        assert run.exit_status.code == 0

    def test_missing_binary_configuration(self):
        """Starting a run with no binary configured is a configuration error."""
        run = Sandbox(HarnessConfig()).run()

        with pytest.raises(ConfigError):
            run.expect_exit()

    def test_environment_points_at_session_file(self, offline_sandbox):
        """The session-isolation variable points into the sandbox."""
        run = offline_sandbox.run("x")

        with patch('src.harness.run.subprocess.Popen', side_effect=FileNotFoundError()) as mock_popen:
            run._ensure_started()

        env = mock_popen.call_args.kwargs['env']
        assert env['SELFTEST_SESSION_FILE'] == str(offline_sandbox.root / ".selftest-session")
        assert mock_popen.call_args.args[0][1:] == ["x"]
