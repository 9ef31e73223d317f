"""Root pytest configuration for all tests.

This conftest applies to all test types (unit, integration). Every test
runs in its own working directory with the SELFTEST_* environment
variables cleared, so a developer's selftest.yaml or .env never leaks in.
"""

import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from src.harness.config import CONFIG_ENV_VAR, ENV_OVERRIDES, HarnessConfig
from src.harness.sandbox import Sandbox


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Clear harness environment variables and work inside tmp_path."""
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)

    with patch.dict(os.environ):
        for env_var in [CONFIG_ENV_VAR, *ENV_OVERRIDES]:
            os.environ.pop(env_var, None)
        with patch('src.harness.config.load_dotenv'):
            yield


@pytest.fixture
def harness_config(tmp_path) -> HarnessConfig:
    """HarnessConfig that uses the running Python interpreter as the tool under test.

    Runs are started as ``python -c <script>``, which lets tests script the
    exact output and exit behaviour they need.
    """
    return HarnessConfig(
        binary=sys.executable,
        state_file=str(tmp_path / "state.yaml"),
        base_timeout=5.0,
    )


@pytest.fixture
def sandbox(harness_config) -> Sandbox:
    return Sandbox(harness_config)


@pytest.fixture
def tests_dir(tmp_path) -> Path:
    """Empty directory for test-definition files."""
    path = tmp_path / "selftests"
    path.mkdir()
    return path
