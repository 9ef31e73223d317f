"""Main CLI entry point for the selftest command.

This module provides the Typer application that runs the end-to-end
self-tests of a command-line tool. It uses options on the main command
rather than subcommands.
"""

import logging
import os
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer

from src.harness.config import CONFIG_ENV_VAR, ConfigLoader, HarnessConfig
from src.harness.errors import HarnessError
from src.harness.models import ExitCode
from src.harness.registry import TestRegistry
from src.harness.report import ReportHandler
from src.harness.runner import TestRunner
from src.harness.state import PassStateManager

VERSION = "0.1.0"

app = typer.Typer(
    name="selftest",
    help="""Run end-to-end self-tests against a command-line tool.

QUICK START:
  selftest --binary ./bin/mytool                 # Run every test
  selftest --changed                             # Only files changed since they last passed
  selftest --list                                # Show discovered tests""",
    add_completion=False,
    rich_markup_mode=None,
    no_args_is_help=False,
)

# Module logger
logger = logging.getLogger(__name__)


def _configure_logging(verbosity: int, logdir: Optional[str] = None) -> None:
    """Configure logging based on verbosity level.

    Configures only the 'src' namespace logger to avoid affecting third-party
    libraries. The root logger is left unchanged.

    Args:
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2=DEBUG)
        logdir: Optional directory for log files (creates timestamped log file)
    """
    if verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:  # verbosity >= 2
        level = logging.DEBUG

    app_logger = logging.getLogger("src")
    app_logger.setLevel(level)

    log_format = "%(asctime)s [%(levelname)8s] %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter(log_format, datefmt=date_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    app_logger.addHandler(console_handler)

    if logdir:
        log_path = Path(logdir)
        log_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_path / f"selftest_{timestamp}.log"

        file_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        file_formatter = logging.Formatter(file_format, datefmt=date_format)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(file_formatter)
        app_logger.addHandler(file_handler)

        logger.info(f"Logging to file: {log_file}")


def _apply_overrides(
    config: HarnessConfig,
    tests_dir: Optional[str],
    binary: Optional[str],
    state_file: Optional[str],
) -> HarnessConfig:
    """Apply command-line overrides and export them to the environment.

    Sandboxes created inside test bodies load their configuration from the
    environment, so overrides have to be visible there as well.
    """
    overrides = {}
    if tests_dir is not None:
        overrides['tests_dir'] = tests_dir
        os.environ['SELFTEST_TESTS_DIR'] = tests_dir
    if binary is not None:
        binary_path = os.path.abspath(binary) if os.sep in binary else binary
        overrides['binary'] = binary_path
        os.environ['SELFTEST_BINARY'] = binary_path
    if state_file is not None:
        overrides['state_file'] = state_file
        os.environ['SELFTEST_STATE_FILE'] = state_file
    return replace(config, **overrides)


def _export_config_path(config_file: Optional[str]) -> Optional[str]:
    """Publish an explicit --config path so Sandbox() reads the same file."""
    if config_file is None:
        return None
    config_path = os.path.abspath(config_file)
    os.environ[CONFIG_ENV_VAR] = config_path
    return config_path


@app.command()
def main_command(
    changed: bool = typer.Option(
        False,
        "--changed",
        help="Only run test files that changed since they last passed",
    ),
    list_only: bool = typer.Option(
        False,
        "--list",
        help="List discovered tests and exit",
    ),
    tests_dir: Optional[str] = typer.Option(
        None,
        "--tests-dir",
        help="Directory containing test-definition files",
        metavar="DIR",
    ),
    binary: Optional[str] = typer.Option(
        None,
        "--binary",
        help="Name or path of the tool under test",
        metavar="PATH",
    ),
    state_file: Optional[str] = typer.Option(
        None,
        "--state-file",
        help="Pass-state file used by --changed",
        metavar="PATH",
    ),
    config_file: Optional[str] = typer.Option(
        None,
        "--config",
        help="YAML configuration file (default: selftest.yaml if present)",
        metavar="PATH",
    ),
    logdir: Optional[str] = typer.Option(
        None,
        "--logdir",
        help="Directory for log files (creates timestamped log file)",
    ),
    verbosity: int = typer.Option(
        0,
        "--verbosity",
        "-v",
        help="Verbosity level: 0=summary, 1=info, 2=debug",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colored output",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
    ),
) -> None:
    """Run end-to-end self-tests against a command-line tool.

    \b
    EXAMPLES:
      selftest --binary ./bin/mytool
      selftest --changed --tests-dir selftests
      selftest --list
    """
    if version:
        typer.echo(f"selftest version {VERSION}")
        raise typer.Exit()

    _configure_logging(verbosity, logdir)
    report = ReportHandler(no_color=no_color)

    try:
        config = ConfigLoader.load(_export_config_path(config_file))
        config = _apply_overrides(config, tests_dir, binary, state_file)

        runner = TestRunner(
            registry=TestRegistry(config.tests_dir),
            state_manager=PassStateManager(config.state_path),
            report=report,
        )

        if list_only:
            runner.list_tests()
            raise typer.Exit(ExitCode.SUCCESS)

        exit_code = runner.run(only_changed=changed)

    except HarnessError as e:
        logger.error(f"Self-test run failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(ExitCode.FAILURE)

    raise typer.Exit(exit_code)


def main() -> None:
    """Main entry point for the CLI application.

    This function is called when the module is executed directly or
    when the console script is invoked.
    """
    app()


# Allow running as: python -m src.cli.main
if __name__ == "__main__":
    main()
