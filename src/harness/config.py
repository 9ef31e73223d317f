"""Harness configuration loading.

Configuration comes from three layers, later layers winning:

1. Built-in defaults (HarnessConfig field defaults)
2. A YAML file (an explicit path, else the path in ``SELFTEST_CONFIG``,
   else ``selftest.yaml`` in the working directory)
3. ``SELFTEST_*`` environment variables, with a ``.env`` file loaded
   through python-dotenv

Configuration file structure:
    binary: "mytool"
    install_dir: "/opt/mytool"
    tests_dir: "selftests"
    state_file: "~/.selftest-state.yaml"
    base_timeout: 1.0
    session_env_var: "MYTOOL_SESSION_FILE"
    session_file_name: ".mytool-session"
"""

import logging
import os
import shutil
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = 'selftest.yaml'

# Config file used when load() is called without a path
CONFIG_ENV_VAR = 'SELFTEST_CONFIG'

# Environment variable -> HarnessConfig field
ENV_OVERRIDES = {
    'SELFTEST_BINARY': 'binary',
    'SELFTEST_INSTALL_DIR': 'install_dir',
    'SELFTEST_TESTS_DIR': 'tests_dir',
    'SELFTEST_STATE_FILE': 'state_file',
    'SELFTEST_BASE_TIMEOUT': 'base_timeout',
}


@dataclass(frozen=True)
class HarnessConfig:
    """Settings shared by the runner, sandboxes and process sessions.

    Attributes:
        binary: Name or path of the command-line tool under test
        install_dir: Installation root the binary is resolved against
        tests_dir: Directory holding the test-definition files
        state_file: Location of the persisted pass-state
        base_timeout: Seconds each match/exit wait may take by default
        session_env_var: Variable pointing the tool at its session file
        session_file_name: Name of the session file inside a sandbox
    """
    binary: Optional[str] = None
    install_dir: Optional[str] = None
    tests_dir: str = 'selftests'
    state_file: str = '~/.selftest-state.yaml'
    base_timeout: float = 1.0
    session_env_var: str = 'SELFTEST_SESSION_FILE'
    session_file_name: str = '.selftest-session'

    @property
    def state_path(self) -> str:
        return os.path.expanduser(self.state_file)


class ConfigLoader:
    """Builds a HarnessConfig from the YAML file and the environment."""

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> HarnessConfig:
        """Load configuration.

        Args:
            config_path: YAML file to read. When omitted, the file named by
                ``SELFTEST_CONFIG`` is read, else ``selftest.yaml`` if it
                exists.

        Returns:
            HarnessConfig with file values and environment overrides applied

        Raises:
            ConfigError: If the file is missing (explicit or SELFTEST_CONFIG
                path only), malformed, or holds invalid values
        """
        load_dotenv()

        if config_path is None:
            config_path = os.getenv(CONFIG_ENV_VAR) or None

        values: Dict[str, Any] = {}
        if config_path is not None:
            values.update(cls._read_file(config_path))
        elif os.path.exists(DEFAULT_CONFIG_FILE):
            values.update(cls._read_file(DEFAULT_CONFIG_FILE))

        for env_var, field_name in ENV_OVERRIDES.items():
            env_value = os.getenv(env_var)
            if env_value:
                values[field_name] = env_value

        return cls._parse_config(values)

    @classmethod
    def _read_file(cls, config_path: str) -> Dict[str, Any]:
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            raise ConfigError(f"Configuration file not found: {config_path}")
        except OSError as e:
            raise ConfigError(f"Cannot read {config_path}: {e}")

        try:
            config_dict = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML syntax: {str(e)}")

        if config_dict is None:
            return {}

        if not isinstance(config_dict, dict):
            raise ConfigError(
                f"Configuration must be a YAML dictionary, got {type(config_dict).__name__}"
            )

        logger.debug(f"Loaded configuration from {config_path}")
        return config_dict

    @classmethod
    def _parse_config(cls, values: Dict[str, Any]) -> HarnessConfig:
        known = {f.name for f in fields(HarnessConfig)}
        for key in values:
            if key not in known:
                raise ConfigError(f"Unknown field (expected one of: {', '.join(sorted(known))})", key)

        parsed: Dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if key == 'base_timeout':
                try:
                    value = float(value)
                except (TypeError, ValueError):
                    raise ConfigError(f"Must be a number, got {value!r}", key)
                if value <= 0:
                    raise ConfigError(f"Must be positive, got {value}", key)
            else:
                if not isinstance(value, str):
                    raise ConfigError(f"Must be a string, got {type(value).__name__}", key)
                if not value.strip():
                    raise ConfigError("Cannot be empty", key)
            parsed[key] = value

        return replace(HarnessConfig(), **parsed)


def resolve_binary(config: HarnessConfig) -> str:
    """Resolve the executable path of the tool under test.

    With install_dir set, ``<install_dir>/bin/<binary>`` is preferred over
    ``<install_dir>/<binary>``. Otherwise a bare name is looked up on PATH;
    a name that cannot be found is returned as-is so that spawning it fails
    and is reported as a spawn-failure.

    Raises:
        ConfigError: If no binary is configured
    """
    if not config.binary:
        raise ConfigError(
            "No binary configured (set SELFTEST_BINARY or pass --binary)",
            'binary'
        )

    if config.install_dir:
        install_dir = os.path.expanduser(config.install_dir)
        installed = os.path.join(install_dir, 'bin', config.binary)
        if os.path.exists(installed):
            return installed
        return os.path.join(install_dir, config.binary)

    if os.sep in config.binary or (os.altsep and os.altsep in config.binary):
        return os.path.expanduser(config.binary)

    return shutil.which(config.binary) or config.binary
