"""Unit tests for harness.config module."""

import os

import pytest

from src.harness.config import ConfigLoader, HarnessConfig, resolve_binary
from src.harness.errors import ConfigError


class TestConfigLoaderLoad:
    """Test cases for ConfigLoader.load()."""

    def test_defaults_without_file_or_environment(self):
        config = ConfigLoader.load()

        assert config == HarnessConfig()
        assert config.tests_dir == "selftests"
        assert config.base_timeout == 1.0

    def test_reads_default_file_in_working_directory(self):
        """selftest.yaml in the working directory is picked up automatically."""
        with open("selftest.yaml", "w", encoding="utf-8") as f:
            f.write("binary: mytool\nbase_timeout: 3\n")

        config = ConfigLoader.load()

        assert config.binary == "mytool"
        assert config.base_timeout == 3.0

    def test_reads_explicit_file(self, tmp_path):
        config_file = tmp_path / "custom.yaml"
        config_file.write_text(
            "binary: other\n"
            "tests_dir: suites\n"
            "session_env_var: OTHER_SESSION\n"
        )

        config = ConfigLoader.load(str(config_file))

        assert config.binary == "other"
        assert config.tests_dir == "suites"
        assert config.session_env_var == "OTHER_SESSION"

    def test_explicit_missing_file_raises(self, tmp_path):
        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader.load(str(tmp_path / "missing.yaml"))

        assert "not found" in str(exc_info.value)

    def test_reads_file_named_by_environment(self, tmp_path, monkeypatch):
        """SELFTEST_CONFIG names the file read when no path is passed."""
        config_file = tmp_path / "exported.yaml"
        config_file.write_text("binary: exported\nbase_timeout: 4\n")
        with open("selftest.yaml", "w", encoding="utf-8") as f:
            f.write("binary: local\n")
        monkeypatch.setenv("SELFTEST_CONFIG", str(config_file))

        config = ConfigLoader.load()

        assert config.binary == "exported"
        assert config.base_timeout == 4.0

    def test_explicit_path_wins_over_environment(self, tmp_path, monkeypatch):
        exported = tmp_path / "exported.yaml"
        exported.write_text("binary: exported\n")
        explicit = tmp_path / "explicit.yaml"
        explicit.write_text("binary: explicit\n")
        monkeypatch.setenv("SELFTEST_CONFIG", str(exported))

        assert ConfigLoader.load(str(explicit)).binary == "explicit"

    def test_missing_file_named_by_environment_raises(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SELFTEST_CONFIG", str(tmp_path / "gone.yaml"))

        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader.load()

        assert "not found" in str(exc_info.value)

    def test_empty_file_uses_defaults(self, tmp_path):
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")

        assert ConfigLoader.load(str(config_file)) == HarnessConfig()

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        """SELFTEST_* variables win over values from the file."""
        config_file = tmp_path / "custom.yaml"
        config_file.write_text("binary: from-file\nbase_timeout: 2\n")
        monkeypatch.setenv("SELFTEST_BINARY", "from-env")
        monkeypatch.setenv("SELFTEST_BASE_TIMEOUT", "7.5")

        config = ConfigLoader.load(str(config_file))

        assert config.binary == "from-env"
        assert config.base_timeout == 7.5

    def test_invalid_yaml_raises(self, tmp_path):
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("binary: [unclosed\n")

        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader.load(str(config_file))

        assert "Invalid YAML syntax" in str(exc_info.value)

    def test_non_mapping_raises(self, tmp_path):
        config_file = tmp_path / "list.yaml"
        config_file.write_text("- binary\n")

        with pytest.raises(ConfigError):
            ConfigLoader.load(str(config_file))

    def test_unknown_field_raises(self, tmp_path):
        config_file = tmp_path / "typo.yaml"
        config_file.write_text("binnary: tool\n")

        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader.load(str(config_file))

        assert exc_info.value.config_field == "binnary"

    @pytest.mark.parametrize("value", ["abc", "0", "-1"])
    def test_invalid_timeout_raises(self, monkeypatch, value):
        monkeypatch.setenv("SELFTEST_BASE_TIMEOUT", value)

        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader.load()

        assert exc_info.value.config_field == "base_timeout"

    def test_non_string_field_raises(self, tmp_path):
        config_file = tmp_path / "typed.yaml"
        config_file.write_text("binary: 12\n")

        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader.load(str(config_file))

        assert exc_info.value.config_field == "binary"

    def test_state_path_expands_home(self):
        config = HarnessConfig(state_file="~/state.yaml")

        assert config.state_path == os.path.join(os.path.expanduser("~"), "state.yaml")


class TestResolveBinary:
    """Test cases for resolve_binary()."""

    def test_missing_binary_raises(self):
        with pytest.raises(ConfigError) as exc_info:
            resolve_binary(HarnessConfig())

        assert exc_info.value.config_field == "binary"

    def test_path_is_used_as_is(self, tmp_path):
        binary = str(tmp_path / "bin" / "tool")

        assert resolve_binary(HarnessConfig(binary=binary)) == binary

    def test_bare_name_looked_up_on_path(self, tmp_path, monkeypatch):
        tool = tmp_path / "mytool"
        tool.write_text("#!/bin/sh\n")
        tool.chmod(0o755)
        monkeypatch.setenv("PATH", str(tmp_path))

        assert resolve_binary(HarnessConfig(binary="mytool")) == str(tool)

    def test_unknown_name_passed_through(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PATH", str(tmp_path))

        assert resolve_binary(HarnessConfig(binary="nope")) == "nope"

    def test_install_dir_prefers_bin_subdirectory(self, tmp_path):
        (tmp_path / "bin").mkdir()
        (tmp_path / "bin" / "tool").write_text("")

        resolved = resolve_binary(HarnessConfig(binary="tool", install_dir=str(tmp_path)))

        assert resolved == str(tmp_path / "bin" / "tool")

    def test_install_dir_falls_back_to_root(self, tmp_path):
        resolved = resolve_binary(HarnessConfig(binary="tool", install_dir=str(tmp_path)))

        assert resolved == str(tmp_path / "tool")
