"""Tests for configuration settings."""

import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from q_config_backup.config.settings import (
    DEFAULT_BACKUP_DIR,
    DEFAULT_CONFIG_FILE,
    DEFAULT_LOG_FILE,
    DEFAULT_MAX_BACKUPS,
    DEFAULT_SOURCE_PATH,
    ConfigurationError,
    Settings,
    _settings_to_dict,
    apply_overrides,
    get_config_path,
    load_config,
    parse_max_backups,
    save_config,
)

CLEAN_ENV = {
    key: value for key, value in os.environ.items() if not key.startswith("QCB_")
}


class TestSettings(unittest.TestCase):
    """Tests for the Settings dataclass."""

    def test_settings_defaults(self) -> None:
        """Test default settings values."""
        settings = Settings()

        self.assertEqual(settings.backup_dir, str(DEFAULT_BACKUP_DIR))
        self.assertEqual(settings.max_backups, DEFAULT_MAX_BACKUPS)
        self.assertEqual(settings.source_path, DEFAULT_SOURCE_PATH)
        self.assertEqual(settings.log_file, str(DEFAULT_LOG_FILE))

    def test_settings_to_dict(self) -> None:
        """Test conversion to a serializable mapping."""
        data = _settings_to_dict(Settings(max_backups=9))

        self.assertEqual(
            set(data),
            {"backup_dir", "max_backups", "source_path", "log_file"},
        )
        self.assertEqual(data["max_backups"], 9)


class TestParseMaxBackups(unittest.TestCase):
    """Tests for max_backups validation."""

    def test_valid_values(self) -> None:
        self.assertEqual(parse_max_backups(3), 3)
        self.assertEqual(parse_max_backups("10"), 10)
        self.assertEqual(parse_max_backups(" 7 "), 7)

    def test_invalid_values(self) -> None:
        for value in (0, -1, "0", "-2", "abc", "", None, 2.5, True, [3]):
            with self.subTest(value=value):
                self.assertIsNone(parse_max_backups(value))


class TestGetConfigPath(unittest.TestCase):
    """Tests for get_config_path function."""

    def test_default_config_path(self) -> None:
        """Test default config path when no environment variable."""
        with patch.dict(os.environ, CLEAN_ENV, clear=True):
            self.assertEqual(get_config_path(), DEFAULT_CONFIG_FILE)

    def test_config_path_from_environment(self) -> None:
        """Test config path from QCB_CONFIG."""
        with patch.dict(os.environ, {**CLEAN_ENV, "QCB_CONFIG": "/custom/qcb.yaml"}, clear=True):
            self.assertEqual(get_config_path(), Path("/custom/qcb.yaml"))


class TestLoadConfig(unittest.TestCase):
    """Tests for load_config function."""

    def setUp(self) -> None:
        """Create temporary directory and a clean environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = Path(self.temp_dir) / "config.yaml"
        self.env = patch.dict(os.environ, CLEAN_ENV, clear=True)
        self.env.start()

    def tearDown(self) -> None:
        """Clean up temporary directory."""
        self.env.stop()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_load_config_nonexistent_file_returns_defaults(self) -> None:
        """Test loading config when file doesn't exist returns defaults."""
        settings = load_config(Path(self.temp_dir) / "nonexistent.yaml")

        self.assertEqual(settings, Settings())

    def test_load_config_from_yaml(self) -> None:
        """Test loading config from a YAML file."""
        self.config_path.write_text(
            """
backup_dir: /srv/backups
max_backups: 10
source_path: /opt/app/conf
log_file: /srv/backups/qcb.log
"""
        )

        settings = load_config(self.config_path)

        self.assertEqual(settings.backup_dir, "/srv/backups")
        self.assertEqual(settings.max_backups, 10)
        self.assertEqual(settings.source_path, "/opt/app/conf")
        self.assertEqual(settings.log_file, "/srv/backups/qcb.log")

    def test_load_config_ignores_unknown_keys(self) -> None:
        """Test that unknown keys are ignored."""
        self.config_path.write_text("colour: blue\nmax_backups: 4\n")

        settings = load_config(self.config_path)

        self.assertEqual(settings.max_backups, 4)

    def test_load_config_invalid_yaml(self) -> None:
        """Test loading invalid YAML raises ConfigurationError."""
        self.config_path.write_text("invalid: yaml: content: [")

        with self.assertRaises(ConfigurationError) as ctx:
            load_config(self.config_path)

        self.assertIn("Invalid YAML", str(ctx.exception))

    def test_load_config_not_a_mapping(self) -> None:
        """Test that a YAML list is rejected."""
        self.config_path.write_text("- one\n- two\n")

        with self.assertRaises(ConfigurationError):
            load_config(self.config_path)

    def test_load_config_empty_file(self) -> None:
        """Test loading empty config file returns defaults."""
        self.config_path.write_text("")

        self.assertEqual(load_config(self.config_path), Settings())

    def test_load_config_invalid_max_backups_keeps_previous(self) -> None:
        """Test that a non-positive max_backups is a warning, not an error."""
        self.config_path.write_text("max_backups: 0\n")

        with self.assertLogs("q_config_backup.config.settings", level="WARNING") as logs:
            settings = load_config(self.config_path)

        self.assertEqual(settings.max_backups, DEFAULT_MAX_BACKUPS)
        self.assertIn("Invalid value for max_backups", logs.output[0])

    def test_environment_overrides_defaults(self) -> None:
        """Test that QCB_* variables replace defaults."""
        with patch.dict(
            os.environ,
            {"QCB_BACKUP_DIR": "/env/backups", "QCB_MAX_BACKUPS": "8"},
        ):
            settings = load_config(self.config_path)

        self.assertEqual(settings.backup_dir, "/env/backups")
        self.assertEqual(settings.max_backups, 8)

    def test_config_file_overrides_environment(self) -> None:
        """Test that the config file wins over the environment."""
        self.config_path.write_text("backup_dir: /file/backups\n")

        with patch.dict(
            os.environ,
            {"QCB_BACKUP_DIR": "/env/backups", "QCB_SOURCE_PATH": "/env/source"},
        ):
            settings = load_config(self.config_path)

        self.assertEqual(settings.backup_dir, "/file/backups")
        self.assertEqual(settings.source_path, "/env/source")

    def test_invalid_environment_max_backups(self) -> None:
        """Test that an invalid QCB_MAX_BACKUPS keeps the default."""
        with patch.dict(os.environ, {"QCB_MAX_BACKUPS": "many"}):
            with self.assertLogs("q_config_backup.config.settings", level="WARNING"):
                settings = load_config(self.config_path)

        self.assertEqual(settings.max_backups, DEFAULT_MAX_BACKUPS)


class TestApplyOverrides(unittest.TestCase):
    """Tests for command-line overrides."""

    def test_overrides_win(self) -> None:
        """Test that given values replace loaded ones."""
        settings = Settings(backup_dir="/file/backups", max_backups=4)

        apply_overrides(settings, backup_dir="/cli/backups", max_backups=2)

        self.assertEqual(settings.backup_dir, "/cli/backups")
        self.assertEqual(settings.max_backups, 2)
        self.assertEqual(settings.source_path, DEFAULT_SOURCE_PATH)

    def test_none_leaves_values(self) -> None:
        """Test that missing flags leave settings untouched."""
        settings = Settings(max_backups=4)

        apply_overrides(settings)

        self.assertEqual(settings, Settings(max_backups=4))

    def test_invalid_max_backups(self) -> None:
        """Test that an invalid override is a configuration error."""
        with self.assertRaises(ConfigurationError):
            apply_overrides(Settings(), max_backups=0)


class TestSaveConfig(unittest.TestCase):
    """Tests for save_config function."""

    def setUp(self) -> None:
        """Create temporary directory."""
        self.temp_dir = tempfile.mkdtemp()
        self.env = patch.dict(os.environ, CLEAN_ENV, clear=True)
        self.env.start()

    def tearDown(self) -> None:
        """Clean up temporary directory."""
        self.env.stop()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_save_config_creates_parent_directory(self) -> None:
        """Test that save_config creates parent directories."""
        config_path = Path(self.temp_dir) / "nested" / "dir" / "config.yaml"

        written = save_config(Settings(), config_path)

        self.assertEqual(written, config_path)
        self.assertTrue(config_path.exists())

    def test_save_and_load_roundtrip(self) -> None:
        """Test that saved settings load back unchanged."""
        config_path = Path(self.temp_dir) / "config.yaml"
        original = Settings(
            backup_dir="/srv/backups",
            max_backups=12,
            source_path="/opt/conf",
            log_file="/srv/backups/q.log",
        )

        save_config(original, config_path)

        self.assertEqual(load_config(config_path), original)

    def test_save_config_unwritable(self) -> None:
        """Test that write failures raise ConfigurationError."""
        blocker = Path(self.temp_dir) / "file"
        blocker.write_text("x")

        with self.assertRaises(ConfigurationError):
            save_config(Settings(), blocker / "config.yaml")


if __name__ == "__main__":
    unittest.main()
