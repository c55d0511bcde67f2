"""Unit tests for the app_config module."""
import os
from unittest.mock import patch, MagicMock

import pytest
import yaml

from resx_sync.app_config import (
    DEFAULT_LOCALES,
    AppConfig,
    _load_yaml_config,
    load_app_config,
    parse_locale_list
)


def _load(yaml_config=None, env=None, overrides=None):
    """Run load_app_config with a stubbed YAML file, environment and logger."""
    with patch("resx_sync.app_config._load_yaml_config", return_value=dict(yaml_config or {})):
        with patch("resx_sync.app_config._load_dotenv_files"):
            with patch("resx_sync.app_config.setup_logger") as mock_logger:
                mock_logger.return_value = MagicMock()
                with patch.dict(os.environ, env or {}, clear=True):
                    return load_app_config(overrides)


class TestAppConfig:
    """Test cases for the AppConfig dataclass."""

    def test_app_config_creation(self, make_config):
        config = make_config(timeout_minutes=2.5)

        assert isinstance(config, AppConfig)
        assert config.project_id == "123abc.456"
        assert config.locales == ["fr-CA"]
        assert config.export_timeout_seconds == 150


class TestLoadAppConfig:
    """Test cases for the load_app_config function."""

    def test_defaults_with_required_values_from_environment(self):
        config = _load(env={"LOKALISE_API_TOKEN": "tok", "LOKALISE_PROJECT_ID": "proj.1"})

        assert config.api_token == "tok"
        assert config.project_id == "proj.1"
        assert config.locales == DEFAULT_LOCALES
        assert config.timeout_minutes == 10
        assert config.dry_run is False
        assert config.source_locale == "en"
        assert config.max_requests_per_second == 6
        assert config.excluded_folders == [".git", "bin", "obj", "packages", "node_modules"]
        assert config.resource_extension == ".resx"
        assert config.root_path == os.path.abspath(os.getcwd())

    def test_yaml_values_are_used(self):
        yaml_config = {
            "project_id": "from-yaml",
            "locales": ["de-DE", "ja-JP"],
            "timeout_minutes": 3,
            "upload_tags": ["ci"],
            "excluded_folders": ["vendor"],
            "failure_report_path": "report.md",
        }

        config = _load(yaml_config=yaml_config, env={"LOKALISE_API_TOKEN": "tok"})

        assert config.project_id == "from-yaml"
        assert config.locales == ["de-DE", "ja-JP"]
        assert config.timeout_minutes == 3
        assert config.upload_tags == ["ci"]
        assert config.excluded_folders == ["vendor"]
        assert config.failure_report_path == "report.md"

    def test_environment_overrides_yaml(self):
        config = _load(
            yaml_config={"project_id": "from-yaml", "locales": ["de-DE"], "timeout_minutes": 3},
            env={
                "LOKALISE_API_TOKEN": "tok",
                "LOKALISE_PROJECT_ID": "from-env",
                "RESX_SYNC_LOCALES": "fr-CA, es-MX",
                "RESX_SYNC_TIMEOUT_MINUTES": "7.5",
            }
        )

        assert config.project_id == "from-env"
        assert config.locales == ["fr-CA", "es-MX"]
        assert config.timeout_minutes == 7.5

    def test_command_line_overrides_environment(self, tmp_path):
        config = _load(
            env={"LOKALISE_API_TOKEN": "env-tok", "LOKALISE_PROJECT_ID": "env-proj"},
            overrides={
                "api_token": "cli-tok",
                "project_id": "cli-proj",
                "locales": ["ja-JP"],
                "timeout_minutes": 1.0,
                "root_path": str(tmp_path),
                "dry_run": True,
                "verbose": None,
            }
        )

        assert config.api_token == "cli-tok"
        assert config.project_id == "cli-proj"
        assert config.locales == ["ja-JP"]
        assert config.timeout_minutes == 1.0
        assert config.root_path == str(tmp_path)
        assert config.dry_run is True
        assert config.verbose is False

    def test_verbose_forces_debug_logging(self):
        with patch("resx_sync.app_config._load_yaml_config", return_value={"logging": {"log_level": "WARNING"}}):
            with patch("resx_sync.app_config._load_dotenv_files"):
                with patch("resx_sync.app_config.setup_logger") as mock_logger:
                    mock_logger.return_value = MagicMock()
                    with patch.dict(os.environ, {"LOKALISE_API_TOKEN": "t", "LOKALISE_PROJECT_ID": "p"}, clear=True):
                        load_app_config({"verbose": True})

        assert mock_logger.call_args[0][0] == "DEBUG"

    def test_missing_token_exits_even_in_dry_run(self):
        with pytest.raises(SystemExit) as exc_info:
            _load(env={"LOKALISE_PROJECT_ID": "p"}, overrides={"dry_run": True})

        assert exc_info.value.code == 1

    def test_missing_project_id_exits(self):
        with pytest.raises(SystemExit):
            _load(env={"LOKALISE_API_TOKEN": "tok"})

    def test_empty_locale_list_exits(self):
        with pytest.raises(SystemExit):
            _load(env={"LOKALISE_API_TOKEN": "tok", "LOKALISE_PROJECT_ID": "p"}, overrides={"locales": []})

    def test_non_positive_timeout_exits(self):
        with pytest.raises(SystemExit):
            _load(env={"LOKALISE_API_TOKEN": "tok", "LOKALISE_PROJECT_ID": "p"}, overrides={"timeout_minutes": 0})


class TestLoadYamlConfig:

    def test_reads_file_named_by_environment(self, tmp_path):
        config_path = tmp_path / "custom.yaml"
        config_path.write_text(yaml.dump({"project_id": "abc", "locales": ["fr-CA"]}), encoding="utf-8")

        with patch.dict(os.environ, {"RESX_SYNC_CONFIG_FILE": str(config_path)}):
            config = _load_yaml_config(str(tmp_path))

        assert config == {"project_id": "abc", "locales": ["fr-CA"]}

    def test_default_file_in_project_root(self, tmp_path):
        (tmp_path / "resx_sync.yaml").write_text("timeout_minutes: 4\n", encoding="utf-8")

        with patch.dict(os.environ, {}, clear=True):
            config = _load_yaml_config(str(tmp_path))

        assert config == {"timeout_minutes": 4}

    def test_missing_file_yields_empty_config(self, tmp_path):
        with patch.dict(os.environ, {}, clear=True):
            assert _load_yaml_config(str(tmp_path)) == {}

    def test_invalid_yaml_yields_empty_config(self, tmp_path):
        (tmp_path / "resx_sync.yaml").write_text("locales: [fr-CA\n", encoding="utf-8")

        with patch.dict(os.environ, {}, clear=True):
            assert _load_yaml_config(str(tmp_path)) == {}

    def test_non_mapping_yaml_yields_empty_config(self, tmp_path):
        (tmp_path / "resx_sync.yaml").write_text("- fr-CA\n- de-DE\n", encoding="utf-8")

        with patch.dict(os.environ, {}, clear=True):
            assert _load_yaml_config(str(tmp_path)) == {}


@pytest.mark.parametrize("value, expected", [
    ("fr-CA,es-MX", ["fr-CA", "es-MX"]),
    (" fr-CA , , de-DE ", ["fr-CA", "de-DE"]),
    ("fr-CA,fr-CA", ["fr-CA"]),
    (["ja-JP", " zh-Hans "], ["ja-JP", "zh-Hans"]),
    ("", []),
    (None, []),
])
def test_parse_locale_list(value, expected):
    assert parse_locale_list(value) == expected
