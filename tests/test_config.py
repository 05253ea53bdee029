"""Tests for configuration loading."""

import json

import pytest

from repograph.core.config import PROJECT_CONFIG_NAME, Config


@pytest.fixture
def no_user_config(tmp_path):
    return tmp_path / "missing-user-config.yaml"


class TestConfigDefaults:
    """Test default values."""

    def test_defaults(self):
        config = Config()
        assert config.cache_ttl_seconds == 300.0
        assert config.max_workspace_symbols == 120
        assert config.dataset_limit_per_app == 150
        assert config.max_scope_files == 5000
        assert config.heatmap_window_days == 90
        assert config.heatmap_granularity == "topLevel"
        assert config.output_format == "json"
        assert config.log_file is None

    def test_load_without_files(self, tmp_path, no_user_config):
        config = Config.load(user_config_path=no_user_config, project_dir=tmp_path)
        assert config.to_dict() == Config().to_dict()


class TestConfigHierarchy:
    """Test CLI > project > user precedence."""

    def test_precedence(self, tmp_path):
        user_path = tmp_path / "user.yaml"
        user_path.write_text("heatmap_window_days: 30\nmax_scope_files: 100\nlog_level: DEBUG\n")
        project_dir = tmp_path / "project"
        project_dir.mkdir()
        (project_dir / PROJECT_CONFIG_NAME).write_text("heatmap_window_days: 60\n")

        config = Config.load(
            cli_args={"max_scope_files": 10, "log_level": None},
            user_config_path=user_path,
            project_dir=project_dir,
        )
        assert config.heatmap_window_days == 60
        assert config.max_scope_files == 10
        assert config.log_level == "DEBUG"

    def test_unknown_keys_are_ignored(self, tmp_path, no_user_config):
        (tmp_path / PROJECT_CONFIG_NAME).write_text("not_a_setting: 1\nverbose: false\n")
        config = Config.load(cli_args={"also_unknown": 2}, user_config_path=no_user_config, project_dir=tmp_path)
        assert not hasattr(config, "not_a_setting")
        assert not hasattr(config, "also_unknown")
        assert config.verbose is False

    def test_invalid_yaml_is_skipped(self, tmp_path, no_user_config):
        (tmp_path / PROJECT_CONFIG_NAME).write_text("heatmap_window_days: [unclosed\n")
        config = Config.load(user_config_path=no_user_config, project_dir=tmp_path)
        assert config.heatmap_window_days == 90

    def test_non_mapping_file_is_skipped(self, tmp_path, no_user_config):
        (tmp_path / PROJECT_CONFIG_NAME).write_text("- a\n- b\n")
        config = Config.load(user_config_path=no_user_config, project_dir=tmp_path)
        assert config.to_dict() == Config().to_dict()

    def test_json_user_config(self, tmp_path):
        user_path = tmp_path / "user.json"
        user_path.write_text(json.dumps({"dataset_limit_per_app": 20}))
        config = Config.load(user_config_path=user_path, project_dir=tmp_path)
        assert config.dataset_limit_per_app == 20

    def test_unknown_suffix_is_skipped(self, tmp_path):
        user_path = tmp_path / "user.ini"
        user_path.write_text("[x]\n")
        config = Config.load(user_config_path=user_path, project_dir=tmp_path)
        assert config.to_dict() == Config().to_dict()


class TestConfigSave:
    """Test config export."""

    def test_save_yaml_round_trip(self, tmp_path):
        config = Config()
        config.heatmap_granularity = "file"
        target = tmp_path / "nested" / "config.yaml"
        config.save(target)
        loaded = Config.load(user_config_path=target, project_dir=tmp_path)
        assert loaded.heatmap_granularity == "file"

    def test_save_json_omits_none(self, tmp_path):
        target = tmp_path / "config.json"
        Config().save(target, format="json")
        data = json.loads(target.read_text())
        assert "log_file" not in data
        assert data["max_workspace_symbols"] == 120


class TestConfigValidation:
    """Test that unusable values fall back to defaults."""

    def test_invalid_values_are_reset(self, tmp_path, no_user_config):
        (tmp_path / PROJECT_CONFIG_NAME).write_text(
            "heatmap_granularity: monthly\noutput_format: [json]\nmax_scope_files: -1\nheatmap_window_days: soon\n"
        )
        config = Config.load(user_config_path=no_user_config, project_dir=tmp_path)
        assert config.heatmap_granularity == "topLevel"
        assert config.output_format == "json"
        assert config.max_scope_files == 5000
        assert config.heatmap_window_days == 90

    def test_log_level_is_upper_cased(self, tmp_path, no_user_config):
        config = Config.load(cli_args={"log_level": "debug"}, user_config_path=no_user_config, project_dir=tmp_path)
        assert config.log_level == "DEBUG"
