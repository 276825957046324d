from pathlib import Path

import pytest
import yaml

from portfolio_tracker.config import AppConfig, ConfigLoader, get_env


def test_env_is_test_under_pytest():
    assert get_env() == "test"


def test_load_app_config(app_config):
    """Test that config is properly loaded from actual files."""
    assert isinstance(app_config, AppConfig)
    assert app_config.log_level == "DEBUG"
    assert app_config.db_path == Path(":memory:")
    assert app_config.yf_max_requests == 2000
    assert app_config.yf_request_interval_seconds == 1
    assert app_config.max_history_days == 3650
    assert app_config.materialize_on_read is True


def test_isolated_config_modifications(isolated_config_environment):
    """Test with modified config files."""
    config_dir = isolated_config_environment["config_dir"]

    test_config_path = config_dir / "config.test.yaml"
    with open(test_config_path, "r") as f:
        config_data = yaml.safe_load(f) or {}

    config_data["materialize_on_read"] = False
    config_data["max_history_days"] = 90

    with open(test_config_path, "w") as f:
        yaml.dump(config_data, f)

    config: AppConfig = ConfigLoader.load_app_config()
    assert config.materialize_on_read is False
    assert config.max_history_days == 90


def test_env_file_overrides_base(isolated_config_environment):
    config: AppConfig = ConfigLoader.load_app_config(env="dev")
    assert config.db_path == Path("portfolio_tracker.dev.db")
    # Not set in the dev file, so the base value applies
    assert config.yf_max_requests == 2


def test_config_file_overrides_env(isolated_config_environment):
    custom: Path = isolated_config_environment["temp_dir"] / "custom.yaml"
    custom.write_text("log_level: WARNING\nyf_max_requests: 10\n")

    config: AppConfig = ConfigLoader.load_app_config(config_file=custom)

    assert config.log_level == "WARNING"
    assert config.yf_max_requests == 10


def test_config_with_cli_overrides(config_with_cli_overrides):
    """Test that CLI arguments properly override config values."""
    overrides: dict[str, str | int] = {
        "log_level": "CRITICAL",
        "yf_max_requests": "5000",
        "materialize_on_read": "false",
    }

    config: AppConfig = config_with_cli_overrides(overrides)

    assert config.log_level == "CRITICAL"
    assert config.yf_max_requests == 5000
    assert config.materialize_on_read is False


def test_defaults_when_no_config_files(tmp_path):
    merged = ConfigLoader._load_merged_yaml("test", config_dir=tmp_path)
    assert merged == ConfigLoader._get_default_config()


def test_missing_required_config():
    data = ConfigLoader._get_default_config()
    del data["db_path"]

    with pytest.raises(ValueError, match="Missing required config value: 'db_path'"):
        _ = ConfigLoader._dict_to_config(data, AppConfig)


def test_invalid_type_in_config(isolated_config_environment):
    """Test with an invalid value in a config file."""
    config_dir = isolated_config_environment["config_dir"]

    test_config_path = config_dir / "config.test.yaml"
    with open(test_config_path, "r") as f:
        config_data = yaml.safe_load(f) or {}

    config_data["yf_max_requests"] = "not-a-number"

    with open(test_config_path, "w") as f:
        yaml.dump(config_data, f)

    with pytest.raises(TypeError, match="yf_max_requests"):
        _ = ConfigLoader.load_app_config()


def test_deep_merge_nested():
    base = {"a": 1, "nested": {"x": 1, "y": 2}}
    override = {"nested": {"y": 3}, "b": 2}

    assert ConfigLoader._deep_merge(base, override) == {"a": 1, "b": 2, "nested": {"x": 1, "y": 3}}


@pytest.mark.parametrize("name", ["yf_max_requests", "yf_request_interval_seconds", "max_history_days"])
def test_non_positive_limits_rejected(config_with_cli_overrides, name):
    with pytest.raises(ValueError, match=name):
        _ = config_with_cli_overrides({name: "0"})


def test_malformed_yaml_reported(isolated_config_environment):
    config_dir = isolated_config_environment["config_dir"]
    (config_dir / "config.test.yaml").write_text("db_path: [unclosed\n")

    with pytest.raises(ValueError, match="Invalid YAML"):
        _ = ConfigLoader.load_app_config()
