"""
Unit tests for ConfigLoader and SessionKeeperSettings.

Run tests with: python -m pytest tests/test_config_loader.py -v
"""

import json

import pytest

from shared.config_loader import ConfigLoader, SessionKeeperSettings, get_config_loader


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("SESSION_KEEPER_CONFIG", "SESSION_ENDPOINT_URL", "SESSION_KEEPER_STORAGE_DIR", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def _write_config(tmp_path, data):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestSessionKeeperSettings:

    def test_defaults(self):
        settings = SessionKeeperSettings()
        assert settings.refresh_interval_seconds == 1200
        assert settings.refresh_buffer_seconds == 300
        assert settings.activity_refresh_threshold_seconds == 600
        assert settings.max_token_retries == 3
        assert settings.auto_save_interval_seconds == 30
        assert settings.failure_grace_seconds == 3.0

    def test_from_dict_casts_and_ignores_unknown(self):
        settings = SessionKeeperSettings.from_dict({"max_token_retries": "5", "colour": "blue"})
        assert settings.max_token_retries == 5

    def test_whole_number_floats_are_accepted_for_counts(self):
        settings = SessionKeeperSettings.from_dict({"max_token_retries": 4.0, "refresh_interval_seconds": 90.5})
        assert settings.max_token_retries == 4
        assert isinstance(settings.max_token_retries, int)
        assert settings.refresh_interval_seconds == 90.5

    @pytest.mark.parametrize("section", [
        {"refresh_interval_seconds": 0},
        {"failure_grace_seconds": -1},
        {"max_init_attempts": 0},
        {"max_token_retries": "many"},
        {"max_token_retries": 2.7},
        {"max_init_attempts": None},
        {"sign_out_callback_url": None},
        {"session_url": None},
    ])
    def test_invalid_values_are_rejected(self, section):
        with pytest.raises(ValueError):
            SessionKeeperSettings.from_dict(section)


class TestConfigLoader:

    def test_missing_file_gives_defaults(self, tmp_path):
        loader = ConfigLoader(str(tmp_path / "absent.json"))
        config = loader.load_config()

        assert config["session_keeper"]["refresh_interval_seconds"] == 1200
        assert config["logging"]["log_level"] == "INFO"
        assert config["notifications"] == {"pubsub_enabled": False}
        assert get_config_loader() is loader

    def test_file_values_override_defaults(self, tmp_path):
        path = _write_config(tmp_path, {
            "session_keeper": {"refresh_interval_seconds": 600, "sign_out_callback_url": "/login"},
            "logging": {"log_file": "x.log", "log_level": "DEBUG"},
        })
        settings = ConfigLoader(path).get_settings()

        assert settings.refresh_interval_seconds == 600
        assert settings.sign_out_callback_url == "/login"
        assert settings.refresh_buffer_seconds == 300

    def test_invalid_json_raises(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError):
            ConfigLoader(str(path)).load_config()

    def test_environment_overrides(self, tmp_path, monkeypatch):
        path = _write_config(tmp_path, {})
        monkeypatch.setenv("SESSION_KEEPER_CONFIG", path)
        monkeypatch.setenv("SESSION_ENDPOINT_URL", "https://app.example.com/api/auth/session")
        monkeypatch.setenv("SESSION_KEEPER_STORAGE_DIR", "/var/lib/keeper")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        loader = ConfigLoader()
        config = loader.load_config()
        settings = loader.get_settings()

        assert loader.local_config_path == path
        assert settings.session_url == "https://app.example.com/api/auth/session"
        assert settings.signout_url == "https://app.example.com/api/auth/signout"
        assert settings.storage_dir == "/var/lib/keeper"
        assert config["logging"]["log_level"] == "DEBUG"

    def test_config_is_cached(self, tmp_path):
        loader = ConfigLoader(str(tmp_path / "absent.json"))
        assert loader.load_config() is loader.load_config()
