"""
Tests for settings loading: YAML file, environment overrides, validation.
"""

import pytest

from focus.config import DEFAULT_GATEWAY_URL, Settings, load_settings


@pytest.fixture
def write_config(tmp_path):
    def _write(text: str):
        path = tmp_path / "focus.yaml"
        path.write_text(text)
        return str(path)

    return _write


class TestLoadSettings:
    def test_defaults_when_default_path_missing(self, tmp_path, monkeypatch):
        monkeypatch.setenv("FOCUS_HOME", str(tmp_path))
        monkeypatch.delenv("FOCUS_CONFIG", raising=False)
        settings = load_settings(environ={})
        assert settings == Settings()
        assert settings.refresh_interval_seconds == 300
        assert settings.gateway_url == DEFAULT_GATEWAY_URL

    def test_explicit_missing_path_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(str(tmp_path / "nope.yaml"), environ={})

    def test_reads_yaml(self, write_config):
        path = write_config(
            "user_id: 42\n"
            "gateway_url: https://store.example.co\n"
            "reminder_lead_minutes: 10\n"
            "block_window_days_forward: 14\n"
        )
        settings = load_settings(path, environ={})
        assert settings.user_id == 42
        assert settings.gateway_url == "https://store.example.co"
        assert settings.reminder_lead_minutes == 10
        assert settings.block_window_days_forward == 14

    def test_empty_file_is_defaults(self, write_config):
        assert load_settings(write_config(""), environ={}) == Settings()

    def test_non_mapping_rejected(self, write_config):
        with pytest.raises(ValueError):
            load_settings(write_config("- a\n- b\n"), environ={})

    def test_invalid_values_fall_back(self, write_config, caplog):
        path = write_config(
            "refresh_interval_seconds: 0\n"
            "background_workers: many\n"
            "reminder_lead_minutes: -3\n"
            "request_timeout: true\n"
            "log_level: chatty\n"
            "mystery: 1\n"
        )
        settings = load_settings(path, environ={})
        assert settings.refresh_interval_seconds == 300
        assert settings.background_workers == 4
        assert settings.reminder_lead_minutes == 5
        assert settings.request_timeout == 30.0
        assert settings.log_level == "INFO"
        assert "Ignoring unknown setting: mystery" in caplog.text

    def test_environment_overrides_file(self, write_config):
        path = write_config("user_id: 1\napi_key: from-file\n")
        settings = load_settings(
            path,
            environ={"FOCUS_USER_ID": "42", "FOCUS_API_KEY": "from-env", "FOCUS_LOG_LEVEL": "debug"},
        )
        assert settings.user_id == 42
        assert settings.api_key == "from-env"
        assert settings.log_level == "DEBUG"

    def test_bad_user_id_env(self, write_config):
        settings = load_settings(write_config("user_id: 7\n"), environ={"FOCUS_USER_ID": "abc"})
        assert settings.user_id == 7
