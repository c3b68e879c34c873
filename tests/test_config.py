"""Unit tests for environment-driven configuration."""

from __future__ import annotations

import pytest

from flowwright.compiler.types import BuildMode
from flowwright.config import AppConfig, load_config, validate_config

ENV_VARS = (
    "BUILD_MODE",
    "KLAVIYO_API_KEY",
    "KLAVIYO_API_REVISION",
    "KLAVIYO_BASE_URL",
    "KLAVIYO_EMAIL",
    "KLAVIYO_FROM_LABEL",
    "HEADLESS",
    "SLOW_MO",
    "SCREENSHOT_DIR",
    "STORAGE_STATE",
    "LOG_LEVEL",
    "MAX_RETRIES",
    "PAGE_TIMEOUT",
    "PACING_DELAY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    # set-then-delete so variables loaded from .env files are removed on teardown
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


class TestLoadConfig:
    def test_defaults(self):
        config = load_config()
        assert config == AppConfig()
        assert config.mode == BuildMode.API

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("BUILD_MODE", "hybrid")
        monkeypatch.setenv("KLAVIYO_API_KEY", "pk_env")
        monkeypatch.setenv("HEADLESS", "false")
        monkeypatch.setenv("SLOW_MO", "250")
        monkeypatch.setenv("PACING_DELAY", "0.1")
        config = load_config()
        assert config.mode == BuildMode.HYBRID
        assert config.api_key == "pk_env"
        assert config.headless is False
        assert config.slow_mo == 250
        assert config.pacing_delay == 0.1

    def test_env_file_read_without_overriding(self, monkeypatch, tmp_path):
        env_file = tmp_path / "custom.env"
        env_file.write_text("KLAVIYO_API_KEY=pk_file\nKLAVIYO_EMAIL=shop@test.io\n")
        monkeypatch.setenv("KLAVIYO_API_KEY", "pk_env")
        config = load_config(env_file=str(env_file))
        assert config.api_key == "pk_env"
        assert config.email == "shop@test.io"

    def test_dotenv_in_working_directory(self, tmp_path):
        (tmp_path / ".env").write_text("LOG_LEVEL=debug\n")
        assert load_config().log_level == "debug"

    def test_overrides(self):
        config = load_config(mode="browser", api_key="pk_cli", headless=None)
        assert config.mode == BuildMode.BROWSER
        assert config.api_key == "pk_cli"
        assert config.headless is True

    def test_unknown_override(self):
        with pytest.raises(TypeError):
            load_config(colour="blue")

    def test_bad_mode(self, monkeypatch):
        monkeypatch.setenv("BUILD_MODE", "carrier-pigeon")
        with pytest.raises(ValueError):
            load_config()


class TestValidateConfig:
    def test_api_needs_key(self):
        errors = validate_config(AppConfig(mode=BuildMode.API))
        assert len(errors) == 1
        assert errors[0].startswith("KLAVIYO_API_KEY is required for api mode")

    def test_browser_needs_storage_state(self):
        errors = validate_config(AppConfig(mode=BuildMode.BROWSER))
        assert errors[0].startswith("STORAGE_STATE is required for browser mode")

    def test_storage_state_must_exist(self, tmp_path):
        errors = validate_config(
            AppConfig(mode=BuildMode.BROWSER, storage_state=str(tmp_path / "missing.json"))
        )
        assert errors[0].startswith("STORAGE_STATE file not found")

    def test_hybrid_complete(self, tmp_path):
        state = tmp_path / "state.json"
        state.write_text("{}")
        config = AppConfig(mode=BuildMode.HYBRID, api_key="pk", storage_state=str(state))
        assert validate_config(config) == []
