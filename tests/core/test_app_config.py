"""Tests for app configuration.

Tests the configuration loading, provider configs, and fallbacks.
"""

import pytest

from engagement_hub.config.app_config import (
    AppConfig,
    HubConfig,
    ProviderConfig,
    clear_config_cache,
    get_provider_config,
    load_app_config,
)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Run each test in an empty directory with a cold cache."""
    monkeypatch.chdir(tmp_path)
    clear_config_cache()
    yield
    clear_config_cache()


def _write_config(tmp_path, text: str) -> None:
    config_dir = tmp_path / "data" / "config"
    config_dir.mkdir(parents=True)
    (config_dir / "app_config_v1.yaml").write_text(text)


class TestDefaults:
    """Tests for the built-in defaults."""

    def test_defaults_without_file(self):
        config = load_app_config()

        assert isinstance(config, AppConfig)
        assert set(config.providers) == {"openai", "anthropic", "google", "perplexity"}
        assert config.hub == HubConfig()

    def test_hub_defaults(self):
        hub = load_app_config().hub
        assert hub.db_path == "db/engagement_hub.db"
        assert hub.uploads_dir == "data/uploads"
        assert hub.max_pdf_pages == 20
        assert hub.max_extracted_chars == 10000

    def test_cached(self):
        assert load_app_config() is load_app_config()


class TestYamlFile:
    """Tests for loading data/config/app_config_v1.yaml."""

    def test_overrides_hub_settings(self, tmp_path):
        _write_config(
            tmp_path,
            """
hub:
  db_path: custom/hub.db
  max_pdf_pages: 5
""",
        )

        hub = load_app_config().hub

        assert hub.db_path == "custom/hub.db"
        assert hub.max_pdf_pages == 5
        assert hub.uploads_dir == "data/uploads"

    def test_file_providers_merge_with_defaults(self, tmp_path):
        _write_config(
            tmp_path,
            """
providers:
  openai:
    base_url: http://localhost:9999/v1
    default_model: gpt-4.1
    api_key_env: MY_OPENAI_KEY
""",
        )

        config = load_app_config()

        assert config.providers["openai"].base_url == "http://localhost:9999/v1"
        assert config.providers["openai"].api_key_env == "MY_OPENAI_KEY"
        assert "anthropic" in config.providers

    def test_empty_file(self, tmp_path):
        _write_config(tmp_path, "")
        assert load_app_config().hub == HubConfig()

    def test_force_reload(self, tmp_path):
        first = load_app_config()
        _write_config(tmp_path, "hub:\n  uploads_dir: elsewhere\n")

        assert load_app_config() is first
        assert load_app_config(force_reload=True).hub.uploads_dir == "elsewhere"


class TestGetProviderConfig:
    """Tests for get_provider_config function."""

    def test_known_provider(self):
        config = get_provider_config("perplexity")
        assert isinstance(config, ProviderConfig)
        assert config.default_model == "sonar-pro"

    def test_unknown_provider(self):
        assert get_provider_config("unknown_provider") is None

    def test_api_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        assert get_provider_config("anthropic").get_api_key() == "sk-test"

    def test_api_key_missing(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        assert get_provider_config("google").get_api_key() is None
