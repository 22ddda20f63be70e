"""Application configuration loader.

Loads centralized configuration from data/config/app_config_v1.yaml,
falling back to built-in defaults when the file is absent.

Usage:
    from engagement_hub.config.app_config import load_app_config, get_provider_config

    config = load_app_config()
    provider = get_provider_config("anthropic")
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/app_config_v1.yaml")


@dataclass
class ProviderConfig:
    """Configuration for a single AI provider."""

    base_url: str | None
    default_model: str
    api_key_env: str | None = None

    def get_api_key(self) -> str | None:
        """Get API key from environment variable."""
        if self.api_key_env:
            return os.environ.get(self.api_key_env)
        return None


@dataclass
class HubConfig:
    """Hub-wide defaults for storage, uploads and chat."""

    db_path: str = "db/engagement_hub.db"
    uploads_dir: str = "data/uploads"
    default_model: str = "gpt-4.1-mini"
    max_pdf_pages: int = 20
    max_extracted_chars: int = 10000
    max_upload_bytes: int = 10 * 1024 * 1024
    llm_timeout: int = 120


@dataclass
class AppConfig:
    """Application-wide configuration."""

    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    hub: HubConfig = field(default_factory=HubConfig)


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "providers": {
            "openai": {
                "base_url": "https://api.openai.com/v1",
                "default_model": "gpt-4.1-mini",
                "api_key_env": "OPENAI_API_KEY",
            },
            "anthropic": {
                "base_url": "https://api.anthropic.com/v1/",
                "default_model": "claude-sonnet-4-20250514",
                "api_key_env": "ANTHROPIC_API_KEY",
            },
            "google": {
                "base_url": "https://generativelanguage.googleapis.com/v1beta/openai/",
                "default_model": "gemini-1.5-flash",
                "api_key_env": "GOOGLE_API_KEY",
            },
            "perplexity": {
                "base_url": "https://api.perplexity.ai",
                "default_model": "sonar-pro",
                "api_key_env": "PERPLEXITY_API_KEY",
            },
        },
        "hub": {},
    }


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    providers = {}
    for name, pconfig in data.get("providers", {}).items():
        providers[name] = ProviderConfig(
            base_url=pconfig.get("base_url"),
            default_model=pconfig.get("default_model", "default"),
            api_key_env=pconfig.get("api_key_env"),
        )

    hub_data = data.get("hub") or {}
    defaults = HubConfig()
    hub = HubConfig(
        db_path=hub_data.get("db_path", defaults.db_path),
        uploads_dir=hub_data.get("uploads_dir", defaults.uploads_dir),
        default_model=hub_data.get("default_model", defaults.default_model),
        max_pdf_pages=hub_data.get("max_pdf_pages", defaults.max_pdf_pages),
        max_extracted_chars=hub_data.get("max_extracted_chars", defaults.max_extracted_chars),
        max_upload_bytes=hub_data.get("max_upload_bytes", defaults.max_upload_bytes),
        llm_timeout=hub_data.get("llm_timeout", defaults.llm_timeout),
    )

    return AppConfig(providers=providers, hub=hub)


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config, using defaults when no file exists.

    Providers missing from the YAML file keep their built-in defaults.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    data = _get_defaults()

    if CONFIG_FILE.exists():
        logger.debug("loading_app_config", source=str(CONFIG_FILE))
        loaded = yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8")) or {}
        data["providers"].update(loaded.get("providers") or {})
        data["hub"] = loaded.get("hub") or {}
    else:
        logger.info("using_default_config")

    _cached_config = _parse_config(data)
    return _cached_config


def get_provider_config(provider: str) -> ProviderConfig | None:
    """Get configuration for a specific provider.

    Args:
        provider: Provider name (e.g., "openai", "perplexity")

    Returns:
        ProviderConfig or None if provider not found.
    """
    config = load_app_config()
    return config.providers.get(provider)


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
