"""Application configuration loader.

Loads centralized configuration from data/config/costwatch_v1.yaml
with built-in defaults when the file is missing.

Usage:
    from costwatch.config.app_config import load_app_config, get_model_pricing

    config = load_app_config()
    pricing = get_model_pricing("openai/gpt-oss-120b")
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
CONFIG_FILE = Path("data/config/costwatch_v1.yaml")


@dataclass
class ModelPricing:
    """Token pricing for a single LLM model (USD per million tokens)."""

    input_per_million: float
    output_per_million: float


@dataclass
class PricingConfig:
    """Pricing tables and the models currently in use."""

    models: dict[str, ModelPricing] = field(default_factory=dict)
    transcript_fixed_cost: float = 0.005
    content_generation_model: str = "openai/gpt-oss-120b"
    chatbot_model: str = "llama-3.3-70b-versatile"


@dataclass
class AlertConfig:
    """Thresholds for anomaly detection."""

    outlier_sigma: float = 3.0
    outlier_medium_sigma: float = 3.5
    outlier_high_sigma: float = 4.0
    user_min_daily_cost: float = 0.10
    user_spike_multiplier: float = 2.0
    user_spike_absolute: float = 0.50
    user_history_days: int = 7
    user_medium_multiplier: float = 3.0
    user_high_multiplier: float = 4.0


@dataclass
class AppConfig:
    """Application-wide configuration."""

    pricing: PricingConfig = field(default_factory=PricingConfig)
    alerts: AlertConfig = field(default_factory=AlertConfig)
    paths: dict[str, str] = field(default_factory=dict)
    admin_api_key_env: str = "COSTWATCH_ADMIN_KEY"
    log_level: str = "INFO"

    @property
    def database_path(self) -> Path:
        """SQLite database file."""
        return Path(self.paths.get("database", "db/costwatch.db"))

    def get_admin_key(self) -> str | None:
        """Get admin API key from environment variable."""
        if self.admin_api_key_env:
            return os.environ.get(self.admin_api_key_env) or None
        return None


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "pricing": {
            # Groq / Google list prices
            "models": {
                "openai/gpt-oss-120b": {
                    "input_per_million": 0.15,
                    "output_per_million": 0.60,
                },
                "llama-3.3-70b-versatile": {
                    "input_per_million": 0.59,
                    "output_per_million": 0.79,
                },
                "qwen/qwen3-32b": {
                    "input_per_million": 0.29,
                    "output_per_million": 0.59,
                },
                "gemini-2.0-flash": {
                    "input_per_million": 0.075,
                    "output_per_million": 0.30,
                },
                "gemini-3-pro-preview": {
                    "input_per_million": 3.50,
                    "output_per_million": 10.50,
                },
            },
            "transcript_fixed_cost": 0.005,
            "content_generation_model": "openai/gpt-oss-120b",
            "chatbot_model": "llama-3.3-70b-versatile",
        },
        "alerts": {},
        "paths": {
            "database": "db/costwatch.db",
        },
        "admin": {
            "api_key_env": "COSTWATCH_ADMIN_KEY",
        },
        "logging": {
            "level": "INFO",
        },
    }


def _merge(defaults: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge file values over defaults."""
    result = dict(defaults)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    pricing_data = data.get("pricing", {})
    models = {}
    for name, mconfig in pricing_data.get("models", {}).items():
        models[name] = ModelPricing(
            input_per_million=float(mconfig.get("input_per_million", 0.0)),
            output_per_million=float(mconfig.get("output_per_million", 0.0)),
        )

    pricing = PricingConfig(
        models=models,
        transcript_fixed_cost=float(pricing_data.get("transcript_fixed_cost", 0.005)),
        content_generation_model=os.environ.get(
            "CONTENT_GENERATION_MODEL",
            pricing_data.get("content_generation_model", "openai/gpt-oss-120b"),
        ),
        chatbot_model=os.environ.get(
            "CHATBOT_MODEL",
            pricing_data.get("chatbot_model", "llama-3.3-70b-versatile"),
        ),
    )

    alert_defaults = AlertConfig()
    alerts_data = data.get("alerts", {}) or {}
    alerts = AlertConfig(
        **{
            name: type(getattr(alert_defaults, name))(value)
            for name, value in alerts_data.items()
            if hasattr(alert_defaults, name)
        }
    )

    paths = dict(data.get("paths", {}))
    if os.environ.get("COSTWATCH_DB_PATH"):
        paths["database"] = os.environ["COSTWATCH_DB_PATH"]

    log_level = os.environ.get("LOG_LEVEL") or data.get("logging", {}).get("level", "INFO")

    return AppConfig(
        pricing=pricing,
        alerts=alerts,
        paths=paths,
        admin_api_key_env=data.get("admin", {}).get("api_key_env", "COSTWATCH_ADMIN_KEY"),
        log_level=str(log_level).strip().upper(),
    )


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config.

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
        data = _merge(data, yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8")) or {})
    else:
        logger.debug("using_default_config")

    _cached_config = _parse_config(data)
    return _cached_config


def get_model_pricing(model: str) -> ModelPricing | None:
    """Get pricing for a specific model.

    Args:
        model: Model identifier (e.g., "openai/gpt-oss-120b")

    Returns:
        ModelPricing or None if the model is not in the pricing table.
    """
    config = load_app_config()
    return config.pricing.models.get(model)


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
