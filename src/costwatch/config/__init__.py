"""Configuration package for costwatch."""

from costwatch.config.app_config import (
    AlertConfig,
    AppConfig,
    ModelPricing,
    PricingConfig,
    clear_config_cache,
    get_model_pricing,
    load_app_config,
)

__all__ = [
    "AlertConfig",
    "AppConfig",
    "ModelPricing",
    "PricingConfig",
    "clear_config_cache",
    "get_model_pricing",
    "load_app_config",
]
