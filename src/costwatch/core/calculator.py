"""Cost calculation for LLM token usage and transcript extraction.

Prices come from the pricing table in the application config.
"""

from __future__ import annotations

from typing import Any

from costwatch.config.app_config import get_model_pricing, load_app_config
from costwatch.db.costs_repository import CostSource

CHATBOT_SOURCES = (CostSource.LEARNING_CHATBOT, CostSource.CHALLENGE_CHATBOT)


class PricingError(Exception):
    """Error computing a cost (unknown model, invalid usage)."""

    pass


def get_current_model(model: str | None = None, source: CostSource | str | None = None) -> str:
    """Resolve the model id.

    An explicit model wins. Otherwise chatbot sources use the chatbot model
    and everything else the content generation model.
    """
    if model:
        return model
    pricing = load_app_config().pricing
    if source is not None and CostSource(source) in CHATBOT_SOURCES:
        return pricing.chatbot_model
    return pricing.content_generation_model


def calculate_llm_cost(
    input_tokens: int,
    output_tokens: int,
    model: str | None = None,
    source: CostSource | str | None = None,
) -> float:
    """Calculate LLM cost from token usage.

    Formula: input/1M * input_rate + output/1M * output_rate

    Args:
        input_tokens: Prompt tokens
        output_tokens: Completion tokens
        model: Model id (defaults to the model used by source)
        source: Feature the call belongs to, used to pick the default model

    Returns:
        Cost in USD rounded to 6 decimals

    Raises:
        PricingError: If token counts are negative, the source is unknown,
            or the model has no price

    Example:
        >>> calculate_llm_cost(4521, 1843, "openai/gpt-oss-120b")
        0.001784
    """
    if input_tokens < 0 or output_tokens < 0:
        raise PricingError("Token counts cannot be negative")

    try:
        model_id = get_current_model(model, source)
    except ValueError:
        raise PricingError(f"Unknown cost source: {source}") from None
    pricing = _require_pricing(model_id)

    input_cost = (input_tokens / 1_000_000) * pricing.input_per_million
    output_cost = (output_tokens / 1_000_000) * pricing.output_per_million
    return round(input_cost + output_cost, 6)


def calculate_transcript_cost() -> float:
    """Fixed cost of one transcript extraction call."""
    return load_app_config().pricing.transcript_fixed_cost


def get_current_model_info(
    model: str | None = None, source: CostSource | str | None = None
) -> dict[str, Any]:
    """Model id and its rates, for logging and reports."""
    model_id = get_current_model(model, source)
    pricing = _require_pricing(model_id)
    return {
        "model": model_id,
        "input_cost_per_million": pricing.input_per_million,
        "output_cost_per_million": pricing.output_per_million,
    }


def _require_pricing(model: str):
    pricing = get_model_pricing(model)
    if pricing is None:
        available = ", ".join(sorted(load_app_config().pricing.models))
        raise PricingError(
            f'Model "{model}" not found in pricing table. Available models: {available}'
        )
    return pricing
