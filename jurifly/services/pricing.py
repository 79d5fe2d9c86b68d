# =============================================================================
# Model Pricing — Cost Accounting for Flow Runs
# =============================================================================
#
# Maps (provider_type, model) → USD per token. Each flow run records its
# token usage and the estimate from this table in the flow_runs table, so
# the credit price of a flow can be compared with what it actually costs.
#
# DESIGN DECISION: estimate_cost() returns None for unknown models rather
# than 0.0. Unknown cost != zero cost.
#
# Update this dict when provider prices change.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ModelPricing:
    input_cost_per_token: float    # USD per input token
    output_cost_per_token: float   # USD per output token
    provider_label: str


_PER_MILLION = 1_000_000

PRICING_REGISTRY: dict[tuple[str, str], ModelPricing] = {
    ("anthropic", "claude-sonnet-4-6"): ModelPricing(
        3.00 / _PER_MILLION, 15.00 / _PER_MILLION, "Anthropic",
    ),
    ("anthropic", "claude-haiku-4-5"): ModelPricing(
        0.80 / _PER_MILLION, 4.00 / _PER_MILLION, "Anthropic",
    ),
    ("openai_compatible", "gpt-4o"): ModelPricing(
        2.50 / _PER_MILLION, 10.00 / _PER_MILLION, "OpenAI",
    ),
    ("openai_compatible", "gpt-4o-mini"): ModelPricing(
        0.15 / _PER_MILLION, 0.60 / _PER_MILLION, "OpenAI",
    ),
    ("openai_compatible", "gemini-2.0-flash"): ModelPricing(
        0.10 / _PER_MILLION, 0.40 / _PER_MILLION, "Google",
    ),
    ("openai_compatible", "deepseek-chat"): ModelPricing(
        0.14 / _PER_MILLION, 0.28 / _PER_MILLION, "DeepSeek",
    ),
}


def get_pricing(provider_type: str, model: str) -> ModelPricing | None:
    return PRICING_REGISTRY.get((provider_type, model))


def estimate_cost(
    provider_type: str,
    model: str,
    input_tokens: int,
    output_tokens: int,
) -> float | None:
    """
    Estimated USD cost of one completion, or None if the model is unpriced.

    Dated model ids ("claude-sonnet-4-6-20260101") fall back to the
    longest undated registry entry they extend.
    """
    pricing = get_pricing(provider_type, model)
    if pricing is None:
        matches = [
            (name, candidate)
            for (ptype, name), candidate in PRICING_REGISTRY.items()
            if ptype == provider_type and model.startswith(f"{name}-")
        ]
        if matches:
            pricing = max(matches, key=lambda match: len(match[0]))[1]
    if pricing is None:
        return None
    return (
        pricing.input_cost_per_token * input_tokens
        + pricing.output_cost_per_token * output_tokens
    )
