"""Per-token pricing used to attach a cost estimate to each completion.

Prices are USD per million tokens as ``(input, output)``.  Unknown models
fall back to :data:`DEFAULT_PRICE`, which prices at zero; cost is
reported, not enforced.
"""

from __future__ import annotations

MODEL_PRICES: dict[str, tuple[float, float]] = {
    "gpt-4o": (2.50, 10.00),
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4.1": (2.00, 8.00),
    "gpt-4.1-mini": (0.40, 1.60),
    "gpt-3.5-turbo": (0.50, 1.50),
    "claude-sonnet-4-20250514": (3.00, 15.00),
    "claude-3-5-haiku-20241022": (0.80, 4.00),
}

DEFAULT_PRICE: tuple[float, float] = (0.0, 0.0)


def completion_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """Return the estimated USD cost of one completion."""
    price_in, price_out = MODEL_PRICES.get(model, DEFAULT_PRICE)
    return round((input_tokens * price_in + output_tokens * price_out) / 1_000_000, 8)
