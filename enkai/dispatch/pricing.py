"""Static per-token price table for cost estimates."""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from ..errors import UnknownModelError

# Gemini list prices converted at 146.5 JPY/USD.
USD_TO_JPY = 146.5


@dataclass(frozen=True)
class PriceTier:
    """Per-token prices for one model tier."""

    name: str
    input: float
    output: float
    currency: str = "JPY"
    description: str = ""


PRICE_TIERS: Dict[str, PriceTier] = {
    "economy": PriceTier(
        name="economy",
        input=0.075 / 1_000_000 * USD_TO_JPY,
        output=0.30 / 1_000_000 * USD_TO_JPY,
        description="Gemini Flash",
    ),
    "premium": PriceTier(
        name="premium",
        input=1.25 / 1_000_000 * USD_TO_JPY,
        output=5.00 / 1_000_000 * USD_TO_JPY,
        description="Gemini Pro",
    ),
}

TIER_ALIASES: Dict[str, str] = {
    "flash": "economy",
    "pro": "premium",
}


def resolve_tier(model: str, table: Optional[Mapping[str, PriceTier]] = None) -> PriceTier:
    """Look up a price tier by id or alias; raises UnknownModelError."""
    tiers = table if table is not None else PRICE_TIERS
    key = (model or "").strip().lower()
    key = TIER_ALIASES.get(key, key)
    tier = tiers.get(key)
    if tier is None:
        raise UnknownModelError(model, known=list(tiers) + list(TIER_ALIASES))
    return tier


def build_price_table(overrides: Optional[Mapping[str, Mapping]] = None) -> Dict[str, PriceTier]:
    """Default table merged with ``pricing:`` entries from the config file.

    Each override maps a tier id to ``{input, output, currency?, description?}``.
    """
    table = dict(PRICE_TIERS)
    for name, raw in (overrides or {}).items():
        key = str(name).strip().lower()
        base = table.get(key)
        try:
            table[key] = PriceTier(
                name=key,
                input=float(raw.get("input", base.input if base else 0.0)),
                output=float(raw.get("output", base.output if base else 0.0)),
                currency=str(raw.get("currency", base.currency if base else "JPY")),
                description=str(raw.get("description", base.description if base else "")),
            )
        except (AttributeError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid price tier '{name}': {e}") from e
    return table
