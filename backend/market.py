"""
Market Allocation

Splits a step's demand between the active firms. Each firm's
attractiveness combines its price relative to the market median with a
diminishing-returns marketing term:

    attractiveness_i = exp(-k * (p_i / Pref - 1)) * (marketing_i + 1) ** alpha

Shares are attractiveness normalized over active firms. Bankrupt firms
always get 0.
"""

from typing import Dict, Mapping, Sequence

import numpy as np

from companies import Company, Decisions
from config import CONFIG, SimulationConfig


def reference_price(prices: np.ndarray, config: SimulationConfig = CONFIG) -> float:
    """Median of effective prices (mean of the two middle values for even counts)."""
    if prices.size == 0:
        return 0.0
    pref = float(np.median(prices))
    return pref or config.market.fallback_reference_price


def allocate_market(
    companies: Sequence[Company],
    decisions: Mapping[str, Decisions],
    config: SimulationConfig = CONFIG,
) -> Dict[str, float]:
    """
    Compute each firm's market share for one step.

    Args:
        companies: All firms, active or not
        decisions: Decisions keyed by company id (only active firms are read)
        config: Rule set

    Returns:
        Share in [0, 1] per company id; active shares sum to 1.
    """
    shares = {c.id: 0.0 for c in companies}
    active = [c for c in companies if c.is_active]
    if not active:
        return shares

    prices = np.array(
        [max(config.market.min_price, decisions[c.id].price) for c in active],
        dtype=np.float64,
    )
    marketing = np.array(
        [max(0.0, decisions[c.id].marketing) for c in active],
        dtype=np.float64,
    )

    pref = reference_price(prices, config)
    price_term = np.exp(-config.market.price_sensitivity * (prices / pref - 1.0))
    marketing_term = np.power(marketing + 1.0, config.market.marketing_alpha)
    attractiveness = price_term * marketing_term

    total = float(attractiveness.sum()) or 1.0
    for company, attr in zip(active, attractiveness):
        shares[company.id] = float(attr) / total
    return shares
