"""
Plan price lookup.
"""

from typing import Dict, Mapping, Optional

from shared.config import DEFAULT_PLAN_PRICES


class StaticPlanPriceTable:
    """Base monthly price per plan name; unknown plans cost nothing."""

    def __init__(self, prices: Optional[Mapping[str, float]] = None):
        self.prices: Dict[str, float] = dict(DEFAULT_PLAN_PRICES if prices is None else prices)

    def get_base_amount(self, plan: str) -> float:
        return float(self.prices.get(plan, 0.0))
