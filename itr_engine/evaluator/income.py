"""
Income-head arithmetic shared by the aggregator and the regime evaluator.
Pure functions. No I/O.
"""
from __future__ import annotations

from typing import NamedTuple

from itr_engine.intake.schemas import AssetClass, GainTerm, IncomeProfile
from itr_engine.rules.schemas import RegimeRules


class SpecialRateGains(NamedTuple):
    """Capital gains taxed at flat rates instead of slab rates."""

    stcg_equity: float = 0.0     # Section 111A
    ltcg_equity: float = 0.0     # Section 112A
    ltcg_other: float = 0.0      # Section 112

    @property
    def total(self) -> float:
        return self.stcg_equity + self.ltcg_equity + self.ltcg_other


def special_rate_gains(income: IncomeProfile) -> SpecialRateGains:
    return SpecialRateGains(
        stcg_equity=income.gains(GainTerm.short, AssetClass.listed_equity),
        ltcg_equity=income.gains(GainTerm.long, AssetClass.listed_equity),
        ltcg_other=income.gains(GainTerm.long, AssetClass.other),
    )


def house_property_setoff(house_property: float, regime_rules: RegimeRules) -> float:
    """House-property income, with a loss limited to the regime's set-off ceiling."""
    if house_property >= 0:
        return house_property
    return max(house_property, -regime_rules.house_property_loss_setoff)


def gross_total_income(income: IncomeProfile, regime_rules: RegimeRules) -> float:
    """
    Sum of all heads. Short-term gains on non-equity assets stay in the total and are
    slab-taxed; special-rate gains are included here and carved out later.
    """
    capital_gains = sum(g.amount for g in income.capital_gains)
    return (
        income.salary.total
        + house_property_setoff(income.house_property, regime_rules)
        + capital_gains
        + income.interest_income
        + income.other_income
        + income.business_income
    )


__all__ = [
    "SpecialRateGains",
    "special_rate_gains",
    "house_property_setoff",
    "gross_total_income",
]
