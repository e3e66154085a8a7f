"""
schemas.py — evaluator Pydantic v2 data contracts.

Defines:
  - DeductionLine, GroupLine, AggregationResult  (deduction aggregation for one regime)
  - SlabLine, SpecialRateLine, SlabTaxResult       (bracket-by-bracket tax)
  - RegimeResult                                   (full computation for one regime)
  - IncomeBreakdown, DeductionComparisonRow, ComparisonBreakdown
  - ComparisonResult                               (dual-regime comparison — main output)

All amounts are INR. Every deduction figure is the ELIGIBLE amount after caps, not
the raw input: section_80c eligible 150000 means ₹1.5L was allowed even if ₹2L was claimed.
"""
from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

Regime = Literal["old", "new"]


# ---------------------------------------------------------------------------
# Deduction aggregation
# ---------------------------------------------------------------------------

class DeductionLine(BaseModel):
    """One section's outcome in one regime."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    section: str
    description: str = ""
    raw: float                        # sum of claimed sub-amounts (lookup amount for 80DD/80U)
    cap: Optional[float] = None       # None → uncapped
    eligible: float
    group: Optional[str] = None
    allowed: bool = True              # False → section not admitted by this regime
    group_clamped: bool = False       # True → reduced by the shared group cap


class GroupLine(BaseModel):
    """Combined ceiling applied across several sections."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    group: str
    cap: float
    members: List[str]
    claimed: float                    # members' eligible total before the group clamp
    eligible: float                   # after the clamp, always <= cap


class AggregationResult(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    regime: Regime
    lines: List[DeductionLine] = Field(default_factory=list)
    groups: List[GroupLine] = Field(default_factory=list)
    total: float = 0.0

    @property
    def per_section(self) -> Dict[str, float]:
        return {line.section: line.eligible for line in self.lines}

    def eligible(self, section: str) -> float:
        return self.per_section.get(section, 0.0)


# ---------------------------------------------------------------------------
# Slab / special-rate tax
# ---------------------------------------------------------------------------

class SlabLine(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    lower: float
    upper: Optional[float] = None
    rate: float
    income: float                     # portion of taxable income falling in this bracket
    tax: float                        # unrounded; only the total is floored


class SpecialRateLine(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    category: Literal["stcg_equity", "ltcg_equity", "ltcg_other"]
    income: float
    rate: float
    tax: float


class SlabTaxResult(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    tax: float                        # floored to the rupee once, after accumulation
    breakdown: List[SlabLine] = Field(default_factory=list)
    marginal_rate: float = 0.0


# ---------------------------------------------------------------------------
# RegimeResult: full tax computation for one regime
# ---------------------------------------------------------------------------

class RegimeResult(BaseModel):
    """
    Complete tax computation for a single regime.

    Computation sequence:
      1. gross_total_income = income heads, house-property loss set-off capped per regime
      2. total_deductions   = aggregated eligible deductions (group caps applied)
      3. taxable_income     = max(0, gross_total_income − total_deductions)
      4. tax_before_cess    = slab tax + special-rate tax, floored once
      5. rebate             = 87A (with marginal relief where the regime allows it)
      6. surcharge          = band rate with marginal relief, on tax − rebate
      7. cess               = cess_rate × (tax_before_cess − rebate + surcharge)
      8. net_tax            = tax_before_cess − rebate + surcharge + cess
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    regime: Regime
    financial_year: str

    gross_total_income: float
    total_deductions: float
    taxable_income: float
    slab_income: float                 # taxable income taxed at slab rates

    tax_before_cess: float
    slab_breakdown: List[SlabLine] = Field(default_factory=list)
    special_rate_breakdown: List[SpecialRateLine] = Field(default_factory=list)
    rebate: float = 0.0
    surcharge: float = 0.0
    marginal_relief: float = 0.0       # surcharge withheld by marginal relief
    cess: float = 0.0
    net_tax: float

    effective_rate: float = 0.0        # net_tax / gross_total_income
    marginal_rate: float = 0.0         # rate on the last rupee of taxable income

    deductions: List[DeductionLine] = Field(default_factory=list)
    deduction_groups: List[GroupLine] = Field(default_factory=list)

    taxes_paid: float = 0.0
    balance_payable: float = 0.0       # negative → refund due
    applied_rules: List[str] = Field(default_factory=list)

    @computed_field
    @property
    def total_tax_liability(self) -> float:
        return self.net_tax

    def deduction(self, section: str) -> float:
        for line in self.deductions:
            if line.section == section:
                return line.eligible
        return 0.0


# ---------------------------------------------------------------------------
# ComparisonResult: regime comparison output (public API of the engine)
# ---------------------------------------------------------------------------

class IncomeBreakdown(BaseModel):
    """Income heads as supplied, before any regime-specific set-off."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    salary: float = 0.0
    house_property: float = 0.0
    short_term_capital_gains: float = 0.0
    long_term_capital_gains: float = 0.0
    interest_income: float = 0.0
    other_income: float = 0.0
    business_income: float = 0.0
    total: float = 0.0


class DeductionComparisonRow(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    section: str
    description: str = ""
    claimed: float
    old_regime: float
    new_regime: float


class ComparisonBreakdown(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    income_breakdown: IncomeBreakdown
    deduction_breakdown: List[DeductionComparisonRow] = Field(default_factory=list)


class ComparisonResult(BaseModel):
    """
    Output of compare_regimes(): both computations, the recommendation (lower net tax,
    ties go to the new regime), the savings, a plain-language reason and separate
    suggestion lists per regime.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    financial_year: str
    old_regime: RegimeResult
    new_regime: RegimeResult

    recommended_regime: Regime
    savings: float                     # abs(old.net_tax − new.net_tax)
    reason: str

    breakdown: ComparisonBreakdown

    # Separate lists: never merge these into a single field
    old_regime_suggestions: List[str] = Field(default_factory=list)
    new_regime_suggestions: List[str] = Field(default_factory=list)


__all__ = [
    "DeductionLine",
    "GroupLine",
    "AggregationResult",
    "SlabLine",
    "SpecialRateLine",
    "SlabTaxResult",
    "RegimeResult",
    "IncomeBreakdown",
    "DeductionComparisonRow",
    "ComparisonBreakdown",
    "ComparisonResult",
]
