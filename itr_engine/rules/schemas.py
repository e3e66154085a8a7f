"""
schemas.py — versioned tax-rule configuration models.

One FinancialYearRules snapshot is built from each rules/data/<financial_year>.yaml.
Every model is frozen and rejects unknown keys, so a loaded snapshot can be shared
read-only by concurrent computations and a typo in a YAML file fails loudly.

Amounts and rates live here; the shape of each deduction rule lives in deductions.py.
"""
from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from itr_engine.errors import ConfigurationError

Regime = Literal["old", "new"]
REGIMES: tuple[Regime, ...] = ("old", "new")

# Slab-table key used when a regime does not vary by age
AGE_INVARIANT = "all"


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Slabs
# ---------------------------------------------------------------------------

class SlabBracket(FrozenModel):
    """lower is inclusive, upper exclusive; upper=None marks the open-ended top bracket."""

    lower: float = Field(..., ge=0)
    upper: Optional[float] = None
    rate: float = Field(..., ge=0, le=1)


def check_slab_coverage(brackets: List[SlabBracket]) -> None:
    """Brackets must start at 0, be gapless and non-overlapping, and end open-ended."""
    if not brackets:
        raise ValueError("slab table has no brackets")
    if brackets[0].lower != 0:
        raise ValueError("first slab bracket must start at 0")
    for prev, cur in zip(brackets, brackets[1:]):
        if prev.upper is None:
            raise ValueError("only the last slab bracket may be open-ended")
        if prev.upper <= prev.lower:
            raise ValueError(f"slab bracket {prev.lower}-{prev.upper} is empty or inverted")
        if cur.lower != prev.upper:
            raise ValueError(
                f"slab brackets must be contiguous: {prev.upper} is followed by {cur.lower}"
            )
    if brackets[-1].upper is not None:
        raise ValueError("last slab bracket must be open-ended (upper: null)")


class SlabTable(FrozenModel):
    """Ordered progressive brackets for one (financial year, regime, age bracket)."""

    financial_year: str
    regime: Regime
    age_bracket: str = AGE_INVARIANT
    brackets: List[SlabBracket]

    @model_validator(mode="after")
    def validate_coverage(self) -> "SlabTable":
        check_slab_coverage(self.brackets)
        return self

    @property
    def basic_exemption(self) -> float:
        """Upper bound of the leading 0% bracket; 0 when the first bracket is taxed."""
        first = self.brackets[0]
        if first.rate == 0 and first.upper is not None:
            return first.upper
        return 0.0


# ---------------------------------------------------------------------------
# Rebate / surcharge
# ---------------------------------------------------------------------------

class RebateRule(FrozenModel):
    """Section 87A: full rebate up to threshold, optional marginal relief above it."""

    threshold: float = Field(..., ge=0)
    max_rebate: float = Field(..., ge=0)
    marginal_relief: bool = False


class SurchargeBand(FrozenModel):
    """Surcharge rate applying to income strictly above threshold."""

    threshold: float = Field(..., gt=0)
    rate: float = Field(..., gt=0, le=1)


# ---------------------------------------------------------------------------
# Per-regime rules
# ---------------------------------------------------------------------------

class RegimeRules(FrozenModel):
    standard_deduction: float = Field(..., ge=0)
    house_property_loss_setoff: float = Field(
        ..., ge=0,
        description="Maximum house-property loss set off against other heads.",
    )
    employer_nps_pct: float = Field(
        ..., ge=0, le=1,
        description="80CCD(2) cap as a fraction of basic salary.",
    )
    allowed_sections: List[str]
    slabs: Dict[str, List[SlabBracket]]
    rebate: RebateRule
    surcharge: List[SurchargeBand] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_tables(self) -> "RegimeRules":
        if not self.slabs:
            raise ValueError("regime has no slab tables")
        for key, brackets in self.slabs.items():
            try:
                check_slab_coverage(brackets)
            except ValueError as exc:
                raise ValueError(f"slab table '{key}': {exc}") from exc
        thresholds = [band.threshold for band in self.surcharge]
        if thresholds != sorted(set(thresholds)):
            raise ValueError("surcharge bands must have strictly ascending thresholds")
        if len(set(self.allowed_sections)) != len(self.allowed_sections):
            raise ValueError("allowed_sections contains duplicates")
        return self


class GroupCap(FrozenModel):
    """Combined ceiling shared by several sections (e.g. 80CCE over 80C/80CCC/80CCD(1))."""

    cap: float = Field(..., ge=0)


class CapitalGainsRules(FrozenModel):
    stcg_equity_rate: float = Field(..., ge=0, le=1)     # Section 111A
    ltcg_equity_rate: float = Field(..., ge=0, le=1)     # Section 112A
    ltcg_equity_exemption: float = Field(..., ge=0)      # 112A annual exemption
    ltcg_other_rate: float = Field(..., ge=0, le=1)      # Section 112


# ---------------------------------------------------------------------------
# FinancialYearRules: one immutable snapshot per YAML file
# ---------------------------------------------------------------------------

class FinancialYearRules(FrozenModel):
    financial_year: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    assessment_year: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    cess_rate: float = Field(..., ge=0, le=1)
    regimes: Dict[Regime, RegimeRules]
    deductions: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    groups: Dict[str, GroupCap] = Field(default_factory=dict)
    capital_gains: CapitalGainsRules

    @model_validator(mode="after")
    def validate_regimes(self) -> "FinancialYearRules":
        missing = [r for r in REGIMES if r not in self.regimes]
        if missing:
            raise ValueError(f"missing regime configuration: {', '.join(missing)}")
        return self

    def regime(self, regime: Regime) -> RegimeRules:
        try:
            return self.regimes[regime]
        except KeyError:
            raise ConfigurationError(
                f"No '{regime}' regime configured for FY {self.financial_year}",
                details=[{"field": "regime", "issue": f"unknown regime '{regime}'"}],
            ) from None

    def slab_table(self, regime: Regime, age_key: str) -> SlabTable:
        """
        Slab table for a regime and age key, falling back to the age-invariant table.
        Raises ConfigurationError if neither exists.
        """
        slabs = self.regime(regime).slabs
        key = age_key if age_key in slabs else AGE_INVARIANT
        if key not in slabs:
            raise ConfigurationError(
                f"No '{regime}' regime slab table for age bracket '{age_key}' "
                f"in FY {self.financial_year}",
            )
        return SlabTable(
            financial_year=self.financial_year,
            regime=regime,
            age_bracket=key,
            brackets=slabs[key],
        )

    def param(self, section: str, name: str) -> float:
        """Numeric parameter of a deduction section, e.g. param('80D', 'senior_cap')."""
        try:
            return self.deductions[section][name]
        except KeyError:
            raise ConfigurationError(
                f"Missing deduction parameter '{section}.{name}' for FY {self.financial_year}",
                details=[{"field": f"deductions.{section}.{name}", "issue": "not configured"}],
            ) from None

    def group_cap(self, group: str) -> float:
        try:
            return self.groups[group].cap
        except KeyError:
            raise ConfigurationError(
                f"Missing group cap '{group}' for FY {self.financial_year}",
                details=[{"field": f"groups.{group}", "issue": "not configured"}],
            ) from None


__all__ = [
    "Regime",
    "REGIMES",
    "AGE_INVARIANT",
    "SlabBracket",
    "SlabTable",
    "RebateRule",
    "SurchargeBand",
    "RegimeRules",
    "GroupCap",
    "CapitalGainsRules",
    "FinancialYearRules",
    "check_slab_coverage",
]
