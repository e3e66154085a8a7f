"""
schemas.py — intake Pydantic v2 data contracts.

Defines:
  - TaxpayerCategory, AgeBracket, DisabilityType, CityTier, ResidentialStatus enums
  - TaxpayerContext         (who is filing — drives caps, slabs and eligibility)
  - SalaryIncome, CapitalGain, IncomeProfile  (income heads, annual INR)
  - DeductionEntry          (one section code + named sub-amounts)
  - TaxesPaid               (TDS / TCS / advance / self-assessment tax)
  - TaxComputationRequest   (the engine's single input record)
  - ErrorDetail, ErrorBody, ErrorResponse  (cross-cutting error envelope)

All monetary fields are annual amounts in INR. Every income field is non-negative
except house_property, which may carry a loss.

DeductionEntry.amounts is deliberately NOT constrained here: negative sub-amounts are
rejected by the validator with a field-level ValidationError instead of being clamped.
"""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from itr_engine.config import settings


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaxpayerCategory(str, Enum):
    individual = "individual"
    huf = "huf"
    firm = "firm"
    llp = "llp"
    company = "company"


class AgeBracket(str, Enum):
    below60 = "below60"
    sixty_to_80 = "60to80"
    above80 = "above80"


class DisabilityType(str, Enum):
    none = "none"
    normal = "normal"
    severe = "severe"


class CityTier(str, Enum):
    metro = "metro"
    non_metro = "non_metro"


class ResidentialStatus(str, Enum):
    resident = "resident"
    rnor = "rnor"                  # resident but not ordinarily resident
    non_resident = "non_resident"


SENIOR_BRACKETS = (AgeBracket.sixty_to_80, AgeBracket.above80)


# ---------------------------------------------------------------------------
# TaxpayerContext
# ---------------------------------------------------------------------------

class TaxpayerContext(BaseModel):
    """Immutable facts about the filer that decide caps, slab tables and eligibility."""
    model_config = ConfigDict(extra="forbid", frozen=True, allow_inf_nan=False)

    category: TaxpayerCategory = TaxpayerCategory.individual
    age_bracket: AgeBracket = Field(
        ...,
        description="Filer's age bracket — selects old-regime slabs, 80D self cap and 80TTA/80TTB.",
    )
    spouse_age_bracket: Optional[AgeBracket] = Field(
        default=None,
        description="Spouse's age bracket — a senior spouse raises the 80D self/family cap.",
    )
    has_parents: bool = Field(
        default=False,
        description="True if an 80D parents' premium can be claimed at all.",
    )
    parents_age_bracket: Optional[AgeBracket] = Field(
        default=None,
        description="Age bracket of the elder parent — decides the 80D parents' cap.",
    )
    dependent_disability: DisabilityType = DisabilityType.none    # 80DD
    self_disability: DisabilityType = DisabilityType.none         # 80U
    city_tier: CityTier = CityTier.non_metro                      # HRA %, 80GG cap
    residential_status: ResidentialStatus = ResidentialStatus.resident

    @model_validator(mode="after")
    def validate_parents(self) -> "TaxpayerContext":
        """A parents' age bracket is required exactly when parents are declared."""
        if self.has_parents and self.parents_age_bracket is None:
            raise ValueError("parents_age_bracket is required when has_parents is true")
        return self

    @property
    def is_senior(self) -> bool:
        return self.age_bracket in SENIOR_BRACKETS

    @property
    def is_resident(self) -> bool:
        return self.residential_status != ResidentialStatus.non_resident

    @property
    def is_individual(self) -> bool:
        return self.category == TaxpayerCategory.individual


# ---------------------------------------------------------------------------
# IncomeProfile
# ---------------------------------------------------------------------------

class SalaryIncome(BaseModel):
    """Annual salary components as reported on Form 16."""
    model_config = ConfigDict(extra="forbid", frozen=True, allow_inf_nan=False)

    basic: float = Field(default=0, ge=0, description="Basic salary (incl. DA forming part of retirement benefits).")
    hra_received: float = Field(default=0, ge=0, description="HRA component received from the employer.")
    allowances: float = Field(default=0, ge=0, description="Special, LTA and other taxable allowances combined.")
    bonus: float = Field(default=0, ge=0)
    perquisites: float = Field(default=0, ge=0)

    @property
    def total(self) -> float:
        return self.basic + self.hra_received + self.allowances + self.bonus + self.perquisites


class GainTerm(str, Enum):
    short = "short"
    long = "long"


class AssetClass(str, Enum):
    listed_equity = "listed_equity"   # STT-paid equity / equity-oriented funds (111A / 112A)
    other = "other"


class CapitalGain(BaseModel):
    """Net gain for one asset class and holding term. Losses are not modelled."""
    model_config = ConfigDict(extra="forbid", frozen=True, allow_inf_nan=False)

    term: GainTerm
    asset_class: AssetClass = AssetClass.other
    amount: float = Field(..., ge=0)


class IncomeProfile(BaseModel):
    """All income heads for the financial year."""
    model_config = ConfigDict(extra="forbid", frozen=True, allow_inf_nan=False)

    salary: SalaryIncome = Field(default_factory=SalaryIncome)
    house_property: float = Field(
        default=0,
        description="Net house-property income after 30% standard deduction; negative for a loss.",
    )
    capital_gains: List[CapitalGain] = Field(default_factory=list)
    interest_income: float = Field(default=0, ge=0, description="Savings and deposit interest.")
    other_income: float = Field(default=0, ge=0, description="Other sources (dividends, freelance, etc.).")
    business_income: float = Field(default=0, ge=0)

    def gains(self, term: GainTerm, asset_class: AssetClass) -> float:
        return sum(
            g.amount for g in self.capital_gains
            if g.term == term and g.asset_class == asset_class
        )


# ---------------------------------------------------------------------------
# DeductionEntry / TaxesPaid
# ---------------------------------------------------------------------------

class DeductionEntry(BaseModel):
    """
    One deduction claim: a section code and its named sub-amounts.

    e.g. {"section": "80C", "amounts": {"ppf_contribution": 100000, "elss": 50000}}
    """
    model_config = ConfigDict(extra="forbid", frozen=True, allow_inf_nan=False)

    section: str = Field(..., min_length=1)
    amounts: Dict[str, float] = Field(default_factory=dict)

    @property
    def raw_total(self) -> float:
        return sum(self.amounts.values())


class TaxesPaid(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, allow_inf_nan=False)

    tds: float = Field(default=0, ge=0)
    tcs: float = Field(default=0, ge=0)
    advance_tax: float = Field(default=0, ge=0)
    self_assessment_tax: float = Field(default=0, ge=0)

    @property
    def total(self) -> float:
        return self.tds + self.tcs + self.advance_tax + self.self_assessment_tax


# ---------------------------------------------------------------------------
# TaxComputationRequest: the engine's input record
# ---------------------------------------------------------------------------

class TaxComputationRequest(BaseModel):
    """Everything compare_regimes() needs, as supplied by the wizard / OCR layer."""
    model_config = ConfigDict(extra="forbid", frozen=True, allow_inf_nan=False)

    financial_year: str = Field(
        default_factory=lambda: settings.default_financial_year,
        pattern=r"^\d{4}-\d{2}$",
        description="Financial year key, e.g. '2024-25'.",
    )
    taxpayer: TaxpayerContext
    income: IncomeProfile = Field(default_factory=IncomeProfile)
    deductions: List[DeductionEntry] = Field(default_factory=list)
    taxes_paid: TaxesPaid = Field(default_factory=TaxesPaid)


# ---------------------------------------------------------------------------
# Error response models: used by errors.to_error_response (cross-cutting)
# ---------------------------------------------------------------------------

class ErrorDetail(BaseModel):
    """Single field-level validation or configuration error."""
    model_config = ConfigDict(extra="forbid")

    field: Optional[str] = None   # Dot-notation field path, e.g. "deductions.0.amounts.ppf"
    issue: str


class ErrorBody(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: str                                      # VALIDATION_ERROR, CONFIGURATION_ERROR
    message: str
    details: List[ErrorDetail] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """
    Standard error format: {"error": {"code": "...", "message": "...", "details": [...]}}
    """
    model_config = ConfigDict(extra="forbid")

    error: ErrorBody


__all__ = [
    "TaxpayerCategory",
    "AgeBracket",
    "DisabilityType",
    "CityTier",
    "ResidentialStatus",
    "SENIOR_BRACKETS",
    "TaxpayerContext",
    "SalaryIncome",
    "GainTerm",
    "AssetClass",
    "CapitalGain",
    "IncomeProfile",
    "DeductionEntry",
    "TaxesPaid",
    "TaxComputationRequest",
    "ErrorDetail",
    "ErrorBody",
    "ErrorResponse",
]
