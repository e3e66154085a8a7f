"""
Deduction rule set — one DeductionRule per section code.

Each rule knows how to turn a section's raw sub-amounts into (raw, cap); the
aggregator then takes eligible = min(raw, cap). Amounts come from the financial-year
snapshot (rules.param / group caps); only the SHAPE of each rule lives here.

Which rules a regime admits is configuration (RegimeRules.allowed_sections), so the
same rule set serves both regimes and every financial year.

Stages order dependent rules: 80GG needs income after the other deductions, and 80G
needs adjusted GTI after everything else, including 80GG.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Mapping, Optional, Tuple

from itr_engine.intake.schemas import (
    SENIOR_BRACKETS,
    CityTier,
    DisabilityType,
    IncomeProfile,
    TaxpayerCategory,
    TaxpayerContext,
)
from itr_engine.rules.schemas import FinancialYearRules, Regime

Amounts = Mapping[str, float]
RawAndCap = Tuple[float, Optional[float]]     # cap None → uncapped

STAGE_ORDINARY = 0
STAGE_AFTER_OTHERS = 1      # 80GG
STAGE_LAST = 2              # 80G


@dataclass(frozen=True)
class RuleContext:
    """Everything a cap formula may look at. Built fresh for every stage."""

    taxpayer: TaxpayerContext
    income: IncomeProfile
    rules: FinancialYearRules
    regime: Regime
    gross_total_income: float
    special_rate_income: float = 0.0
    prior_deductions: float = 0.0     # eligible total of all earlier stages

    @property
    def adjusted_income(self) -> float:
        """GTI less special-rate capital gains and deductions already allowed."""
        return max(
            0.0,
            self.gross_total_income - self.special_rate_income - self.prior_deductions,
        )


INDIVIDUAL_ONLY: FrozenSet[TaxpayerCategory] = frozenset({TaxpayerCategory.individual})
INDIVIDUAL_HUF: FrozenSet[TaxpayerCategory] = frozenset(
    {TaxpayerCategory.individual, TaxpayerCategory.huf}
)
ALL_CATEGORIES: FrozenSet[TaxpayerCategory] = frozenset(TaxpayerCategory)


@dataclass(frozen=True)
class DeductionRule:
    code: str
    description: str
    compute: Callable[[Amounts, RuleContext], RawAndCap]
    group: Optional[str] = None
    stage: int = STAGE_ORDINARY
    categories: FrozenSet[TaxpayerCategory] = INDIVIDUAL_HUF
    residents_only: bool = False
    sub_amounts: Optional[FrozenSet[str]] = None   # None → any sub-amount names, summed
    automatic: bool = False                        # evaluated even without an entry

    def applies_to(self, taxpayer: TaxpayerContext) -> bool:
        if taxpayer.category not in self.categories:
            return False
        return taxpayer.is_resident or not self.residents_only

    def evaluate(self, amounts: Amounts, ctx: RuleContext) -> RawAndCap:
        """(raw, cap) for this section; cap is 0 when the taxpayer is not eligible."""
        raw, cap = self.compute(amounts, ctx)
        if not self.applies_to(ctx.taxpayer):
            return raw, 0.0
        return raw, cap


# ---------------------------------------------------------------------------
# Cap formulas
# ---------------------------------------------------------------------------

def _total(amounts: Amounts) -> float:
    return float(sum(amounts.values()))


def _flat_cap(section: str) -> Callable[[Amounts, RuleContext], RawAndCap]:
    def compute(amounts: Amounts, ctx: RuleContext) -> RawAndCap:
        return _total(amounts), ctx.rules.param(section, "cap")
    return compute


def _uncapped(amounts: Amounts, ctx: RuleContext) -> RawAndCap:
    return _total(amounts), None


def _standard_deduction(amounts: Amounts, ctx: RuleContext) -> RawAndCap:
    # Never more than the salary it is deducted from
    salary = ctx.income.salary.total
    if salary <= 0:
        return 0.0, 0.0
    return ctx.rules.regime(ctx.regime).standard_deduction, salary


def _hra_exemption(amounts: Amounts, ctx: RuleContext) -> RawAndCap:
    """Section 10(13A) / Rule 2A: min(HRA received, rent − 10% basic, 50%/40% of basic)."""
    salary = ctx.income.salary
    rent = amounts.get("rent_paid", 0.0)
    pct_key = "metro_pct" if ctx.taxpayer.city_tier == CityTier.metro else "non_metro_pct"
    city_limit = ctx.rules.param("10(13A)", pct_key) * salary.basic
    rent_excess = max(0.0, rent - ctx.rules.param("10(13A)", "rent_excess_pct") * salary.basic)
    return salary.hra_received, min(city_limit, rent_excess)


def _employee_nps(amounts: Amounts, ctx: RuleContext) -> RawAndCap:
    # 10% of basic for employees, 20% of GTI for everyone else
    basic = ctx.income.salary.basic
    if basic > 0:
        cap = ctx.rules.param("80CCD(1)", "salary_pct") * basic
    else:
        cap = ctx.rules.param("80CCD(1)", "gti_pct") * max(0.0, ctx.gross_total_income)
    return _total(amounts), cap


def _employer_nps(amounts: Amounts, ctx: RuleContext) -> RawAndCap:
    pct = ctx.rules.regime(ctx.regime).employer_nps_pct
    return _total(amounts), pct * ctx.income.salary.basic


def _health_self_family(amounts: Amounts, ctx: RuleContext) -> RawAndCap:
    senior = ctx.taxpayer.is_senior or ctx.taxpayer.spouse_age_bracket in SENIOR_BRACKETS
    cap = ctx.rules.param("80D", "senior_cap" if senior else "cap")
    return _total(amounts), cap


def _health_parents(amounts: Amounts, ctx: RuleContext) -> RawAndCap:
    if not ctx.taxpayer.has_parents:
        return _total(amounts), 0.0
    senior = ctx.taxpayer.parents_age_bracket in SENIOR_BRACKETS
    cap = ctx.rules.param("80D(parents)", "senior_cap" if senior else "cap")
    return _total(amounts), cap


def _disability_lookup(section: str, attribute: str) -> Callable[[Amounts, RuleContext], RawAndCap]:
    """Fixed amount by disability type; spend is irrelevant."""
    def compute(amounts: Amounts, ctx: RuleContext) -> RawAndCap:
        disability: DisabilityType = getattr(ctx.taxpayer, attribute)
        if disability == DisabilityType.none:
            return 0.0, 0.0
        amount = ctx.rules.param(section, disability.value)
        return amount, amount
    return compute


def _rent_without_hra(amounts: Amounts, ctx: RuleContext) -> RawAndCap:
    """Section 80GG: three-way minimum; nothing if any HRA is received."""
    rent = amounts.get("rent_paid", 0.0)
    if ctx.income.salary.hra_received > 0:
        return rent, 0.0
    base = ctx.adjusted_income
    cap_key = "metro_cap" if ctx.taxpayer.city_tier == CityTier.metro else "non_metro_cap"
    cap = min(
        ctx.rules.param("80GG", cap_key),
        rent - ctx.rules.param("80GG", "rent_excess_pct") * base,
        ctx.rules.param("80GG", "income_pct") * base,
    )
    return rent, max(0.0, cap)


def _donations(amounts: Amounts, ctx: RuleContext) -> RawAndCap:
    """
    Section 80G. Unlimited donations count at 100% / 50%; "limited" donations count
    only up to the qualifying limit (a share of adjusted GTI), 100% ones first.
    """
    full = amounts.get("donations_100", 0.0)
    half = amounts.get("donations_50", 0.0)
    full_limited = amounts.get("donations_100_limited", 0.0)
    half_limited = amounts.get("donations_50_limited", 0.0)

    limit = ctx.rules.param("80G", "qualifying_limit_pct") * ctx.adjusted_income
    qualifying_full = min(full_limited, limit)
    qualifying_half = min(half_limited, max(0.0, limit - full_limited))

    raw = full + half + full_limited + half_limited
    cap = full + 0.5 * half + qualifying_full + 0.5 * qualifying_half
    return raw, cap


def _savings_interest(amounts: Amounts, ctx: RuleContext) -> RawAndCap:
    # Resident seniors claim 80TTB instead
    if ctx.taxpayer.is_senior and ctx.taxpayer.is_resident:
        return _total(amounts), 0.0
    return _total(amounts), ctx.rules.param("80TTA", "cap")


def _senior_deposit_interest(amounts: Amounts, ctx: RuleContext) -> RawAndCap:
    if not ctx.taxpayer.is_senior:
        return _total(amounts), 0.0
    return _total(amounts), ctx.rules.param("80TTB", "cap")


# ---------------------------------------------------------------------------
# The rule set: declaration order is also the order lines are reported in
# ---------------------------------------------------------------------------

_RULE_LIST = [
    DeductionRule(
        "16(ia)", "Standard deduction on salary", _standard_deduction,
        categories=INDIVIDUAL_ONLY, automatic=True,
    ),
    DeductionRule(
        "16(iii)", "Professional tax", _flat_cap("16(iii)"),
        categories=INDIVIDUAL_ONLY,
    ),
    DeductionRule(
        "10(13A)", "HRA exemption", _hra_exemption,
        categories=INDIVIDUAL_ONLY, sub_amounts=frozenset({"rent_paid"}),
    ),
    DeductionRule("80C", "Life insurance, PPF, ELSS, principal, etc.", _flat_cap("80C"), group="80CCE"),
    DeductionRule(
        "80CCC", "Pension fund contribution", _flat_cap("80CCC"),
        group="80CCE", categories=INDIVIDUAL_ONLY,
    ),
    DeductionRule(
        "80CCD(1)", "Employee NPS contribution", _employee_nps,
        group="80CCE", categories=INDIVIDUAL_ONLY,
    ),
    DeductionRule(
        "80CCD(1B)", "Additional NPS contribution", _flat_cap("80CCD(1B)"),
        categories=INDIVIDUAL_ONLY,
    ),
    DeductionRule(
        "80CCD(2)", "Employer NPS contribution", _employer_nps,
        categories=INDIVIDUAL_ONLY,
    ),
    DeductionRule("80D", "Health insurance — self, spouse, children", _health_self_family),
    DeductionRule("80D(parents)", "Health insurance — parents", _health_parents),
    DeductionRule(
        "80DD", "Disabled dependant", _disability_lookup("80DD", "dependent_disability"),
        residents_only=True, automatic=True,
    ),
    DeductionRule("80E", "Education loan interest", _uncapped, categories=INDIVIDUAL_ONLY),
    DeductionRule("80TTA", "Savings account interest", _savings_interest),
    DeductionRule(
        "80TTB", "Deposit interest — senior citizens", _senior_deposit_interest,
        categories=INDIVIDUAL_ONLY, residents_only=True,
    ),
    DeductionRule(
        "80U", "Self disability", _disability_lookup("80U", "self_disability"),
        categories=INDIVIDUAL_ONLY, residents_only=True, automatic=True,
    ),
    DeductionRule("24(b)", "Home loan interest — self-occupied", _flat_cap("24(b)")),
    DeductionRule(
        "80GG", "Rent paid without HRA", _rent_without_hra,
        stage=STAGE_AFTER_OTHERS, categories=INDIVIDUAL_ONLY,
        sub_amounts=frozenset({"rent_paid"}),
    ),
    DeductionRule(
        "80G", "Donations", _donations,
        stage=STAGE_LAST, categories=ALL_CATEGORIES,
        sub_amounts=frozenset({
            "donations_100", "donations_50", "donations_100_limited", "donations_50_limited",
        }),
    ),
]

RULES: Dict[str, DeductionRule] = {rule.code: rule for rule in _RULE_LIST}


__all__ = [
    "RuleContext",
    "DeductionRule",
    "RULES",
    "STAGE_ORDINARY",
    "STAGE_AFTER_OTHERS",
    "STAGE_LAST",
]
