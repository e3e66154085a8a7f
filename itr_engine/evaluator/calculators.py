"""
Tax calculators — slab, special-rate, 87A rebate, surcharge and cess.

Pure functions, no side effects, no I/O. Same input → same output.

Arithmetic runs in Decimal so bracket sums are exact; callers get floats back.
Rounding happens once per figure:
  - slab + special-rate tax: floored to the rupee after full accumulation, never per bracket
  - surcharge and cess: rounded half-up to the rupee
  - a marginal-relief rebate is rounded up so net tax never exceeds the relief ceiling
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Callable, List, Sequence, Tuple, Union

from itr_engine.evaluator.income import SpecialRateGains
from itr_engine.evaluator.schemas import SlabLine, SlabTaxResult, SpecialRateLine
from itr_engine.rules.schemas import (
    CapitalGainsRules,
    RebateRule,
    SlabTable,
    SurchargeBand,
)

Number = Union[int, float, Decimal]

ZERO = Decimal("0")
_RUPEE = Decimal("1")


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def floor_rupee(value: Decimal) -> Decimal:
    return value.quantize(_RUPEE, rounding=ROUND_FLOOR)


def round_rupee(value: Decimal) -> Decimal:
    return value.quantize(_RUPEE, rounding=ROUND_HALF_UP)


# ===========================================================================
# Slab tax
# ===========================================================================

def slab_tax_exact(taxable_income: Number, slab_table: SlabTable) -> Tuple[Decimal, List[SlabLine]]:
    """
    Unrounded progressive tax and its bracket breakdown.

    lower is inclusive and upper exclusive, so income exactly equal to a bracket's
    upper bound is taxed entirely within that bracket.
    """
    income = to_decimal(taxable_income)
    if income <= 0:
        return ZERO, []

    tax = ZERO
    lines: List[SlabLine] = []
    for bracket in slab_table.brackets:
        lower = to_decimal(bracket.lower)
        top = income if bracket.upper is None else min(income, to_decimal(bracket.upper))
        in_bracket = max(ZERO, top - lower)
        if in_bracket == 0:
            break   # brackets ascend, nothing above this one
        bracket_tax = in_bracket * to_decimal(bracket.rate)
        tax += bracket_tax
        lines.append(SlabLine(
            lower=bracket.lower,
            upper=bracket.upper,
            rate=bracket.rate,
            income=float(in_bracket),
            tax=float(bracket_tax),
        ))
    return tax, lines


def compute_slab_tax(taxable_income: Number, slab_table: SlabTable) -> SlabTaxResult:
    """Progressive slab tax, floored to the rupee once after accumulation."""
    tax, lines = slab_tax_exact(taxable_income, slab_table)
    return SlabTaxResult(
        tax=float(floor_rupee(tax)),
        breakdown=lines,
        marginal_rate=lines[-1].rate if lines else 0.0,
    )


def floored_slab_tax(income: Number, slab_table: SlabTable) -> Decimal:
    return floor_rupee(slab_tax_exact(income, slab_table)[0])


# ===========================================================================
# Special-rate capital gains
# ===========================================================================

# Order in which special-rate gains absorb a shortfall of slab income
ABSORB_ORDER = ("stcg_equity", "ltcg_other", "ltcg_equity")


@dataclass(frozen=True)
class SpecialRateTax:
    slab_income: Decimal
    tax: Decimal
    non_rebatable_tax: Decimal                  # 112A tax: 87A does not apply to it
    lines: List[SpecialRateLine] = field(default_factory=list)
    exemption_shortfall_used: Decimal = ZERO


def _absorb(remaining: dict, amount: Decimal) -> Decimal:
    """Reduce gains in ABSORB_ORDER by up to amount; returns the amount absorbed."""
    absorbed = ZERO
    for key in ABSORB_ORDER:
        if amount <= 0:
            break
        take = min(remaining[key], amount)
        remaining[key] -= take
        amount -= take
        absorbed += take
    return absorbed


def compute_special_rate_tax(
    gains: SpecialRateGains,
    taxable_income: Number,
    slab_table: SlabTable,
    cg_rules: CapitalGainsRules,
    use_exemption_shortfall: bool = True,
) -> SpecialRateTax:
    """
    Carve special-rate gains out of taxable income and tax them at flat rates.

    Special-rate income is min(gains, taxable income); the rest is slab income.
    Listed-equity LTCG is taxed only above the annual exemption. For residents, the
    part of the 0% slab that slab income leaves unused is set against special-rate gains.
    """
    taxable = max(ZERO, to_decimal(taxable_income))
    remaining = {
        "stcg_equity": to_decimal(gains.stcg_equity),
        "ltcg_equity": to_decimal(gains.ltcg_equity),
        "ltcg_other": to_decimal(gains.ltcg_other),
    }
    total = sum(remaining.values(), ZERO)
    special = min(total, taxable)
    slab_income = taxable - special

    # Deductions beyond slab income come out of the special-rate gains
    _absorb(remaining, total - special)

    remaining["ltcg_equity"] = max(
        ZERO, remaining["ltcg_equity"] - to_decimal(cg_rules.ltcg_equity_exemption)
    )

    shortfall_used = ZERO
    if use_exemption_shortfall:
        shortfall = max(ZERO, to_decimal(slab_table.basic_exemption) - slab_income)
        shortfall_used = _absorb(remaining, shortfall)

    rates = {
        "stcg_equity": cg_rules.stcg_equity_rate,
        "ltcg_equity": cg_rules.ltcg_equity_rate,
        "ltcg_other": cg_rules.ltcg_other_rate,
    }
    tax = ZERO
    non_rebatable = ZERO
    lines: List[SpecialRateLine] = []
    for category in ("stcg_equity", "ltcg_equity", "ltcg_other"):
        amount = remaining[category]
        if amount <= 0:
            continue
        line_tax = amount * to_decimal(rates[category])
        tax += line_tax
        if category == "ltcg_equity":
            non_rebatable = line_tax
        lines.append(SpecialRateLine(
            category=category,
            income=float(amount),
            rate=rates[category],
            tax=float(line_tax),
        ))

    return SpecialRateTax(
        slab_income=slab_income,
        tax=tax,
        non_rebatable_tax=non_rebatable,
        lines=lines,
        exemption_shortfall_used=shortfall_used,
    )


# ===========================================================================
# Section 87A rebate
# ===========================================================================

def apply_rebate(
    tax_before_cess: Number,
    taxable_income: Number,
    rebate_rule: RebateRule,
    tax_at: Callable[[Decimal], Tuple[Decimal, Decimal]],
    non_rebatable_tax: Number = 0,
) -> float:
    """
    Section 87A rebate.

    taxable_income <= threshold: rebate = min(rebatable tax, max_rebate).
    Above the threshold, and only if the regime grants marginal relief, the rebate is
    whatever keeps net tax from exceeding (net tax at the threshold) + (income over it),
    and never more than max_rebate. Otherwise no rebate at all.

    tax_at(threshold) returns (tax, non-rebatable tax) at the threshold, composed the
    same way as tax_before_cess.
    """
    tax = to_decimal(tax_before_cess)
    if tax <= 0:
        return 0.0
    rebatable = max(ZERO, tax - to_decimal(non_rebatable_tax))
    income = to_decimal(taxable_income)
    threshold = to_decimal(rebate_rule.threshold)
    max_rebate = to_decimal(rebate_rule.max_rebate)

    if income <= threshold:
        return float(min(rebatable, max_rebate))
    if not rebate_rule.marginal_relief:
        return 0.0

    tax_at_threshold, non_rebatable_at_threshold = tax_at(threshold)
    rebatable_at_threshold = max(ZERO, tax_at_threshold - non_rebatable_at_threshold)
    net_at_threshold = tax_at_threshold - min(rebatable_at_threshold, max_rebate)
    relief = tax - net_at_threshold - (income - threshold)
    relief = relief.quantize(_RUPEE, rounding=ROUND_CEILING)
    return float(max(ZERO, min(rebatable, max_rebate, relief)))


# ===========================================================================
# Surcharge
# ===========================================================================

def compute_surcharge(
    tax: Number,
    taxable_income: Number,
    bands: Sequence[SurchargeBand],
    tax_at: Callable[[Decimal], Decimal],
) -> Tuple[float, float]:
    """
    Surcharge on tax (after rebate), with marginal relief.

    The band is the highest one whose threshold income strictly exceeds. Marginal
    relief caps tax + surcharge at (tax + surcharge at the threshold) + (income − threshold);
    tax_at(threshold) supplies the tax at the threshold itself.

    Returns (surcharge, marginal_relief).
    """
    base = to_decimal(tax)
    income = to_decimal(taxable_income)
    crossed = [band for band in bands if income > to_decimal(band.threshold)]
    if not crossed or base <= 0:
        return 0.0, 0.0

    band = crossed[-1]
    prev_rate = to_decimal(crossed[-2].rate) if len(crossed) > 1 else ZERO
    threshold = to_decimal(band.threshold)

    gross = base * to_decimal(band.rate)
    ceiling = tax_at(threshold) * (1 + prev_rate) + (income - threshold)
    relief = max(ZERO, min(gross, base + gross - ceiling))

    if relief > 0:
        surcharge = floor_rupee(gross - relief)
    else:
        surcharge = round_rupee(gross)
    return float(surcharge), float(max(ZERO, gross - surcharge))


# ===========================================================================
# Cess
# ===========================================================================

def compute_cess(tax_after_rebate_and_surcharge: Number, cess_rate: Number) -> float:
    """Flat health & education cess. No caps, no brackets."""
    amount = to_decimal(tax_after_rebate_and_surcharge)
    if amount <= 0:
        return 0.0
    return float(round_rupee(amount * to_decimal(cess_rate)))


__all__ = [
    "to_decimal",
    "floor_rupee",
    "round_rupee",
    "slab_tax_exact",
    "compute_slab_tax",
    "floored_slab_tax",
    "ABSORB_ORDER",
    "SpecialRateTax",
    "compute_special_rate_tax",
    "apply_rebate",
    "compute_surcharge",
    "compute_cess",
]
