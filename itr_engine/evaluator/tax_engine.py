"""
Regime evaluator and comparator.

One parameterised evaluator serves both regimes; everything that differs between them
(slab tables, allow-list, standard deduction, rebate, surcharge bands, loss set-off)
comes from the financial-year rules snapshot.

Pure functions. No I/O beyond the one-time rules load. Same request + same rules
snapshot → identical result.

Evaluation sequence for one regime:
  1. gross total income (house-property loss capped per regime)
  2. deductions (aggregator, regime allow-list, group caps)
  3. taxable income = max(0, GTI − deductions)
  4. special-rate gains carved out; slab tax on the rest; floored once
  5. 87A rebate (resident individuals; 112A tax not rebatable)
  6. surcharge with marginal relief, on taxable income
  7. cess on tax − rebate + surcharge
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Tuple, Union

from itr_engine.errors import ConfigurationError, ValidationError
from itr_engine.evaluator.aggregator import aggregate
from itr_engine.evaluator.calculators import (
    ABSORB_ORDER,
    ZERO,
    SpecialRateTax,
    apply_rebate,
    compute_cess,
    compute_special_rate_tax,
    compute_surcharge,
    floor_rupee,
    slab_tax_exact,
    to_decimal,
)
from itr_engine.evaluator.income import (
    gross_total_income,
    house_property_setoff,
    special_rate_gains,
)
from itr_engine.evaluator.optimizer import generate_new_suggestions, generate_old_suggestions
from itr_engine.evaluator.schemas import (
    ComparisonBreakdown,
    ComparisonResult,
    DeductionComparisonRow,
    IncomeBreakdown,
    RegimeResult,
    SlabLine,
)
from itr_engine.intake.schemas import GainTerm, TaxComputationRequest
from itr_engine.intake.validator import parse_request, validate_request
from itr_engine.rules.deductions import RULES
from itr_engine.rules.loader import get_rules, slab_table_for
from itr_engine.rules.schemas import FinancialYearRules, Regime, SlabTable

logger = logging.getLogger(__name__)

RequestLike = Union[TaxComputationRequest, Mapping[str, Any]]


def _tax_on(taxable: Decimal, request: TaxComputationRequest, slab_table: SlabTable,
            rules: FinancialYearRules) -> Tuple[Decimal, Decimal]:
    """(slab + special-rate tax floored once, 112A tax) on a given taxable income."""
    special = compute_special_rate_tax(
        special_rate_gains(request.income),
        taxable,
        slab_table,
        rules.capital_gains,
        use_exemption_shortfall=request.taxpayer.is_resident,
    )
    slab_tax, _ = slab_tax_exact(special.slab_income, slab_table)
    return floor_rupee(slab_tax + special.tax), special.non_rebatable_tax


def _marginal_rate(slab_lines: List[SlabLine], special: SpecialRateTax) -> float:
    """Rate on the last rupee of slab income; the absorbed gain's rate when there is none."""
    if slab_lines:
        return slab_lines[-1].rate
    rates = {line.category: line.rate for line in special.lines}
    for category in ABSORB_ORDER:
        if category in rates:
            return rates[category]
    return 0.0


def evaluate_regime(
    request: TaxComputationRequest,
    regime: Regime,
    rules: Optional[FinancialYearRules] = None,
) -> RegimeResult:
    """
    Full tax computation for one regime.

    Raises:
        ConfigurationError: rules, slab table or deduction parameters missing
        ValidationError:    invalid deduction entries
    """
    rules = rules or get_rules(request.financial_year)
    regime_rules = rules.regime(regime)
    taxpayer = request.taxpayer
    income = request.income
    slab_table = slab_table_for(rules, regime, taxpayer)
    applied: List[str] = [f"slabs:{regime}:{slab_table.age_bracket}"]

    # Step 1: gross total income
    gti = gross_total_income(income, regime_rules)
    if house_property_setoff(income.house_property, regime_rules) != income.house_property:
        applied.append("house_property_loss_capped")

    # Step 2: deductions
    aggregation = aggregate(
        request.deductions,
        taxpayer,
        rules.financial_year,
        regime,
        income,
        rules=rules,
        gross_total_income=gti,
    )
    if any(group.claimed > group.eligible for group in aggregation.groups):
        applied.append("group_cap_applied")

    # Step 3: taxable income
    taxable = max(0.0, gti - aggregation.total)

    # Step 4: special-rate + slab tax
    gains = special_rate_gains(income)
    special = compute_special_rate_tax(
        gains,
        taxable,
        slab_table,
        rules.capital_gains,
        use_exemption_shortfall=taxpayer.is_resident,
    )
    slab_tax, slab_lines = slab_tax_exact(special.slab_income, slab_table)
    tax_before_cess = floor_rupee(slab_tax + special.tax)
    if gains.ltcg_equity > 0:
        applied.append("ltcg_equity_exemption")
    if special.exemption_shortfall_used > 0:
        applied.append("basic_exemption_shortfall")

    # Step 5: 87A rebate: resident individuals only
    rebate = 0.0
    if taxpayer.is_individual and taxpayer.is_resident:
        rebate = apply_rebate(
            tax_before_cess,
            taxable,
            regime_rules.rebate,
            lambda threshold: _tax_on(threshold, request, slab_table, rules),
            non_rebatable_tax=special.non_rebatable_tax,
        )
        if rebate > 0:
            applied.append(
                "rebate_87a" if taxable <= regime_rules.rebate.threshold
                else "rebate_87a_marginal_relief"
            )
    tax_after_rebate = tax_before_cess - to_decimal(rebate)

    # Step 6: surcharge
    surcharge, relief = compute_surcharge(
        tax_after_rebate,
        taxable,
        regime_rules.surcharge,
        lambda threshold: _tax_on(threshold, request, slab_table, rules)[0],
    )
    if surcharge > 0:
        applied.append("surcharge")
    if relief > 0:
        applied.append("surcharge_marginal_relief")

    # Step 7: cess
    cess_base = tax_after_rebate + to_decimal(surcharge)
    cess = compute_cess(cess_base, rules.cess_rate)
    net_tax = max(ZERO, cess_base + to_decimal(cess))

    net = float(net_tax)
    paid = request.taxes_paid.total
    logger.debug(
        "FY %s %s regime evaluated: %d deduction line(s), rules %s",
        rules.financial_year, regime, len(aggregation.lines), ",".join(applied),
    )

    return RegimeResult(
        regime=regime,
        financial_year=rules.financial_year,
        gross_total_income=gti,
        total_deductions=aggregation.total,
        taxable_income=taxable,
        slab_income=float(special.slab_income),
        tax_before_cess=float(tax_before_cess),
        slab_breakdown=slab_lines,
        special_rate_breakdown=special.lines,
        rebate=rebate,
        surcharge=surcharge,
        marginal_relief=relief,
        cess=cess,
        net_tax=net,
        effective_rate=round(net / gti, 4) if gti > 0 else 0.0,
        marginal_rate=_marginal_rate(slab_lines, special),
        deductions=aggregation.lines,
        deduction_groups=aggregation.groups,
        taxes_paid=paid,
        balance_payable=net - paid,
        applied_rules=applied,
    )


def calculate_old_regime(request: TaxComputationRequest,
                         rules: Optional[FinancialYearRules] = None) -> RegimeResult:
    return evaluate_regime(request, "old", rules)


def calculate_new_regime(request: TaxComputationRequest,
                         rules: Optional[FinancialYearRules] = None) -> RegimeResult:
    return evaluate_regime(request, "new", rules)


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------

def _reason(old: RegimeResult, new: RegimeResult, recommended: Regime, savings: float) -> str:
    """Plain-language rationale, 2-3 sentences, naming the decisive factor."""
    if savings == 0.0:
        return (
            f"Both regimes result in the same tax (₹{old.net_tax:,.0f}). "
            "New Regime recommended as the simpler option with no mandatory investment requirements."
        )

    if recommended == "old":
        # Top deductions that only the old regime allowed
        key_lines = sorted(
            (line for line in old.deductions
             if line.eligible > 0 and line.section != "16(ia)" and new.deduction(line.section) == 0),
            key=lambda line: line.eligible,
            reverse=True,
        )
        top_deds = ", ".join(
            f"{line.section} ₹{line.eligible:,.0f}" for line in key_lines[:3]
        ) or "available deductions"
        return (
            f"Old Regime saves ₹{savings:,.0f} over the New Regime. "
            f"Old Regime tax: ₹{old.net_tax:,.0f} vs New Regime tax: ₹{new.net_tax:,.0f}. "
            f"Key deductions: {top_deds}."
        )

    if new.rebate > 0 and new.rebate >= old.rebate:
        return (
            f"New Regime saves ₹{savings:,.0f} over the Old Regime. "
            f"The Section 87A rebate of ₹{new.rebate:,.0f} brings New Regime tax down to "
            f"₹{new.net_tax:,.0f} vs Old Regime tax of ₹{old.net_tax:,.0f}."
        )

    return (
        f"New Regime saves ₹{savings:,.0f} over the Old Regime. "
        f"New Regime tax: ₹{new.net_tax:,.0f} vs Old Regime tax: ₹{old.net_tax:,.0f}. "
        f"Your total eligible Old Regime deductions (₹{old.total_deductions:,.0f}) "
        f"are insufficient to overcome the lower New Regime slab rates."
    )


def _income_breakdown(request: TaxComputationRequest) -> IncomeBreakdown:
    income = request.income
    short = sum(g.amount for g in income.capital_gains if g.term == GainTerm.short)
    long_ = sum(g.amount for g in income.capital_gains if g.term == GainTerm.long)
    salary = income.salary.total
    return IncomeBreakdown(
        salary=salary,
        house_property=income.house_property,
        short_term_capital_gains=short,
        long_term_capital_gains=long_,
        interest_income=income.interest_income,
        other_income=income.other_income,
        business_income=income.business_income,
        total=(
            salary + income.house_property + short + long_
            + income.interest_income + income.other_income + income.business_income
        ),
    )


def _deduction_breakdown(old: RegimeResult, new: RegimeResult) -> List[DeductionComparisonRow]:
    old_lines = {line.section: line for line in old.deductions}
    new_lines = {line.section: line for line in new.deductions}
    rows: List[DeductionComparisonRow] = []
    for code, rule in RULES.items():
        line = old_lines.get(code) or new_lines.get(code)
        if line is None:
            continue
        rows.append(DeductionComparisonRow(
            section=code,
            description=rule.description,
            claimed=line.raw,
            old_regime=old.deduction(code),
            new_regime=new.deduction(code),
        ))
    return rows


def compare_regimes(
    request: RequestLike,
    rules: Optional[FinancialYearRules] = None,
) -> ComparisonResult:
    """
    Compare old and new regime tax for one request.
    Recommends the lower-tax regime; ties go to the New Regime.

    Accepts either a TaxComputationRequest or a raw JSON-like mapping.
    All validation and rules lookup happen before either regime is computed, so an
    error never leaves a half-built result behind.

    Raises:
        ValidationError:    malformed payload or invalid deduction entries
        ConfigurationError: unknown financial year, missing slab table or rule
    """
    try:
        if not isinstance(request, TaxComputationRequest):
            request = parse_request(request)
        validate_request(request)
        rules = rules or get_rules(request.financial_year)
        for regime in ("old", "new"):
            slab_table_for(rules, regime, request.taxpayer)
    except ValidationError as exc:
        logger.warning("Regime comparison rejected: %s (%d issue(s))", exc.message, len(exc.details))
        raise
    except ConfigurationError as exc:
        logger.error("Regime comparison failed: %s (%d issue(s))", exc.message, len(exc.details))
        raise

    # Step 1: Calculate both regimes
    old = calculate_old_regime(request, rules)
    new = calculate_new_regime(request, rules)

    # Step 2: Determine winner: tie goes to the New Regime
    if old.net_tax < new.net_tax:
        recommended: Regime = "old"
    else:
        recommended = "new"
    savings = abs(old.net_tax - new.net_tax)

    # Step 3: Rationale and suggestions
    reason = _reason(old, new, recommended, savings)
    old_suggestions = generate_old_suggestions(request, old, rules)
    new_suggestions = generate_new_suggestions(request, new, rules)

    logger.info(
        "Regime comparison FY %s: recommended=%s, %d deduction entr(ies)",
        rules.financial_year, recommended, len(request.deductions),
    )

    return ComparisonResult(
        financial_year=rules.financial_year,
        old_regime=old,
        new_regime=new,
        recommended_regime=recommended,
        savings=savings,
        reason=reason,
        breakdown=ComparisonBreakdown(
            income_breakdown=_income_breakdown(request),
            deduction_breakdown=_deduction_breakdown(old, new),
        ),
        old_regime_suggestions=old_suggestions,
        new_regime_suggestions=new_suggestions,
    )


__all__ = [
    "evaluate_regime",
    "calculate_old_regime",
    "calculate_new_regime",
    "compare_regimes",
    "RequestLike",
]
