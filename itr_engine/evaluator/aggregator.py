"""
Deduction aggregator — applies the deduction rule set to a request's entries for one
regime and returns per-section eligible amounts, group totals and the overall total.

Pure function of (entries, taxpayer, income, rules snapshot, regime). No I/O.

Order of work:
  1. validate entries (unknown code → ConfigurationError, negative → ValidationError)
  2. merge entries that repeat a section code (sub-amounts summed by name)
  3. evaluate rules stage by stage; eligible = min(raw, cap)
  4. after each stage, clamp every group (80CCE) proportionally to its cap

Sections the regime does not admit are still reported, with cap 0 and eligible 0, so the
comparison breakdown can show what each regime discarded.
"""
from __future__ import annotations

import logging
from decimal import ROUND_DOWN, Decimal
from typing import Dict, List, Optional, Sequence

from itr_engine.evaluator.calculators import to_decimal
from itr_engine.evaluator.income import gross_total_income as compute_gti
from itr_engine.evaluator.income import special_rate_gains
from itr_engine.evaluator.schemas import AggregationResult, DeductionLine, GroupLine
from itr_engine.intake.schemas import DeductionEntry, IncomeProfile, TaxpayerContext
from itr_engine.intake.validator import validate_deduction_entries
from itr_engine.rules.deductions import RULES, RuleContext
from itr_engine.rules.loader import get_rules
from itr_engine.rules.schemas import FinancialYearRules, Regime

logger = logging.getLogger(__name__)

_PAISA = Decimal("0.01")


def merge_entries(entries: Sequence[DeductionEntry]) -> Dict[str, Dict[str, float]]:
    """Section code → sub-amounts, summing repeated names across entries."""
    merged: Dict[str, Dict[str, float]] = {}
    for entry in entries:
        amounts = merged.setdefault(entry.section, {})
        for name, amount in entry.amounts.items():
            amounts[name] = amounts.get(name, 0.0) + amount
    return merged


def distribute_group_cap(eligible: Sequence[float], cap: float) -> List[float]:
    """
    Scale members down so they sum to cap, each in proportion to its pre-clamp amount.

    Shares are truncated to the paisa; the remainder goes to the largest member (first
    on ties) without lifting it above its own pre-clamp amount. Order of declaration
    never changes the result.
    """
    amounts = [to_decimal(e) for e in eligible]
    claimed = sum(amounts, Decimal("0"))
    limit = to_decimal(cap)
    if claimed <= limit:
        return [float(a) for a in amounts]
    if limit <= 0:
        return [0.0] * len(amounts)

    shares = [(a * limit / claimed).quantize(_PAISA, rounding=ROUND_DOWN) for a in amounts]
    residue = limit - sum(shares, Decimal("0"))
    largest = max(range(len(amounts)), key=lambda i: (amounts[i], -i))
    shares[largest] = min(amounts[largest], shares[largest] + residue)
    return [float(s) for s in shares]


def _clamp_groups(lines: List[DeductionLine], rules: FinancialYearRules,
                  done: set[str]) -> List[GroupLine]:
    """Apply group caps in place for groups not yet clamped; returns their GroupLines."""
    by_group: Dict[str, List[int]] = {}
    for i, line in enumerate(lines):
        if line.group and line.allowed and line.group not in done:
            by_group.setdefault(line.group, []).append(i)

    groups: List[GroupLine] = []
    for group, indexes in by_group.items():
        cap = rules.group_cap(group)
        before = [lines[i].eligible for i in indexes]
        after = distribute_group_cap(before, cap)
        for i, old, new in zip(indexes, before, after):
            if new != old:
                lines[i] = lines[i].model_copy(update={"eligible": new, "group_clamped": True})
        groups.append(GroupLine(
            group=group,
            cap=cap,
            members=[lines[i].section for i in indexes],
            claimed=sum(before),
            eligible=sum(after),
        ))
        done.add(group)
    return groups


def aggregate(
    entries: Sequence[DeductionEntry],
    context: TaxpayerContext,
    financial_year: str,
    regime: Regime,
    income: Optional[IncomeProfile] = None,
    rules: Optional[FinancialYearRules] = None,
    gross_total_income: Optional[float] = None,
) -> AggregationResult:
    """
    Aggregate deductions for one regime.

    Args:
        entries:            raw deduction entries as supplied by the caller
        context:            taxpayer facts (age, city, disability, residency)
        financial_year:     rules key, e.g. "2024-25"; ignored when rules is given
        regime:             "old" or "new"
        income:             income heads; income-dependent caps (HRA, 80GG, 80G) use it
        rules:              pre-fetched snapshot, so one computation sees one version
        gross_total_income: GTI already computed by the caller

    Raises:
        ConfigurationError: unknown section code, missing rules or parameters
        ValidationError:    negative or unrecognised sub-amounts
    """
    validate_deduction_entries(entries)
    rules = rules or get_rules(financial_year)
    income = income or IncomeProfile()
    regime_rules = rules.regime(regime)
    if gross_total_income is None:
        gross_total_income = compute_gti(income, regime_rules)

    merged = merge_entries(entries)
    allowed = set(regime_rules.allowed_sections)
    special = special_rate_gains(income).total

    selected = [rule for code, rule in RULES.items() if code in merged or rule.automatic]
    stages = sorted({rule.stage for rule in selected})

    lines: List[DeductionLine] = []
    groups: List[GroupLine] = []
    clamped: set[str] = set()

    for stage in stages:
        ctx = RuleContext(
            taxpayer=context,
            income=income,
            rules=rules,
            regime=regime,
            gross_total_income=gross_total_income,
            special_rate_income=special,
            prior_deductions=sum(line.eligible for line in lines),
        )
        for rule in selected:
            if rule.stage != stage:
                continue
            amounts = merged.get(rule.code, {})
            if rule.code not in allowed:
                if rule.code in merged:
                    lines.append(DeductionLine(
                        section=rule.code,
                        description=rule.description,
                        raw=sum(amounts.values()),
                        cap=0.0,
                        eligible=0.0,
                        group=rule.group,
                        allowed=False,
                    ))
                continue

            raw, cap = rule.evaluate(amounts, ctx)
            if rule.automatic and rule.code not in merged and raw == 0:
                continue
            eligible = raw if cap is None else min(raw, cap)
            lines.append(DeductionLine(
                section=rule.code,
                description=rule.description,
                raw=raw,
                cap=cap,
                eligible=max(0.0, eligible),
                group=rule.group,
            ))

        groups.extend(_clamp_groups(lines, rules, clamped))
        logger.debug(
            "Aggregation FY %s %s stage %d: %d line(s)",
            rules.financial_year, regime, stage, len(lines),
        )

    # Report lines in rule declaration order regardless of stage
    order = {code: i for i, code in enumerate(RULES)}
    lines.sort(key=lambda line: order[line.section])

    return AggregationResult(
        regime=regime,
        lines=lines,
        groups=groups,
        total=sum(line.eligible for line in lines),
    )


def section_cap(
    code: str,
    context: TaxpayerContext,
    rules: FinancialYearRules,
    regime: Regime,
    income: IncomeProfile,
    gross_total_income: float,
) -> Optional[float]:
    """
    Cap a section would have for this taxpayer in this regime, independent of the claim.
    0 when the regime does not admit the section; None when uncapped.
    """
    rule = RULES[code]
    if code not in rules.regime(regime).allowed_sections:
        return 0.0
    ctx = RuleContext(
        taxpayer=context,
        income=income,
        rules=rules,
        regime=regime,
        gross_total_income=gross_total_income,
        special_rate_income=special_rate_gains(income).total,
    )
    return rule.evaluate({}, ctx)[1]


__all__ = [
    "aggregate",
    "merge_entries",
    "distribute_group_cap",
    "section_cap",
]
