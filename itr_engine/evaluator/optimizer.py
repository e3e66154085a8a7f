"""
Deduction optimizer — plain-English suggestions for unused deduction headroom.
Pure functions. No I/O.

Saving per suggestion = headroom × marginal slab rate × (1 + cess rate). Only sections
the regime admits are considered, so the new regime usually gets at most the employer
NPS suggestion.
"""
from __future__ import annotations

from typing import Callable, List, NamedTuple, Optional, Tuple

from itr_engine.evaluator.aggregator import section_cap
from itr_engine.evaluator.schemas import RegimeResult
from itr_engine.intake.schemas import TaxComputationRequest
from itr_engine.rules.schemas import FinancialYearRules, Regime

_SUGGESTION_MIN_SAVING = 1_000   # Suppress suggestions where tax saving < ₹1,000
_MAX_SUGGESTIONS = 3

_REGIME_LABEL = {"old": "Old Regime", "new": "New Regime"}


class _Candidate(NamedTuple):
    section: str                 # rule code whose cap is checked (first member for a group)
    group: Optional[str]         # headroom measured against the group cap when set
    template: Callable[[float, float, str], str]


_CANDIDATES: List[_Candidate] = [
    _Candidate(
        "80C", "80CCE",
        lambda headroom, saving, label: (
            f"Invest ₹{headroom:,.0f} more in 80C instruments (PPF, ELSS, LIC) "
            f"to save ₹{round(saving):,.0f} in the {label}."
        ),
    ),
    _Candidate(
        "80D", None,
        lambda headroom, saving, label: (
            f"Pay ₹{headroom:,.0f} more in health insurance (self/family) under Section 80D "
            f"to save ₹{round(saving):,.0f} in the {label}."
        ),
    ),
    _Candidate(
        "80D(parents)", None,
        lambda headroom, saving, label: (
            f"Pay ₹{headroom:,.0f} more in parent health insurance under Section 80D "
            f"to save ₹{round(saving):,.0f} in the {label}."
        ),
    ),
    _Candidate(
        "80CCD(1B)", None,
        lambda headroom, saving, label: (
            f"Contribute ₹{headroom:,.0f} more to NPS (Section 80CCD(1B)) "
            f"to save ₹{round(saving):,.0f} in the {label}."
        ),
    ),
    _Candidate(
        "24(b)", None,
        lambda headroom, saving, label: (
            f"Home loan interest paid up to ₹{headroom:,.0f} more can be claimed under "
            f"Section 24(b) to save ₹{round(saving):,.0f} in the {label}."
        ),
    ),
    _Candidate(
        "80CCD(2)", None,
        lambda headroom, saving, label: (
            f"Ask your employer to contribute ₹{headroom:,.0f} more to NPS (Section 80CCD(2)) "
            f"to save ₹{round(saving):,.0f} in the {label}."
        ),
    ),
]


def effective_marginal_rate(result: RegimeResult, rules: FinancialYearRules) -> float:
    """
    Marginal slab rate × (1 + cess). Returns combined rate (e.g. 0.312 for 30% slab + 4% cess).
    Zero when no tax is payable: a further deduction would save nothing.
    """
    if result.net_tax <= 0:
        return 0.0
    return result.marginal_rate * (1 + rules.cess_rate)


def _headroom(candidate: _Candidate, request: TaxComputationRequest, result: RegimeResult,
              rules: FinancialYearRules) -> float:
    if candidate.group is not None:
        used = sum(line.eligible for line in result.deductions if line.group == candidate.group)
        return rules.group_cap(candidate.group) - used
    cap = section_cap(
        candidate.section,
        request.taxpayer,
        rules,
        result.regime,
        request.income,
        result.gross_total_income,
    )
    if cap is None:
        return 0.0
    return cap - result.deduction(candidate.section)


def generate_suggestions(
    request: TaxComputationRequest,
    result: RegimeResult,
    rules: FinancialYearRules,
) -> list[str]:
    """
    Suggestions for unused deduction headroom in result's regime.
    Suppresses suggestions with < ₹1,000 tax saving.
    Returns at most 3 suggestions, sorted by rupee saving descending.
    """
    effective_rate = effective_marginal_rate(result, rules)
    if effective_rate == 0.0:
        return []   # Already in zero-tax bracket

    regime: Regime = result.regime
    allowed = rules.regime(regime).allowed_sections
    label = _REGIME_LABEL[regime]

    candidates: List[Tuple[float, str]] = []   # (saving, suggestion_text)
    for candidate in _CANDIDATES:
        if candidate.section not in allowed:
            continue
        headroom = _headroom(candidate, request, result, rules)
        saving = headroom * effective_rate
        if headroom > 0 and saving >= _SUGGESTION_MIN_SAVING:
            candidates.append((saving, candidate.template(headroom, saving, label)))

    # Sort by saving descending, cap at 3
    candidates.sort(key=lambda x: x[0], reverse=True)
    return [text for _, text in candidates[:_MAX_SUGGESTIONS]]


def generate_old_suggestions(request: TaxComputationRequest, old_result: RegimeResult,
                             rules: FinancialYearRules) -> list[str]:
    return generate_suggestions(request, old_result, rules)


def generate_new_suggestions(request: TaxComputationRequest, new_result: RegimeResult,
                             rules: FinancialYearRules) -> list[str]:
    return generate_suggestions(request, new_result, rules)


__all__ = [
    "effective_marginal_rate",
    "generate_suggestions",
    "generate_old_suggestions",
    "generate_new_suggestions",
]
