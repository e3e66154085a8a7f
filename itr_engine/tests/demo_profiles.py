"""
Demo profile fixtures for itr_engine tests — FY 2025-26

Three hand-verified salaried profiles used as the primary integration data set, plus
build_request(), the helper every test module uses to assemble a request payload.

All monetary tolerance: ±₹50 (consistent with pytest.approx(abs=50) in the test suite).
"""
from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Union

from itr_engine.intake.schemas import TaxComputationRequest


def build_request(
    financial_year: str = "2024-25",
    *,
    age_bracket: str = "below60",
    basic: float = 0,
    hra_received: float = 0,
    allowances: float = 0,
    other_income: float = 0,
    interest_income: float = 0,
    business_income: float = 0,
    house_property: float = 0,
    capital_gains: Iterable[Mapping[str, Any]] = (),
    deductions: Optional[Mapping[str, Union[float, Mapping[str, float]]]] = None,
    taxes_paid: Optional[Mapping[str, float]] = None,
    **taxpayer: Any,
) -> TaxComputationRequest:
    """
    Assemble a TaxComputationRequest.

    deductions maps section code → either a single amount or a dict of sub-amounts:
        {"80C": 150_000, "10(13A)": {"rent_paid": 180_000}}
    Remaining keyword arguments are TaxpayerContext fields (city_tier, has_parents, ...).
    """
    entries = []
    for section, amounts in (deductions or {}).items():
        if not isinstance(amounts, Mapping):
            amounts = {"amount": amounts}
        entries.append({"section": section, "amounts": dict(amounts)})

    payload: dict[str, Any] = {
        "financial_year": financial_year,
        "taxpayer": {"age_bracket": age_bracket, **taxpayer},
        "income": {
            "salary": {"basic": basic, "hra_received": hra_received, "allowances": allowances},
            "house_property": house_property,
            "capital_gains": list(capital_gains),
            "interest_income": interest_income,
            "other_income": other_income,
            "business_income": business_income,
        },
        "deductions": entries,
        "taxes_paid": dict(taxes_paid or {}),
    }
    return TaxComputationRequest.model_validate(payload)


# ---------------------------------------------------------------------------
# Profile 1: Priya, ₹12L basic, metro, partial deductions
# ---------------------------------------------------------------------------
_PRIYA_PROFILE: dict[str, Any] = dict(
    basic=1_200_000,
    hra_received=300_000,
    city_tier="metro",
    deductions={
        "10(13A)": {"rent_paid": 180_000},
        "80C": {"ppf": 60_000, "elss": 40_000},
        "80D": 20_000,
    },
)
# HRA Rule 2A: comp1=300000, comp2=50%*1200000=600000, comp3=180000-120000=60000 → 60000
# OLD: gross=1500000, ded=230000(std50+hra60+80c100+80d20), taxable=1270000
# slab: 12500+100000+81000=193500, no 87A (>5L), cess=7740, total=201240
# NEW: gross=1500000, std=75000, taxable=1425000 (>12L, no rebate)
# slab: 0+20000+40000+33750=93750, cess=3750, total=97500
_PRIYA_EXPECTED: dict[str, Any] = dict(
    expected_old_tax=201_240,
    expected_new_tax=97_500,
    expected_regime="new",
    expected_savings=103_740,
)

# ---------------------------------------------------------------------------
# Profile 2: Rahul, ₹25L basic, metro, max deductions, senior-citizen parents
# ---------------------------------------------------------------------------
_RAHUL_PROFILE: dict[str, Any] = dict(
    basic=2_500_000,
    hra_received=800_000,
    city_tier="metro",
    has_parents=True,
    parents_age_bracket="60to80",     # senior citizen parents → 80D parents cap 50,000
    deductions={
        "10(13A)": {"rent_paid": 420_000},
        "80C": 150_000,                # maxed
        "80D": 25_000,
        "80D(parents)": 50_000,
        "80CCD(1B)": 50_000,
        "80CCD(2)": 120_000,
        "24(b)": 200_000,
    },
)
# HRA: min(800000, 1250000, 420000-250000=170000) = 170000
# OLD: gross=3300000, ded=815000(std50+hra170+80c150+80d25+80d_parents50+nps50
#      +employer_nps120+24b200), taxable=2485000
# slab: 12500+100000+445500=558000, cess=22320, total=580320
# NEW: gross=3300000, std=75000, employer_nps=120000 (≤14% basic), ded=195000
# taxable=3105000, slab: 0+20000+40000+60000+80000+100000+211500=511500
# cess=20460, total=531960
_RAHUL_EXPECTED: dict[str, Any] = dict(
    expected_old_tax=580_320,
    expected_new_tax=531_960,
    expected_regime="new",
    expected_savings=48_360,
)

# ---------------------------------------------------------------------------
# Profile 3: Anita, ₹8L basic, non-metro, minimal deductions
# ---------------------------------------------------------------------------
_ANITA_PROFILE: dict[str, Any] = dict(
    basic=800_000,
    city_tier="non_metro",
    deductions={"80C": 50_000},
)
# OLD: gross=800000, ded=100000(std50+80c50), taxable=700000 (>5L, no 87A)
# slab: 12500+40000=52500, cess=2100, total=54600
# NEW: gross=800000, std=75000, taxable=725000 (<12L, 87A applies)
# slab: 0+16250=16250 (4L→7.25L), 87A: rebate=16250 (<=60000), net=0, total=0
_ANITA_EXPECTED: dict[str, Any] = dict(
    expected_old_tax=54_600,
    expected_new_tax=0,
    expected_regime="new",
    expected_savings=54_600,
)

DEMO_FINANCIAL_YEAR = "2025-26"

# ---------------------------------------------------------------------------
# Public API: single dict keyed by profile name
# ---------------------------------------------------------------------------
DEMO_PROFILES: dict[str, dict[str, Any]] = {
    "priya": {"profile": _PRIYA_PROFILE, "expected": _PRIYA_EXPECTED},
    "rahul": {"profile": _RAHUL_PROFILE, "expected": _RAHUL_EXPECTED},
    "anita": {"profile": _ANITA_PROFILE, "expected": _ANITA_EXPECTED},
}

__all__ = ["DEMO_PROFILES", "DEMO_FINANCIAL_YEAR", "build_request"]
