"""
Calculator unit tests — slab tax, special-rate gains, 87A rebate, surcharge, cess.
Exact rupee assertions: every figure is hand-computed.
"""
from __future__ import annotations

from decimal import Decimal

import pytest

from itr_engine.evaluator.calculators import (
    apply_rebate,
    compute_cess,
    compute_slab_tax,
    compute_special_rate_tax,
    compute_surcharge,
    floored_slab_tax,
)
from itr_engine.evaluator.income import SpecialRateGains
from itr_engine.rules.schemas import RebateRule, SlabBracket, SlabTable, SurchargeBand


def _table(*brackets) -> SlabTable:
    return SlabTable(
        financial_year="2024-25",
        regime="old",
        brackets=[SlabBracket(lower=lo, upper=up, rate=rate) for lo, up, rate in brackets],
    )


OLD_BELOW60 = _table(
    (0, 250_000, 0.0),
    (250_000, 500_000, 0.05),
    (500_000, 1_000_000, 0.20),
    (1_000_000, None, 0.30),
)


# ===========================================================================
# Slab tax
# ===========================================================================

@pytest.mark.parametrize(
    "income, expected",
    [
        (0, 0),
        (-10_000, 0),
        (250_000, 0),
        (500_000, 12_500),
        (750_000, 62_500),
        (1_000_000, 112_500),
        (1_500_000, 262_500),
    ],
)
def test_old_slab_tax(income: float, expected: float) -> None:
    assert compute_slab_tax(income, OLD_BELOW60).tax == expected


def test_zero_income_empty_breakdown() -> None:
    result = compute_slab_tax(0, OLD_BELOW60)
    assert result.breakdown == []
    assert result.marginal_rate == 0.0


def test_income_at_upper_bound_stays_in_bracket() -> None:
    """Income exactly at 500000 is taxed within the 5% bracket; nothing at 20%."""
    result = compute_slab_tax(500_000, OLD_BELOW60)
    assert [line.rate for line in result.breakdown] == [0.0, 0.05]
    assert result.breakdown[-1].income == 250_000
    assert result.marginal_rate == 0.05


def test_one_rupee_over_upper_bound_enters_next_bracket() -> None:
    result = compute_slab_tax(500_001, OLD_BELOW60)
    assert result.marginal_rate == 0.20
    assert result.breakdown[-1].income == 1


def test_floor_applied_once_after_accumulation() -> None:
    """Three brackets each leaving 0.6 of a rupee must floor to a single total."""
    table = _table((0, 3, 0.2), (3, 6, 0.2), (6, None, 0.2))
    # 0.6 + 0.6 + 0.6 = 1.8 → 1; flooring per bracket would give 0
    assert compute_slab_tax(9, table).tax == 1


def test_breakdown_sums_to_unrounded_tax() -> None:
    result = compute_slab_tax(1_234_567, OLD_BELOW60)
    assert sum(line.tax for line in result.breakdown) == pytest.approx(182_870.1, abs=0.01)
    assert result.tax == 182_870


# ===========================================================================
# Special-rate capital gains
# ===========================================================================

class _CG:
    stcg_equity_rate = 0.20
    ltcg_equity_rate = 0.125
    ltcg_equity_exemption = 125_000
    ltcg_other_rate = 0.125


def test_special_rate_carve_out_with_exemption() -> None:
    gains = SpecialRateGains(ltcg_equity=300_000)
    result = compute_special_rate_tax(gains, 1_300_000, OLD_BELOW60, _CG)
    assert result.slab_income == Decimal("1000000")
    # 300000 - 125000 = 175000 @ 12.5%
    assert result.tax == Decimal("21875")
    assert result.non_rebatable_tax == Decimal("21875")


def test_special_rate_uses_basic_exemption_shortfall() -> None:
    gains = SpecialRateGains(stcg_equity=200_000)
    result = compute_special_rate_tax(gains, 300_000, OLD_BELOW60, _CG)
    # slab income 100000 leaves 150000 of the 0% bracket for the gain
    assert result.exemption_shortfall_used == Decimal("150000")
    assert result.tax == Decimal("10000")


def test_non_residents_get_no_shortfall() -> None:
    gains = SpecialRateGains(stcg_equity=200_000)
    result = compute_special_rate_tax(
        gains, 300_000, OLD_BELOW60, _CG, use_exemption_shortfall=False,
    )
    assert result.tax == Decimal("40000")


def test_deductions_beyond_slab_income_absorbed_by_gains() -> None:
    gains = SpecialRateGains(stcg_equity=100_000, ltcg_other=100_000)
    # taxable 150000 < gains 200000: STCG absorbs the 50000 first
    result = compute_special_rate_tax(
        gains, 150_000, OLD_BELOW60, _CG, use_exemption_shortfall=False,
    )
    assert result.slab_income == 0
    categories = {line.category: line.income for line in result.lines}
    assert categories == {"stcg_equity": 50_000, "ltcg_other": 100_000}


# ===========================================================================
# 87A rebate
# ===========================================================================

NEW_2024 = _table(
    (0, 300_000, 0.0),
    (300_000, 700_000, 0.05),
    (700_000, 1_000_000, 0.10),
    (1_000_000, 1_200_000, 0.15),
    (1_200_000, 1_500_000, 0.20),
    (1_500_000, None, 0.30),
)
OLD_REBATE = RebateRule(threshold=500_000, max_rebate=12_500, marginal_relief=False)
NEW_REBATE = RebateRule(threshold=700_000, max_rebate=25_000, marginal_relief=True)


def _slab_only(table: SlabTable):
    return lambda threshold: (floored_slab_tax(threshold, table), Decimal("0"))


def test_full_rebate_at_threshold() -> None:
    assert apply_rebate(12_500, 500_000, OLD_REBATE, _slab_only(OLD_BELOW60)) == 12_500


def test_rebate_limited_to_max() -> None:
    rule = RebateRule(threshold=500_000, max_rebate=5_000)
    assert apply_rebate(12_500, 500_000, rule, _slab_only(OLD_BELOW60)) == 5_000


def test_no_rebate_above_threshold_without_relief() -> None:
    assert apply_rebate(12_500, 500_001, OLD_REBATE, _slab_only(OLD_BELOW60)) == 0.0


def test_rebate_marginal_relief_just_above_threshold() -> None:
    # tax at 710000 = 21000; net may not exceed 0 + 10000 → rebate 11000
    assert apply_rebate(21_000, 710_000, NEW_REBATE, _slab_only(NEW_2024)) == 11_000


def test_rebate_marginal_relief_fades_out() -> None:
    # tax at 725000 = 22500 < excess 25000 → no relief
    assert apply_rebate(22_500, 725_000, NEW_REBATE, _slab_only(NEW_2024)) == 0.0


def test_rebate_excludes_non_rebatable_tax() -> None:
    assert apply_rebate(30_000, 600_000, NEW_REBATE, _slab_only(NEW_2024), non_rebatable_tax=21_875) == 8_125


NEW_2025_REBATE = RebateRule(threshold=1_200_000, max_rebate=60_000, marginal_relief=True)


def test_marginal_relief_uses_full_tax_at_threshold() -> None:
    # ₹5L STCG on top of slab income: tax at 1200000 = 15000 slab + 100000 STCG = 115000,
    # net there 115000 - 60000 = 55000; at 1210000 net may not exceed 65000
    def tax_at(threshold):
        return Decimal("115000"), Decimal("0")

    assert apply_rebate(115_500, 1_210_000, NEW_2025_REBATE, tax_at) == 50_500


def test_marginal_relief_never_exceeds_max_rebate() -> None:
    def tax_at(threshold):
        return Decimal("0"), Decimal("0")

    assert apply_rebate(100_000, 1_200_100, NEW_2025_REBATE, tax_at) == 60_000


def test_net_tax_never_exceeds_net_at_threshold_plus_excess() -> None:
    for income in range(700_001, 730_001, 997):
        tax = floored_slab_tax(income, NEW_2024)
        net = tax - Decimal(str(apply_rebate(tax, income, NEW_REBATE, _slab_only(NEW_2024))))
        assert net <= income - 700_000


# ===========================================================================
# Surcharge
# ===========================================================================

OLD_BANDS = [
    SurchargeBand(threshold=5_000_000, rate=0.10),
    SurchargeBand(threshold=10_000_000, rate=0.15),
    SurchargeBand(threshold=20_000_000, rate=0.25),
    SurchargeBand(threshold=50_000_000, rate=0.37),
]


def _tax_at(threshold: Decimal) -> Decimal:
    return floored_slab_tax(threshold, OLD_BELOW60)


def _surcharge(income: float):
    tax = floored_slab_tax(income, OLD_BELOW60)
    return tax, compute_surcharge(tax, income, OLD_BANDS, _tax_at)


def test_no_surcharge_at_threshold() -> None:
    _, (surcharge, relief) = _surcharge(5_000_000)
    assert surcharge == 0.0
    assert relief == 0.0


def test_scenario_e_threshold_plus_one_rupee() -> None:
    """tax + surcharge rises by at most ₹1 × (1 + rate) for ₹1 over the threshold."""
    base_tax, _ = _surcharge(5_000_000)
    tax, (surcharge, relief) = _surcharge(5_000_001)
    increase = (float(tax) + surcharge) - float(base_tax)
    assert increase <= 1 * (1 + 0.10)
    assert surcharge == 1
    assert relief == 131_249


def test_surcharge_relief_at_higher_band_uses_previous_rate() -> None:
    base_tax, _ = _surcharge(10_000_000)
    base_total = float(base_tax) * 1.10
    tax, (surcharge, _) = _surcharge(10_000_100)
    assert float(tax) + surcharge <= base_total + 100 + 1


def test_full_surcharge_far_above_threshold() -> None:
    tax, (surcharge, relief) = _surcharge(6_000_000)
    assert tax == Decimal("1612500")
    assert surcharge == 161_250
    assert relief == 0.0


def test_no_surcharge_on_zero_tax() -> None:
    assert compute_surcharge(0, 6_000_000, OLD_BANDS, _tax_at) == (0.0, 0.0)


# ===========================================================================
# Cess
# ===========================================================================

@pytest.mark.parametrize(
    "amount, expected",
    [(0, 0), (-5, 0), (32_500, 1_300), (12, 0), (13, 1), (1_312_501, 52_500)],
)
def test_cess_rounded_half_up(amount: float, expected: float) -> None:
    assert compute_cess(amount, 0.04) == expected
