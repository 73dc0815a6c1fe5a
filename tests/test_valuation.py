import logging
import math

import pytest

from tcea_calc.valuation import annualize_cost_rate, discount_periodic, npv, solve_periodic_irr

CREDIT_FLOWS = [
    [1000, -500, -500, -500],
    [10_000] + [-888.49] * 12,
    [9_500, -300, -300, -300, -300, -300, -300, -300, -300, -300, -300, -300, -6_000],
    [5_000, 0, 0, -5_600],
]


def test_npv_at_zero_is_the_plain_sum():
    flows = [1000, -500, -500, -500]
    assert npv(0.0, flows) == -500
    assert npv(0.0, [1.5, 2.25, -0.75]) == pytest.approx(3.0)


def test_npv_discounts_each_period():
    assert npv(0.1, [0, 110, 121]) == pytest.approx(200.0)
    assert npv(0.05, []) == 0.0


def test_npv_at_minus_one_is_not_finite():
    assert not math.isfinite(npv(-1.0, [1000, -500, -500]))


def test_irr_of_short_credit_flows():
    rate = solve_periodic_irr([1000, -500, -500, -500])
    assert rate == pytest.approx(0.23375193, abs=1e-6)


@pytest.mark.parametrize("flows", CREDIT_FLOWS)
def test_irr_is_a_root_of_the_npv(flows):
    rate = solve_periodic_irr(flows)
    assert rate is not None
    assert abs(npv(rate, flows)) < 1e-6


def test_irr_expands_the_upper_bound():
    # the root sits above the initial 2.0 bound
    flows = [100, -400]
    rate = solve_periodic_irr(flows)
    assert rate == pytest.approx(3.0, abs=1e-6)


def test_irr_without_sign_change_is_unavailable():
    assert solve_periodic_irr([100, 10, 10]) is None
    assert solve_periodic_irr([1000]) is None


def test_irr_of_all_zero_flows_is_unavailable():
    assert solve_periodic_irr([0]) is None
    assert solve_periodic_irr([0, 0, 0]) is None


def test_irr_returns_midpoint_when_iterations_run_out(caplog):
    # at this scale |npv| stays above the tolerance even next to the root
    caplog.set_level(logging.DEBUG, logger="tcea_calc.valuation")
    rate = solve_periodic_irr([1e12, -1.1e12])
    assert rate == pytest.approx(0.1, abs=1e-9)
    assert "budget exhausted" in caplog.text


def test_irr_when_the_lower_bound_overflows():
    # the bracket assumes few periods: at -0.9999, 100 outflows overflow to -inf
    flows = [100_000] + [-1_000] * 100
    assert solve_periodic_irr(flows) is None


def test_annualize_cost_rate():
    assert annualize_cost_rate(0.01) == pytest.approx(0.12682503, abs=1e-8)
    assert annualize_cost_rate(0.0) == 0.0
    assert annualize_cost_rate(None) is None


def test_discount_periodic_inverts_annualization():
    monthly = discount_periodic(0.10)
    assert monthly == pytest.approx(0.00797414, abs=1e-8)
    assert annualize_cost_rate(monthly) == pytest.approx(0.10)
    assert math.isnan(discount_periodic(-3.0))
