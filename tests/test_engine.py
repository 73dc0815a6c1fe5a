import math
from dataclasses import replace
from datetime import date

import pytest

from tcea_calc.data_models import GraceMode, LoanTerms, RateMode
from tcea_calc.engine import (
    base_installment,
    build_client_cashflows,
    build_schedule,
    net_principal,
    periodic_rate,
    run_simulation,
)

EFFECTIVE_8_5_MONTHLY = 0.0068214934


def test_periodic_rate_nominal():
    assert periodic_rate(RateMode.NOMINAL, 0.12, 12) == pytest.approx(0.01)
    assert periodic_rate(RateMode.NOMINAL, 0.12, 4) == pytest.approx(0.03)


@pytest.mark.parametrize("compounding", [None, 0, -3])
def test_periodic_rate_nominal_defaults_to_monthly_compounding(compounding):
    assert periodic_rate(RateMode.NOMINAL, 0.12, compounding) == pytest.approx(0.01)


def test_periodic_rate_effective():
    assert periodic_rate(RateMode.EFFECTIVE, 0.085) == pytest.approx(EFFECTIVE_8_5_MONTHLY, rel=1e-7)
    assert periodic_rate("effective", 0.0) == 0.0


def test_periodic_rate_accepts_negative_and_out_of_domain_rates():
    assert periodic_rate(RateMode.NOMINAL, -0.06) == pytest.approx(-0.005)
    assert periodic_rate(RateMode.EFFECTIVE, -0.5) < 0
    assert math.isnan(periodic_rate(RateMode.EFFECTIVE, -2.0))


def test_housing_loan_schedule(housing_terms):
    rate = periodic_rate(housing_terms.rate_mode, housing_terms.annual_rate)
    schedule = build_schedule(housing_terms, rate)

    assert net_principal(housing_terms) == 150_000
    assert len(schedule) == 240
    assert [row.period for row in schedule] == list(range(1, 241))
    assert schedule[0].installment == pytest.approx(1272.0597, abs=1e-3)
    assert schedule[-1].balance == pytest.approx(0.0, abs=1e-6)
    assert sum(row.principal_paid for row in schedule) == pytest.approx(150_000, rel=1e-6)


def test_balance_never_increases_while_amortizing(housing_terms):
    rate = periodic_rate(housing_terms.rate_mode, housing_terms.annual_rate)
    balances = [row.balance for row in build_schedule(housing_terms, rate)]
    assert all(b2 <= b1 for b1, b2 in zip(balances, balances[1:]))
    assert min(balances) >= 0


def test_installment_splits_into_principal_interest_and_insurance(housing_terms):
    terms = replace(housing_terms, monthly_insurance=45)
    rate = periodic_rate(terms.rate_mode, terms.annual_rate)
    for row in build_schedule(terms, rate):
        assert row.insurance == 45
        assert row.installment == pytest.approx(row.principal_paid + row.interest + row.insurance)


def test_partial_grace_pays_interest_only(housing_terms):
    terms = replace(housing_terms, grace_mode=GraceMode.PARTIAL, grace_months=6, monthly_insurance=45)
    rate = periodic_rate(terms.rate_mode, terms.annual_rate)
    schedule = build_schedule(terms, rate)

    assert len(schedule) == 240
    for row in schedule[:6]:
        assert row.principal_paid == 0
        assert row.balance == 150_000
        assert row.interest == pytest.approx(1023.224, abs=1e-3)
        assert row.installment == pytest.approx(row.interest + 45)
    assert schedule[6].installment - 45 == pytest.approx(1285.0707, abs=1e-3)
    assert schedule[-1].balance == pytest.approx(0.0, abs=1e-6)


def test_total_grace_capitalizes_interest(housing_terms):
    terms = replace(housing_terms, grace_mode=GraceMode.TOTAL, grace_months=6, monthly_insurance=45)
    rate = periodic_rate(terms.rate_mode, terms.annual_rate)
    schedule = build_schedule(terms, rate)

    grace = schedule[:6]
    assert all(row.installment == 0 and row.principal_paid == 0 and row.insurance == 0 for row in grace)
    balances = [150_000] + [row.balance for row in grace]
    assert all(b2 > b1 for b1, b2 in zip(balances, balances[1:]))
    assert grace[-1].balance == pytest.approx(156_245.0, abs=1e-2)
    # the installment is recomputed from the capitalized balance
    assert schedule[6].installment - 45 == pytest.approx(1338.5725, abs=1e-3)
    assert schedule[-1].balance == pytest.approx(0.0, abs=1e-6)


def test_metrics_report_the_installment_used_by_the_schedule(housing_terms):
    terms = replace(housing_terms, grace_mode=GraceMode.TOTAL, grace_months=6, monthly_insurance=45)
    schedule, metrics = run_simulation(terms)
    assert metrics.base_installment == schedule[6].installment - 45
    assert metrics.base_installment == pytest.approx(1338.5725, abs=1e-3)


def test_grace_covering_the_whole_term(housing_terms):
    terms = replace(housing_terms, term_months=6, grace_mode=GraceMode.TOTAL, grace_months=6)
    schedule, metrics = run_simulation(terms)

    assert len(schedule) == 6
    assert all(row.installment == 0 and row.principal_paid == 0 for row in schedule)
    assert all(b2 > b1 for b1, b2 in zip([r.balance for r in schedule], [r.balance for r in schedule][1:]))
    assert metrics.amortizing_periods == 0
    assert metrics.base_installment == 0
    assert metrics.total_paid == 0


def test_grace_months_beyond_term_only_produce_grace_rows(housing_terms):
    terms = replace(housing_terms, term_months=3, grace_mode=GraceMode.PARTIAL, grace_months=10)
    schedule, metrics = run_simulation(terms)
    assert len(schedule) == 3
    assert metrics.amortizing_periods == 0
    assert metrics.base_installment == 0


def test_grace_rows_without_grace_mode_are_pass_through(housing_terms):
    terms = replace(housing_terms, grace_mode=GraceMode.NONE, grace_months=2, monthly_insurance=45)
    rate = periodic_rate(terms.rate_mode, terms.annual_rate)
    schedule = build_schedule(terms, rate)
    for row in schedule[:2]:
        assert (row.installment, row.interest, row.principal_paid, row.insurance) == (0, 0, 0, 0)
        assert row.balance == 150_000
    assert len(schedule) == 240


def test_zero_term_gives_empty_schedule(housing_terms):
    terms = replace(housing_terms, term_months=0)
    schedule, metrics = run_simulation(terms)
    assert schedule == []
    assert metrics.total_paid == 0
    assert metrics.base_installment == 0
    assert metrics.periodic_irr is None
    assert metrics.annualized_cost_rate is None


def test_zero_rate_is_degenerate_not_an_error(short_terms):
    terms = replace(short_terms, annual_rate=0.0)
    schedule, metrics = run_simulation(terms)
    assert len(schedule) == 12
    assert metrics.base_installment == 0
    assert all(row.interest == 0 and row.principal_paid == 0 for row in schedule)
    assert schedule[-1].balance == 10_000


def test_base_installment_formula():
    assert base_installment(10_000, 0.01, 12) == pytest.approx(888.4879, abs=1e-4)
    assert base_installment(10_000, 0.0, 12) == 0
    assert base_installment(10_000, 0.01, 0) == 0


def test_bonus_larger_than_principal_floors_at_zero(short_terms):
    assert net_principal(replace(short_terms, bonus=50_000)) == 0


def test_row_dates_step_by_30_360_months():
    terms = LoanTerms(
        principal=1000,
        term_months=3,
        disbursement_date=date(2025, 1, 31),
        annual_rate=0.1,
    )
    schedule = build_schedule(terms, 0.01)
    assert [row.date for row in schedule] == [date(2025, 2, 28), date(2025, 3, 30), date(2025, 4, 30)]


def test_client_cashflows(short_terms):
    terms = replace(short_terms, upfront_fees=150, monthly_insurance=10)
    rate = periodic_rate(terms.rate_mode, terms.annual_rate, terms.compounding_per_year)
    schedule = build_schedule(terms, rate)
    cashflows = build_client_cashflows(schedule, net_principal(terms), terms.upfront_fees)

    assert len(cashflows) == len(schedule) + 1
    assert cashflows[0] == 9_850
    assert cashflows[1:] == [-row.installment for row in schedule]


def test_metrics_without_costs_match_the_contract_rate(short_terms):
    _, metrics = run_simulation(short_terms)
    assert metrics.periodic_irr == pytest.approx(0.01, abs=1e-8)
    assert metrics.annualized_cost_rate == pytest.approx(0.12682503, abs=1e-6)
    assert metrics.total_interest == pytest.approx(metrics.total_paid - 10_000)


def test_fees_and_insurance_raise_the_cost_rate(short_terms):
    _, plain = run_simulation(short_terms)
    _, loaded = run_simulation(replace(short_terms, upfront_fees=200, monthly_insurance=15))
    assert loaded.annualized_cost_rate > plain.annualized_cost_rate
    assert loaded.total_insurance == pytest.approx(180)


def test_npv_uses_the_discount_rate(short_terms):
    _, undiscounted = run_simulation(short_terms)
    # at COK 0 the NPV is the plain sum of the client flows
    assert undiscounted.npv == pytest.approx(10_000 - undiscounted.total_paid)

    _, at_contract_rate = run_simulation(replace(short_terms, discount_rate_annual=0.12682503))
    assert at_contract_rate.npv == pytest.approx(0.0, abs=1e-3)


def test_long_loans_have_no_cost_rate(housing_terms):
    # 240 monthly flows make the NPV at the -0.9999 bracket end overflow,
    # so the solver reports that no rate is available
    _, metrics = run_simulation(housing_terms)
    assert metrics.periodic_irr is None
    assert metrics.annualized_cost_rate is None
    assert math.isfinite(metrics.npv)


def test_pipeline_is_idempotent(housing_terms):
    terms = replace(housing_terms, grace_mode=GraceMode.PARTIAL, grace_months=6, upfront_fees=500, monthly_insurance=45)
    first = run_simulation(terms)
    second = run_simulation(terms)
    assert first == second
