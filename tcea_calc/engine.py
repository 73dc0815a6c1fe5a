"""Core calculation engine for the loan cost simulator.

This module implements the French (constant installment) amortization method
with 30/360 month stepping, optional grace periods, a subsidy deducted from
the principal, upfront fees and a flat monthly insurance charge. Each stage is
a plain function taking the previous stage's output:

    periodic_rate -> build_schedule -> build_client_cashflows -> metrics

``run_simulation`` chains them and returns the schedule together with a
``Metrics`` block. Nothing is cached between calls.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .config import DEFAULT_COMPOUNDING_PER_YEAR, MONTHS_PER_YEAR
from .data_models import AmortizationRow, GraceMode, LoanTerms, Metrics, RateMode
from .utils import add_months_30_360
from .valuation import annualize_cost_rate, discount_periodic, npv, solve_periodic_irr

logger = logging.getLogger(__name__)


def periodic_rate(
    rate_mode: RateMode,
    annual_rate: float,
    compounding_per_year: Optional[int] = None,
) -> float:
    """Return the effective monthly rate implied by an annual rate.

    A nominal rate is split evenly over ``compounding_per_year`` periods
    (12 when missing or not positive). An effective annual rate is converted
    with ``(1 + r) ** (1/12) - 1``; rates below -100 % give ``nan``.
    """
    if RateMode(rate_mode) is RateMode.NOMINAL:
        if not compounding_per_year or compounding_per_year <= 0:
            compounding_per_year = DEFAULT_COMPOUNDING_PER_YEAR
        return annual_rate / compounding_per_year
    with np.errstate(all="ignore"):
        return float(np.power(np.float64(1.0) + annual_rate, 1.0 / MONTHS_PER_YEAR) - 1.0)


def net_principal(terms: LoanTerms) -> float:
    """Principal left to finance once the subsidy (bono) is applied."""
    return max(0.0, terms.principal - terms.bonus)


def amortizing_periods(terms: LoanTerms) -> int:
    return max(0, terms.term_months - terms.grace_months)


def base_installment(balance: float, rate: float, periods: int) -> float:
    """Return the constant installment (insurance excluded) for ``balance``.

    The formula is:

        A = B * i / (1 - (1 + i) ** -n)

    Zero when there is no positive rate or nothing to amortize.
    """
    if not rate > 0 or periods <= 0:
        return 0.0
    return (balance * rate) / (1 - (1 + rate) ** (-periods))


def _grace_rows(terms: LoanTerms, rate: float) -> Tuple[List[AmortizationRow], float]:
    """Build the grace rows and return them with the balance left after grace."""
    grace_mode = GraceMode(terms.grace_mode)
    balance = net_principal(terms)
    rows: List[AmortizationRow] = []
    for period in range(1, min(max(0, terms.grace_months), terms.term_months) + 1):
        interest = installment = insurance = 0.0
        if grace_mode is GraceMode.PARTIAL:
            interest = balance * rate
            insurance = terms.monthly_insurance
            installment = interest + insurance
        elif grace_mode is GraceMode.TOTAL:
            interest = balance * rate
            balance += interest  # capitalized
        rows.append(
            AmortizationRow(
                period=period,
                date=add_months_30_360(terms.disbursement_date, period),
                installment=installment,
                interest=interest,
                principal_paid=0.0,
                insurance=insurance,
                balance=max(0.0, balance),
            )
        )
    return rows, balance


def build_schedule_with_installment(terms: LoanTerms, rate: float) -> Tuple[List[AmortizationRow], float]:
    """Compute the schedule and the base installment used for its amortizing rows.

    Grace rows come first, followed by the amortizing rows. The installment of
    the amortizing phase is computed once, from the balance left after grace.
    The running balance is never rounded or clamped between periods; only the
    value stored in each row is floored at zero.
    """
    if terms.term_months <= 0:
        return [], 0.0

    schedule, balance = _grace_rows(terms, rate)
    first_period = len(schedule)
    n = amortizing_periods(terms)
    installment = base_installment(balance, rate, n)
    logger.debug(
        "Schedule: %d grace rows, %d amortizing rows, base installment %s",
        first_period,
        n,
        installment,
    )
    for k in range(1, n + 1):
        period = first_period + k
        interest = balance * rate
        principal_paid = installment - interest
        balance -= principal_paid
        schedule.append(
            AmortizationRow(
                period=period,
                date=add_months_30_360(terms.disbursement_date, period),
                installment=installment + terms.monthly_insurance,
                interest=interest,
                principal_paid=principal_paid,
                insurance=terms.monthly_insurance,
                balance=max(0.0, balance),
            )
        )
    return schedule, installment


def build_schedule(terms: LoanTerms, rate: float) -> List[AmortizationRow]:
    """Compute the amortization schedule for ``terms`` at the monthly ``rate``."""
    schedule, _ = build_schedule_with_installment(terms, rate)
    return schedule


def build_client_cashflows(
    schedule: Sequence[AmortizationRow],
    net_principal_amount: float,
    upfront_fees: float,
) -> List[float]:
    """Return the client's signed cash flows.

    Index 0 is what the client actually receives (net principal less fees);
    index ``t`` is the installment of period ``t`` as an outflow.
    """
    cashflows = [net_principal_amount - upfront_fees]
    cashflows.extend(-row.installment for row in schedule)
    return cashflows


def compute_metrics(
    terms: LoanTerms,
    schedule: Sequence[AmortizationRow],
    rate: float,
    installment: float,
) -> Metrics:
    """Derive the summary metrics of a schedule.

    ``installment`` is the base installment (insurance excluded) the schedule
    was built with. The NPV is taken at the monthly equivalent of the annual
    discount rate (COK). When the IRR cannot be solved, both ``periodic_irr``
    and ``annualized_cost_rate`` are ``None``.
    """
    principal = net_principal(terms)
    cashflows = build_client_cashflows(schedule, principal, terms.upfront_fees)

    irr = solve_periodic_irr(cashflows)
    discount = discount_periodic(terms.discount_rate_annual)
    if irr is None:
        logger.info("No IRR for the client cash flows; cost rate unavailable")

    return Metrics(
        periodic_rate=rate,
        amortizing_periods=amortizing_periods(terms),
        net_principal=principal,
        base_installment=installment,
        total_paid=sum(row.installment for row in schedule),
        total_interest=sum(row.interest for row in schedule),
        total_insurance=sum(row.insurance for row in schedule),
        npv=npv(discount, cashflows),
        periodic_irr=irr,
        annualized_cost_rate=annualize_cost_rate(irr),
    )


def run_simulation(terms: LoanTerms) -> Tuple[List[AmortizationRow], Metrics]:
    """Run the whole pipeline for ``terms``.

    Returns
    -------
    schedule: List[AmortizationRow]
        One row per month, ``term_months`` rows in total.
    metrics: Metrics
        Totals, NPV at the COK, periodic IRR and annualized cost rate.
    """
    rate = periodic_rate(terms.rate_mode, terms.annual_rate, terms.compounding_per_year)
    schedule, installment = build_schedule_with_installment(terms, rate)
    metrics = compute_metrics(terms, schedule, rate, installment)
    logger.debug("Simulation done: %d rows, IRR %s", len(schedule), metrics.periodic_irr)
    return schedule, metrics
