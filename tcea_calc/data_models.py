"""Data models for the loan cost simulator.

This module defines the dataclasses used by the simulator: the loan terms
supplied by the caller, the rows of the amortization schedule and the metrics
block derived from them. All of them are frozen value objects; a new set is
built on every computation.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from enum import Enum
from typing import Dict, Optional


class RateMode(str, Enum):
    """How ``annual_rate`` should be read."""

    NOMINAL = "nominal"
    EFFECTIVE = "effective"


class GraceMode(str, Enum):
    """Treatment of the leading grace periods.

    ``partial`` means the client pays interest (plus insurance) only;
    ``total`` means nothing is paid and the interest is capitalized.
    """

    NONE = "none"
    PARTIAL = "partial"
    TOTAL = "total"


@dataclass(frozen=True)
class LoanTerms:
    """Inputs of one simulation.

    Rates are fractions (``0.085`` means 8.5 %). The currency is only a
    display tag. No range checks are made here: out-of-range values flow
    through the arithmetic and show up as degenerate or non-finite results.
    """

    principal: float
    term_months: int
    disbursement_date: date
    annual_rate: float
    rate_mode: RateMode = RateMode.EFFECTIVE
    compounding_per_year: Optional[int] = 12  # only used for nominal rates
    grace_mode: GraceMode = GraceMode.NONE
    grace_months: int = 0
    bonus: float = 0.0
    upfront_fees: float = 0.0
    monthly_insurance: float = 0.0
    discount_rate_annual: float = 0.0  # COK, only used for the NPV
    currency: str = "PEN"


@dataclass(frozen=True)
class AmortizationRow:
    """One month of the schedule.

    Values are kept at full precision; rounding is left to whoever displays
    or exports the row.
    """

    period: int
    date: date
    installment: float
    interest: float
    principal_paid: float
    insurance: float
    balance: float

    def to_record(self) -> Dict[str, object]:
        return {
            "period": self.period,
            "date": self.date.isoformat(),
            "installment": self.installment,
            "interest": self.interest,
            "principal_paid": self.principal_paid,
            "insurance": self.insurance,
            "balance": self.balance,
        }


@dataclass(frozen=True)
class Metrics:
    """Summary figures for a schedule.

    ``periodic_irr`` and ``annualized_cost_rate`` are ``None`` when no
    internal rate of return could be found for the client cash flows.
    """

    periodic_rate: float
    amortizing_periods: int
    net_principal: float
    base_installment: float
    total_paid: float
    total_interest: float
    total_insurance: float
    npv: float
    periodic_irr: Optional[float]
    annualized_cost_rate: Optional[float]

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)
