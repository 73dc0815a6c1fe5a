from datetime import date

import pytest

from tcea_calc.data_models import GraceMode, LoanTerms, RateMode


@pytest.fixture
def housing_terms():
    """20-year housing loan with a 30k bono, no grace, no fees."""
    return LoanTerms(
        principal=180_000,
        term_months=240,
        disbursement_date=date(2025, 11, 1),
        annual_rate=0.085,
        rate_mode=RateMode.EFFECTIVE,
        grace_mode=GraceMode.NONE,
        grace_months=0,
        bonus=30_000,
    )


@pytest.fixture
def short_terms():
    """One-year loan at 12 % nominal (1 % a month)."""
    return LoanTerms(
        principal=10_000,
        term_months=12,
        disbursement_date=date(2025, 1, 15),
        annual_rate=0.12,
        rate_mode=RateMode.NOMINAL,
        compounding_per_year=12,
    )
