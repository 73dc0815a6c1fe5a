"""Valuation routines: net present value, internal rate of return and rate
conversions between monthly and annual terms.

The functions here never raise on numeric edge cases. Overflow, underflow and
division by zero come back as ``inf``/``nan`` (NumPy semantics) and it is up
to the caller to check ``math.isfinite`` before displaying a value.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Sequence

import numpy as np

from .config import (
    IRR_BRACKET_STEP,
    IRR_LOWER_BOUND,
    IRR_MAX_EXPANSIONS,
    IRR_MAX_ITERATIONS,
    IRR_TOLERANCE,
    IRR_UPPER_BOUND,
    MONTHS_PER_YEAR,
)

logger = logging.getLogger(__name__)


def npv(rate: float, cashflows: Sequence[float]) -> float:
    """Return ``sum(cf[t] / (1 + rate) ** t)`` for ``t = 0..len - 1``.

    ``rate <= -1`` is not rejected; it yields a non-finite result.
    """
    flows = np.asarray(cashflows, dtype=float)
    periods = np.arange(flows.size)
    with np.errstate(all="ignore"):
        discount = np.power(np.float64(1.0) + rate, periods)
        return float(np.sum(flows / discount))


def discount_periodic(annual_rate: float) -> float:
    """Convert an effective annual rate into the equivalent monthly rate."""
    with np.errstate(all="ignore"):
        return float(np.power(np.float64(1.0) + annual_rate, 1.0 / MONTHS_PER_YEAR) - 1.0)


def annualize_cost_rate(periodic_irr: Optional[float]) -> Optional[float]:
    """Compound a monthly IRR into an annual rate; ``None`` stays ``None``."""
    if periodic_irr is None:
        return None
    with np.errstate(all="ignore"):
        return float(np.power(np.float64(1.0) + periodic_irr, MONTHS_PER_YEAR) - 1.0)


def solve_periodic_irr(cashflows: Sequence[float]) -> Optional[float]:
    """Find the periodic rate at which the NPV of ``cashflows`` is zero.

    Bisection over ``[-0.9999, 2.0]``. When both ends share a sign the upper
    bound is pushed out one unit at a time, at most 20 times. Returns ``None``
    when an end of the bracket is not finite or no sign change can be found.
    If 100 halvings do not bring ``|npv|`` under the tolerance, the last
    midpoint is returned as the best approximation.

    A series without any nonzero flow has no defined rate and gives ``None``.
    """
    if not any(cashflows):
        logger.info("All cash flows are zero; no IRR")
        return None

    a, b = IRR_LOWER_BOUND, IRR_UPPER_BOUND
    fa, fb = npv(a, cashflows), npv(b, cashflows)
    if not (math.isfinite(fa) and math.isfinite(fb)):
        logger.warning("IRR bracket is not finite (f(%s)=%s, f(%s)=%s)", a, fa, b, fb)
        return None

    expansions = 0
    while fa * fb > 0 and expansions < IRR_MAX_EXPANSIONS:
        b += IRR_BRACKET_STEP
        fb = npv(b, cashflows)
        expansions += 1
        if not math.isfinite(fb):
            break
    if not fa * fb <= 0:
        logger.warning("No sign change found for IRR after %d expansions", expansions)
        return None

    for _ in range(IRR_MAX_ITERATIONS):
        m = (a + b) / 2
        fm = npv(m, cashflows)
        if abs(fm) < IRR_TOLERANCE:
            logger.debug("IRR converged at %s", m)
            return m
        if fa * fm < 0:
            b, fb = m, fm
        else:
            a, fa = m, fm
    logger.debug("IRR iteration budget exhausted, returning midpoint")
    return (a + b) / 2
