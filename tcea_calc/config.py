"""Defaults and numeric constants for the simulator.

All tuneable values live here so there is a single place to adjust them.
"""

from __future__ import annotations

from typing import Dict, Tuple

# Rates

DEFAULT_COMPOUNDING_PER_YEAR: int = 12
MONTHS_PER_YEAR: int = 12

# 30/360 convention: no month produces a day beyond this one
MAX_DAY_OF_MONTH: int = 30

# IRR bisection. The bracket assumes credit-style flows: one inflow at t=0
# followed by smaller outflows.

IRR_LOWER_BOUND: float = -0.9999
IRR_UPPER_BOUND: float = 2.0
IRR_BRACKET_STEP: float = 1.0
IRR_MAX_EXPANSIONS: int = 20
IRR_MAX_ITERATIONS: int = 100
IRR_TOLERANCE: float = 1e-9

# Presentation

SCHEDULE_CSV_HEADER: Tuple[str, ...] = (
    "Periodo",
    "Fecha",
    "Cuota",
    "Interés",
    "Amortización",
    "Seguro",
    "Saldo",
)
DEFAULT_DECIMALS: int = 2
PREVIEW_ROWS: int = 120
MISSING_VALUE: str = "—"

CURRENCY_OPTIONS: Dict[str, Dict[str, str]] = {
    "PEN": {"label": "Peruvian sol", "prefix": "S/ "},
    "USD": {"label": "US dollar", "prefix": "$ "},
}
DEFAULT_CURRENCY: str = "PEN"
