"""Output helpers for the loan cost simulator.

This module renders schedules and metrics as plain text tables, maps schedule
rows to flat records and serializes a schedule to delimited text. Rounding
happens here and nowhere else; the engine hands over full precision values.
"""

from __future__ import annotations

import csv
import io
import math
from typing import Dict, Iterable, List, Optional, Sequence

from .config import (
    CURRENCY_OPTIONS,
    DEFAULT_DECIMALS,
    MISSING_VALUE,
    SCHEDULE_CSV_HEADER,
)
from .data_models import AmortizationRow, Metrics


def _is_number(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value)


def format_money(currency: str, value: Optional[float]) -> str:
    """Format an amount with the currency prefix, e.g. ``S/ 1,234.56``.

    Missing or non-finite values are shown as a dash.
    """
    if not _is_number(value):
        return MISSING_VALUE
    meta = CURRENCY_OPTIONS.get(currency.upper())
    prefix = meta["prefix"] if meta else f"{currency} "
    return f"{prefix}{value:,.2f}"


def format_percent(value: Optional[float], decimals: int = 3) -> str:
    if not _is_number(value):
        return MISSING_VALUE
    return f"{value * 100:.{decimals}f}%"


def schedule_records(schedule: Iterable[AmortizationRow]) -> List[Dict[str, object]]:
    """Return the schedule as a list of flat dictionaries (full precision)."""
    return [row.to_record() for row in schedule]


def _csv_number(value: float, decimals: Optional[int]) -> str:
    if decimals is None:
        return repr(float(value))
    return f"{value:.{decimals}f}"


def schedule_to_csv(schedule: Iterable[AmortizationRow], decimals: Optional[int] = DEFAULT_DECIMALS) -> str:
    """Serialize the schedule as comma separated text.

    The first line is the header ``Periodo,Fecha,Cuota,Interés,Amortización,
    Seguro,Saldo``; each row follows in that order and every line ends with a
    newline. ``decimals=None`` keeps full precision.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(SCHEDULE_CSV_HEADER)
    for row in schedule:
        writer.writerow(
            [
                row.period,
                row.date.isoformat(),
                _csv_number(row.installment, decimals),
                _csv_number(row.interest, decimals),
                _csv_number(row.principal_paid, decimals),
                _csv_number(row.insurance, decimals),
                _csv_number(row.balance, decimals),
            ]
        )
    return buffer.getvalue()


def print_summary(metrics: Metrics, currency: str) -> None:
    """Print the metrics block in a human-readable format."""
    print("Summary")
    print("-" * 72)
    print(f"Periodic rate (monthly) : {format_percent(metrics.periodic_rate, 4)}")
    print(f"Amortizing periods      : {metrics.amortizing_periods}")
    print(f"Net principal           : {format_money(currency, metrics.net_principal)}")
    print(f"Base installment        : {format_money(currency, metrics.base_installment)}")
    print(f"Total paid              : {format_money(currency, metrics.total_paid)}")
    print(f"Total interest          : {format_money(currency, metrics.total_interest)}")
    print(f"Total insurance         : {format_money(currency, metrics.total_insurance)}")
    print(f"NPV (client, at COK)    : {format_money(currency, metrics.npv)}")
    print(f"Annual cost rate (TCEA) : {format_percent(metrics.annualized_cost_rate)}")
    print("-" * 72)


def print_schedule(schedule: Iterable[AmortizationRow], currency: str) -> None:
    """Print the amortization schedule as a simple table."""
    headers = ["Period", "Date", "Installment", "Interest", "Principal", "Insurance", "Balance"]
    print("\t".join(headers))
    for row in schedule:
        print(
            "\t".join(
                [
                    str(row.period),
                    row.date.isoformat(),
                    format_money(currency, row.installment),
                    format_money(currency, row.interest),
                    format_money(currency, row.principal_paid),
                    format_money(currency, row.insurance),
                    format_money(currency, row.balance),
                ]
            )
        )


def print_comparison(m1: Metrics, m2: Metrics) -> None:
    """Print two metric blocks side by side.

    The difference column is scenario2 - scenario1; a negative value means the
    second scenario is cheaper. Rates are shown in percent.
    """
    print("Comparison")
    print("=" * 72)
    print(f"{'Metric':22s} {'Scenario1':>15s} {'Scenario2':>15s} {'Difference':>15s}")
    keys: Sequence[str] = (
        "base_installment",
        "total_paid",
        "total_interest",
        "npv",
        "annualized_cost_rate",
    )
    for key in keys:
        v1 = getattr(m1, key)
        v2 = getattr(m2, key)
        scale = 100 if key == "annualized_cost_rate" else 1
        cells = []
        for value in (v1, v2):
            cells.append(f"{value * scale:15.2f}" if _is_number(value) else f"{MISSING_VALUE:>15s}")
        if _is_number(v1) and _is_number(v2):
            cells.append(f"{(v2 - v1) * scale:15.2f}")
        else:
            cells.append(f"{MISSING_VALUE:>15s}")
        print(f"{key:22s} " + " ".join(cells))
    print("=" * 72)
