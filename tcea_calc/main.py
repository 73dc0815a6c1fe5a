"""Command-line interface for the loan cost simulator.

This module uses the ``click`` library to implement a multi-command
interface. Users can compute full amortization schedules, view the metrics
block (TCEA, NPV, totals) or compare two loan scenarios. Results can be
printed to the terminal or exported to JSON/CSV files.
"""

from __future__ import annotations

import json
import logging
import math
import shlex
from pathlib import Path
from typing import Any, Callable, List, Optional

import click

from .config import CURRENCY_OPTIONS, DEFAULT_CURRENCY, PREVIEW_ROWS
from .data_models import AmortizationRow, GraceMode, LoanTerms, Metrics, RateMode
from .engine import run_simulation
from .formatter import print_comparison, print_schedule, print_summary, schedule_records, schedule_to_csv
from .utils import parse_amount, parse_iso_date, parse_rate


def _parse_or_fail(parser: Callable[[str], Any], value: str, label: str) -> Any:
    try:
        return parser(value)
    except ValueError as exc:
        raise click.BadParameter(f"Invalid {label}: {value}") from exc


def build_terms_from_options(
    principal: str,
    term: int,
    start_date: str,
    rate: str,
    rate_mode: str = "effective",
    compounding: Optional[int] = None,
    grace_mode: str = "none",
    grace_months: int = 0,
    bonus: Optional[str] = None,
    fees: Optional[str] = None,
    insurance: Optional[str] = None,
    cok: Optional[str] = None,
    currency: str = DEFAULT_CURRENCY,
) -> LoanTerms:
    """Turn raw option strings into a ``LoanTerms`` record.

    Raises ``click.BadParameter`` for values that cannot be parsed. Ranges are
    not checked: the engine accepts whatever it is given.
    """
    try:
        mode = RateMode(rate_mode.lower())
        grace = GraceMode(grace_mode.lower())
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc
    return LoanTerms(
        principal=_parse_or_fail(parse_amount, principal, "principal"),
        term_months=term,
        disbursement_date=_parse_or_fail(parse_iso_date, start_date, "disbursement date"),
        annual_rate=_parse_or_fail(parse_rate, rate, "rate"),
        rate_mode=mode,
        compounding_per_year=compounding,
        grace_mode=grace,
        grace_months=grace_months,
        bonus=_parse_or_fail(parse_amount, bonus, "bonus") if bonus else 0.0,
        upfront_fees=_parse_or_fail(parse_amount, fees, "fees") if fees else 0.0,
        monthly_insurance=_parse_or_fail(parse_amount, insurance, "insurance") if insurance else 0.0,
        discount_rate_annual=_parse_or_fail(parse_rate, cok, "COK") if cok else 0.0,
        currency=currency.upper(),
    )


def json_safe(value: Any) -> Any:
    """Replace non-finite floats with ``None`` so the output is valid JSON."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {k: json_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [json_safe(v) for v in value]
    return value


def export_to_json(path: Path, schedule: List[AmortizationRow], metrics: Metrics) -> None:
    """Export schedule and metrics to a JSON file."""
    data = {"summary": metrics.to_dict(), "schedule": schedule_records(schedule)}
    with path.open("w", encoding="utf-8") as f:
        json.dump(json_safe(data), f, indent=2)


def export_to_csv(path: Path, schedule: List[AmortizationRow]) -> None:
    """Export schedule to a CSV file, numbers at full precision."""
    with path.open("w", newline="", encoding="utf-8") as f:
        f.write(schedule_to_csv(schedule, decimals=None))


def loan_options(func: Callable) -> Callable:
    """Attach the options describing a loan to a command."""
    options = [
        click.option("--principal", "-p", "principal", required=True, help="Amount requested, before the bono (e.g. 180k)"),
        click.option("--term", "-t", "term", required=True, type=int, help="Loan term in months"),
        click.option("--start-date", "-s", "start_date", required=True, help="Disbursement date (YYYY-MM-DD)"),
        click.option("--rate", "-r", "rate", required=True, help="Annual rate, percent (8.5) or fraction (0.085)"),
        click.option("--rate-mode", "rate_mode", type=click.Choice([m.value for m in RateMode]), default="effective", help="How to read the annual rate"),
        click.option("--compounding", "compounding", type=int, default=None, help="Compounding periods per year (nominal rates only)"),
        click.option("--grace-mode", "grace_mode", type=click.Choice([m.value for m in GraceMode]), default="none", help="Grace treatment"),
        click.option("--grace-months", "grace_months", type=int, default=0, help="Number of leading grace months"),
        click.option("--bonus", "bonus", help="Subsidy (bono) deducted from the principal"),
        click.option("--fees", "fees", help="Upfront fees deducted from the disbursement"),
        click.option("--insurance", "insurance", help="Flat monthly insurance charge"),
        click.option("--cok", "cok", help="Annual discount rate (COK) for the NPV"),
        click.option("--currency", "currency", type=click.Choice(sorted(CURRENCY_OPTIONS)), default=DEFAULT_CURRENCY, help="Display currency"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.option(
    "--log-level",
    "log_level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Logging verbosity",
)
def cli(log_level: str) -> None:
    """A command-line simulator for French-method loans and their TCEA."""
    logging.basicConfig(level=getattr(logging, log_level.upper()), format="%(levelname)s %(name)s: %(message)s")


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def schedule(output: Optional[str], **options: Any) -> None:
    """Compute and print the full amortization schedule."""
    terms = build_terms_from_options(**options)
    schedule_rows, metrics = run_simulation(terms)
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_to_json(path, schedule_rows, metrics)
        elif path.suffix.lower() == ".csv":
            export_to_csv(path, schedule_rows)
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        click.echo(f"Schedule exported to {path}")
        return

    print_summary(metrics, terms.currency)
    # Limit schedule length printed to avoid flooding the terminal
    if len(schedule_rows) > PREVIEW_ROWS:
        click.echo(f"Schedule has {len(schedule_rows)} rows; showing first {PREVIEW_ROWS} rows.")
        print_schedule(schedule_rows[:PREVIEW_ROWS], terms.currency)
    else:
        print_schedule(schedule_rows, terms.currency)


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json)")
def summary(output: Optional[str], **options: Any) -> None:
    """Compute and print only the metrics for a loan."""
    terms = build_terms_from_options(**options)
    _, metrics = run_simulation(terms)
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Summary export must use .json extension")
        with path.open("w", encoding="utf-8") as f:
            json.dump(json_safe({"summary": metrics.to_dict()}), f, indent=2)
        click.echo(f"Summary exported to {path}")
    else:
        print_summary(metrics, terms.currency)


@click.command(add_help_option=False)
@loan_options
def _scenario(**options: Any) -> None:
    """Option parser for the quoted scenarios of ``compare``."""


def parse_scenario(opts: str) -> LoanTerms:
    """Parse a quoted option string such as ``"-p 180k -t 240 -s 2025-11-01 -r 8.5"``."""
    try:
        ctx = _scenario.make_context("scenario", shlex.split(opts))
    except click.ClickException as exc:
        raise click.BadParameter(f"Invalid scenario '{opts}': {exc.format_message()}") from exc
    return build_terms_from_options(**ctx.params)


@cli.command()
@click.option("--scenario1", "scenario1", required=True, help="First scenario options quoted string")
@click.option("--scenario2", "scenario2", required=True, help="Second scenario options quoted string")
def compare(scenario1: str, scenario2: str) -> None:
    """Compare two loan scenarios.

    Scenarios are provided as quoted option strings, for example:

        tcea-calc compare --scenario1 "-p 180k -t 240 -s 2025-11-01 -r 8.5"
                          --scenario2 "-p 180k -t 240 -s 2025-11-01 -r 8.5 --bonus 30k"
    """
    _, metrics1 = run_simulation(parse_scenario(scenario1))
    _, metrics2 = run_simulation(parse_scenario(scenario2))
    print_comparison(metrics1, metrics2)


if __name__ == "__main__":
    cli()
