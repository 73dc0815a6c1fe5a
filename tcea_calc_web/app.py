import logging
import os
from dataclasses import replace

import click
from flask import Flask, Response, jsonify, request

from tcea_calc.config import CURRENCY_OPTIONS, PREVIEW_ROWS
from tcea_calc.engine import run_simulation
from tcea_calc.formatter import schedule_records, schedule_to_csv
from tcea_calc.main import build_terms_from_options, json_safe

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config["ASSET_VERSION"] = os.environ.get("ASSET_VERSION", "1")
app.config["MAX_TERM_MONTHS"] = int(os.environ.get("TCEA_MAX_TERM_MONTHS", "600"))
app.config["PREVIEW_ROWS"] = int(os.environ.get("TCEA_PREVIEW_ROWS", str(PREVIEW_ROWS)))
app.config["RUN_HOST"] = os.environ.get("TCEA_HOST", "127.0.0.1")
app.config["RUN_DEBUG"] = os.environ.get("TCEA_DEBUG") == "1"


class PayloadError(ValueError):
    """Raised when a request body cannot be turned into loan terms."""


def _field(payload: dict, name: str, default=None):
    value = payload.get(name, default)
    if value is None or value == "":
        return default
    return str(value)


def _int_field(payload: dict, name: str, default: int = 0) -> int:
    raw = payload.get(name, default)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise PayloadError(f"Field '{name}' must be an integer") from exc


def _rate_field(payload: dict, name: str) -> float:
    """Read a rate as a fraction, exactly as given (1.2 means 120 %)."""
    raw = payload.get(name)
    if raw in (None, ""):
        return 0.0
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise PayloadError(f"Field '{name}' must be a number") from exc


def _payload_to_terms(payload: dict):
    for required in ("principal", "term_months", "disbursement_date", "annual_rate"):
        if payload.get(required) in (None, ""):
            raise PayloadError(f"Missing required field '{required}'")
    term = _int_field(payload, "term_months")
    if term > app.config["MAX_TERM_MONTHS"]:
        raise PayloadError(f"term_months must not exceed {app.config['MAX_TERM_MONTHS']}")
    currency = (_field(payload, "currency", "PEN") or "PEN").upper()
    if currency not in CURRENCY_OPTIONS:
        currency = "PEN"
    compounding = payload.get("compounding_per_year")
    annual_rate = _rate_field(payload, "annual_rate")
    discount_rate = _rate_field(payload, "discount_rate_annual")
    try:
        terms = build_terms_from_options(
            principal=_field(payload, "principal"),
            term=term,
            start_date=_field(payload, "disbursement_date"),
            rate="0",
            rate_mode=_field(payload, "rate_mode", "effective"),
            compounding=_int_field(payload, "compounding_per_year") if compounding not in (None, "") else None,
            grace_mode=_field(payload, "grace_mode", "none"),
            grace_months=_int_field(payload, "grace_months"),
            bonus=_field(payload, "bonus"),
            fees=_field(payload, "upfront_fees"),
            insurance=_field(payload, "monthly_insurance"),
            currency=currency,
        )
    except click.ClickException as exc:
        raise PayloadError(exc.format_message()) from exc
    return replace(terms, annual_rate=annual_rate, discount_rate_annual=discount_rate)


def _request_payload() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        payload = request.form.to_dict()
    if not isinstance(payload, dict):
        raise PayloadError("Request body must be a JSON object")
    return payload


@app.errorhandler(PayloadError)
def handle_payload_error(exc: PayloadError):
    logger.info("Rejected simulation request: %s", exc)
    return jsonify({"error": str(exc)}), 400


@app.get("/health")
def health():
    return jsonify({"status": "ok", "asset_version": app.config["ASSET_VERSION"]})


@app.post("/api/simulate")
def simulate():
    """Run a simulation and return the metrics with the schedule rows.

    Rates in the body are fractions (0.085 for 8.5 %). Unless ``full=1`` is
    passed, only the first rows of the schedule are returned.
    """
    terms = _payload_to_terms(_request_payload())
    schedule, metrics = run_simulation(terms)
    records = schedule_records(schedule)
    body = {"currency": terms.currency, "summary": metrics.to_dict()}
    preview_rows = app.config["PREVIEW_ROWS"]
    if request.args.get("full") == "1" or len(records) <= preview_rows:
        body["schedule"] = records
    else:
        body["schedule"] = records[:preview_rows]
        body["truncated"] = len(records) - preview_rows
    return jsonify(json_safe(body))


@app.post("/api/schedule.csv")
def schedule_csv():
    """Return the whole schedule as a CSV attachment."""
    terms = _payload_to_terms(_request_payload())
    schedule, _ = run_simulation(terms)
    return Response(
        schedule_to_csv(schedule, decimals=None),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=cronograma.csv"},
    )


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    print("Starting loan cost simulator API...")
    app.run(host=app.config["RUN_HOST"], port=8710, debug=app.config["RUN_DEBUG"])
