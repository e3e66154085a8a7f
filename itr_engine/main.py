"""
main.py — itr-engine command-line entry point.

    itr-engine compare request.json            # ComparisonResult as JSON on stdout
    itr-engine compare - < request.json        # read the request from stdin
    itr-engine compare request.json --financial-year 2023-24
    itr-engine years                           # financial years with configured rules

Exit status: 0 on success, 1 on a validation or configuration error (the error
envelope is printed on stdout).
"""
import argparse
import json
import logging
import sys
from typing import Any, Optional, Sequence

from itr_engine.config import settings
from itr_engine.errors import EngineError, ValidationError, to_error_response
from itr_engine.evaluator.tax_engine import compare_regimes
from itr_engine.rules.loader import registry

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s — %(message)s",
        stream=sys.stderr,
    )


def _read_payload(source: str) -> Any:
    try:
        if source == "-":
            return json.load(sys.stdin)
        with open(source, "r", encoding="utf-8") as fh:
            return json.load(fh)
    except OSError as exc:
        raise ValidationError(
            f"Cannot read request file: {exc.strerror}",
            details=[{"field": None, "issue": str(exc)}],
        ) from exc
    except json.JSONDecodeError as exc:
        raise ValidationError(
            "Request is not valid JSON",
            details=[{"field": None, "issue": f"line {exc.lineno} column {exc.colno}: {exc.msg}"}],
        ) from exc


def _cmd_compare(args: argparse.Namespace) -> int:
    payload = _read_payload(args.request)
    if not isinstance(payload, dict):
        raise ValidationError(
            "Request must be a JSON object",
            details=[{"field": None, "issue": f"got {type(payload).__name__}"}],
        )
    if args.financial_year:
        payload["financial_year"] = args.financial_year
    result = compare_regimes(payload)
    print(result.model_dump_json(indent=args.indent))
    return 0


def _cmd_years(args: argparse.Namespace) -> int:
    for year in registry.available_years():
        marker = " (default)" if year == settings.default_financial_year else ""
        print(f"{year}{marker}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="itr-engine",
        description="Compare old and new regime income tax for a financial year.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {settings.app_version}")
    sub = parser.add_subparsers(dest="command", required=True)

    compare = sub.add_parser("compare", help="Compute both regimes and recommend one.")
    compare.add_argument("request", help="Path to a request JSON file, or - for stdin.")
    compare.add_argument("--financial-year", help="Override the request's financial year, e.g. 2024-25.")
    compare.add_argument("--indent", type=int, default=2, help="JSON indent (default: 2).")
    compare.set_defaults(handler=_cmd_compare)

    years = sub.add_parser("years", help="List financial years with configured rules.")
    years.set_defaults(handler=_cmd_years)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)
    try:
        return args.handler(args)
    except EngineError as exc:
        status_code, body = to_error_response(exc)
        logger.debug("Command failed with %s (%d)", exc.code, status_code)
        print(body.model_dump_json(indent=2))
        return 1


if __name__ == "__main__":
    sys.exit(main())
