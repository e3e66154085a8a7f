"""
Intake validator — turns caller payloads into a TaxComputationRequest and checks the
rules Pydantic cannot express.

Collects every violation in a single pass and raises one error, so callers see all
problems in one response rather than discovering them one at a time.

Rules enforced:
  1. payload matches the request schema (unknown keys, negative income, unknown
     taxpayer category, malformed financial year)         → ValidationError
  2. every deduction section code has a rule              → ConfigurationError
  3. every deduction sub-amount is non-negative           → ValidationError
  4. structured sections (10(13A), 80GG, 80G) only carry
     the sub-amount names their rule understands           → ValidationError

Negative amounts are rejected, never clamped to zero: a negative premium or
contribution is a caller bug and should surface as one.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

import pydantic

from itr_engine.errors import ConfigurationError, ValidationError
from itr_engine.intake.schemas import DeductionEntry, TaxComputationRequest
from itr_engine.rules.deductions import RULES

logger = logging.getLogger(__name__)


def parse_request(payload: Mapping[str, Any]) -> TaxComputationRequest:
    """
    Validate a raw JSON-like payload into a TaxComputationRequest.

    Raises:
        ValidationError: with one {"field", "issue"} detail per schema violation.
    """
    try:
        return TaxComputationRequest.model_validate(payload)
    except pydantic.ValidationError as exc:
        details = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            details.append({"field": field or None, "issue": error["msg"]})
        logger.info("Request schema validation failed: %d violation(s)", len(details))
        raise ValidationError("Request validation failed", details=details) from None


def validate_deduction_entries(entries: Sequence[DeductionEntry]) -> None:
    """
    Check section codes and sub-amounts of every deduction entry.

    Raises:
        ConfigurationError: a section code has no rule.
        ValidationError: negative or unrecognised sub-amounts.
    """
    unknown = [
        {"field": f"deductions.{i}.section", "issue": f"unknown section code '{entry.section}'"}
        for i, entry in enumerate(entries)
        if entry.section not in RULES
    ]
    if unknown:
        logger.error("Deduction entries reference %d unknown section code(s)", len(unknown))
        raise ConfigurationError("Unknown deduction section code", details=unknown)

    violations: list[dict[str, Any]] = []
    for i, entry in enumerate(entries):
        allowed_names = RULES[entry.section].sub_amounts
        for name, amount in entry.amounts.items():
            field = f"deductions.{i}.amounts.{name}"
            if amount < 0:
                violations.append({
                    "field": field,
                    "issue": f"Section {entry.section} amount '{name}' must not be negative.",
                })
            if allowed_names is not None and name not in allowed_names:
                violations.append({
                    "field": field,
                    "issue": (
                        f"Section {entry.section} does not accept '{name}'; expected one of "
                        f"{', '.join(sorted(allowed_names))}."
                    ),
                })

    if violations:
        # Log the count only: never amounts
        logger.info("Deduction validation failed: %d violation(s)", len(violations))
        raise ValidationError("Deduction validation failed", details=violations)


def validate_request(request: TaxComputationRequest) -> None:
    """Business-rule checks run before any regime is evaluated."""
    validate_deduction_entries(request.deductions)


__all__ = [
    "parse_request",
    "validate_deduction_entries",
    "validate_request",
]
