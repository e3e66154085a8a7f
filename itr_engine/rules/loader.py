"""
Rules loader — reads rules/data/<financial_year>.yaml into frozen FinancialYearRules
snapshots and serves them by financial year.

Snapshots are loaded lazily on first use and never mutated. reload() builds a
complete new mapping first and only then swaps the reference, so a computation that
already holds a snapshot keeps a consistent view.
"""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

import pydantic
import yaml

from itr_engine.config import settings
from itr_engine.errors import ConfigurationError
from itr_engine.intake.schemas import TaxpayerCategory, TaxpayerContext
from itr_engine.rules.deductions import RULES
from itr_engine.rules.schemas import (
    AGE_INVARIANT,
    FinancialYearRules,
    Regime,
    SlabTable,
)

logger = logging.getLogger(__name__)


def load_rules_file(path: Path) -> FinancialYearRules:
    """
    Parse and validate one YAML rules file.

    Raises:
        ConfigurationError: unreadable YAML, schema violations, a file name that does
            not match its financial_year, or an allowed section without a rule.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot read tax rules file {path.name}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Tax rules file {path.name} must contain a mapping")

    try:
        rules = FinancialYearRules.model_validate(data)
    except pydantic.ValidationError as exc:
        details = [
            {"field": ".".join(str(loc) for loc in err["loc"]) or None, "issue": err["msg"]}
            for err in exc.errors()
        ]
        raise ConfigurationError(
            f"Invalid tax rules in {path.name}", details=details
        ) from None

    if rules.financial_year != path.stem:
        raise ConfigurationError(
            f"{path.name} declares financial_year '{rules.financial_year}'; "
            f"expected '{path.stem}'"
        )

    for regime, regime_rules in rules.regimes.items():
        unknown = [code for code in regime_rules.allowed_sections if code not in RULES]
        if unknown:
            raise ConfigurationError(
                f"{path.name}: '{regime}' regime allows sections without a rule: "
                f"{', '.join(unknown)}"
            )

    logger.info("Loaded tax rules FY %s from %s", rules.financial_year, path)
    return rules


class RuleRegistry:
    """Financial-year → FinancialYearRules, loaded once from a rules directory."""

    def __init__(self, rules_dir: Optional[Path] = None) -> None:
        self._rules_dir = Path(rules_dir) if rules_dir else settings.resolved_rules_dir
        self._snapshots: Optional[Mapping[str, FinancialYearRules]] = None
        self._lock = threading.Lock()

    @property
    def rules_dir(self) -> Path:
        return self._rules_dir

    def _load_all(self) -> Mapping[str, FinancialYearRules]:
        if not self._rules_dir.is_dir():
            raise ConfigurationError(f"Tax rules directory not found: {self._rules_dir}")
        snapshots: dict[str, FinancialYearRules] = {}
        for path in sorted(self._rules_dir.glob("*.yaml")):
            rules = load_rules_file(path)
            snapshots[rules.financial_year] = rules
        if not snapshots:
            raise ConfigurationError(f"No tax rules files in {self._rules_dir}")
        return MappingProxyType(snapshots)

    def _snapshot(self) -> Mapping[str, FinancialYearRules]:
        snapshots = self._snapshots
        if snapshots is None:
            with self._lock:
                if self._snapshots is None:
                    self._snapshots = self._load_all()
                snapshots = self._snapshots
        return snapshots

    def get(self, financial_year: str) -> FinancialYearRules:
        snapshots = self._snapshot()
        try:
            return snapshots[financial_year]
        except KeyError:
            logger.error("No tax rules configured for FY %s", financial_year)
            raise ConfigurationError(
                f"No tax rules configured for financial year '{financial_year}'",
                details=[{
                    "field": "financial_year",
                    "issue": f"supported years: {', '.join(sorted(snapshots))}",
                }],
            ) from None

    def available_years(self) -> list[str]:
        return sorted(self._snapshot())

    def reload(self) -> None:
        """Re-read every file; the old snapshot stays live if loading fails."""
        fresh = self._load_all()
        with self._lock:
            self._snapshots = fresh
        logger.info("Tax rules reloaded: %s", ", ".join(sorted(fresh)))


# Module-level singleton: import this throughout the codebase
registry = RuleRegistry()


def get_rules(financial_year: str) -> FinancialYearRules:
    return registry.get(financial_year)


def slab_table_for(rules: FinancialYearRules, regime: Regime, taxpayer: TaxpayerContext) -> SlabTable:
    """
    Slab table for a taxpayer: age-specific old-regime tables apply to resident
    individuals only; HUFs and non-residents use the basic table.

    Raises:
        ConfigurationError: the category has no slab tables (firms, LLPs, companies).
    """
    if taxpayer.category == TaxpayerCategory.individual:
        age_key = taxpayer.age_bracket.value if taxpayer.is_resident else "below60"
    elif taxpayer.category == TaxpayerCategory.huf:
        age_key = "below60"
    else:
        raise ConfigurationError(
            f"No slab table configured for taxpayer category '{taxpayer.category.value}' "
            f"in FY {rules.financial_year}",
            details=[{"field": "taxpayer.category", "issue": "only individual and huf are configured"}],
        )
    slabs = rules.regime(regime).slabs
    if age_key not in slabs and AGE_INVARIANT not in slabs:
        # An old-regime file must at least carry the basic table
        age_key = "below60"
    return rules.slab_table(regime, age_key)


__all__ = [
    "RuleRegistry",
    "registry",
    "get_rules",
    "load_rules_file",
    "slab_table_for",
]
