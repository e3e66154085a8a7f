"""
itr_engine — dual-regime (old / new) Indian income-tax computation engine.

Re-exports the public entry points so callers can simply:

    from itr_engine import compare_regimes
    result = compare_regimes({"financial_year": "2024-25", "taxpayer": {...}, ...})
"""
from itr_engine.errors import ConfigurationError, EngineError, ValidationError, to_error_response
from itr_engine.evaluator.aggregator import aggregate
from itr_engine.evaluator.schemas import ComparisonResult, RegimeResult
from itr_engine.evaluator.tax_engine import compare_regimes, evaluate_regime
from itr_engine.intake.schemas import TaxComputationRequest
from itr_engine.rules.loader import get_rules, registry

__all__ = [
    "compare_regimes",
    "evaluate_regime",
    "aggregate",
    "TaxComputationRequest",
    "RegimeResult",
    "ComparisonResult",
    "get_rules",
    "registry",
    "EngineError",
    "ValidationError",
    "ConfigurationError",
    "to_error_response",
]
