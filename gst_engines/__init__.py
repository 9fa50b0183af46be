"""
Module: gst_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure GST
    engines: HSN classification tree, rate registry, rate resolver and the
    tax computation engine.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import gst_kernel (and sibling engine modules).
    MUST NOT import gst_config.

Invariants enforced:
    - Purity: engines never read the clock; ``as_of_date`` is always passed
      in by the caller.
    - Decimal-only arithmetic: rates and amounts are ``Decimal``; floats are
      reported as invalid input at the boundary.
    - Determinism: identical inputs against the same catalog produce
      identical outputs.

Failure modes:
    - ``compute_tax`` returns failed results instead of raising.
    - Registry and tree construction raise typed ``GstEngineError``
      subclasses on inconsistent data.

Usage:
    from gst_engines import ClassificationTree, RateRegistry, TaxComputationEngine
"""

from gst_kernel.logging_config import get_logger

logger = get_logger("engines")

from gst_engines.classification import (
    ClassificationCode,
    ClassificationLookup,
    ClassificationTree,
    require_valid_classification,
    resolve_path,
)
from gst_engines.computation import (
    Advisory,
    BulkTaxComputationResult,
    TaxComponentResult,
    TaxComputationEngine,
    TaxComputationError,
    TaxComputationResult,
    TaxLineItem,
    infer_tax_spec,
)
from gst_engines.policy import GstPolicy
from gst_engines.rates import (
    ExemptionCriterion,
    ExemptionRules,
    RateLookup,
    RateRegistry,
    TaxRateRecord,
)
from gst_engines.resolver import RateResolver, select_rate
from gst_engines.tracer import traced_engine

__all__ = [
    "Advisory",
    "BulkTaxComputationResult",
    "ClassificationCode",
    "ClassificationLookup",
    "ClassificationTree",
    "ExemptionCriterion",
    "ExemptionRules",
    "GstPolicy",
    "RateLookup",
    "RateRegistry",
    "RateResolver",
    "TaxComponentResult",
    "TaxComputationEngine",
    "TaxComputationError",
    "TaxComputationResult",
    "TaxLineItem",
    "TaxRateRecord",
    "infer_tax_spec",
    "require_valid_classification",
    "resolve_path",
    "select_rate",
    "traced_engine",
]
