"""
GST configuration schema.

Defines the human-authored, reviewable source artifacts for GST
configuration.  YAML files are parsed into these types by the loader; the
engines only ever see what they build.

Key distinction:
  PolicySetDefinition = source artifact (human-authored, versioned)
  GstPolicy           = runtime artifact consumed by the computation engine
  Catalog             = seed data for the classification tree and rate registry
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from gst_kernel.domain.types import RateResolutionStrategy
from gst_engines.classification import ClassificationCode, ClassificationTree
from gst_engines.policy import DEFAULT_COMPOSITION_RATIO, DEFAULT_UNION_TERRITORY_CODES, GstPolicy
from gst_engines.rates import RateRegistry, TaxRateRecord

__all__ = [
    "Catalog",
    "GstPolicy",
    "PolicySetDefinition",
]


@dataclass(frozen=True)
class PolicySetDefinition:
    """A named, versioned set of GST policy constants."""

    name: str
    version: int = 1
    union_territory_codes: tuple[str, ...] = tuple(sorted(DEFAULT_UNION_TERRITORY_CODES))
    composition_ratio: Decimal = DEFAULT_COMPOSITION_RATIO
    decimal_places: int = 4
    rate_resolution_strategy: RateResolutionStrategy = RateResolutionStrategy.HALF_SPLIT
    composition_label: str = "GST (Composition)"
    cess_label: str = "Cess"
    checksum: str = ""

    def to_policy(self) -> GstPolicy:
        return GstPolicy(
            union_territory_codes=frozenset(self.union_territory_codes),
            composition_ratio=self.composition_ratio,
            decimal_places=self.decimal_places,
            rate_resolution_strategy=self.rate_resolution_strategy,
            composition_label=self.composition_label,
            cess_label=self.cess_label,
        )


@dataclass(frozen=True)
class Catalog:
    """HSN codes and rate versions loaded from one catalog file."""

    name: str
    classifications: tuple[ClassificationCode, ...] = ()
    rates: tuple[TaxRateRecord, ...] = ()
    checksum: str = ""

    def build_tree(self) -> ClassificationTree:
        """Build and validate the classification tree."""
        tree = ClassificationTree(self.classifications)
        tree.validate()
        return tree

    def build_registry(self) -> RateRegistry:
        return RateRegistry(self.rates)
