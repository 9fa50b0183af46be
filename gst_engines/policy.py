"""
GST computation policy constants.

Tax law changes periodically, so the Union-Territory list, the composition
ratio and the rounding precision are named, overridable values rather than
literals inside the engine.  ``gst_config`` builds instances from YAML; the
defaults below reflect current practice.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from gst_kernel.domain.precision import TAX_DECIMAL_PLACES
from gst_kernel.domain.types import RateResolutionStrategy, TaxComponentType

DEFAULT_UNION_TERRITORY_CODES: frozenset[str] = frozenset(
    {"AN", "CH", "DN", "DD", "DL", "JK", "LA", "LD", "PY"}
)
DEFAULT_COMPOSITION_RATIO = Decimal("0.6")


@dataclass(frozen=True)
class GstPolicy:
    """
    Immutable policy consumed by ``TaxComputationEngine``.

    Attributes:
        union_territory_codes: Buyer states that take UTGST instead of SGST.
        composition_ratio: Share of the GST rate used as the composition
            rate when no composition-specific record is configured.
        decimal_places: Precision amounts are rounded to (half-up).
        rate_resolution_strategy: Default intra-state strategy; callers may
            override it per computation.
    """

    union_territory_codes: frozenset[str] = field(
        default_factory=lambda: DEFAULT_UNION_TERRITORY_CODES
    )
    composition_ratio: Decimal = DEFAULT_COMPOSITION_RATIO
    decimal_places: int = TAX_DECIMAL_PLACES
    rate_resolution_strategy: RateResolutionStrategy = RateResolutionStrategy.HALF_SPLIT
    composition_label: str = "GST (Composition)"
    cess_label: str = "Cess"

    def __post_init__(self) -> None:
        normalized = frozenset(c.strip().upper() for c in self.union_territory_codes)
        object.__setattr__(self, "union_territory_codes", normalized)
        if not Decimal("0") <= self.composition_ratio <= Decimal("1"):
            raise ValueError(
                f"composition_ratio must be between 0 and 1, got {self.composition_ratio}"
            )
        if self.decimal_places < 0:
            raise ValueError("decimal_places cannot be negative")

    def is_union_territory(self, state_code: str | None) -> bool:
        if state_code is None:
            return False
        return state_code.strip().upper() in self.union_territory_codes

    def state_component_for(self, buyer_state_code: str | None) -> TaxComponentType:
        """UTGST for Union-Territory buyers, SGST otherwise."""
        if self.is_union_territory(buyer_state_code):
            return TaxComponentType.UTGST
        return TaxComponentType.SGST
