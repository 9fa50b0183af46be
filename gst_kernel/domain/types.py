"""
Domain enums for GST rate resolution and computation.

Architecture position:
    Kernel > Domain -- pure value types, zero I/O.  Imported by engines,
    ORM models, selectors, and configuration.

Invariants enforced:
    - Zone state-code sets are frozen and upper-case.
    - ``ALL_INDIA`` carries no state codes and matches every state.
"""

from __future__ import annotations

from enum import Enum


class TaxComponentType(str, Enum):
    """A single levy that can appear on an invoice line."""

    CGST = "CGST"  # Central GST (intra-state)
    SGST = "SGST"  # State GST (intra-state)
    IGST = "IGST"  # Integrated GST (inter-state)
    UTGST = "UTGST"  # Union Territory GST (intra-UT)
    CESS = "CESS"  # Compensation cess
    TDS = "TDS"  # Tax deducted at source
    TCS = "TCS"  # Tax collected at source


class BusinessType(str, Enum):
    """Business type a rate record is configured for."""

    B2B = "B2B"
    B2C = "B2C"
    COMPOSITION = "COMPOSITION"
    EXPORT = "EXPORT"
    SEZ = "SEZ"


class TransactionTaxSpec(str, Enum):
    """Jurisdictional nature of a transaction."""

    INTER = "INTER"
    INTRA = "INTRA"
    COMPOSITION = "COMPOSITION"
    EXPORT = "EXPORT"
    EXEMPT = "EXEMPT"
    NIL = "NIL"

    @property
    def is_taxable(self) -> bool:
        """False for specs that never carry GST or cess."""
        return self not in (
            TransactionTaxSpec.EXPORT,
            TransactionTaxSpec.EXEMPT,
            TransactionTaxSpec.NIL,
        )


class RateResolutionStrategy(str, Enum):
    """How the intra-state CGST and state component rates are obtained.

    HALF_SPLIT resolves one aggregate GST rate (the IGST-typed record) and
    assigns half of it to each of CGST and SGST/UTGST.  COMPONENT_RECORDS
    resolves CGST and SGST/UTGST as independently configured records, which
    permits asymmetric splits.
    """

    HALF_SPLIT = "half_split"
    COMPONENT_RECORDS = "component_records"


class AdvisoryCode(str, Enum):
    """Non-fatal findings carried alongside a successful computation."""

    REVERSE_CHARGE = "REVERSE_CHARGE"
    COMPOSITION_NOT_ELIGIBLE = "COMPOSITION_NOT_ELIGIBLE"
    JURISDICTION_MISMATCH = "JURISDICTION_MISMATCH"


class ExemptionType(str, Enum):
    """Exemption rules a rate record can carry, in evaluation order."""

    EXEMPTION_THRESHOLD = "EXEMPTION_THRESHOLD"  # taxable value at or below a limit
    QUANTITY_THRESHOLD = "QUANTITY_THRESHOLD"  # quantity at or below a limit
    SMALL_BUSINESS = "SMALL_BUSINESS"  # taxable value compared against a condition
    ESSENTIAL_GOODS = "ESSENTIAL_GOODS"  # unconditional flag

    @property
    def label(self) -> str:
        return _EXEMPTION_LABELS[self.value]


_EXEMPTION_LABELS = {
    "EXEMPTION_THRESHOLD": "Amount below exemption threshold",
    "QUANTITY_THRESHOLD": "Quantity below exemption threshold",
    "SMALL_BUSINESS": "Small business exemption",
    "ESSENTIAL_GOODS": "Essential goods exemption",
}


class ThresholdCondition(str, Enum):
    """Comparison applied by a conditional exemption."""

    GREATER_THAN = "GREATER_THAN"
    LESS_THAN = "LESS_THAN"
    EQUALS = "EQUALS"


_ZONE_STATES: dict[str, frozenset[str]] = {
    "ALL_INDIA": frozenset(),
    "NORTH": frozenset({"HP", "HR", "PB", "RJ", "UK", "UP"}),
    "SOUTH": frozenset({"AP", "KA", "KL", "TN", "TS"}),
    "EAST": frozenset({"BR", "JH", "OD", "WB"}),
    "WEST": frozenset({"GA", "GJ", "MH"}),
    "NORTH_EAST": frozenset({"AR", "AS", "ML", "MN", "MZ", "NL", "SK", "TR"}),
    "CENTRAL": frozenset({"CG", "MP"}),
    "UNION_TERRITORY": frozenset(
        {"AN", "CH", "DN", "DD", "DL", "JK", "LA", "LD", "PY"}
    ),
}


class GeographicalZone(str, Enum):
    """Named group of state codes a rate record can be scoped to."""

    ALL_INDIA = "ALL_INDIA"
    NORTH = "NORTH"
    SOUTH = "SOUTH"
    EAST = "EAST"
    WEST = "WEST"
    NORTH_EAST = "NORTH_EAST"
    CENTRAL = "CENTRAL"
    UNION_TERRITORY = "UNION_TERRITORY"

    @property
    def state_codes(self) -> frozenset[str]:
        return _ZONE_STATES[self.value]

    @property
    def is_nationwide(self) -> bool:
        return self is GeographicalZone.ALL_INDIA

    def contains(self, state_code: str | None) -> bool:
        """Case-insensitive membership; ALL_INDIA contains every state."""
        if self.is_nationwide:
            return True
        if state_code is None:
            return False
        return state_code.strip().upper() in self.state_codes

    @classmethod
    def for_state(cls, state_code: str) -> GeographicalZone | None:
        """First named zone containing the state code, if any."""
        code = state_code.strip().upper()
        for zone in cls:
            if not zone.is_nationwide and code in zone.state_codes:
                return zone
        return None
