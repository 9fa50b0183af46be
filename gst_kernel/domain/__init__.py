"""Pure domain types shared by the GST engines, models and configuration."""

from gst_kernel.domain.precision import (
    TAX_DECIMAL_PLACES,
    percentage_of,
    round_tax,
    to_decimal,
)
from gst_kernel.domain.types import (
    AdvisoryCode,
    BusinessType,
    ExemptionType,
    GeographicalZone,
    RateResolutionStrategy,
    TaxComponentType,
    ThresholdCondition,
    TransactionTaxSpec,
)

__all__ = [
    "AdvisoryCode",
    "BusinessType",
    "ExemptionType",
    "GeographicalZone",
    "RateResolutionStrategy",
    "TAX_DECIMAL_PLACES",
    "TaxComponentType",
    "ThresholdCondition",
    "TransactionTaxSpec",
    "percentage_of",
    "round_tax",
    "to_decimal",
]
