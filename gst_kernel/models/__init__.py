"""ORM models for the GST rate catalog."""

from gst_kernel.models.hsn_code import HsnCodeModel
from gst_kernel.models.tax_rate import TaxRateModel

__all__ = [
    "HsnCodeModel",
    "TaxRateModel",
]
