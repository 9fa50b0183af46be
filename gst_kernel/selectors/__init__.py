"""Read-only selectors over the persisted rate catalog."""

from gst_kernel.selectors.base import BaseSelector
from gst_kernel.selectors.classification_selector import HsnCodeSelector
from gst_kernel.selectors.rate_selector import TaxRateSelector

__all__ = [
    "BaseSelector",
    "HsnCodeSelector",
    "TaxRateSelector",
]
