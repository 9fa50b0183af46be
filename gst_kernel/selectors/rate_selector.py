"""
Module: gst_kernel.selectors.rate_selector
Responsibility: Database-backed rate lookup.  Returns every stored version
    for a (classification code, component type); validity, zone and
    business-type selection stay in the resolver so in-memory and persisted
    catalogs resolve identically.
"""

from sqlalchemy import select

from gst_kernel.domain.types import TaxComponentType
from gst_kernel.logging_config import get_logger
from gst_kernel.models.tax_rate import TaxRateModel
from gst_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.rates")


class TaxRateSelector(BaseSelector[TaxRateModel]):
    """Read rate versions as ``TaxRateRecord`` values."""

    def rates_for(
        self,
        classification_code: str,
        component_type: TaxComponentType,
    ) -> tuple:
        rows = self.session.execute(
            select(TaxRateModel)
            .where(
                TaxRateModel.classification_code == classification_code,
                TaxRateModel.component_type == component_type.value,
            )
            .order_by(TaxRateModel.effective_from, TaxRateModel.version_number)
        ).scalars()
        records = tuple(row.to_dto() for row in rows)
        logger.debug("rate_candidates_loaded", extra={
            "classification_code": classification_code,
            "component_type": component_type.value,
            "candidate_count": len(records),
        })
        return records

    def history(self, classification_code: str) -> tuple:
        """Every stored version for a code, all components, oldest first."""
        rows = self.session.execute(
            select(TaxRateModel)
            .where(TaxRateModel.classification_code == classification_code)
            .order_by(
                TaxRateModel.component_type,
                TaxRateModel.effective_from,
                TaxRateModel.version_number,
            )
        ).scalars()
        return tuple(row.to_dto() for row in rows)
