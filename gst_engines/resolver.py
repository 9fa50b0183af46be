"""
Rate Resolver - Select the applicable rate record for one component.

Given (classification code, component type, business type, buyer state,
as-of date) the resolver returns the single best-matching valid record, or
None.  It never guesses: no record means "no configured rate" and the
caller decides what that means.

Selection, in order:
    1. records for the classification code and component type
    2. valid on the as-of date (active, effective_from <= d < effective_to)
    3. zone matches (nationwide, or buyer state in the zone, case-insensitive)
    4. exact business type preferred; B2B accepted for B2C only when no
       exact candidate survives
    5. named zone outranks nationwide, then latest effective_from; ties are
       broken by higher version number, then zone name
    6. zero or one record

Pure functions with no I/O beyond the injected read-only lookup.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Sequence

from gst_kernel.domain.types import BusinessType, TaxComponentType
from gst_kernel.logging_config import get_logger
from gst_engines.rates import RateLookup, TaxRateRecord

logger = get_logger("engines.resolver")


def _rank(record: TaxRateRecord) -> tuple:
    zone = record.normalized_zone
    return (
        1 if record.is_zone_specific else 0,
        record.effective_from,
        record.version_number,
        zone.value if zone is not None else "",
    )


def select_rate(
    candidates: Iterable[TaxRateRecord],
    classification_code: str,
    component_type: TaxComponentType,
    business_type: BusinessType,
    buyer_state_code: str | None,
    as_of_date: date,
) -> TaxRateRecord | None:
    """
    Apply the selection policy to an arbitrary candidate set.

    Args:
        candidates: Records to choose from (may include other codes or
            components; those are filtered out).
        classification_code: HSN code the rate must be attached to.
        component_type: Tax component being resolved.
        business_type: Business type of the transaction.
        buyer_state_code: Destination state code, or None if unknown.
        as_of_date: Transaction date.

    Returns:
        The selected record, or None.
    """
    valid = [
        r for r in candidates
        if r.classification_code == classification_code
        and r.component_type == component_type
        and r.is_valid_for(as_of_date)
        and r.applies_to_zone(buyer_state_code)
    ]

    exact = [r for r in valid if r.business_type == business_type]
    pool: Sequence[TaxRateRecord] = exact or [
        r for r in valid if r.applies_to_business_type(business_type)
    ]
    if not pool:
        return None
    return max(pool, key=_rank)


class RateResolver:
    """
    Resolve rate records through an injected read-only lookup.

    Contract:
        Holds only a reference to the lookup; every call is independent and
        safe to run concurrently.
    """

    def __init__(self, rate_lookup: RateLookup):
        self._rates = rate_lookup

    def resolve(
        self,
        classification_code: str,
        component_type: TaxComponentType,
        business_type: BusinessType,
        buyer_state_code: str | None,
        as_of_date: date,
    ) -> TaxRateRecord | None:
        """Return the single applicable record for one component, or None."""
        candidates = self._rates.rates_for(classification_code, component_type)
        record = select_rate(
            candidates,
            classification_code,
            component_type,
            business_type,
            buyer_state_code,
            as_of_date,
        )

        if record is None:
            logger.info("rate_not_resolved", extra={
                "classification_code": classification_code,
                "component_type": component_type.value,
                "business_type": business_type.value,
                "buyer_state_code": buyer_state_code,
                "as_of_date": as_of_date.isoformat(),
                "candidate_count": len(candidates),
            })
            return None

        logger.debug("rate_resolved", extra={
            "classification_code": classification_code,
            "component_type": component_type.value,
            "requested_business_type": business_type.value,
            "matched_business_type": record.business_type.value,
            "zone": record.normalized_zone.value if record.normalized_zone else None,
            "rate_percentage": str(record.rate_percentage),
            "effective_from": record.effective_from.isoformat(),
            "version_number": record.version_number,
        })
        return record

    def resolve_many(
        self,
        classification_code: str,
        component_types: Iterable[TaxComponentType],
        business_type: BusinessType,
        buyer_state_code: str | None,
        as_of_date: date,
    ) -> dict[TaxComponentType, TaxRateRecord | None]:
        """Resolve several components with the same context."""
        return {
            component: self.resolve(
                classification_code,
                component,
                business_type,
                buyer_state_code,
                as_of_date,
            )
            for component in component_types
        }
