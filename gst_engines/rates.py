"""
Rate Registry - Time-versioned GST rate records.

Each record is scoped to one classification code, one tax component, one
business type and an optional geographical zone, and is valid over an
effective-date window.  When a government notification changes a rate the
open record is closed (``effective_to`` set) and a new version is added;
records are never deleted, so historical computations stay reproducible.

Pure functions with no I/O.

Usage:
    from gst_engines.rates import RateRegistry, TaxRateRecord
    from gst_kernel.domain.types import BusinessType, TaxComponentType

    registry = RateRegistry()
    registry.register(TaxRateRecord(
        classification_code="2523",
        component_type=TaxComponentType.IGST,
        rate_percentage=Decimal("28"),
        business_type=BusinessType.B2B,
        effective_from=date(2017, 7, 1),
    ))
    registry.supersede(TaxRateRecord(..., rate_percentage=Decimal("18"),
                                     effective_from=date(2025, 9, 22)))
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Iterator, Mapping, Protocol, Sequence

from gst_kernel.domain.precision import (
    TAX_DECIMAL_PLACES,
    ZERO,
    percentage_of,
    round_tax,
)
from gst_kernel.domain.types import (
    BusinessType,
    ExemptionType,
    GeographicalZone,
    TaxComponentType,
    ThresholdCondition,
)
from gst_kernel.exceptions import (
    DuplicateRateVersionError,
    InvalidRateRecordError,
    RateNotFoundError,
)
from gst_kernel.logging_config import get_logger

logger = get_logger("engines.rates")

# Requested business type -> configured business type accepted when no
# exact record exists.  B2B rates apply to B2C absent a B2C override.
BUSINESS_TYPE_FALLBACKS: dict[BusinessType, BusinessType] = {
    BusinessType.B2C: BusinessType.B2B,
}

_TWO = Decimal("2")

RateVersionKey = tuple[str, TaxComponentType, BusinessType, GeographicalZone | None, date]


def _threshold(value: Any, name: str) -> Decimal:
    if isinstance(value, (bool, float)) or value is None:
        raise ValueError(f"{name} threshold must be a decimal number, got {value!r}")
    try:
        parsed = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{name} threshold is not a decimal number: {value!r}") from exc
    if not parsed.is_finite() or parsed < ZERO:
        raise ValueError(f"{name} threshold must be a non-negative number: {value!r}")
    return parsed


@dataclass(frozen=True)
class ExemptionCriterion:
    """
    An exemption that is either unconditional or compares the taxable value.

    With no ``condition`` the criterion always applies.  A conditional
    criterion needs a value to compare against and never applies without one.
    """

    condition: ThresholdCondition | None = None
    threshold: Decimal | None = None

    def __post_init__(self) -> None:
        if self.condition is not None and self.threshold is None:
            raise ValueError(f"{self.condition.value} criterion needs a threshold")

    def applies(self, value: Decimal | None = None) -> bool:
        if self.condition is None:
            return True
        if value is None:
            return False
        if self.condition == ThresholdCondition.GREATER_THAN:
            return value > self.threshold
        if self.condition == ThresholdCondition.LESS_THAN:
            return value < self.threshold
        return value == self.threshold


@dataclass(frozen=True)
class ExemptionRules:
    """
    Exemptions attached to a rate record.

    ``evaluate`` checks the rules in ``ExemptionType`` order and reports the
    first that applies.  An applied exemption is reported on the result; it
    does not change the computed amounts.
    """

    amount_threshold: Decimal | None = None
    quantity_threshold: Decimal | None = None
    small_business: ExemptionCriterion | None = None
    essential_goods: ExemptionCriterion | None = None

    def evaluate(self, taxable_value: Decimal, quantity: Decimal) -> ExemptionType | None:
        if self.amount_threshold is not None and taxable_value <= self.amount_threshold:
            return ExemptionType.EXEMPTION_THRESHOLD
        if self.quantity_threshold is not None and quantity <= self.quantity_threshold:
            return ExemptionType.QUANTITY_THRESHOLD
        if self.small_business is not None and self.small_business.applies(taxable_value):
            return ExemptionType.SMALL_BUSINESS
        if self.essential_goods is not None and self.essential_goods.applies():
            return ExemptionType.ESSENTIAL_GOODS
        return None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ExemptionRules:
        """
        Build rules from their stored form.

        Threshold rules map to a number.  Criteria map to a boolean or to
        ``{condition: LESS_THAN, threshold: 2000000}``.

        Raises:
            ValueError: On an unknown rule, condition or malformed threshold.
        """
        values: dict[str, Any] = {}
        for key, raw in data.items():
            rule = ExemptionType(str(key).upper())
            if rule == ExemptionType.EXEMPTION_THRESHOLD:
                values["amount_threshold"] = _threshold(raw, rule.value)
            elif rule == ExemptionType.QUANTITY_THRESHOLD:
                values["quantity_threshold"] = _threshold(raw, rule.value)
            else:
                field_name = rule.value.lower()
                if isinstance(raw, bool):
                    values[field_name] = ExemptionCriterion() if raw else None
                elif isinstance(raw, Mapping):
                    values[field_name] = ExemptionCriterion(
                        condition=ThresholdCondition(str(raw["condition"]).upper()),
                        threshold=_threshold(raw.get("threshold"), rule.value),
                    )
                else:
                    raise ValueError(f"{rule.value} must be a boolean or a condition mapping")
        return cls(**values)

    def as_mapping(self) -> dict[str, Any]:
        """Inverse of ``from_mapping``; decimals are written as strings."""
        data: dict[str, Any] = {}
        if self.amount_threshold is not None:
            data[ExemptionType.EXEMPTION_THRESHOLD.value] = str(self.amount_threshold)
        if self.quantity_threshold is not None:
            data[ExemptionType.QUANTITY_THRESHOLD.value] = str(self.quantity_threshold)
        for rule, criterion in (
            (ExemptionType.SMALL_BUSINESS, self.small_business),
            (ExemptionType.ESSENTIAL_GOODS, self.essential_goods),
        ):
            if criterion is None:
                continue
            if criterion.condition is None:
                data[rule.value] = True
            else:
                data[rule.value] = {
                    "condition": criterion.condition.value,
                    "threshold": str(criterion.threshold),
                }
        return data


@dataclass(frozen=True)
class TaxRateRecord:
    """
    One version of a rate for a (code, component, business type, zone).

    Immutable value object.  Closing a version produces a replacement
    record via ``closed_on``.
    """

    classification_code: str
    component_type: TaxComponentType
    rate_percentage: Decimal
    business_type: BusinessType
    effective_from: date
    effective_to: date | None = None
    geographical_zone: GeographicalZone | None = None
    fixed_amount_per_unit: Decimal | None = None
    minimum_amount: Decimal | None = None
    maximum_amount: Decimal | None = None
    active: bool = True
    version_number: int = 1
    is_reverse_charge_applicable: bool = False
    is_composition_scheme_applicable: bool = True
    notification_number: str | None = None
    description: str | None = None
    exemptions: ExemptionRules | None = None

    def __post_init__(self) -> None:
        code = self.classification_code
        if self.rate_percentage < ZERO:
            raise InvalidRateRecordError(code, "rate_percentage cannot be negative")
        for name in ("fixed_amount_per_unit", "minimum_amount", "maximum_amount"):
            value = getattr(self, name)
            if value is not None and value < ZERO:
                raise InvalidRateRecordError(code, f"{name} cannot be negative")
        if (
            self.minimum_amount is not None
            and self.maximum_amount is not None
            and self.minimum_amount > self.maximum_amount
        ):
            raise InvalidRateRecordError(code, "minimum_amount exceeds maximum_amount")
        if self.effective_to is not None and self.effective_to <= self.effective_from:
            raise InvalidRateRecordError(code, "effective_to must be after effective_from")
        if self.version_number < 1:
            raise InvalidRateRecordError(code, "version_number must be >= 1")

    @property
    def version_key(self) -> RateVersionKey:
        """Uniqueness key; distinguishes versions of the same rate."""
        return (
            self.classification_code,
            self.component_type,
            self.business_type,
            self.normalized_zone,
            self.effective_from,
        )

    @property
    def normalized_zone(self) -> GeographicalZone | None:
        """ALL_INDIA and None mean the same thing; store None."""
        if self.geographical_zone is GeographicalZone.ALL_INDIA:
            return None
        return self.geographical_zone

    @property
    def is_zone_specific(self) -> bool:
        return self.normalized_zone is not None

    @property
    def has_amount(self) -> bool:
        """True if the record can produce a non-zero levy."""
        return self.rate_percentage > ZERO or bool(self.fixed_amount_per_unit)

    def is_valid_for(self, as_of: date) -> bool:
        """Active, started on or before ``as_of``, and not yet closed."""
        return (
            self.active
            and as_of >= self.effective_from
            and (self.effective_to is None or as_of < self.effective_to)
        )

    def applies_to_zone(self, state_code: str | None) -> bool:
        zone = self.normalized_zone
        if zone is None:
            return True
        return zone.contains(state_code)

    def applies_to_business_type(self, business_type: BusinessType) -> bool:
        """Exact match, or a configured fallback (B2B serving B2C)."""
        return (
            self.business_type == business_type
            or BUSINESS_TYPE_FALLBACKS.get(business_type) == self.business_type
        )

    def calculate_amount(
        self,
        taxable_value: Decimal,
        quantity: Decimal = Decimal("1"),
        decimal_places: int = TAX_DECIMAL_PLACES,
    ) -> Decimal:
        """
        Levy for a taxable value.

        The percentage part is rounded at calculation; a per-unit amount is
        added for ``quantity`` units; the total is then clamped to the
        configured minimum / maximum.
        """
        amount = percentage_of(taxable_value, self.rate_percentage, decimal_places)
        if self.fixed_amount_per_unit is not None:
            amount += round_tax(self.fixed_amount_per_unit * quantity, decimal_places)
        if self.minimum_amount is not None and amount < self.minimum_amount:
            amount = self.minimum_amount
        if self.maximum_amount is not None and amount > self.maximum_amount:
            amount = self.maximum_amount
        return round_tax(amount, decimal_places)

    def halved(self) -> TaxRateRecord:
        """Half-rate view used to split one aggregate rate into two components."""

        def _half(value: Decimal | None) -> Decimal | None:
            return None if value is None else value / _TWO

        return replace(
            self,
            rate_percentage=self.rate_percentage / _TWO,
            fixed_amount_per_unit=_half(self.fixed_amount_per_unit),
            minimum_amount=_half(self.minimum_amount),
            maximum_amount=_half(self.maximum_amount),
        )

    def closed_on(self, effective_to: date) -> TaxRateRecord:
        """Copy of this record with its window closed at ``effective_to``."""
        return replace(self, effective_to=effective_to)


class RateLookup(Protocol):
    """Read-only access to the rate records of one code and component."""

    def rates_for(
        self,
        classification_code: str,
        component_type: TaxComponentType,
    ) -> Sequence[TaxRateRecord]:
        ...


class RateRegistry:
    """
    In-memory rate registry.

    Contract:
        Stores records indexed by (classification code, component type) and
        enforces the version-key uniqueness invariant.  ``rates_for`` is the
        read path used by the resolver; ``register`` and ``supersede`` are the
        administrative write path.

    Non-goals:
        Not thread-safe for concurrent writes.  Build it, then share it
        read-only.
    """

    def __init__(self, records: Iterable[TaxRateRecord] = ()):
        self._by_key: dict[RateVersionKey, TaxRateRecord] = {}
        self._index: dict[tuple[str, TaxComponentType], list[RateVersionKey]] = {}
        for record in records:
            self.register(record)

    def __len__(self) -> int:
        return len(self._by_key)

    def __iter__(self) -> Iterator[TaxRateRecord]:
        return iter(self._by_key.values())

    def register(self, record: TaxRateRecord) -> TaxRateRecord:
        """
        Add a record.

        Raises:
            DuplicateRateVersionError: If the version key is already present.
        """
        key = record.version_key
        if key in self._by_key:
            raise DuplicateRateVersionError(key)
        self._by_key[key] = record
        self._index.setdefault(
            (record.classification_code, record.component_type), []
        ).append(key)
        logger.debug("rate_registered", extra={
            "classification_code": record.classification_code,
            "component_type": record.component_type.value,
            "business_type": record.business_type.value,
            "zone": record.normalized_zone.value if record.normalized_zone else None,
            "effective_from": record.effective_from.isoformat(),
            "version_number": record.version_number,
        })
        return record

    def rates_for(
        self,
        classification_code: str,
        component_type: TaxComponentType,
    ) -> tuple[TaxRateRecord, ...]:
        keys = self._index.get((classification_code, component_type), [])
        return tuple(self._by_key[k] for k in keys)

    def history(
        self,
        classification_code: str,
        component_type: TaxComponentType,
        business_type: BusinessType,
        geographical_zone: GeographicalZone | None = None,
    ) -> tuple[TaxRateRecord, ...]:
        """All versions of one rate family, oldest first."""
        zone = None if geographical_zone is GeographicalZone.ALL_INDIA else geographical_zone
        family = [
            r for r in self.rates_for(classification_code, component_type)
            if r.business_type == business_type and r.normalized_zone == zone
        ]
        return tuple(sorted(family, key=lambda r: r.effective_from))

    def supersede(self, new_record: TaxRateRecord) -> TaxRateRecord:
        """
        Close the open version of the same rate family and add ``new_record``.

        The open version (``effective_to is None``) with an earlier start is
        closed at ``new_record.effective_from``.  The new record's
        ``version_number`` continues the family's sequence.

        Returns:
            The registered record (with its assigned version number).

        Raises:
            RateNotFoundError: If the family has no open version to close.
            InvalidRateRecordError: If the new version does not start after
                the open one.
        """
        family = self.history(
            new_record.classification_code,
            new_record.component_type,
            new_record.business_type,
            new_record.normalized_zone,
        )
        open_versions = [r for r in family if r.effective_to is None]
        if not open_versions:
            raise RateNotFoundError(
                new_record.classification_code,
                new_record.component_type.value,
                new_record.business_type.value,
                None,
                new_record.effective_from,
            )
        current = open_versions[-1]
        if new_record.effective_from <= current.effective_from:
            raise InvalidRateRecordError(
                new_record.classification_code,
                "new version must start after the version it supersedes",
            )

        self._by_key[current.version_key] = current.closed_on(new_record.effective_from)
        next_version = max(r.version_number for r in family) + 1
        registered = self.register(replace(new_record, version_number=next_version))

        logger.info("rate_superseded", extra={
            "classification_code": new_record.classification_code,
            "component_type": new_record.component_type.value,
            "business_type": new_record.business_type.value,
            "closed_version": current.version_number,
            "new_version": next_version,
            "old_rate": str(current.rate_percentage),
            "new_rate": str(new_record.rate_percentage),
            "effective_from": new_record.effective_from.isoformat(),
        })
        return registered
