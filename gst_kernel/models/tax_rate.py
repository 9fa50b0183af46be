"""
Module: gst_kernel.models.tax_rate
Responsibility: ORM persistence for time-versioned GST rate records.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/types.py; ``to_dto`` lazily imports the engine record type.

Invariants enforced:
    - (classification_code, component_type, business_type, zone,
      effective_from) is unique.  Nationwide rates are stored with zone
      ALL_INDIA rather than NULL so the constraint also covers them.
    - Rates and amounts are Numeric, never float.
    - Rows are closed (effective_to set) when superseded, never deleted.
"""

from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Boolean, Date, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from gst_kernel.db.base import Base
from gst_kernel.domain.types import (
    BusinessType,
    GeographicalZone,
    TaxComponentType,
)


class TaxRateModel(Base):
    """One version of a GST rate for a code, component, business type and zone."""

    __tablename__ = "gst_tax_rates"

    __table_args__ = (
        UniqueConstraint(
            "classification_code", "component_type", "business_type",
            "geographical_zone", "effective_from",
            name="uq_gst_rate_version",
        ),
        Index("idx_gst_rate_lookup", "classification_code", "component_type"),
        Index("idx_gst_rate_effective", "effective_from", "effective_to"),
    )

    classification_code: Mapped[str] = mapped_column(String(16), nullable=False)
    component_type: Mapped[str] = mapped_column(String(10), nullable=False)
    business_type: Mapped[str] = mapped_column(String(20), nullable=False)
    geographical_zone: Mapped[str] = mapped_column(
        String(20), nullable=False, default=GeographicalZone.ALL_INDIA.value,
    )
    rate_percentage: Mapped[Decimal] = mapped_column(nullable=False)
    fixed_amount_per_unit: Mapped[Decimal | None] = mapped_column(nullable=True)
    minimum_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    maximum_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    version_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_reverse_charge_applicable: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    is_composition_scheme_applicable: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
    notification_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    exemption_rules: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def to_dto(self):
        from gst_engines.rates import ExemptionRules, TaxRateRecord

        zone = GeographicalZone(self.geographical_zone)
        return TaxRateRecord(
            classification_code=self.classification_code,
            component_type=TaxComponentType(self.component_type),
            rate_percentage=self.rate_percentage,
            business_type=BusinessType(self.business_type),
            effective_from=self.effective_from,
            effective_to=self.effective_to,
            geographical_zone=None if zone.is_nationwide else zone,
            fixed_amount_per_unit=self.fixed_amount_per_unit,
            minimum_amount=self.minimum_amount,
            maximum_amount=self.maximum_amount,
            active=self.active,
            version_number=self.version_number,
            is_reverse_charge_applicable=self.is_reverse_charge_applicable,
            is_composition_scheme_applicable=self.is_composition_scheme_applicable,
            notification_number=self.notification_number,
            description=self.description,
            exemptions=(
                ExemptionRules.from_mapping(self.exemption_rules)
                if self.exemption_rules else None
            ),
        )

    @classmethod
    def from_dto(cls, dto) -> "TaxRateModel":
        zone = dto.normalized_zone or GeographicalZone.ALL_INDIA
        return cls(
            classification_code=dto.classification_code,
            component_type=dto.component_type.value,
            business_type=dto.business_type.value,
            geographical_zone=zone.value,
            rate_percentage=dto.rate_percentage,
            fixed_amount_per_unit=dto.fixed_amount_per_unit,
            minimum_amount=dto.minimum_amount,
            maximum_amount=dto.maximum_amount,
            effective_from=dto.effective_from,
            effective_to=dto.effective_to,
            active=dto.active,
            version_number=dto.version_number,
            is_reverse_charge_applicable=dto.is_reverse_charge_applicable,
            is_composition_scheme_applicable=dto.is_composition_scheme_applicable,
            notification_number=dto.notification_number,
            description=dto.description,
            exemption_rules=dto.exemptions.as_mapping() if dto.exemptions else None,
        )

    def __repr__(self) -> str:
        return (
            f"<TaxRateModel {self.classification_code} {self.component_type} "
            f"{self.business_type} v{self.version_number}>"
        )
