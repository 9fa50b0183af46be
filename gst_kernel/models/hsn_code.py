"""
Module: gst_kernel.models.hsn_code
Responsibility: ORM persistence for HSN classification codes.  Each row is
    one node of the HSN hierarchy, linked to its parent by code (not by
    foreign key), mirroring the in-memory classification arena.
Architecture position: Kernel > Models.  May import from db/base.py only;
    ``to_dto`` lazily imports the engine value object it converts to.

Invariants enforced:
    - code is unique.
    - Parent links are code strings; chain integrity is checked by the
      classification engine, not the database.
"""

from datetime import date

from sqlalchemy import Boolean, Date, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from gst_kernel.db.base import Base


class HsnCodeModel(Base):
    """One HSN chapter, heading, sub-heading or tariff item."""

    __tablename__ = "hsn_codes"

    __table_args__ = (
        Index("idx_hsn_parent", "parent_code"),
    )

    code: Mapped[str] = mapped_column(String(16), nullable=False, unique=True)
    parent_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    effective_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    unit_of_measurement: Mapped[str | None] = mapped_column(String(16), nullable=True)

    def to_dto(self):
        from gst_engines.classification import ClassificationCode

        return ClassificationCode(
            code=self.code,
            level=self.level,
            parent_code=self.parent_code,
            description=self.description,
            active=self.active,
            effective_from=self.effective_from,
            effective_to=self.effective_to,
            unit_of_measurement=self.unit_of_measurement,
        )

    @classmethod
    def from_dto(cls, dto) -> "HsnCodeModel":
        return cls(
            code=dto.code,
            parent_code=dto.parent_code,
            level=dto.level,
            description=dto.description,
            active=dto.active,
            effective_from=dto.effective_from,
            effective_to=dto.effective_to,
            unit_of_measurement=dto.unit_of_measurement,
        )

    def __repr__(self) -> str:
        return f"<HsnCodeModel {self.code} level={self.level}>"
