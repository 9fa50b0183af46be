"""
Module: gst_kernel.selectors.classification_selector
Responsibility: Database-backed classification lookup.  Satisfies the
    ``get(code)`` lookup the classification engine walks, so the tax engine
    can run directly against the persisted HSN registry.
"""

from sqlalchemy import select

from gst_kernel.logging_config import get_logger
from gst_kernel.models.hsn_code import HsnCodeModel
from gst_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.classification")


class HsnCodeSelector(BaseSelector[HsnCodeModel]):
    """Read HSN codes as ``ClassificationCode`` values."""

    def get(self, code: str):
        row = self.session.execute(
            select(HsnCodeModel).where(HsnCodeModel.code == code)
        ).scalar_one_or_none()
        if row is None:
            logger.debug("hsn_code_not_found", extra={"classification_code": code})
            return None
        return row.to_dto()

    def children_of(self, code: str) -> tuple:
        rows = self.session.execute(
            select(HsnCodeModel)
            .where(HsnCodeModel.parent_code == code)
            .order_by(HsnCodeModel.code)
        ).scalars()
        return tuple(row.to_dto() for row in rows)

    def all_codes(self) -> tuple:
        rows = self.session.execute(
            select(HsnCodeModel).order_by(HsnCodeModel.code)
        ).scalars()
        return tuple(row.to_dto() for row in rows)
