"""SQLAlchemy model for planned per-class allotments."""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, Text, UniqueConstraint

from ..db.session import Base


class ClassEntitlement(Base):
    """How much of an item a class is meant to get in a term.

    A planning record only; nothing checks distributions against it.
    """

    __tablename__ = "class_entitlements"
    __table_args__ = (
        UniqueConstraint("class_id", "item_id", "term_id", name="uq_entitlement_class_item_term"),
        CheckConstraint("quantity >= 0", name="ck_entitlement_non_negative_qty"),
    )

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(Integer, nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("inventory_items.id"), nullable=False, index=True)
    term_id = Column(Integer, nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)
    created_by = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)


__all__ = ["ClassEntitlement"]
