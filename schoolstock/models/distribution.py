"""SQLAlchemy model for stock handed from the shared pool to a class."""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship

from ..db.session import Base


class ClassDistribution(Base):
    """One allotment of an item to a class for an academic term.

    Every distribution has exactly one paired ``LedgerEntry`` (kind
    ``distribution``) whose ``qty_out`` equals ``distributed_quantity``.
    """

    __tablename__ = "class_distributions"
    __table_args__ = (
        CheckConstraint("distributed_quantity > 0", name="ck_distribution_positive_qty"),
    )

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(Integer, nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("inventory_items.id"), nullable=False, index=True)
    term_id = Column(Integer, nullable=False, index=True)
    distributed_quantity = Column(Integer, nullable=False)
    distribution_date = Column(Text, nullable=False)
    received_by = Column(Integer, nullable=True, index=True)
    receiver_name = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="active")
    cancelled_at = Column(Text, nullable=True)
    created_by = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    item = relationship("InventoryItem", lazy="joined")
    ledger_entries = relationship("LedgerEntry", back_populates="distribution")

    @property
    def item_name(self) -> str | None:
        return self.item.name if self.item else None

    @property
    def ledger_entry_id(self) -> int | None:
        entries = sorted(self.ledger_entries or [], key=lambda entry: entry.id)
        return entries[0].id if entries else None


__all__ = ["ClassDistribution"]
