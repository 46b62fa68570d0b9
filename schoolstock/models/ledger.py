"""SQLAlchemy model for the stock ledger.

WHAT: one row per stock movement (purchase, sale, distribution, return).
WHY: the ledger is the only source of truth for stock; nothing else stores a
running count.
HOW: each row carries an in-side and an out-side quantity/cost pair, of which at
most one is positive, plus a status. Only ``completed`` rows are folded into
stock totals.
"""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, Float, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship

from ..core.ledger_types import KIND_DISTRIBUTION
from ..db.session import Base


class LedgerEntry(Base):
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        CheckConstraint("qty_in >= 0 AND qty_out >= 0", name="ck_ledger_non_negative_qty"),
        CheckConstraint("NOT (qty_in > 0 AND qty_out > 0)", name="ck_ledger_single_direction"),
    )

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(Integer, ForeignKey("inventory_items.id"), nullable=False, index=True)
    transaction_type = Column(Text, nullable=False, index=True)
    qty_in = Column(Integer, nullable=False, default=0)
    in_cost = Column(Float, nullable=False, default=0.0)
    qty_out = Column(Integer, nullable=False, default=0)
    out_cost = Column(Float, nullable=False, default=0.0)
    status = Column(Text, nullable=False, default="pending", index=True)

    # Back-reference to the class distribution this row mirrors (distribution rows only).
    distribution_id = Column(Integer, ForeignKey("class_distributions.id"), nullable=True, index=True)

    supplier_id = Column(Integer, nullable=True)
    receiver_id = Column(Integer, nullable=True)
    reference_no = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    transaction_date = Column(Text, nullable=False, index=True)
    created_by = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    item = relationship("InventoryItem", lazy="joined")
    distribution = relationship("ClassDistribution", back_populates="ledger_entries")

    @property
    def item_name(self) -> str | None:
        return self.item.name if self.item else None

    @property
    def is_distribution_linked(self) -> bool:
        return self.transaction_type == KIND_DISTRIBUTION or self.distribution_id is not None

    @property
    def net_quantity(self) -> int:
        return (self.qty_in or 0) - (self.qty_out or 0)


__all__ = ["LedgerEntry"]
