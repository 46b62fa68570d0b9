"""SQLAlchemy model for catalog items held in the shared stock pool."""

from __future__ import annotations

from sqlalchemy import Column, Float, Integer, Text

from ..db.session import Base


class InventoryItem(Base):
    """A purchasable supply item.

    Stock is deliberately absent: it is always derived from completed ledger
    rows by the stock aggregator.
    """

    __tablename__ = "inventory_items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False, index=True)
    sku = Column(Text, nullable=True, unique=True)
    barcode = Column(Text, nullable=True)
    cost_price = Column(Float, nullable=False, default=0.0)
    selling_price = Column(Float, nullable=False, default=0.0)
    low_stock_threshold = Column(Integer, nullable=False, default=0)

    # Display labels copied from the catalog service (categories, brands, units).
    category_name = Column(Text, nullable=True)
    brand_name = Column(Text, nullable=True)
    uom_name = Column(Text, nullable=True)

    created_by = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)


__all__ = ["InventoryItem"]
