"""SQLAlchemy model for the per-student collection log."""

from __future__ import annotations

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, Text, UniqueConstraint

from ..db.session import Base


class StudentCollection(Base):
    """Records that a student picked up (or is due) part of a class allotment.

    Tied to distributions only through the shared (class, item, term) triple.
    """

    __tablename__ = "student_collections"
    __table_args__ = (
        UniqueConstraint("student_id", "term_id", "item_id", name="uq_collection_student_term_item"),
        CheckConstraint("qty > 0", name="ck_collection_positive_qty"),
    )

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, nullable=False, index=True)
    class_id = Column(Integer, nullable=False, index=True)
    term_id = Column(Integer, nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("inventory_items.id"), nullable=False, index=True)
    qty = Column(Integer, nullable=False)
    eligible = Column(Boolean, nullable=False, default=True)
    received = Column(Boolean, nullable=False, default=False)
    received_date = Column(Text, nullable=True)
    given_by = Column(Integer, nullable=True, index=True)
    created_by = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)


__all__ = ["StudentCollection"]
