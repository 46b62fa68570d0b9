"""Distributed-versus-collected balances per item.

Distributions put stock in a class's hands; students then collect it. This
module compares the two without joining them row by row: each side is summed
per item on its own, and the two result sets are merged by item id.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..core.ledger_types import DISTRIBUTION_ACTIVE
from ..core.logging import log_event
from ..models.collection import StudentCollection
from ..models.distribution import ClassDistribution
from ..models.item import InventoryItem

logger = logging.getLogger(__name__)


def _distributed_by_item(db: Session, *, item_id, class_id, term_id, teacher_id) -> dict[int, Any]:
    stmt = (
        select(
            ClassDistribution.item_id,
            func.coalesce(func.sum(ClassDistribution.distributed_quantity), 0).label("total"),
            func.max(ClassDistribution.distribution_date).label("last_date"),
        )
        .where(ClassDistribution.status == DISTRIBUTION_ACTIVE)
        .group_by(ClassDistribution.item_id)
    )
    if item_id is not None:
        stmt = stmt.where(ClassDistribution.item_id == item_id)
    if class_id is not None:
        stmt = stmt.where(ClassDistribution.class_id == class_id)
    if term_id is not None:
        stmt = stmt.where(ClassDistribution.term_id == term_id)
    if teacher_id is not None:
        stmt = stmt.where(ClassDistribution.received_by == teacher_id)
    return {row.item_id: row for row in db.execute(stmt).all()}


def _collected_by_item(db: Session, *, item_id, class_id, term_id, teacher_id) -> dict[int, int]:
    stmt = (
        select(
            StudentCollection.item_id,
            func.coalesce(func.sum(StudentCollection.qty), 0).label("total"),
        )
        .where(StudentCollection.received.is_(True))
        .group_by(StudentCollection.item_id)
    )
    if item_id is not None:
        stmt = stmt.where(StudentCollection.item_id == item_id)
    if class_id is not None:
        stmt = stmt.where(StudentCollection.class_id == class_id)
    if term_id is not None:
        stmt = stmt.where(StudentCollection.term_id == term_id)
    if teacher_id is not None:
        stmt = stmt.where(StudentCollection.given_by == teacher_id)
    return {row.item_id: int(row.total or 0) for row in db.execute(stmt).all()}


def get_distribution_summary(
    db: Session,
    *,
    item_id: int | None = None,
    class_id: int | None = None,
    term_id: int | None = None,
    teacher_id: int | None = None,
) -> list[dict[str, Any]]:
    """Per-item totals of what was handed to classes and what students took.

    An item present on only one side is reported with zero on the other.
    ``balance`` is distributed minus collected; a negative balance means more
    was collected than distributed and is flagged ``is_over_collected``.
    """

    filters = {"item_id": item_id, "class_id": class_id, "term_id": term_id, "teacher_id": teacher_id}
    distributed = _distributed_by_item(db, **filters)
    collected = _collected_by_item(db, **filters)
    item_ids = sorted(set(distributed) | set(collected))
    if not item_ids:
        return []

    names = dict(
        db.execute(select(InventoryItem.id, InventoryItem.name).where(InventoryItem.id.in_(item_ids))).all()
    )
    summary: list[dict[str, Any]] = []
    for current in item_ids:
        dist_row = distributed.get(current)
        total_distributed = int(dist_row.total or 0) if dist_row is not None else 0
        total_collected = collected.get(current, 0)
        balance = total_distributed - total_collected
        row = {
            "item_id": current,
            "item_name": names.get(current),
            "total_distributed": total_distributed,
            "total_collected": total_collected,
            "balance": balance,
            "last_distribution_date": dist_row.last_date if dist_row is not None else None,
            "is_over_collected": balance < 0,
        }
        if balance < 0:
            log_event(logger, "collection.over_collected", level=logging.WARNING, **{**filters, **row})
        summary.append(row)
    return summary


__all__ = ["get_distribution_summary"]
