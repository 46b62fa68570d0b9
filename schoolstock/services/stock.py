"""Stock aggregation over the ledger.

Stock is never stored. Every call below re-reads the completed ledger rows and
folds them into totals:

* ``current_stock = sum(qty_in) - sum(qty_out)`` over ``completed`` rows;
* ``is_low_stock`` when ``current_stock <= low_stock_threshold`` (the threshold
  defaults to 0, so an item without one is only low once it is empty);
* ``last_*_date`` are the latest ``transaction_date`` per kind.

Bulk and low-stock listings run one grouped query for the whole item set
rather than one query per item.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..core.errors import ItemNotFoundError, LedgerValidationError
from ..core.ledger_types import (
    COUNTED_STATUSES,
    KIND_DISTRIBUTION,
    KIND_PURCHASE,
    KIND_SALE,
    normalize_choice,
)
from ..core.logging import log_event
from ..models.item import InventoryItem
from ..models.ledger import LedgerEntry

logger = logging.getLogger(__name__)

# Which side of the row a per-kind summary reads.
_KIND_SIDES = {
    KIND_PURCHASE: "in",
    KIND_SALE: "out",
    KIND_DISTRIBUTION: "out",
}


def get_current_stock(db: Session, item_id: int) -> int:
    """Derive the on-hand quantity for one item from completed ledger rows."""

    stmt = select(
        func.coalesce(func.sum(LedgerEntry.qty_in), 0) - func.coalesce(func.sum(LedgerEntry.qty_out), 0)
    ).where(
        LedgerEntry.item_id == item_id,
        LedgerEntry.status.in_(COUNTED_STATUSES),
    )
    return int(db.execute(stmt).scalar() or 0)


def _grouped_totals(db: Session, item_ids: Iterable[int] | None = None) -> dict[int, list[Any]]:
    """Return completed-row aggregates keyed by item, one entry per kind."""

    stmt = (
        select(
            LedgerEntry.item_id,
            LedgerEntry.transaction_type,
            func.coalesce(func.sum(LedgerEntry.qty_in), 0).label("qty_in"),
            func.coalesce(func.sum(LedgerEntry.qty_out), 0).label("qty_out"),
            func.coalesce(func.sum(LedgerEntry.in_cost), 0).label("in_cost"),
            func.coalesce(func.sum(LedgerEntry.out_cost), 0).label("out_cost"),
            func.max(LedgerEntry.transaction_date).label("last_date"),
            func.count(LedgerEntry.id).label("row_count"),
        )
        .where(LedgerEntry.status.in_(COUNTED_STATUSES))
        .group_by(LedgerEntry.item_id, LedgerEntry.transaction_type)
    )
    if item_ids is not None:
        stmt = stmt.where(LedgerEntry.item_id.in_(list(item_ids)))

    grouped: dict[int, list[Any]] = {}
    for row in db.execute(stmt).all():
        grouped.setdefault(row.item_id, []).append(row)
    return grouped


def _latest(*values: str | None) -> str | None:
    present = [value for value in values if value]
    return max(present) if present else None


def build_summary(item: InventoryItem, kind_rows: Iterable[Any]) -> dict[str, Any]:
    """Fold per-kind aggregates into the public summary for one item."""

    total_in_qty = 0
    total_out_qty = 0
    total_in_cost = 0.0
    total_out_cost = 0.0
    last_dates: dict[str, str | None] = {}
    for row in kind_rows:
        total_in_qty += int(row.qty_in or 0)
        total_out_qty += int(row.qty_out or 0)
        total_in_cost += float(row.in_cost or 0)
        total_out_cost += float(row.out_cost or 0)
        last_dates[row.transaction_type] = _latest(last_dates.get(row.transaction_type), row.last_date)

    current_stock = total_in_qty - total_out_qty
    threshold = item.low_stock_threshold or 0
    return {
        "id": item.id,
        "name": item.name,
        "sku": item.sku,
        "category_name": item.category_name,
        "brand_name": item.brand_name,
        "uom_name": item.uom_name,
        "current_stock": current_stock,
        "total_in_quantity": total_in_qty,
        "total_out_quantity": total_out_qty,
        "total_in_cost": round(total_in_cost, 2),
        "total_out_cost": round(total_out_cost, 2),
        "low_stock_threshold": threshold,
        "is_low_stock": current_stock <= threshold,
        "last_transaction_date": _latest(*last_dates.values()),
        "last_purchase_date": last_dates.get(KIND_PURCHASE),
        "last_sale_date": last_dates.get(KIND_SALE),
    }


def get_stock_summary(db: Session, item_id: int) -> dict[str, Any]:
    """Full stock summary for one item; raises ``ItemNotFoundError``."""

    item = db.get(InventoryItem, item_id)
    if item is None:
        raise ItemNotFoundError(item_id)
    grouped = _grouped_totals(db, [item.id])
    return build_summary(item, grouped.get(item.id, []))


def _summaries_for(db: Session, items: list[InventoryItem]) -> list[dict[str, Any]]:
    if not items:
        return []
    grouped = _grouped_totals(db, [item.id for item in items])
    return [build_summary(item, grouped.get(item.id, [])) for item in items]


def get_bulk_stock_summaries(db: Session, item_ids: Iterable[int] | None = None) -> list[dict[str, Any]]:
    """Summaries for the given ids, or for every item when none are given.

    Unknown ids are dropped. When ids were supplied but none of them exist the
    request is rejected and the offending ids are reported back.
    """

    requested = list(dict.fromkeys(item_ids or []))
    if not requested:
        items = db.execute(select(InventoryItem).order_by(InventoryItem.id)).scalars().all()
        return _summaries_for(db, list(items))

    found = {
        item.id: item
        for item in db.execute(select(InventoryItem).where(InventoryItem.id.in_(requested))).scalars().all()
    }
    if not found:
        raise LedgerValidationError("Invalid inventory IDs", details={"invalid_ids": requested})
    missing = [item_id for item_id in requested if item_id not in found]
    if missing:
        log_event(logger, "stock.bulk_summary.unknown_ids", invalid_ids=missing)
    return _summaries_for(db, [found[item_id] for item_id in requested if item_id in found])


def get_low_stock_items(db: Session) -> list[dict[str, Any]]:
    """Every item whose derived stock is at or below its threshold."""

    return [summary for summary in get_bulk_stock_summaries(db) if summary["is_low_stock"]]


def get_transaction_summary_by_type(db: Session, item_id: int, transaction_type: str) -> dict[str, Any] | None:
    """Totals for one kind of completed movement on one item.

    Purchases read the in-side of each row; sales and distributions read the
    out-side. Returns ``None`` when the item has no completed rows of that kind.
    """

    kind = normalize_choice(transaction_type)
    side = _KIND_SIDES.get(kind or "")
    if side is None:
        raise LedgerValidationError(f"transaction_type must be one of {', '.join(_KIND_SIDES)}")
    if db.get(InventoryItem, item_id) is None:
        raise ItemNotFoundError(item_id)

    qty_col = LedgerEntry.qty_in if side == "in" else LedgerEntry.qty_out
    cost_col = LedgerEntry.in_cost if side == "in" else LedgerEntry.out_cost
    stmt = select(
        func.coalesce(func.sum(qty_col), 0),
        func.coalesce(func.sum(cost_col), 0),
        func.count(LedgerEntry.id),
        func.max(LedgerEntry.transaction_date),
    ).where(
        LedgerEntry.item_id == item_id,
        LedgerEntry.transaction_type == kind,
        LedgerEntry.status.in_(COUNTED_STATUSES),
    )
    total_qty, total_cost, count, last_date = db.execute(stmt).one()
    if not count:
        return None
    return {
        "transaction_type": kind,
        "total_quantity": int(total_qty or 0),
        "total_cost": round(float(total_cost or 0), 2),
        "transaction_count": int(count),
        "last_transaction_date": last_date,
    }


__all__ = [
    "build_summary",
    "get_bulk_stock_summaries",
    "get_current_stock",
    "get_low_stock_items",
    "get_stock_summary",
    "get_transaction_summary_by_type",
]
