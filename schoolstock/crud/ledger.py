"""Ledger CRUD helpers for directly recorded stock movements.

Purchases, sales and returns are written here. Distribution rows are owned by
``services.distribution`` and are refused by every writer in this module so the
pairing between a class distribution and its ledger row cannot drift.
"""

from __future__ import annotations

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..core.clock import normalize_timestamp, utcnow_iso
from ..core.errors import LedgerValidationError, RecordNotFoundError
from ..core.ledger_types import (
    DIRECT_KINDS,
    KIND_PURCHASE,
    KIND_RETURN,
    KIND_SALE,
    STATUS_CHOICES,
    STATUS_COMPLETED,
    STATUS_DELETED,
    STATUS_PENDING,
    normalize_choice,
)
from ..core.validation import normalize_cost, normalize_quantity, normalize_reference
from ..models.ledger import LedgerEntry
from .items import require_item

_MUTABLE_FIELDS = ("status", "notes", "reference_no")


def normalize_status(value: str | None, default: str = STATUS_PENDING) -> str:
    status = normalize_choice(value, default)
    if status not in STATUS_CHOICES:
        raise LedgerValidationError(f"status must be one of {', '.join(STATUS_CHOICES)}")
    return status


def check_direction(transaction_type: str, qty_in: int, qty_out: int) -> None:
    """Enforce the one-sided row rule plus the per-kind direction."""

    if qty_in > 0 and qty_out > 0:
        raise LedgerValidationError("qty_in and qty_out cannot both be greater than 0 in a single transaction")
    if transaction_type == KIND_PURCHASE and qty_in <= 0:
        raise LedgerValidationError("qty_in is required for purchases")
    if transaction_type == KIND_SALE and qty_out <= 0:
        raise LedgerValidationError("qty_out is required for sales")
    if transaction_type == KIND_RETURN and qty_in <= 0 and qty_out <= 0:
        raise LedgerValidationError("returns need a positive qty_in or qty_out")


def record_transaction(
    db: Session,
    *,
    item_id: int,
    transaction_type: str,
    qty_in: object = 0,
    qty_out: object = 0,
    in_cost: object = 0,
    out_cost: object = 0,
    status: str | None = STATUS_PENDING,
    supplier_id: int | None = None,
    receiver_id: int | None = None,
    reference_no: str | None = None,
    notes: str | None = None,
    transaction_date: object = None,
    created_by: str | None = None,
) -> LedgerEntry:
    """Validate and persist a purchase, sale or return row."""

    kind = normalize_choice(transaction_type)
    if kind not in DIRECT_KINDS:
        raise LedgerValidationError(
            f"transaction_type must be one of {', '.join(DIRECT_KINDS)}; "
            "distribution rows are created through class distributions"
        )
    require_item(db, item_id)
    quantity_in = normalize_quantity(qty_in, "qty_in")
    quantity_out = normalize_quantity(qty_out, "qty_out")
    check_direction(kind, quantity_in, quantity_out)

    now = utcnow_iso()
    entry = LedgerEntry(
        item_id=item_id,
        transaction_type=kind,
        qty_in=quantity_in,
        in_cost=normalize_cost(in_cost, "in_cost"),
        qty_out=quantity_out,
        out_cost=normalize_cost(out_cost, "out_cost"),
        status=normalize_status(status),
        supplier_id=supplier_id,
        receiver_id=receiver_id,
        reference_no=(reference_no or "").strip() or None,
        notes=notes,
        transaction_date=normalize_timestamp(transaction_date),
        created_by=created_by,
        created_at=now,
        updated_at=now,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def record_purchase(db: Session, *, item_id: int, quantity: int, cost: object = 0, **extra) -> LedgerEntry:
    """Shortcut for the common "stock arrived and is booked" case."""

    extra.setdefault("status", STATUS_COMPLETED)
    return record_transaction(
        db,
        item_id=item_id,
        transaction_type=KIND_PURCHASE,
        qty_in=quantity,
        in_cost=cost,
        **extra,
    )


def list_transactions(
    db: Session,
    *,
    item_id: int | None = None,
    transaction_type: str | None = None,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[LedgerEntry]:
    """Fetch a page of ledger rows ordered by recency."""

    stmt = select(LedgerEntry)
    if item_id is not None:
        stmt = stmt.where(LedgerEntry.item_id == item_id)
    if transaction_type:
        stmt = stmt.where(LedgerEntry.transaction_type == normalize_choice(transaction_type))
    if status:
        stmt = stmt.where(LedgerEntry.status == normalize_status(status))
    stmt = (
        stmt.order_by(desc(LedgerEntry.transaction_date), desc(LedgerEntry.id))
        .limit(limit)
        .offset(offset)
    )
    return db.execute(stmt).unique().scalars().all()


def get_transaction(db: Session, entry_id: int) -> LedgerEntry | None:
    return db.get(LedgerEntry, entry_id)


def require_transaction(db: Session, entry_id: int) -> LedgerEntry:
    entry = get_transaction(db, entry_id)
    if entry is None:
        raise RecordNotFoundError("Inventory transaction", entry_id)
    return entry


def _refuse_distribution_rows(entry: LedgerEntry, action: str) -> None:
    if entry.is_distribution_linked:
        raise LedgerValidationError(
            f"cannot {action} a distribution ledger row directly; update or cancel the distribution instead",
            details={"distribution_id": entry.distribution_id},
        )


def update_transaction(db: Session, entry: LedgerEntry, payload: dict) -> LedgerEntry:
    """Change status, notes or reference number. Quantities are immutable."""

    _refuse_distribution_rows(entry, "edit")
    blocked = sorted(key for key, value in payload.items() if key not in _MUTABLE_FIELDS and value is not None)
    if blocked:
        raise LedgerValidationError(
            "only status, notes and reference_no can change on a ledger row",
            details={"fields": blocked},
        )
    if "status" in payload and payload["status"] is not None:
        entry.status = normalize_status(payload["status"])
    if "notes" in payload:
        entry.notes = payload["notes"]
    if "reference_no" in payload:
        entry.reference_no = (payload["reference_no"] or "").strip() or None
    entry.updated_at = utcnow_iso()
    db.commit()
    db.refresh(entry)
    return entry


def delete_transaction(db: Session, entry: LedgerEntry) -> LedgerEntry:
    """Soft delete: the row stays for history but no longer counts toward stock."""

    _refuse_distribution_rows(entry, "delete")
    entry.status = STATUS_DELETED
    entry.updated_at = utcnow_iso()
    db.commit()
    db.refresh(entry)
    return entry
