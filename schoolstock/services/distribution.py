"""Class distributions and their paired ledger rows.

A distribution moves stock from the shared pool to a class. The move is stored
twice: as a ``ClassDistribution`` row (who got what, for which term) and as a
``LedgerEntry`` of kind ``distribution`` whose ``qty_out`` takes the quantity
out of stock. The two must always agree.

Each operation here does its stock check and both writes inside one database
transaction. The item row is locked with ``SELECT ... FOR UPDATE`` where the
backend supports it; on SQLite the database write lock is taken up front.
Either everything is committed or nothing is, and a second distribution of
the same item waits for the first before it reads stock.
``find_ledger_mismatches`` / ``repair_ledger_mismatches`` exist for rows
written by older versions or edited behind the service's back.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import desc, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.clock import normalize_timestamp, utcnow_iso
from ..core.errors import (
    DistributionNotFoundError,
    InsufficientStockError,
    ItemNotFoundError,
    LedgerValidationError,
    PartialWriteError,
    StockLedgerError,
)
from ..core.ledger_types import (
    DISTRIBUTION_ACTIVE,
    DISTRIBUTION_CANCELLED,
    KIND_DISTRIBUTION,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_DELETED,
)
from ..core.logging import log_event
from ..core.validation import normalize_cost, normalize_quantity, normalize_reference
from ..db.session import begin_write
from ..models.distribution import ClassDistribution
from ..models.item import InventoryItem
from ..models.ledger import LedgerEntry
from .stock import get_current_stock

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("receiver_name", "notes")


def _positive_quantity(value: object, field: str = "distributed_quantity") -> int:
    quantity = normalize_quantity(value, field)
    if quantity <= 0:
        raise LedgerValidationError(f"{field} must be greater than 0")
    return quantity


def _lock_item(db: Session, item_id: int) -> InventoryItem:
    stmt = select(InventoryItem).where(InventoryItem.id == item_id).with_for_update()
    item = db.execute(stmt).scalars().first()
    if item is None:
        raise ItemNotFoundError(item_id)
    return item


def _run_atomically(db: Session, action: str, context: dict[str, Any], work) -> Any:
    """Run ``work()`` and commit, or roll the whole unit back."""

    try:
        begin_write(db)
        result = work()
        db.commit()
    except StockLedgerError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        log_event(logger, f"{action}.failed", level=logging.ERROR, exc_info=True, **context)
        raise PartialWriteError(
            f"{action} could not be saved; no changes were kept",
            details=context,
        ) from exc
    return result


def _paired_entries(db: Session, distribution_id: int) -> list[LedgerEntry]:
    stmt = (
        select(LedgerEntry)
        .where(
            LedgerEntry.distribution_id == distribution_id,
            LedgerEntry.transaction_type == KIND_DISTRIBUTION,
            LedgerEntry.status != STATUS_DELETED,
        )
        .order_by(LedgerEntry.id)
    )
    return list(db.execute(stmt).unique().scalars().all())


def get_paired_entry(db: Session, distribution_id: int) -> LedgerEntry | None:
    """The ledger row mirroring a distribution, if it exists."""

    entries = _paired_entries(db, distribution_id)
    return entries[0] if entries else None


def _new_paired_entry(distribution: ClassDistribution, *, out_cost: float, reference_no: str | None) -> LedgerEntry:
    now = utcnow_iso()
    return LedgerEntry(
        item_id=distribution.item_id,
        transaction_type=KIND_DISTRIBUTION,
        qty_in=0,
        in_cost=0.0,
        qty_out=distribution.distributed_quantity,
        out_cost=out_cost,
        status=STATUS_COMPLETED,
        distribution_id=distribution.id,
        receiver_id=distribution.received_by,
        reference_no=reference_no,
        notes=distribution.notes,
        transaction_date=distribution.distribution_date,
        created_by=distribution.created_by,
        created_at=now,
        updated_at=now,
    )


def distribute(
    db: Session,
    *,
    class_id: object,
    item_id: object,
    term_id: object,
    quantity: object,
    received_by: object,
    receiver_name: str | None = None,
    notes: str | None = None,
    distribution_date: object = None,
    out_cost: object = None,
    reference_no: str | None = None,
    created_by: str | None = None,
) -> ClassDistribution:
    """Hand ``quantity`` units of an item to a class for a term.

    Every distribution names the teacher who received it (``received_by``).
    Raises ``LedgerValidationError`` for bad input, ``ItemNotFoundError`` for an
    unknown item and ``InsufficientStockError`` when the derived stock is
    smaller than ``quantity``. Nothing is written in any of those cases.
    """

    qty = _positive_quantity(quantity)
    class_ref = normalize_reference(class_id, "class_id")
    item_ref = normalize_reference(item_id, "item_id")
    term_ref = normalize_reference(term_id, "term_id")
    teacher_ref = normalize_reference(received_by, "received_by")
    when = normalize_timestamp(distribution_date)
    cost = normalize_cost(out_cost, "out_cost")
    context = {"class_id": class_ref, "item_id": item_ref, "term_id": term_ref, "quantity": qty}

    def work() -> ClassDistribution:
        item = _lock_item(db, item_ref)
        available = get_current_stock(db, item.id)
        if qty > available:
            log_event(logger, "distribution.rejected", available=available, **context)
            raise InsufficientStockError(item.id, qty, available)

        now = utcnow_iso()
        distribution = ClassDistribution(
            class_id=class_ref,
            item_id=item.id,
            term_id=term_ref,
            distributed_quantity=qty,
            distribution_date=when,
            received_by=teacher_ref,
            receiver_name=(receiver_name or "").strip() or None,
            notes=notes,
            status=DISTRIBUTION_ACTIVE,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        db.add(distribution)
        db.flush()
        db.add(_new_paired_entry(distribution, out_cost=cost, reference_no=(reference_no or "").strip() or None))
        return distribution

    distribution = _run_atomically(db, "distribution.create", context, work)
    db.refresh(distribution)
    log_event(logger, "distribution.created", distribution_id=distribution.id, **context)
    return distribution


def update_distribution(db: Session, distribution: ClassDistribution, payload: dict) -> ClassDistribution:
    """Rewrite a distribution and its ledger row together.

    ``distributed_quantity`` may go up only by what is still in stock. The item
    cannot change; cancel and distribute again instead.
    """

    if distribution.status == DISTRIBUTION_CANCELLED:
        raise LedgerValidationError("cancelled distributions cannot be updated")
    if payload.get("item_id") is not None and normalize_reference(payload["item_id"], "item_id") != distribution.item_id:
        raise LedgerValidationError("item_id cannot change on an existing distribution")

    new_qty = distribution.distributed_quantity
    if payload.get("distributed_quantity") is not None:
        new_qty = _positive_quantity(payload["distributed_quantity"])
    changes: dict[str, Any] = {}
    for field in ("class_id", "term_id"):
        if payload.get(field) is not None:
            changes[field] = normalize_reference(payload[field], field)
    if payload.get("received_by") is not None:
        changes["received_by"] = normalize_reference(payload["received_by"], "received_by")
    if payload.get("distribution_date") is not None:
        changes["distribution_date"] = normalize_timestamp(payload["distribution_date"])
    for field in _TEXT_FIELDS:
        if field in payload:
            changes[field] = (payload[field] or "").strip() or None
    cost = normalize_cost(payload["out_cost"], "out_cost") if payload.get("out_cost") is not None else None
    context = {"distribution_id": distribution.id, "item_id": distribution.item_id, "quantity": new_qty}

    def work() -> ClassDistribution:
        _lock_item(db, distribution.item_id)
        entries = _paired_entries(db, distribution.id)
        entry = entries[0] if entries else None
        counted = entry.qty_out if entry is not None and entry.status == STATUS_COMPLETED else 0
        extra_needed = new_qty - counted
        if extra_needed > 0:
            available = get_current_stock(db, distribution.item_id)
            if extra_needed > available:
                raise InsufficientStockError(distribution.item_id, new_qty, available + counted)

        for field, value in changes.items():
            setattr(distribution, field, value)
        distribution.distributed_quantity = new_qty
        distribution.updated_at = utcnow_iso()

        if entry is None:
            log_event(logger, "distribution.ledger_row_recreated", level=logging.WARNING, **context)
            entry = _new_paired_entry(distribution, out_cost=cost or 0.0, reference_no=None)
            db.add(entry)
        entry.qty_out = new_qty
        entry.status = STATUS_COMPLETED
        entry.item_id = distribution.item_id
        entry.receiver_id = distribution.received_by
        entry.transaction_date = distribution.distribution_date
        entry.notes = distribution.notes
        if cost is not None:
            entry.out_cost = cost
        entry.updated_at = distribution.updated_at
        return distribution

    _run_atomically(db, "distribution.update", context, work)
    db.refresh(distribution)
    log_event(logger, "distribution.updated", **context)
    return distribution


def cancel_distribution(db: Session, distribution: ClassDistribution) -> ClassDistribution:
    """Cancel a distribution and return its quantity to stock.

    The paired ledger row is marked ``cancelled`` (it stays for history) so it
    stops counting toward stock.
    """

    if distribution.status == DISTRIBUTION_CANCELLED:
        raise LedgerValidationError("distribution is already cancelled")
    context = {
        "distribution_id": distribution.id,
        "item_id": distribution.item_id,
        "quantity": distribution.distributed_quantity,
    }

    def work() -> ClassDistribution:
        now = utcnow_iso()
        distribution.status = DISTRIBUTION_CANCELLED
        distribution.cancelled_at = now
        distribution.updated_at = now
        for entry in _paired_entries(db, distribution.id):
            entry.status = STATUS_CANCELLED
            entry.updated_at = now
        return distribution

    _run_atomically(db, "distribution.cancel", context, work)
    db.refresh(distribution)
    log_event(logger, "distribution.cancelled", **context)
    return distribution


def get_distribution(db: Session, distribution_id: int) -> ClassDistribution | None:
    return db.get(ClassDistribution, distribution_id)


def require_distribution(db: Session, distribution_id: int) -> ClassDistribution:
    distribution = get_distribution(db, distribution_id)
    if distribution is None:
        raise DistributionNotFoundError(distribution_id)
    return distribution


def list_distributions(
    db: Session,
    *,
    item_id: int | None = None,
    class_id: int | None = None,
    term_id: int | None = None,
    teacher_id: int | None = None,
    include_cancelled: bool = False,
    limit: int = 100,
    offset: int = 0,
) -> list[ClassDistribution]:
    stmt = select(ClassDistribution)
    if item_id is not None:
        stmt = stmt.where(ClassDistribution.item_id == item_id)
    if class_id is not None:
        stmt = stmt.where(ClassDistribution.class_id == class_id)
    if term_id is not None:
        stmt = stmt.where(ClassDistribution.term_id == term_id)
    if teacher_id is not None:
        stmt = stmt.where(ClassDistribution.received_by == teacher_id)
    if not include_cancelled:
        stmt = stmt.where(ClassDistribution.status == DISTRIBUTION_ACTIVE)
    stmt = (
        stmt.order_by(desc(ClassDistribution.distribution_date), desc(ClassDistribution.id))
        .limit(limit)
        .offset(offset)
    )
    return db.execute(stmt).unique().scalars().all()


# ---------- Reconciliation ----------


def _expected_status(distribution: ClassDistribution) -> str:
    return STATUS_CANCELLED if distribution.status == DISTRIBUTION_CANCELLED else STATUS_COMPLETED


def _mismatch(problem: str, *, distribution: ClassDistribution | None, entry: LedgerEntry | None) -> dict[str, Any]:
    return {
        "problem": problem,
        "distribution_id": distribution.id if distribution is not None else (entry.distribution_id if entry else None),
        "ledger_entry_id": entry.id if entry is not None else None,
        "item_id": distribution.item_id if distribution is not None else entry.item_id,
        "expected_quantity": distribution.distributed_quantity if distribution is not None else None,
        "ledger_quantity": entry.qty_out if entry is not None else None,
        "expected_status": _expected_status(distribution) if distribution is not None else None,
        "ledger_status": entry.status if entry is not None else None,
        "repairable": distribution is not None,
    }


def find_ledger_mismatches(db: Session) -> list[dict[str, Any]]:
    """List every place where a distribution and its ledger row disagree.

    Problems reported: ``missing_ledger_entry``, ``duplicate_ledger_entry``,
    ``quantity_mismatch``, ``status_mismatch``, ``item_mismatch`` and
    ``orphan_ledger_entry`` (a distribution row pointing nowhere; reported only).
    """

    distributions = db.execute(select(ClassDistribution).order_by(ClassDistribution.id)).unique().scalars().all()
    entries = db.execute(
        select(LedgerEntry)
        .where(
            or_(
                LedgerEntry.transaction_type == KIND_DISTRIBUTION,
                LedgerEntry.distribution_id.is_not(None),
            ),
            LedgerEntry.status != STATUS_DELETED,
        )
        .order_by(LedgerEntry.id)
    ).unique().scalars().all()

    by_distribution: dict[int, list[LedgerEntry]] = {}
    for entry in entries:
        if entry.distribution_id is not None:
            by_distribution.setdefault(entry.distribution_id, []).append(entry)

    known_ids = {distribution.id for distribution in distributions}
    problems: list[dict[str, Any]] = []
    for distribution in distributions:
        paired = by_distribution.get(distribution.id, [])
        if not paired:
            if distribution.status != DISTRIBUTION_CANCELLED:
                problems.append(_mismatch("missing_ledger_entry", distribution=distribution, entry=None))
            continue
        entry = paired[0]
        for extra in paired[1:]:
            problems.append(_mismatch("duplicate_ledger_entry", distribution=distribution, entry=extra))
        if entry.item_id != distribution.item_id:
            problems.append(_mismatch("item_mismatch", distribution=distribution, entry=entry))
        if entry.qty_out != distribution.distributed_quantity or entry.qty_in:
            problems.append(_mismatch("quantity_mismatch", distribution=distribution, entry=entry))
        if entry.status != _expected_status(distribution):
            problems.append(_mismatch("status_mismatch", distribution=distribution, entry=entry))

    for entry in entries:
        if entry.distribution_id is None or entry.distribution_id not in known_ids:
            problems.append(_mismatch("orphan_ledger_entry", distribution=None, entry=entry))
    return problems


def repair_ledger_mismatches(db: Session) -> list[dict[str, Any]]:
    """Rewrite ledger rows so they match their distributions.

    The distribution row is treated as the truth. Orphan ledger rows are left
    alone because there is nothing to compare them with. Returns the problems
    that were fixed.
    """

    problems = [problem for problem in find_ledger_mismatches(db) if problem["repairable"]]
    if not problems:
        return []

    def work() -> list[dict[str, Any]]:
        now = utcnow_iso()
        for problem in problems:
            distribution = db.get(ClassDistribution, problem["distribution_id"])
            if problem["problem"] == "missing_ledger_entry":
                db.add(_new_paired_entry(distribution, out_cost=0.0, reference_no=None))
            elif problem["problem"] == "duplicate_ledger_entry":
                duplicate = db.get(LedgerEntry, problem["ledger_entry_id"])
                duplicate.status = STATUS_DELETED
                duplicate.updated_at = now
            else:
                entry = db.get(LedgerEntry, problem["ledger_entry_id"])
                entry.item_id = distribution.item_id
                entry.qty_in = 0
                entry.qty_out = distribution.distributed_quantity
                entry.status = _expected_status(distribution)
                entry.updated_at = now
            log_event(logger, "ledger.repaired", level=logging.WARNING, **problem)
        return problems

    return _run_atomically(db, "ledger.repair", {"problems": len(problems)}, work)


__all__ = [
    "cancel_distribution",
    "distribute",
    "find_ledger_mismatches",
    "get_distribution",
    "get_paired_entry",
    "list_distributions",
    "repair_ledger_mismatches",
    "require_distribution",
    "update_distribution",
]
