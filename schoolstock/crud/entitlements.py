# schoolstock/crud/entitlements.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.clock import utcnow_iso
from ..core.errors import LedgerValidationError, RecordNotFoundError
from ..core.validation import normalize_quantity, normalize_reference
from ..db.upsert import upsert_row
from ..models.entitlement import ClassEntitlement
from .items import require_item

_KEY_FIELDS = ("class_id", "item_id", "term_id")


def _clean_record(db: Session, payload: dict, index: int | None = None) -> dict:
    """Validate one entitlement payload and return the normalized values."""

    try:
        data = {field: normalize_reference(payload.get(field), field) for field in _KEY_FIELDS}
        data["quantity"] = normalize_quantity(payload.get("quantity"), "quantity")
        require_item(db, data["item_id"])
    except LedgerValidationError as exc:
        if index is None:
            raise
        raise LedgerValidationError(
            f"record {index}: {exc.message}",
            details={"index": index, **(exc.details or {})},
        ) from exc
    data["notes"] = payload.get("notes")
    return data


def _apply(db: Session, data: dict, created_by: str | None) -> ClassEntitlement:
    now = utcnow_iso()
    return upsert_row(
        db,
        ClassEntitlement,
        key=_KEY_FIELDS,
        values={**data, "created_by": created_by, "created_at": now, "updated_at": now},
        update=("quantity", "notes", "updated_at"),
        keep_when_null=("notes",),
    )


def upsert_entitlement(db: Session, payload: dict, *, created_by: str | None = None) -> ClassEntitlement:
    """Create the (class, item, term) entitlement or overwrite its quantity."""

    data = _clean_record(db, payload)
    entitlement = _apply(db, data, created_by)
    db.commit()
    db.refresh(entitlement)
    return entitlement


def bulk_upsert_entitlements(
    db: Session, records: list[dict], *, created_by: str | None = None
) -> list[ClassEntitlement]:
    """Upsert many entitlements in one transaction.

    Every record is validated before anything is written, so one bad record
    leaves the table untouched. Repeated keys in one batch: the last one wins.
    """

    cleaned = [_clean_record(db, record, index) for index, record in enumerate(records)]
    try:
        saved = [_apply(db, data, created_by) for data in cleaned]
        db.commit()
    except Exception:
        db.rollback()
        raise
    unique_rows = list({row.id: row for row in saved}.values())
    for row in unique_rows:
        db.refresh(row)
    return unique_rows


def list_entitlements(
    db: Session,
    *,
    class_id: int | None = None,
    item_id: int | None = None,
    term_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[ClassEntitlement]:
    stmt = select(ClassEntitlement)
    if class_id is not None:
        stmt = stmt.where(ClassEntitlement.class_id == class_id)
    if item_id is not None:
        stmt = stmt.where(ClassEntitlement.item_id == item_id)
    if term_id is not None:
        stmt = stmt.where(ClassEntitlement.term_id == term_id)
    stmt = stmt.order_by(ClassEntitlement.class_id, ClassEntitlement.item_id, ClassEntitlement.id)
    return db.execute(stmt.limit(limit).offset(offset)).scalars().all()


def get_entitlement(db: Session, entitlement_id: int) -> ClassEntitlement | None:
    return db.get(ClassEntitlement, entitlement_id)


def require_entitlement(db: Session, entitlement_id: int) -> ClassEntitlement:
    entitlement = get_entitlement(db, entitlement_id)
    if entitlement is None:
        raise RecordNotFoundError("Class entitlement", entitlement_id)
    return entitlement


def update_entitlement(db: Session, entitlement: ClassEntitlement, payload: dict) -> ClassEntitlement:
    """Change quantity or notes. Moving to another key collides with upsert, so it is refused."""

    for field in _KEY_FIELDS:
        value = payload.get(field)
        if value is not None and normalize_reference(value, field) != getattr(entitlement, field):
            raise LedgerValidationError(f"{field} cannot change; upsert the new entitlement instead")
    if payload.get("quantity") is not None:
        entitlement.quantity = normalize_quantity(payload["quantity"], "quantity")
    if "notes" in payload:
        entitlement.notes = payload["notes"]
    entitlement.updated_at = utcnow_iso()
    db.commit()
    db.refresh(entitlement)
    return entitlement


def delete_entitlement(db: Session, entitlement: ClassEntitlement) -> None:
    db.delete(entitlement)
    db.commit()
