# schoolstock/crud/collections.py
from __future__ import annotations

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..core.clock import normalize_timestamp, utcnow_iso
from ..core.errors import LedgerValidationError, RecordNotFoundError
from ..core.validation import normalize_quantity, normalize_reference
from ..db.upsert import upsert_row
from ..models.collection import StudentCollection
from .items import require_item

_REFERENCE_FIELDS = ("student_id", "class_id", "term_id", "item_id")
_KEY_FIELDS = ("student_id", "term_id", "item_id")
# A later record for the same student, term and item replaces these.
_REPLACED_FIELDS = ("class_id", "qty", "eligible", "received", "received_date", "given_by")


def _clean_record(db: Session, payload: dict, index: int | None = None) -> dict:
    try:
        data = {field: normalize_reference(payload.get(field), field) for field in _REFERENCE_FIELDS}
        data["qty"] = normalize_quantity(payload.get("qty"), "qty")
        if data["qty"] <= 0:
            raise LedgerValidationError("qty must be greater than 0")
        require_item(db, data["item_id"])
        given_by = payload.get("given_by")
        data["given_by"] = normalize_reference(given_by, "given_by") if given_by not in (None, "") else None

        received = bool(payload.get("received", False))
        data["received"] = received
        if received:
            data["received_date"] = normalize_timestamp(payload.get("received_date"))
        else:
            data["received_date"] = None
    except LedgerValidationError as exc:
        if index is None:
            raise
        raise LedgerValidationError(
            f"record {index}: {exc.message}",
            details={"index": index, **(exc.details or {})},
        ) from exc
    data["eligible"] = bool(payload.get("eligible", True))
    return data


def _apply(db: Session, data: dict, created_by: str | None) -> StudentCollection:
    now = utcnow_iso()
    return upsert_row(
        db,
        StudentCollection,
        key=_KEY_FIELDS,
        values={**data, "created_by": created_by, "created_at": now, "updated_at": now},
        update=_REPLACED_FIELDS + ("updated_at",),
    )


def upsert_collection(db: Session, payload: dict, *, created_by: str | None = None) -> StudentCollection:
    """Record a student's collection, replacing any earlier row for the same student, term and item."""

    row = _apply(db, _clean_record(db, payload), created_by)
    db.commit()
    db.refresh(row)
    return row


def bulk_upsert_collections(
    db: Session, records: list[dict], *, created_by: str | None = None
) -> list[StudentCollection]:
    cleaned = [_clean_record(db, record, index) for index, record in enumerate(records)]
    try:
        saved = [_apply(db, data, created_by) for data in cleaned]
        db.commit()
    except Exception:
        db.rollback()
        raise
    rows = list({row.id: row for row in saved}.values())
    for row in rows:
        db.refresh(row)
    return rows


def list_collections(
    db: Session,
    *,
    student_id: int | None = None,
    class_id: int | None = None,
    term_id: int | None = None,
    item_id: int | None = None,
    received: bool | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[StudentCollection]:
    stmt = select(StudentCollection)
    if student_id is not None:
        stmt = stmt.where(StudentCollection.student_id == student_id)
    if class_id is not None:
        stmt = stmt.where(StudentCollection.class_id == class_id)
    if term_id is not None:
        stmt = stmt.where(StudentCollection.term_id == term_id)
    if item_id is not None:
        stmt = stmt.where(StudentCollection.item_id == item_id)
    if received is not None:
        stmt = stmt.where(StudentCollection.received.is_(received))
    stmt = stmt.order_by(desc(StudentCollection.updated_at), desc(StudentCollection.id))
    return db.execute(stmt.limit(limit).offset(offset)).scalars().all()


def get_collection(db: Session, collection_id: int) -> StudentCollection | None:
    return db.get(StudentCollection, collection_id)


def require_collection(db: Session, collection_id: int) -> StudentCollection:
    row = get_collection(db, collection_id)
    if row is None:
        raise RecordNotFoundError("Student collection", collection_id)
    return row


def delete_collection(db: Session, row: StudentCollection) -> None:
    db.delete(row)
    db.commit()
