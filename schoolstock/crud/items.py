# schoolstock/crud/items.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.clock import utcnow_iso
from ..core.errors import ItemNotFoundError, LedgerValidationError
from ..core.validation import normalize_cost
from ..models.item import InventoryItem

_TEXT_FIELDS = ("name", "sku", "barcode", "category_name", "brand_name", "uom_name")
_PRICE_FIELDS = ("cost_price", "selling_price")


def _normalize_threshold(value: object) -> int:
    if value is None:
        return 0
    try:
        threshold = int(value)
    except (TypeError, ValueError) as exc:
        raise LedgerValidationError("low_stock_threshold must be an integer") from exc
    if threshold < 0:
        raise LedgerValidationError("low_stock_threshold must be >= 0")
    return threshold


def _clean_text(value: object) -> str | None:
    if value is None:
        return None
    return str(value).strip() or None


def _ensure_unique_sku(db: Session, sku: str | None, item_id: int | None = None) -> None:
    if not sku:
        return
    stmt = select(InventoryItem.id).where(InventoryItem.sku == sku)
    if item_id is not None:
        stmt = stmt.where(InventoryItem.id != item_id)
    if db.execute(stmt).scalars().first() is not None:
        raise LedgerValidationError(f"sku {sku!r} is already in use")


def list_items(db: Session, limit: int = 100, offset: int = 0) -> list[InventoryItem]:
    stmt = select(InventoryItem).order_by(InventoryItem.name, InventoryItem.id).limit(limit).offset(offset)
    return db.execute(stmt).scalars().all()


def get_item(db: Session, item_id: int) -> InventoryItem | None:
    return db.get(InventoryItem, item_id)


def require_item(db: Session, item_id: int) -> InventoryItem:
    item = get_item(db, item_id)
    if item is None:
        raise ItemNotFoundError(item_id)
    return item


def get_item_by_sku(db: Session, sku: str) -> InventoryItem | None:
    cleaned = _clean_text(sku)
    if not cleaned:
        return None
    stmt = select(InventoryItem).where(InventoryItem.sku == cleaned)
    return db.execute(stmt).scalars().first()


def create_item(db: Session, payload: dict, *, created_by: str | None = None) -> InventoryItem:
    """Create and persist a catalog item from a payload dict."""

    data = {key: _clean_text(payload.get(key)) for key in _TEXT_FIELDS if key in payload}
    if not data.get("name"):
        raise LedgerValidationError("name is required")
    for key in _PRICE_FIELDS:
        data[key] = normalize_cost(payload.get(key), key)
    data["low_stock_threshold"] = _normalize_threshold(payload.get("low_stock_threshold"))
    _ensure_unique_sku(db, data.get("sku"))

    now = utcnow_iso()
    item = InventoryItem(**data, created_by=created_by, created_at=now, updated_at=now)
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def update_item(db: Session, item: InventoryItem, payload: dict) -> InventoryItem:
    """Update prices, threshold and labels in-place. Unknown keys are ignored."""

    for key, value in payload.items():
        if key in _TEXT_FIELDS:
            cleaned = _clean_text(value)
            if key == "name" and not cleaned:
                raise LedgerValidationError("name is required")
            if key == "sku":
                _ensure_unique_sku(db, cleaned, item.id)
            setattr(item, key, cleaned)
        elif key in _PRICE_FIELDS:
            setattr(item, key, normalize_cost(value, key))
        elif key == "low_stock_threshold":
            item.low_stock_threshold = _normalize_threshold(value)
    item.updated_at = utcnow_iso()
    db.commit()
    db.refresh(item)
    return item
