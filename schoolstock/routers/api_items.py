from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..crud.items import create_item, list_items, require_item, update_item
from ..db.session import get_db
from ..deps.auth import AuthContext, require_principal
from ..schemas.items import ItemCreate, ItemOut, ItemUpdate

router = APIRouter(prefix="/api/v1/items", tags=["items"], dependencies=[Depends(require_principal)])


@router.get("", response_model=list[ItemOut])
def api_list(limit: int = 100, offset: int = 0, db: Session = Depends(get_db)):
    return list_items(db, limit=limit, offset=offset)


@router.get("/{item_id}", response_model=ItemOut)
def api_get(item_id: int, db: Session = Depends(get_db)):
    return require_item(db, item_id)


@router.post("", response_model=ItemOut, status_code=201)
def api_create(
    payload: ItemCreate,
    auth: AuthContext = Depends(require_principal),
    db: Session = Depends(get_db),
):
    return create_item(db, payload.model_dump(exclude_none=True), created_by=auth.subject)


@router.patch("/{item_id}", response_model=ItemOut)
def api_update(item_id: int, payload: ItemUpdate, db: Session = Depends(get_db)):
    item = require_item(db, item_id)
    data = payload.model_dump(exclude_unset=True)
    if not data:
        return item
    return update_item(db, item, data)
