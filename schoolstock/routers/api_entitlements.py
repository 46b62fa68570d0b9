from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..crud.entitlements import (
    bulk_upsert_entitlements,
    delete_entitlement,
    list_entitlements,
    require_entitlement,
    update_entitlement,
    upsert_entitlement,
)
from ..db.session import get_db
from ..deps.auth import AuthContext, require_principal
from ..schemas.entitlement import EntitlementBulkUpsert, EntitlementOut, EntitlementUpdate, EntitlementUpsert

router = APIRouter(prefix="/api/v1/entitlements", tags=["entitlements"], dependencies=[Depends(require_principal)])


@router.get("", response_model=list[EntitlementOut])
def api_list(
    class_id: Optional[int] = None,
    item_id: Optional[int] = None,
    term_id: Optional[int] = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    return list_entitlements(db, class_id=class_id, item_id=item_id, term_id=term_id, limit=limit, offset=offset)


@router.post("/bulk_upsert", response_model=list[EntitlementOut])
def api_bulk_upsert(
    payload: EntitlementBulkUpsert,
    auth: AuthContext = Depends(require_principal),
    db: Session = Depends(get_db),
):
    records = [record.model_dump() for record in payload.records]
    return bulk_upsert_entitlements(db, records, created_by=auth.subject)


@router.get("/{entitlement_id}", response_model=EntitlementOut)
def api_get(entitlement_id: int, db: Session = Depends(get_db)):
    return require_entitlement(db, entitlement_id)


@router.post("", response_model=EntitlementOut)
def api_upsert(
    payload: EntitlementUpsert,
    auth: AuthContext = Depends(require_principal),
    db: Session = Depends(get_db),
):
    return upsert_entitlement(db, payload.model_dump(), created_by=auth.subject)


@router.put("/{entitlement_id}", response_model=EntitlementOut)
def api_update(entitlement_id: int, payload: EntitlementUpdate, db: Session = Depends(get_db)):
    entitlement = require_entitlement(db, entitlement_id)
    return update_entitlement(db, entitlement, payload.model_dump(exclude_unset=True))


@router.delete("/{entitlement_id}")
def api_delete(entitlement_id: int, db: Session = Depends(get_db)):
    delete_entitlement(db, require_entitlement(db, entitlement_id))
    return {"status": "deleted"}
