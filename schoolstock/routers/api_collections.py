from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..crud.collections import (
    bulk_upsert_collections,
    delete_collection,
    list_collections,
    require_collection,
    upsert_collection,
)
from ..db.session import get_db
from ..deps.auth import AuthContext, require_principal
from ..schemas.collection import CollectionBulkUpsert, CollectionOut, CollectionUpsert

router = APIRouter(
    prefix="/api/v1/student_collections",
    tags=["student-collections"],
    dependencies=[Depends(require_principal)],
)


@router.get("", response_model=list[CollectionOut])
def api_list(
    student_id: Optional[int] = None,
    class_id: Optional[int] = None,
    term_id: Optional[int] = None,
    item_id: Optional[int] = None,
    received: Optional[bool] = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    return list_collections(
        db,
        student_id=student_id,
        class_id=class_id,
        term_id=term_id,
        item_id=item_id,
        received=received,
        limit=limit,
        offset=offset,
    )


@router.post("/bulk_upsert", response_model=list[CollectionOut])
def api_bulk_upsert(
    payload: CollectionBulkUpsert,
    auth: AuthContext = Depends(require_principal),
    db: Session = Depends(get_db),
):
    return bulk_upsert_collections(db, [r.model_dump() for r in payload.records], created_by=auth.subject)


@router.get("/{collection_id}", response_model=CollectionOut)
def api_get(collection_id: int, db: Session = Depends(get_db)):
    return require_collection(db, collection_id)


@router.post("", response_model=CollectionOut)
def api_upsert(
    payload: CollectionUpsert,
    auth: AuthContext = Depends(require_principal),
    db: Session = Depends(get_db),
):
    return upsert_collection(db, payload.model_dump(), created_by=auth.subject)


@router.delete("/{collection_id}")
def api_delete(collection_id: int, db: Session = Depends(get_db)):
    delete_collection(db, require_collection(db, collection_id))
    return {"status": "deleted"}
