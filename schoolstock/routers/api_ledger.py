from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..crud.ledger import (
    delete_transaction,
    list_transactions,
    record_transaction,
    require_transaction,
    update_transaction,
)
from ..db.session import get_db
from ..deps.auth import AuthContext, require_principal
from ..schemas.ledger import LedgerEntryCreate, LedgerEntryOut, LedgerEntryUpdate

router = APIRouter(
    prefix="/api/v1/inventory_transactions",
    tags=["inventory-transactions"],
    dependencies=[Depends(require_principal)],
)


@router.get("", response_model=list[LedgerEntryOut])
def api_list(
    item_id: Optional[int] = None,
    transaction_type: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    return list_transactions(
        db,
        item_id=item_id,
        transaction_type=transaction_type,
        status=status,
        limit=limit,
        offset=offset,
    )


@router.get("/{entry_id}", response_model=LedgerEntryOut)
def api_get(entry_id: int, db: Session = Depends(get_db)):
    return require_transaction(db, entry_id)


@router.post("", response_model=LedgerEntryOut, status_code=201)
def api_create(
    payload: LedgerEntryCreate,
    auth: AuthContext = Depends(require_principal),
    db: Session = Depends(get_db),
):
    return record_transaction(db, **payload.model_dump(), created_by=auth.subject)


@router.patch("/{entry_id}", response_model=LedgerEntryOut)
def api_update(entry_id: int, payload: LedgerEntryUpdate, db: Session = Depends(get_db)):
    entry = require_transaction(db, entry_id)
    return update_transaction(db, entry, payload.model_dump(exclude_unset=True))


@router.delete("/{entry_id}", response_model=LedgerEntryOut)
def api_delete(entry_id: int, db: Session = Depends(get_db)):
    return delete_transaction(db, require_transaction(db, entry_id))
