from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db.session import get_db
from ..deps.auth import AuthContext, require_principal
from ..schemas.distribution import DistributionCreate, DistributionOut, DistributionUpdate, LedgerMismatch
from ..services.distribution import (
    cancel_distribution,
    distribute,
    find_ledger_mismatches,
    list_distributions,
    repair_ledger_mismatches,
    require_distribution,
    update_distribution,
)

router = APIRouter(prefix="/api/v1/distributions", tags=["distributions"], dependencies=[Depends(require_principal)])


@router.get("", response_model=list[DistributionOut])
def api_list(
    item_id: Optional[int] = None,
    class_id: Optional[int] = None,
    term_id: Optional[int] = None,
    teacher_id: Optional[int] = None,
    include_cancelled: bool = False,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    return list_distributions(
        db,
        item_id=item_id,
        class_id=class_id,
        term_id=term_id,
        teacher_id=teacher_id,
        include_cancelled=include_cancelled,
        limit=limit,
        offset=offset,
    )


# Registered before "/{distribution_id}" so the literal path wins.
@router.get("/reconciliation", response_model=list[LedgerMismatch])
def api_reconciliation(db: Session = Depends(get_db)):
    return find_ledger_mismatches(db)


@router.post("/reconciliation/repair", response_model=list[LedgerMismatch])
def api_reconciliation_repair(db: Session = Depends(get_db)):
    return repair_ledger_mismatches(db)


@router.get("/{distribution_id}", response_model=DistributionOut)
def api_get(distribution_id: int, db: Session = Depends(get_db)):
    return require_distribution(db, distribution_id)


@router.post("", response_model=DistributionOut, status_code=201)
def api_create(
    payload: DistributionCreate,
    auth: AuthContext = Depends(require_principal),
    db: Session = Depends(get_db),
):
    data = payload.model_dump()
    quantity = data.pop("distributed_quantity")
    return distribute(db, quantity=quantity, created_by=auth.subject, **data)


@router.put("/{distribution_id}", response_model=DistributionOut)
def api_update(distribution_id: int, payload: DistributionUpdate, db: Session = Depends(get_db)):
    distribution = require_distribution(db, distribution_id)
    return update_distribution(db, distribution, payload.model_dump(exclude_unset=True))


@router.post("/{distribution_id}/cancel", response_model=DistributionOut)
def api_cancel(distribution_id: int, db: Session = Depends(get_db)):
    return cancel_distribution(db, require_distribution(db, distribution_id))
