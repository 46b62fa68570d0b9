"""Read-only stock and balance reports."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.errors import RecordNotFoundError
from ..db.session import get_db
from ..deps.auth import require_principal
from ..schemas.summary import (
    BulkSummaryRequest,
    DistributionBalance,
    StockSummary,
    TransactionTypeSummary,
)
from ..services.collection import get_distribution_summary
from ..services.stock import (
    get_bulk_stock_summaries,
    get_low_stock_items,
    get_stock_summary,
    get_transaction_summary_by_type,
)

router = APIRouter(prefix="/api/v1/inventory_summary", tags=["inventory-summary"], dependencies=[Depends(require_principal)])


@router.get("/low/stock", response_model=list[StockSummary])
def api_low_stock(db: Session = Depends(get_db)):
    return get_low_stock_items(db)


@router.get("/distribution-collection/query", response_model=list[DistributionBalance])
def api_distribution_collection(
    item_id: Optional[int] = None,
    class_id: Optional[int] = None,
    term_id: Optional[int] = None,
    teacher_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    return get_distribution_summary(
        db,
        item_id=item_id,
        class_id=class_id,
        term_id=term_id,
        teacher_id=teacher_id,
    )


@router.post("/bulk", response_model=list[StockSummary])
def api_bulk(payload: BulkSummaryRequest, db: Session = Depends(get_db)):
    return get_bulk_stock_summaries(db, payload.item_ids)


@router.get("/{item_id}", response_model=StockSummary)
def api_item_summary(item_id: int, db: Session = Depends(get_db)):
    return get_stock_summary(db, item_id)


@router.get("/{item_id}/transactions/{transaction_type}", response_model=TransactionTypeSummary)
def api_transaction_summary(item_id: int, transaction_type: str, db: Session = Depends(get_db)):
    summary = get_transaction_summary_by_type(db, item_id, transaction_type)
    if summary is None:
        raise RecordNotFoundError(f"{transaction_type} transactions", item_id)
    return summary
