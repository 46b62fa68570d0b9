from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class StockSummary(BaseModel):
    id: int
    name: str
    sku: Optional[str]
    category_name: Optional[str]
    brand_name: Optional[str]
    uom_name: Optional[str]
    current_stock: int
    total_in_quantity: int
    total_out_quantity: int
    total_in_cost: float
    total_out_cost: float
    low_stock_threshold: int
    is_low_stock: bool
    last_transaction_date: Optional[str]
    last_purchase_date: Optional[str]
    last_sale_date: Optional[str]


class BulkSummaryRequest(BaseModel):
    # Empty list means every item.
    item_ids: list[int] = Field(default_factory=list)


class TransactionTypeSummary(BaseModel):
    transaction_type: str
    total_quantity: int
    total_cost: float
    transaction_count: int
    last_transaction_date: Optional[str]


class DistributionBalance(BaseModel):
    item_id: int
    item_name: Optional[str]
    total_distributed: int
    total_collected: int
    balance: int
    last_distribution_date: Optional[str]
    is_over_collected: bool
