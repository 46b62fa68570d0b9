from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator


class LedgerEntryCreate(BaseModel):
    item_id: int = Field(gt=0)
    transaction_type: Literal["purchase", "sale", "return"]
    qty_in: int = Field(default=0, ge=0)
    qty_out: int = Field(default=0, ge=0)
    in_cost: float = Field(default=0, ge=0)
    out_cost: float = Field(default=0, ge=0)
    status: Optional[Literal["pending", "completed", "cancelled"]] = None
    supplier_id: Optional[int] = None
    receiver_id: Optional[int] = None
    reference_no: Optional[str] = None
    notes: Optional[str] = None
    transaction_date: Optional[str] = None

    @model_validator(mode="after")
    def one_direction(self) -> "LedgerEntryCreate":
        if self.qty_in > 0 and self.qty_out > 0:
            raise ValueError("qty_in and qty_out cannot both be greater than 0")
        return self


class LedgerEntryUpdate(BaseModel):
    status: Optional[Literal["pending", "completed", "cancelled"]] = None
    notes: Optional[str] = None
    reference_no: Optional[str] = None


class LedgerEntryOut(BaseModel):
    id: int
    item_id: int
    item_name: Optional[str] = None
    transaction_type: str
    qty_in: int
    in_cost: float
    qty_out: int
    out_cost: float
    status: str
    distribution_id: Optional[int]
    supplier_id: Optional[int]
    receiver_id: Optional[int]
    reference_no: Optional[str]
    notes: Optional[str]
    transaction_date: str
    created_by: Optional[str]
    created_at: str
    updated_at: str

    class Config:
        from_attributes = True
