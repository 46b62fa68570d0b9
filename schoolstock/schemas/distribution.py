from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class DistributionCreate(BaseModel):
    class_id: int = Field(gt=0)
    item_id: int = Field(gt=0)
    term_id: int = Field(gt=0)
    distributed_quantity: int = Field(gt=0)
    distribution_date: Optional[str] = None
    received_by: int = Field(gt=0)
    receiver_name: Optional[str] = None
    notes: Optional[str] = None
    out_cost: Optional[float] = Field(default=None, ge=0)
    reference_no: Optional[str] = None


class DistributionUpdate(BaseModel):
    class_id: Optional[int] = Field(default=None, gt=0)
    item_id: Optional[int] = Field(default=None, gt=0)
    term_id: Optional[int] = Field(default=None, gt=0)
    distributed_quantity: Optional[int] = Field(default=None, gt=0)
    distribution_date: Optional[str] = None
    received_by: Optional[int] = Field(default=None, gt=0)
    receiver_name: Optional[str] = None
    notes: Optional[str] = None
    out_cost: Optional[float] = Field(default=None, ge=0)


class DistributionOut(BaseModel):
    id: int
    class_id: int
    item_id: int
    item_name: Optional[str] = None
    term_id: int
    distributed_quantity: int
    distribution_date: str
    received_by: Optional[int]
    receiver_name: Optional[str]
    notes: Optional[str]
    status: str
    cancelled_at: Optional[str]
    ledger_entry_id: Optional[int] = None
    created_by: Optional[str]
    created_at: str
    updated_at: str

    class Config:
        from_attributes = True


class LedgerMismatch(BaseModel):
    problem: str
    distribution_id: Optional[int]
    ledger_entry_id: Optional[int]
    item_id: int
    expected_quantity: Optional[int]
    ledger_quantity: Optional[int]
    expected_status: Optional[str]
    ledger_status: Optional[str]
    repairable: bool
