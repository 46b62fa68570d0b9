from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class EntitlementUpsert(BaseModel):
    class_id: int = Field(gt=0)
    item_id: int = Field(gt=0)
    term_id: int = Field(gt=0)
    quantity: int = Field(ge=0)
    notes: Optional[str] = None


class EntitlementBulkUpsert(BaseModel):
    records: list[EntitlementUpsert] = Field(min_length=1)


class EntitlementUpdate(BaseModel):
    quantity: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None


class EntitlementOut(BaseModel):
    id: int
    class_id: int
    item_id: int
    term_id: int
    quantity: int
    notes: Optional[str]
    created_by: Optional[str]
    created_at: str
    updated_at: str

    class Config:
        from_attributes = True
