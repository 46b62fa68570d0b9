from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class CollectionUpsert(BaseModel):
    student_id: int = Field(gt=0)
    class_id: int = Field(gt=0)
    term_id: int = Field(gt=0)
    item_id: int = Field(gt=0)
    qty: int = Field(gt=0)
    eligible: bool = True
    received: bool = False
    received_date: Optional[str] = None
    given_by: Optional[int] = Field(default=None, gt=0)


class CollectionBulkUpsert(BaseModel):
    records: list[CollectionUpsert] = Field(min_length=1)


class CollectionOut(BaseModel):
    id: int
    student_id: int
    class_id: int
    term_id: int
    item_id: int
    qty: int
    eligible: bool
    received: bool
    received_date: Optional[str]
    given_by: Optional[int]
    created_by: Optional[str]
    created_at: str
    updated_at: str

    class Config:
        from_attributes = True
