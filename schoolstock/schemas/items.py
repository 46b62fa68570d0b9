from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class ItemCreate(BaseModel):
    name: str = Field(min_length=1)
    sku: Optional[str] = None
    barcode: Optional[str] = None
    cost_price: Optional[float] = Field(default=None, ge=0)
    selling_price: Optional[float] = Field(default=None, ge=0)
    low_stock_threshold: Optional[int] = Field(default=None, ge=0)
    category_name: Optional[str] = None
    brand_name: Optional[str] = None
    uom_name: Optional[str] = None


class ItemUpdate(BaseModel):
    name: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    cost_price: Optional[float] = Field(default=None, ge=0)
    selling_price: Optional[float] = Field(default=None, ge=0)
    low_stock_threshold: Optional[int] = Field(default=None, ge=0)
    category_name: Optional[str] = None
    brand_name: Optional[str] = None
    uom_name: Optional[str] = None


class ItemOut(BaseModel):
    id: int
    name: str
    sku: Optional[str]
    barcode: Optional[str]
    cost_price: float
    selling_price: float
    low_stock_threshold: int
    category_name: Optional[str]
    brand_name: Optional[str]
    uom_name: Optional[str]
    created_by: Optional[str]
    created_at: str
    updated_at: str

    class Config:
        from_attributes = True
