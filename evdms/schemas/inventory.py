"""Central inventory schemas"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CentralPartBase(BaseModel):
    part_name: str = Field(..., min_length=1, max_length=200)
    part_number: Optional[str] = Field(None, max_length=60)
    category: Optional[str] = Field("", max_length=60)
    unit_price: Decimal = Field(Decimal("0"), ge=0)
    cost_price: Decimal = Field(Decimal("0"), ge=0)
    gst_rate: Decimal = Field(Decimal("0"), ge=0, le=100)
    min_stock_level: int = Field(0, ge=0)


class CentralPartCreate(CentralPartBase):
    stock_quantity: int = Field(0, ge=0)


class CentralPartResponse(CentralPartBase):
    id: int
    stock_quantity: int
    allocated: int
    available: int = Field(..., description="stock_quantity - allocated")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class StockAdd(BaseModel):
    quantity: int = Field(..., gt=0, description="Units received into the central warehouse")


class StockSet(BaseModel):
    stock_quantity: int = Field(..., ge=0, description="Counted units on hand")
