"""
EVDMS Common Schemas
Shared Pydantic models for common API structures
"""
import math
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

# Generic type for paginated responses
T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """
    Generic paginated response model

    Used for all list endpoints that support pagination
    """
    items: List[T] = Field(..., description="List of items for current page")
    total: int = Field(..., description="Total number of items across all pages")
    page: int = Field(..., description="Current page number (1-based)")
    page_size: int = Field(..., description="Number of items per page")
    total_pages: int = Field(..., description="Total number of pages")
    has_next: bool = Field(..., description="Whether there is a next page")
    has_previous: bool = Field(..., description="Whether there is a previous page")

    @classmethod
    def build(cls, items: List[Any], total: int, page: int, page_size: int) -> "PaginatedResponse":
        total_pages = math.ceil(total / page_size) if page_size else 0
        return cls(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_previous=page > 1,
        )


class ErrorResponse(BaseModel):
    """
    Standard error response model

    ``context`` carries the structured fields of the failure (part name,
    requested and available quantities, current and required status).
    """
    error: str = Field(..., description="Error type or category")
    message: str = Field(..., description="Human-readable error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    code: Optional[str] = Field(None, description="Application-specific error code")
    context: Dict[str, Any] = Field(default_factory=dict, description="Structured error fields")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "error": "InsufficientStockError",
            "message": "Insufficient stock for Brake Pad: requested 30, available 20 (short by 10)",
            "detail": None,
            "code": "insufficient_stock",
            "context": {"part_name": "Brake Pad", "requested": 30, "available": 20, "shortfall": 10},
        }
    })
