"""Parts Issue Schemas"""
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from evdms.models.parts_issue import IssuePriority, PartsIssueStatus


# Requests

class PartsIssueItemCreate(BaseModel):
    """A line may name its part by id, number, name or a combination"""
    central_inventory_part_id: Optional[int] = None
    part_number: Optional[str] = Field(None, max_length=60)
    part_name: Optional[str] = Field(None, max_length=200)
    requested_qty: int = Field(..., gt=0)

    @model_validator(mode="after")
    def check_identifier(self):
        if self.central_inventory_part_id is None and not (self.part_number or "").strip() \
                and not (self.part_name or "").strip():
            raise ValueError("central_inventory_part_id, part_number or part_name is required")
        return self


class PartsIssueCreate(BaseModel):
    to_service_center_id: int
    purchase_order_id: Optional[int] = None
    priority: IssuePriority = IssuePriority.NORMAL
    items: List[PartsIssueItemCreate] = Field(..., min_length=1)


class RejectRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class ApprovedItem(BaseModel):
    item_id: int
    approved_qty: int = Field(..., ge=0)


class CimApproval(BaseModel):
    approved_items: List[ApprovedItem] = Field(default_factory=list)


class DispatchItem(BaseModel):
    item_id: int
    quantity: int = Field(..., gt=0)


class DispatchRequest(BaseModel):
    items: List[DispatchItem] = Field(..., min_length=1)
    transport_details: Optional[Any] = None


class ReceivedItem(BaseModel):
    item_id: int
    received_qty: int = Field(..., ge=0)


class ReceiveRequest(BaseModel):
    received_items: List[ReceivedItem] = Field(..., min_length=1)


class TransportDetailsUpdate(BaseModel):
    transport_details: Any


# Responses

class ServiceCenterSummary(BaseModel):
    id: int
    code: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class DispatchRecordResponse(BaseModel):
    id: int
    issue_item_id: int
    quantity: int
    sub_po_number: str
    is_fully_fulfilled: bool
    dispatched_at: Optional[datetime] = None
    dispatched_by_id: Optional[str] = None
    transport_details: Optional[Any] = None

    model_config = ConfigDict(from_attributes=True)


class PartsIssueItemResponse(BaseModel):
    id: int
    central_inventory_part_id: int
    part_name: Optional[str] = None
    part_number: Optional[str] = None
    requested_qty: int
    approved_qty: Optional[int] = None
    issued_qty: int
    received_qty: Optional[int] = None
    sub_po_number: Optional[str] = None
    available: Optional[int] = Field(None, description="Central stock_quantity - allocated, at read time")
    remaining_to_dispatch: int
    is_fully_fulfilled: bool
    dispatches: List[DispatchRecordResponse] = []

    model_config = ConfigDict(from_attributes=True)


class PartsIssueResponse(BaseModel):
    id: int
    issue_number: str
    to_service_center_id: int
    to_service_center: Optional[ServiceCenterSummary] = None
    requested_by_id: str
    purchase_order_id: Optional[int] = None
    status: PartsIssueStatus
    priority: IssuePriority
    transport_details: Optional[Any] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    cim_approved_at: Optional[datetime] = None
    admin_approved_at: Optional[datetime] = None
    dispatched_date: Optional[datetime] = None
    received_date: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    items: List[PartsIssueItemResponse] = []

    model_config = ConfigDict(from_attributes=True)
