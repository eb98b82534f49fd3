"""
EVDMS Parts Issue API Routes
Service center requests for parts from the central warehouse
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from evdms.api.deps import RoleChecker, get_db, get_pagination_params
from evdms.core.security import Identity, Roles
from evdms.schemas.common import PaginatedResponse
from evdms.schemas.parts_issue import (
    CimApproval, DispatchRequest, PartsIssueCreate, PartsIssueResponse,
    ReceiveRequest, RejectRequest, TransportDetailsUpdate
)
from evdms.services.parts_issue import PartsIssueService

router = APIRouter()

allow_any_role = RoleChecker(Roles.ALL)
allow_central = RoleChecker(Roles.CENTRAL)
allow_admin = RoleChecker([Roles.ADMIN])
allow_receivers = RoleChecker([Roles.ADMIN, Roles.SC_MANAGER, Roles.INVENTORY_MANAGER])


@router.post("", response_model=PartsIssueResponse, status_code=status.HTTP_201_CREATED)
def create_parts_issue(
    payload: PartsIssueCreate,
    identity: Identity = Depends(allow_any_role),
    db: Session = Depends(get_db)
):
    """Request parts for a service center; every line is allocated immediately"""
    return PartsIssueService(db, identity).create_request(payload.model_dump())


@router.get("", response_model=PaginatedResponse[PartsIssueResponse])
def list_parts_issues(
    status_filter: Optional[str] = Query(None, alias="status"),
    to_service_center_id: Optional[int] = Query(None, alias="toServiceCenterId"),
    pagination: dict = Depends(get_pagination_params),
    identity: Identity = Depends(allow_any_role),
    db: Session = Depends(get_db)
):
    """List requests visible to the caller, newest first"""
    issues, total = PartsIssueService(db, identity).list_requests(
        status=status_filter,
        to_service_center_id=to_service_center_id,
        **pagination
    )
    return PaginatedResponse.build(
        [PartsIssueResponse.model_validate(issue) for issue in issues],
        total, pagination["page"], pagination["page_size"]
    )


@router.get("/{issue_id}", response_model=PartsIssueResponse)
def get_parts_issue(
    issue_id: int,
    identity: Identity = Depends(allow_any_role),
    db: Session = Depends(get_db)
):
    return PartsIssueService(db, identity).get_request(issue_id)


@router.patch("/{issue_id}/reject", response_model=PartsIssueResponse)
def reject_parts_issue(
    issue_id: int,
    payload: RejectRequest,
    identity: Identity = Depends(allow_central),
    db: Session = Depends(get_db)
):
    """Reject a pending request and release its allocation"""
    return PartsIssueService(db, identity).reject_request(issue_id, payload.reason)


@router.patch("/{issue_id}/approve", response_model=PartsIssueResponse)
def cim_approve_parts_issue(
    issue_id: int,
    payload: CimApproval,
    identity: Identity = Depends(allow_central),
    db: Session = Depends(get_db)
):
    """Central inventory manager review; approved quantities may be below requested"""
    return PartsIssueService(db, identity).approve_by_cim(
        issue_id, [item.model_dump() for item in payload.approved_items]
    )


@router.patch("/{issue_id}/admin-approve", response_model=PartsIssueResponse)
def admin_approve_parts_issue(
    issue_id: int,
    identity: Identity = Depends(allow_admin),
    db: Session = Depends(get_db)
):
    return PartsIssueService(db, identity).approve_by_admin(issue_id)


@router.patch("/{issue_id}/dispatch", response_model=PartsIssueResponse)
def dispatch_parts_issue(
    issue_id: int,
    payload: DispatchRequest,
    identity: Identity = Depends(allow_central),
    db: Session = Depends(get_db)
):
    """Ship some or all approved quantities; may be repeated for partial shipments"""
    return PartsIssueService(db, identity).dispatch(
        issue_id,
        [item.model_dump() for item in payload.items],
        payload.transport_details
    )


@router.patch("/{issue_id}/receive", response_model=PartsIssueResponse)
def receive_parts_issue(
    issue_id: int,
    payload: ReceiveRequest,
    identity: Identity = Depends(allow_receivers),
    db: Session = Depends(get_db)
):
    """Confirm receipt at the service center"""
    return PartsIssueService(db, identity).receive(
        issue_id, [item.model_dump() for item in payload.received_items]
    )


@router.patch("/{issue_id}/update-transport-details", response_model=PartsIssueResponse)
def update_transport_details(
    issue_id: int,
    payload: TransportDetailsUpdate,
    identity: Identity = Depends(allow_central),
    db: Session = Depends(get_db)
):
    return PartsIssueService(db, identity).update_transport_details(issue_id, payload.transport_details)
