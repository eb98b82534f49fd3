"""
EVDMS Central Inventory API Routes
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from evdms.api.deps import RoleChecker, get_db
from evdms.core.security import Identity, Roles
from evdms.schemas.inventory import CentralPartCreate, CentralPartResponse, StockAdd, StockSet
from evdms.services.inventory import CentralInventoryService

router = APIRouter()

allow_readers = RoleChecker([Roles.ADMIN, Roles.CENTRAL_INVENTORY_MANAGER, Roles.INVENTORY_MANAGER])
allow_central = RoleChecker(Roles.CENTRAL)


@router.get("", response_model=List[CentralPartResponse])
def list_central_parts(
    category: Optional[str] = None,
    search: Optional[str] = None,
    identity: Identity = Depends(allow_readers),
    db: Session = Depends(get_db)
):
    """List central parts with derived availability"""
    return CentralInventoryService(db, identity).list_parts(category=category, search=search)


@router.post("/parts", response_model=CentralPartResponse, status_code=status.HTTP_201_CREATED)
def create_central_part(
    payload: CentralPartCreate,
    identity: Identity = Depends(allow_central),
    db: Session = Depends(get_db)
):
    return CentralInventoryService(db, identity).create_part(payload.model_dump())


@router.get("/{part_id}", response_model=CentralPartResponse)
def get_central_part(
    part_id: int,
    identity: Identity = Depends(allow_readers),
    db: Session = Depends(get_db)
):
    return CentralInventoryService(db, identity).get_part(part_id)


@router.patch("/{part_id}/stock", response_model=CentralPartResponse)
def set_central_stock(
    part_id: int,
    payload: StockSet,
    identity: Identity = Depends(allow_central),
    db: Session = Depends(get_db)
):
    """Overwrite on-hand stock after a count"""
    return CentralInventoryService(db, identity).set_stock(part_id, payload.stock_quantity)


@router.patch("/{part_id}/stock/add", response_model=CentralPartResponse)
def add_central_stock(
    part_id: int,
    payload: StockAdd,
    identity: Identity = Depends(allow_central),
    db: Session = Depends(get_db)
):
    """Receive goods into the central warehouse"""
    return CentralInventoryService(db, identity).add_stock(part_id, payload.quantity)
