"""
Main API Router - Consolidates all module routes
"""

from fastapi import APIRouter
from evdms.api.v1 import central_inventory, parts_issues

api_router = APIRouter()

# Central warehouse routes
api_router.include_router(central_inventory.router, prefix="/central-inventory", tags=["central-inventory"])

# Parts issue workflow routes
api_router.include_router(parts_issues.router, prefix="/parts-issues", tags=["parts-issues"])
