"""
API Dependencies
Common dependencies for API endpoints
"""
from typing import Sequence

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from evdms.core.config import settings
from evdms.core.database import get_db  # noqa: F401
from evdms.core.security import Identity, decode_identity

# Security scheme
security = HTTPBearer()


def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Identity:
    """
    Caller identity from the bearer token.
    """
    identity = decode_identity(credentials.credentials)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


class RoleChecker:
    """
    Role checker dependency for specific roles; yields the caller identity.
    """
    def __init__(self, allowed_roles: Sequence[str]):
        self.allowed_roles = list(allowed_roles)

    def __call__(self, identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in self.allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role not allowed. Required one of: {', '.join(self.allowed_roles)}"
            )
        return identity


def get_pagination_params(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE)
) -> dict:
    """
    Common pagination parameters.
    """
    return {"page": page, "page_size": limit}
