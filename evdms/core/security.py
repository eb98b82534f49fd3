"""
Security utilities for EVDMS
Identity tokens, roles and the audit trail writer
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from evdms.core.config import settings


class Roles:
    """Role names carried in the identity token"""

    ADMIN = "admin"
    CENTRAL_INVENTORY_MANAGER = "central_inventory_manager"
    INVENTORY_MANAGER = "inventory_manager"
    SC_MANAGER = "sc_manager"
    SERVICE_ENGINEER = "service_engineer"

    ALL = (ADMIN, CENTRAL_INVENTORY_MANAGER, INVENTORY_MANAGER, SC_MANAGER, SERVICE_ENGINEER)

    # Roles that operate the central warehouse and see every service center
    CENTRAL = (ADMIN, CENTRAL_INVENTORY_MANAGER)


@dataclass(frozen=True)
class Identity:
    """Authenticated caller, as produced by the identity provider"""

    user_id: str
    role: str
    service_center_id: Optional[int] = None

    @property
    def is_central(self) -> bool:
        return self.role in Roles.CENTRAL

    @property
    def username(self) -> str:
        return self.user_id


SYSTEM_IDENTITY = Identity(user_id="system", role=Roles.ADMIN)


def create_access_token(
    user_id: str,
    role: str,
    service_center_id: Optional[int] = None,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create JWT access token"""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {
        "sub": str(user_id),
        "role": role,
        "service_center_id": service_center_id,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_identity(token: str) -> Optional[Identity]:
    """Verify JWT token and return the caller identity, or None if invalid"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None

    user_id = payload.get("sub")
    role = payload.get("role")
    if not user_id or role not in Roles.ALL:
        return None

    service_center_id = payload.get("service_center_id")
    return Identity(
        user_id=user_id,
        role=role,
        service_center_id=int(service_center_id) if service_center_id is not None else None,
    )


def log_user_action(
    db: Session,
    user: Identity,
    action: str,
    table: Optional[str] = None,
    key: Optional[str] = None,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
    module: Optional[str] = None
) -> None:
    """
    Log user action to audit trail.

    The entry joins the caller's transaction; it is committed or rolled
    back together with the change it describes.
    """
    from evdms.models.audit import AuditLog

    audit_entry = AuditLog(
        audit_user=user.username,
        audit_action=action,
        audit_table=table,
        audit_key=key,
        audit_old_values=old_values,
        audit_new_values=new_values,
        audit_module=module
    )

    db.add(audit_entry)
