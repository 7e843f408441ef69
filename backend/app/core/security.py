"""Bearer-token verification and tenant access checks.

Tokens are minted by the identity service; this module only decodes them.
The claims we rely on are ``sub`` (actor id), ``tenant_id`` and ``role``.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from app.core.config import settings
from app.core.exceptions import ForbiddenError

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    id: str
    tenant_id: Optional[str] = None
    role: str = "agent"

    @property
    def is_system_admin(self) -> bool:
        return self.role.lower() == settings.SYSTEM_ADMIN_ROLE


def create_access_token(
    subject: str,
    tenant_id: Optional[str] = None,
    role: str = "agent",
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Mint a token with the claims this service reads (dev tooling and tests)."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    claims = {"sub": str(subject), "tenant_id": tenant_id, "role": role, "exp": expire}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No authorization header",
        )
    try:
        payload = jwt.decode(
            credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
    except JWTError as e:
        logger.warning(f"Rejected bearer token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user token",
        )

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user token",
        )
    return CurrentUser(
        id=str(subject),
        tenant_id=payload.get("tenant_id"),
        role=payload.get("role") or "agent",
    )


def verify_tenant_access(user: CurrentUser, tenant_id: str):
    """Deny unless the actor belongs to the tenant or is a system administrator."""
    if user.tenant_id != tenant_id and not user.is_system_admin:
        logger.warning(f"User {user.id} denied access to tenant {tenant_id}")
        raise ForbiddenError("Access denied to tenant data")


def require_system_admin(user: CurrentUser):
    if not user.is_system_admin:
        raise ForbiddenError("System administrator access required")
