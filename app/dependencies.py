from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.config import settings

security = HTTPBearer(auto_error=False)

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class AdminPrincipal:
    subject: str
    role: str


def get_token_principal_optional(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> AdminPrincipal | None:
    """Decode the bearer token issued by the external auth service. Invalid tokens yield None."""
    if not credentials:
        return None
    try:
        payload = jwt.decode(credentials.credentials, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    sub = payload.get("sub")
    token_type = payload.get("type")
    if sub is None or token_type not in {None, "access"}:
        return None
    return AdminPrincipal(subject=str(sub), role=str(payload.get("role") or ""))


def get_current_admin(
    principal: Annotated[AdminPrincipal | None, Depends(get_token_principal_optional)],
) -> AdminPrincipal:
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if principal.role != ADMIN_ROLE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return principal
