from dataclasses import dataclass
import logging
from typing import Any, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from appconfig.auth.clerk import verify_clerk_token
from appconfig.config import settings
from appconfig.db.deps import get_session
from appconfig.db.repositories.orgs import OrgsRepository


bearer_scheme = HTTPBearer(auto_error=False)
logger = logging.getLogger("auth.deps")


@dataclass
class AuthContext:
    user_id: str
    org_id: str
    role: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return bool(self.role) and self.role in settings.ADMIN_ROLES


def _role_from_claims(claims: dict[str, Any]) -> Optional[str]:
    for source in (claims, claims.get("metadata") or {}, claims.get("public_metadata") or {}):
        for key in ("org_role", "role"):
            value = source.get(key)
            if isinstance(value, str) and value:
                return value
    return None


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> AuthContext:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    claims = verify_clerk_token(credentials.credentials)
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims")
    external_org_id = claims.get("org_id") or claims.get("organization_id")
    if not external_org_id:
        logger.warning("Missing organization in token", extra={"sub": user_id, "claims_keys": list(claims.keys())})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing organization context in token",
        )

    org, created = OrgsRepository(session).get_or_create_for_clerk(
        external_id=external_org_id, slug=claims.get("org_slug")
    )
    if created:
        logger.info("Created org from Clerk external_id", extra={"external_org_id": external_org_id, "sub": user_id})

    return AuthContext(
        user_id=user_id,
        org_id=str(org.id),
        role=_role_from_claims(claims),
        email=claims.get("email"),
    )


def require_admin(auth: AuthContext = Depends(get_current_user)) -> AuthContext:
    if not auth.is_admin:
        logger.info("Admin route denied", extra={"sub": auth.user_id, "role": auth.role})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return auth
