"""
Authentication dependencies for FastAPI routes.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from golf_league.services import auth_service, data_service
from golf_league.database.db import get_db_session

security = HTTPBearer()

ROLE_ADMIN = "admin"
ROLE_SCORER = "scorer"
ROLE_OTHER = "other"


@dataclass
class RequestContext:
    """Who is calling, passed explicitly to handlers that need it."""

    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def _role_from_roles(roles) -> str:
    if ROLE_ADMIN in roles:
        return ROLE_ADMIN
    if ROLE_SCORER in roles:
        return ROLE_SCORER
    return ROLE_OTHER


async def get_request_context(
    session: AsyncSession = Depends(get_db_session),
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> RequestContext:
    """
    Dependency to build the request context from a bearer token.

    Raises:
        HTTPException: If the token is invalid or carries no user id
    """
    payload = auth_service.verify_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = auth_service.get_user_id(payload)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    roles = await data_service.get_user_roles(session, user_id)
    return RequestContext(user_id=user_id, role=_role_from_roles(roles))


async def get_request_context_optional(
    session: AsyncSession = Depends(get_db_session),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(HTTPBearer(auto_error=False)),
) -> Optional[RequestContext]:
    """
    Optional dependency for routes that serve both the public and admins.
    Returns None if no token is provided or the token is invalid.
    """
    if credentials is None:
        return None

    try:
        return await get_request_context(session, credentials)
    except HTTPException:
        return None


async def require_user(context: RequestContext = Depends(get_request_context)) -> RequestContext:
    """Require any authenticated user."""
    return context


async def require_scorer_or_admin(context: RequestContext = Depends(get_request_context)) -> RequestContext:
    """Require a user allowed to enter scores."""
    if context.role not in (ROLE_ADMIN, ROLE_SCORER):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Scorer or admin access required")
    return context


async def require_admin(context: RequestContext = Depends(get_request_context)) -> RequestContext:
    """Require a league admin."""
    if not context.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return context
