"""
Authentication dependencies for FastAPI routes.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from tt_reviews.services import auth_service, user_service, settings_service
from tt_reviews.database.db import get_db_session

security = HTTPBearer()


async def get_current_user(
    session: AsyncSession = Depends(get_db_session),
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    Dependency to get the current authenticated user from JWT token.

    Args:
        session: Database session
        credentials: HTTP Bearer token credentials

    Returns:
        User dictionary

    Raises:
        HTTPException: If token is invalid or user not found
    """
    token = credentials.credentials

    payload = auth_service.verify_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("user_id")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await user_service.get_user_by_id(session, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


async def require_user(user: dict = Depends(get_current_user)) -> dict:
    """Require any authenticated user."""
    return user


async def _is_system_admin(session: AsyncSession, user: dict) -> bool:
    """
    Determine if the user is a system admin.

    Admins are listed in the 'system_admin_emails' setting (comma-separated),
    falling back to the SYSTEM_ADMIN_EMAILS environment variable.
    """
    try:
        emails = await settings_service.get_list_setting(
            session, "system_admin_emails", "SYSTEM_ADMIN_EMAILS"
        )
        if emails and user.get("email"):
            return auth_service.normalize_email(user["email"]) in {
                auth_service.normalize_email(e) for e in emails
            }
        return False
    except Exception:
        return False


async def require_system_admin(
    user: dict = Depends(get_current_user), session: AsyncSession = Depends(get_db_session)
) -> dict:
    """Require platform-wide admin."""
    if not await _is_system_admin(session, user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


async def get_acting_moderator_id(
    user: dict = Depends(require_system_admin),
    session: AsyncSession = Depends(get_db_session),
) -> int:
    """Resolve the authenticated admin to the moderator id used in moderation records."""
    return await user_service.get_or_create_user_moderator(session, user)
