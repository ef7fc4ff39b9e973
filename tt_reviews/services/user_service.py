"""
User service layer for site accounts and moderator identities.
"""

from typing import Optional, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from tt_reviews.database.models import User, Moderator
import logging

logger = logging.getLogger(__name__)


async def create_user(
    session: AsyncSession, email: str, display_name: Optional[str] = None
) -> int:
    """
    Create a new user account.

    Args:
        session: Database session
        email: Account email (unique, case-insensitive)
        display_name: Optional public name

    Returns:
        User ID of the created user

    Raises:
        ValueError: If a user with this email already exists
    """
    normalized = email.strip().lower()
    result = await session.execute(select(User.id).where(User.email == normalized))
    if result.scalar_one_or_none():
        raise ValueError(f"Email {normalized} is already registered")

    new_user = User(email=normalized, display_name=display_name)
    session.add(new_user)
    await session.flush()
    user_id = new_user.id
    await session.commit()

    return user_id


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[Dict]:
    """
    Get user by ID.

    Args:
        session: Database session
        user_id: User ID

    Returns:
        User dictionary or None if not found
    """
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[Dict]:
    """Get user by email, or None if not found."""
    result = await session.execute(
        select(User).where(User.email == email.strip().lower()).limit(1)
    )
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


def _user_to_dict(user: User) -> Dict:
    """
    Convert a User ORM instance to a dictionary.

    Args:
        user: User ORM instance

    Returns:
        User dictionary
    """
    return {
        "id": user.id,
        "email": user.email,
        "display_name": user.display_name,
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "updated_at": user.updated_at.isoformat() if user.updated_at else None,
    }


# ---------------------------------------------------------------------------
# Moderator identities
# ---------------------------------------------------------------------------


async def _get_or_create_moderator(session: AsyncSession, lookup, **fields) -> int:
    """Return the id of the moderator matching ``lookup``, creating it from ``fields``."""
    result = await session.execute(select(Moderator.id).where(lookup))
    moderator_id = result.scalar_one_or_none()
    if moderator_id is not None:
        return moderator_id

    moderator = Moderator(**fields)
    session.add(moderator)
    try:
        await session.flush()
        moderator_id = moderator.id
        await session.commit()
        logger.info("Created moderator %s (%s)", moderator_id, fields)
        return moderator_id
    except IntegrityError:
        # Another request created the same identity first
        await session.rollback()
        result = await session.execute(select(Moderator.id).where(lookup))
        return result.scalar_one()


async def get_or_create_user_moderator(session: AsyncSession, user: Dict) -> int:
    """
    Map a site account to its moderator id, creating the moderator row on first use.

    Args:
        session: Database session
        user: User dictionary (as returned by get_user_by_id)

    Returns:
        Moderator ID
    """
    return await _get_or_create_moderator(
        session,
        Moderator.user_id == user["id"],
        user_id=user["id"],
        display_name=user.get("display_name") or user.get("email"),
    )


async def get_or_create_discord_moderator(
    session: AsyncSession, discord_user_id: str, username: Optional[str] = None
) -> int:
    """
    Map a Discord user to its moderator id, creating the moderator row on first use.

    Args:
        session: Database session
        discord_user_id: Discord snowflake of the acting user
        username: Discord username, stored for display

    Returns:
        Moderator ID
    """
    return await _get_or_create_moderator(
        session,
        Moderator.discord_user_id == str(discord_user_id),
        discord_user_id=str(discord_user_id),
        display_name=username,
    )

