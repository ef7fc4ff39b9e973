"""
Settings service for runtime configuration with database overrides.

Supports checking database settings first, then falling back to environment variables.
"""

import os
import logging
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from dotenv import load_dotenv

from tt_reviews.database.models import Setting

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


async def get_setting(session: AsyncSession, key: str) -> Optional[str]:
    """
    Get a setting value.

    Args:
        session: Database session
        key: Setting key

    Returns:
        Setting value or None if not found
    """
    result = await session.execute(select(Setting).where(Setting.key == key))
    setting = result.scalar_one_or_none()
    return setting.value if setting else None


async def set_setting(session: AsyncSession, key: str, value: str) -> None:
    """
    Set a setting value (upsert).

    Args:
        session: Database session
        key: Setting key
        value: Setting value
    """
    result = await session.execute(select(Setting).where(Setting.key == key))
    setting = result.scalar_one_or_none()
    if setting:
        setting.value = value
    else:
        session.add(Setting(key=key, value=value))
    await session.commit()


async def get_setting_with_fallback(
    session: Optional[AsyncSession],
    key: str,
    env_var: Optional[str] = None,
    default: Optional[str] = None,
) -> Optional[str]:
    """
    Get a setting value from database first, then env var, then default.

    Args:
        session: Database session (optional)
        key: Setting key in database
        env_var: Environment variable name to fall back to
        default: Default value if neither database nor env var is set

    Returns:
        Setting value as string, or None
    """
    if session is not None:
        try:
            value = await get_setting(session, key)
            if value is not None:
                return value
        except Exception as e:
            logger.warning(f"Error reading setting {key} from database: {e}")

    if env_var:
        value = os.getenv(env_var)
        if value is not None:
            return value

    return default


async def get_list_setting(
    session: Optional[AsyncSession],
    key: str,
    env_var: Optional[str] = None,
) -> List[str]:
    """
    Get a comma-separated setting as a list of stripped, non-empty values.

    An unset setting and an empty string both yield an empty list.
    """
    value = await get_setting_with_fallback(session, key, env_var, None)
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]
