"""Admin settings route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tt_reviews.api.auth_dependencies import require_system_admin
from tt_reviews.database.db import get_db_session
from tt_reviews.services import settings_service

logger = logging.getLogger(__name__)
router = APIRouter()


# ---------------------------------------------------------------------------
# Settings endpoints
# ---------------------------------------------------------------------------


@router.get("/api/settings/{key}")
async def get_setting_value(
    key: str,
    user: dict = Depends(require_system_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Get a setting value (system_admin)."""
    try:
        value = await settings_service.get_setting(session, key)
        return {"key": key, "value": value}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error getting setting: {str(e)}")


@router.put("/api/settings/{key}")
async def set_setting_value(
    key: str,
    request: Request,
    user: dict = Depends(require_system_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Set a setting value (system_admin).

    Request body:
        {"value": "mod,admin"}

    Setting log_level also applies it to the running process.
    """
    try:
        body = await request.json()
        if not isinstance(body, dict) or "value" not in body:
            raise HTTPException(status_code=400, detail="value is required")
        value = str(body["value"])
        await settings_service.set_setting(session, key, value)
        logger.info(f"Setting '{key}' updated by {user.get('email')}")

        if key == "log_level":
            numeric_level = getattr(logging, value.upper(), None)
            if isinstance(numeric_level, int):
                logging.getLogger().setLevel(numeric_level)
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error setting value: {str(e)}")
