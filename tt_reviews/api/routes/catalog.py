"""Public equipment and player catalog route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tt_reviews.database.db import get_db_session
from tt_reviews.services import catalog_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/equipment")
async def search_equipment(
    q: str = Query("", max_length=100),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_db_session),
):
    """Search equipment by name or manufacturer. Returns { items, total_count }."""
    try:
        return await catalog_service.search_equipment(session, q, limit=limit)
    except Exception as e:
        logger.error(f"Error searching equipment: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to search equipment")


@router.get("/api/equipment/{slug}")
async def get_equipment(slug: str, session: AsyncSession = Depends(get_db_session)):
    """Equipment detail with approved reviews and average ratings."""
    try:
        equipment = await catalog_service.get_equipment_by_slug(session, slug)
        if equipment is None:
            raise HTTPException(status_code=404, detail="Equipment not found")
        return equipment
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error loading equipment {slug}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load equipment")


@router.get("/api/players")
async def search_players(
    q: str = Query("", max_length=100),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_db_session),
):
    """Search players by name. Returns { items, total_count }."""
    try:
        return await catalog_service.search_players(session, q, limit=limit)
    except Exception as e:
        logger.error(f"Error searching players: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to search players")


@router.get("/api/players/{slug}")
async def get_player(slug: str, session: AsyncSession = Depends(get_db_session)):
    try:
        player = await catalog_service.get_player_by_slug(session, slug)
        if player is None:
            raise HTTPException(status_code=404, detail="Player not found")
        return player
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error loading player {slug}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load player")
