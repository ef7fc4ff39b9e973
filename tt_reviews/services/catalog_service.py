"""
Catalog reads: equipment and player lookup and search.

Only approved reviews are ever exposed here.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tt_reviews.database.models import (
    Equipment,
    EquipmentReview,
    Player,
    SubmissionStatus,
)
from tt_reviews.utils.datetime_utils import isoformat_or_none

logger = logging.getLogger(__name__)


def _escape_like(value: str) -> str:
    """Escape LIKE-special characters (%, _) so they match literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _equipment_to_dict(equipment: Equipment) -> Dict:
    return {
        "id": equipment.id,
        "name": equipment.name,
        "slug": equipment.slug,
        "manufacturer": equipment.manufacturer,
        "category": equipment.category,
        "subcategory": equipment.subcategory,
        "specifications": equipment.specifications or {},
    }


def _player_to_dict(player: Player) -> Dict:
    return {
        "id": player.id,
        "name": player.name,
        "slug": player.slug,
        "highest_rating": player.highest_rating,
        "active_years": player.active_years,
        "active": player.active,
        "playing_style": player.playing_style,
        "birth_country": player.birth_country,
        "represents": player.represents,
    }


def _average_category_ratings(reviews: List[EquipmentReview]) -> Dict[str, float]:
    """Mean rating per category across reviews that rated it."""
    totals: Dict[str, List[float]] = {}
    for review in reviews:
        for category, rating in (review.category_ratings or {}).items():
            totals.setdefault(category, []).append(float(rating))
    return {category: round(sum(vals) / len(vals), 1) for category, vals in totals.items()}


async def get_equipment_by_slug(session: AsyncSession, slug: str) -> Optional[Dict]:
    """
    Equipment detail with approved reviews and rating averages.

    Returns:
        Equipment dict, or None if no equipment has this slug
    """
    result = await session.execute(select(Equipment).where(Equipment.slug == slug))
    equipment = result.scalar_one_or_none()
    if equipment is None:
        return None

    reviews_result = await session.execute(
        select(EquipmentReview)
        .where(
            EquipmentReview.equipment_id == equipment.id,
            EquipmentReview.status == SubmissionStatus.APPROVED.value,
        )
        .order_by(EquipmentReview.created_at.desc())
    )
    reviews = list(reviews_result.scalars().all())

    data = _equipment_to_dict(equipment)
    data["review_count"] = len(reviews)
    data["average_rating"] = (
        round(sum(r.overall_rating for r in reviews) / len(reviews), 1) if reviews else None
    )
    data["average_category_ratings"] = _average_category_ratings(reviews)
    data["reviews"] = [
        {
            "id": r.id,
            "overall_rating": r.overall_rating,
            "category_ratings": r.category_ratings or {},
            "review_text": r.review_text,
            "reviewer_context": r.reviewer_context or {},
            "created_at": isoformat_or_none(r.created_at),
        }
        for r in reviews
    ]
    return data


async def search_equipment(session: AsyncSession, query: str, limit: int = 20) -> Dict:
    """
    Case-insensitive substring search over equipment name and manufacturer.

    Returns:
        Dict with items (at most ``limit``) and total_count
    """
    pattern = f"%{_escape_like(query.strip().lower())}%"
    condition = or_(
        func.lower(Equipment.name).like(pattern, escape="\\"),
        func.lower(Equipment.manufacturer).like(pattern, escape="\\"),
    )
    rows = await session.execute(
        select(Equipment).where(condition).order_by(Equipment.name).limit(limit)
    )
    total = await session.execute(select(func.count()).select_from(Equipment).where(condition))
    return {
        "items": [_equipment_to_dict(e) for e in rows.scalars().all()],
        "total_count": total.scalar_one(),
    }


async def get_player_by_slug(session: AsyncSession, slug: str) -> Optional[Dict]:
    """Player profile by slug, or None if not found."""
    result = await session.execute(select(Player).where(Player.slug == slug))
    player = result.scalar_one_or_none()
    return _player_to_dict(player) if player else None


async def search_players(session: AsyncSession, query: str, limit: int = 20) -> Dict:
    """Case-insensitive substring search over player names."""
    pattern = f"%{_escape_like(query.strip().lower())}%"
    condition = func.lower(Player.name).like(pattern, escape="\\")
    rows = await session.execute(
        select(Player).where(condition).order_by(Player.name).limit(limit)
    )
    total = await session.execute(select(func.count()).select_from(Player).where(condition))
    return {
        "items": [_player_to_dict(p) for p in rows.scalars().all()],
        "total_count": total.scalar_one(),
    }
