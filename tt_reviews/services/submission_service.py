"""
Submission service: creates reviews, player edits and equipment submissions.

Everything created here starts out pending and waits for the moderation
workflow. Input is validated before anything is written.
"""

import logging
from typing import Dict, Optional

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tt_reviews.database.models import (
    Equipment,
    EquipmentReview,
    EquipmentSubmission,
    Player,
    PlayerEdit,
    SubmissionStatus,
    SubmissionType,
    User,
)
from tt_reviews.services import moderation_events
from tt_reviews.services.moderation_events import ModerationEventType
from tt_reviews.utils.constants import (
    EQUIPMENT_CATEGORIES,
    PLAYER_EDITABLE_FIELDS,
    PLAYING_STYLES,
    RATING_MAX,
    RATING_MIN,
    REVIEWER_CONTEXT_FIELDS,
    SUBCATEGORIES_BY_CATEGORY,
)

logger = logging.getLogger(__name__)


class EquipmentNotFoundError(ValueError):
    """Raised when a review targets equipment that does not exist."""


class PlayerNotFoundError(ValueError):
    """Raised when an edit targets a player that does not exist."""


class DuplicateReviewError(ValueError):
    """Raised when a user reviews the same equipment twice."""


def _check_rating(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number")
    if not RATING_MIN <= value <= RATING_MAX:
        raise ValueError(f"{name} must be between {RATING_MIN} and {RATING_MAX}")


async def _submitter_name(session: AsyncSession, user_id: int) -> Optional[str]:
    result = await session.execute(
        select(User.display_name, User.email).where(User.id == user_id)
    )
    row = result.first()
    if row is None:
        return None
    return row.display_name or row.email


def _created(submission_type: SubmissionType, submission_id: int) -> Dict:
    return {
        "id": submission_id,
        "submission_type": submission_type.value,
        "status": SubmissionStatus.PENDING.value,
    }


async def create_review(
    session: AsyncSession,
    *,
    user_id: int,
    equipment_id: int,
    overall_rating: float,
    category_ratings: Optional[Dict[str, float]] = None,
    review_text: Optional[str] = None,
    reviewer_context: Optional[Dict] = None,
) -> Dict:
    """
    Create a pending equipment review (one per user per equipment).

    Raises:
        ValueError: If a rating is outside 1-10
        EquipmentNotFoundError: If the equipment does not exist
        DuplicateReviewError: If the user already reviewed this equipment
    """
    _check_rating("Overall rating", overall_rating)
    category_ratings = dict(category_ratings or {})
    for category, rating in category_ratings.items():
        _check_rating(f"Rating for '{category}'", rating)

    equipment_result = await session.execute(select(Equipment).where(Equipment.id == equipment_id))
    equipment = equipment_result.scalar_one_or_none()
    if equipment is None:
        raise EquipmentNotFoundError(f"Equipment {equipment_id} not found")
    equipment_name = equipment.name

    existing = await session.execute(
        select(EquipmentReview.id).where(
            and_(
                EquipmentReview.user_id == user_id,
                EquipmentReview.equipment_id == equipment_id,
            )
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise DuplicateReviewError("You have already reviewed this equipment")

    context = {
        key: value
        for key, value in (reviewer_context or {}).items()
        if key in REVIEWER_CONTEXT_FIELDS and value not in (None, "")
    }
    submitter_name = await _submitter_name(session, user_id)
    review = EquipmentReview(
        equipment_id=equipment_id,
        user_id=user_id,
        status=SubmissionStatus.PENDING.value,
        overall_rating=overall_rating,
        category_ratings=category_ratings,
        review_text=review_text,
        reviewer_context=context,
    )
    session.add(review)
    try:
        await session.flush()
        review_id = review.id
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise DuplicateReviewError("You have already reviewed this equipment")

    logger.info("Review %s created for equipment %s by user %s", review_id, equipment_id, user_id)
    await moderation_events.emit(
        ModerationEventType.SUBMISSION_CREATED,
        {
            "id": review_id,
            "submission_type": SubmissionType.REVIEW.value,
            "equipment_id": equipment_id,
            "equipment_name": equipment_name,
            "overall_rating": overall_rating,
            "reviewer_name": submitter_name,
        },
    )
    return _created(SubmissionType.REVIEW, review_id)


async def create_player_edit(
    session: AsyncSession,
    *,
    user_id: int,
    player_id: int,
    edit_data: Dict,
) -> Dict:
    """
    Create a pending player edit from the editable fields in ``edit_data``.

    Raises:
        ValueError: If no editable field is provided or a value is invalid
        PlayerNotFoundError: If the player does not exist
    """
    changes = {k: v for k, v in (edit_data or {}).items() if k in PLAYER_EDITABLE_FIELDS}
    if not changes:
        raise ValueError("At least one player field must be provided")
    if "playing_style" in changes and changes["playing_style"] not in PLAYING_STYLES:
        raise ValueError(f"Invalid playing style: {changes['playing_style']}")

    player_result = await session.execute(select(Player).where(Player.id == player_id))
    player = player_result.scalar_one_or_none()
    if player is None:
        raise PlayerNotFoundError(f"Player {player_id} not found")
    player_name = player.name

    submitter_name = await _submitter_name(session, user_id)
    edit = PlayerEdit(
        player_id=player_id,
        user_id=user_id,
        edit_data=changes,
        status=SubmissionStatus.PENDING.value,
    )
    session.add(edit)
    await session.flush()
    edit_id = edit.id
    await session.commit()

    logger.info("Player edit %s created for player %s by user %s", edit_id, player_id, user_id)
    await moderation_events.emit(
        ModerationEventType.SUBMISSION_CREATED,
        {
            "id": edit_id,
            "submission_type": SubmissionType.PLAYER_EDIT.value,
            "player_id": player_id,
            "player_name": player_name,
            "edit_data": changes,
            "submitter_name": submitter_name,
        },
    )
    return _created(SubmissionType.PLAYER_EDIT, edit_id)


async def create_equipment_submission(
    session: AsyncSession,
    *,
    user_id: int,
    name: str,
    manufacturer: str,
    category: str,
    subcategory: Optional[str] = None,
    specifications: Optional[Dict] = None,
) -> Dict:
    """
    Create a pending equipment submission.

    Subcategories are only accepted for categories that define them
    (inverted / long pips / anti / short pips rubbers).

    Raises:
        ValueError: If a required field is missing or category/subcategory is invalid
    """
    name = (name or "").strip()
    manufacturer = (manufacturer or "").strip()
    if not name or not manufacturer:
        raise ValueError("Name and manufacturer are required")
    if category not in EQUIPMENT_CATEGORIES:
        raise ValueError(f"Invalid category: {category}")
    if subcategory is not None and subcategory not in SUBCATEGORIES_BY_CATEGORY[category]:
        raise ValueError(f"Subcategory '{subcategory}' is not valid for category '{category}'")

    submitter_name = await _submitter_name(session, user_id)
    submission = EquipmentSubmission(
        user_id=user_id,
        name=name,
        manufacturer=manufacturer,
        category=category,
        subcategory=subcategory,
        specifications=specifications or {},
        status=SubmissionStatus.PENDING.value,
    )
    session.add(submission)
    await session.flush()
    submission_id = submission.id
    await session.commit()

    logger.info("Equipment submission %s created by user %s", submission_id, user_id)
    await moderation_events.emit(
        ModerationEventType.SUBMISSION_CREATED,
        {
            "id": submission_id,
            "submission_type": SubmissionType.EQUIPMENT_SUBMISSION.value,
            "name": name,
            "manufacturer": manufacturer,
            "category": category,
            "subcategory": subcategory,
            "submitter_name": submitter_name,
        },
    )
    return _created(SubmissionType.EQUIPMENT_SUBMISSION, submission_id)
