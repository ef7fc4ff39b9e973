"""Review, player edit and equipment submission route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tt_reviews.api.auth_dependencies import require_user
from tt_reviews.api.routes import limiter
from tt_reviews.database.db import get_db_session
from tt_reviews.models.schemas import (
    CreateEquipmentSubmissionRequest,
    CreatePlayerEditRequest,
    CreateReviewRequest,
    SubmissionCreatedResponse,
)
from tt_reviews.services import submission_service
from tt_reviews.services.submission_service import (
    DuplicateReviewError,
    EquipmentNotFoundError,
    PlayerNotFoundError,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/api/equipment/{equipment_id}/reviews",
    response_model=SubmissionCreatedResponse,
    status_code=201,
)
@limiter.limit("10/minute")
async def create_review(
    request: Request,
    equipment_id: int,
    payload: CreateReviewRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Submit a review for a piece of equipment. Reviews stay pending until moderated.

    Request body:
        {
            "overall_rating": 8.5,
            "category_ratings": {"speed": 9, "control": 7},
            "review_text": "...",
            "reviewer_context": {"playing_level": "2000"}
        }
    """
    try:
        return await submission_service.create_review(
            session,
            user_id=user["id"],
            equipment_id=equipment_id,
            overall_rating=payload.overall_rating,
            category_ratings=payload.category_ratings,
            review_text=payload.review_text,
            reviewer_context=payload.reviewer_context.model_dump(exclude_none=True),
        )
    except DuplicateReviewError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except EquipmentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating review for equipment {equipment_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to submit review")


@router.post(
    "/api/players/{player_id}/edits",
    response_model=SubmissionCreatedResponse,
    status_code=201,
)
@limiter.limit("10/minute")
async def create_player_edit(
    request: Request,
    player_id: int,
    payload: CreatePlayerEditRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Propose changes to a player profile. Only the provided fields are changed on approval."""
    try:
        return await submission_service.create_player_edit(
            session,
            user_id=user["id"],
            player_id=player_id,
            edit_data=payload.model_dump(exclude_none=True, mode="json"),
        )
    except PlayerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating edit for player {player_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to submit player edit")


@router.post(
    "/api/equipment/submissions",
    response_model=SubmissionCreatedResponse,
    status_code=201,
)
@limiter.limit("10/minute")
async def create_equipment_submission(
    request: Request,
    payload: CreateEquipmentSubmissionRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Suggest a new piece of equipment for the catalog."""
    try:
        return await submission_service.create_equipment_submission(
            session,
            user_id=user["id"],
            name=payload.name,
            manufacturer=payload.manufacturer,
            category=payload.category.value,
            subcategory=payload.subcategory.value if payload.subcategory else None,
            specifications=payload.specifications,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating equipment submission: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to submit equipment")
