"""Admin moderation queue route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tt_reviews.api.auth_dependencies import get_acting_moderator_id, require_system_admin
from tt_reviews.database.db import get_db_session
from tt_reviews.database.models import SubmissionType
from tt_reviews.models.schemas import (
    ModerationResult,
    ModerationStatsResponse,
    PendingListResponse,
    RejectRequest,
    RejectResponse,
)
from tt_reviews.services import moderation_service
from tt_reviews.services.moderation_service import (
    LABELS,
    ModerationOutcome,
    SubmissionNotFoundError,
)
from tt_reviews.utils.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin/moderation")


@router.get("/stats", response_model=ModerationStatsResponse)
async def get_moderation_stats(
    user: dict = Depends(require_system_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Pending / approved / rejected counts for reviews, player edits and equipment submissions."""
    try:
        return await moderation_service.get_stats(session)
    except Exception as e:
        logger.error(f"Error loading moderation stats: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load moderation stats")


@router.get("/{kind}/pending", response_model=PendingListResponse)
async def list_pending_submissions(
    kind: SubmissionType,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    user: dict = Depends(require_system_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """
    List submissions awaiting moderation, oldest first.

    Path params: kind (review | player_edit | equipment_submission).
    Query params: limit (default 50, max 100), offset (default 0).
    """
    try:
        return await moderation_service.list_pending(session, kind, limit=limit, offset=offset)
    except Exception as e:
        logger.error(f"Error listing pending {kind.value} submissions: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load pending submissions")


@router.get("/{kind}/{submission_id}")
async def get_submission(
    kind: SubmissionType,
    submission_id: int,
    user: dict = Depends(require_system_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Get a single submission with its display information."""
    try:
        submission = await moderation_service.get_by_id(session, kind, submission_id)
        if submission is None:
            raise HTTPException(status_code=404, detail=f"{LABELS[kind]} not found")
        return submission
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error loading {kind.value} {submission_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load submission")


@router.put("/{kind}/{submission_id}/approve", response_model=ModerationResult)
async def approve_submission(
    kind: SubmissionType,
    submission_id: int,
    moderator_id: int = Depends(get_acting_moderator_id),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Approve a submission as an admin.

    Admin approvals publish reviews immediately; player edits are applied to
    the player and equipment submissions are added to the catalog.

    Returns:
        ModerationResult (409 if already processed)
    """
    try:
        result = await moderation_service.approve(
            session, kind, submission_id, moderator_id, is_admin_approval=True
        )
    except SubmissionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error approving {kind.value} {submission_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to approve submission")

    if result.status == ModerationOutcome.ALREADY_APPROVED.value:
        raise HTTPException(status_code=409, detail=result.message)
    if result.status == ModerationOutcome.ERROR.value:
        raise HTTPException(status_code=500, detail=result.message)
    return result


@router.put("/{kind}/{submission_id}/reject", response_model=RejectResponse)
async def reject_submission(
    kind: SubmissionType,
    submission_id: int,
    request: RejectRequest,
    moderator_id: int = Depends(get_acting_moderator_id),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Reject a submission that is still awaiting moderation.

    Request body:
        {
            "reason": "Duplicate of an existing entry"  // optional
        }
    """
    label = LABELS[kind]
    try:
        existing = await moderation_service.get_by_id(session, kind, submission_id)
        if existing is None:
            raise HTTPException(status_code=404, detail=f"{label} not found")

        rejected = await moderation_service.reject(
            session, kind, submission_id, moderator_id, reason=request.reason
        )
        if not rejected:
            raise HTTPException(
                status_code=409, detail=f"{label} has already been processed"
            )
        return RejectResponse(success=True, message=f"{label} rejected")
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error rejecting {kind.value} {submission_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to reject submission")
