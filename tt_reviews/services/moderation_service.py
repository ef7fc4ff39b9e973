"""
Moderation workflow for user-submitted content.

Drives equipment reviews, player edits and equipment submissions through
pending -> approved / rejected. Reviews need two distinct moderator approvals
(or one admin approval) before they are published; player edits and equipment
submissions resolve on a single approval and write their content into the
canonical Player / Equipment tables in the same transaction.

Both the admin HTTP routes and the Discord interaction handler call into this
module with an explicit acting moderator id. Events are emitted only after a
successful commit, so a failing notifier can never undo a transition.
"""

import enum
import logging
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tt_reviews.database.models import (
    ApprovalSource,
    Equipment,
    EquipmentReview,
    EquipmentSubmission,
    ModerationAction,
    Player,
    PlayerEdit,
    SubmissionStatus,
    SubmissionType,
)
from tt_reviews.models.schemas import ModerationResult
from tt_reviews.services import moderation_events, submission_store
from tt_reviews.services.moderation_events import ModerationEventType
from tt_reviews.utils.constants import DEFAULT_PAGE_SIZE, REQUIRED_REVIEW_APPROVALS
from tt_reviews.utils.datetime_utils import isoformat_or_none

logger = logging.getLogger(__name__)


class ModerationOutcome(str, enum.Enum):
    """Result status of an approve call."""

    FIRST_APPROVAL = "first_approval"
    FULLY_APPROVED = "fully_approved"
    APPROVED = "approved"
    ALREADY_APPROVED = "already_approved"
    ERROR = "error"


class SubmissionNotFoundError(ValueError):
    """Raised when an approve call references a submission that does not exist."""

    def __init__(self, kind: SubmissionType, submission_id: int):
        self.kind = SubmissionType(kind)
        self.submission_id = submission_id
        super().__init__(f"{LABELS[self.kind]} {submission_id} not found")


LABELS = {
    SubmissionType.REVIEW: "Review",
    SubmissionType.PLAYER_EDIT: "Player edit",
    SubmissionType.EQUIPMENT_SUBMISSION: "Equipment submission",
}

# Legal status transitions per submission family. Anything not listed is
# terminal. awaiting_second_approval is a legacy player-edit status that no
# code path sets; it resolves like pending.
TRANSITIONS = {
    SubmissionType.REVIEW: {
        SubmissionStatus.PENDING: {SubmissionStatus.APPROVED, SubmissionStatus.REJECTED},
    },
    SubmissionType.PLAYER_EDIT: {
        SubmissionStatus.PENDING: {SubmissionStatus.APPROVED, SubmissionStatus.REJECTED},
        SubmissionStatus.AWAITING_SECOND_APPROVAL: {
            SubmissionStatus.APPROVED,
            SubmissionStatus.REJECTED,
        },
    },
    SubmissionType.EQUIPMENT_SUBMISSION: {
        SubmissionStatus.PENDING: {SubmissionStatus.APPROVED, SubmissionStatus.REJECTED},
    },
}

STATS_KEYS = {
    SubmissionType.REVIEW: "reviews",
    SubmissionType.PLAYER_EDIT: "player_edits",
    SubmissionType.EQUIPMENT_SUBMISSION: "equipment_submissions",
}


def can_transition(kind: SubmissionType, current: str, target: SubmissionStatus) -> bool:
    """Whether ``current`` may move to ``target`` for this submission family."""
    try:
        current_status = SubmissionStatus(current)
    except ValueError:
        return False
    return target in TRANSITIONS[SubmissionType(kind)].get(current_status, set())


def open_statuses(kind: SubmissionType) -> List[str]:
    """Statuses that still await a moderation decision."""
    return [status.value for status in TRANSITIONS[SubmissionType(kind)]]


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def _equipment_summary(equipment: Optional[Equipment]) -> Optional[Dict]:
    if equipment is None:
        return None
    return {
        "id": equipment.id,
        "name": equipment.name,
        "slug": equipment.slug,
        "manufacturer": equipment.manufacturer,
        "category": equipment.category,
        "subcategory": equipment.subcategory,
    }


def _review_to_dict(
    review: EquipmentReview, equipment: Optional[Equipment] = None, approval_count: int = 0
) -> Dict:
    return {
        "id": review.id,
        "submission_type": SubmissionType.REVIEW.value,
        "equipment_id": review.equipment_id,
        "user_id": review.user_id,
        "status": review.status,
        "overall_rating": review.overall_rating,
        "category_ratings": review.category_ratings or {},
        "review_text": review.review_text,
        "reviewer_context": review.reviewer_context or {},
        "moderator_id": review.moderator_id,
        "moderator_notes": review.moderator_notes,
        "approval_count": approval_count,
        "equipment": _equipment_summary(equipment),
        "created_at": isoformat_or_none(review.created_at),
        "updated_at": isoformat_or_none(review.updated_at),
    }


def _player_edit_to_dict(edit: PlayerEdit, player: Optional[Player] = None) -> Dict:
    return {
        "id": edit.id,
        "submission_type": SubmissionType.PLAYER_EDIT.value,
        "player_id": edit.player_id,
        "user_id": edit.user_id,
        "edit_data": edit.edit_data or {},
        "status": edit.status,
        "moderator_id": edit.moderator_id,
        "moderator_notes": edit.moderator_notes,
        "player": {"id": player.id, "name": player.name, "slug": player.slug} if player else None,
        "created_at": isoformat_or_none(edit.created_at),
        "updated_at": isoformat_or_none(edit.updated_at),
    }


def _equipment_submission_to_dict(submission: EquipmentSubmission) -> Dict:
    return {
        "id": submission.id,
        "submission_type": SubmissionType.EQUIPMENT_SUBMISSION.value,
        "user_id": submission.user_id,
        "name": submission.name,
        "manufacturer": submission.manufacturer,
        "category": submission.category,
        "subcategory": submission.subcategory,
        "specifications": submission.specifications or {},
        "status": submission.status,
        "moderator_id": submission.moderator_id,
        "moderator_notes": submission.moderator_notes,
        "created_at": isoformat_or_none(submission.created_at),
        "updated_at": isoformat_or_none(submission.updated_at),
    }


async def _load_by_ids(session: AsyncSession, model, ids) -> Dict[int, object]:
    ids = {i for i in ids if i is not None}
    if not ids:
        return {}
    result = await session.execute(select(model).where(model.id.in_(ids)))
    return {row.id: row for row in result.scalars().all()}


async def _serialize(session: AsyncSession, kind: SubmissionType, rows: List) -> List[Dict]:
    """Serialize submissions with their display joins (equipment, player, approvals)."""
    if kind == SubmissionType.REVIEW:
        equipment = await _load_by_ids(session, Equipment, [r.equipment_id for r in rows])
        approvals = await submission_store.count_approvals(session, kind, [r.id for r in rows])
        return [
            _review_to_dict(r, equipment.get(r.equipment_id), approvals.get(r.id, 0))
            for r in rows
        ]
    if kind == SubmissionType.PLAYER_EDIT:
        players = await _load_by_ids(session, Player, [r.player_id for r in rows])
        return [_player_edit_to_dict(r, players.get(r.player_id)) for r in rows]
    return [_equipment_submission_to_dict(r) for r in rows]


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def list_pending(
    session: AsyncSession,
    kind: SubmissionType,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> Dict:
    """
    List submissions awaiting moderation, oldest first.

    Args:
        session: Database session
        kind: Submission family
        limit: Page size
        offset: Rows to skip

    Returns:
        Dict with items, total (all pending rows), limit and offset
    """
    kind = SubmissionType(kind)
    rows, total = await submission_store.list_by_status(
        session, kind, open_statuses(kind), limit, offset
    )
    return {
        "items": await _serialize(session, kind, rows),
        "total": total,
        "limit": limit,
        "offset": offset,
    }


async def get_by_id(
    session: AsyncSession, kind: SubmissionType, submission_id: int
) -> Optional[Dict]:
    """Get a single submission with its display joins, or None if not found."""
    kind = SubmissionType(kind)
    submission = await submission_store.get_by_id(session, kind, submission_id)
    if submission is None:
        return None
    return (await _serialize(session, kind, [submission]))[0]


async def get_stats(session: AsyncSession) -> Dict[str, Dict[str, int]]:
    """
    Status counts for every submission family.

    Legacy awaiting_second_approval player edits count as pending, so
    pending + approved + rejected always equals total.
    """
    stats = {}
    for kind, key in STATS_KEYS.items():
        counts = await submission_store.count_by_status(session, kind)
        pending = sum(counts.get(status, 0) for status in open_statuses(kind))
        approved = counts.get(SubmissionStatus.APPROVED.value, 0)
        rejected = counts.get(SubmissionStatus.REJECTED.value, 0)
        stats[key] = {
            "pending": pending,
            "approved": approved,
            "rejected": rejected,
            "total": pending + approved + rejected,
        }
    return stats


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def _result(outcome: ModerationOutcome, message: str) -> ModerationResult:
    success = outcome in (
        ModerationOutcome.FIRST_APPROVAL,
        ModerationOutcome.FULLY_APPROVED,
        ModerationOutcome.APPROVED,
    )
    return ModerationResult(success=success, status=outcome.value, message=message)


def _already_processed(kind: SubmissionType, current_status: str) -> ModerationResult:
    if current_status == SubmissionStatus.APPROVED.value:
        message = f"{LABELS[kind]} already approved"
    else:
        message = f"{LABELS[kind]} has already been processed"
    return _result(ModerationOutcome.ALREADY_APPROVED, message)


async def approve(
    session: AsyncSession,
    kind: SubmissionType,
    submission_id: int,
    moderator_id: int,
    is_admin_approval: bool = False,
    source: ApprovalSource = ApprovalSource.ADMIN,
) -> ModerationResult:
    """
    Record a moderator's approval of a submission.

    Args:
        session: Database session
        kind: Submission family
        submission_id: Submission to approve
        moderator_id: Acting moderator (already authorized by the caller)
        is_admin_approval: Reviews only; an admin approval publishes immediately
        source: Surface the approval came from

    Returns:
        ModerationResult with status first_approval, fully_approved (reviews),
        approved (player edits, equipment submissions), already_approved or error

    Raises:
        SubmissionNotFoundError: If the submission does not exist
    """
    kind = SubmissionType(kind)
    try:
        submission = await submission_store.get_by_id(session, kind, submission_id)
        if submission is None:
            raise SubmissionNotFoundError(kind, submission_id)

        if not can_transition(kind, submission.status, SubmissionStatus.APPROVED):
            return _already_processed(kind, submission.status)

        # Captured before any commit/rollback expires the ORM instance
        snapshot = (await _serialize(session, kind, [submission]))[0]
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Error loading {LABELS[kind].lower()} {submission_id}: {e}", exc_info=True)
        return _result(ModerationOutcome.ERROR, f"Failed to load {LABELS[kind].lower()}")

    if kind == SubmissionType.REVIEW:
        result, event_type = await _approve_review(
            session, submission_id, moderator_id, is_admin_approval, source
        )
    else:
        result, event_type = await _approve_and_apply(
            session, kind, submission, moderator_id, source
        )

    if event_type is not None:
        logger.info(
            "%s %s: %s by moderator %s", LABELS[kind], submission_id, result.status, moderator_id
        )
        await moderation_events.emit(
            event_type,
            {
                **snapshot,
                "status": (
                    SubmissionStatus.APPROVED.value
                    if event_type == ModerationEventType.APPROVED
                    else snapshot["status"]
                ),
                "outcome": result.status,
                "moderator_id": moderator_id,
                "source": ApprovalSource(source).value,
            },
        )
    return result


async def _approve_review(
    session: AsyncSession,
    review_id: int,
    moderator_id: int,
    is_admin_approval: bool,
    source: ApprovalSource,
):
    """Two-step review approval backed by the moderator_approvals ledger."""
    kind = SubmissionType.REVIEW
    try:
        approvers = await submission_store.list_approver_ids(session, kind, review_id)
        if moderator_id in approvers:
            if not is_admin_approval:
                return (
                    _result(
                        ModerationOutcome.ALREADY_APPROVED, "You have already approved this review"
                    ),
                    None,
                )
            # Admin publishing a review they already approved: the ledger row exists
            approval_count = len(approvers)
        else:
            await submission_store.record_action(
                session, kind, review_id, moderator_id, ModerationAction.APPROVED, source
            )
            # Re-read so approvals committed concurrently by other moderators count
            approval_count = len(
                await submission_store.list_approver_ids(session, kind, review_id)
            )

        if is_admin_approval or approval_count >= REQUIRED_REVIEW_APPROVALS:
            updated = await submission_store.update_status(
                session,
                kind,
                review_id,
                SubmissionStatus.APPROVED,
                moderator_id,
                from_statuses=open_statuses(kind),
            )
            if not updated:
                await session.rollback()
                return _already_processed(kind, SubmissionStatus.APPROVED.value), None
            await session.commit()
            return (
                _result(ModerationOutcome.FULLY_APPROVED, "Review fully approved and published!"),
                ModerationEventType.APPROVED,
            )

        await session.commit()
        return (
            _result(
                ModerationOutcome.FIRST_APPROVAL,
                "First approval recorded. Awaiting second approval.",
            ),
            ModerationEventType.FIRST_APPROVAL,
        )
    except IntegrityError:
        # Same moderator approving twice concurrently
        await session.rollback()
        return (
            _result(ModerationOutcome.ALREADY_APPROVED, "You have already approved this review"),
            None,
        )
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Error approving review {review_id}: {e}", exc_info=True)
        return _result(ModerationOutcome.ERROR, "Failed to approve review"), None


async def _approve_and_apply(
    session: AsyncSession,
    kind: SubmissionType,
    submission,
    moderator_id: int,
    source: ApprovalSource,
):
    """
    Single-step approval that writes the submission into its canonical table.

    The status change, the canonical write and the ledger row share one
    transaction; any failure rolls all three back, so retrying is safe.
    """
    submission_id = submission.id
    label = LABELS[kind]
    if kind == SubmissionType.PLAYER_EDIT:
        player_id, edit_data = submission.player_id, dict(submission.edit_data or {})
    else:
        fields = {
            "name": submission.name,
            "manufacturer": submission.manufacturer,
            "category": submission.category,
            "subcategory": submission.subcategory,
            "specifications": submission.specifications,
        }

    try:
        updated = await submission_store.update_status(
            session,
            kind,
            submission_id,
            SubmissionStatus.APPROVED,
            moderator_id,
            from_statuses=open_statuses(kind),
        )
        if not updated:
            await session.rollback()
            return _already_processed(kind, SubmissionStatus.APPROVED.value), None

        if kind == SubmissionType.PLAYER_EDIT:
            if not await submission_store.patch_canonical(session, player_id, edit_data):
                await session.rollback()
                return _result(ModerationOutcome.ERROR, f"Player {player_id} not found"), None
            message = "Player edit approved and changes applied."
        else:
            equipment_id = await submission_store.create_canonical(session, fields)
            if equipment_id is None:
                await session.rollback()
                return (
                    _result(
                        ModerationOutcome.ERROR,
                        "Equipment submission is missing required fields",
                    ),
                    None,
                )
            message = f"Equipment submission approved and added to the catalog (id {equipment_id})."

        await submission_store.record_action(
            session, kind, submission_id, moderator_id, ModerationAction.APPROVED, source
        )
        await session.commit()
        return _result(ModerationOutcome.APPROVED, message), ModerationEventType.APPROVED
    except IntegrityError as e:
        await session.rollback()
        logger.warning(f"Conflict approving {label.lower()} {submission_id}: {e}")
        return _already_processed(kind, SubmissionStatus.APPROVED.value), None
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Error approving {label.lower()} {submission_id}: {e}", exc_info=True)
        return _result(ModerationOutcome.ERROR, f"Failed to approve {label.lower()}"), None


async def reject(
    session: AsyncSession,
    kind: SubmissionType,
    submission_id: int,
    moderator_id: int,
    reason: Optional[str] = None,
    source: ApprovalSource = ApprovalSource.ADMIN,
) -> bool:
    """
    Reject a submission that is still awaiting moderation.

    Args:
        session: Database session
        kind: Submission family
        submission_id: Submission to reject
        moderator_id: Acting moderator
        reason: Optional reason, stored as moderator notes
        source: Surface the rejection came from

    Returns:
        True if the submission was rejected; False if it does not exist,
        was already approved/rejected, or the store failed
    """
    kind = SubmissionType(kind)
    try:
        submission = await submission_store.get_by_id(session, kind, submission_id)
        if submission is None or not can_transition(
            kind, submission.status, SubmissionStatus.REJECTED
        ):
            return False

        snapshot = (await _serialize(session, kind, [submission]))[0]

        updated = await submission_store.update_status(
            session,
            kind,
            submission_id,
            SubmissionStatus.REJECTED,
            moderator_id,
            notes=reason,
            from_statuses=open_statuses(kind),
        )
        if not updated:
            await session.rollback()
            return False
        await submission_store.record_action(
            session,
            kind,
            submission_id,
            moderator_id,
            ModerationAction.REJECTED,
            source,
            notes=reason,
        )
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Error rejecting {LABELS[kind].lower()} {submission_id}: {e}", exc_info=True)
        return False

    logger.info("%s %s rejected by moderator %s", LABELS[kind], submission_id, moderator_id)
    await moderation_events.emit(
        ModerationEventType.REJECTED,
        {
            **snapshot,
            "status": SubmissionStatus.REJECTED.value,
            "moderator_id": moderator_id,
            "moderator_notes": reason,
            "source": ApprovalSource(source).value,
        },
    )
    return True
