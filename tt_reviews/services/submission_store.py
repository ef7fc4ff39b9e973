"""
Persistence layer for moderated submissions.

Thin query helpers over the three submission tables (equipment reviews,
player edits, equipment submissions) and the moderator_approvals ledger.
Nothing in here commits: the moderation service owns the transaction so a
multi-step approval either lands completely or not at all.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tt_reviews.database.models import (
    Equipment,
    EquipmentReview,
    EquipmentSubmission,
    ModerationAction,
    ModeratorApproval,
    Player,
    PlayerEdit,
    SubmissionType,
)
from tt_reviews.utils.constants import PLAYER_EDITABLE_FIELDS
from tt_reviews.utils.datetime_utils import utcnow
from tt_reviews.utils.slugify import slugify

logger = logging.getLogger(__name__)

MODELS = {
    SubmissionType.REVIEW: EquipmentReview,
    SubmissionType.PLAYER_EDIT: PlayerEdit,
    SubmissionType.EQUIPMENT_SUBMISSION: EquipmentSubmission,
}

# Fields an approved equipment submission must carry
REQUIRED_EQUIPMENT_FIELDS = ("name", "manufacturer", "category")


def model_for(kind: SubmissionType):
    """ORM model backing a submission family."""
    return MODELS[SubmissionType(kind)]


async def get_by_id(session: AsyncSession, kind: SubmissionType, submission_id: int):
    """Fetch a submission row, or None if it does not exist."""
    model = model_for(kind)
    result = await session.execute(select(model).where(model.id == submission_id))
    return result.scalar_one_or_none()


async def list_by_status(
    session: AsyncSession,
    kind: SubmissionType,
    statuses: Iterable[str],
    limit: int,
    offset: int,
) -> Tuple[List, int]:
    """
    Page through submissions in the given statuses, oldest first.

    Returns:
        (rows, total) where total counts every matching row, not just the page
    """
    model = model_for(kind)
    statuses = [str(getattr(s, "value", s)) for s in statuses]

    rows_result = await session.execute(
        select(model)
        .where(model.status.in_(statuses))
        .order_by(model.created_at.asc(), model.id.asc())
        .limit(limit)
        .offset(offset)
    )
    total_result = await session.execute(
        select(func.count()).select_from(model).where(model.status.in_(statuses))
    )
    return list(rows_result.scalars().all()), total_result.scalar_one()


async def count_by_status(session: AsyncSession, kind: SubmissionType) -> Dict[str, int]:
    """Row counts per status value for one submission family."""
    model = model_for(kind)
    result = await session.execute(
        select(model.status, func.count(model.id)).group_by(model.status)
    )
    return {status: count for status, count in result.all()}


async def update_status(
    session: AsyncSession,
    kind: SubmissionType,
    submission_id: int,
    status: str,
    moderator_id: Optional[int],
    notes: Optional[str] = None,
    from_statuses: Iterable[str] = ("pending",),
) -> bool:
    """
    Conditionally move a submission to ``status``.

    The update only matches while the row is still in one of ``from_statuses``,
    so two moderators racing on the same item cannot both win.

    Returns:
        True if a row was updated
    """
    model = model_for(kind)
    values = {"status": str(getattr(status, "value", status)), "updated_at": utcnow()}
    if moderator_id is not None:
        values["moderator_id"] = moderator_id
    if notes is not None:
        values["moderator_notes"] = notes

    result = await session.execute(
        update(model)
        .where(
            model.id == submission_id,
            model.status.in_([str(getattr(s, "value", s)) for s in from_statuses]),
        )
        .values(**values)
    )
    return result.rowcount == 1


async def patch_canonical(session: AsyncSession, player_id: int, patch: Dict) -> bool:
    """
    Merge-patch a player record with the editable keys present in ``patch``.

    Returns:
        True if the player exists (an empty filtered patch is a no-op success)
    """
    exists = await session.execute(select(Player.id).where(Player.id == player_id))
    if exists.scalar_one_or_none() is None:
        return False

    update_values = {k: v for k, v in (patch or {}).items() if k in PLAYER_EDITABLE_FIELDS}
    if not update_values:
        return True

    update_values["updated_at"] = utcnow()
    await session.execute(
        update(Player)
        .where(Player.id == player_id)
        .values(**update_values)
    )
    return True


async def _generate_unique_slug(session: AsyncSession, name: str) -> str:
    """Generate a unique equipment slug, appending a numeric suffix if needed."""
    base = slugify(name, fallback="equipment")
    slug = base
    counter = 1
    while True:
        result = await session.execute(select(Equipment.id).where(Equipment.slug == slug))
        if result.scalar_one_or_none() is None:
            return slug
        counter += 1
        slug = f"{base}-{counter}"


async def create_canonical(session: AsyncSession, fields: Dict) -> Optional[int]:
    """
    Create an equipment record from submission fields.

    Returns:
        New equipment id, or None if a required field is missing
    """
    missing = [f for f in REQUIRED_EQUIPMENT_FIELDS if not fields.get(f)]
    if missing:
        logger.warning("Cannot create equipment, missing fields: %s", ", ".join(missing))
        return None

    equipment = Equipment(
        name=fields["name"],
        slug=await _generate_unique_slug(session, fields["name"]),
        manufacturer=fields["manufacturer"],
        category=fields["category"],
        subcategory=fields.get("subcategory"),
        specifications=fields.get("specifications") or {},
    )
    session.add(equipment)
    await session.flush()
    return equipment.id


async def record_action(
    session: AsyncSession,
    kind: SubmissionType,
    submission_id: int,
    moderator_id: int,
    action: ModerationAction,
    source: str,
    notes: Optional[str] = None,
) -> None:
    """Append a row to the moderation ledger (flushes so unique violations surface here)."""
    session.add(
        ModeratorApproval(
            submission_type=SubmissionType(kind).value,
            submission_id=submission_id,
            moderator_id=moderator_id,
            action=ModerationAction(action).value,
            source=str(getattr(source, "value", source)),
            notes=notes,
        )
    )
    await session.flush()


async def list_approver_ids(
    session: AsyncSession, kind: SubmissionType, submission_id: int
) -> List[int]:
    """Distinct moderator ids that have approved a submission."""
    result = await session.execute(
        select(ModeratorApproval.moderator_id)
        .where(
            ModeratorApproval.submission_type == SubmissionType(kind).value,
            ModeratorApproval.submission_id == submission_id,
            ModeratorApproval.action == ModerationAction.APPROVED.value,
        )
        .distinct()
    )
    return list(result.scalars().all())


async def count_approvals(
    session: AsyncSession, kind: SubmissionType, submission_ids: List[int]
) -> Dict[int, int]:
    """Approval counts for a batch of submissions (missing ids have zero)."""
    if not submission_ids:
        return {}
    result = await session.execute(
        select(
            ModeratorApproval.submission_id,
            func.count(func.distinct(ModeratorApproval.moderator_id)),
        )
        .where(
            ModeratorApproval.submission_type == SubmissionType(kind).value,
            ModeratorApproval.submission_id.in_(submission_ids),
            ModeratorApproval.action == ModerationAction.APPROVED.value,
        )
        .group_by(ModeratorApproval.submission_id)
    )
    return {submission_id: count for submission_id, count in result.all()}
