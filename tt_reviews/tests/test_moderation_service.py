"""
Tests for the moderation workflow: two-step review approval, single-step
player edit / equipment submission approval, rejection and stats.
"""

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from tt_reviews.database.models import (
    ApprovalSource,
    Equipment,
    EquipmentReview,
    EquipmentSubmission,
    ModeratorApproval,
    Player,
    PlayerEdit,
    SubmissionType,
)
from tt_reviews.services import moderation_events, moderation_service, user_service
from tt_reviews.services.moderation_service import SubmissionNotFoundError


@pytest_asyncio.fixture
async def moderators(db_session):
    """Two independent Discord moderators."""
    first = await user_service.get_or_create_discord_moderator(db_session, "1001", "alice")
    second = await user_service.get_or_create_discord_moderator(db_session, "1002", "bob")
    return first, second


@pytest_asyncio.fixture
async def review(db_session, user, equipment):
    review = EquipmentReview(
        equipment_id=equipment.id,
        user_id=user.id,
        status="pending",
        overall_rating=8.5,
        category_ratings={"speed": 9, "control": 8},
        review_text="Great all-round blade.",
        reviewer_context={"playing_level": "2000"},
    )
    db_session.add(review)
    await db_session.commit()
    return review


@pytest_asyncio.fixture
async def player_edit(db_session, user, player):
    edit = PlayerEdit(
        player_id=player.id,
        user_id=user.id,
        edit_data={"highest_rating": "3100"},
        status="pending",
    )
    db_session.add(edit)
    await db_session.commit()
    return edit


@pytest_asyncio.fixture
async def equipment_submission(db_session, user):
    submission = EquipmentSubmission(
        user_id=user.id,
        name="Dignics 09C",
        manufacturer="Butterfly",
        category="rubber",
        subcategory="inverted",
        specifications={"sponge": "2.1"},
        status="pending",
    )
    db_session.add(submission)
    await db_session.commit()
    return submission


async def _status(db_session, model, submission_id):
    result = await db_session.execute(select(model.status).where(model.id == submission_id))
    return result.scalar_one()


class TestReviewApproval:
    """Reviews need two distinct moderators unless an admin approves."""

    @pytest.mark.asyncio
    async def test_admin_can_publish_after_own_first_approval(self, db_session, review, moderators):
        review_id = review.id
        first, _ = moderators

        result = await moderation_service.approve(
            db_session, SubmissionType.REVIEW, review_id, first
        )
        assert result.status == "first_approval"

        result = await moderation_service.approve(
            db_session, SubmissionType.REVIEW, review_id, first, is_admin_approval=True
        )

        assert result.success is True
        assert result.status == "fully_approved"
        assert await _status(db_session, EquipmentReview, review_id) == "approved"
        count = await db_session.execute(
            select(func.count()).select_from(ModeratorApproval).where(
                ModeratorApproval.submission_id == review_id
            )
        )
        assert count.scalar_one() == 1

    @pytest.mark.asyncio
    async def test_two_moderators_publish_review(self, db_session, review, moderators):
        review_id = review.id
        first, second = moderators

        result = await moderation_service.approve(
            db_session, SubmissionType.REVIEW, review_id, first, source=ApprovalSource.DISCORD
        )
        assert result.success is True
        assert result.status == "first_approval"
        assert await _status(db_session, EquipmentReview, review_id) == "pending"

        result = await moderation_service.approve(
            db_session, SubmissionType.REVIEW, review_id, second, source=ApprovalSource.DISCORD
        )
        assert result.success is True
        assert result.status == "fully_approved"
        assert await _status(db_session, EquipmentReview, review_id) == "approved"

    @pytest.mark.asyncio
    async def test_same_moderator_twice_counts_once(self, db_session, review, moderators):
        review_id = review.id
        first, _ = moderators

        await moderation_service.approve(db_session, SubmissionType.REVIEW, review_id, first)
        result = await moderation_service.approve(
            db_session, SubmissionType.REVIEW, review_id, first
        )

        assert result.success is False
        assert result.status == "already_approved"
        assert result.message == "You have already approved this review"
        assert await _status(db_session, EquipmentReview, review_id) == "pending"

        count = await db_session.execute(
            select(func.count()).select_from(ModeratorApproval).where(
                ModeratorApproval.submission_id == review_id
            )
        )
        assert count.scalar_one() == 1

    @pytest.mark.asyncio
    async def test_admin_approval_publishes_immediately(self, db_session, review, moderators):
        review_id = review.id
        first, _ = moderators

        result = await moderation_service.approve(
            db_session, SubmissionType.REVIEW, review_id, first, is_admin_approval=True
        )

        assert result.status == "fully_approved"
        assert await _status(db_session, EquipmentReview, review_id) == "approved"

    @pytest.mark.asyncio
    async def test_approving_published_review_is_idempotent(self, db_session, review, moderators):
        review_id = review.id
        first, second = moderators
        await moderation_service.approve(
            db_session, SubmissionType.REVIEW, review_id, first, is_admin_approval=True
        )

        result = await moderation_service.approve(
            db_session, SubmissionType.REVIEW, review_id, second, is_admin_approval=True
        )

        assert result.success is False
        assert result.status == "already_approved"
        assert result.message == "Review already approved"
        assert await _status(db_session, EquipmentReview, review_id) == "approved"

    @pytest.mark.asyncio
    async def test_approve_missing_review_raises(self, db_session, moderators):
        first, _ = moderators
        with pytest.raises(SubmissionNotFoundError, match="Review 999 not found"):
            await moderation_service.approve(db_session, SubmissionType.REVIEW, 999, first)

    @pytest.mark.asyncio
    async def test_first_approval_shows_in_pending_list(self, db_session, review, moderators):
        review_id = review.id
        first, _ = moderators
        await moderation_service.approve(db_session, SubmissionType.REVIEW, review_id, first)

        listing = await moderation_service.list_pending(db_session, SubmissionType.REVIEW)

        assert listing["total"] == 1
        item = listing["items"][0]
        assert item["id"] == review_id
        assert item["approval_count"] == 1
        assert item["equipment"]["name"] == "Viscaria"


class TestSingleStepApproval:
    """Player edits and equipment submissions are applied on the first approval."""

    @pytest.mark.asyncio
    async def test_player_edit_patches_only_provided_fields(
        self, db_session, player, player_edit, moderators
    ):
        player_id, edit_id = player.id, player_edit.id
        first, _ = moderators

        result = await moderation_service.approve(
            db_session, SubmissionType.PLAYER_EDIT, edit_id, first
        )

        assert result.success is True
        assert result.status == "approved"
        assert await _status(db_session, PlayerEdit, edit_id) == "approved"

        row = await db_session.execute(
            select(Player.name, Player.highest_rating, Player.represents).where(
                Player.id == player_id
            )
        )
        name, highest_rating, represents = row.one()
        assert highest_rating == "3100"
        assert name == "Ma Long"
        assert represents == "CHN"

    @pytest.mark.asyncio
    async def test_equipment_submission_creates_one_record(
        self, db_session, equipment_submission, moderators
    ):
        submission_id = equipment_submission.id
        first, second = moderators

        result = await moderation_service.approve(
            db_session, SubmissionType.EQUIPMENT_SUBMISSION, submission_id, first
        )
        assert result.status == "approved"

        again = await moderation_service.approve(
            db_session, SubmissionType.EQUIPMENT_SUBMISSION, submission_id, second
        )
        assert again.status == "already_approved"

        created = await db_session.execute(
            select(Equipment.slug, Equipment.category, Equipment.subcategory).where(
                Equipment.name == "Dignics 09C"
            )
        )
        rows = created.all()
        assert len(rows) == 1
        assert rows[0] == ("dignics-09c", "rubber", "inverted")

    @pytest.mark.asyncio
    async def test_equipment_slug_collision_gets_suffix(
        self, db_session, equipment_submission, moderators
    ):
        submission_id = equipment_submission.id
        db_session.add(
            Equipment(
                name="Dignics 09C", slug="dignics-09c", manufacturer="Butterfly", category="rubber"
            )
        )
        await db_session.commit()
        first, _ = moderators

        result = await moderation_service.approve(
            db_session, SubmissionType.EQUIPMENT_SUBMISSION, submission_id, first
        )

        assert result.status == "approved"
        slugs = await db_session.execute(select(Equipment.slug).order_by(Equipment.id))
        assert slugs.scalars().all() == ["dignics-09c", "dignics-09c-2"]

    @pytest.mark.asyncio
    async def test_incomplete_equipment_submission_is_not_applied(
        self, db_session, user, moderators
    ):
        submission = EquipmentSubmission(user_id=user.id, name="Mystery", status="pending")
        db_session.add(submission)
        await db_session.commit()
        submission_id = submission.id
        first, _ = moderators

        result = await moderation_service.approve(
            db_session, SubmissionType.EQUIPMENT_SUBMISSION, submission_id, first
        )

        assert result.success is False
        assert result.status == "error"
        assert await _status(db_session, EquipmentSubmission, submission_id) == "pending"
        count = await db_session.execute(select(func.count()).select_from(Equipment))
        assert count.scalar_one() == 0

    @pytest.mark.asyncio
    async def test_legacy_awaiting_second_approval_edit_can_be_approved(
        self, db_session, user, player, moderators
    ):
        edit = PlayerEdit(
            player_id=player.id,
            user_id=user.id,
            edit_data={"active": False},
            status="awaiting_second_approval",
        )
        db_session.add(edit)
        await db_session.commit()
        edit_id, player_id = edit.id, player.id
        first, _ = moderators

        result = await moderation_service.approve(
            db_session, SubmissionType.PLAYER_EDIT, edit_id, first
        )

        assert result.status == "approved"
        active = await db_session.execute(select(Player.active).where(Player.id == player_id))
        assert active.scalar_one() is False


class TestReject:
    @pytest.mark.asyncio
    async def test_reject_records_reason(self, db_session, review, moderators):
        review_id = review.id
        first, _ = moderators

        rejected = await moderation_service.reject(
            db_session, SubmissionType.REVIEW, review_id, first, reason="Spam"
        )

        assert rejected is True
        row = await db_session.execute(
            select(EquipmentReview.status, EquipmentReview.moderator_notes).where(
                EquipmentReview.id == review_id
            )
        )
        assert row.one() == ("rejected", "Spam")

    @pytest.mark.asyncio
    async def test_reject_processed_submissions_returns_false(
        self, db_session, review, player_edit, equipment_submission, moderators
    ):
        ids = {
            SubmissionType.REVIEW: review.id,
            SubmissionType.PLAYER_EDIT: player_edit.id,
            SubmissionType.EQUIPMENT_SUBMISSION: equipment_submission.id,
        }
        first, _ = moderators

        for kind, submission_id in ids.items():
            await moderation_service.approve(
                db_session, kind, submission_id, first, is_admin_approval=True
            )
            assert await moderation_service.reject(db_session, kind, submission_id, first) is False

        assert await _status(db_session, EquipmentReview, ids[SubmissionType.REVIEW]) == "approved"
        assert await _status(db_session, PlayerEdit, ids[SubmissionType.PLAYER_EDIT]) == "approved"

    @pytest.mark.asyncio
    async def test_reject_twice_returns_false(self, db_session, player_edit, moderators):
        edit_id = player_edit.id
        first, second = moderators

        assert await moderation_service.reject(
            db_session, SubmissionType.PLAYER_EDIT, edit_id, first
        ) is True
        assert await moderation_service.reject(
            db_session, SubmissionType.PLAYER_EDIT, edit_id, second
        ) is False

    @pytest.mark.asyncio
    async def test_reject_missing_submission_returns_false(self, db_session, moderators):
        first, _ = moderators
        assert await moderation_service.reject(
            db_session, SubmissionType.EQUIPMENT_SUBMISSION, 404, first
        ) is False

    @pytest.mark.asyncio
    async def test_rejected_review_cannot_be_approved(self, db_session, review, moderators):
        review_id = review.id
        first, second = moderators
        await moderation_service.reject(db_session, SubmissionType.REVIEW, review_id, first)

        result = await moderation_service.approve(
            db_session, SubmissionType.REVIEW, review_id, second
        )

        assert result.status == "already_approved"
        assert result.message == "Review has already been processed"
        assert await _status(db_session, EquipmentReview, review_id) == "rejected"


class TestStats:
    @pytest.mark.asyncio
    async def test_stats_sum_to_total(
        self, db_session, user, review, player_edit, equipment_submission, moderators
    ):
        first, _ = moderators
        db_session.add(
            PlayerEdit(
                player_id=player_edit.player_id,
                user_id=user.id,
                edit_data={"name": "Long Ma"},
                status="awaiting_second_approval",
            )
        )
        await db_session.commit()
        await moderation_service.reject(
            db_session, SubmissionType.EQUIPMENT_SUBMISSION, equipment_submission.id, first
        )
        await moderation_service.approve(
            db_session, SubmissionType.PLAYER_EDIT, player_edit.id, first
        )

        stats = await moderation_service.get_stats(db_session)

        assert stats["reviews"] == {"pending": 1, "approved": 0, "rejected": 0, "total": 1}
        assert stats["player_edits"] == {"pending": 1, "approved": 1, "rejected": 0, "total": 2}
        assert stats["equipment_submissions"] == {
            "pending": 0,
            "approved": 0,
            "rejected": 1,
            "total": 1,
        }
        for counts in stats.values():
            assert counts["pending"] + counts["approved"] + counts["rejected"] == counts["total"]

    @pytest.mark.asyncio
    async def test_pending_list_pages_oldest_first(self, db_session, user, player):
        player_id, user_id = player.id, user.id
        for rating in ("2900", "3000", "3100"):
            db_session.add(
                PlayerEdit(
                    player_id=player_id,
                    user_id=user_id,
                    edit_data={"highest_rating": rating},
                    status="pending",
                )
            )
            await db_session.commit()

        page = await moderation_service.list_pending(
            db_session, SubmissionType.PLAYER_EDIT, limit=2, offset=1
        )

        assert page["total"] == 3
        assert page["limit"] == 2
        assert page["offset"] == 1
        assert [item["edit_data"]["highest_rating"] for item in page["items"]] == ["3000", "3100"]
        assert page["items"][0]["player"]["slug"] == "ma-long"


class TestEvents:
    @pytest.mark.asyncio
    async def test_events_emitted_after_commit(
        self, db_session, review, moderators, recorded_events
    ):
        review_id = review.id
        first, second = moderators

        await moderation_service.approve(db_session, SubmissionType.REVIEW, review_id, first)
        await moderation_service.approve(db_session, SubmissionType.REVIEW, review_id, second)
        await moderation_service.approve(db_session, SubmissionType.REVIEW, review_id, second)
        await moderation_events.wait_for_pending()

        assert [event for event, _ in recorded_events] == ["first_approval", "approved"]
        payload = recorded_events[1][1]
        assert payload["id"] == review_id
        assert payload["status"] == "approved"
        assert payload["moderator_id"] == second

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_moderation(
        self, db_session, review, player_edit, moderators
    ):
        review_id, edit_id = review.id, player_edit.id
        first, _ = moderators

        async def broken_listener(event_type, payload):
            raise RuntimeError("notifier down")

        moderation_events.register_listener(broken_listener)

        result = await moderation_service.approve(
            db_session, SubmissionType.REVIEW, review_id, first, is_admin_approval=True
        )
        assert result.status == "fully_approved"
        assert await moderation_service.reject(
            db_session, SubmissionType.PLAYER_EDIT, edit_id, first
        ) is True
        assert await _status(db_session, EquipmentReview, review_id) == "approved"
        assert await _status(db_session, PlayerEdit, edit_id) == "rejected"
        await moderation_events.wait_for_pending()

    @pytest.mark.asyncio
    async def test_slow_listener_does_not_delay_approval(self, db_session, review, moderators):
        review_id = review.id
        first, _ = moderators
        release = asyncio.Event()

        async def slow_listener(event_type, payload):
            await release.wait()

        moderation_events.register_listener(slow_listener)

        result = await asyncio.wait_for(
            moderation_service.approve(db_session, SubmissionType.REVIEW, review_id, first),
            timeout=2,
        )

        assert result.status == "first_approval"
        release.set()
        await moderation_events.wait_for_pending()
