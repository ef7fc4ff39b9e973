"""
Tests for Discord slash commands and moderation buttons.
"""

import pytest
import pytest_asyncio
from sqlalchemy import select

from tt_reviews.database.models import (
    EquipmentReview,
    ModeratorApproval,
    Player,
    PlayerEdit,
    SubmissionType,
)
from tt_reviews.services import discord_interactions
from tt_reviews.services.discord_interactions import (
    EPHEMERAL_FLAG,
    build_custom_id,
    check_member_permissions,
    parse_custom_id,
)

MOD_ROLE = "111222333"


@pytest.fixture(autouse=True)
def moderator_roles(monkeypatch):
    monkeypatch.setenv("DISCORD_ALLOWED_ROLES", MOD_ROLE)


def _member(user_id, username, roles=(MOD_ROLE,)):
    return {"roles": list(roles), "user": {"id": user_id, "username": username}}


def _button(custom_id, member):
    return {"type": 3, "data": {"custom_id": custom_id}, "member": member}


def _command(name, options, member):
    return {
        "type": 2,
        "data": {
            "name": name,
            "options": [{"name": key, "value": value} for key, value in options.items()],
        },
        "member": member,
    }


@pytest_asyncio.fixture
async def review(db_session, user, equipment):
    review = EquipmentReview(
        equipment_id=equipment.id,
        user_id=user.id,
        status="pending",
        overall_rating=7,
        category_ratings={},
        reviewer_context={},
    )
    db_session.add(review)
    await db_session.commit()
    return review


class TestCustomIds:
    @pytest.mark.parametrize(
        "custom_id,expected",
        [
            ("approve_12", ("approve", SubmissionType.REVIEW, 12)),
            ("reject_12", ("reject", SubmissionType.REVIEW, 12)),
            ("approve_player_edit_5", ("approve", SubmissionType.PLAYER_EDIT, 5)),
            ("reject_player_edit_5", ("reject", SubmissionType.PLAYER_EDIT, 5)),
            ("approve_equipment_9", ("approve", SubmissionType.EQUIPMENT_SUBMISSION, 9)),
            ("reject_equipment_9", ("reject", SubmissionType.EQUIPMENT_SUBMISSION, 9)),
        ],
    )
    def test_parse_known_prefixes(self, custom_id, expected):
        assert parse_custom_id(custom_id) == expected

    @pytest.mark.parametrize("custom_id", [None, "", "approve_", "approve_abc", "delete_3"])
    def test_parse_rejects_unknown(self, custom_id):
        assert parse_custom_id(custom_id) is None

    def test_build_matches_parse(self):
        custom_id = build_custom_id("reject", SubmissionType.PLAYER_EDIT, 42)
        assert custom_id == "reject_player_edit_42"
        assert parse_custom_id(custom_id) == ("reject", SubmissionType.PLAYER_EDIT, 42)

    def test_build_unknown_action(self):
        with pytest.raises(ValueError):
            build_custom_id("publish", SubmissionType.REVIEW, 1)


class TestPermissions:
    def test_member_with_allowed_role(self):
        assert check_member_permissions({"roles": ["x", MOD_ROLE]}, [MOD_ROLE]) is True

    def test_member_without_allowed_role(self):
        assert check_member_permissions({"roles": ["x"]}, [MOD_ROLE]) is False

    def test_missing_member_denied(self):
        assert check_member_permissions(None, [MOD_ROLE]) is False
        assert check_member_permissions({}, []) is False

    def test_empty_allow_list_admits_members(self):
        assert check_member_permissions({"roles": []}, []) is True

    @pytest.mark.asyncio
    async def test_warns_when_roles_unset(self, monkeypatch, caplog):
        monkeypatch.delenv("DISCORD_ALLOWED_ROLES", raising=False)
        assert await discord_interactions.warn_if_permissive_roles() is True
        assert "any Discord guild member" in caplog.text


class TestHandleInteraction:
    @pytest.mark.asyncio
    async def test_ping(self, db_session):
        response = await discord_interactions.handle_interaction(db_session, {"type": 1})
        assert response == {"type": 1}

    @pytest.mark.asyncio
    async def test_two_buttons_publish_review(self, db_session, review):
        review_id = review.id

        first = await discord_interactions.handle_interaction(
            db_session, _button(f"approve_{review_id}", _member("501", "alice"))
        )
        assert first["type"] == 4
        assert first["data"]["content"].startswith("👍 **First Approval by alice**")

        second = await discord_interactions.handle_interaction(
            db_session, _button(f"approve_{review_id}", _member("502", "bob"))
        )
        assert second["data"]["content"].startswith("✅ **Review Fully Approved by bob**")

        status = await db_session.execute(
            select(EquipmentReview.status).where(EquipmentReview.id == review_id)
        )
        assert status.scalar_one() == "approved"
        sources = await db_session.execute(select(ModeratorApproval.source))
        assert set(sources.scalars().all()) == {"discord"}

    @pytest.mark.asyncio
    async def test_same_user_clicking_twice_is_warned(self, db_session, review):
        review_id = review.id
        member = _member("501", "alice")

        await discord_interactions.handle_interaction(
            db_session, _button(f"approve_{review_id}", member)
        )
        again = await discord_interactions.handle_interaction(
            db_session, _button(f"approve_{review_id}", member)
        )

        assert again["data"]["flags"] == EPHEMERAL_FLAG
        assert "already approved" in again["data"]["content"]

    @pytest.mark.asyncio
    async def test_member_without_role_is_refused(self, db_session, review):
        review_id = review.id

        response = await discord_interactions.handle_interaction(
            db_session, _button(f"approve_{review_id}", _member("501", "alice", roles=["999"]))
        )

        assert response["data"]["flags"] == EPHEMERAL_FLAG
        assert "permission" in response["data"]["content"]
        status = await db_session.execute(
            select(EquipmentReview.status).where(EquipmentReview.id == review_id)
        )
        assert status.scalar_one() == "pending"

    @pytest.mark.asyncio
    async def test_dm_interaction_is_refused(self, db_session, review):
        interaction = {
            "type": 3,
            "data": {"custom_id": f"approve_{review.id}"},
            "user": {"id": "501", "username": "alice"},
        }
        response = await discord_interactions.handle_interaction(db_session, interaction)
        assert "permission" in response["data"]["content"]

    @pytest.mark.asyncio
    async def test_player_edit_button_applies_changes(self, db_session, user, player):
        edit = PlayerEdit(
            player_id=player.id, user_id=user.id, edit_data={"represents": "SWE"}, status="pending"
        )
        db_session.add(edit)
        await db_session.commit()
        edit_id, player_id = edit.id, player.id

        response = await discord_interactions.handle_interaction(
            db_session, _button(f"approve_player_edit_{edit_id}", _member("501", "alice"))
        )

        assert response["data"]["content"].startswith("✅ **Player edit Approved by alice**")
        represents = await db_session.execute(
            select(Player.represents).where(Player.id == player_id)
        )
        assert represents.scalar_one() == "SWE"

    @pytest.mark.asyncio
    async def test_reject_command_with_reason(self, db_session, review):
        review_id = review.id

        response = await discord_interactions.handle_interaction(
            db_session,
            _command(
                "reject",
                {"id": str(review_id), "type": "review", "reason": "Not a real review"},
                _member("501", "alice"),
            ),
        )

        assert response["data"]["content"].startswith("❌ **Review Rejected by alice**")
        row = await db_session.execute(
            select(EquipmentReview.status, EquipmentReview.moderator_notes).where(
                EquipmentReview.id == review_id
            )
        )
        assert row.one() == ("rejected", "Not a real review")

    @pytest.mark.asyncio
    async def test_reject_processed_review_reports_error(self, db_session, review):
        review_id = review.id
        member = _member("501", "alice")
        await discord_interactions.handle_interaction(db_session, _button(f"reject_{review_id}", member))

        response = await discord_interactions.handle_interaction(
            db_session, _button(f"reject_{review_id}", member)
        )

        assert response["data"]["flags"] == EPHEMERAL_FLAG
        assert "may have already been processed" in response["data"]["content"]

    @pytest.mark.asyncio
    async def test_missing_submission_reports_error(self, db_session):
        response = await discord_interactions.handle_interaction(
            db_session, _button("approve_equipment_404", _member("501", "alice"))
        )
        assert response["data"]["flags"] == EPHEMERAL_FLAG
        assert "Equipment submission 404 not found" in response["data"]["content"]

    @pytest.mark.asyncio
    async def test_approve_command_requires_numeric_id(self, db_session):
        response = await discord_interactions.handle_interaction(
            db_session, _command("approve", {"id": "abc"}, _member("501", "alice"))
        )
        assert "valid submission id" in response["data"]["content"]

    @pytest.mark.asyncio
    async def test_equipment_search_command(self, db_session, equipment):
        response = await discord_interactions.handle_interaction(
            db_session, _command("equipment", {"query": "viscaria"}, _member("501", "alice"))
        )

        content = response["data"]["content"]
        assert "**Viscaria** by Butterfly" in content
        assert "/equipment/butterfly-viscaria" in content

    @pytest.mark.asyncio
    async def test_player_search_no_results(self, db_session):
        response = await discord_interactions.handle_interaction(
            db_session, _command("player", {"query": "nobody"}, _member("501", "alice"))
        )
        assert response["data"]["content"] == '🔍 No players found for "nobody"'
