"""
Discord interaction handler for slash commands and moderation buttons.

Translates Discord interactions into moderation workflow calls and renders the
outcome back as a channel message. Signature verification happens in the
route before anything here runs; role checks and moderator identity
resolution happen here, per interaction.
"""

import enum
import logging
import os
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tt_reviews.database.models import ApprovalSource, SubmissionType
from tt_reviews.models.schemas import ModerationResult
from tt_reviews.services import (
    catalog_service,
    moderation_service,
    settings_service,
    user_service,
)
from tt_reviews.services.moderation_service import LABELS, ModerationOutcome, SubmissionNotFoundError

logger = logging.getLogger(__name__)

EPHEMERAL_FLAG = 64
SEARCH_RESULT_LIMIT = 5


class InteractionType(int, enum.Enum):
    PING = 1
    APPLICATION_COMMAND = 2
    MESSAGE_COMPONENT = 3


class InteractionResponseType(int, enum.Enum):
    PONG = 1
    CHANNEL_MESSAGE_WITH_SOURCE = 4


# Longest prefixes first: "approve_player_edit_12" must not parse as a review
CUSTOM_ID_PREFIXES: List[Tuple[str, str, SubmissionType]] = [
    ("approve_player_edit_", "approve", SubmissionType.PLAYER_EDIT),
    ("reject_player_edit_", "reject", SubmissionType.PLAYER_EDIT),
    ("approve_equipment_", "approve", SubmissionType.EQUIPMENT_SUBMISSION),
    ("reject_equipment_", "reject", SubmissionType.EQUIPMENT_SUBMISSION),
    ("approve_", "approve", SubmissionType.REVIEW),
    ("reject_", "reject", SubmissionType.REVIEW),
]

# Slash command "type" option -> submission family
COMMAND_KINDS = {
    "review": SubmissionType.REVIEW,
    "player_edit": SubmissionType.PLAYER_EDIT,
    "equipment": SubmissionType.EQUIPMENT_SUBMISSION,
}


def _site_url() -> str:
    return os.getenv("SITE_URL", "https://tabletennis.reviews").rstrip("/")


def build_custom_id(action: str, kind: SubmissionType, submission_id: int) -> str:
    """Button custom_id for an approve/reject action on a submission."""
    for prefix, prefix_action, prefix_kind in CUSTOM_ID_PREFIXES:
        if prefix_action == action and prefix_kind == SubmissionType(kind):
            return f"{prefix}{submission_id}"
    raise ValueError(f"Unknown moderation action: {action}")


def parse_custom_id(custom_id: Optional[str]) -> Optional[Tuple[str, SubmissionType, int]]:
    """
    Parse a moderation button custom_id.

    Returns:
        (action, kind, submission_id), or None if the id is not a moderation button
    """
    if not custom_id:
        return None
    for prefix, action, kind in CUSTOM_ID_PREFIXES:
        if custom_id.startswith(prefix):
            raw_id = custom_id[len(prefix):]
            if not raw_id.isdigit():
                return None
            return action, kind, int(raw_id)
    return None


def check_member_permissions(member: Optional[Dict], allowed_roles: List[str]) -> bool:
    """
    Whether a guild member may moderate.

    A missing member (DM interaction) or a member without a role list is denied.
    An empty allow-list admits every member.
    """
    if not member or member.get("roles") is None:
        return False
    if not allowed_roles:
        return True
    return any(role in allowed_roles for role in member["roles"])


async def get_allowed_roles(session: Optional[AsyncSession]) -> List[str]:
    """Role ids allowed to moderate (discord_allowed_roles setting, then DISCORD_ALLOWED_ROLES)."""
    return await settings_service.get_list_setting(
        session, "discord_allowed_roles", "DISCORD_ALLOWED_ROLES"
    )


async def warn_if_permissive_roles(session: Optional[AsyncSession] = None) -> bool:
    """Log a warning when no moderator roles are configured. Returns True if permissive."""
    if await get_allowed_roles(session):
        return False
    logger.warning(
        "DISCORD_ALLOWED_ROLES is empty: any Discord guild member can approve or reject "
        "submissions. Configure the discord_allowed_roles setting to restrict moderation."
    )
    return True


def message(content: str, ephemeral: bool = False) -> Dict:
    """Interaction response that posts ``content`` in the channel."""
    data = {"content": content}
    if ephemeral:
        data["flags"] = EPHEMERAL_FLAG
    return {"type": InteractionResponseType.CHANNEL_MESSAGE_WITH_SOURCE.value, "data": data}


def _interaction_user(interaction: Dict) -> Optional[Dict]:
    return interaction.get("user") or (interaction.get("member") or {}).get("user")


def _options(data: Dict) -> Dict[str, str]:
    return {
        option.get("name"): option.get("value")
        for option in data.get("options") or []
        if option.get("name")
    }


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def render_approval(
    kind: SubmissionType, submission_id: int, result: ModerationResult, username: str
) -> Dict:
    """Channel message for an approve outcome, with distinct wording per status."""
    label = LABELS[SubmissionType(kind)]
    if result.status == ModerationOutcome.FIRST_APPROVAL.value:
        return message(f"👍 **First Approval by {username}**\n{label} {submission_id}: {result.message}")
    if result.status == ModerationOutcome.FULLY_APPROVED.value:
        return message(
            f"✅ **{label} Fully Approved by {username}**\n{label} {submission_id}: {result.message}"
        )
    if result.status == ModerationOutcome.APPROVED.value:
        return message(f"✅ **{label} Approved by {username}**\n{label} {submission_id}: {result.message}")
    if result.status == ModerationOutcome.ALREADY_APPROVED.value:
        return message(f"⚠️ **{username}**: {result.message}", ephemeral=True)
    return message(f"❌ **Error**: {result.message}", ephemeral=True)


def render_rejection(kind: SubmissionType, submission_id: int, rejected: bool, username: str) -> Dict:
    """Channel message for a reject outcome."""
    label = LABELS[SubmissionType(kind)]
    if not rejected:
        return message(
            f"❌ **Error**: Failed to reject {label.lower()} {submission_id}. "
            "It may have already been processed.",
            ephemeral=True,
        )
    if SubmissionType(kind) == SubmissionType.PLAYER_EDIT:
        consequence = "changes will not be applied"
    else:
        consequence = "will not be published"
    return message(
        f"❌ **{label} Rejected by {username}**\n"
        f"{label} {submission_id} has been rejected and {consequence}."
    )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def handle_interaction(session: AsyncSession, interaction: Dict) -> Dict:
    """
    Dispatch a verified Discord interaction.

    Args:
        session: Database session
        interaction: Parsed interaction payload

    Returns:
        Interaction response dict
    """
    interaction_type = interaction.get("type")
    if interaction_type == InteractionType.PING:
        return {"type": InteractionResponseType.PONG.value}
    if interaction_type == InteractionType.APPLICATION_COMMAND:
        return await _handle_command(session, interaction)
    if interaction_type == InteractionType.MESSAGE_COMPONENT:
        return await _handle_component(session, interaction)
    return message("❌ Unknown interaction.", ephemeral=True)


async def _is_authorized(session: AsyncSession, interaction: Dict) -> bool:
    allowed_roles = await get_allowed_roles(session)
    return check_member_permissions(interaction.get("member"), allowed_roles)


async def _handle_command(session: AsyncSession, interaction: Dict) -> Dict:
    data = interaction.get("data") or {}
    command = data.get("name")
    options = _options(data)
    user = _interaction_user(interaction)

    if command in ("approve", "reject") and not user:
        return message("❌ **Error**: Unable to identify user from interaction.", ephemeral=True)

    if not await _is_authorized(session, interaction):
        return message("❌ You do not have permission to use this command.", ephemeral=True)

    if command == "equipment":
        return await _equipment_search(session, str(options.get("query") or ""))
    if command == "player":
        return await _player_search(session, str(options.get("query") or ""))
    if command in ("approve", "reject"):
        kind = COMMAND_KINDS.get(options.get("type") or "review")
        raw_id = str(options.get("id") or "")
        if kind is None or not raw_id.isdigit():
            return message(
                f"❌ Please provide a valid submission id. Example: `/{command} id:42`",
                ephemeral=True,
            )
        return await _moderate(
            session, command, kind, int(raw_id), user, reason=options.get("reason")
        )
    return message("❌ Unknown command.", ephemeral=True)


async def _handle_component(session: AsyncSession, interaction: Dict) -> Dict:
    if not await _is_authorized(session, interaction):
        return message("❌ You do not have permission to use this command.", ephemeral=True)

    user = _interaction_user(interaction)
    if not user:
        return message("❌ **Error**: Unable to identify user from interaction.", ephemeral=True)

    parsed = parse_custom_id((interaction.get("data") or {}).get("custom_id"))
    if parsed is None:
        return message("❌ Unknown interaction.", ephemeral=True)

    action, kind, submission_id = parsed
    return await _moderate(session, action, kind, submission_id, user)


async def _moderate(
    session: AsyncSession,
    action: str,
    kind: SubmissionType,
    submission_id: int,
    user: Dict,
    reason: Optional[str] = None,
) -> Dict:
    """Resolve the Discord user to a moderator and run the workflow action."""
    username = user.get("username") or "Unknown moderator"
    label = LABELS[kind].lower()

    try:
        moderator_id = await user_service.get_or_create_discord_moderator(
            session, user["id"], user.get("username")
        )
    except SQLAlchemyError as e:
        logger.error(f"Failed to resolve Discord moderator {user.get('id')}: {e}", exc_info=True)
        return message("❌ **Error**: Failed to create Discord moderator record", ephemeral=True)

    try:
        if action == "approve":
            result = await moderation_service.approve(
                session,
                kind,
                submission_id,
                moderator_id,
                is_admin_approval=False,
                source=ApprovalSource.DISCORD,
            )
            return render_approval(kind, submission_id, result, username)

        rejected = await moderation_service.reject(
            session, kind, submission_id, moderator_id, reason=reason, source=ApprovalSource.DISCORD
        )
        return render_rejection(kind, submission_id, rejected, username)
    except SubmissionNotFoundError as e:
        return message(f"❌ **Error**: {e}", ephemeral=True)
    except Exception as e:
        logger.error(f"Error handling Discord {action} for {label} {submission_id}: {e}", exc_info=True)
        return message(f"❌ **Error**: Failed to process {label} {action}", ephemeral=True)


async def _equipment_search(session: AsyncSession, query: str) -> Dict:
    if not query.strip():
        return message(
            "❌ Please provide a search query. Example: `/equipment query:butterfly`",
            ephemeral=True,
        )
    try:
        results = await catalog_service.search_equipment(session, query, limit=SEARCH_RESULT_LIMIT)
    except SQLAlchemyError as e:
        logger.error(f"Equipment search error: {e}", exc_info=True)
        return message("❌ Error searching equipment. Please try again later.")

    if not results["items"]:
        return message(f'🔍 No equipment found for "{query}"')

    lines = "\n\n".join(
        f"**{item['name']}** by {item['manufacturer']}\n"
        f"Type: {item['category']}\n"
        f"{_site_url()}/equipment/{item['slug']}"
        for item in results["items"]
    )
    content = f'🏓 **Equipment Search Results for "{query}"**\n\n{lines}'
    if results["total_count"] > SEARCH_RESULT_LIMIT:
        content += f"\n\n*Showing top {SEARCH_RESULT_LIMIT} of {results['total_count']} results*"
    return message(content)


async def _player_search(session: AsyncSession, query: str) -> Dict:
    if not query.strip():
        return message(
            "❌ Please provide a search query. Example: `/player query:ma long`",
            ephemeral=True,
        )
    try:
        results = await catalog_service.search_players(session, query, limit=SEARCH_RESULT_LIMIT)
    except SQLAlchemyError as e:
        logger.error(f"Player search error: {e}", exc_info=True)
        return message("❌ Error searching players. Please try again later.")

    if not results["items"]:
        return message(f'🔍 No players found for "{query}"')

    lines = "\n\n".join(
        f"**{player['name']}**\n"
        f"Status: {'Active' if player['active'] else 'Inactive'}\n"
        f"{_site_url()}/players/{player['slug']}"
        for player in results["items"]
    )
    content = f'🏓 **Player Search Results for "{query}"**\n\n{lines}'
    if results["total_count"] > SEARCH_RESULT_LIMIT:
        content += f"\n\n*Showing top {SEARCH_RESULT_LIMIT} of {results['total_count']} results*"
    return message(content)
