"""
Discord notifications for the moderation channel.

New submissions are posted as embeds with Approve / Reject buttons; moderation
outcomes are posted as short status embeds. Messages go through the bot API
when DISCORD_BOT_TOKEN and DISCORD_CHANNEL_ID are set, otherwise through
DISCORD_WEBHOOK_URL. Sending is best-effort: failures are logged and
reported as False, never raised.
"""

import logging
import os
from typing import Dict, List, Optional, Tuple

import httpx

from tt_reviews.database.models import SubmissionType
from tt_reviews.services import moderation_events
from tt_reviews.services.discord_interactions import build_custom_id
from tt_reviews.services.moderation_events import ModerationEventType
from tt_reviews.services.moderation_service import LABELS
from tt_reviews.utils.constants import REQUIRED_REVIEW_APPROVALS
from tt_reviews.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

DISCORD_API_BASE = "https://discord.com/api/v10"
REQUEST_TIMEOUT = 10.0
USER_AGENT = "tt-reviews-bot/1.0"

BUTTON_STYLE_SUCCESS = 3
BUTTON_STYLE_DANGER = 4

SUBMISSION_COLORS = {
    SubmissionType.REVIEW: 0x3498DB,
    SubmissionType.PLAYER_EDIT: 0xE67E22,
    SubmissionType.EQUIPMENT_SUBMISSION: 0x9B59B6,
}
OUTCOME_COLORS = {
    ModerationEventType.FIRST_APPROVAL: 0xF39C12,
    ModerationEventType.APPROVED: 0x2ECC71,
    ModerationEventType.REJECTED: 0xE74C3C,
}


def _bot_config() -> Optional[Tuple[str, str]]:
    """(bot token, channel id) if the bot API is configured."""
    token = os.environ.get("DISCORD_BOT_TOKEN")
    channel_id = os.environ.get("DISCORD_CHANNEL_ID")
    if token and channel_id:
        return token, channel_id
    return None


def _webhook_url() -> Optional[str]:
    return os.environ.get("DISCORD_WEBHOOK_URL")


def is_configured() -> bool:
    return _bot_config() is not None or bool(_webhook_url())


def build_action_row(kind: SubmissionType, submission_id: int) -> List[Dict]:
    """Approve / Reject buttons for a submission."""
    return [
        {
            "type": 1,
            "components": [
                {
                    "type": 2,
                    "style": BUTTON_STYLE_SUCCESS,
                    "label": "Approve",
                    "custom_id": build_custom_id("approve", kind, submission_id),
                },
                {
                    "type": 2,
                    "style": BUTTON_STYLE_DANGER,
                    "label": "Reject",
                    "custom_id": build_custom_id("reject", kind, submission_id),
                },
            ],
        }
    ]


def _summarize_player_changes(edit_data: Dict) -> str:
    changes = []
    if edit_data.get("name"):
        changes.append(f"Name: {edit_data['name']}")
    if edit_data.get("highest_rating"):
        changes.append(f"Rating: {edit_data['highest_rating']}")
    if edit_data.get("active_years"):
        changes.append(f"Active: {edit_data['active_years']}")
    if edit_data.get("active") is not None:
        changes.append(f"Status: {'Active' if edit_data['active'] else 'Inactive'}")
    if edit_data.get("playing_style"):
        changes.append(f"Style: {edit_data['playing_style']}")
    if edit_data.get("birth_country"):
        changes.append(f"Born: {edit_data['birth_country']}")
    if edit_data.get("represents"):
        changes.append(f"Represents: {edit_data['represents']}")
    return "\n".join(changes) if changes else "No changes specified"


def build_submission_embed(payload: Dict) -> Dict:
    """Embed announcing a new submission that needs moderation."""
    kind = SubmissionType(payload["submission_type"])
    if kind == SubmissionType.REVIEW:
        title = "🆕 New Review Submitted"
        description = "A new review has been submitted and needs moderation."
        fields = [
            {"name": "Equipment", "value": payload.get("equipment_name") or "Unknown", "inline": True},
            {"name": "Rating", "value": f"{payload.get('overall_rating')}/10", "inline": True},
            {"name": "Reviewer", "value": payload.get("reviewer_name") or "Anonymous", "inline": True},
        ]
    elif kind == SubmissionType.PLAYER_EDIT:
        title = "🏓 Player Edit Submitted"
        description = "A player information update has been submitted and needs moderation."
        fields = [
            {"name": "Player", "value": payload.get("player_name") or "Unknown Player", "inline": True},
            {"name": "Submitted by", "value": payload.get("submitter_name") or "Anonymous", "inline": True},
            {
                "name": "Changes",
                "value": _summarize_player_changes(payload.get("edit_data") or {}),
                "inline": False,
            },
        ]
    else:
        category = payload.get("category")
        title = "⚙️ Equipment Submission"
        description = "A new equipment submission has been received and needs moderation."
        fields = [
            {"name": "Equipment Name", "value": payload.get("name") or "Unknown Equipment", "inline": True},
            {"name": "Manufacturer", "value": payload.get("manufacturer") or "Unknown", "inline": True},
            {"name": "Category", "value": category.capitalize() if category else "Unknown", "inline": True},
            {"name": "Subcategory", "value": payload.get("subcategory") or "N/A", "inline": True},
            {"name": "Submitted by", "value": payload.get("submitter_name") or "Anonymous", "inline": True},
        ]
    return {
        "title": title,
        "description": description,
        "color": SUBMISSION_COLORS[kind],
        "fields": fields,
        "timestamp": utcnow().isoformat(),
    }


def build_outcome_embed(event_type: ModerationEventType, payload: Dict) -> Dict:
    """Embed describing a moderation decision."""
    kind = SubmissionType(payload["submission_type"])
    label = LABELS[kind]
    submission_id = payload.get("id")
    moderator = f"moderator #{payload.get('moderator_id')}"

    if event_type == ModerationEventType.FIRST_APPROVAL:
        title = f"👍 {label} {submission_id}: first approval"
        description = (
            f"Approved by {moderator}. Needs {REQUIRED_REVIEW_APPROVALS} approvals to publish."
        )
    elif event_type == ModerationEventType.APPROVED:
        title = f"✅ {label} {submission_id} approved"
        description = f"Approved by {moderator} via {payload.get('source', 'admin')}."
    else:
        title = f"❌ {label} {submission_id} rejected"
        description = f"Rejected by {moderator} via {payload.get('source', 'admin')}."

    fields = []
    if payload.get("moderator_notes"):
        fields.append({"name": "Reason", "value": payload["moderator_notes"], "inline": False})
    return {
        "title": title,
        "description": description,
        "color": OUTCOME_COLORS[event_type],
        "fields": fields,
        "timestamp": utcnow().isoformat(),
    }


def build_message(event_type: str, payload: Dict) -> Optional[Dict]:
    """Discord message body for an event, or None for events that are not announced."""
    event_type = ModerationEventType(event_type)
    if event_type == ModerationEventType.SUBMISSION_CREATED:
        kind = SubmissionType(payload["submission_type"])
        return {
            "embeds": [build_submission_embed(payload)],
            "components": build_action_row(kind, payload["id"]),
        }
    return {"embeds": [build_outcome_embed(event_type, payload)]}


async def send(event_type: str, payload: Dict) -> bool:
    """
    Post a moderation event to Discord.

    Args:
        event_type: ModerationEventType value
        payload: Event payload from the submission or moderation service

    Returns:
        True if Discord accepted the message, False otherwise (never raises)
    """
    try:
        body = build_message(event_type, payload)
    except (KeyError, ValueError) as e:
        logger.warning(f"Cannot build Discord message for {event_type}: {e}")
        return False
    if body is None:
        return False

    bot = _bot_config()
    webhook_url = _webhook_url()
    if bot:
        token, channel_id = bot
        url = f"{DISCORD_API_BASE}/channels/{channel_id}/messages"
        headers = {"Authorization": f"Bot {token}", "User-Agent": USER_AGENT}
    elif webhook_url:
        url = webhook_url
        headers = {"User-Agent": USER_AGENT}
        # Webhooks not owned by an application cannot carry buttons
        body.pop("components", None)
    else:
        logger.debug("Discord is not configured; skipping %s notification", event_type)
        return False

    try:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            resp = await client.post(url, json=body, headers=headers)
            resp.raise_for_status()
        logger.info(
            "Discord notification sent: %s %s %s",
            event_type,
            payload.get("submission_type"),
            payload.get("id"),
        )
        return True
    except Exception:
        logger.warning(
            "Discord notification failed for %s %s %s",
            event_type,
            payload.get("submission_type"),
            payload.get("id"),
            exc_info=True,
        )
        return False


def register_moderation_listeners() -> None:
    """
    Subscribe the Discord notifier to moderation events.

    Called during application startup.
    """
    moderation_events.register_listener(send)
