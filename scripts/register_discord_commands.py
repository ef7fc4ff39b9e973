#!/usr/bin/env python3
"""
Register the TT Reviews slash commands with Discord.

Commands are registered globally for the application, replacing any existing
set. Run once after deploying or whenever the command definitions change.

Usage:
    DISCORD_APPLICATION_ID=... DISCORD_BOT_TOKEN=... python scripts/register_discord_commands.py
"""

import os
import sys

import httpx
from dotenv import load_dotenv

load_dotenv()

DISCORD_API_BASE = "https://discord.com/api/v10"

STRING_OPTION = 3
SUBMISSION_TYPE_CHOICES = [
    {"name": "Review", "value": "review"},
    {"name": "Player edit", "value": "player_edit"},
    {"name": "Equipment submission", "value": "equipment"},
]


def _moderation_command(name: str, verb: str, with_reason: bool = False) -> dict:
    options = [
        {
            "name": "id",
            "description": f"ID of the submission to {verb}",
            "type": STRING_OPTION,
            "required": True,
        },
        {
            "name": "type",
            "description": "Submission type (defaults to review)",
            "type": STRING_OPTION,
            "required": False,
            "choices": SUBMISSION_TYPE_CHOICES,
        },
    ]
    if with_reason:
        options.append(
            {
                "name": "reason",
                "description": "Reason shown to the submitter",
                "type": STRING_OPTION,
                "required": False,
            }
        )
    return {
        "name": name,
        "description": f"{verb.capitalize()} a submission (moderators only)",
        "options": options,
    }


COMMANDS = [
    {
        "name": "equipment",
        "description": "Search for table tennis equipment",
        "options": [
            {
                "name": "query",
                "description": "Equipment name or manufacturer to search for",
                "type": STRING_OPTION,
                "required": True,
            }
        ],
    },
    {
        "name": "player",
        "description": "Search for table tennis players",
        "options": [
            {
                "name": "query",
                "description": "Player name to search for",
                "type": STRING_OPTION,
                "required": True,
            }
        ],
    },
    _moderation_command("approve", "approve"),
    _moderation_command("reject", "reject", with_reason=True),
]


def main() -> int:
    application_id = os.getenv("DISCORD_APPLICATION_ID")
    bot_token = os.getenv("DISCORD_BOT_TOKEN")
    if not application_id or not bot_token:
        print("❌ Missing required environment variables: DISCORD_APPLICATION_ID and DISCORD_BOT_TOKEN")
        return 1

    response = httpx.put(
        f"{DISCORD_API_BASE}/applications/{application_id}/commands",
        json=COMMANDS,
        headers={"Authorization": f"Bot {bot_token}"},
        timeout=10.0,
    )
    if response.is_success:
        print(f"✅ Registered {len(COMMANDS)} commands")
        return 0
    print(f"❌ Failed to register commands: {response.status_code} {response.text}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
