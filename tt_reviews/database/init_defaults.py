#!/usr/bin/env python3
"""
Initialize default database values.
This script is run on startup to populate default settings.
"""

import asyncio
import logging
import os

from tt_reviews.database import db
from tt_reviews.services import settings_service

logger = logging.getLogger(__name__)

# Settings seeded from the environment on first boot; existing rows win
DEFAULT_SETTINGS = {
    "system_admin_emails": "SYSTEM_ADMIN_EMAILS",
    "discord_allowed_roles": "DISCORD_ALLOWED_ROLES",
}


async def init_defaults():
    """Initialize default database values."""
    logger.info("Initializing default database values...")

    async with db.AsyncSessionLocal() as session:
        for key, env_var in DEFAULT_SETTINGS.items():
            existing = await settings_service.get_setting(session, key)
            if existing is not None:
                logger.info(f"✓ Setting {key} already configured")
                continue

            env_value = os.getenv(env_var)
            if env_value is None:
                continue

            await settings_service.set_setting(session, key, env_value)
            logger.info(f"✓ Seeded setting {key} from {env_var}")

    logger.info("✓ Default values initialized")


if __name__ == "__main__":
    asyncio.run(init_defaults())
