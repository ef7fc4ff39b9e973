#!/usr/bin/env python3
"""
Generate a bearer token for a local user, creating the user if needed.

Handy for exercising the admin moderation API locally: put the email in
SYSTEM_ADMIN_EMAILS and use the printed token.

Usage:
    python scripts/dev_login.py admin@example.com
    python scripts/dev_login.py            (lists users)
"""

import asyncio
import os
import sys
from datetime import timedelta

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from sqlalchemy import select
from tt_reviews.database.db import AsyncSessionLocal, init_database
from tt_reviews.database.models import User
from tt_reviews.services import user_service
from tt_reviews.services.auth_service import create_access_token, normalize_email


async def list_users(session):
    """Print existing users for reference."""
    print("\n📋 Users:")
    result = await session.execute(
        select(User.id, User.email, User.display_name).order_by(User.id).limit(20)
    )
    for row in result.all():
        print(f"  User #{row[0]:<4}  {row[1]:<30}  {row[2] or ''}")
    print()


async def main(email: str = ""):
    await init_database()
    async with AsyncSessionLocal() as session:
        if not email:
            print("❌ Usage: python scripts/dev_login.py <email>")
            await list_users(session)
            return

        email = normalize_email(email)
        user = await user_service.get_user_by_email(session, email)
        if user is None:
            user_id = await user_service.create_user(session, email)
            print(f"🆕 Created user #{user_id} ({email})")
        else:
            user_id = user["id"]

        # Long-lived token for dev convenience
        access_token = create_access_token(
            data={"user_id": user_id, "email": email},
            expires_delta=timedelta(hours=24),
        )
        print(f"\n🏓 Logged in as: {email} (User #{user_id})\n")
        print(f"Authorization: Bearer {access_token}\n")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else ""))
