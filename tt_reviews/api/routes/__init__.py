"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter) lives here; every sub-router imports what it
needs from this package.
"""

import os

from fastapi import APIRouter
from slowapi import Limiter
from slowapi.util import get_remote_address

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
if IS_TEST_ENV:
    limiter = Limiter(key_func=get_remote_address)

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()
else:
    limiter = Limiter(key_func=get_remote_address)

# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from tt_reviews.api.routes.moderation import router as moderation_router
from tt_reviews.api.routes.submissions import router as submissions_router
from tt_reviews.api.routes.catalog import router as catalog_router
from tt_reviews.api.routes.discord import router as discord_router
from tt_reviews.api.routes.admin import router as admin_router

router = APIRouter()
router.include_router(moderation_router)
router.include_router(submissions_router)
router.include_router(catalog_router)
router.include_router(discord_router)
router.include_router(admin_router)
