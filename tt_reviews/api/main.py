"""
TT Reviews API Server

FastAPI server for table tennis equipment reviews, player profile edits and
the moderation workflow behind them (admin API and Discord).
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
import logging
import os
import uvicorn
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

from tt_reviews.api.routes import router, limiter as routes_limiter
from tt_reviews.database import db
from tt_reviews.database.init_defaults import init_defaults
from tt_reviews.services import (
    discord_interactions,
    discord_notifier,
    moderation_events,
    settings_service,
)

# Set up logging
# Allow log level to be configured via environment variable (default: INFO)
# Note: Database setting will be checked after database initialization
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    logger.info("Starting up TT Reviews API...")

    # Create tables missing from migrations
    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)
        # Don't raise - allow app to start even if initialization fails

    # Initialize default values (settings seeded from the environment)
    try:
        await init_defaults()

        # Check for log level setting in database and apply it
        try:
            async with db.AsyncSessionLocal() as session:
                log_level_setting = await settings_service.get_setting(session, "log_level")
                if log_level_setting:
                    log_level_name = log_level_setting.upper()
                    root_logger = logging.getLogger()
                    root_logger.setLevel(getattr(logging, log_level_name, logging.INFO))
                    logger.info(f"Log level set from database: {log_level_name}")
                else:
                    logger.info(f"Log level set from environment: {log_level}")
        except Exception as e:
            logger.warning(f"Could not load log level from database, using environment: {e}")
    except Exception as e:
        logger.error(f"Failed to initialize defaults: {e}", exc_info=True)

    # Subscribe the Discord notifier to moderation events
    try:
        discord_notifier.register_moderation_listeners()
        if discord_notifier.is_configured():
            logger.info("✓ Discord notifications enabled")
        else:
            logger.info("Discord notifications disabled (no bot token/channel or webhook)")
    except Exception as e:
        logger.error(f"Failed to register moderation listeners: {e}", exc_info=True)

    # Warn when every Discord member may moderate
    try:
        async with db.AsyncSessionLocal() as session:
            await discord_interactions.warn_if_permissive_roles(session)
    except Exception as e:
        logger.warning(f"Could not check Discord moderator roles: {e}")

    yield  # App is running

    logger.info("Shutting down TT Reviews API...")
    try:
        await moderation_events.wait_for_pending()
    except Exception as e:
        logger.warning(f"Error waiting for moderation notifications: {e}")

    try:
        await db.engine.dispose()
        logger.info("✓ Database connections closed")
    except Exception as e:
        logger.error(f"Error closing database connections: {e}", exc_info=True)


app = FastAPI(
    title="TT Reviews API",
    description="API for table tennis equipment reviews, player data and submission moderation",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware - origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)


@app.get("/api/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Service status
    """
    return {"status": "healthy", "message": "API is running"}


@app.get("/", response_class=HTMLResponse)
async def root():
    """API root endpoint - frontend is served separately."""
    return HTMLResponse(
        content="""
        <!DOCTYPE html>
        <html>
            <head>
                <title>TT Reviews API</title>
                <style>
                    body { font-family: sans-serif; max-width: 800px; margin: 50px auto; padding: 20px; }
                    h1 { color: #3498db; }
                    a { color: #3498db; }
                </style>
            </head>
            <body>
                <h1>🏓 TT Reviews API</h1>
                <p>API is running successfully!</p>
                <h2>Available Resources:</h2>
                <ul>
                    <li><a href="/docs">📚 API Documentation</a> - Interactive API docs</li>
                    <li><a href="/api/health">❤️ Health Check</a> - System status</li>
                </ul>
            </body>
        </html>
    """
    )


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
