"""Discord interactions endpoint (slash commands and moderation buttons)."""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tt_reviews.database.db import get_db_session
from tt_reviews.services import discord_interactions, discord_signature
from tt_reviews.services.discord_signature import SignatureConfigurationError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/discord/interactions")
async def discord_interactions_webhook(
    request: Request, session: AsyncSession = Depends(get_db_session)
):
    """
    Receive an interaction from Discord.

    The raw body is verified against X-Signature-Ed25519 / X-Signature-Timestamp
    before it is parsed; unsigned or badly signed requests get 401.
    """
    signature = request.headers.get("x-signature-ed25519")
    timestamp = request.headers.get("x-signature-timestamp")
    if not signature or not timestamp:
        raise HTTPException(status_code=401, detail="Missing signature headers")

    body = await request.body()
    try:
        valid = discord_signature.verify_signature(signature, timestamp, body)
    except SignatureConfigurationError as e:
        logger.error(f"Discord signature verification unavailable: {e}")
        raise HTTPException(status_code=500, detail="Discord verification key not configured")
    if not valid:
        raise HTTPException(status_code=401, detail="Invalid request signature")

    try:
        interaction = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(interaction, dict):
        raise HTTPException(status_code=400, detail="Invalid interaction payload")

    try:
        return await discord_interactions.handle_interaction(session, interaction)
    except Exception as e:
        logger.error(f"Error handling Discord interaction: {e}", exc_info=True)
        return discord_interactions.message(
            "❌ **Error**: Failed to process interaction.", ephemeral=True
        )
