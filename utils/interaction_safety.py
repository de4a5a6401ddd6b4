"""
Helpers that keep slash commands from failing on expired interactions.
"""

import logging

import discord

logger = logging.getLogger("scrim_bot.utils.interaction_safety")


async def safe_defer(interaction: discord.Interaction, ephemeral: bool = False) -> bool:
    """
    Defer an interaction response.

    Returns:
        False if the interaction expired or was already answered elsewhere
    """
    if interaction.response.is_done():
        return True
    try:
        await interaction.response.defer(ephemeral=ephemeral, thinking=True)
        return True
    except discord.NotFound:
        logger.warning(f"Interaction {interaction.id} expired before it could be deferred")
        return False
    except discord.HTTPException as exc:
        logger.warning(f"Failed to defer interaction {interaction.id}: {exc}")
        return False


async def safe_followup(interaction: discord.Interaction, **kwargs):
    """
    Send a followup message, falling back to the channel when the webhook is gone.

    Returns:
        The sent message, or None if nothing could be sent
    """
    try:
        return await interaction.followup.send(**kwargs)
    except discord.HTTPException as exc:
        logger.warning(f"Followup for interaction {interaction.id} failed: {exc}")
        channel = interaction.channel
        if channel is None:
            return None
        kwargs.pop("ephemeral", None)
        try:
            return await channel.send(**kwargs)
        except discord.HTTPException as channel_exc:
            logger.error(f"Channel fallback for interaction {interaction.id} failed: {channel_exc}")
            return None
