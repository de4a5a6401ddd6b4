"""
Command helper utilities for Discord slash commands.

Provides utilities for handling service Results in command handlers,
reducing boilerplate and ensuring consistent error reporting.
"""

from typing import TYPE_CHECKING

import discord

from utils.interaction_safety import safe_followup

if TYPE_CHECKING:
    from services.result import Result


async def handle_result(
    interaction: discord.Interaction,
    result: "Result",
    success_msg: str | None = None,
    ephemeral: bool = True,
) -> bool:
    """
    Handle a service Result, sending appropriate Discord response.

    Args:
        interaction: The Discord interaction to respond to
        result: The Result from a service call
        success_msg: Optional message to send on success (None = no message)
        ephemeral: Whether the message should be ephemeral

    Returns:
        True if the result was successful, False otherwise
    """
    if not result.success:
        await safe_followup(interaction, content=f"❌ {format_result_error(result)}", ephemeral=ephemeral)
        return False

    if success_msg:
        await safe_followup(interaction, content=success_msg, ephemeral=ephemeral)
    return True


def format_result_error(result: "Result") -> str:
    if result.success:
        return ""
    if result.error_code:
        return f"[{result.error_code}] {result.error}"
    return result.error or "Unknown error"
