"""
Reusable Discord embed builders.
"""

import discord

from services.interfaces import Notice, NoticeKind

EMBED_LIMITS = {
    "title": 256,
    "field_name": 256,
    "field_value": 1024,
    "description": 4096,
    "max_fields": 25,
}

NOTICE_COLORS = {
    NoticeKind.POLL: discord.Color.blue(),
    NoticeKind.SLOT_CONFIRMED: discord.Color.green(),
    NoticeKind.SLOT_CANCELLED: discord.Color.red(),
    NoticeKind.REMINDER: discord.Color.orange(),
    NoticeKind.JOIN_PROMPT: discord.Color.blue(),
    NoticeKind.JOINED: discord.Color.green(),
    NoticeKind.REGISTRATION_REQUIRED: discord.Color.orange(),
    NoticeKind.READY_PROMPT: discord.Color.gold(),
    NoticeKind.TEAMS_FORMED: discord.Color.purple(),
    NoticeKind.SESSION_CREATED: discord.Color.green(),
    NoticeKind.ROUND_STARTED: discord.Color.green(),
    NoticeKind.ROUND_ENDED: discord.Color.dark_grey(),
    NoticeKind.LOBBY_STALE: discord.Color.light_grey(),
    NoticeKind.SESSION_CANCELLED: discord.Color.red(),
    NoticeKind.FAILURE: discord.Color.red(),
}


def truncate_field(text: str, max_len: int = 1024) -> str:
    """Truncate text to fit a Discord embed limit, ending with '...' when cut."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def build_notice_embed(notice: Notice) -> discord.Embed:
    """Render a Notice as an embed, trimmed to Discord's limits."""
    embed = discord.Embed(
        title=truncate_field(notice.title, EMBED_LIMITS["title"]),
        description=truncate_field(notice.description, EMBED_LIMITS["description"]) or None,
        color=NOTICE_COLORS.get(notice.kind, discord.Color.blue()),
    )
    for name, value in notice.fields[: EMBED_LIMITS["max_fields"]]:
        embed.add_field(
            name=truncate_field(name, EMBED_LIMITS["field_name"]),
            value=truncate_field(value or "\u200b", EMBED_LIMITS["field_value"]),
            inline=notice.kind is NoticeKind.SESSION_CREATED,
        )
    return embed


def mention_content(notice: Notice) -> str | None:
    """Plain-text mentions so pings fire (mentions inside embeds do not notify)."""
    if not notice.mention_users:
        return None
    mentions = [token for token in notice.description.split() if token.startswith("<@")]
    mentions += [value for _, value in notice.fields if value.startswith("<@")]
    seen = []
    for mention in mentions:
        mention = mention.rstrip(",")
        if mention not in seen:
            seen.append(mention)
    return " ".join(seen) or None
