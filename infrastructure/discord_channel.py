"""
Discord implementation of the announcement channel.

Notices become embeds in a text channel. Reaction streams are fed from the
bot's raw gateway events (on_raw_reaction_add/remove) through
dispatch_reaction(), so they work for messages that are not cached.
"""

import logging
from datetime import datetime, timedelta

import discord

from services.errors import ChannelUnavailable
from services.interfaces import IAnnouncementChannel, MessageRef, Notice
from utils.embeds import build_notice_embed, mention_content
from utils.reaction_stream import ReactionEvent, ReactionStream

logger = logging.getLogger("scrim_bot.infrastructure.discord_channel")

EVENT_DURATION = timedelta(hours=2)


class DiscordAnnouncementChannel(IAnnouncementChannel):
    def __init__(
        self,
        bot: discord.Client,
        channel_id: int,
        guild_id: int | None = None,
        voice_channel_id: int | None = None,
    ):
        self.bot = bot
        self.channel_id = channel_id
        self.guild_id = guild_id
        self.voice_channel_id = voice_channel_id
        self._streams: dict[int, list[ReactionStream]] = {}

    async def _get_channel(self, channel_id: int):
        channel = self.bot.get_channel(channel_id)
        if channel is not None:
            return channel
        try:
            return await self.bot.fetch_channel(channel_id)
        except discord.HTTPException as exc:
            raise ChannelUnavailable(f"Cannot reach channel {channel_id}: {exc}") from exc

    async def _fetch_message(self, ref: MessageRef) -> discord.Message:
        channel = await self._get_channel(ref.channel_id)
        try:
            return await channel.fetch_message(ref.message_id)
        except discord.HTTPException as exc:
            raise ChannelUnavailable(f"Cannot fetch message {ref.message_id}: {exc}") from exc

    def _get_guild(self) -> discord.Guild:
        guild = self.bot.get_guild(self.guild_id) if self.guild_id else None
        if guild is None:
            raise ChannelUnavailable(f"Guild {self.guild_id} is not available")
        return guild

    async def post_message(self, notice: Notice) -> MessageRef:
        channel = await self._get_channel(self.channel_id)
        try:
            message = await channel.send(content=mention_content(notice), embed=build_notice_embed(notice))
        except discord.HTTPException as exc:
            raise ChannelUnavailable(f"Failed to send {notice.kind.value} notice: {exc}") from exc
        return MessageRef(channel_id=channel.id, message_id=message.id)

    async def add_reaction(self, ref: MessageRef, symbol: str) -> None:
        message = await self._fetch_message(ref)
        try:
            await message.add_reaction(symbol)
        except discord.HTTPException as exc:
            raise ChannelUnavailable(f"Failed to add {symbol} to {ref.message_id}: {exc}") from exc

    async def remove_reaction(self, ref: MessageRef, symbol: str, user_id: int) -> None:
        message = await self._fetch_message(ref)
        try:
            await message.remove_reaction(symbol, discord.Object(id=user_id))
        except discord.HTTPException as exc:
            raise ChannelUnavailable(f"Failed to remove {symbol} from {user_id}: {exc}") from exc

    def observe_reactions(self, ref: MessageRef) -> ReactionStream:
        stream = ReactionStream(ref.message_id, on_close=self._forget_stream)
        self._streams.setdefault(ref.message_id, []).append(stream)
        return stream

    def _forget_stream(self, stream: ReactionStream) -> None:
        streams = self._streams.get(stream.message_id, [])
        if stream in streams:
            streams.remove(stream)
        if not streams:
            self._streams.pop(stream.message_id, None)

    def dispatch_reaction(self, payload: discord.RawReactionActionEvent, added: bool) -> int:
        """
        Forward a raw reaction event to every stream watching its message.

        Returns:
            Number of streams the event was delivered to
        """
        if self.bot.user is not None and payload.user_id == self.bot.user.id:
            return 0
        streams = self._streams.get(payload.message_id)
        if not streams:
            return 0
        member = getattr(payload, "member", None)
        event = ReactionEvent(
            symbol=str(payload.emoji),
            user_id=payload.user_id,
            added=added,
            display_name=member.display_name if member is not None else None,
        )
        return sum(1 for stream in list(streams) if stream.push(event))

    async def current_reactors(self, ref: MessageRef, symbol: str) -> list[int]:
        message = await self._fetch_message(ref)
        for reaction in message.reactions:
            if str(reaction.emoji) == symbol:
                try:
                    return [user.id async for user in reaction.users() if not user.bot]
                except discord.HTTPException as exc:
                    raise ChannelUnavailable(f"Failed to list {symbol} reactors: {exc}") from exc
        return []

    async def create_scheduled_event(self, name: str, start_time: datetime, description: str) -> int | None:
        guild = self._get_guild()
        voice = guild.get_channel(self.voice_channel_id) if self.voice_channel_id else None
        try:
            if voice is not None:
                event = await guild.create_scheduled_event(
                    name=name,
                    start_time=start_time,
                    channel=voice,
                    description=description,
                    privacy_level=discord.PrivacyLevel.guild_only,
                )
            else:
                event = await guild.create_scheduled_event(
                    name=name,
                    start_time=start_time,
                    end_time=start_time + EVENT_DURATION,
                    entity_type=discord.EntityType.external,
                    location="In-game",
                    description=description,
                    privacy_level=discord.PrivacyLevel.guild_only,
                )
        except discord.HTTPException as exc:
            raise ChannelUnavailable(f"Failed to create scheduled event '{name}': {exc}") from exc
        logger.info(f"Created scheduled event {event.id} '{name}'")
        return event.id

    async def delete_scheduled_event(self, event_id: int) -> None:
        guild = self._get_guild()
        try:
            event = await guild.fetch_scheduled_event(event_id)
            await event.delete()
        except discord.NotFound:
            logger.info(f"Scheduled event {event_id} already gone")
            return
        except discord.HTTPException as exc:
            raise ChannelUnavailable(f"Failed to delete scheduled event {event_id}: {exc}") from exc
        logger.info(f"Deleted scheduled event {event_id}")
