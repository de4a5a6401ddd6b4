"""
Identity registry backed by guild roles.

A member's external game id is the number in their identity role
(``id-<number>``). Their affiliation is the team named by a ``<Team>-Main``
role when present, otherwise the first plain team role they hold.
"""

import logging

import discord

from services.interfaces import IIdentityRegistry

logger = logging.getLogger("scrim_bot.infrastructure.identity")


def external_id_from_roles(role_names: list[str], prefix: str = "id-") -> int | None:
    for name in role_names:
        if name.startswith(prefix):
            try:
                return int(name[len(prefix):])
            except ValueError:
                logger.warning(f"Ignoring malformed identity role '{name}'")
    return None


def affiliation_from_roles(
    role_names: list[str], affiliations: list[str], main_suffix: str = "-Main"
) -> str | None:
    for name in role_names:
        if name.endswith(main_suffix):
            base = name[: -len(main_suffix)]
            if base in affiliations:
                return base
    for team in affiliations:
        if team in role_names:
            return team
    return None


class DiscordRoleIdentityRegistry(IIdentityRegistry):
    def __init__(
        self,
        bot: discord.Client,
        guild_id: int | None,
        id_role_prefix: str = "id-",
        affiliations: list[str] | None = None,
        main_suffix: str = "-Main",
    ):
        self.bot = bot
        self.guild_id = guild_id
        self.id_role_prefix = id_role_prefix
        self.affiliations = affiliations or ["A-Team", "B-Team", "C-Team"]
        self.main_suffix = main_suffix

    async def _role_names(self, user_id: int) -> list[str] | None:
        guild = self.bot.get_guild(self.guild_id) if self.guild_id else None
        if guild is None:
            logger.warning(f"Guild {self.guild_id} unavailable; cannot resolve {user_id}")
            return None
        member = guild.get_member(user_id)
        if member is None:
            try:
                member = await guild.fetch_member(user_id)
            except discord.HTTPException as exc:
                logger.warning(f"Could not fetch member {user_id}: {exc}")
                return None
        return [role.name for role in member.roles]

    async def resolve_external_id(self, user_id: int) -> int | None:
        names = await self._role_names(user_id)
        if names is None:
            return None
        return external_id_from_roles(names, self.id_role_prefix)

    async def affiliation_of(self, user_id: int) -> str | None:
        names = await self._role_names(user_id)
        if names is None:
            return None
        return affiliation_from_roles(names, self.affiliations, self.main_suffix)
