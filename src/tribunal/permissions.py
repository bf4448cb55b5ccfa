from __future__ import annotations

import logging
from typing import Iterable, Optional

import discord

from .config import Settings

log = logging.getLogger("tribunal.permissions")


class StaticPermissionOracle:
    """Privileges from fixed id lists. Admins are always reviewers."""

    def __init__(self, reviewer_ids: Iterable[int] = (), admin_ids: Iterable[int] = ()) -> None:
        self.admin_ids = frozenset(int(i) for i in admin_ids)
        self.reviewer_ids = frozenset(int(i) for i in reviewer_ids) | self.admin_ids

    @classmethod
    def from_settings(cls, settings: Settings) -> StaticPermissionOracle:
        return cls(settings.reviewer_ids, settings.admin_ids)

    def is_reviewer(self, user_id: int) -> bool:
        return user_id in self.reviewer_ids

    def is_admin(self, user_id: int) -> bool:
        return user_id in self.admin_ids


class GuildPermissionOracle:
    """Privileges from a Discord guild's roles and permissions.

    Admin: administrator permission, guild owner, or the admin role.
    Reviewer: admin, or any of the reviewer roles. Role names match
    case-insensitively.
    """

    def __init__(
        self,
        guild: discord.Guild,
        reviewer_role_names: Iterable[str] = ("Reviewer", "Moderator"),
        admin_role_name: str = "Admin",
    ) -> None:
        self.guild = guild
        self.reviewer_role_names = frozenset(n.strip().lower() for n in reviewer_role_names if n.strip())
        self.admin_role_name = admin_role_name.strip().lower()

    @classmethod
    def from_settings(cls, guild: discord.Guild, settings: Settings) -> GuildPermissionOracle:
        return cls(guild, settings.reviewer_role_names, settings.admin_role_name)

    def _member(self, user_id: int) -> Optional[discord.Member]:
        member = self.guild.get_member(user_id)
        if member is None:
            log.debug("User %s is not a member of guild %s", user_id, self.guild.id)
        return member

    def _role_names(self, member: discord.Member) -> set[str]:
        return {role.name.lower() for role in member.roles}

    def is_admin(self, user_id: int) -> bool:
        if self.guild.owner_id == user_id:
            return True
        member = self._member(user_id)
        if member is None:
            return False
        if member.guild_permissions.administrator:
            return True
        return self.admin_role_name in self._role_names(member)

    def is_reviewer(self, user_id: int) -> bool:
        if self.is_admin(user_id):
            return True
        member = self._member(user_id)
        if member is None:
            return False
        return bool(self.reviewer_role_names & self._role_names(member))
