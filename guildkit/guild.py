# -*- coding: utf-8 -*-
# cython: language_level=3
# BSD 3-Clause License
#
# Copyright (c) 2020-2022, Faster Speeding
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# * Redistributions of source code must retain the above copyright notice, this
#   list of conditions and the following disclaimer.
#
# * Redistributions in binary form must reproduce the above copyright notice,
#   this list of conditions and the following disclaimer in the documentation
#   and/or other materials provided with the distribution.
#
# * Neither the name of the copyright holder nor the names of its
#   contributors may be used to endorse or promote products derived from
#   this software without specific prior written permission.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE
# DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE LIABLE
# FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL
# DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS OR
# SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER
# CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY,
# OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE
# OF THIS SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
"""The guild facade: cached reads plus permission checked remote mutations."""

from __future__ import annotations

__all__: typing.Sequence[str] = ["MAX_BAN_DELETE_DAYS", "MAX_NAME_LENGTH", "MIN_NAME_LENGTH", "Guild"]

import asyncio
import logging
import typing
import weakref

import hikari
from hikari import undefined

from . import errors
from . import marshalling
from . import models
from . import permissions as permissions_
from . import transport

if typing.TYPE_CHECKING:
    from . import cache as cache_
    from . import client as client_
    from . import rate_limits

_LOGGER: typing.Final[logging.Logger] = logging.getLogger("hikari.guildkit.guild")

MIN_NAME_LENGTH: typing.Final[int] = 2
"""Shortest name a guild or channel may have."""
MAX_NAME_LENGTH: typing.Final[int] = 100
"""Longest name a guild or channel may have."""
MAX_BAN_DELETE_DAYS: typing.Final[int] = 7
"""The most days of message history a ban may delete."""


def _is_int(value: typing.Any, /) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_name(name: typing.Any, /, *, kind: str) -> str:
    if not isinstance(name, str) or not MIN_NAME_LENGTH <= len(name) <= MAX_NAME_LENGTH:
        raise errors.InvalidArgument(
            f"{kind} name must be between {MIN_NAME_LENGTH} and {MAX_NAME_LENGTH} characters long"
        )

    return name


class Guild:
    """A locally cached guild and the operations which mutate it remotely.

    Read accessors are synchronous and only ever consult the cache; "get by ID"
    accessors return `builtins.None` for unknown entities. Mutating operations
    validate their arguments, check the current user's cached permissions,
    pass through the session's rate-limit gate and only update the cache once
    the server has acknowledged the change.

    .. note::
        Instances are created and owned by `guildkit.client.GuildClient`.

    Parameters
    ----------
    client : guildkit.client.GuildClient
        The session this guild's requests are made through.
    cache : guildkit.cache.GuildCache
        The guild's entity cache.
    """

    __slots__: typing.Sequence[str] = ("_cache", "_client", "_member_locks", "_permissions")

    def __init__(self, client: client_.GuildClient, cache: cache_.GuildCache, /) -> None:
        self._cache = cache
        self._client = client
        # Entries only live while a call for that member holds or waits on the lock.
        self._member_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        self._permissions = permissions_.PermissionEvaluator(cache)

    def __repr__(self) -> str:
        return f"Guild(id={self.id!r}, name={self.name!r})"

    @property
    def cache(self) -> cache_.GuildCache:
        return self._cache

    @property
    def permissions(self) -> permissions_.PermissionEvaluator:
        return self._permissions

    @property
    def id(self) -> str:
        return self._cache.id

    @property
    def name(self) -> str:
        return self._cache.properties.name

    @property
    def icon(self) -> typing.Optional[str]:
        return self._cache.properties.icon

    @property
    def icon_url(self) -> typing.Optional[str]:
        return self._cache.properties.icon_url

    @property
    def owner_id(self) -> str:
        return self._cache.properties.owner_id

    @property
    def afk_channel_id(self) -> typing.Optional[str]:
        return self._cache.properties.afk_channel_id

    @property
    def afk_timeout(self) -> int:
        """Seconds before an idle member is moved to the AFK channel."""
        return self._cache.properties.afk_timeout

    @property
    def region(self) -> typing.Optional[str]:
        return self._cache.properties.region

    def get_owner(self) -> models.User:
        """Get the guild owner's user.

        Raises
        ------
        guildkit.errors.NotFound
            If the owner isn't cached as a member.
        """
        if user := self._cache.get_user(self.owner_id):
            return user

        raise errors.NotFound(f"Owner {self.owner_id} of guild {self.id} isn't cached")

    def get_channels(self) -> typing.Sequence[models.Channel]:
        return self._cache.get_channels()

    def get_channel_by_id(self, channel_id: str, /) -> typing.Optional[models.Channel]:
        return self._cache.get_channel(channel_id)

    def get_voice_channels(self) -> typing.Sequence[models.VoiceChannel]:
        return self._cache.get_voice_channels()

    def get_voice_channel_for_id(self, channel_id: str, /) -> typing.Optional[models.VoiceChannel]:
        return self._cache.get_voice_channel(channel_id)

    def get_afk_channel(self) -> typing.Optional[models.VoiceChannel]:
        if self.afk_channel_id is None:
            return None

        return self._cache.get_voice_channel(self.afk_channel_id)

    def get_users(self) -> typing.Sequence[models.User]:
        return self._cache.get_users()

    def get_user_by_id(self, user_id: str, /) -> typing.Optional[models.User]:
        return self._cache.get_user(user_id)

    def get_member(self, user_id: str, /) -> typing.Optional[models.Member]:
        return self._cache.get_member(user_id)

    def get_roles(self) -> typing.Sequence[models.Role]:
        return self._cache.get_roles()

    def get_role_for_id(self, role_id: str, /) -> typing.Optional[models.Role]:
        return self._cache.get_role(role_id)

    def get_permissions(self, user_id: str, /, channel_id: typing.Optional[str] = None) -> hikari.Permissions:
        return self._permissions.compute(user_id, channel_id=channel_id)

    async def _require(self, required: hikari.Permissions, /) -> None:
        own_id = await self._client.fetch_own_id()
        self._permissions.require(own_id, required)

    async def _request(
        self,
        route: transport.Route,
        body: typing.Optional[typing.Any] = None,
        /,
        *,
        mode: typing.Optional[rate_limits.GateMode] = None,
        **params: typing.Any,
    ) -> typing.Any:
        return await self._client.request(route, body, guild_id=self.id, mode=mode, **params)

    async def create_role(self, *, mode: typing.Optional[rate_limits.GateMode] = None) -> models.Role:
        """Create a new role with the server's defaults.

        Other Parameters
        ----------------
        mode : typing.Optional[guildkit.rate_limits.GateMode]
            Override of the gate mode for this call.

        Returns
        -------
        guildkit.models.Role
            The created role.

        Raises
        ------
        guildkit.errors.PermissionDenied
            If the current user lacks `MANAGE_ROLES`.
        guildkit.errors.RateLimited
            If the gate won't admit the call.
        """
        await self._require(hikari.Permissions.MANAGE_ROLES)
        payload = await self._request(transport.POST_GUILD_ROLES, {}, mode=mode)
        role = marshalling.deserialize_role(payload, guild_id=self.id)
        self._cache.set_role(role)
        return role

    async def get_banned_users(
        self, *, mode: typing.Optional[rate_limits.GateMode] = None
    ) -> typing.Sequence[models.User]:
        """Fetch the users banned from this guild.

        There's no local permission check here; a `guildkit.errors.PermissionDenied`
        raised by this comes from the server.
        """
        payload = await self._request(transport.GET_GUILD_BANS, mode=mode)
        return tuple(marshalling.deserialize_user(entry["user"]) for entry in payload or ())

    async def ban_user(
        self,
        user_id: str,
        /,
        delete_message_days: int = 0,
        *,
        mode: typing.Optional[rate_limits.GateMode] = None,
    ) -> None:
        """Ban a user from this guild.

        Parameters
        ----------
        user_id : str
            ID of the user to ban; they don't have to be a member.
        delete_message_days : int
            How many days of the user's message history to delete, from 0 to 7.

        Raises
        ------
        guildkit.errors.InvalidArgument
            If `delete_message_days` is out of range.
        guildkit.errors.PermissionDenied
            If the current user lacks `BAN_MEMBERS`.
        guildkit.errors.RateLimited
            If the gate won't admit the call.
        """
        if not _is_int(delete_message_days) or not 0 <= delete_message_days <= MAX_BAN_DELETE_DAYS:
            raise errors.InvalidArgument(
                f"delete_message_days must be an integer between 0 and {MAX_BAN_DELETE_DAYS}"
            )

        ban = models.Ban(guild_id=self.id, user_id=user_id, delete_message_days=delete_message_days)
        await self._require(hikari.Permissions.BAN_MEMBERS)
        await self._request(transport.PUT_GUILD_BAN, marshalling.build_ban_payload(ban), mode=mode, user_id=user_id)
        self._cache.delete_member(user_id)

    async def pardon_user(self, user_id: str, /, *, mode: typing.Optional[rate_limits.GateMode] = None) -> None:
        """Remove a user's ban; requires `BAN_MEMBERS`."""
        await self._require(hikari.Permissions.BAN_MEMBERS)
        await self._request(transport.DELETE_GUILD_BAN, mode=mode, user_id=user_id)

    async def kick_user(self, user_id: str, /, *, mode: typing.Optional[rate_limits.GateMode] = None) -> None:
        """Kick a member from this guild; requires `KICK_MEMBERS`."""
        await self._require(hikari.Permissions.KICK_MEMBERS)
        await self._request(transport.DELETE_GUILD_MEMBER, mode=mode, user_id=user_id)
        self._cache.delete_member(user_id)

    async def edit_user_roles(
        self,
        user_id: str,
        role_ids: typing.Iterable[str],
        /,
        *,
        mode: typing.Optional[rate_limits.GateMode] = None,
    ) -> models.Member:
        """Replace the full set of roles a member has.

        Calls for the same member are run one at a time; beyond that the
        server applies the last write it receives.

        Parameters
        ----------
        user_id : str
            ID of the member to edit.
        role_ids : typing.Iterable[str]
            IDs of every role the member should have.

        Returns
        -------
        guildkit.models.Member
            The member as cached after the edit.

        Raises
        ------
        guildkit.errors.InvalidArgument
            If any of the role IDs aren't roles in this guild; no change is made.
        guildkit.errors.NotFound
            If the member isn't cached.
        guildkit.errors.PermissionDenied
            If the current user lacks `MANAGE_ROLES`.
        guildkit.errors.RateLimited
            If the gate won't admit the call.
        """
        if isinstance(role_ids, str):
            raise errors.InvalidArgument("role_ids must be an iterable of role IDs, not a single string")

        role_ids = tuple(dict.fromkeys(role_ids))
        if unknown := [role_id for role_id in role_ids if self._cache.get_role(role_id) is None]:
            raise errors.InvalidArgument(f"Unknown role IDs for guild {self.id}: {', '.join(unknown)}")

        if self._cache.get_member(user_id) is None:
            raise errors.NotFound(f"Member {user_id} of guild {self.id} isn't cached")

        await self._require(hikari.Permissions.MANAGE_ROLES)
        lock = self._member_locks.get(user_id)
        if lock is None:
            lock = self._member_locks[user_id] = asyncio.Lock()

        async with lock:
            payload = await self._request(
                transport.PATCH_GUILD_MEMBER, {"roles": list(role_ids)}, mode=mode, user_id=user_id
            )
            if isinstance(payload, dict) and "roles" in payload:
                role_ids = tuple(str(role_id) for role_id in payload["roles"])

            member = self._cache.set_member_roles(user_id, role_ids)

        if member is None:
            # The member was removed by an event while the request was in flight.
            raise errors.NotFound(f"Member {user_id} of guild {self.id} is no longer cached")

        return member

    async def edit(
        self,
        *,
        name: undefined.UndefinedOr[str] = undefined.UNDEFINED,
        region: undefined.UndefinedNoneOr[str] = undefined.UNDEFINED,
        icon: undefined.UndefinedNoneOr[typing.Union[bytes, str]] = undefined.UNDEFINED,
        afk_channel_id: undefined.UndefinedNoneOr[str] = undefined.UNDEFINED,
        afk_timeout: undefined.UndefinedOr[int] = undefined.UNDEFINED,
        mode: typing.Optional[rate_limits.GateMode] = None,
    ) -> None:
        """Edit the guild.

        Every field left as `hikari.UNDEFINED` is left unchanged and `builtins.None`
        clears a nullable field. If every field is undefined this returns without
        making a request.

        Other Parameters
        ----------------
        name : hikari.UndefinedOr[str]
            The guild's new name.
        region : hikari.UndefinedNoneOr[str]
            ID of the guild's new voice region.
        icon : hikari.UndefinedNoneOr[typing.Union[bytes, str]]
            The new icon as raw PNG, JPEG or GIF data or a data URI.
        afk_channel_id : hikari.UndefinedNoneOr[str]
            ID of the voice channel idle members should be moved to.
        afk_timeout : hikari.UndefinedOr[int]
            Seconds before idle members are moved.

        Raises
        ------
        guildkit.errors.InvalidArgument
            If a field fails validation.
        guildkit.errors.PermissionDenied
            If the current user lacks `MANAGE_GUILD`.
        guildkit.errors.RateLimited
            If the gate won't admit the call.
        """
        if name is not undefined.UNDEFINED:
            _validate_name(name, kind="Guild")

        if afk_timeout is not undefined.UNDEFINED and (not _is_int(afk_timeout) or afk_timeout < 0):
            raise errors.InvalidArgument("afk_timeout must be a non-negative integer")

        if afk_channel_id not in (undefined.UNDEFINED, None) and self._cache.get_voice_channel(afk_channel_id) is None:
            raise errors.InvalidArgument(f"AFK channel {afk_channel_id} isn't a voice channel in guild {self.id}")

        try:
            body = marshalling.build_guild_edit_payload(
                name=name, region=region, icon=icon, afk_channel_id=afk_channel_id, afk_timeout=afk_timeout
            )

        except ValueError as exc:
            raise errors.InvalidArgument(str(exc), exception=exc) from None

        if not body:
            _LOGGER.debug("skipping edit of guild %s with no changes", self.id)
            return

        await self._require(hikari.Permissions.MANAGE_GUILD)
        payload = await self._request(transport.PATCH_GUILD, body, mode=mode)
        if isinstance(payload, dict) and "owner_id" in payload:
            self._cache.set_properties(marshalling.deserialize_guild_properties(payload))

        else:
            # Without the server's payload we can't know a new icon's hash; a cleared icon is still merged.
            if body.get("icon") is not None:
                del body["icon"]

            self._cache.update_properties(**body)

    async def delete_or_leave_guild(self, *, mode: typing.Optional[rate_limits.GateMode] = None) -> None:
        """Delete the guild if the current user owns it, otherwise leave it.

        A guild which is already gone counts as success.
        """
        own_id = await self._client.fetch_own_id()
        route = transport.DELETE_GUILD if own_id == self.owner_id else transport.DELETE_MY_GUILD
        try:
            await self._request(route, mode=mode)

        except errors.NotFound:
            _LOGGER.debug("guild %s was already deleted or left", self.id)

        self._cache.clear()
        self._client.delete_guild(self.id)

    async def _create_channel(
        self, name: str, channel_type: models.ChannelType, mode: typing.Optional[rate_limits.GateMode], /
    ) -> models.Channel:
        _validate_name(name, kind="Channel")
        await self._require(hikari.Permissions.MANAGE_CHANNELS)
        payload = await self._request(
            transport.POST_GUILD_CHANNELS, {"name": name, "type": int(channel_type)}, mode=mode
        )
        channel = marshalling.deserialize_channel(payload, guild_id=self.id)
        if channel is None:
            raise errors.RemoteFault(f"Server created a channel of unexpected type {payload.get('type')!r}")

        self._cache.set_channel(channel)
        return channel

    async def create_channel(
        self, name: str, /, *, mode: typing.Optional[rate_limits.GateMode] = None
    ) -> models.Channel:
        """Create a text channel.

        Parameters
        ----------
        name : str
            The channel's name, between 2 and 100 characters long.

        Raises
        ------
        guildkit.errors.InvalidArgument
            If the name's length is out of range.
        guildkit.errors.PermissionDenied
            If the current user lacks `MANAGE_CHANNELS`.
        guildkit.errors.RateLimited
            If the gate won't admit the call.
        """
        return await self._create_channel(name, models.ChannelType.GUILD_TEXT, mode)

    async def create_voice_channel(
        self, name: str, /, *, mode: typing.Optional[rate_limits.GateMode] = None
    ) -> models.VoiceChannel:
        """Create a voice channel; see `Guild.create_channel`."""
        channel = await self._create_channel(name, models.ChannelType.GUILD_VOICE, mode)
        assert isinstance(channel, models.VoiceChannel)
        return channel

    async def transfer_ownership(
        self, new_owner_id: str, /, *, mode: typing.Optional[rate_limits.GateMode] = None
    ) -> None:
        """Transfer ownership of the guild to another member.

        .. note::
            Concurrent transfers race at the server; callers should make sure
            only one is in flight per guild.

        Raises
        ------
        guildkit.errors.InvalidArgument
            If the new owner isn't a cached member.
        guildkit.errors.PermissionDenied
            If the current user isn't the cached owner.
        guildkit.errors.RateLimited
            If the gate won't admit the call.
        """
        if self._cache.get_member(new_owner_id) is None:
            raise errors.InvalidArgument(f"User {new_owner_id} isn't a member of guild {self.id}")

        own_id = await self._client.fetch_own_id()
        if own_id != self.owner_id:
            raise errors.PermissionDenied(f"Only the owner of guild {self.id} can transfer its ownership")

        payload = await self._request(transport.PATCH_GUILD, {"owner_id": new_owner_id}, mode=mode)
        if isinstance(payload, dict) and "owner_id" in payload:
            self._cache.set_properties(marshalling.deserialize_guild_properties(payload))

        else:
            self._cache.update_properties(owner_id=new_owner_id)
