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
"""Immutable records for the entities owned by a guild."""

from __future__ import annotations

__all__: typing.Sequence[str] = [
    "Ban",
    "Channel",
    "ChannelType",
    "EntityKind",
    "GuildProperties",
    "Member",
    "OverwriteType",
    "PermissionOverwrite",
    "Role",
    "User",
    "VoiceChannel",
]

import enum
import typing

import attrs
import hikari

CDN_URL: typing.Final[str] = "https://cdn.discordapp.com"
"""Base URL used to build asset links."""


class EntityKind(str, enum.Enum):
    """The kinds of entity which push events can upsert or remove."""

    CHANNEL = "channel"
    VOICE_CHANNEL = "voice_channel"
    ROLE = "role"
    MEMBER = "member"


class ChannelType(enum.IntEnum):
    """The channel types this library models."""

    GUILD_TEXT = 0
    GUILD_VOICE = 2


class OverwriteType(enum.IntEnum):
    """What a channel permission overwrite targets."""

    ROLE = 0
    MEMBER = 1


@attrs.frozen(kw_only=True)
class User:
    """A user account; shared between every guild they're a member of."""

    id: str
    username: str
    discriminator: str = "0"
    avatar: typing.Optional[str] = None
    is_bot: bool = False

    def __str__(self) -> str:
        if self.discriminator in ("0", "0000"):
            return self.username

        return f"{self.username}#{self.discriminator}"


@attrs.frozen(kw_only=True)
class Member:
    """A user's membership of a guild."""

    user: User
    role_ids: typing.Tuple[str, ...] = attrs.field(default=(), converter=tuple)
    nickname: typing.Optional[str] = None

    @property
    def id(self) -> str:
        return self.user.id


@attrs.frozen(kw_only=True)
class PermissionOverwrite:
    """A channel scoped allow/deny exception for a role or member."""

    id: str
    type: OverwriteType
    allow: hikari.Permissions = hikari.Permissions.NONE
    deny: hikari.Permissions = hikari.Permissions.NONE


@attrs.frozen(kw_only=True)
class Role:
    """A named permission bundle.

    `Role.position` is the server assigned rank; a higher position takes
    precedence when channel overwrites conflict.
    """

    id: str
    guild_id: str
    name: str
    permissions: hikari.Permissions = hikari.Permissions.NONE
    position: int = 0
    color: int = 0
    is_hoisted: bool = False
    is_mentionable: bool = False
    is_managed: bool = False

    @property
    def is_everyone(self) -> bool:
        """Whether this is the guild's implicit `@everyone` role."""
        return self.id == self.guild_id


@attrs.frozen(kw_only=True)
class Channel:
    """A text channel within a guild."""

    id: str
    guild_id: str
    name: str
    position: int = 0
    topic: typing.Optional[str] = None
    permission_overwrites: typing.Mapping[str, PermissionOverwrite] = attrs.field(factory=dict)
    type: ChannelType = ChannelType.GUILD_TEXT


@attrs.frozen(kw_only=True)
class VoiceChannel(Channel):
    """A voice channel within a guild."""

    bitrate: int = 64000
    user_limit: int = 0
    type: ChannelType = ChannelType.GUILD_VOICE


@attrs.frozen(kw_only=True)
class GuildProperties:
    """The guild's own top-level attributes."""

    id: str
    name: str
    owner_id: str
    icon: typing.Optional[str] = None
    afk_channel_id: typing.Optional[str] = None
    afk_timeout: int = attrs.field(default=0, validator=attrs.validators.ge(0))
    region: typing.Optional[str] = None

    @property
    def icon_url(self) -> typing.Optional[str]:
        """Direct link to the guild's icon, if it has one."""
        if self.icon is None:
            return None

        ext = "gif" if self.icon.startswith("a_") else "png"
        return f"{CDN_URL}/icons/{self.id}/{self.icon}.{ext}"


@attrs.frozen(kw_only=True)
class Ban:
    """A ban request; this is never stored locally."""

    guild_id: str
    user_id: str
    delete_message_days: int = 0
