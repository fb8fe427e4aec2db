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
"""Conversion between wire payloads and guildkit's models."""

from __future__ import annotations

__all__: typing.Sequence[str] = [
    "build_ban_payload",
    "build_guild_edit_payload",
    "deserialize_channel",
    "deserialize_guild_properties",
    "deserialize_member",
    "deserialize_role",
    "deserialize_user",
    "image_to_data_uri",
]

import base64
import logging
import typing

import hikari
from hikari import undefined

from . import models

if typing.TYPE_CHECKING:
    _ObjectT = typing.Mapping[str, typing.Any]

_LOGGER: typing.Final[logging.Logger] = logging.getLogger("hikari.guildkit.marshalling")

_IMAGE_SIGNATURES: typing.Final[typing.Sequence[typing.Tuple[bytes, str]]] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


def _str_or_none(value: typing.Any, /) -> typing.Optional[str]:
    return None if value is None else str(value)


def deserialize_user(payload: _ObjectT, /) -> models.User:
    return models.User(
        id=str(payload["id"]),
        username=payload["username"],
        discriminator=payload.get("discriminator", "0"),
        avatar=payload.get("avatar"),
        is_bot=payload.get("bot", False),
    )


def deserialize_member(payload: _ObjectT, /) -> models.Member:
    return models.Member(
        user=deserialize_user(payload["user"]),
        role_ids=[str(role_id) for role_id in payload.get("roles", ())],
        nickname=payload.get("nick"),
    )


def deserialize_role(payload: _ObjectT, /, guild_id: str) -> models.Role:
    return models.Role(
        id=str(payload["id"]),
        guild_id=guild_id,
        name=payload["name"],
        permissions=hikari.Permissions(int(payload.get("permissions", 0))),
        position=int(payload.get("position", 0)),
        color=int(payload.get("color", 0)),
        is_hoisted=payload.get("hoist", False),
        is_mentionable=payload.get("mentionable", False),
        is_managed=payload.get("managed", False),
    )


def _deserialize_overwrite(payload: _ObjectT, /) -> models.PermissionOverwrite:
    return models.PermissionOverwrite(
        id=str(payload["id"]),
        type=models.OverwriteType(int(payload["type"])),
        allow=hikari.Permissions(int(payload.get("allow", 0))),
        deny=hikari.Permissions(int(payload.get("deny", 0))),
    )


def deserialize_channel(payload: _ObjectT, /, guild_id: str) -> typing.Optional[models.Channel]:
    """Deserialize a guild channel payload.

    Returns
    -------
    typing.Optional[guildkit.models.Channel]
        The channel, this will be a `guildkit.models.VoiceChannel` for voice
        channels and `builtins.None` for channel types this library doesn't
        model (e.g. categories and threads).
    """
    channel_type = int(payload["type"])
    overwrites = {
        overwrite.id: overwrite
        for overwrite in map(_deserialize_overwrite, payload.get("permission_overwrites", ()))
    }
    if channel_type == models.ChannelType.GUILD_VOICE:
        return models.VoiceChannel(
            id=str(payload["id"]),
            guild_id=guild_id,
            name=payload["name"],
            position=int(payload.get("position", 0)),
            permission_overwrites=overwrites,
            bitrate=int(payload.get("bitrate", 64000)),
            user_limit=int(payload.get("user_limit", 0)),
        )

    if channel_type == models.ChannelType.GUILD_TEXT:
        return models.Channel(
            id=str(payload["id"]),
            guild_id=guild_id,
            name=payload["name"],
            position=int(payload.get("position", 0)),
            topic=payload.get("topic"),
            permission_overwrites=overwrites,
        )

    _LOGGER.debug("ignoring channel %s of unsupported type %s", payload.get("id"), channel_type)
    return None


def deserialize_guild_properties(payload: _ObjectT, /) -> models.GuildProperties:
    return models.GuildProperties(
        id=str(payload["id"]),
        name=payload["name"],
        owner_id=str(payload["owner_id"]),
        icon=payload.get("icon"),
        afk_channel_id=_str_or_none(payload.get("afk_channel_id")),
        afk_timeout=int(payload.get("afk_timeout", 0)),
        region=payload.get("region"),
    )


def image_to_data_uri(data: bytes, /) -> str:
    """Encode raw image bytes as a data URI.

    Raises
    ------
    ValueError
        If the image isn't a PNG, JPEG or GIF.
    """
    for signature, mimetype in _IMAGE_SIGNATURES:
        if data.startswith(signature):
            return f"data:{mimetype};base64,{base64.b64encode(data).decode()}"

    raise ValueError("Unsupported image format, expected PNG, JPEG or GIF")


def build_guild_edit_payload(
    *,
    name: undefined.UndefinedOr[str] = undefined.UNDEFINED,
    region: undefined.UndefinedNoneOr[str] = undefined.UNDEFINED,
    icon: undefined.UndefinedNoneOr[typing.Union[bytes, str]] = undefined.UNDEFINED,
    afk_channel_id: undefined.UndefinedNoneOr[str] = undefined.UNDEFINED,
    afk_timeout: undefined.UndefinedOr[int] = undefined.UNDEFINED,
) -> typing.Dict[str, typing.Any]:
    """Build a partial guild edit body, leaving out every undefined field."""
    body: typing.Dict[str, typing.Any] = {}
    if name is not undefined.UNDEFINED:
        body["name"] = name

    if region is not undefined.UNDEFINED:
        body["region"] = region

    if icon is not undefined.UNDEFINED:
        body["icon"] = image_to_data_uri(icon) if isinstance(icon, bytes) else icon

    if afk_channel_id is not undefined.UNDEFINED:
        body["afk_channel_id"] = afk_channel_id

    if afk_timeout is not undefined.UNDEFINED:
        body["afk_timeout"] = afk_timeout

    return body


def build_ban_payload(ban: models.Ban, /) -> typing.Dict[str, typing.Any]:
    return {"delete_message_days": ban.delete_message_days}
