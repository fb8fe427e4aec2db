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
"""Local permission resolution used to fail fast before making requests.

Results are advisory; the server remains the authority and may still reject a
call if the cache is stale.
"""

from __future__ import annotations

__all__: typing.Sequence[str] = ["PermissionEvaluator"]

import typing

import hikari

from . import errors
from . import models

if typing.TYPE_CHECKING:
    from . import cache as cache_


def _rank(role: models.Role, /) -> typing.Tuple[int, int]:
    return (role.position, int(role.id) if role.id.isdigit() else 0)


def _apply_overwrite(
    permissions: hikari.Permissions, overwrite: typing.Optional[models.PermissionOverwrite], /
) -> hikari.Permissions:
    if overwrite is None:
        return permissions

    return (permissions & ~overwrite.deny) | overwrite.allow


class PermissionEvaluator:
    """Computes a member's effective permissions from a guild cache.

    Parameters
    ----------
    cache : guildkit.cache.GuildCache
        The cache of the guild permissions are being evaluated for.
    """

    __slots__: typing.Sequence[str] = ("_cache",)

    def __init__(self, cache: cache_.GuildCache, /) -> None:
        self._cache = cache

    def _ranked_roles(self, user_id: str, /) -> typing.List[models.Role]:
        roles: typing.List[models.Role] = []
        if everyone := self._cache.get_role(self._cache.id):
            roles.append(everyone)

        if member := self._cache.get_member(user_id):
            for role_id in member.role_ids:
                if role_id != self._cache.id and (role := self._cache.get_role(role_id)):
                    roles.append(role)

        roles.sort(key=_rank)
        return roles

    def compute(self, user_id: str, /, channel_id: typing.Optional[str] = None) -> hikari.Permissions:
        """Compute a user's effective permissions.

        Parameters
        ----------
        user_id : str
            ID of the user to compute permissions for.
        channel_id : typing.Optional[str]
            ID of a channel to apply the permission overwrites of.

        Returns
        -------
        hikari.Permissions
            The guild owner and members with `ADMINISTRATOR` get every
            permission. Users who aren't cached members only get the
            `@everyone` role's permissions.
        """
        if user_id == self._cache.properties.owner_id:
            return hikari.Permissions.all_permissions()

        roles = self._ranked_roles(user_id)
        permissions = hikari.Permissions.NONE
        for role in roles:
            permissions |= role.permissions

        if permissions & hikari.Permissions.ADMINISTRATOR:
            return hikari.Permissions.all_permissions()

        if channel_id is None or (channel := self._cache.get_any_channel(channel_id)) is None:
            return permissions

        overwrites = channel.permission_overwrites
        permissions = _apply_overwrite(permissions, overwrites.get(self._cache.id))
        for role in roles:
            if not role.is_everyone:
                permissions = _apply_overwrite(permissions, overwrites.get(role.id))

        member_overwrite = overwrites.get(user_id)
        if member_overwrite is not None and member_overwrite.type is models.OverwriteType.MEMBER:
            permissions = _apply_overwrite(permissions, member_overwrite)

        return permissions

    def has(
        self, user_id: str, required: hikari.Permissions, /, channel_id: typing.Optional[str] = None
    ) -> bool:
        return (self.compute(user_id, channel_id=channel_id) & required) == required

    def require(
        self, user_id: str, required: hikari.Permissions, /, channel_id: typing.Optional[str] = None
    ) -> None:
        """Assert that a user holds the required permissions.

        Raises
        ------
        guildkit.errors.PermissionDenied
            If any of the required permissions are missing.
        """
        missing = required & ~self.compute(user_id, channel_id=channel_id)
        if missing:
            raise errors.PermissionDenied(f"Missing permissions {missing!r}", missing=missing)
