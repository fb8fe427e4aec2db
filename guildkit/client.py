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
"""The session object which owns the shared rate-limit gate and guild facades."""

from __future__ import annotations

__all__: typing.Sequence[str] = ["GuildClient"]

import asyncio
import logging
import threading
import typing

import hikari

from . import cache as cache_
from . import errors
from . import guild as guild_
from . import marshalling
from . import models
from . import rate_limits
from . import transport as transport_
from . import utility

if typing.TYPE_CHECKING:
    import types

    _ObjectT = typing.Mapping[str, typing.Any]

_LOGGER: typing.Final[logging.Logger] = logging.getLogger("hikari.guildkit")
_ClientT = typing.TypeVar("_ClientT", bound="GuildClient")


def _channel_kind(channel: models.Channel, /) -> models.EntityKind:
    if isinstance(channel, models.VoiceChannel):
        return models.EntityKind.VOICE_CHANNEL

    return models.EntityKind.CHANNEL


class GuildClient:
    """An authenticated session's view of the guilds it's in.

    The client owns the process-wide `guildkit.rate_limits.RateLimitGate` for
    the session: it's created (or opened if one was passed) when the client is
    opened and closed along with it.

    Parameters
    ----------
    transport : guildkit.transport.Transport
        The transport requests should be made through.
    event_manager : typing.Optional[hikari.api.EventManager]
        The event manager to bind this client to.

        If provided then this client will keep its guild caches up to date
        from the raw gateway events it receives while open.

    Other Parameters
    ----------------
    own_id : typing.Optional[str]
        ID of the authenticated user. If left as `builtins.None` then this
        will be fetched the first time it's needed.
    gate : typing.Optional[guildkit.rate_limits.RateLimitGate]
        The rate-limit gate to use. If left as `builtins.None` then one is
        built from this client's config when it's opened.
    config : typing.Optional[typing.MutableMapping[str, typing.Any]]
        This client's settings. The gate is built from the keys
        `"gate_mode"`, `"gate_capacity"`, `"gate_window"`, `"gate_max_wait"`
        and `"gate_max_retries"`.
    event_managed : bool
        Whether the client should be started and stopped based on the attached
        event_manager's lifetime events.
    """

    __slots__: typing.Sequence[str] = (
        "__config",
        "__event_manager",
        "__gate",
        "__guilds",
        "__guilds_lock",
        "__own_id",
        "__own_id_lock",
        "__raw_listeners",
        "__started",
        "__transport",
    )

    def __init__(
        self,
        transport: transport_.Transport,
        event_manager: typing.Optional[hikari.api.EventManager] = None,
        *,
        own_id: typing.Optional[str] = None,
        gate: typing.Optional[rate_limits.RateLimitGate] = None,
        config: typing.Optional[typing.MutableMapping[str, typing.Any]] = None,
        event_managed: bool = False,
    ) -> None:
        self.__config = config if config is not None else {}
        self.__event_manager = event_manager
        self.__gate = gate
        self.__guilds: typing.Mapping[str, guild_.Guild] = {}
        self.__guilds_lock = threading.Lock()
        self.__own_id = own_id
        self.__own_id_lock = asyncio.Lock()
        self.__raw_listeners = utility.find_raw_listeners(self)
        self.__started = False
        self.__transport = transport

        if event_manager:
            if event_managed:
                event_manager.subscribe(hikari.StartingEvent, self.__on_starting_event)
                event_manager.subscribe(hikari.StoppingEvent, self.__on_stopping_event)

        elif event_managed:
            raise ValueError("Client cannot be event_managed when not attached to an event manager.")

    async def __on_starting_event(self, _: hikari.StartingEvent, /) -> None:
        await self.open()

    async def __on_stopping_event(self, _: hikari.StoppingEvent, /) -> None:
        await self.close()

    async def __aenter__(self: _ClientT) -> _ClientT:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: typing.Optional[typing.Type[BaseException]],
        exc_val: typing.Optional[BaseException],
        exc_tb: typing.Optional[types.TracebackType],
    ) -> None:
        await self.close()

    if not typing.TYPE_CHECKING:

        def __enter__(self) -> typing.NoReturn:
            # This is async only.
            cls = type(self)
            raise TypeError(f"{cls.__module__}.{cls.__qualname__} is async-only, did you mean 'async with'?") from None

        def __exit__(
            self,
            exc_type: typing.Optional[typing.Type[BaseException]],
            exc_val: typing.Optional[BaseException],
            exc_tb: typing.Optional[types.TracebackType],
        ) -> None:
            return None

    @property
    def config(self) -> typing.MutableMapping[str, typing.Any]:
        """This client's settings."""
        return self.__config

    @property
    def event_manager(self) -> typing.Optional[hikari.api.EventManager]:
        """The event manager this client is using for managing state."""
        return self.__event_manager

    @property
    def gate(self) -> typing.Optional[rate_limits.RateLimitGate]:
        """The session's rate-limit gate, if the client has been opened or one was passed."""
        return self.__gate

    @property
    def is_alive(self) -> bool:
        return self.__started

    @property
    def own_id(self) -> typing.Optional[str]:
        """ID of the authenticated user, if known yet."""
        return self.__own_id

    @property
    def transport(self) -> transport_.Transport:
        return self.__transport

    def with_gate_mode(self: _ClientT, mode: typing.Union[rate_limits.GateMode, str], /) -> _ClientT:
        """Set the default gate mode used when this client builds its gate.

        Raises
        ------
        ValueError
            If this is called while the client is active.
        """
        if self.__started:
            raise ValueError("Cannot change the gate mode while the client is active")

        self.__config["gate_mode"] = rate_limits.GateMode(mode)
        return self

    def __build_gate(self) -> rate_limits.RateLimitGate:
        config = self.__config
        return rate_limits.RateLimitGate(
            capacity=int(config.get("gate_capacity", rate_limits.DEFAULT_CAPACITY)),
            window=float(config.get("gate_window", rate_limits.DEFAULT_WINDOW)),
            mode=rate_limits.GateMode(config.get("gate_mode", rate_limits.GateMode.WAIT)),
            max_wait=float(config.get("gate_max_wait", rate_limits.DEFAULT_MAX_WAIT)),
            max_retries=int(config.get("gate_max_retries", rate_limits.DEFAULT_MAX_RETRIES)),
        )

    async def __on_shard_payload_event(self, event: hikari.ShardPayloadEvent, /) -> None:
        self.consume_raw_event(event.name, event.payload)

    async def open(self) -> None:
        """Start the session, opening its rate-limit gate.

        This passes without doing anything if the client is already open.
        """
        if self.__started:
            return

        if self.__gate is None:
            self.__gate = self.__build_gate()

        self.__gate.open()
        if self.__event_manager:
            self.__event_manager.subscribe(hikari.ShardPayloadEvent, self.__on_shard_payload_event)

        self.__started = True
        _LOGGER.info("guild client started")

    async def close(self) -> None:
        """Stop the session, closing its rate-limit gate.

        This passes without doing anything if the client is already closed.
        """
        # Mark the client as closed before tearing anything down.
        was_started = self.__started
        self.__started = False

        if not was_started:
            return

        if self.__event_manager:
            try:
                self.__event_manager.unsubscribe(hikari.ShardPayloadEvent, self.__on_shard_payload_event)
            except LookupError:
                pass

        if self.__gate is not None:
            self.__gate.close()

        _LOGGER.info("guild client closed")

    async def request(
        self,
        route: transport_.Route,
        body: typing.Optional[typing.Any] = None,
        /,
        *,
        guild_id: typing.Optional[str] = None,
        mode: typing.Optional[rate_limits.GateMode] = None,
        **params: typing.Any,
    ) -> typing.Any:
        """Make a request through the session's rate-limit gate.

        A server rate limit is only retried in `guildkit.rate_limits.GateMode.WAIT`
        and at most the gate's `max_retries` times; every other failure is
        raised straight away.

        Parameters
        ----------
        route : guildkit.transport.Route
            The route to call.
        body : typing.Optional[typing.Any]
            JSON body to send, if any.

        Other Parameters
        ----------------
        guild_id : typing.Optional[str]
            ID of the guild being called; this is both a route parameter and
            part of the gate key.
        mode : typing.Optional[guildkit.rate_limits.GateMode]
            Override of the gate's mode for this call.
        **params : typing.Any
            Other route parameters.

        Returns
        -------
        typing.Any
            The response's payload.

        Raises
        ------
        guildkit.errors.ClosedClient
            If the client isn't open.
        guildkit.errors.RateLimited
            If the call wasn't admitted.
        guildkit.errors.PermissionDenied
            If the server refused the call for missing permissions.
        guildkit.errors.NotFound
            If the server couldn't find the resource.
        guildkit.errors.RemoteFault
            If the server rejected the call.
        guildkit.errors.NetworkError
            If the call couldn't be completed.
        """
        if not self.__started or self.__gate is None:
            raise errors.ClosedClient("Cannot use an inactive client")

        gate = self.__gate
        mode = gate.mode if mode is None else rate_limits.GateMode(mode)
        path = route.compile(guild_id=guild_id, **params)
        retries = 0
        backoff = rate_limits.BackOff(sleep=gate.sleep)
        async for _ in backoff:
            await gate.acquire(route.bucket, guild_id, mode=mode)
            _LOGGER.debug("%s %s", route.method, path)
            result = await self.__transport.request(route.method, path, body)

            if isinstance(result, transport_.Payload):
                if result.rate_limit is not None:
                    gate.update(
                        route.bucket,
                        guild_id,
                        limit=result.rate_limit.limit,
                        remaining=result.rate_limit.remaining,
                        reset_after=result.rate_limit.reset_after,
                    )

                return result.data

            if isinstance(result, transport_.RateLimitSignal):
                gate.throttle(route.bucket, guild_id, retry_after=result.retry_after, is_global=result.is_global)
                if mode is rate_limits.GateMode.FAIL or retries >= gate.max_retries:
                    raise errors.RateLimited(
                        f"{route.method} {path} was rate limited by the server", retry_after=result.retry_after
                    )

                retries += 1
                backoff.backoff(result.retry_after)
                continue

            if isinstance(result, transport_.PermissionDeniedSignal):
                raise errors.PermissionDenied(result.message or f"{route.method} {path} was forbidden")

            if isinstance(result, transport_.NotFoundSignal):
                raise errors.NotFound(result.message or f"{route.method} {path} was not found")

            if isinstance(result, transport_.FaultSignal):
                raise errors.RemoteFault(result.message or f"{route.method} {path} failed", status=result.status)

            if isinstance(result, transport_.NetworkFailure):
                raise errors.NetworkError(f"{route.method} {path} failed", exception=result.exception)

            raise TypeError(f"Transport returned an unexpected result {result!r}")

        raise RuntimeError("Back-off iterator stopped unexpectedly")  # pragma: no cover

    async def fetch_own_id(self) -> str:
        """Get the authenticated user's ID, fetching it if it isn't known yet."""
        if self.__own_id is not None:
            return self.__own_id

        async with self.__own_id_lock:
            if self.__own_id is not None:
                return self.__own_id

            user = await self.request(transport_.GET_MY_USER)
            self.__own_id = str(user["id"])
            return self.__own_id

    def get_guild(self, guild_id: str, /) -> typing.Optional[guild_.Guild]:
        return self.__guilds.get(guild_id)

    def get_guilds(self) -> typing.Sequence[guild_.Guild]:
        return tuple(self.__guilds.values())

    def set_guild(self, payload: _ObjectT, /) -> guild_.Guild:
        """Add or refresh a guild from a full guild payload.

        Refreshing a known guild replaces each collection the payload
        includes, so entities which are missing from it are dropped.

        Returns
        -------
        guildkit.guild.Guild
            The guild's facade.
        """
        guild_id = str(payload["id"])
        if guild := self.__guilds.get(guild_id):
            guild.cache.set_properties(marshalling.deserialize_guild_properties(payload))
            guild.cache.load_payload(payload, replace=True)
            return guild

        guild = guild_.Guild(self, cache_.GuildCache.from_payload(payload))
        with self.__guilds_lock:
            guilds = dict(self.__guilds)
            guilds[guild_id] = guild
            self.__guilds = guilds

        return guild

    def delete_guild(self, guild_id: str, /) -> None:
        with self.__guilds_lock:
            if guild_id in self.__guilds:
                guilds = dict(self.__guilds)
                del guilds[guild_id]
                self.__guilds = guilds

    def upsert(self, guild_id: str, kind: models.EntityKind, entity: typing.Any, /) -> None:
        """Insert or replace an entity in a guild's cache.

        This is ignored for guilds which aren't known.
        """
        if guild := self.__guilds.get(guild_id):
            guild.cache.upsert(kind, entity)

        else:
            _LOGGER.debug("ignoring %s upsert for unknown guild %s", kind.value, guild_id)

    def remove(self, guild_id: str, kind: models.EntityKind, entity_id: str, /) -> None:
        """Remove an entity from a guild's cache.

        This is ignored for guilds or entities which aren't known.
        """
        if guild := self.__guilds.get(guild_id):
            guild.cache.remove(kind, entity_id)

        else:
            _LOGGER.debug("ignoring %s removal for unknown guild %s", kind.value, guild_id)

    def consume_raw_event(self, event_name: str, payload: _ObjectT, /) -> None:
        """Apply a raw gateway event to the relevant guild's cache.

        Events this client doesn't handle are ignored.
        """
        for listener in self.__raw_listeners.get(event_name.upper(), ()):
            listener(payload)

    @utility.as_raw_listener("READY")
    def __on_ready(self, payload: _ObjectT, /) -> None:
        self.__own_id = str(payload["user"]["id"])

    @utility.as_raw_listener("GUILD_CREATE")
    def __on_guild_create(self, payload: _ObjectT, /) -> None:
        if payload.get("unavailable"):
            return

        self.set_guild(payload)

    @utility.as_raw_listener("GUILD_UPDATE")
    def __on_guild_update(self, payload: _ObjectT, /) -> None:
        if guild := self.__guilds.get(str(payload["id"])):
            guild.cache.set_properties(marshalling.deserialize_guild_properties(payload))

    @utility.as_raw_listener("GUILD_DELETE")
    def __on_guild_delete(self, payload: _ObjectT, /) -> None:
        self.delete_guild(str(payload["id"]))

    @utility.as_raw_listener("CHANNEL_CREATE", "CHANNEL_UPDATE")
    def __on_channel_create_update(self, payload: _ObjectT, /) -> None:
        if (guild_id := payload.get("guild_id")) is None:
            return

        guild_id = str(guild_id)
        if channel := marshalling.deserialize_channel(payload, guild_id=guild_id):
            self.upsert(guild_id, _channel_kind(channel), channel)

        else:
            # The channel may have been converted to a type which isn't tracked.
            self.remove(guild_id, models.EntityKind.CHANNEL, str(payload["id"]))

    @utility.as_raw_listener("CHANNEL_DELETE")
    def __on_channel_delete(self, payload: _ObjectT, /) -> None:
        if (guild_id := payload.get("guild_id")) is not None:
            self.remove(str(guild_id), models.EntityKind.CHANNEL, str(payload["id"]))

    @utility.as_raw_listener("GUILD_ROLE_CREATE", "GUILD_ROLE_UPDATE")
    def __on_role_create_update(self, payload: _ObjectT, /) -> None:
        guild_id = str(payload["guild_id"])
        self.upsert(guild_id, models.EntityKind.ROLE, marshalling.deserialize_role(payload["role"], guild_id=guild_id))

    @utility.as_raw_listener("GUILD_ROLE_DELETE")
    def __on_role_delete(self, payload: _ObjectT, /) -> None:
        self.remove(str(payload["guild_id"]), models.EntityKind.ROLE, str(payload["role_id"]))

    @utility.as_raw_listener("GUILD_MEMBER_ADD", "GUILD_MEMBER_UPDATE")
    def __on_member_add_update(self, payload: _ObjectT, /) -> None:
        self.upsert(str(payload["guild_id"]), models.EntityKind.MEMBER, marshalling.deserialize_member(payload))

    @utility.as_raw_listener("GUILD_MEMBER_REMOVE")
    def __on_member_remove(self, payload: _ObjectT, /) -> None:
        self.remove(str(payload["guild_id"]), models.EntityKind.MEMBER, str(payload["user"]["id"]))
