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
"""The transport interface guild facades make requests through.

Transports never raise for request failures; instead they return one of the
tagged results in `TransportResult` which the caller maps to guildkit's errors.
"""

from __future__ import annotations

__all__: typing.Sequence[str] = [
    "DEFAULT_BASE_URL",
    "FaultSignal",
    "HTTPTransport",
    "NetworkFailure",
    "NotFoundSignal",
    "Payload",
    "PermissionDeniedSignal",
    "RateLimitHeaders",
    "RateLimitSignal",
    "Route",
    "Transport",
    "TransportResult",
    "parse_response",
]

import asyncio
import json
import logging
import typing

import aiohttp
import attrs

if typing.TYPE_CHECKING:
    import types

_LOGGER: typing.Final[logging.Logger] = logging.getLogger("hikari.guildkit.transport")
_TransportT = typing.TypeVar("_TransportT", bound="HTTPTransport")

DEFAULT_BASE_URL: typing.Final[str] = "https://discord.com/api/v10"


@attrs.frozen
class Route:
    """A request method and path template.

    The route's `Route.bucket` is what the rate-limit gate keys calls on.
    """

    method: str
    template: str

    @property
    def bucket(self) -> str:
        return f"{self.method} {self.template}"

    def compile(self, **params: typing.Any) -> str:
        return self.template.format_map({key: str(value) for key, value in params.items()})


GET_MY_USER: typing.Final[Route] = Route("GET", "/users/@me")
DELETE_MY_GUILD: typing.Final[Route] = Route("DELETE", "/users/@me/guilds/{guild_id}")
PATCH_GUILD: typing.Final[Route] = Route("PATCH", "/guilds/{guild_id}")
DELETE_GUILD: typing.Final[Route] = Route("DELETE", "/guilds/{guild_id}")
POST_GUILD_CHANNELS: typing.Final[Route] = Route("POST", "/guilds/{guild_id}/channels")
POST_GUILD_ROLES: typing.Final[Route] = Route("POST", "/guilds/{guild_id}/roles")
GET_GUILD_BANS: typing.Final[Route] = Route("GET", "/guilds/{guild_id}/bans")
PUT_GUILD_BAN: typing.Final[Route] = Route("PUT", "/guilds/{guild_id}/bans/{user_id}")
DELETE_GUILD_BAN: typing.Final[Route] = Route("DELETE", "/guilds/{guild_id}/bans/{user_id}")
PATCH_GUILD_MEMBER: typing.Final[Route] = Route("PATCH", "/guilds/{guild_id}/members/{user_id}")
DELETE_GUILD_MEMBER: typing.Final[Route] = Route("DELETE", "/guilds/{guild_id}/members/{user_id}")


@attrs.frozen(kw_only=True)
class RateLimitHeaders:
    """A bucket's state as reported alongside a successful response."""

    limit: int
    remaining: int
    reset_after: float
    bucket: typing.Optional[str] = None


@attrs.frozen
class Payload:
    """A successful response."""

    data: typing.Any = None
    rate_limit: typing.Optional[RateLimitHeaders] = None


@attrs.frozen
class RateLimitSignal:
    """The server refused the request because of a rate limit."""

    retry_after: float
    is_global: bool = False


@attrs.frozen
class PermissionDeniedSignal:
    """The server refused the request because of missing permissions."""

    message: str = ""


@attrs.frozen
class NotFoundSignal:
    """The targeted resource doesn't exist on the server."""

    message: str = ""


@attrs.frozen
class FaultSignal:
    """The server rejected the request for any other reason."""

    status: int
    message: str = ""


@attrs.frozen
class NetworkFailure:
    """The request couldn't be completed."""

    exception: Exception


TransportResult = typing.Union[
    Payload, RateLimitSignal, PermissionDeniedSignal, NotFoundSignal, FaultSignal, NetworkFailure
]
"""Type hint of the results a transport may return."""


@typing.runtime_checkable
class Transport(typing.Protocol):
    """The interface of an authenticated request client."""

    __slots__: typing.Sequence[str] = ()

    async def request(
        self, method: str, path: str, body: typing.Optional[typing.Any] = None, /
    ) -> TransportResult:
        """Make a request.

        Parameters
        ----------
        method : str
            The HTTP method to use.
        path : str
            The compiled route path.
        body : typing.Optional[typing.Any]
            JSON body to send, if any.

        Returns
        -------
        TransportResult
            The request's outcome.
        """
        raise NotImplementedError


def _parse_rate_limit_headers(headers: typing.Mapping[str, str], /) -> typing.Optional[RateLimitHeaders]:
    try:
        return RateLimitHeaders(
            limit=int(headers["X-RateLimit-Limit"]),
            remaining=int(headers["X-RateLimit-Remaining"]),
            reset_after=float(headers["X-RateLimit-Reset-After"]),
            bucket=headers.get("X-RateLimit-Bucket"),
        )

    except (KeyError, ValueError):
        return None


def _error_message(data: typing.Any, /) -> str:
    if isinstance(data, dict):
        return str(data.get("message", ""))

    return "" if data is None else str(data)


def parse_response(status: int, headers: typing.Mapping[str, str], data: typing.Any, /) -> TransportResult:
    """Map a HTTP response to a transport result."""
    if 200 <= status < 300:
        return Payload(data, _parse_rate_limit_headers(headers))

    if status == 429:
        retry_after: typing.Any = None
        is_global = False
        if isinstance(data, dict):
            retry_after = data.get("retry_after")
            is_global = bool(data.get("global", False))

        if retry_after is None:
            retry_after = headers.get("Retry-After", 1.0)

        return RateLimitSignal(float(retry_after), is_global=is_global or headers.get("X-RateLimit-Global") == "true")

    if status == 403:
        return PermissionDeniedSignal(_error_message(data))

    if status == 404:
        return NotFoundSignal(_error_message(data))

    return FaultSignal(status, _error_message(data))


class HTTPTransport:
    """aiohttp backed transport for a bot token.

    Parameters
    ----------
    token : str
        The bot token to authorize requests with.

    Other Parameters
    ----------------
    base_url : str
        The API's base URL.
    timeout : float
        Total timeout for each request in seconds.
    """

    __slots__: typing.Sequence[str] = ("_base_url", "_session", "_timeout", "_token")

    def __init__(self, token: str, *, base_url: str = DEFAULT_BASE_URL, timeout: float = 30.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._session: typing.Optional[aiohttp.ClientSession] = None
        self._timeout = timeout
        self._token = token

    async def __aenter__(self: _TransportT) -> _TransportT:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: typing.Optional[typing.Type[BaseException]],
        exc_val: typing.Optional[BaseException],
        exc_tb: typing.Optional[types.TracebackType],
    ) -> None:
        await self.close()

    @property
    def is_alive(self) -> bool:
        return self._session is not None and not self._session.closed

    async def open(self) -> None:
        if self.is_alive:
            return

        self._session = aiohttp.ClientSession(
            headers={"Authorization": f"Bot {self._token}"},
            timeout=aiohttp.ClientTimeout(total=self._timeout),
        )

    async def close(self) -> None:
        session = self._session
        self._session = None
        if session is not None:
            await session.close()

    async def request(
        self, method: str, path: str, body: typing.Optional[typing.Any] = None, /
    ) -> TransportResult:
        if self._session is None:
            return NetworkFailure(RuntimeError("Cannot use an inactive transport"))

        _LOGGER.debug("%s %s", method, path)
        try:
            async with self._session.request(method, self._base_url + path, json=body) as response:
                data: typing.Any = None
                if text := await response.text():
                    try:
                        data = json.loads(text)

                    except ValueError:
                        data = text

                return parse_response(response.status, response.headers, data)

        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            _LOGGER.debug("%s %s failed", method, path, exc_info=exc)
            return NetworkFailure(exc)
