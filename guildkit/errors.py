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
"""The standard errors which guildkit operations will be raising.

.. note::
    These supplement python's builtin exceptions but do not replace them.
"""

from __future__ import annotations

__all__: typing.Sequence[str] = [
    "ClosedClient",
    "GuildKitException",
    "InvalidArgument",
    "NetworkError",
    "NotFound",
    "PermissionDenied",
    "RateLimited",
    "RemoteFault",
]

import typing

if typing.TYPE_CHECKING:
    import hikari


class GuildKitException(Exception):
    """Base exception for the expected exceptions raised by guildkit.

    Parameters
    ----------
    message : str
        The exception's message.
    exception : typing.Optional[Exception]
        The exception which caused this exception if applicable else `builtins.None`.
    """

    __slots__: typing.Sequence[str] = ("base_exception", "message")

    message: str
    """The exception's message, this may be an empty string if there is no message."""

    base_exception: typing.Optional[Exception]
    """The exception which caused this exception if applicable else `builtins.None`."""

    def __init__(self, message: str, *, exception: typing.Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message: str = message
        self.base_exception: typing.Optional[Exception] = exception

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class ClosedClient(GuildKitException):
    """Error that's raised when an attempt to use an inactive client or gate is made."""

    __slots__: typing.Sequence[str] = ()


class InvalidArgument(GuildKitException, ValueError):
    """Error that's raised when a call's arguments fail local validation.

    This is always raised before any request is made.
    """

    __slots__: typing.Sequence[str] = ()


class PermissionDenied(GuildKitException):
    """Error that's raised when the current user lacks the permissions for an operation.

    This may come from the local pre-check or be the server rejecting the
    request; in the latter case `PermissionDenied.missing` will be `builtins.None`.
    """

    __slots__: typing.Sequence[str] = ("missing",)

    missing: typing.Optional[hikari.Permissions]
    """The permissions which the local check found to be missing, if known."""

    def __init__(
        self,
        message: str,
        *,
        missing: typing.Optional[hikari.Permissions] = None,
        exception: typing.Optional[Exception] = None,
    ) -> None:
        super().__init__(message, exception=exception)
        self.missing = missing


class RateLimited(GuildKitException):
    """Error that's raised when the rate-limit gate won't admit a call."""

    __slots__: typing.Sequence[str] = ("retry_after",)

    retry_after: typing.Optional[float]
    """How many seconds until the bucket should be usable again, if known."""

    def __init__(
        self,
        message: str,
        *,
        retry_after: typing.Optional[float] = None,
        exception: typing.Optional[Exception] = None,
    ) -> None:
        super().__init__(message, exception=exception)
        self.retry_after = retry_after


class NotFound(GuildKitException, LookupError):
    """Error that's raised when a referenced entity is missing from the cache or the server.

    .. note::
        Cache "get by ID" accessors return `builtins.None` rather than raising this.
    """

    __slots__: typing.Sequence[str] = ()


class RemoteFault(GuildKitException):
    """Error that's raised when the server rejects a request for an unhandled reason."""

    __slots__: typing.Sequence[str] = ("status",)

    status: typing.Optional[int]
    """The HTTP status the server responded with, if known."""

    def __init__(
        self, message: str, *, status: typing.Optional[int] = None, exception: typing.Optional[Exception] = None
    ) -> None:
        super().__init__(message, exception=exception)
        self.status = status


class NetworkError(GuildKitException):
    """Error that's raised when communicating with the server fails.

    This may be a sign of underlying network issues; the transport's cause is
    attached as `GuildKitException.base_exception`.
    """

    __slots__: typing.Sequence[str] = ()
