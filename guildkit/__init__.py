"""A cached, permission checked and rate limited client facade for chat guilds."""

from __future__ import annotations

__all__: typing.Final[typing.Sequence[str]] = [
    "ClosedClient",
    "GateMode",
    "Guild",
    "GuildClient",
    "GuildKitException",
    "HTTPTransport",
    "InvalidArgument",
    "NetworkError",
    "NotFound",
    "PermissionDenied",
    "RateLimitGate",
    "RateLimited",
    "RemoteFault",
    "cache",
    "errors",
    "models",
    "permissions",
    "rate_limits",
    "transport",
]

import typing

from . import cache
from . import errors
from . import models
from . import permissions
from . import rate_limits
from . import transport
from .client import GuildClient
from .errors import *
from .guild import Guild
from .rate_limits import GateMode
from .rate_limits import RateLimitGate
from .transport import HTTPTransport
