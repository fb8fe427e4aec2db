import typing

import hikari
import pytest
import pytest_asyncio

from guildkit import client as client_
from guildkit import rate_limits
from guildkit import transport as transport_

GUILD_ID = "100"
OWNER_ID = "1"
MODERATOR_ID = "2"
MEMBER_ID = "3"
MODERATOR_ROLE_ID = "201"
MUTED_ROLE_ID = "202"
TEXT_CHANNEL_ID = "300"
VOICE_CHANNEL_ID = "301"

EVERYONE_PERMISSIONS = hikari.Permissions.VIEW_CHANNEL | hikari.Permissions.SEND_MESSAGES | hikari.Permissions.CONNECT
MODERATOR_PERMISSIONS = (
    hikari.Permissions.BAN_MEMBERS
    | hikari.Permissions.KICK_MEMBERS
    | hikari.Permissions.MANAGE_ROLES
    | hikari.Permissions.MANAGE_CHANNELS
    | hikari.Permissions.MANAGE_GUILD
)


def user_payload(user_id: str, username: str) -> typing.Dict[str, typing.Any]:
    return {"id": user_id, "username": username, "discriminator": "0", "avatar": None}


def member_payload(user_id: str, username: str, *roles: str) -> typing.Dict[str, typing.Any]:
    return {"user": user_payload(user_id, username), "roles": list(roles), "nick": None}


def role_payload(role_id: str, name: str, permissions: int, position: int) -> typing.Dict[str, typing.Any]:
    return {"id": role_id, "name": name, "permissions": str(permissions), "position": position, "color": 0}


def make_guild_payload() -> typing.Dict[str, typing.Any]:
    return {
        "id": GUILD_ID,
        "name": "Test Guild",
        "icon": "abcdef",
        "owner_id": OWNER_ID,
        "afk_channel_id": None,
        "afk_timeout": 300,
        "region": "europe",
        "roles": [
            role_payload(GUILD_ID, "@everyone", int(EVERYONE_PERMISSIONS), 0),
            role_payload(MODERATOR_ROLE_ID, "Moderator", int(MODERATOR_PERMISSIONS), 2),
            role_payload(MUTED_ROLE_ID, "Muted", 0, 1),
        ],
        "channels": [
            {"id": TEXT_CHANNEL_ID, "type": 0, "name": "general", "position": 0, "permission_overwrites": []},
            {"id": VOICE_CHANNEL_ID, "type": 2, "name": "Lounge", "position": 1, "bitrate": 64000},
            {"id": "302", "type": 4, "name": "Category", "position": 2},
        ],
        "members": [
            member_payload(OWNER_ID, "owner"),
            member_payload(MODERATOR_ID, "moderator", MODERATOR_ROLE_ID),
            member_payload(MEMBER_ID, "member"),
        ],
    }


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: typing.List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeTransport:
    def __init__(self) -> None:
        self.calls: typing.List[typing.Tuple[str, str, typing.Any]] = []
        self.results: typing.Dict[typing.Tuple[str, str], typing.List[transport_.TransportResult]] = {}

    def queue(self, method: str, path: str, *results: transport_.TransportResult) -> None:
        self.results.setdefault((method, path), []).extend(results)

    async def request(
        self, method: str, path: str, body: typing.Optional[typing.Any] = None, /
    ) -> transport_.TransportResult:
        self.calls.append((method, path, body))
        if queued := self.results.get((method, path)):
            return queued.pop(0)

        return transport_.Payload(None)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


def make_gate(clock: FakeClock, **kwargs: typing.Any) -> rate_limits.RateLimitGate:
    return rate_limits.RateLimitGate(clock=clock, sleep=clock.sleep, **kwargs)


@pytest_asyncio.fixture()
async def client(transport: FakeTransport, clock: FakeClock) -> typing.AsyncIterator[client_.GuildClient]:
    async with client_.GuildClient(transport, own_id=MODERATOR_ID, gate=make_gate(clock)) as client:
        yield client


@pytest_asyncio.fixture()
async def owner_client(transport: FakeTransport, clock: FakeClock) -> typing.AsyncIterator[client_.GuildClient]:
    async with client_.GuildClient(transport, own_id=OWNER_ID, gate=make_gate(clock)) as client:
        yield client
