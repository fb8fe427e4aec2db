import types
import typing

import hikari
import pytest

from guildkit import client as client_
from guildkit import errors
from guildkit import rate_limits
from guildkit import transport as transport_
from tests.conftest import GUILD_ID
from tests.conftest import MEMBER_ID
from tests.conftest import MODERATOR_ID
from tests.conftest import MUTED_ROLE_ID
from tests.conftest import TEXT_CHANNEL_ID
from tests.conftest import VOICE_CHANNEL_ID
from tests.conftest import FakeClock
from tests.conftest import FakeTransport
from tests.conftest import make_gate
from tests.conftest import make_guild_payload
from tests.conftest import member_payload
from tests.conftest import role_payload


class FakeEventManager:
    def __init__(self) -> None:
        self.subscriptions: typing.Dict[typing.Any, typing.List[typing.Any]] = {}

    def subscribe(self, event_type: typing.Any, callback: typing.Any) -> None:
        self.subscriptions.setdefault(event_type, []).append(callback)

    def unsubscribe(self, event_type: typing.Any, callback: typing.Any) -> None:
        self.subscriptions[event_type].remove(callback)

    async def dispatch(self, event_type: typing.Any, event: typing.Any) -> None:
        for callback in list(self.subscriptions.get(event_type, ())):
            await callback(event)


@pytest.fixture()
def loaded_client(client: client_.GuildClient) -> client_.GuildClient:
    client.set_guild(make_guild_payload())
    return client


class TestLifecycle:
    def test_sync_context_manager_is_rejected(self, transport: FakeTransport):
        with pytest.raises(TypeError, match="async-only"):
            with client_.GuildClient(transport):
                pass

    def test_event_managed_without_event_manager(self, transport: FakeTransport):
        with pytest.raises(ValueError, match="event_managed"):
            client_.GuildClient(transport, event_managed=True)

    @pytest.mark.asyncio()
    async def test_open_builds_gate_from_config(self, transport: FakeTransport):
        client = client_.GuildClient(
            transport, config={"gate_capacity": 2, "gate_window": 1.0, "gate_max_retries": 0}
        ).with_gate_mode("fail")

        assert client.gate is None
        assert not client.is_alive

        async with client:
            assert client.is_alive
            assert client.gate is not None
            assert client.gate.is_alive
            assert client.gate.mode is rate_limits.GateMode.FAIL
            assert client.gate.max_retries == 0

        assert not client.is_alive
        assert not client.gate.is_alive

    @pytest.mark.asyncio()
    async def test_open_and_close_are_idempotent(self, transport: FakeTransport, clock: FakeClock):
        gate = make_gate(clock)
        client = client_.GuildClient(transport, gate=gate)

        await client.open()
        await client.open()
        assert client.gate is gate
        assert gate.is_alive

        await client.close()
        await client.close()
        assert not gate.is_alive

    @pytest.mark.asyncio()
    async def test_with_gate_mode_while_active(self, client: client_.GuildClient):
        with pytest.raises(ValueError, match="active"):
            client.with_gate_mode(rate_limits.GateMode.FAIL)

    @pytest.mark.asyncio()
    async def test_request_when_not_open(self, transport: FakeTransport):
        client = client_.GuildClient(transport, own_id=MODERATOR_ID)

        with pytest.raises(errors.ClosedClient):
            await client.request(transport_.GET_MY_USER)

        assert transport.calls == []

    @pytest.mark.asyncio()
    async def test_event_managed_lifecycle(self, transport: FakeTransport, clock: FakeClock):
        manager = FakeEventManager()
        client = client_.GuildClient(transport, manager, gate=make_gate(clock), event_managed=True)

        await manager.dispatch(hikari.StartingEvent, object())
        assert client.is_alive
        assert len(manager.subscriptions[hikari.ShardPayloadEvent]) == 1

        await manager.dispatch(
            hikari.ShardPayloadEvent, types.SimpleNamespace(name="GUILD_CREATE", payload=make_guild_payload())
        )
        assert client.get_guild(GUILD_ID) is not None

        await manager.dispatch(hikari.StoppingEvent, object())
        assert not client.is_alive
        assert manager.subscriptions[hikari.ShardPayloadEvent] == []


class TestRequest:
    @pytest.mark.asyncio()
    async def test_fetch_own_id(self, transport: FakeTransport, clock: FakeClock):
        transport.queue("GET", "/users/@me", transport_.Payload({"id": 42, "username": "bot"}))

        async with client_.GuildClient(transport, gate=make_gate(clock)) as client:
            assert client.own_id is None
            assert await client.fetch_own_id() == "42"
            assert await client.fetch_own_id() == "42"

        assert transport.calls == [("GET", "/users/@me", None)]

    @pytest.mark.asyncio()
    async def test_rate_limit_headers_update_gate(self, transport: FakeTransport, clock: FakeClock):
        transport.queue(
            "GET",
            "/users/@me",
            transport_.Payload({"id": "1"}, transport_.RateLimitHeaders(limit=1, remaining=0, reset_after=3.0)),
        )

        async with client_.GuildClient(transport, gate=make_gate(clock, mode=rate_limits.GateMode.FAIL)) as client:
            await client.request(transport_.GET_MY_USER)

            with pytest.raises(errors.RateLimited) as exc_info:
                await client.request(transport_.GET_MY_USER)

        assert exc_info.value.retry_after == 3.0
        assert len(transport.calls) == 1

    @pytest.mark.asyncio()
    async def test_unexpected_transport_result(self, client: client_.GuildClient, transport: FakeTransport):
        transport.queue("GET", "/users/@me", typing.cast("transport_.TransportResult", "nope"))

        with pytest.raises(TypeError, match="unexpected result"):
            await client.request(transport_.GET_MY_USER)


class TestRawEvents:
    def test_ready_sets_own_id(self, transport: FakeTransport):
        client = client_.GuildClient(transport)

        client.consume_raw_event("READY", {"user": {"id": 99, "username": "bot"}, "guilds": []})

        assert client.own_id == "99"

    def test_guild_create(self, transport: FakeTransport):
        client = client_.GuildClient(transport)

        client.consume_raw_event("guild_create", make_guild_payload())
        client.consume_raw_event("GUILD_CREATE", {"id": "999", "unavailable": True})

        assert [guild.id for guild in client.get_guilds()] == [GUILD_ID]
        assert client.get_guild("999") is None

    def test_guild_create_refreshes_known_guild(self, loaded_client: client_.GuildClient):
        guild = loaded_client.get_guild(GUILD_ID)
        payload = make_guild_payload()
        payload["name"] = "Refreshed"
        payload["members"].append(member_payload("4", "newcomer"))

        loaded_client.consume_raw_event("GUILD_CREATE", payload)

        assert loaded_client.get_guild(GUILD_ID) is guild
        assert guild.name == "Refreshed"
        assert guild.get_user_by_id("4").username == "newcomer"

    def test_guild_create_drops_entities_missing_from_snapshot(self, loaded_client: client_.GuildClient):
        guild = loaded_client.get_guild(GUILD_ID)
        payload = make_guild_payload()
        payload["roles"] = [role for role in payload["roles"] if role["id"] != MUTED_ROLE_ID]
        payload["members"] = [member for member in payload["members"] if member["user"]["id"] != MEMBER_ID]
        payload["channels"] = [channel for channel in payload["channels"] if channel["id"] != VOICE_CHANNEL_ID]

        loaded_client.consume_raw_event("GUILD_CREATE", payload)

        assert guild.get_role_for_id(MUTED_ROLE_ID) is None
        assert guild.get_user_by_id(MEMBER_ID) is None
        assert guild.get_voice_channel_for_id(VOICE_CHANNEL_ID) is None
        assert guild.get_channel_by_id(TEXT_CHANNEL_ID) is not None
        assert len(guild.get_roles()) == 2

    def test_guild_create_without_members_keeps_cached_members(self, loaded_client: client_.GuildClient):
        guild = loaded_client.get_guild(GUILD_ID)
        payload = make_guild_payload()
        del payload["members"]

        loaded_client.consume_raw_event("GUILD_CREATE", payload)

        assert len(guild.get_users()) == 3

    def test_guild_update(self, loaded_client: client_.GuildClient):
        payload = make_guild_payload()
        payload["owner_id"] = MEMBER_ID
        del payload["members"]

        loaded_client.consume_raw_event("GUILD_UPDATE", payload)

        guild = loaded_client.get_guild(GUILD_ID)
        assert guild.owner_id == MEMBER_ID
        assert len(guild.get_users()) == 3

    def test_guild_delete(self, loaded_client: client_.GuildClient):
        loaded_client.consume_raw_event("GUILD_DELETE", {"id": GUILD_ID})

        assert loaded_client.get_guild(GUILD_ID) is None
        assert loaded_client.get_guilds() == ()

    def test_channel_events(self, loaded_client: client_.GuildClient):
        guild = loaded_client.get_guild(GUILD_ID)

        loaded_client.consume_raw_event("CHANNEL_CREATE", {"id": "310", "type": 2, "name": "AFK", "guild_id": GUILD_ID})
        assert guild.get_voice_channel_for_id("310").name == "AFK"

        loaded_client.consume_raw_event(
            "CHANNEL_UPDATE", {"id": TEXT_CHANNEL_ID, "type": 0, "name": "renamed", "guild_id": GUILD_ID}
        )
        assert guild.get_channel_by_id(TEXT_CHANNEL_ID).name == "renamed"

        loaded_client.consume_raw_event("CHANNEL_UPDATE", {"id": "310", "type": 4, "name": "AFK", "guild_id": GUILD_ID})
        assert guild.get_voice_channel_for_id("310") is None

        loaded_client.consume_raw_event("CHANNEL_DELETE", {"id": VOICE_CHANNEL_ID, "type": 2, "guild_id": GUILD_ID})
        assert guild.get_voice_channels() == ()

        # DM channels have no guild.
        loaded_client.consume_raw_event("CHANNEL_CREATE", {"id": "1", "type": 1, "recipients": []})

    def test_role_events(self, loaded_client: client_.GuildClient):
        guild = loaded_client.get_guild(GUILD_ID)

        loaded_client.consume_raw_event(
            "GUILD_ROLE_CREATE", {"guild_id": GUILD_ID, "role": role_payload("500", "New", 0, 3)}
        )
        loaded_client.consume_raw_event(
            "GUILD_ROLE_UPDATE", {"guild_id": GUILD_ID, "role": role_payload(MUTED_ROLE_ID, "Silenced", 0, 1)}
        )

        assert guild.get_role_for_id("500").position == 3
        assert guild.get_role_for_id(MUTED_ROLE_ID).name == "Silenced"

        loaded_client.consume_raw_event("GUILD_ROLE_DELETE", {"guild_id": GUILD_ID, "role_id": "500"})

        assert guild.get_role_for_id("500") is None

    def test_member_events(self, loaded_client: client_.GuildClient):
        guild = loaded_client.get_guild(GUILD_ID)

        loaded_client.consume_raw_event("GUILD_MEMBER_ADD", {"guild_id": GUILD_ID, **member_payload("4", "newcomer")})
        loaded_client.consume_raw_event(
            "GUILD_MEMBER_UPDATE", {"guild_id": GUILD_ID, **member_payload(MEMBER_ID, "member", MUTED_ROLE_ID)}
        )

        assert guild.get_user_by_id("4").username == "newcomer"
        assert guild.get_member(MEMBER_ID).role_ids == (MUTED_ROLE_ID,)

        loaded_client.consume_raw_event("GUILD_MEMBER_REMOVE", {"guild_id": GUILD_ID, "user": {"id": "4"}})

        assert guild.get_member("4") is None

    def test_events_for_unknown_guilds_are_ignored(self, loaded_client: client_.GuildClient):
        loaded_client.consume_raw_event("GUILD_MEMBER_ADD", {"guild_id": "999", **member_payload("4", "newcomer")})
        loaded_client.consume_raw_event("CHANNEL_DELETE", {"id": "1", "type": 0, "guild_id": "999"})

        assert loaded_client.get_guild("999") is None
        assert loaded_client.get_guild(GUILD_ID).get_user_by_id("4") is None

    def test_unhandled_events_are_ignored(self, loaded_client: client_.GuildClient):
        loaded_client.consume_raw_event("MESSAGE_CREATE", {"id": "1"})
