"""In-memory entity cache for a single guild.

Reads never lock: each collection is a copy-on-write mapping so readers always
see a complete snapshot. Writers hold a per-collection lock which makes this
safe to feed from event handlers running on other threads.
"""

from __future__ import annotations

__all__: typing.Sequence[str] = ["GuildCache"]

import logging
import threading
import typing

import attrs

from . import marshalling
from . import models

if typing.TYPE_CHECKING:
    _ObjectT = typing.Mapping[str, typing.Any]

_LOGGER: typing.Final[logging.Logger] = logging.getLogger("hikari.guildkit.cache")
_ValueT = typing.TypeVar("_ValueT")


class _Collection(typing.Generic[_ValueT]):
    __slots__: typing.Sequence[str] = ("_entries", "_lock")

    def __init__(self) -> None:
        self._entries: typing.Mapping[str, _ValueT] = {}
        self._lock = threading.Lock()

    def __contains__(self, entity_id: object, /) -> bool:
        return entity_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, entity_id: str, /) -> typing.Optional[_ValueT]:
        return self._entries.get(entity_id)

    def values(self) -> typing.Sequence[_ValueT]:
        return tuple(self._entries.values())

    def set(self, entity_id: str, value: _ValueT, /) -> None:
        with self._lock:
            entries = dict(self._entries)
            entries[entity_id] = value
            self._entries = entries

    def set_many(self, values: typing.Iterable[typing.Tuple[str, _ValueT]], /) -> None:
        with self._lock:
            entries = dict(self._entries)
            entries.update(values)
            self._entries = entries

    def update(
        self, entity_id: str, callback: typing.Callable[[_ValueT], _ValueT], /
    ) -> typing.Optional[_ValueT]:
        with self._lock:
            if (current := self._entries.get(entity_id)) is None:
                return None

            entries = dict(self._entries)
            entries[entity_id] = new = callback(current)
            self._entries = entries
            return new

    def delete(self, entity_id: str, /) -> typing.Optional[_ValueT]:
        with self._lock:
            if entity_id not in self._entries:
                return None

            entries = dict(self._entries)
            value = entries.pop(entity_id)
            self._entries = entries
            return value

    def replace(self, values: typing.Iterable[typing.Tuple[str, _ValueT]], /) -> None:
        entries = dict(values)
        with self._lock:
            self._entries = entries

    def clear(self) -> None:
        with self._lock:
            self._entries = {}


class GuildCache:
    """The locally known state of one guild.

    Collection getters return tuples in insertion order; an entity which is
    updated in place keeps its original position.

    Parameters
    ----------
    properties : guildkit.models.GuildProperties
        The guild's top-level attributes.
    """

    __slots__: typing.Sequence[str] = (
        "_channels",
        "_members",
        "_properties",
        "_properties_lock",
        "_roles",
        "_voice_channels",
    )

    def __init__(self, properties: models.GuildProperties, /) -> None:
        self._channels: _Collection[models.Channel] = _Collection()
        self._members: _Collection[models.Member] = _Collection()
        self._properties = properties
        self._properties_lock = threading.Lock()
        self._roles: _Collection[models.Role] = _Collection()
        self._voice_channels: _Collection[models.VoiceChannel] = _Collection()

    @classmethod
    def from_payload(cls, payload: _ObjectT, /) -> GuildCache:
        """Build a cache from a full guild payload (as sent with `GUILD_CREATE`)."""
        cache = cls(marshalling.deserialize_guild_properties(payload))
        cache.load_payload(payload)
        return cache

    def load_payload(self, payload: _ObjectT, /, *, replace: bool = False) -> None:
        """Load the channels, roles and members held by a guild payload.

        Parameters
        ----------
        payload : typing.Mapping[str, typing.Any]
            The guild payload.

        Other Parameters
        ----------------
        replace : bool
            Whether the payload is a full snapshot. If `builtins.True` then each
            collection the payload includes replaces the cached one, dropping
            entities which aren't in it; otherwise entities are upserted.
        """
        guild_id = self.id
        channels: typing.List[typing.Tuple[str, models.Channel]] = []
        voice_channels: typing.List[typing.Tuple[str, models.VoiceChannel]] = []
        for channel_payload in payload.get("channels", ()):
            channel = marshalling.deserialize_channel(channel_payload, guild_id=guild_id)
            if isinstance(channel, models.VoiceChannel):
                voice_channels.append((channel.id, channel))

            elif channel is not None:
                channels.append((channel.id, channel))

        roles = [marshalling.deserialize_role(role, guild_id=guild_id) for role in payload.get("roles", ())]
        members = [marshalling.deserialize_member(member) for member in payload.get("members", ())]
        if replace:
            # Collections missing from the payload (e.g. members for large guilds) are left as they are.
            if "channels" in payload:
                self._channels.replace(channels)
                self._voice_channels.replace(voice_channels)

            if "roles" in payload:
                self._roles.replace((role.id, role) for role in roles)

            if "members" in payload:
                self._members.replace((member.id, member) for member in members)

        else:
            self._channels.set_many(channels)
            self._voice_channels.set_many(voice_channels)
            self._roles.set_many((role.id, role) for role in roles)
            self._members.set_many((member.id, member) for member in members)

        _LOGGER.debug(
            "loaded %s channels, %s voice channels, %s roles and %s members for guild %s",
            len(self._channels),
            len(self._voice_channels),
            len(self._roles),
            len(self._members),
            guild_id,
        )

    @property
    def id(self) -> str:
        return self._properties.id

    @property
    def properties(self) -> models.GuildProperties:
        return self._properties

    def set_properties(self, properties: models.GuildProperties, /) -> None:
        if properties.id != self.id:
            raise ValueError(f"Cannot replace guild {self.id}'s properties with guild {properties.id}'s")

        with self._properties_lock:
            self._properties = properties

    def update_properties(self, **changes: typing.Any) -> models.GuildProperties:
        """Merge changed fields into the guild's properties."""
        with self._properties_lock:
            self._properties = attrs.evolve(self._properties, **changes)
            return self._properties

    def get_channel(self, channel_id: str, /) -> typing.Optional[models.Channel]:
        return self._channels.get(channel_id)

    def get_channels(self) -> typing.Sequence[models.Channel]:
        return self._channels.values()

    def get_voice_channel(self, channel_id: str, /) -> typing.Optional[models.VoiceChannel]:
        return self._voice_channels.get(channel_id)

    def get_voice_channels(self) -> typing.Sequence[models.VoiceChannel]:
        return self._voice_channels.values()

    def get_any_channel(self, channel_id: str, /) -> typing.Optional[models.Channel]:
        return self._channels.get(channel_id) or self._voice_channels.get(channel_id)

    def set_channel(self, channel: models.Channel, /) -> None:
        # A channel's type can change so make sure it's only ever in one store.
        if isinstance(channel, models.VoiceChannel):
            self._channels.delete(channel.id)
            self._voice_channels.set(channel.id, channel)

        else:
            self._voice_channels.delete(channel.id)
            self._channels.set(channel.id, channel)

    def delete_channel(self, channel_id: str, /) -> None:
        self._channels.delete(channel_id)
        self._voice_channels.delete(channel_id)

    def get_role(self, role_id: str, /) -> typing.Optional[models.Role]:
        return self._roles.get(role_id)

    def get_roles(self) -> typing.Sequence[models.Role]:
        return self._roles.values()

    def set_role(self, role: models.Role, /) -> None:
        self._roles.set(role.id, role)

    def delete_role(self, role_id: str, /) -> None:
        self._roles.delete(role_id)

    def get_member(self, user_id: str, /) -> typing.Optional[models.Member]:
        return self._members.get(user_id)

    def get_members(self) -> typing.Sequence[models.Member]:
        return self._members.values()

    def get_user(self, user_id: str, /) -> typing.Optional[models.User]:
        if member := self._members.get(user_id):
            return member.user

        return None

    def get_users(self) -> typing.Sequence[models.User]:
        return tuple(member.user for member in self._members.values())

    def set_member(self, member: models.Member, /) -> None:
        self._members.set(member.id, member)

    def set_member_roles(self, user_id: str, role_ids: typing.Iterable[str], /) -> typing.Optional[models.Member]:
        role_ids = tuple(role_ids)
        return self._members.update(user_id, lambda member: attrs.evolve(member, role_ids=role_ids))

    def delete_member(self, user_id: str, /) -> None:
        self._members.delete(user_id)

    def upsert(self, kind: models.EntityKind, entity: typing.Any, /) -> None:
        """Insert or replace an entity based on its kind."""
        if kind is models.EntityKind.CHANNEL or kind is models.EntityKind.VOICE_CHANNEL:
            self.set_channel(entity)

        elif kind is models.EntityKind.ROLE:
            self.set_role(entity)

        elif kind is models.EntityKind.MEMBER:
            self.set_member(entity)

        else:
            raise ValueError(f"Unknown entity kind {kind!r}")

    def remove(self, kind: models.EntityKind, entity_id: str, /) -> None:
        """Remove an entity based on its kind, this is a no-op for unknown entities."""
        if kind is models.EntityKind.CHANNEL or kind is models.EntityKind.VOICE_CHANNEL:
            self.delete_channel(entity_id)

        elif kind is models.EntityKind.ROLE:
            self.delete_role(entity_id)

        elif kind is models.EntityKind.MEMBER:
            self.delete_member(entity_id)

        else:
            raise ValueError(f"Unknown entity kind {kind!r}")

    def clear(self) -> None:
        self._channels.clear()
        self._members.clear()
        self._roles.clear()
        self._voice_channels.clear()
