# -*- coding: utf-8 -*-
# cython: language_level=3
# Tanjun Examples - A collection of examples for Tanjun.
# Written in 2021 by Lucina Lucina@lmbyrne.dev
#
# To the extent possible under law, the author(s) have dedicated all copyright
# and related and neighboring rights to this software to the public domain worldwide.
# This software is distributed without any warranty.
#
# You should have received a copy of the CC0 Public Domain Dedication along with this software.
# If not, see <https://creativecommons.org/publicdomain/zero/1.0/>.
"""Examples of a self managed guild client."""
import os

import hikari

import guildkit

bot = hikari.GatewayBot(
    token=os.environ["BOT_TOKEN"], intents=hikari.Intents.ALL_UNPRIVILEGED | hikari.Intents.GUILD_MEMBERS
)
http = guildkit.HTTPTransport(os.environ["BOT_TOKEN"])
client = guildkit.GuildClient(
    http,
    # The event manager is left as None to allow us to manage event consumption ourselves.
    None,
    config={"gate_capacity": 10, "gate_window": 10.0, "gate_max_wait": 5.0},
    # Calls to an exhausted bucket will raise guildkit.RateLimited instead of waiting.
).with_gate_mode(guildkit.GateMode.FAIL)


@bot.listen()
async def on_starting(_: hikari.StartingEvent) -> None:
    await http.open()
    await client.open()


@bot.listen()
async def on_stopping(_: hikari.StoppingEvent) -> None:
    await client.close()
    await http.close()


# Raw events are consumed here so we can look the member up before the cache
# forgets them.
@bot.listen()
async def on_payload(event: hikari.ShardPayloadEvent) -> None:
    if event.name == "GUILD_MEMBER_REMOVE" and (guild := client.get_guild(str(event.payload["guild_id"]))):
        if user := guild.get_user_by_id(str(event.payload["user"]["id"])):
            print(f"{user} left {guild.name}")  # noqa: T201

    client.consume_raw_event(event.name, event.payload)


@bot.listen()
async def on_message(event: hikari.GuildMessageCreateEvent) -> None:
    if event.content != "!cleanup" or not event.is_human:
        return

    guild = client.get_guild(str(event.guild_id))
    if guild is None:
        return

    muted = [role for role in guild.get_roles() if role.name.lower() == "muted"]
    for member in list(guild.cache.get_members()):
        if not any(role.id in member.role_ids for role in muted):
            continue

        try:
            await guild.kick_user(member.id)

        except guildkit.RateLimited as exc:
            await event.message.respond(content=f"Stopped early, try again in {exc.retry_after:.0f} seconds.")
            return

    await event.message.respond(content="Done.")


bot.run()
