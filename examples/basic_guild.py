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
"""Examples of basic guild client usage."""
import os

import hikari

import guildkit

bot = hikari.GatewayBot(
    token=os.environ["BOT_TOKEN"], intents=hikari.Intents.ALL_UNPRIVILEGED | hikari.Intents.GUILD_MEMBERS
)
http = guildkit.HTTPTransport(os.environ["BOT_TOKEN"])
client = guildkit.GuildClient(
    http,
    # When an event manager is passed here the client will keep its guild caches
    # up to date from the raw gateway events it receives while open.
    bot.event_manager,
    # This makes the client open and close itself along with the bot.
    event_managed=True,
)
prefix = os.environ["BOT_PREFIX"]


@bot.listen()
async def on_starting(_: hikari.StartingEvent) -> None:
    await http.open()


@bot.listen()
async def on_stopped(_: hikari.StoppedEvent) -> None:
    await http.close()


@bot.listen()
async def on_message(event: hikari.GuildMessageCreateEvent) -> None:
    if not event.content or not event.content.startswith(prefix) or not event.is_human:
        return

    arguments = event.content[len(prefix) :].split()
    guild = client.get_guild(str(event.guild_id))
    if not arguments or guild is None:
        return

    try:
        if arguments[0] == "ban":
            days = int(arguments[2]) if len(arguments) > 2 else 0
            await guild.ban_user(arguments[1], days)
            await event.message.respond(content="Banned.")

        elif arguments[0] == "kick":
            await guild.kick_user(arguments[1])
            await event.message.respond(content="Kicked.")

        elif arguments[0] == "roles":
            member = await guild.edit_user_roles(arguments[1], arguments[2:])
            await event.message.respond(content=f"{member.user} now has {len(member.role_ids)} roles.")

        elif arguments[0] == "owner":
            owner = guild.get_owner()
            await event.message.respond(content=f"{guild.name} is owned by {owner}.")

    except IndexError:
        await event.message.respond(content="Missing argument.")

    except ValueError:
        # This also covers guildkit.errors.InvalidArgument.
        await event.message.respond(content="Invalid argument passed.")

    except guildkit.PermissionDenied:
        await event.message.respond(content="I'm not allowed to do that here.")

    except guildkit.RateLimited as exc:
        await event.message.respond(content=f"Slow down, try again in {exc.retry_after:.0f} seconds.")

    except guildkit.NotFound:
        await event.message.respond(content="Couldn't find that.")


bot.run()
