"""
Catchphrase admin commands.

Slash commands for managing a guild's phrases, allowed channels, config and
snapshots. All of them delegate to AdminService and only format the result.

A guild's state can stay locked for the length of an oracle call, so every
command acknowledges the interaction before it touches that state and
answers through the followup webhook.
"""
from __future__ import annotations

import asyncio
import io
import logging
from typing import TYPE_CHECKING, Iterable, List, Optional

import discord
from discord import app_commands

from core.config import config_to_text
from core.constants import EMBED_COLOR
from core.types import AdminResult, PhraseEntry
from core.utils import chunk_lines, code_block, extract_code_block, parse_keywords, sanitize_text

if TYPE_CHECKING:
    from bot.client import CatchphraseBot

logger = logging.getLogger("catchphrase.commands")

AWAIT_REPLY_SECONDS = 120.0
# Discord caps an embed at 25 fields and 6000 characters overall
MAX_EMBED_FIELDS = 25
MAX_EMBED_CHARS = 6000
FIELD_LIMIT = 1024
# Room kept for the trailing "N more" field
MORE_FIELD_RESERVE = 20
MESSAGE_LIMIT = 2000


def make_embed(title: str, *fields: tuple[str, str, bool]) -> discord.Embed:
    embed = discord.Embed(title=title, color=EMBED_COLOR)
    for name, value, inline in fields:
        embed.add_field(name=name, value=value[:FIELD_LIMIT] or "\u200b", inline=inline)
    return embed


def describe_phrase(entry: PhraseEntry) -> str:
    if entry.keywords:
        return f"{entry.text}\nkeywords: {', '.join(entry.keywords)}"
    return entry.text


def phrase_fields(entries: List[PhraseEntry], title: str = "") -> List[tuple[str, str, bool]]:
    """
    One field per phrase, numbered in registration order.

    Stays within the embed field count and total size limits; whatever
    doesn't fit is summarised in a last "N more" field.
    """
    fields = [(str(index), describe_phrase(entry)[:FIELD_LIMIT], True) for index, entry in enumerate(entries)]
    available = MAX_EMBED_CHARS - len(title)
    if len(fields) <= MAX_EMBED_FIELDS and sum(len(n) + len(v) for n, v, _ in fields) <= available:
        return fields

    available -= MORE_FIELD_RESERVE
    shown: List[tuple[str, str, bool]] = []
    used = 0
    for field in fields:
        size = len(field[0]) + len(field[1])
        if len(shown) == MAX_EMBED_FIELDS - 1 or used + size > available:
            break
        shown.append(field)
        used += size
    shown.append(("...", f"{len(fields) - len(shown)} more", False))
    return shown


def channel_lines(channel_ids: Iterable[int]) -> List[str]:
    return [f"<#{channel_id}> (`{channel_id}`)" for channel_id in channel_ids]


def is_owner(bot: "CatchphraseBot", user: discord.abc.User) -> bool:
    """
    Owners come from OWNER_IDS. Without any configured, members who can
    manage the server count as owners.
    """
    if bot.settings.owner_ids:
        return user.id in bot.settings.owner_ids
    perms = getattr(user, "guild_permissions", None)
    return bool(perms and (perms.administrator or perms.manage_guild))


def result_field(result: AdminResult) -> tuple[str, str, bool]:
    if not result.ok:
        return ("error: ", sanitize_text(result.error), False)
    if result.warning:
        return ("warning: ", sanitize_text(result.warning), False)
    return ("status: ", "ok", True)


async def _deny(interaction: discord.Interaction) -> None:
    await interaction.response.send_message(
        "You don't have permission to use this command.",
        ephemeral=True,
    )


async def _await_code_block(
    bot: "CatchphraseBot",
    interaction: discord.Interaction,
    title: str,
) -> Optional[tuple[discord.Message, str]]:
    """
    Ask the invoker to post a fenced code block and wait for it.

    Returns the reply and its body, or None after telling the user what
    went wrong.
    """
    await interaction.response.send_message(
        embed=make_embed(title, ("config values:", "awaiting message", True)),
    )

    def _check(message: discord.Message) -> bool:
        return message.author.id == interaction.user.id and message.channel.id == interaction.channel_id

    try:
        reply = await bot.wait_for("message", check=_check, timeout=AWAIT_REPLY_SECONDS)
    except asyncio.TimeoutError:
        await interaction.edit_original_response(
            embed=make_embed(title, ("config values:", "failed awaiting message", True)),
        )
        return None

    body = extract_code_block(reply.content)
    if body is None:
        await interaction.edit_original_response(
            embed=make_embed(title, ("config values:", "expected codeblock", True)),
        )
        return None
    return reply, body


async def _delete_quietly(message: discord.Message) -> None:
    try:
        await message.delete()
    except discord.HTTPException as exc:
        logger.debug("Could not delete message %s: %s", message.id, exc)


def register_commands(bot: "CatchphraseBot") -> None:
    """Register the catchphrase slash commands on ``bot.tree``."""
    admin = bot.admin

    @app_commands.command(name="add_catchphrase", description="Adds a catchphrase")
    @app_commands.describe(
        catchphrase="Added catchphrase",
        keywords="Comma separated keywords to match instead of the phrase text",
    )
    @app_commands.guild_only()
    async def add_catchphrase(
        interaction: discord.Interaction,
        catchphrase: str,
        keywords: Optional[str] = None,
    ) -> None:
        if not is_owner(bot, interaction.user):
            await _deny(interaction)
            return
        await interaction.response.defer()
        words = parse_keywords(keywords)
        result = await admin.add_phrase(interaction.guild_id, catchphrase, words)
        fields = [("catchphrase: ", catchphrase, True)]
        if words:
            fields.append(("keywords: ", ", ".join(words), True))
        title = "Added catchphrase" if result.ok and result.value else "Updated catchphrase"
        if not result.ok:
            title = "Add catchphrase"
        await interaction.followup.send(embed=make_embed(title, *fields, result_field(result)))

    @app_commands.command(name="remove_catchphrase", description="Removes a catchphrase")
    @app_commands.describe(catchphrase="Removed catchphrase")
    @app_commands.guild_only()
    async def remove_catchphrase(interaction: discord.Interaction, catchphrase: str) -> None:
        if not is_owner(bot, interaction.user):
            await _deny(interaction)
            return
        await interaction.response.defer()
        result = await admin.remove_phrase(interaction.guild_id, catchphrase)
        if result.ok and not result.value:
            field = ("error: ", f"{sanitize_text(catchphrase, 200)} does not exist", True)
        else:
            field = result_field(result)
        await interaction.followup.send(
            embed=make_embed("Removed phrase", ("phrase: ", catchphrase, True), field),
        )

    @app_commands.command(name="list_catchphrases", description="Lists all catchphrases")
    @app_commands.guild_only()
    async def list_catchphrases(interaction: discord.Interaction) -> None:
        await interaction.response.defer()
        result = await admin.list_phrases(interaction.guild_id)
        if not result.ok:
            await interaction.followup.send(embed=make_embed("Phrases", result_field(result)))
            return
        fields = phrase_fields(result.value, "Phrases") or [("none", "No catchphrases registered.", False)]
        await interaction.followup.send(embed=make_embed("Phrases", *fields))

    @app_commands.command(name="show_config", description="Shows the bot config")
    @app_commands.guild_only()
    async def show_config(interaction: discord.Interaction) -> None:
        if not is_owner(bot, interaction.user):
            await _deny(interaction)
            return
        await interaction.response.defer()
        result = await admin.get_config(interaction.guild_id)
        if not result.ok:
            await interaction.followup.send(embed=make_embed("Config", result_field(result)))
            return
        await interaction.followup.send(
            embed=make_embed("Config", ("config values:", code_block(config_to_text(result.value)), False)),
        )

    @app_commands.command(name="load_config", description="Loads the bot config from your next message")
    @app_commands.guild_only()
    async def load_config(interaction: discord.Interaction) -> None:
        if not is_owner(bot, interaction.user):
            await _deny(interaction)
            return
        # "awaiting message" is the acknowledgement
        received = await _await_code_block(bot, interaction, "Edit config")
        if received is None:
            return
        reply, body = received
        result = await admin.set_config(interaction.guild_id, body)
        if not result.ok:
            await interaction.edit_original_response(
                embed=make_embed("Edit config", ("config values:", sanitize_text(result.error), True)),
            )
            return
        fields = [("config values:", code_block(config_to_text(result.value)), False)]
        if result.warning:
            fields.append(result_field(result))
        await interaction.edit_original_response(embed=make_embed("Edit config", *fields))
        await _delete_quietly(reply)

    @app_commands.command(name="dump_state", description="Shows this server's phrases, channels and config")
    @app_commands.guild_only()
    async def dump_state(interaction: discord.Interaction) -> None:
        if not is_owner(bot, interaction.user):
            await _deny(interaction)
            return
        await interaction.response.defer()
        result = await admin.dump_state(interaction.guild_id)
        if not result.ok:
            await interaction.followup.send(embed=make_embed("Server state", result_field(result)))
            return
        text = code_block(result.value)
        if len(text) <= MESSAGE_LIMIT:
            await interaction.followup.send(text)
            return
        file = discord.File(
            fp=io.BytesIO(result.value.encode("utf-8")),
            filename=f"{interaction.guild_id}.json",
        )
        await interaction.followup.send("Server state attached.", file=file)

    @app_commands.command(name="load_state", description="Replaces this server's state from your next message")
    @app_commands.guild_only()
    async def load_state(interaction: discord.Interaction) -> None:
        if not is_owner(bot, interaction.user):
            await _deny(interaction)
            return
        received = await _await_code_block(bot, interaction, "Load state")
        if received is None:
            return
        reply, body = received
        result = await admin.load_state(interaction.guild_id, body)
        if not result.ok:
            await interaction.edit_original_response(
                embed=make_embed("Load state", ("config values:", sanitize_text(result.error), True)),
            )
            return
        snapshot = result.value
        await interaction.edit_original_response(
            embed=make_embed(
                "Load state",
                ("phrases:", str(len(snapshot.phrases)), True),
                ("channels:", str(len(snapshot.allowed_channels)), True),
                result_field(result),
            ),
        )
        await _delete_quietly(reply)

    @app_commands.command(name="add_channel", description="Allows catchphrases in a channel")
    @app_commands.describe(channel="Channel to allow")
    @app_commands.guild_only()
    async def add_channel(interaction: discord.Interaction, channel: discord.TextChannel) -> None:
        if not is_owner(bot, interaction.user):
            await _deny(interaction)
            return
        await interaction.response.defer()
        result = await admin.add_allowed_channel(interaction.guild_id, channel.id)
        status = result_field(result)
        if result.ok and not result.value:
            status = ("status: ", "already allowed", True)
        await interaction.followup.send(
            embed=make_embed("Added channel", ("channel: ", channel.mention, True), status),
        )

    @app_commands.command(name="remove_channel", description="Stops catchphrases in a channel")
    @app_commands.describe(channel="Channel to remove")
    @app_commands.guild_only()
    async def remove_channel(interaction: discord.Interaction, channel: discord.TextChannel) -> None:
        if not is_owner(bot, interaction.user):
            await _deny(interaction)
            return
        await interaction.response.defer()
        result = await admin.remove_allowed_channel(interaction.guild_id, channel.id)
        status = result_field(result)
        if result.ok and not result.value:
            status = ("error: ", "channel was not allowed", True)
        await interaction.followup.send(
            embed=make_embed("Removed channel", ("channel: ", channel.mention, True), status),
        )

    @app_commands.command(name="list_channels", description="Lists channels catchphrases may be sent in")
    @app_commands.guild_only()
    async def list_channels(interaction: discord.Interaction) -> None:
        await interaction.response.defer()
        result = await admin.list_allowed_channels(interaction.guild_id)
        if not result.ok:
            await interaction.followup.send(embed=make_embed("Channels", result_field(result)))
            return
        chunks = chunk_lines(channel_lines(result.value)) or ["No channels allowed."]
        fields = [("channels:" if i == 0 else "\u200b", chunk, False) for i, chunk in enumerate(chunks)]
        # channel lines are short; five full chunks already stay under the total limit
        await interaction.followup.send(embed=make_embed("Channels", *fields[:5]))

    @app_commands.command(name="remove_server", description="Forgets this server's catchphrases, channels and config")
    @app_commands.guild_only()
    async def remove_server(interaction: discord.Interaction) -> None:
        if not is_owner(bot, interaction.user):
            await _deny(interaction)
            return
        await interaction.response.defer(ephemeral=True)
        result = await admin.remove_guild(interaction.guild_id)
        await interaction.followup.send(embed=make_embed("Remove server", result_field(result)), ephemeral=True)

    @app_commands.command(name="dump_configs", description="Saves every server's state to disk")
    async def dump_configs(interaction: discord.Interaction) -> None:
        if not is_owner(bot, interaction.user):
            await _deny(interaction)
            return
        await interaction.response.defer(ephemeral=True)
        report = await admin.persist_all()
        fields = [("saved:", str(len(report.saved)), True)]
        if report.failed:
            lines = [f"{guild_id}: {error}" for guild_id, error in report.failed.items()]
            fields.append(("failed:", sanitize_text("\n".join(lines), FIELD_LIMIT), False))
        await interaction.followup.send(embed=make_embed("Dump configs", *fields), ephemeral=True)

    for command in (
        add_catchphrase,
        remove_catchphrase,
        list_catchphrases,
        show_config,
        load_config,
        dump_state,
        load_state,
        add_channel,
        remove_channel,
        list_channels,
        remove_server,
        dump_configs,
    ):
        bot.tree.add_command(command)
