"""
Discord bot client - lean event handling and command registration.

Business logic is delegated to the responder engine, the admin service and
the guild state store.
"""
from __future__ import annotations

import asyncio
import logging

import discord
from discord import app_commands

from core.config import BotSettings
from core.storage import SnapshotStore
from modules.catchphrases import register_commands
from responders.engine import CatchphraseEngine
from services.admin_service import AdminService
from services.oracle import RelevanceOracleClient

from .guild_state import GuildStateStore

logger = logging.getLogger("catchphrase")


class CatchphraseBot(discord.Client):
    """
    Main Discord bot client.

    Handles:
    - Discord events (on_ready, on_message, guild joins)
    - Command registration
    - Loading and saving guild snapshots
    """

    def __init__(self, settings: BotSettings) -> None:
        intents = discord.Intents.default()
        intents.message_content = True
        intents.guilds = True
        super().__init__(intents=intents)

        self.settings = settings
        self.tree = app_commands.CommandTree(self)
        self.tree.on_error = self._on_tree_error
        self.store = GuildStateStore()
        self.snapshot_store = SnapshotStore(settings.data_dir)
        self.oracle = RelevanceOracleClient(
            api_key=settings.oracle_api_key,
            base_url=settings.oracle_base_url,
            model=settings.oracle_model,
            timeout_seconds=settings.oracle_timeout_seconds,
        )
        self.engine = CatchphraseEngine(
            self.store,
            self.oracle,
            history_limit=settings.history_limit,
        )
        self.admin = AdminService(self.store, self.snapshot_store)
        self.ready_once = False
        self._dispatch_tasks: set[asyncio.Task] = set()

    # ─── Lifecycle ────────────────────────────────────────────────────────────

    async def setup_hook(self) -> None:
        """Called when the bot is starting up."""
        register_commands(self)
        await self.tree.sync()

    async def on_ready(self) -> None:
        """Called when the bot is ready."""
        if self.user is not None:
            self.engine.bot_user_id = self.user.id
        if not self.ready_once:
            logger.info("Bot ready as %s", self.user)
            self.ready_once = True
            await self._load_guild_states()

    async def close(self) -> None:
        """Persist guild state, then shut down."""
        for task in list(self._dispatch_tasks):
            task.cancel()
        if self.ready_once:
            report = await self.admin.persist_all()
            if not report.ok:
                logger.error("Failed to persist %d guilds on shutdown", len(report.failed))
        await self.oracle.close()
        await super().close()

    # ─── Guild State Management ───────────────────────────────────────────────

    async def _load_guild_states(self) -> None:
        """Restore saved guilds, then register any others the bot is in."""
        snapshots, failures = await self.snapshot_store.load_all()
        for guild_id, snapshot in snapshots.items():
            await self.store.restore(guild_id, snapshot)
        if failures:
            logger.warning("Skipped %d unreadable guild snapshots", len(failures))

        for guild in self.guilds:
            await self.store.ensure(guild.id)
        logger.info("Tracking %d guilds", len(self.store))

    # ─── Guild Events ─────────────────────────────────────────────────────────

    async def on_guild_join(self, guild: discord.Guild) -> None:
        """Called when the bot joins a guild."""
        await self.store.ensure(guild.id)

    # ─── Message Events ───────────────────────────────────────────────────────

    async def on_message(self, message: discord.Message) -> None:
        """Handle incoming messages."""
        if message.guild is None:
            return
        if self.user is not None and message.author.id == self.user.id:
            return

        task = asyncio.create_task(self._safe_dispatch(message))
        self._dispatch_tasks.add(task)
        task.add_done_callback(self._dispatch_tasks.discard)

    async def _safe_dispatch(self, message: discord.Message) -> None:
        """Run the responder; nothing it raises may reach the gateway."""
        try:
            outcome = await self.engine.handle_message(message)
        except Exception as e:
            logger.error("Responder error for message %s: %s", message.id, e, exc_info=True)
            return
        logger.debug("Message %s outcome=%s", message.id, outcome.value)

    # ─── Slash command errors ─────────────────────────────────────────────────

    async def _on_tree_error(
        self,
        interaction: discord.Interaction,
        error: app_commands.AppCommandError,
    ) -> None:
        logger.error("Command %s failed: %s", getattr(interaction.command, "name", "?"), error)
        try:
            if interaction.response.is_done():
                await interaction.followup.send("Something went wrong.", ephemeral=True)
            else:
                await interaction.response.send_message("Something went wrong.", ephemeral=True)
        except discord.HTTPException:
            pass
