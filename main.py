"""
Main entry point for the catchphrase bot.

Loads configuration from environment and starts the bot.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from dotenv import load_dotenv
from discord.errors import LoginFailure, PrivilegedIntentsRequired

# Load environment variables from .env file
env_path = Path(__file__).parent / ".env"
load_dotenv(env_path)

from bot import CatchphraseBot
from core.config import BotSettings

settings = BotSettings.from_env()
LOG_LEVEL = getattr(logging, settings.log_level, logging.INFO)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("catchphrase")
logging.getLogger("discord").setLevel(LOG_LEVEL)
logging.getLogger("asyncio").setLevel(LOG_LEVEL)

# Suppress verbose third-party library logs unless LOG_LEVEL is DEBUG
if settings.log_level != "DEBUG":
    logging.getLogger("discord.gateway").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

if not env_path.exists():
    logger.warning(".env file not found at %s", env_path)


async def main() -> None:
    if not settings.bot_token:
        logger.error("Missing bot token. Set DISCORD_BOT_TOKEN in .env or environment.")
        return
    if not settings.oracle_api_key:
        logger.warning("ORACLE_API_KEY is not set; search requests will be unauthenticated.")

    bot = CatchphraseBot(settings)
    async with bot:
        try:
            await bot.start(settings.bot_token)
        except PrivilegedIntentsRequired:
            logger.error(
                "Privileged intents required. Enable the MESSAGE CONTENT intent "
                "in the Discord developer portal."
            )
        except LoginFailure:
            logger.error(
                "Token is invalid. Reset it in the Discord developer portal and "
                "update DISCORD_BOT_TOKEN in your .env file."
            )


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
