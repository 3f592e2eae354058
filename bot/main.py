"""Main bot entry point."""
import logging

import discord
from discord import app_commands
from discord.ext import commands

import config
from bot.cogs import registration
from bot.http_server import start_http_server
from bot.models import init_db
from bot.models.base import async_session_factory
from bot.services.chat_listener import ChatListener
from bot.services.config_store import CHAT_CHANNEL
from bot.services.discord_dm import DiscordMessageSink
from bot.services.state import GameServices
from bot.services.twitch_chat import twitch_client_factory

logging.basicConfig(level=getattr(logging, config.LOG_LEVEL, logging.INFO))
logger = logging.getLogger("mafia")

intents = discord.Intents.default()


class MafiaBot(commands.Bot):
    """Stream Mafia bot: Discord DMs plus the stream chat listener."""

    def __init__(self):
        super().__init__(command_prefix="!", intents=intents)
        self.sink = DiscordMessageSink(self)
        self.services = GameServices(async_session_factory, sink=self.sink)
        self.chat_listener = ChatListener(
            twitch_client_factory,
            self.services.registration.on_chat_message,
            retry_delay=config.CHAT_RECONNECT_DELAY,
            max_attempts=config.CHAT_MAX_RECONNECT_ATTEMPTS,
        )
        self._http_runner = None

    async def on_ready(self) -> None:
        logger.info("Bot ready: %s (ID: %s)", self.user, self.user.id if self.user else "?")
        # Guild-specific sync: commands appear instantly instead of waiting for global propagation
        for guild in list(self.guilds):
            try:
                self.tree.copy_global_to(guild=guild)
                await self.tree.sync(guild=guild)
                logger.info("Commands synced to guild: %s (%s)", guild.name, guild.id)
            except Exception as e:
                logger.warning("Failed to sync to guild %s: %s", guild.name, e)

    async def setup_hook(self) -> None:
        """Setup on bot ready."""
        await init_db()

        self.tree.add_command(registration.register)
        self.tree.add_command(registration.profile)
        await self.tree.sync()
        logger.info("Commands synced")

        # Global error handler: always respond so Discord doesn't show "application did not respond"
        async def on_app_command_error(interaction: discord.Interaction, error: app_commands.AppCommandError) -> None:
            logger.exception("Command error: %s", error)
            msg = "Something went wrong. Check bot logs."
            try:
                if interaction.response.is_done():
                    await interaction.followup.send(msg, ephemeral=True)
                else:
                    await interaction.response.send_message(msg, ephemeral=True)
            except discord.HTTPException:
                logger.warning("Could not report command error to %s", interaction.user)

        self.tree.on_error = on_app_command_error

        self._http_runner = await start_http_server(
            self, self.sink, self.chat_listener, port=config.BOT_INTERNAL_PORT
        )

        channel = await self.services.settings.get(CHAT_CHANNEL)
        await self.chat_listener.start(channel)

    async def close(self) -> None:
        """Cleanup on shutdown."""
        await self.chat_listener.stop()
        if self._http_runner:
            await self._http_runner.cleanup()
        await super().close()


def main() -> None:
    """Run the bot."""
    if not config.DISCORD_TOKEN:
        raise ValueError("DISCORD_TOKEN is required")
    if not (config.TWITCH_CLIENT_ID and config.TWITCH_CLIENT_SECRET and config.TWITCH_BOT_TOKEN):
        logger.warning("Twitch credentials not set - chat registration will not connect")

    bot = MafiaBot()
    bot.run(config.DISCORD_TOKEN)


if __name__ == "__main__":
    main()
