import logging

import discord
from discord import app_commands
from discord.ext import commands

from coingecko import PriceClient
from reconcile import Reconciler
from scheduler import GuildScheduler
from settings import Settings
from store import GuildConfigStore, JsonFileBackend, SqliteBackend
from tracker import PriceTracker

log = logging.getLogger(__name__)

EXTENSIONS = ("cogs.crypto", "cogs.monitor")


class PriceCommandTree(app_commands.CommandTree):
    async def on_error(self, interaction, error):
        # denials are answered by the cog and are not faults
        if isinstance(error, app_commands.CheckFailure):
            return
        name = getattr(interaction.command, "name", "?")
        log.error("Interaction error in /%s", name, exc_info=error)


def make_backend(settings):
    if settings.storage == "sqlite":
        return SqliteBackend(settings.db_path)
    return JsonFileBackend(settings.config_path)


class PriceBot(commands.Bot):
    def __init__(self, settings):
        intents = discord.Intents.none()
        intents.guilds = True
        super().__init__(command_prefix=commands.when_mentioned, intents=intents, tree_cls=PriceCommandTree)
        self.settings = settings

        self.store = GuildConfigStore(make_backend(settings))
        self.prices = PriceClient(settings.api_url, timeout=settings.http_timeout)
        self.reconciler = Reconciler(self, self.store, self.prices)
        self.scheduler = GuildScheduler(self.store, self.reconciler.reconcile)
        self.tracker = PriceTracker(self.store, self.scheduler, self.prices)

    async def setup_hook(self):
        for ext in EXTENSIONS:
            await self.load_extension(ext)
        if self.settings.sync_commands:
            try:
                await self.tree.sync()
                log.info("Slash commands registered globally.")
            except discord.HTTPException as e:
                log.error("Slash command registration failed: %s", e)

    async def on_ready(self):
        log.info("Logged in as %s", self.user)

    async def close(self):
        self.scheduler.shutdown()
        await super().close()


def main():
    settings = Settings()
    if not settings.bot_token:
        raise SystemExit("Missing BOT_TOKEN in environment. Create a .env file with BOT_TOKEN=your_token")

    bot = PriceBot(settings)
    bot.run(settings.bot_token, log_level=logging.getLevelName(settings.log_level), root_logger=True)


if __name__ == "__main__":
    main()
