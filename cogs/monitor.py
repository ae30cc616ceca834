import logging

from discord.ext import commands

log = logging.getLogger(__name__)


class GuildMonitor(commands.Cog):
    """Keeps one price-update timer per joined guild whose updates are on."""

    def __init__(self, bot):
        self.bot = bot
        self.store = bot.store
        self.scheduler = bot.scheduler

    def resume(self, guild):
        settings = self.store.get(guild.id)
        if settings.running and not self.scheduler.is_active(guild.id):
            self.scheduler.start(guild.id)

    @commands.Cog.listener()
    async def on_ready(self):
        for guild in self.bot.guilds:
            self.resume(guild)
        log.info("Watching %d guild(s), %d timer(s) active", len(self.bot.guilds), len(self.scheduler.active_guilds()))

    @commands.Cog.listener()
    async def on_guild_join(self, guild):
        log.info("Added to guild %s", guild.id)
        self.store.get(guild.id)
        self.scheduler.start(guild.id)

    @commands.Cog.listener()
    async def on_guild_remove(self, guild):
        log.info("Removed from guild %s", guild.id)
        self.scheduler.stop(guild.id)

    async def cog_unload(self):
        self.scheduler.shutdown()


async def setup(bot):
    await bot.add_cog(GuildMonitor(bot))
