from typing import Union

import discord
from discord import app_commands
from discord.ext import commands

from errors import ValidationError

GENERIC_FAILURE = "Something went wrong while processing that command."
DENIED = "You need **Manage Server** permission to use this."

RenamableChannel = Union[discord.TextChannel, discord.VoiceChannel, discord.StageChannel]


def status_text(settings):
    return "Running ✅" if settings.running else "Stopped ⏹️"


class CryptoChannels(commands.Cog):
    def __init__(self, bot):
        self.bot = bot
        self.tracker = bot.tracker

    @app_commands.guild_only()
    @app_commands.default_permissions(manage_guild=True)
    @app_commands.command(name="crypto-add", description="Map a channel to a coin price (updates channel name).")
    @app_commands.describe(
        channel="The channel to rename periodically (voice or text).",
        coin="CoinGecko coin id (e.g. bitcoin, ethereum).",
        label="Custom label prefix for the channel name (e.g. 💲 BTC).",
    )
    async def crypto_add(self, interaction: discord.Interaction, channel: RenamableChannel, coin: str, label: str):
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            mapping = await self.tracker.add_or_update_mapping(interaction.guild_id, channel, coin, label)
        except ValidationError as e:
            return await interaction.followup.send(
                f"❌ {e}\nTip: try lowercase ids like `bitcoin`, `ethereum`, `binancecoin`.", ephemeral=True
            )

        settings = self.tracker.list_mappings(interaction.guild_id)
        embed = discord.Embed(
            title="Crypto Channel Added",
            description=f"This channel will be renamed periodically with **{mapping.coin}** price.",
            color=0x00AAFF,
        )
        embed.add_field(name="Channel", value=channel.mention, inline=True)
        embed.add_field(name="Coin", value=f"`{mapping.coin}`", inline=True)
        embed.add_field(name="Label", value=f"`{mapping.label}`", inline=True)
        embed.add_field(name="Interval", value=f"{settings.interval_minutes} min", inline=True)
        embed.add_field(name="Status", value=status_text(settings), inline=True)
        await interaction.followup.send(embed=embed, ephemeral=True)

    @app_commands.guild_only()
    @app_commands.default_permissions(manage_guild=True)
    @app_commands.command(name="crypto-remove", description="Unmap a channel from crypto updates.")
    @app_commands.describe(channel="The channel to stop updating.")
    async def crypto_remove(self, interaction: discord.Interaction, channel: RenamableChannel):
        if self.tracker.remove_mapping(interaction.guild_id, channel.id):
            content = f"🗑️ Removed mapping for {channel.mention}."
        else:
            content = f"No mapping found for {channel.mention}."
        await interaction.response.send_message(content, ephemeral=True)

    @app_commands.guild_only()
    @app_commands.default_permissions(manage_guild=True)
    @app_commands.command(name="crypto-list", description="Show current crypto channel mappings.")
    async def crypto_list(self, interaction: discord.Interaction):
        settings = self.tracker.list_mappings(interaction.guild_id)
        if not settings.entries:
            return await interaction.response.send_message(
                "No crypto mappings yet. Use **/crypto-add** to create one.", ephemeral=True
            )

        lines = [
            f"{i}. <#{e.channel_id}> → `{e.coin}` • label: `{e.label}`"
            for i, e in enumerate(settings.entries, start=1)
        ]
        embed = discord.Embed(title="Crypto Mappings", description="\n".join(lines), color=0x3A2CD6)
        embed.add_field(name="Interval", value=f"{settings.interval_minutes} min", inline=True)
        embed.add_field(name="Status", value=status_text(settings), inline=True)
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @app_commands.guild_only()
    @app_commands.default_permissions(manage_guild=True)
    @app_commands.command(name="crypto-interval", description="Set update interval in minutes (min 1, default 10).")
    @app_commands.describe(minutes="Number of minutes between updates.")
    async def crypto_interval(self, interaction: discord.Interaction, minutes: app_commands.Range[int, 1, 1440]):
        try:
            self.tracker.set_interval(interaction.guild_id, minutes)
        except ValidationError as e:
            return await interaction.response.send_message(str(e), ephemeral=True)
        await interaction.response.send_message(f"⏱️ Interval set to **{minutes}** minutes.", ephemeral=True)

    @app_commands.guild_only()
    @app_commands.default_permissions(manage_guild=True)
    @app_commands.command(name="crypto-start", description="Start periodic crypto updates.")
    async def crypto_start(self, interaction: discord.Interaction):
        if self.tracker.start(interaction.guild_id):
            content = "Started crypto updates ✅"
        else:
            content = "Already running ✅"
        await interaction.response.send_message(content, ephemeral=True)

    @app_commands.guild_only()
    @app_commands.default_permissions(manage_guild=True)
    @app_commands.command(name="crypto-stop", description="Stop periodic crypto updates.")
    async def crypto_stop(self, interaction: discord.Interaction):
        if self.tracker.stop(interaction.guild_id):
            content = "Stopped crypto updates ⏹️"
        else:
            content = "Already stopped ⏹️"
        await interaction.response.send_message(content, ephemeral=True)

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if interaction.guild is None:
            raise app_commands.NoPrivateMessage()
        perms = getattr(interaction.user, "guild_permissions", None)
        if perms is None or not perms.manage_guild:
            raise app_commands.MissingPermissions(["manage_guild"])
        return True

    async def cog_app_command_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError):
        if isinstance(error, app_commands.MissingPermissions):
            content = DENIED
        elif isinstance(error, app_commands.NoPrivateMessage):
            content = "This command can only be used in a server."
        else:
            # logged by PriceCommandTree.on_error
            content = GENERIC_FAILURE

        if interaction.response.is_done():
            await interaction.followup.send(content, ephemeral=True)
        else:
            await interaction.response.send_message(content, ephemeral=True)


async def setup(bot):
    await bot.add_cog(CryptoChannels(bot))
