import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import discord

from utils import channel_name

log = logging.getLogger(__name__)

NO_PRICE = "no-price"
CHANNEL_NOT_FOUND = "channel-not-found"
MISSING_PERMISSION = "missing-permission"
RENAME_FAILED = "rename-failed"

VERBATIM_NAMES = (discord.VoiceChannel, discord.StageChannel)


@dataclass
class TickReport:
    guild_id: str
    renamed: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    skipped: List[Tuple[str, str]] = field(default_factory=list)
    halted: bool = False
    prices_ok: bool = True

    def __str__(self):
        return (
            f"guild {self.guild_id}: {len(self.renamed)} renamed, {len(self.unchanged)} unchanged, "
            f"{len(self.skipped)} skipped{' (halted)' if self.halted else ''}"
        )


class Reconciler:
    """Brings the channel names of one guild in line with current prices."""

    def __init__(self, bot, store, prices):
        self.bot = bot
        self.store = store
        self.prices = prices

    async def reconcile(self, guild_id) -> Optional[TickReport]:
        guild_id = str(guild_id)
        guild = self.bot.get_guild(int(guild_id))
        if guild is None:
            # timer outlived our membership
            return None

        entries = list(self.store.get(guild_id).entries)
        report = TickReport(guild_id=guild_id)
        if not entries:
            return report

        lookup = await self.prices.lookup_prices({e.coin.lower() for e in entries})
        report.prices_ok = lookup.ok

        for entry in entries:
            price = lookup.prices.get(entry.coin.lower())
            if price is None:
                log.warning("No price for %s; skipping channel %s", entry.coin, entry.channel_id)
                report.skipped.append((entry.channel_id, NO_PRICE))
                continue

            name = channel_name(entry.label, price)

            channel = guild.get_channel(int(entry.channel_id))
            if channel is None:
                log.warning("Channel %s not found in guild %s; keeping mapping", entry.channel_id, guild_id)
                report.skipped.append((entry.channel_id, CHANNEL_NOT_FOUND))
                continue

            me = guild.me
            if me is None or not me.guild_permissions.manage_channels:
                log.warning("Missing Manage Channels permission in guild %s", guild_id)
                report.skipped.append((entry.channel_id, MISSING_PERMISSION))
                report.halted = True
                break

            # Discord rewrites text-channel names, so only voice-like names compare
            if isinstance(channel, VERBATIM_NAMES) and channel.name == name:
                report.unchanged.append(entry.channel_id)
                continue

            try:
                await channel.edit(name=name, reason="Crypto price update")
            except discord.HTTPException as e:
                log.error("Failed to rename channel %s: %s", entry.channel_id, e)
                report.skipped.append((entry.channel_id, RENAME_FAILED))
                continue

            log.info("Updated %s -> %s", entry.channel_id, name)
            report.renamed.append(entry.channel_id)

        return report
