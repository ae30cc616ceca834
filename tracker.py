import logging

import discord

from errors import ValidationError
from utils import channel_name, normalize_coin

log = logging.getLogger(__name__)


class PriceTracker:
    """Operations behind the slash commands.

    Each call updates the guild config and keeps the guild's timer in step
    with it.
    """

    def __init__(self, store, scheduler, prices):
        self.store = store
        self.scheduler = scheduler
        self.prices = prices

    async def add_or_update_mapping(self, guild_id, channel, coin, label):
        coin = normalize_coin(coin)
        label = label.strip()
        if not coin:
            raise ValidationError("Coin id must not be empty.")
        if not label:
            raise ValidationError("Label must not be empty.")
        if not await self.prices.validate_id(coin):
            raise ValidationError(f"Coin id `{coin}` not found on CoinGecko.")

        mapping = self.store.upsert_mapping(guild_id, channel.id, coin, label)
        await self._preview(channel, coin, label)
        return mapping

    async def _preview(self, channel, coin, label):
        price = await self.prices.fetch_price(coin)
        if price is None:
            return
        try:
            await channel.edit(name=channel_name(label, price), reason="Crypto price update")
        except discord.HTTPException as e:
            # the timer will retry on its next tick
            log.warning("Preview rename of %s failed: %s", channel.id, e)

    def remove_mapping(self, guild_id, channel_id) -> bool:
        return self.store.remove_mapping(guild_id, channel_id)

    def list_mappings(self, guild_id):
        return self.store.get(guild_id)

    def set_interval(self, guild_id, minutes):
        self.store.set_interval(guild_id, minutes)
        if self.store.get(guild_id).running:
            self.scheduler.start(guild_id)

    def start(self, guild_id) -> bool:
        settings = self.store.get(guild_id)
        if settings.running and self.scheduler.is_active(guild_id):
            return False
        self.store.set_running(guild_id, True)
        self.scheduler.start(guild_id)
        return True

    def stop(self, guild_id) -> bool:
        settings = self.store.get(guild_id)
        if not settings.running:
            self.scheduler.stop(guild_id)
            return False
        self.store.set_running(guild_id, False)
        self.scheduler.stop(guild_id)
        return True
