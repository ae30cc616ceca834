"""Shared fixtures and fakes.

The Discord objects (bot, guild, channel) and the HTTP session are plain
``unittest.mock`` doubles; nothing here talks to Discord or CoinGecko.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from coingecko import PriceLookup
from store import GuildConfigStore, MemoryBackend


def make_channel(channel_id: int, name: str = "old-name", edit_side_effect=None, spec=None) -> MagicMock:
    channel = MagicMock(spec=spec)
    channel.id = channel_id
    channel.name = name
    channel.mention = f"<#{channel_id}>"
    channel.edit = AsyncMock(side_effect=edit_side_effect)
    return channel


def make_guild(guild_id: int, channels=(), manage_channels: bool = True) -> MagicMock:
    guild = MagicMock()
    guild.id = guild_id
    by_id = {c.id: c for c in channels}
    guild.get_channel.side_effect = by_id.get
    guild.me.guild_permissions.manage_channels = manage_channels
    return guild


def make_bot(*guilds) -> MagicMock:
    bot = MagicMock()
    by_id = {g.id: g for g in guilds}
    bot.get_guild.side_effect = by_id.get
    bot.guilds = list(guilds)
    return bot


def make_prices(prices=None, ok: bool = True, catalog=("bitcoin", "ethereum", "dogecoin")) -> MagicMock:
    client = MagicMock()
    lookup = PriceLookup(prices=dict(prices or {}), ok=ok, error=None if ok else "HTTP 500")
    client.lookup_prices = AsyncMock(return_value=lookup)
    client.fetch_prices = AsyncMock(return_value=lookup.prices)
    client.fetch_price = AsyncMock(side_effect=lambda coin: lookup.prices.get(coin))
    client.validate_id = AsyncMock(side_effect=lambda coin: coin.lower() in catalog)
    return client


async def wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def store(backend: MemoryBackend) -> GuildConfigStore:
    return GuildConfigStore(backend)
