"""Tests for the slash-command cog and the guild lifecycle cog."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from discord import app_commands

from cogs.crypto import DENIED, GENERIC_FAILURE, CryptoChannels
from cogs.monitor import GuildMonitor
from conftest import make_channel, make_guild, make_prices
from tracker import PriceTracker


def _interaction(guild_id: int = 77, manage_guild: bool = True, done: bool = False) -> MagicMock:
    interaction = MagicMock()
    interaction.guild_id = guild_id
    interaction.guild = MagicMock(id=guild_id)
    interaction.user.guild_permissions.manage_guild = manage_guild
    interaction.response.is_done.return_value = done
    interaction.response.send_message = AsyncMock()
    interaction.response.defer = AsyncMock()
    interaction.followup.send = AsyncMock()
    return interaction


@pytest.fixture
def cog(store) -> CryptoChannels:
    bot = MagicMock()
    bot.tracker = PriceTracker(store, MagicMock(), make_prices({"bitcoin": 2.5}))
    return CryptoChannels(bot)


@pytest.mark.asyncio
class TestCryptoChannels:
    async def test_unauthorized_user_is_denied(self, cog) -> None:
        with pytest.raises(app_commands.MissingPermissions):
            await cog.interaction_check(_interaction(manage_guild=False))

    async def test_direct_message_is_rejected(self, cog) -> None:
        interaction = _interaction()
        interaction.guild = None
        with pytest.raises(app_commands.NoPrivateMessage):
            await cog.interaction_check(interaction)

    async def test_denial_reply(self, cog) -> None:
        interaction = _interaction(manage_guild=False)

        await cog.cog_app_command_error(interaction, app_commands.MissingPermissions(["manage_guild"]))

        interaction.response.send_message.assert_awaited_once_with(DENIED, ephemeral=True)

    async def test_unexpected_error_gets_generic_reply(self, cog) -> None:
        interaction = _interaction(done=True)
        command = MagicMock()
        command.name = "crypto-add"
        error = app_commands.CommandInvokeError(command, RuntimeError("secret detail"))

        await cog.cog_app_command_error(interaction, error)

        interaction.followup.send.assert_awaited_once_with(GENERIC_FAILURE, ephemeral=True)

    async def test_add_then_list(self, cog, store) -> None:
        channel = make_channel(5)
        interaction = _interaction()

        await cog.crypto_add.callback(cog, interaction, channel, "bitcoin", "BTC")

        embed = interaction.followup.send.await_args.kwargs["embed"]
        assert embed.title == "Crypto Channel Added"
        assert [e.channel_id for e in store.get(77).entries] == ["5"]

        interaction = _interaction()
        await cog.crypto_list.callback(cog, interaction)
        embed = interaction.response.send_message.await_args.kwargs["embed"]
        assert "<#5> → `bitcoin`" in embed.description

    async def test_add_unknown_coin_replies_with_rejection(self, cog, store) -> None:
        interaction = _interaction()

        await cog.crypto_add.callback(cog, interaction, make_channel(5), "notacoin", "X")

        content = interaction.followup.send.await_args.args[0]
        assert "notacoin" in content
        assert store.get(77).entries == []

    async def test_remove_missing_mapping(self, cog) -> None:
        interaction = _interaction()

        await cog.crypto_remove.callback(cog, interaction, make_channel(9))

        interaction.response.send_message.assert_awaited_once_with("No mapping found for <#9>.", ephemeral=True)


@pytest.mark.asyncio
class TestGuildMonitor:
    def _monitor(self, store, guilds=()) -> tuple[GuildMonitor, MagicMock]:
        bot = MagicMock()
        bot.guilds = list(guilds)
        bot.store = store
        bot.scheduler = MagicMock()
        bot.scheduler.is_active.return_value = False
        return GuildMonitor(bot), bot.scheduler

    async def test_ready_starts_only_running_guilds(self, store) -> None:
        store.set_running(2, False)
        monitor, scheduler = self._monitor(store, [make_guild(1), make_guild(2)])

        await monitor.on_ready()

        scheduler.start.assert_called_once_with(1)

    async def test_join_creates_record_and_starts(self, store) -> None:
        monitor, scheduler = self._monitor(store)

        await monitor.on_guild_join(make_guild(3))

        assert "3" in store.guild_ids()
        scheduler.start.assert_called_once_with(3)

    async def test_leave_stops_and_keeps_config(self, store) -> None:
        store.upsert_mapping(4, 40, "bitcoin", "BTC")
        monitor, scheduler = self._monitor(store)

        await monitor.on_guild_remove(make_guild(4))

        scheduler.stop.assert_called_once_with(4)
        assert len(store.get(4).entries) == 1
