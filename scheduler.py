import asyncio
import logging
from typing import Dict, Optional

from discord.ext import tasks

from reconcile import TickReport

log = logging.getLogger(__name__)


class GuildScheduler:
    """One repeating price-update loop per running guild.

    Ticks for the same guild never overlap. A periodic tick that comes due
    while the previous one is still running is skipped; the first tick after
    a (re)start waits for it instead.
    """

    def __init__(self, store, reconcile, seconds_per_minute=60):
        self.store = store
        self.reconcile = reconcile
        self.seconds_per_minute = seconds_per_minute
        self._loops: Dict[str, tasks.Loop] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._reports: Dict[str, TickReport] = {}

    def is_active(self, guild_id) -> bool:
        loop = self._loops.get(str(guild_id))
        return loop is not None and loop.is_running()

    def active_guilds(self):
        return [gid for gid in self._loops if self.is_active(gid)]

    def last_report(self, guild_id) -> Optional[TickReport]:
        return self._reports.get(str(guild_id))

    async def _tick(self, guild_id, loop):
        lock = self._locks.setdefault(guild_id, asyncio.Lock())
        if lock.locked():
            if loop.current_loop > 0:
                log.warning("Previous update for guild %s still running; skipping tick", guild_id)
                return
            # first tick after a (re)start always runs, once the old one is done
            log.info("Waiting for previous update of guild %s to finish", guild_id)
        async with lock:
            if self._loops.get(guild_id) is not loop:
                return
            try:
                report = await self.reconcile(guild_id)
            except Exception:
                log.exception("Update tick failed for guild %s", guild_id)
                return
        if report is not None:
            self._reports[guild_id] = report
            log.debug("Tick done: %s", report)

    def start(self, guild_id):
        guild_id = str(guild_id)
        self.stop(guild_id)
        settings = self.store.get(guild_id)
        if not settings.running:
            return

        minutes = max(1, int(settings.interval_minutes or 1))

        async def tick():
            # a stopped loop may still wake once before it exits
            if self._loops.get(guild_id) is loop:
                await self._tick(guild_id, loop)

        loop = tasks.loop(seconds=minutes * self.seconds_per_minute, reconnect=False)(tick)
        self._loops[guild_id] = loop
        loop.start()
        log.info("Started update timer for guild %s every %d min", guild_id, minutes)

    def stop(self, guild_id):
        guild_id = str(guild_id)
        loop = self._loops.pop(guild_id, None)
        if loop is None:
            return
        lock = self._locks.get(guild_id)
        if lock is not None and lock.locked():
            # let the running tick finish, then end the loop
            loop.stop()
        else:
            loop.cancel()
        log.info("Stopped update timer for guild %s", guild_id)

    def shutdown(self):
        for guild_id in list(self._loops):
            self.stop(guild_id)
