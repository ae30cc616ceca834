"""Per-guild configuration: interval, run flag and channel mappings.

The whole store is one document, ``{"guilds": {<guild id>: {...}}}``, which is
rewritten in full by the persistence backend after every mutation.
"""
from __future__ import annotations

import copy
import json
import logging
import os
import sqlite3
import tempfile
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from errors import PersistenceError, ValidationError

log = logging.getLogger(__name__)

DEFAULT_INTERVAL = 10
MIN_INTERVAL = 1
MAX_INTERVAL = 1440


def empty_document() -> dict:
    return {"guilds": {}}


def _flag(val) -> bool:
    if isinstance(val, str):
        return val.strip().lower() in ("true", "1", "yes")
    return bool(val)


@dataclass
class ChannelMapping:
    channel_id: str
    coin: str
    label: str

    def to_dict(self) -> dict:
        return {"channelId": self.channel_id, "coin": self.coin, "label": self.label}

    @classmethod
    def from_dict(cls, data: dict) -> "ChannelMapping":
        return cls(channel_id=str(data["channelId"]), coin=str(data["coin"]).lower(), label=str(data["label"]))


@dataclass
class GuildSettings:
    interval_minutes: int = DEFAULT_INTERVAL
    running: bool = True
    entries: List[ChannelMapping] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "intervalMinutes": self.interval_minutes,
            "running": self.running,
            "entries": [e.to_dict() for e in self.entries],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GuildSettings":
        interval = int(data.get("intervalMinutes") or DEFAULT_INTERVAL)
        return cls(
            interval_minutes=min(max(interval, MIN_INTERVAL), MAX_INTERVAL),
            running=_flag(data.get("running", True)),
            entries=[ChannelMapping.from_dict(e) for e in data.get("entries", [])],
        )

    def find(self, channel_id: str) -> Optional[int]:
        for i, entry in enumerate(self.entries):
            if entry.channel_id == channel_id:
                return i
        return None


# ---------------------------------------------------------------------------
# Persistence backends
# ---------------------------------------------------------------------------


class MemoryBackend:
    """Keeps a detached copy of the document; used by the tests."""

    def __init__(self, document: Optional[dict] = None):
        self.document = copy.deepcopy(document) if document is not None else empty_document()
        self.saves = 0

    def load(self) -> dict:
        return copy.deepcopy(self.document)

    def save(self, document: dict) -> None:
        self.document = copy.deepcopy(document)
        self.saves += 1


class JsonFileBackend:
    def __init__(self, path):
        self.path = os.fspath(path)

    def load(self) -> dict:
        if not os.path.exists(self.path):
            self.save(empty_document())
        with open(self.path, encoding="utf-8") as f:
            return json.load(f)

    def save(self, document: dict) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        tmp = None
        try:
            fd, tmp = tempfile.mkstemp(dir=directory, prefix=".config-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
            os.replace(tmp, self.path)
        except OSError as e:
            if tmp is not None and os.path.exists(tmp):
                os.unlink(tmp)
            raise PersistenceError(f"could not write {self.path}: {e}") from e


class SqliteBackend:
    """Stores the document as a single JSON row."""

    def __init__(self, path):
        self.conn = sqlite3.connect(os.fspath(path), check_same_thread=False)
        self.conn.execute(
            """CREATE TABLE IF NOT EXISTS guild_config
               (id INTEGER PRIMARY KEY CHECK (id = 1),
                document TEXT NOT NULL)"""
        )
        self.conn.commit()

    def load(self) -> dict:
        row = self.conn.execute("SELECT document FROM guild_config WHERE id = 1").fetchone()
        if row is None:
            document = empty_document()
            self.save(document)
            return document
        return json.loads(row[0])

    def save(self, document: dict) -> None:
        try:
            with self.conn:
                self.conn.execute(
                    "INSERT OR REPLACE INTO guild_config (id, document) VALUES (1, ?)",
                    (json.dumps(document, ensure_ascii=False),),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"could not write guild config: {e}") from e

    def close(self) -> None:
        self.conn.close()


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class GuildConfigStore:
    def __init__(self, backend):
        self.backend = backend
        self._guilds: Dict[str, GuildSettings] = self._load()

    def _load(self) -> Dict[str, GuildSettings]:
        try:
            document = self.backend.load()
            return {str(gid): GuildSettings.from_dict(data) for gid, data in document.get("guilds", {}).items()}
        except (OSError, ValueError, KeyError, TypeError, AttributeError, sqlite3.Error, PersistenceError) as e:
            log.error("Failed to load guild config, starting empty: %s", e)
            return {}

    def _persist(self) -> None:
        document = {"guilds": {gid: s.to_dict() for gid, s in self._guilds.items()}}
        try:
            self.backend.save(document)
        except PersistenceError as e:
            log.error("Failed to save guild config (kept in memory): %s", e)

    def guild_ids(self) -> List[str]:
        return list(self._guilds)

    def get(self, guild_id) -> GuildSettings:
        guild_id = str(guild_id)
        settings = self._guilds.get(guild_id)
        if settings is None:
            settings = self._guilds[guild_id] = GuildSettings()
            self._persist()
        return settings

    def upsert_mapping(self, guild_id, channel_id, coin, label) -> ChannelMapping:
        settings = self.get(guild_id)
        mapping = ChannelMapping(channel_id=str(channel_id), coin=coin.lower(), label=label)
        idx = settings.find(mapping.channel_id)
        if idx is None:
            settings.entries.append(mapping)
        else:
            settings.entries[idx] = mapping
        self._persist()
        return mapping

    def remove_mapping(self, guild_id, channel_id) -> bool:
        settings = self.get(guild_id)
        idx = settings.find(str(channel_id))
        if idx is None:
            return False
        del settings.entries[idx]
        self._persist()
        return True

    def set_interval(self, guild_id, minutes) -> None:
        if isinstance(minutes, bool) or not isinstance(minutes, int) or not MIN_INTERVAL <= minutes <= MAX_INTERVAL:
            raise ValidationError(f"Interval must be between {MIN_INTERVAL} and {MAX_INTERVAL} minutes.")
        self.get(guild_id).interval_minutes = minutes
        self._persist()

    def set_running(self, guild_id, running) -> None:
        self.get(guild_id).running = bool(running)
        self._persist()
