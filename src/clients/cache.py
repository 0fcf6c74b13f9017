"""Best-effort caches shared by the provider clients.

ResponseCache is a SQLite TTL cache of parsed JSON payloads, one table per
client. CachedValue is an expiring value owned by the caller, used for
lookups (like monitoring-station discovery) that change rarely.
"""

import hashlib
import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional


logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = Path.home() / ".cache" / "swim-conditions"


class ResponseCache:
    """SQLite-backed response cache with a fixed TTL."""

    def __init__(self, name: str, ttl_seconds: int, cache_path: Optional[Path] = None):
        """Initialize the cache.

        Args:
            name: Table name prefix, usually the client's short name
            ttl_seconds: Entry lifetime
            cache_path: Path to SQLite file. Defaults to ~/.cache/swim-conditions/<name>.db
        """
        if cache_path is None:
            DEFAULT_CACHE_DIR.mkdir(parents=True, exist_ok=True)
            cache_path = DEFAULT_CACHE_DIR / f"{name}.db"

        self.name = name
        self.table = f"{name}_cache"
        self.ttl = timedelta(seconds=ttl_seconds)
        self.cache_path = cache_path
        self._init_cache()

    def _init_cache(self) -> None:
        """Initialize the SQLite cache table."""
        with sqlite3.connect(self.cache_path) as conn:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    cache_key TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL
                )
            """)
            conn.commit()

    @staticmethod
    def make_key(params: dict) -> str:
        """Generate a cache key for the request."""
        key_data = json.dumps(params, sort_keys=True, default=str)
        return hashlib.sha256(key_data.encode()).hexdigest()[:32]

    def get(self, cache_key: str) -> Optional[Any]:
        """Retrieve data from cache if still valid."""
        with sqlite3.connect(self.cache_path) as conn:
            cursor = conn.execute(
                f"SELECT data, created_at FROM {self.table} WHERE cache_key = ?",
                (cache_key,),
            )
            row = cursor.fetchone()

            if row is None:
                return None

            data_json, created_at_str = row
            created_at = datetime.fromisoformat(created_at_str)

            if datetime.now(timezone.utc) - created_at > self.ttl:
                conn.execute(f"DELETE FROM {self.table} WHERE cache_key = ?", (cache_key,))
                conn.commit()
                return None

            logger.debug(f"{self.name} cache hit for {cache_key}")
            return json.loads(data_json)

    def set(self, cache_key: str, data: Any) -> None:
        """Store data in cache."""
        with sqlite3.connect(self.cache_path) as conn:
            conn.execute(
                f"""
                INSERT OR REPLACE INTO {self.table} (cache_key, data, created_at)
                VALUES (?, ?, ?)
                """,
                (cache_key, json.dumps(data), datetime.now(timezone.utc).isoformat()),
            )
            conn.commit()


@dataclass(frozen=True)
class CachedValue:
    """A value paired with its own expiry time."""
    value: Any
    expires_at: datetime

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        if now is None:
            now = datetime.now(timezone.utc)
        return now < self.expires_at

    @classmethod
    def for_duration(cls, value: Any, ttl: timedelta, now: Optional[datetime] = None) -> "CachedValue":
        if now is None:
            now = datetime.now(timezone.utc)
        return cls(value=value, expires_at=now + ttl)
