"""JSON-file cache of resolved addresses."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

from ..config import settings

logger = logging.getLogger(__name__)


def cache_key(address: str) -> str:
    return address.strip().lower()


class GeocodeCache:
    """Address -> result mapping with a time-to-live, persisted on every put.

    Entries are stored as ``{"result": {...}, "timestamp": iso8601}``. Expired
    entries are dropped when the file is loaded.
    """

    def __init__(self, path: Path | None = None, ttl_days: int | None = None) -> None:
        self.path = path if path is not None else settings.geocoding_cache_file
        days = ttl_days if ttl_days is not None else settings.geocoding_cache_ttl_days
        self.ttl = timedelta(days=days)
        self._entries: dict[str, dict[str, Any]] = {}
        self._load()

    def __len__(self) -> int:
        return len(self._entries)

    def _is_fresh(self, entry: dict[str, Any], now: datetime) -> bool:
        try:
            stamp = datetime.fromisoformat(entry["timestamp"])
        except (KeyError, TypeError, ValueError):
            return False
        if stamp.tzinfo is None:
            stamp = stamp.replace(tzinfo=timezone.utc)
        return now - stamp <= self.ttl

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"Ignoring unreadable geocoding cache {self.path}: {exc}")
            return
        if not isinstance(raw, dict):
            return
        now = datetime.now(timezone.utc)
        self._entries = {
            key: entry for key, entry in raw.items() if isinstance(entry, dict) and self._is_fresh(entry, now)
        }
        dropped = len(raw) - len(self._entries)
        if dropped:
            logger.info(f"Pruned {dropped} expired geocoding cache entr{'y' if dropped == 1 else 'ies'}")
            self._save()

    def _save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as handle:
                json.dump(self._entries, handle, ensure_ascii=False, indent=2)
        except OSError as exc:
            logger.warning(f"Could not persist geocoding cache to {self.path}: {exc}")

    def get(self, address: str) -> Optional[dict[str, Any]]:
        entry = self._entries.get(cache_key(address))
        if entry is None:
            return None
        if not self._is_fresh(entry, datetime.now(timezone.utc)):
            del self._entries[cache_key(address)]
            return None
        return dict(entry["result"])

    def put(self, address: str, result: dict[str, Any]) -> None:
        self._entries[cache_key(address)] = {
            "result": dict(result),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        self._save()

    def clear(self) -> None:
        self._entries = {}
        self._save()
