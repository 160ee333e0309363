# gatekeeper/services/door_resolver.py
"""
Door key -> door id resolution with a per-engine cache.

Misses are cached as well as hits, so a door that is unknown stays unknown
until the admin layer invalidates its key (door create / rename / deactivate
/ delete all call invalidate()).
"""

import threading
from typing import Optional
from sqlalchemy.orm import Session
from gatekeeper.models.door import Door
from gatekeeper.utils.logger import get_logger

logger = get_logger(__name__)

_MISSING = object()


class DoorResolver:
    def __init__(self, default_door_id: Optional[int] = None):
        self.default_door_id = default_door_id
        self._cache: dict[str, Optional[int]] = {}
        self._lock = threading.Lock()
        self._generation = 0

    def resolve(self, door_key: Optional[str], db: Session) -> Optional[int]:
        if not door_key:
            return self.default_door_id

        with self._lock:
            cached = self._cache.get(door_key, _MISSING)
            generation = self._generation
        if cached is not _MISSING:
            return cached

        row = (
            db.query(Door.id)
            .filter(Door.door_key == door_key, Door.active.is_(True))
            .first()
        )
        door_id = row.id if row else None
        if door_id is None:
            logger.warning(f"Door key '{door_key}' has no active door: caching miss")

        with self._lock:
            # An invalidate() during the query means this result may be stale
            if generation == self._generation:
                self._cache[door_key] = door_id
        return door_id

    def peek(self, door_key: Optional[str]) -> Optional[int]:
        """Resolve from cache only; never touches the database."""
        if not door_key:
            return self.default_door_id
        with self._lock:
            return self._cache.get(door_key)

    def invalidate(self, door_key: Optional[str] = None) -> None:
        """Drop one key, or the whole cache when no key is given."""
        with self._lock:
            self._generation += 1
            if door_key is None:
                self._cache.clear()
            else:
                self._cache.pop(door_key, None)
        logger.debug(f"Door cache invalidated: {door_key or '*'}")
