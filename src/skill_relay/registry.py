"""In-memory registry of reachable backend devices.

Backends (camera displays) announce themselves with register and
heartbeat calls. The registry maps each caller-assigned client id to
the backend's base URL, display name and last contact time. Entries
that go silent are evicted by the expiry sweeper.

A single asyncio.Lock serializes every access. The lock only ever
wraps dict operations; callers never hold it across network I/O.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable

from .exceptions import InvalidInput

logger = logging.getLogger("skill-relay")

DEFAULT_DISPLAY_NAME = "Unnamed Pi"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class BackendEntry:
    """One registered backend device."""

    client_id: str
    address: str
    display_name: str
    last_seen: datetime


class BackendRegistry:
    """Concurrency-safe mapping of client id -> BackendEntry.

    Entries are immutable; updates swap in a new object under the lock,
    so readers only ever see complete entries.
    """

    def __init__(
        self,
        default_address: str,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._default_address = default_address
        self._clock = clock
        self._entries: dict[str, BackendEntry] = {}
        self._lock = asyncio.Lock()

    def now(self) -> datetime:
        return self._clock()

    @property
    def default_address(self) -> str:
        return self._default_address

    async def register(
        self, client_id: str, address: str, display_name: str | None = None
    ) -> BackendEntry:
        """Insert or fully overwrite the entry for ``client_id``."""
        client_id = (client_id or "").strip()
        address = (address or "").strip()
        if not client_id or not address:
            raise InvalidInput("Missing required parameters")

        entry = BackendEntry(
            client_id=client_id,
            address=address,
            display_name=display_name or DEFAULT_DISPLAY_NAME,
            last_seen=self._clock(),
        )
        async with self._lock:
            self._entries[client_id] = entry
        logger.info("Registered client: %s, %s", client_id, address)
        return entry

    async def heartbeat(
        self,
        client_id: str,
        address: str | None = None,
        display_name: str | None = None,
    ) -> bool:
        """Refresh a backend's liveness, creating it when an address is given.

        Returns True when an entry exists after the call. An unknown id
        without an address is ignored (there is nothing to route to).
        """
        client_id = (client_id or "").strip()
        if not client_id:
            raise InvalidInput("Missing client ID")
        address = (address or "").strip() or None

        async with self._lock:
            now = self._clock()
            current = self._entries.get(client_id)
            if current is None:
                if address is None:
                    return False
                self._entries[client_id] = BackendEntry(
                    client_id=client_id,
                    address=address,
                    display_name=display_name or DEFAULT_DISPLAY_NAME,
                    last_seen=now,
                )
                created = True
            else:
                self._entries[client_id] = replace(
                    current,
                    address=address or current.address,
                    display_name=display_name or current.display_name,
                    last_seen=now,
                )
                created = False

        if created:
            logger.info("Registered client via ping: %s, %s", client_id, address)
        return True

    async def touch(self, client_id: str) -> None:
        """Mark a known backend as seen now (after a successful forward)."""
        async with self._lock:
            current = self._entries.get(client_id)
            if current is not None:
                self._entries[client_id] = replace(current, last_seen=self._clock())

    async def resolve(self, client_id: str | None) -> str:
        """Return the backend address for ``client_id`` or the default one."""
        if client_id:
            async with self._lock:
                entry = self._entries.get(client_id)
            if entry is not None:
                return entry.address
        return self._default_address

    async def get(self, client_id: str) -> BackendEntry | None:
        async with self._lock:
            return self._entries.get(client_id)

    async def snapshot(self) -> list[BackendEntry]:
        async with self._lock:
            return list(self._entries.values())

    async def count(self) -> int:
        async with self._lock:
            return len(self._entries)

    async def evict_stale_entries(
        self, now: datetime, threshold: timedelta
    ) -> list[str]:
        """Remove entries silent for longer than ``threshold``.

        Returns the evicted client ids.
        """
        async with self._lock:
            stale = [
                cid
                for cid, entry in self._entries.items()
                if now - entry.last_seen > threshold
            ]
            for cid in stale:
                del self._entries[cid]
        return stale
