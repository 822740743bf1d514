"""Background expiry of silent backends."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

from aiohttp import web

from .registry import BackendRegistry

logger = logging.getLogger("skill-relay")

_sweeper_task_key = web.AppKey("_sweeper_task", asyncio.Task)


class ExpirySweeper:
    """Periodically evicts registry entries that stopped pinging.

    Runs independently of request traffic. A failing tick is logged and
    the loop carries on with the next one.
    """

    def __init__(
        self,
        registry: BackendRegistry,
        interval_seconds: float = 60.0,
        stale_after_seconds: float = 300.0,
    ):
        self._registry = registry
        self._interval = interval_seconds
        self._threshold = timedelta(seconds=stale_after_seconds)

    async def sweep_once(self) -> list[str]:
        """Run a single eviction pass. Returns the removed client ids."""
        now = self._registry.now()
        removed = await self._registry.evict_stale_entries(now, self._threshold)
        for client_id in removed:
            logger.info("Removing stale client: %s", client_id)
        return removed

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.sweep_once()
            except Exception:
                logger.exception("Error cleaning stale clients")

    def attach(self, app: web.Application) -> None:
        """Tie the sweep loop to the aiohttp application lifecycle."""

        async def _start(app: web.Application) -> None:
            app[_sweeper_task_key] = asyncio.create_task(self.run())

        async def _stop(app: web.Application) -> None:
            task = app.get(_sweeper_task_key)
            if task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        app.on_startup.append(_start)
        app.on_cleanup.append(_stop)
