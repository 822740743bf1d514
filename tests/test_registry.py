"""Tests for the BackendRegistry: register/heartbeat/resolve/evict."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from skill_relay.exceptions import InvalidInput
from skill_relay.registry import DEFAULT_DISPLAY_NAME, BackendRegistry

DEFAULT_URL = "http://localhost:5000"


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return BackendRegistry(default_address=DEFAULT_URL, clock=clock)


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_then_resolve(self, registry):
        await registry.register("pi-1", "http://10.0.0.5:5000", "Kitchen")
        assert await registry.resolve("pi-1") == "http://10.0.0.5:5000"
        assert await registry.count() == 1

    @pytest.mark.asyncio
    async def test_default_display_name(self, registry):
        entry = await registry.register("pi-1", "http://10.0.0.5:5000")
        assert entry.display_name == DEFAULT_DISPLAY_NAME

    @pytest.mark.asyncio
    async def test_overwrites_existing_entry(self, registry, clock):
        await registry.register("pi-1", "http://a", "A")
        clock.advance(30)
        await registry.register("pi-1", "http://b")
        entry = await registry.get("pi-1")
        assert entry.address == "http://b"
        assert entry.display_name == DEFAULT_DISPLAY_NAME
        assert entry.last_seen == clock.now
        assert await registry.count() == 1

    @pytest.mark.asyncio
    async def test_idempotent(self, registry):
        await registry.register("pi-1", "http://a", "A")
        await registry.register("pi-1", "http://a", "A")
        assert await registry.count() == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "client_id,address",
        [("", "http://a"), ("pi-1", ""), ("   ", "http://a"), (None, None)],
    )
    async def test_missing_fields_rejected(self, registry, client_id, address):
        with pytest.raises(InvalidInput):
            await registry.register(client_id, address)
        assert await registry.count() == 0


class TestHeartbeat:
    @pytest.mark.asyncio
    async def test_unknown_id_without_address_creates_nothing(self, registry):
        assert await registry.heartbeat("ghost") is False
        assert await registry.count() == 0
        assert await registry.resolve("ghost") == DEFAULT_URL

    @pytest.mark.asyncio
    async def test_unknown_id_with_address_registers(self, registry):
        assert await registry.heartbeat("pi-2", "http://10.0.0.6:5000") is True
        entry = await registry.get("pi-2")
        assert entry.address == "http://10.0.0.6:5000"
        assert entry.display_name == DEFAULT_DISPLAY_NAME

    @pytest.mark.asyncio
    async def test_partial_update_preserves_omitted_fields(self, registry, clock):
        await registry.register("pi-1", "http://a", "Garage")
        clock.advance(120)
        await registry.heartbeat("pi-1")
        entry = await registry.get("pi-1")
        assert entry.address == "http://a"
        assert entry.display_name == "Garage"
        assert entry.last_seen == clock.now

    @pytest.mark.asyncio
    async def test_updates_supplied_fields(self, registry):
        await registry.register("pi-1", "http://a", "Garage")
        await registry.heartbeat("pi-1", "http://b", "Porch")
        entry = await registry.get("pi-1")
        assert entry.address == "http://b"
        assert entry.display_name == "Porch"

    @pytest.mark.asyncio
    async def test_missing_client_id_rejected(self, registry):
        with pytest.raises(InvalidInput):
            await registry.heartbeat("", "http://a")


class TestResolve:
    @pytest.mark.asyncio
    async def test_empty_registry_returns_default(self, registry):
        assert await registry.resolve("default") == DEFAULT_URL

    @pytest.mark.asyncio
    async def test_none_returns_default(self, registry):
        await registry.register("pi-1", "http://a")
        assert await registry.resolve(None) == DEFAULT_URL


class TestTouch:
    @pytest.mark.asyncio
    async def test_touch_refreshes_last_seen(self, registry, clock):
        await registry.register("pi-1", "http://a")
        clock.advance(200)
        await registry.touch("pi-1")
        assert (await registry.get("pi-1")).last_seen == clock.now

    @pytest.mark.asyncio
    async def test_touch_unknown_is_noop(self, registry):
        await registry.touch("nobody")
        assert await registry.count() == 0


class TestEviction:
    @pytest.mark.asyncio
    async def test_evicts_only_stale_entries(self, registry, clock):
        await registry.register("old", "http://old")
        clock.advance(250)
        await registry.register("fresh", "http://fresh")
        clock.advance(100)  # old: 350s silent, fresh: 100s

        removed = await registry.evict_stale_entries(
            clock.now, timedelta(seconds=300)
        )

        assert removed == ["old"]
        assert await registry.get("old") is None
        assert await registry.get("fresh") is not None

    @pytest.mark.asyncio
    async def test_exact_threshold_is_kept(self, registry, clock):
        await registry.register("pi-1", "http://a")
        clock.advance(300)
        removed = await registry.evict_stale_entries(
            clock.now, timedelta(seconds=300)
        )
        assert removed == []
        assert await registry.count() == 1

    @pytest.mark.asyncio
    async def test_evicted_id_resolves_to_default(self, registry, clock):
        await registry.register("pi-1", "http://a")
        clock.advance(301)
        await registry.evict_stale_entries(clock.now, timedelta(seconds=300))
        assert await registry.resolve("pi-1") == DEFAULT_URL


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_mutations_stay_consistent(self, registry):
        async def worker(i: int) -> None:
            cid = f"pi-{i % 5}"
            await registry.register(cid, f"http://host-{i}")
            await registry.heartbeat(cid, None if i % 2 else f"http://alt-{i}")
            await registry.resolve(cid)

        await asyncio.gather(*(worker(i) for i in range(50)))

        entries = await registry.snapshot()
        assert len(entries) == 5
        for entry in entries:
            assert entry.client_id
            assert entry.address
