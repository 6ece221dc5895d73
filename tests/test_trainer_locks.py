from __future__ import annotations

import asyncio

import pytest

from trainer_scheduler.shared.locks import KeyedLockRegistry


@pytest.mark.asyncio
async def test_same_key_is_serialized() -> None:
    registry = KeyedLockRegistry()
    order: list[str] = []

    async def writer(name: str) -> None:
        async with registry.hold("trainer-1"):
            order.append(f"{name}:in")
            await asyncio.sleep(0.01)
            order.append(f"{name}:out")

    await asyncio.gather(writer("a"), writer("b"))

    assert order == ["a:in", "a:out", "b:in", "b:out"]


@pytest.mark.asyncio
async def test_different_keys_do_not_block_each_other() -> None:
    registry = KeyedLockRegistry()
    entered = asyncio.Event()

    async def holder() -> None:
        async with registry.hold("trainer-1"):
            await asyncio.wait_for(entered.wait(), timeout=1.0)

    async def other() -> None:
        async with registry.hold("trainer-2"):
            entered.set()

    await asyncio.gather(holder(), other())


@pytest.mark.asyncio
async def test_locks_are_dropped_when_released() -> None:
    registry = KeyedLockRegistry()

    async with registry.hold("trainer-1"):
        assert len(registry) == 1

    assert len(registry) == 0


@pytest.mark.asyncio
async def test_lock_is_released_on_error() -> None:
    registry = KeyedLockRegistry()

    with pytest.raises(RuntimeError):
        async with registry.hold("trainer-1"):
            raise RuntimeError("write failed")

    async with registry.hold("trainer-1"):
        pass
    assert len(registry) == 0
