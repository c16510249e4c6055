import asyncio

import pytest

from core.locks import ReadWriteLock


@pytest.mark.asyncio
async def test_readers_share_the_lock():
    lock = ReadWriteLock()
    async with lock.read():
        async with lock.read():
            assert lock.readers == 2
    assert lock.readers == 0


@pytest.mark.asyncio
async def test_writer_waits_for_readers():
    lock = ReadWriteLock()
    events = []

    async def reader():
        async with lock.read():
            events.append("read-start")
            await asyncio.sleep(0.01)
            events.append("read-end")

    async def writer():
        await asyncio.sleep(0)
        async with lock.write():
            events.append("write")

    await asyncio.gather(reader(), writer())
    assert events == ["read-start", "read-end", "write"]


@pytest.mark.asyncio
async def test_writers_are_exclusive():
    lock = ReadWriteLock()
    active = 0
    peak = 0

    async def writer():
        nonlocal active, peak
        async with lock.write():
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.001)
            active -= 1

    await asyncio.gather(*(writer() for _ in range(5)))
    assert peak == 1
    assert not lock.writing


@pytest.mark.asyncio
async def test_waiting_writer_blocks_new_readers():
    lock = ReadWriteLock()
    events = []

    async def first_reader():
        async with lock.read():
            await asyncio.sleep(0.01)
            events.append("reader-1")

    async def writer():
        await asyncio.sleep(0)
        async with lock.write():
            events.append("writer")

    async def late_reader():
        await asyncio.sleep(0.001)
        async with lock.read():
            events.append("reader-2")

    await asyncio.gather(first_reader(), writer(), late_reader())
    assert events == ["reader-1", "writer", "reader-2"]


@pytest.mark.asyncio
async def test_cancelled_writer_releases_readers():
    lock = ReadWriteLock()
    async with lock.read():
        task = asyncio.create_task(_hold_write(lock))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
    async with lock.read():
        assert lock.readers == 1


async def _hold_write(lock):
    async with lock.write():
        pass
