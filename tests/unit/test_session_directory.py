"""Unit tests for the session directory."""

import asyncio
import random

import pytest

from modmail.core.session_directory import SessionDirectory

pytestmark = pytest.mark.unit


def _assert_bijection(directory: SessionDirectory) -> None:
    forward = directory._thread_by_correspondent
    backward = directory._correspondent_by_thread
    assert len(forward) == len(backward)
    for correspondent_id, thread_id in forward.items():
        assert backward[thread_id] == correspondent_id
    for thread_id, correspondent_id in backward.items():
        assert forward[correspondent_id] == thread_id


@pytest.mark.asyncio
async def test_insert_establishes_both_directions():
    directory = SessionDirectory()
    await directory.insert(1, 100)

    assert await directory.lookup_thread(1) == 100
    assert await directory.lookup_correspondent(100) == 1
    assert await directory.lookup_thread(2) is None
    assert await directory.lookup_correspondent(200) is None


@pytest.mark.asyncio
async def test_insert_replaces_stale_thread_for_correspondent():
    directory = SessionDirectory()
    await directory.insert(1, 100)
    await directory.insert(1, 101)

    assert await directory.lookup_thread(1) == 101
    assert await directory.lookup_correspondent(100) is None
    assert await directory.lookup_correspondent(101) == 1
    _assert_bijection(directory)


@pytest.mark.asyncio
async def test_insert_reassigning_thread_drops_previous_owner():
    directory = SessionDirectory()
    await directory.insert(1, 100)
    await directory.insert(2, 100)

    assert await directory.lookup_thread(1) is None
    assert await directory.lookup_thread(2) == 100
    _assert_bijection(directory)


@pytest.mark.asyncio
async def test_remove_by_thread_removes_pair_and_is_noop_when_absent():
    directory = SessionDirectory()
    await directory.insert(1, 100)

    assert await directory.remove_by_thread(100) == 1
    assert await directory.lookup_thread(1) is None
    assert await directory.count() == 0
    assert await directory.remove_by_thread(100) is None


@pytest.mark.asyncio
async def test_replace_all_discards_previous_content():
    directory = SessionDirectory()
    await directory.insert(1, 100)

    await directory.replace_all([(2, 200), (3, 300)])

    assert await directory.snapshot() == {2: 200, 3: 300}
    assert await directory.lookup_correspondent(100) is None


@pytest.mark.asyncio
async def test_replace_all_resolves_conflicting_pairs_last_wins():
    directory = SessionDirectory()

    await directory.replace_all([(1, 100), (1, 101), (2, 101)])

    assert await directory.snapshot() == {2: 101}
    _assert_bijection(directory)


@pytest.mark.asyncio
async def test_random_mutations_keep_maps_inverse():
    directory = SessionDirectory()
    rng = random.Random(1234)

    for _ in range(500):
        op = rng.random()
        if op < 0.6:
            await directory.insert(rng.randint(1, 20), rng.randint(100, 120))
        elif op < 0.95:
            await directory.remove_by_thread(rng.randint(100, 120))
        else:
            pairs = [(rng.randint(1, 20), rng.randint(100, 120)) for _ in range(rng.randint(0, 10))]
            await directory.replace_all(pairs)
        _assert_bijection(directory)


@pytest.mark.asyncio
async def test_concurrent_readers_never_see_torn_pairs():
    directory = SessionDirectory()
    torn: list[tuple[int, int]] = []

    async def writer(correspondent_id: int) -> None:
        for thread_id in range(1000 + correspondent_id * 10, 1000 + correspondent_id * 10 + 10):
            await directory.insert(correspondent_id, thread_id)
            await asyncio.sleep(0)

    async def reader(correspondent_id: int) -> None:
        for _ in range(20):
            thread_id = await directory.lookup_thread(correspondent_id)
            if thread_id is not None:
                owner = await directory.lookup_correspondent(thread_id)
                # A later insert may move the correspondent on, but never to someone else
                if owner not in (None, correspondent_id):
                    torn.append((correspondent_id, thread_id))
            await asyncio.sleep(0)

    await asyncio.gather(*(writer(i) for i in range(5)), *(reader(i) for i in range(5)))

    assert torn == []
    _assert_bijection(directory)
    assert await directory.count() == 5
