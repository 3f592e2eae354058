"""Tests for the FIFO queue."""
import asyncio

import pytest

from bot.services.errors import AlreadyQueued, CapacityExceeded, NotFound
from bot.services.queue import QueueManager


@pytest.mark.asyncio
async def test_enqueue_returns_positions_in_fifo_order(services, make_player):
    alice = await make_player("alice")
    bob = await make_player("bob")
    carol = await make_player("carol")

    assert await services.queue.enqueue(alice.id) == 1
    assert await services.queue.enqueue(bob.id) == 2
    assert await services.queue.enqueue(carol.id) == 3

    queue = await services.queue.list()
    assert [q.player.chat_id for q in queue] == ["alice", "bob", "carol"]
    assert [q.position for q in queue] == [1, 2, 3]
    assert await services.queue.count() == 3


@pytest.mark.asyncio
async def test_enqueue_twice_is_rejected_and_changes_nothing(services, make_player):
    alice = await make_player("alice")
    await services.queue.enqueue(alice.id)

    with pytest.raises(AlreadyQueued):
        await services.queue.enqueue(alice.id)

    assert await services.queue.count() == 1
    assert await services.queue.position_of(alice.id) == 1


@pytest.mark.asyncio
async def test_enqueue_unknown_player(services):
    with pytest.raises(NotFound):
        await services.queue.enqueue(999)


@pytest.mark.asyncio
async def test_positions_shift_after_remove(services, make_player):
    players = [await make_player(name) for name in ("a1", "b2", "c3")]
    for p in players:
        await services.queue.enqueue(p.id)

    assert await services.queue.remove(players[0].id) is True
    assert await services.queue.position_of(players[1].id) == 1
    assert await services.queue.position_of(players[2].id) == 2
    assert await services.queue.position_of(players[0].id) is None


@pytest.mark.asyncio
async def test_remove_is_idempotent(services, make_player):
    alice = await make_player("alice")
    await services.queue.enqueue(alice.id)
    assert await services.queue.remove(alice.id) is True
    assert await services.queue.remove(alice.id) is False
    assert await services.queue.contains(alice.id) is False


@pytest.mark.asyncio
async def test_requeue_goes_to_the_tail(services, make_player):
    alice = await make_player("alice")
    bob = await make_player("bob")
    await services.queue.enqueue(alice.id)
    await services.queue.enqueue(bob.id)
    await services.queue.remove(alice.id)

    assert await services.queue.enqueue(alice.id) == 2
    assert [q.player.chat_id for q in await services.queue.list()] == ["bob", "alice"]


@pytest.mark.asyncio
async def test_clear(services, make_player):
    for name in ("a1", "b2"):
        p = await make_player(name)
        await services.queue.enqueue(p.id)
    assert await services.queue.clear() == 2
    assert await services.queue.list() == []
    assert await services.queue.clear() == 0


@pytest.mark.asyncio
async def test_dequeue_head_peeks_without_removing(services, make_player):
    names = ["a1", "b2", "c3"]
    for name in names:
        p = await make_player(name)
        await services.queue.enqueue(p.id)

    head = await services.queue.dequeue_head(2)
    assert [e.player.chat_id for e in head] == ["a1", "b2"]
    assert await services.queue.count() == 3


@pytest.mark.asyncio
async def test_capacity_cap(session_factory, services, make_player):
    capped = QueueManager(session_factory, services.lock, capacity=2)
    a, b, c = [await make_player(n) for n in ("a1", "b2", "c3")]
    await capped.enqueue(a.id)
    await capped.enqueue(b.id)

    with pytest.raises(CapacityExceeded) as exc:
        await capped.enqueue(c.id)
    assert "2/2" in exc.value.message
    assert await capped.count() == 2

    await capped.remove(a.id)
    assert await capped.enqueue(c.id) == 2


@pytest.mark.asyncio
async def test_zero_capacity_means_uncapped(session_factory, services, make_player):
    queue = QueueManager(session_factory, services.lock, capacity=0)
    assert queue.capacity is None
    for i in range(12):
        p = await make_player(f"viewer{i}")
        await queue.enqueue(p.id)
    assert await queue.count() == 12


@pytest.mark.asyncio
async def test_concurrent_enqueue_of_same_player(services, make_player):
    alice = await make_player("alice")

    results = await asyncio.gather(
        *(services.queue.enqueue(alice.id) for _ in range(5)),
        return_exceptions=True,
    )

    assert results.count(1) == 1
    assert sum(isinstance(r, AlreadyQueued) for r in results) == 4
    assert await services.queue.count() == 1
