"""Tests for chat registration (!reg) processing and its audit log."""
import asyncio

import pytest

from bot.models.registration_log import LOG_ALREADY_QUEUED, LOG_FAILED, LOG_SUCCESS
from bot.services.queue import QueueManager
from bot.services.registration import RegistrationProcessor


@pytest.mark.asyncio
async def test_double_registration(services, make_player):
    """Same viewer twice in a row: success at position 1, then already queued; two log rows."""
    alice = await make_player("alice")

    first = await services.registration.handle("alice")
    second = await services.registration.handle("alice")

    assert first.status == LOG_SUCCESS and first.position == 1
    assert second.status == LOG_ALREADY_QUEUED
    assert await services.queue.count() == 1

    logs = await services.registration.recent_logs()
    assert [log.status for log in logs] == [LOG_ALREADY_QUEUED, LOG_SUCCESS]
    assert all(log.player_id == alice.id for log in logs)


@pytest.mark.asyncio
async def test_unregistered_viewer(services):
    outcome = await services.registration.handle("ghost123")

    assert outcome.status == LOG_FAILED
    assert outcome.message == "Not registered on the platform"
    assert await services.queue.count() == 0

    logs = await services.registration.recent_logs()
    assert len(logs) == 1
    assert logs[0].status == LOG_FAILED
    assert logs[0].chat_id == "ghost123"
    assert logs[0].player_id is None


@pytest.mark.asyncio
async def test_chat_identity_matching_ignores_case(services, make_player):
    await make_player("alice")
    outcome = await services.registration.handle("Alice")
    assert outcome.ok


@pytest.mark.asyncio
async def test_confirmation_dm_on_success(services, sink, make_player):
    await make_player("alice", contact="555")
    await make_player("bob")  # no Discord contact

    await services.registration.handle("alice")
    await services.registration.handle("bob")
    await services.registration.handle("alice")

    assert len(sink.sent) == 1
    assert "Position: 1" in sink.sent_to("555")[0]


@pytest.mark.asyncio
async def test_confirmation_failure_does_not_undo_registration(services, sink, make_player):
    alice = await make_player("alice", contact="555")
    sink.fail_for.add("555")

    outcome = await services.registration.handle("alice")

    assert outcome.ok
    assert await services.queue.contains(alice.id)


@pytest.mark.asyncio
async def test_full_queue_logs_failure(session_factory, services, make_player):
    queue = QueueManager(session_factory, services.lock, capacity=1)
    processor = RegistrationProcessor(session_factory, services.lock, queue)
    await make_player("alice")
    await make_player("bob")

    assert (await processor.handle("alice")).ok
    outcome = await processor.handle("bob")

    assert outcome.status == LOG_FAILED
    assert "full" in outcome.message
    assert await queue.count() == 1
    counts = await processor.log_counts()
    assert counts == {"successful": 1, "failed": 1, "already_queued": 0}


@pytest.mark.asyncio
async def test_concurrent_registrations_of_one_viewer(services, make_player):
    await make_player("alice")

    outcomes = await asyncio.gather(*(services.registration.handle("alice") for _ in range(6)))

    statuses = [o.status for o in outcomes]
    assert statuses.count(LOG_SUCCESS) == 1
    assert statuses.count(LOG_ALREADY_QUEUED) == 5
    assert await services.queue.count() == 1
    assert len(await services.registration.recent_logs()) == 6


@pytest.mark.asyncio
async def test_concurrent_registrations_of_many_viewers(services, make_player):
    names = [f"viewer{i}" for i in range(8)]
    for name in names:
        await make_player(name)

    outcomes = await asyncio.gather(*(services.registration.handle(n) for n in names))

    assert sorted(o.position for o in outcomes) == list(range(1, 9))
    assert await services.queue.count() == 8


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "text, handled",
    [
        ("!reg", True),
        ("  !REG  ", True),
        ("!reg please", False),
        ("hello", False),
        ("", False),
    ],
)
async def test_only_the_command_is_handled(services, make_player, text, handled):
    await make_player("alice")
    outcome = await services.registration.on_chat_message("alice", text)
    assert (outcome is not None) is handled
    assert len(await services.registration.recent_logs()) == (1 if handled else 0)


@pytest.mark.asyncio
async def test_recent_logs_limit(services):
    for i in range(5):
        await services.registration.handle(f"ghost{i}")
    logs = await services.registration.recent_logs(limit=3)
    assert [log.chat_id for log in logs] == ["ghost4", "ghost3", "ghost2"]
