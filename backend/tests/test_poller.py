import asyncio
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from clinicnotes.reminders.controller import ReminderController
from clinicnotes.reminders.poller import ReminderPoller
from clinicnotes.reminders.registry import ReminderRegistry


def soon(session_id, minutes=2):
    return SimpleNamespace(
        id=session_id, status="scheduled",
        scheduled_at=datetime.now(timezone.utc) + timedelta(minutes=minutes),
    )


async def _noop(session_id, status):
    return None


async def test_refresh_applies_fetched_sessions():
    async def fetch():
        return [soon("a")]

    poller = ReminderPoller(ReminderController(_noop), fetch, refresh_interval=60, check_interval=60)
    assert await poller.refresh_once()
    assert poller.controller.upcoming_session.id == "a"


async def test_fetch_error_keeps_previous_state():
    calls = {"n": 0}

    async def fetch():
        calls["n"] += 1
        if calls["n"] > 1:
            raise ConnectionError("offline")
        return [soon("a")]

    poller = ReminderPoller(ReminderController(_noop), fetch, refresh_interval=60, check_interval=60)
    await poller.refresh_once()
    assert await poller.refresh_once() is False
    assert [s.id for s in poller.controller.sessions] == ["a"]
    assert poller.controller.upcoming_session.id == "a"
    assert poller.controller.is_visible


async def test_start_and_stop_loops():
    fetched = []

    async def fetch():
        fetched.append(1)
        return [soon("a")]

    poller = ReminderPoller(ReminderController(_noop), fetch, refresh_interval=0.01, check_interval=0.01)
    await poller.start()
    assert poller.running
    assert poller.controller.upcoming_session is not None
    await asyncio.sleep(0.05)
    await poller.stop()
    assert not poller.running
    assert len(fetched) >= 2


async def test_start_twice_is_noop():
    async def fetch():
        return []

    poller = ReminderPoller(ReminderController(_noop), fetch, refresh_interval=60, check_interval=60)
    await poller.start()
    tasks = list(poller._tasks)
    await poller.start()
    assert poller._tasks == tasks
    await poller.stop()


async def test_registry_concurrent_get_shares_refreshed_poller():
    fetched = []

    class SlowRegistry(ReminderRegistry):
        async def list_sessions(self, therapist_id):
            fetched.append(therapist_id)
            await asyncio.sleep(0.05)
            return [soon("a")]

    registry = SlowRegistry(None, refresh_interval=60, check_interval=60)
    first, second = await asyncio.gather(registry.get("t1"), registry.get("t1"))
    assert first is second
    # 두 번째 호출자도 첫 refresh가 끝난 상태를 본다
    assert second.controller.upcoming_session.id == "a"
    assert fetched == ["t1"]
    await registry.shutdown()
