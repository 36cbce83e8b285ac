from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from clinicnotes.reminders.selector import is_upcoming, minutes_until, select_upcoming

NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


def make(session_id, minutes, status="scheduled"):
    return SimpleNamespace(id=session_id, status=status, scheduled_at=NOW + timedelta(minutes=minutes))


def test_minutes_until_sign():
    assert minutes_until(make("a", 10), NOW) == 10
    assert minutes_until(make("b", -3), NOW) == -3


def test_naive_datetimes_treated_as_utc():
    s = SimpleNamespace(id="a", status="scheduled", scheduled_at=datetime(2025, 3, 10, 9, 2))
    assert minutes_until(s, NOW) == 2


def test_selects_earliest_eligible():
    sessions = [make("late", 10), make("past", -40), make("soon", 2), make("started", -10)]
    assert select_upcoming(sessions, NOW).id == "started"


def test_window_boundaries():
    # (-30, +5]
    assert is_upcoming(make("a", 5), NOW)
    assert not is_upcoming(make("b", 5.01), NOW)
    assert not is_upcoming(make("c", -30), NOW)
    assert is_upcoming(make("d", -29.9), NOW)


def test_only_scheduled_sessions():
    for status in ("in_progress", "completed", "cancelled", "no_show"):
        assert select_upcoming([make("a", 1, status=status)], NOW) is None


def test_dismissed_never_selected():
    sessions = [make("a", 1), make("b", 3)]
    assert select_upcoming(sessions, NOW, dismissed={"a"}).id == "b"
    assert select_upcoming(sessions, NOW, dismissed={"a", "b"}) is None


def test_empty_list():
    assert select_upcoming([], NOW) is None
