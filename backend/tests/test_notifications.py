from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from clinicnotes.reminders.notifications import NotificationInbox, build_notifications

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def make(session_id, minutes, status="scheduled", signed_at=None, ended_minutes=None):
    return SimpleNamespace(
        id=session_id,
        status=status,
        scheduled_at=NOW + timedelta(minutes=minutes),
        signed_at=signed_at,
        ended_at=NOW + timedelta(minutes=ended_minutes) if ended_minutes is not None else None,
    )


def by_id(items):
    return {n.id: n for n in items}


def test_notification_kinds():
    sessions = [
        make("r", 20),
        make("s", 2),
        make("o", -30),
        make("u", -300, status="completed", ended_minutes=-180),
        make("far", 120),
        make("gone", -200),
        make("signed", -300, status="completed", signed_at=NOW, ended_minutes=-180),
        make("recent", -90, status="completed", ended_minutes=-30),
    ]
    items = by_id(build_notifications(sessions, NOW))
    assert set(items) == {"reminder-r", "starting-s", "overdue-o", "unsigned-u"}
    assert items["reminder-r"].type == "session_reminder"
    assert "20 minutes" in items["reminder-r"].message
    assert items["overdue-o"].type == "session_overdue"
    assert items["unsigned-u"].type == "unsigned_session"
    assert items["unsigned-u"].related_id == "u"


def test_sorted_newest_first():
    items = build_notifications([make("a", 20), make("b", -30), make("c", 2)], NOW)
    stamps = [n.created_at for n in items]
    assert stamps == sorted(stamps, reverse=True)


def test_inbox_read_and_dismiss():
    items = build_notifications([make("a", 20), make("b", 2)], NOW)
    inbox = NotificationInbox()
    assert inbox.summary(items)["unread_count"] == 2

    # 읽지 않은 알림은 닫을 수 없음
    assert not inbox.dismiss("reminder-a")

    inbox.mark_read("reminder-a")
    summary = inbox.summary(items)
    assert summary["unread_count"] == 1
    assert by_id(summary["data"])["reminder-a"].is_read

    assert inbox.dismiss("reminder-a")
    assert [n.id for n in inbox.visible(items)] == ["starting-b"]


def test_mark_all_read_counts_new_only():
    items = build_notifications([make("a", 20), make("b", 2)], NOW)
    inbox = NotificationInbox()
    inbox.mark_read("reminder-a")
    assert inbox.mark_all_read(items) == 1
    assert inbox.summary(items)["unread_count"] == 0
