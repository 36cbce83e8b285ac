"""
세션 목록에서 알림을 계산한다.

  reminder-<id>   scheduled, 시작 5분 초과 ~ 30분 이내
  starting-<id>   scheduled, 시작 전후 5분
  overdue-<id>    scheduled, 시작 후 5분 초과 ~ 2시간 미만
  unsigned-<id>   completed, 서명 안 됨, 종료 후 1시간 이상
"""
from __future__ import annotations
from dataclasses import dataclass, field
import math
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Set

from clinicnotes.reminders.selector import minutes_until, as_utc
from clinicnotes.schemas import NotificationOut

UNSIGNED_AFTER = timedelta(hours=1)


def _fmt_time(value: datetime) -> str:
    return as_utc(value).strftime("%H:%M")


def build_notifications(sessions: Iterable[Any], now: datetime) -> List[NotificationOut]:
    out: List[NotificationOut] = []
    for s in sessions:
        if s.status == "scheduled":
            minutes = minutes_until(s, now)
            if 5 < minutes <= 30:
                out.append(NotificationOut(
                    id=f"reminder-{s.id}",
                    type="session_reminder",
                    title="Upcoming session",
                    message=f"Session starts in {math.ceil(minutes)} minutes ({_fmt_time(s.scheduled_at)})",
                    related_id=s.id,
                    created_at=as_utc(s.scheduled_at) - timedelta(minutes=30),
                ))
            elif -5 <= minutes <= 5:
                out.append(NotificationOut(
                    id=f"starting-{s.id}",
                    type="session_reminder",
                    title="Session starting",
                    message=(
                        f"Session starts in {math.ceil(minutes)} minutes" if minutes > 0
                        else "Session is starting now"
                    ),
                    related_id=s.id,
                    created_at=as_utc(s.scheduled_at),
                ))
            elif -120 < minutes < -5:
                out.append(NotificationOut(
                    id=f"overdue-{s.id}",
                    type="session_overdue",
                    title="Session overdue",
                    message=f"Session was due {abs(math.ceil(minutes))} minutes ago",
                    related_id=s.id,
                    created_at=as_utc(s.scheduled_at),
                ))
        elif s.status == "completed" and s.signed_at is None and s.ended_at is not None:
            ended = as_utc(s.ended_at)
            if as_utc(now) - ended >= UNSIGNED_AFTER:
                out.append(NotificationOut(
                    id=f"unsigned-{s.id}",
                    type="unsigned_session",
                    title="Unsigned session",
                    message=f"Session ended {int((as_utc(now) - ended).total_seconds() // 3600)} hours ago and is not signed yet",
                    related_id=s.id,
                    created_at=ended,
                ))
    out.sort(key=lambda n: n.created_at, reverse=True)
    return out


@dataclass
class NotificationInbox:
    """치료사별 읽음/닫음 상태 (메모리, 비영속)"""
    read_ids: Set[str] = field(default_factory=set)
    dismissed_ids: Set[str] = field(default_factory=set)

    def visible(self, notifications: Iterable[NotificationOut]) -> List[NotificationOut]:
        result = []
        for n in notifications:
            is_read = n.id in self.read_ids
            # 읽고 닫은 알림만 숨김
            if is_read and n.id in self.dismissed_ids:
                continue
            result.append(n.model_copy(update={"is_read": is_read}))
        return result

    def mark_read(self, notification_id: str) -> None:
        self.read_ids.add(notification_id)

    def mark_all_read(self, notifications: Iterable[NotificationOut]) -> int:
        ids = {n.id for n in notifications}
        added = len(ids - self.read_ids)
        self.read_ids |= ids
        return added

    def dismiss(self, notification_id: str) -> bool:
        """읽은 알림만 닫을 수 있다."""
        if notification_id not in self.read_ids:
            return False
        self.dismissed_ids.add(notification_id)
        return True

    def summary(self, notifications: Iterable[NotificationOut]) -> Dict[str, Any]:
        items = self.visible(notifications)
        return {"data": items, "unread_count": sum(1 for n in items if not n.is_read)}
