"""
다가오는 세션 선택기 (순수 함수).

세션이 'upcoming'이 되는 조건:
  - status == "scheduled"
  - 시작까지 남은 분(minutes_until)이 (-GRACE, +WINDOW] 구간
  - 사용자가 닫은(dismissed) 세션이 아님
"""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Iterable, Optional, AbstractSet, Protocol

from clinicnotes.config import REMINDER_WINDOW_MINUTES, GRACE_PERIOD_MINUTES


class SessionLike(Protocol):
    id: str
    status: str
    scheduled_at: datetime


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def minutes_until(session: SessionLike, now: datetime) -> float:
    """시작까지 남은 시간(분). 이미 시작 시각이 지났으면 음수."""
    delta = as_utc(session.scheduled_at) - as_utc(now)
    return delta.total_seconds() / 60.0


def is_upcoming(
    session: SessionLike,
    now: datetime,
    dismissed: AbstractSet[str] = frozenset(),
    window: float = REMINDER_WINDOW_MINUTES,
    grace: float = GRACE_PERIOD_MINUTES,
) -> bool:
    if session.status != "scheduled":
        return False
    if session.id in dismissed:
        return False
    minutes = minutes_until(session, now)
    return -grace < minutes <= window


def select_upcoming(
    sessions: Iterable[SessionLike],
    now: datetime,
    dismissed: AbstractSet[str] = frozenset(),
    window: float = REMINDER_WINDOW_MINUTES,
    grace: float = GRACE_PERIOD_MINUTES,
) -> Optional[SessionLike]:
    """조건을 만족하는 세션 중 예정 시각이 가장 이른 것을 반환 (없으면 None)"""
    eligible = [s for s in sessions if is_upcoming(s, now, dismissed, window, grace)]
    if not eligible:
        return None
    eligible.sort(key=lambda s: as_utc(s.scheduled_at))
    return eligible[0]
