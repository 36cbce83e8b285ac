from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Set

from clinicnotes.reminders.selector import select_upcoming

logger = logging.getLogger(__name__)

# (session_id, status) -> 세션 상태 변경 요청
UpdateStatus = Callable[[str, str], Awaitable[Any]]


class ReminderController:
    """
    치료사 한 명의 세션 리마인더 상태를 소유한다.

    상태는 hidden / visible 두 가지.
      - 선택기가 현재 표시 중이 아닌 세션을 고르면 visible
      - dismiss / no-show / start 시 hidden (닫은 세션 id는 dismissed에 누적)
      - 선택기가 아무 것도 고르지 못하면 표시 중인 리마인더를 지우고 hidden
    자동으로 숨겨지는 타임아웃은 없다.
    """

    def __init__(self, update_status: UpdateStatus, clock: Callable[[], datetime] | None = None):
        self._update_status = update_status
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sessions: List[Any] = []
        self._dismissed: Set[str] = set()
        self.upcoming_session: Optional[Any] = None
        self.is_visible: bool = False

    @property
    def sessions(self) -> List[Any]:
        return list(self._sessions)

    @property
    def dismissed_ids(self) -> frozenset:
        return frozenset(self._dismissed)

    def set_sessions(self, sessions: Sequence[Any], now: datetime | None = None) -> None:
        """세션 목록 교체 후 즉시 재평가"""
        self._sessions = list(sessions)
        self.evaluate(now)

    def evaluate(self, now: datetime | None = None) -> Optional[Any]:
        now = now or self._clock()
        next_session = select_upcoming(self._sessions, now, self._dismissed)

        if next_session is not None:
            if self.upcoming_session is None or next_session.id != self.upcoming_session.id:
                logger.info("session reminder shown: %s", next_session.id)
                self.upcoming_session = next_session
                self.is_visible = True
        elif self.upcoming_session is not None:
            logger.debug("session reminder cleared: %s", self.upcoming_session.id)
            self.upcoming_session = None
            self.is_visible = False
        return self.upcoming_session

    def dismiss(self) -> None:
        if self.upcoming_session is not None:
            self._dismissed.add(self.upcoming_session.id)
        self.upcoming_session = None
        self.is_visible = False

    async def mark_no_show(self) -> None:
        """
        상태를 no_show로 변경한 뒤 리마인더를 닫는다.
        변경 요청이 실패하면 예외를 그대로 올리고 리마인더는 표시된 채로 남는다.
        """
        session = self.upcoming_session
        if session is None:
            return
        try:
            await self._update_status(session.id, "no_show")
        except Exception:
            logger.error("Failed to mark session as no-show: %s", session.id)
            raise
        self.dismiss()

    def start_session(self) -> Optional[Any]:
        """리마인더를 닫고 (상태 변경 없이) 열어야 할 세션을 돌려준다."""
        session = self.upcoming_session
        self.dismiss()
        return session

    def snapshot(self) -> dict:
        return {"upcoming_session": self.upcoming_session, "is_visible": self.is_visible}
