from __future__ import annotations
import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from clinicnotes.config import REMINDER_CHECK_INTERVAL_S, REMINDER_REFRESH_INTERVAL_S
from clinicnotes.reminders.controller import ReminderController

logger = logging.getLogger(__name__)

FetchSessions = Callable[[], Awaitable[Sequence[Any]]]


class ReminderPoller:
    """
    컨트롤러 하나에 붙는 두 개의 독립 타이머.
      - refresh: 세션 목록을 다시 가져와 컨트롤러에 반영
      - check:   현재 목록으로 리마인더 조건만 재평가
    둘 다 멱등이라 겹쳐 실행돼도 상관없다. 재시도/백프레셔 없음.
    """

    def __init__(
        self,
        controller: ReminderController,
        fetch: FetchSessions,
        refresh_interval: float = REMINDER_REFRESH_INTERVAL_S,
        check_interval: float = REMINDER_CHECK_INTERVAL_S,
    ):
        self.controller = controller
        self._fetch = fetch
        self.refresh_interval = refresh_interval
        self.check_interval = check_interval
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    async def refresh_once(self) -> bool:
        """실패하면 로그만 남기고 이전 상태를 유지한다."""
        try:
            sessions = await self._fetch()
        except Exception:
            logger.exception("Failed to fetch sessions for reminders")
            return False
        self.controller.set_sessions(sessions)
        return True

    def check_once(self) -> Optional[Any]:
        return self.controller.evaluate()

    async def _refresh_loop(self) -> None:
        while True:
            await self.refresh_once()
            await asyncio.sleep(self.refresh_interval)

    async def _check_loop(self) -> None:
        while True:
            await asyncio.sleep(self.check_interval)
            self.check_once()

    async def start(self) -> None:
        if self.running:
            return
        # 첫 조회는 기다렸다가 반환 (호출자가 바로 상태를 볼 수 있도록)
        await self.refresh_once()
        self._tasks = [
            asyncio.create_task(self._delayed_refresh_loop()),
            asyncio.create_task(self._check_loop()),
        ]

    async def _delayed_refresh_loop(self) -> None:
        await asyncio.sleep(self.refresh_interval)
        await self._refresh_loop()

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for t in tasks:
            t.cancel()
        for t in tasks:
            try:
                await t
            except asyncio.CancelledError:
                pass
