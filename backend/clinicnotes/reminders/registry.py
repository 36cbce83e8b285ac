from __future__ import annotations
import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker, AsyncSession

from clinicnotes.models import Session, utcnow
from clinicnotes.schemas import SessionOut, NotificationOut
from clinicnotes.reminders.controller import ReminderController
from clinicnotes.reminders.poller import ReminderPoller
from clinicnotes.reminders.notifications import NotificationInbox, build_notifications

logger = logging.getLogger(__name__)


class SessionNotFound(LookupError):
    pass


class ReminderRegistry:
    """
    치료사별 리마인더 컨트롤러 + 폴러 + 알림 inbox.
    첫 사용 시 만들어지고 앱 종료(shutdown)까지 유지된다. app.state.reminders 로 주입.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], refresh_interval: float | None = None,
                 check_interval: float | None = None):
        self._session_factory = session_factory
        self._refresh_interval = refresh_interval
        self._check_interval = check_interval
        self._pollers: Dict[str, ReminderPoller] = {}
        self._inboxes: Dict[str, NotificationInbox] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    async def list_sessions(self, therapist_id: str) -> List[SessionOut]:
        async with self._session_factory() as db:
            res = await db.execute(
                select(Session)
                .where(Session.therapist_id == therapist_id)
                .order_by(Session.scheduled_at.asc())
            )
            return [SessionOut.model_validate(s) for s in res.scalars().all()]

    async def update_session_status(self, session_id: str, status: str) -> None:
        async with self._session_factory() as db:
            res = await db.execute(
                update(Session).where(Session.id == session_id).values(status=status, updated_at=utcnow())
            )
            if res.rowcount == 0:
                await db.rollback()
                raise SessionNotFound(f"session {session_id} not found")
            await db.commit()

    async def get(self, therapist_id: str) -> ReminderPoller:
        poller = self._pollers.get(therapist_id)
        if poller is not None:
            return poller

        # 첫 refresh가 끝난 poller만 공개 (동시 요청은 lock에서 대기)
        async with self._locks.setdefault(therapist_id, asyncio.Lock()):
            poller = self._pollers.get(therapist_id)
            if poller is not None:
                return poller

            async def fetch():
                return await self.list_sessions(therapist_id)

            controller = ReminderController(self.update_session_status)
            kwargs = {}
            if self._refresh_interval is not None:
                kwargs["refresh_interval"] = self._refresh_interval
            if self._check_interval is not None:
                kwargs["check_interval"] = self._check_interval
            poller = ReminderPoller(controller, fetch, **kwargs)
            await poller.start()
            self._pollers[therapist_id] = poller
        logger.info("reminder poller started for therapist %s", therapist_id)
        return poller

    async def controller(self, therapist_id: str) -> ReminderController:
        return (await self.get(therapist_id)).controller

    def inbox(self, therapist_id: str) -> NotificationInbox:
        return self._inboxes.setdefault(therapist_id, NotificationInbox())

    async def notifications(self, therapist_id: str, now: Optional[datetime] = None) -> List[NotificationOut]:
        controller = await self.controller(therapist_id)
        return build_notifications(controller.sessions, now or datetime.now(timezone.utc))

    async def shutdown(self) -> None:
        pollers, self._pollers = list(self._pollers.values()), {}
        for p in pollers:
            await p.stop()
        self._inboxes.clear()
        self._locks.clear()
