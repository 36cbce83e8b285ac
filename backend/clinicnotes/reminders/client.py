from __future__ import annotations
import logging
from typing import List, Optional

import httpx

from clinicnotes.schemas import SessionOut

logger = logging.getLogger(__name__)


class SessionApiClient:
    """
    원격 clinicnotes API의 세션 목록/수정 엔드포인트를 쓰는 클라이언트.
    ReminderController(update_status=client.update_session_status) /
    ReminderPoller(fetch=lambda: client.list_sessions(tid)) 형태로 연결한다.
    """

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout, transport=transport)

    async def list_sessions(self, therapist_id: str) -> List[SessionOut]:
        resp = await self._client.get("/sessions", params={"therapist_id": therapist_id})
        resp.raise_for_status()
        payload = resp.json()
        return [SessionOut.model_validate(item) for item in payload.get("data") or []]

    async def update_session_status(self, session_id: str, status: str) -> SessionOut:
        resp = await self._client.put(f"/sessions/{session_id}", json={"status": status})
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError:
            logger.warning("session update failed %s: %s", resp.status_code, resp.text[:200])
            raise
        return SessionOut.model_validate(resp.json()["data"])

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "SessionApiClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()
