from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from clinicnotes.models import User
from clinicnotes.reminders.registry import ReminderRegistry
from clinicnotes.schemas import DataResp, ReminderState, SessionOut
from clinicnotes.services.auth_service import get_current_user

router = APIRouter(prefix="/reminders", tags=["reminders"])


def get_registry(request: Request) -> ReminderRegistry:
    return request.app.state.reminders


@router.get("", response_model=ReminderState)
async def get_reminder(
    refresh: bool = Query(False, description="세션 목록을 먼저 다시 불러옴"),
    registry: ReminderRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    poller = await registry.get(current_user.id)
    if refresh:
        await poller.refresh_once()
    else:
        poller.check_once()
    return poller.controller.snapshot()


@router.post("/dismiss", response_model=ReminderState)
async def dismiss_reminder(
    registry: ReminderRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    controller = await registry.controller(current_user.id)
    controller.dismiss()
    return controller.snapshot()


@router.post("/start", response_model=DataResp[SessionOut])
async def start_reminded_session(
    registry: ReminderRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    """리마인더를 닫고 열어야 할 세션을 반환 (상태 변경은 PUT /sessions/{id})"""
    controller = await registry.controller(current_user.id)
    session = controller.start_session()
    if session is None:
        raise HTTPException(404, "No upcoming session")
    return {"data": session}


@router.post("/no-show", response_model=ReminderState)
async def mark_no_show(
    registry: ReminderRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    controller = await registry.controller(current_user.id)
    if controller.upcoming_session is None:
        raise HTTPException(404, "No upcoming session")
    try:
        await controller.mark_no_show()
    except Exception as e:
        raise HTTPException(502, f"Failed to mark session as no-show: {e}")
    return controller.snapshot()
