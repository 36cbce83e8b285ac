from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException

from clinicnotes.models import User
from clinicnotes.reminders.registry import ReminderRegistry
from clinicnotes.schemas import NotificationList, MessageResp
from clinicnotes.services.auth_service import get_current_user
from clinicnotes.api.routers.reminders import get_registry

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationList)
async def list_notifications(
    registry: ReminderRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    items = await registry.notifications(current_user.id)
    return registry.inbox(current_user.id).summary(items)


@router.post("/read-all", response_model=MessageResp)
async def mark_all_read(
    registry: ReminderRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    items = await registry.notifications(current_user.id)
    count = registry.inbox(current_user.id).mark_all_read(items)
    return MessageResp(message=f"{count} notifications marked as read")


@router.post("/{notification_id}/read", response_model=MessageResp)
async def mark_read(
    notification_id: str,
    registry: ReminderRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    registry.inbox(current_user.id).mark_read(notification_id)
    return MessageResp(message="Notification marked as read")


@router.post("/{notification_id}/dismiss", response_model=MessageResp)
async def dismiss(
    notification_id: str,
    registry: ReminderRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    if not registry.inbox(current_user.id).dismiss(notification_id):
        raise HTTPException(409, "Only read notifications can be dismissed")
    return MessageResp(message="Notification dismissed")
