from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicnotes.db import get_db
from clinicnotes.models import User
from clinicnotes.schemas import DataResp, UserPublic
from clinicnotes.services.auth_service import get_current_user

router = APIRouter(prefix="/users", tags=["users"])

@router.get("", response_model=DataResp[List[UserPublic]])
async def list_users(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    res = await db.execute(select(User).order_by(User.created_at.asc()))
    return {"data": res.scalars().all()}

@router.get("/{user_id}", response_model=DataResp[UserPublic])
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(404, "User not found")
    return {"data": user}
