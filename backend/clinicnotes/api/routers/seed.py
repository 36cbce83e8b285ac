from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinicnotes.db import get_db
from clinicnotes.schemas import MessageResp
from clinicnotes.services.seed import seed_if_empty, reset_data

router = APIRouter(prefix="/seed", tags=["seed"])

@router.post("", response_model=MessageResp)
async def seed(reset: bool = Query(False), db: AsyncSession = Depends(get_db)):
    try:
        if reset:
            await reset_data(db)
            return MessageResp(message="Data reset successfully")
        seeded = await seed_if_empty(db)
    except Exception as e:
        await db.rollback()
        raise HTTPException(500, f"Failed to seed data: {e}")
    return MessageResp(message="Data seeded successfully" if seeded else "Data already exists")
