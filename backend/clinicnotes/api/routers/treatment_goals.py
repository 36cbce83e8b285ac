from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, insert, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from clinicnotes.db import get_db
from clinicnotes.models import TreatmentGoal, Patient, User, utcnow
from clinicnotes.schemas import DataResp, MessageResp, GoalCreate, GoalUpdate, GoalOut
from clinicnotes.services.auth_service import get_current_user
from clinicnotes.services.security import sanitize_input

router = APIRouter(prefix="/treatment-goals", tags=["treatment-goals"])


async def get_goal_or_404(db: AsyncSession, goal_id: str) -> TreatmentGoal:
    goal = await db.get(TreatmentGoal, goal_id)
    if not goal:
        raise HTTPException(404, "Treatment goal not found")
    return goal


@router.get("", response_model=DataResp[List[GoalOut]])
async def list_goals(
    patient_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    q = select(TreatmentGoal).order_by(TreatmentGoal.created_at.asc())
    if patient_id:
        q = q.where(TreatmentGoal.patient_id == patient_id)
    res = await db.execute(q)
    return {"data": res.scalars().all()}


@router.post("", response_model=DataResp[GoalOut], status_code=201)
async def create_goal(
    payload: GoalCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not await db.get(Patient, payload.patient_id):
        raise HTTPException(404, "Patient not found")
    values = payload.model_dump()
    values["description"] = sanitize_input(values["description"])
    values["measurement_criteria"] = sanitize_input(values["measurement_criteria"])
    try:
        res = await db.execute(insert(TreatmentGoal).values(**values).returning(TreatmentGoal.id))
        goal_id = res.scalar_one()
        await db.commit()
    except Exception as e:
        await db.rollback()
        raise HTTPException(500, f"Goal creation failed: {e}")
    return {"data": await get_goal_or_404(db, goal_id)}


@router.get("/{goal_id}", response_model=DataResp[GoalOut])
async def get_goal(
    goal_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return {"data": await get_goal_or_404(db, goal_id)}


@router.put("/{goal_id}", response_model=DataResp[GoalOut])
async def update_goal(
    goal_id: str,
    payload: GoalUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    goal = await get_goal_or_404(db, goal_id)
    values = payload.model_dump(exclude_unset=True)
    for f in ("description", "measurement_criteria"):
        if values.get(f):
            values[f] = sanitize_input(values[f])
    if values:
        try:
            await db.execute(
                update(TreatmentGoal).where(TreatmentGoal.id == goal_id).values(**values, updated_at=utcnow())
            )
            await db.commit()
        except Exception as e:
            await db.rollback()
            raise HTTPException(500, f"Goal update failed: {e}")
        await db.refresh(goal)
    return {"data": goal}


@router.delete("/{goal_id}", response_model=MessageResp)
async def delete_goal(
    goal_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await get_goal_or_404(db, goal_id)
    await db.execute(delete(TreatmentGoal).where(TreatmentGoal.id == goal_id))
    await db.commit()
    return MessageResp(message="Treatment goal deleted")
