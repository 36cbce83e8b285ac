from __future__ import annotations
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, insert, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from clinicnotes.config import get_ai_config
from clinicnotes.db import get_db
from clinicnotes.models import Session, Patient, VoiceRecording, User, utcnow
from clinicnotes.schemas import (
    DataResp, MessageResp, SessionCreate, SessionUpdate, SessionOut, SessionNotes,
    SummaryRequest, SummaryResult, SummaryConfig, SummaryApprove, ensure_utc,
)
from clinicnotes.services.auth_service import get_current_user
from clinicnotes.services.openai_client import generate_summary, SummaryError
from clinicnotes.services.prompts import build_summary_prompts

router = APIRouter(prefix="/sessions", tags=["sessions"])


async def get_session_or_404(db: AsyncSession, session_id: str) -> Session:
    session = await db.get(Session, session_id)
    if not session:
        raise HTTPException(404, "Session not found")
    return session


@router.get("", response_model=DataResp[List[SessionOut]])
async def list_sessions(
    therapist_id: Optional[str] = Query(None),
    patient_id: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None, description="scheduled_at >= start"),
    end: Optional[datetime] = Query(None, description="scheduled_at <= end"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    q = select(Session).order_by(Session.scheduled_at.asc())
    if therapist_id:
        q = q.where(Session.therapist_id == therapist_id)
    if patient_id:
        q = q.where(Session.patient_id == patient_id)
    if start:
        q = q.where(Session.scheduled_at >= ensure_utc(start))
    if end:
        q = q.where(Session.scheduled_at <= ensure_utc(end))
    res = await db.execute(q)
    return {"data": res.scalars().all()}


@router.post("", response_model=DataResp[SessionOut], status_code=201)
async def create_session(
    payload: SessionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not await db.get(Patient, payload.patient_id):
        raise HTTPException(404, "Patient not found")
    if not await db.get(User, payload.therapist_id):
        raise HTTPException(404, "Therapist not found")

    values = payload.model_dump(exclude={"notes"})
    values["notes"] = (payload.notes or SessionNotes()).model_dump(mode="json")
    try:
        res = await db.execute(insert(Session).values(**values).returning(Session.id))
        session_id = res.scalar_one()
        await db.commit()
    except Exception as e:
        await db.rollback()
        raise HTTPException(500, f"Session creation failed: {e}")
    return {"data": await get_session_or_404(db, session_id)}


@router.get("/{session_id}", response_model=DataResp[SessionOut])
async def get_session(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return {"data": await get_session_or_404(db, session_id)}


@router.put("/{session_id}", response_model=DataResp[SessionOut])
async def update_session(
    session_id: str,
    payload: SessionUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """부분 수정. in_progress 전이 시 started_at, completed 전이 시 ended_at 기록"""
    session = await get_session_or_404(db, session_id)
    values = payload.model_dump(exclude_unset=True, exclude={"notes"})
    if payload.notes is not None:
        values["notes"] = payload.notes.model_dump(mode="json")

    now = utcnow()
    if payload.status == "in_progress" and session.started_at is None:
        values["started_at"] = now
    if payload.status == "completed" and session.ended_at is None:
        values["ended_at"] = now
        if session.started_at is None:
            values["started_at"] = now

    if values:
        try:
            await db.execute(update(Session).where(Session.id == session_id).values(**values, updated_at=now))
            await db.commit()
        except Exception as e:
            await db.rollback()
            raise HTTPException(500, f"Session update failed: {e}")
        await db.refresh(session)
    return {"data": session}


@router.delete("/{session_id}", response_model=MessageResp)
async def delete_session(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await get_session_or_404(db, session_id)
    await db.execute(delete(VoiceRecording).where(VoiceRecording.session_id == session_id))
    await db.execute(delete(Session).where(Session.id == session_id))
    await db.commit()
    return MessageResp(message="Session deleted")


@router.post("/{session_id}/sign", response_model=DataResp[SessionOut])
async def sign_session(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    session = await get_session_or_404(db, session_id)
    if session.status != "completed":
        raise HTTPException(409, "Only completed sessions can be signed")
    await db.execute(
        update(Session).where(Session.id == session_id).values(signed_at=utcnow(), signed_by=current_user.id)
    )
    await db.commit()
    await db.refresh(session)
    return {"data": session}


# --- AI 요약 ---
@router.post("/{session_id}/summary", response_model=DataResp[SummaryResult])
async def create_summary(
    session_id: str,
    req: Optional[SummaryRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    session = await get_session_or_404(db, session_id)
    notes = SessionNotes.model_validate(session.notes or {})
    if not notes.subjective:
        raise HTTPException(
            400, "Session has no subjective notes to summarize. Please add session notes first."
        )

    prompts = build_summary_prompts(notes, session.therapist_role, req.transcript if req else None)
    try:
        result = await generate_summary(prompts["system"], prompts["user"], session.therapist_role)
    except SummaryError as e:
        raise HTTPException(500, f"Summary generation failed: {e}")
    return {"data": result}


@router.get("/{session_id}/summary", response_model=DataResp[SummaryConfig])
async def get_summary_config(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    session = await get_session_or_404(db, session_id)
    cfg = get_ai_config()
    return {"data": {
        "mode": cfg["mode"],
        "model": cfg["model"],
        "session_id": session_id,
        "has_notes": bool((session.notes or {}).get("subjective")),
    }}


@router.put("/{session_id}/summary", response_model=DataResp[SessionOut])
async def approve_summary(
    session_id: str,
    payload: SummaryApprove,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """치료사가 검토한 요약을 세션에 저장"""
    session = await get_session_or_404(db, session_id)
    now = utcnow()
    ai_summary = {
        "content": payload.content,
        "generated_at": (payload.generated_at or now).isoformat(),
        "mode": payload.mode,
        "model": payload.model,
        "tokens_used": payload.tokens_used,
        "saved_at": now.isoformat(),
        "saved_by": current_user.id,
    }
    await db.execute(update(Session).where(Session.id == session_id).values(ai_summary=ai_summary, updated_at=now))
    await db.commit()
    await db.refresh(session)
    return {"data": session}
