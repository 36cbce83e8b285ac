from __future__ import annotations
from typing import List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy import select, insert, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from clinicnotes import kafka
from clinicnotes.config import KAFKA_TOPIC_TRANSCRIPTION
from clinicnotes.db import get_db
from clinicnotes.models import VoiceRecording, Session, User, utcnow
from clinicnotes.schemas import (
    DataResp, MessageResp, VoiceRecordingCreate, VoiceRecordingUpdate, VoiceRecordingOut,
    TranscriptionQueued,
)
from clinicnotes.services.auth_service import get_current_user
from clinicnotes.workers.transcription_worker import handle_message

router = APIRouter(prefix="/voice-recordings", tags=["voice-recordings"])


async def get_recording_or_404(db: AsyncSession, recording_id: str) -> VoiceRecording:
    recording = await db.get(VoiceRecording, recording_id)
    if not recording:
        raise HTTPException(404, "Voice recording not found")
    return recording


@router.get("", response_model=DataResp[List[VoiceRecordingOut]])
async def list_recordings(
    session_id: Optional[str] = Query(None),
    patient_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    q = select(VoiceRecording).order_by(VoiceRecording.created_at.desc())
    if session_id:
        q = q.where(VoiceRecording.session_id == session_id)
    if patient_id:
        q = q.where(VoiceRecording.patient_id == patient_id)
    res = await db.execute(q)
    return {"data": res.scalars().all()}


@router.post("", response_model=DataResp[VoiceRecordingOut], status_code=201)
async def create_recording(
    payload: VoiceRecordingCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not await db.get(Session, payload.session_id):
        raise HTTPException(404, "Session not found")
    values = payload.model_dump(mode="json")
    try:
        res = await db.execute(insert(VoiceRecording).values(**values).returning(VoiceRecording.id))
        recording_id = res.scalar_one()
        await db.commit()
    except Exception as e:
        await db.rollback()
        raise HTTPException(500, f"Recording creation failed: {e}")
    return {"data": await get_recording_or_404(db, recording_id)}


@router.get("/{recording_id}", response_model=DataResp[VoiceRecordingOut])
async def get_recording(
    recording_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return {"data": await get_recording_or_404(db, recording_id)}


@router.put("/{recording_id}", response_model=DataResp[VoiceRecordingOut])
async def update_recording(
    recording_id: str,
    payload: VoiceRecordingUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    recording = await get_recording_or_404(db, recording_id)
    values = payload.model_dump(mode="json", exclude_unset=True)
    if values:
        await db.execute(
            update(VoiceRecording).where(VoiceRecording.id == recording_id).values(**values, updated_at=utcnow())
        )
        await db.commit()
        await db.refresh(recording)
    return {"data": recording}


@router.delete("/{recording_id}", response_model=MessageResp)
async def delete_recording(
    recording_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await get_recording_or_404(db, recording_id)
    await db.execute(delete(VoiceRecording).where(VoiceRecording.id == recording_id))
    await db.commit()
    return MessageResp(message="Voice recording deleted")


@router.post("/{recording_id}/transcribe", response_model=DataResp[TranscriptionQueued], status_code=202)
async def queue_transcription(
    recording_id: str,
    background_tasks: BackgroundTasks,
    language: str = Query("he"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    저장된 녹음 전사 요청.
    Kafka가 설정되어 있으면 토픽으로 발행, 아니면 같은 프로세스의 백그라운드 태스크로 처리.
    """
    recording = await get_recording_or_404(db, recording_id)
    if not recording.consent_obtained:
        raise HTTPException(403, "Patient consent is required before transcription")
    if recording.transcription_status == "processing":
        raise HTTPException(409, "Transcription already in progress")

    await db.execute(
        update(VoiceRecording)
        .where(VoiceRecording.id == recording_id)
        .values(transcription_status="pending", error=None)
    )
    await db.commit()

    payload = {"recording_id": recording_id, "language": language, "requested_by": current_user.id}
    if await kafka.publish(KAFKA_TOPIC_TRANSCRIPTION, payload, key=recording_id):
        queued_via = "kafka"
    else:
        background_tasks.add_task(handle_message, payload)
        queued_via = "background"

    return {"data": {"recording_id": recording_id, "transcription_status": "pending", "queued_via": queued_via}}
