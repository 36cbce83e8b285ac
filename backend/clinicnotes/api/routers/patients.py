from __future__ import annotations
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import select, insert, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from clinicnotes.db import get_db
from clinicnotes.models import (
    Patient, Session, TreatmentGoal, Report, VoiceRecording, PatientInsight, User, utcnow,
)
from clinicnotes.schemas import (
    DataResp, MessageResp, PatientCreate, PatientUpdate, PatientOut, GoalOut, ReportOut,
    PatientInsightsOut,
)
from clinicnotes.services.auth_service import get_current_user, client_ip
from clinicnotes.services.insights import generate_patient_insights
from clinicnotes.services.openai_client import SummaryError
from clinicnotes.services.patient_records import (
    new_patient_values, updated_patient_values, patient_to_out,
)
from clinicnotes.services.security import audit, generate_patient_code, hash_for_search
from clinicnotes.api.routers.reports import report_to_out

router = APIRouter(prefix="/patients", tags=["patients"])


async def get_patient_or_404(db: AsyncSession, patient_id: str) -> Patient:
    patient = await db.get(Patient, patient_id)
    if not patient:
        raise HTTPException(404, "Patient not found")
    return patient


@router.get("", response_model=DataResp[List[PatientOut]])
async def list_patients(
    request: Request,
    therapist_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    id_number: Optional[str] = Query(None, description="9자리 ID 번호로 조회 (해시 비교)"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    q = select(Patient).order_by(Patient.created_at.desc())
    if status:
        q = q.where(Patient.status == status)
    if id_number:
        q = q.where(Patient.id_number_hash == hash_for_search(id_number))
    patients = (await db.execute(q)).scalars().all()
    # assigned_therapists는 JSON 배열이라 파이썬에서 필터
    if therapist_id:
        patients = [p for p in patients if therapist_id in (p.assigned_therapists or [])]

    await audit(current_user.id, "list", "patient", "*", client_ip(request), {"count": len(patients)})
    return {"data": [patient_to_out(p) for p in patients]}


@router.post("", response_model=DataResp[PatientOut], status_code=201)
async def create_patient(
    payload: PatientCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        res = await db.execute(
            insert(Patient)
            .values(**new_patient_values(payload, generate_patient_code()))
            .returning(Patient.id)
        )
        patient_id = res.scalar_one()
        await db.commit()
    except Exception as e:
        await db.rollback()
        raise HTTPException(500, f"Patient creation failed: {e}")

    patient = await get_patient_or_404(db, patient_id)
    await audit(current_user.id, "create", "patient", patient_id, client_ip(request),
                payload.model_dump(mode="json"))
    return {"data": patient_to_out(patient)}


@router.get("/{patient_id}", response_model=DataResp[PatientOut])
async def get_patient(
    patient_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    patient = await get_patient_or_404(db, patient_id)
    await audit(current_user.id, "read", "patient", patient_id, client_ip(request))
    return {"data": patient_to_out(patient)}


@router.put("/{patient_id}", response_model=DataResp[PatientOut])
async def update_patient(
    patient_id: str,
    payload: PatientUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    patient = await get_patient_or_404(db, patient_id)
    values = updated_patient_values(patient, payload)
    if values:
        try:
            await db.execute(
                update(Patient).where(Patient.id == patient_id).values(**values, updated_at=utcnow())
            )
            await db.commit()
        except Exception as e:
            await db.rollback()
            raise HTTPException(500, f"Patient update failed: {e}")
        await db.refresh(patient)

    await audit(current_user.id, "update", "patient", patient_id, client_ip(request),
                payload.model_dump(mode="json", exclude_unset=True))
    return {"data": patient_to_out(patient)}


@router.delete("/{patient_id}", response_model=MessageResp)
async def delete_patient(
    patient_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await get_patient_or_404(db, patient_id)
    try:
        session_ids = select(Session.id).where(Session.patient_id == patient_id)
        await db.execute(delete(VoiceRecording).where(VoiceRecording.session_id.in_(session_ids)))
        await db.execute(delete(Session).where(Session.patient_id == patient_id))
        await db.execute(delete(TreatmentGoal).where(TreatmentGoal.patient_id == patient_id))
        await db.execute(delete(Report).where(Report.patient_id == patient_id))
        await db.execute(delete(PatientInsight).where(PatientInsight.patient_id == patient_id))
        await db.execute(delete(Patient).where(Patient.id == patient_id))
        await db.commit()
    except Exception as e:
        await db.rollback()
        raise HTTPException(500, f"Patient delete failed: {e}")

    await audit(current_user.id, "delete", "patient", patient_id, client_ip(request))
    return MessageResp(message="Patient deleted")


@router.get("/{patient_id}/goals", response_model=DataResp[List[GoalOut]])
async def list_patient_goals(
    patient_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await get_patient_or_404(db, patient_id)
    res = await db.execute(
        select(TreatmentGoal)
        .where(TreatmentGoal.patient_id == patient_id)
        .order_by(TreatmentGoal.created_at.asc())
    )
    return {"data": res.scalars().all()}


@router.get("/{patient_id}/reports", response_model=DataResp[List[ReportOut]])
async def list_patient_reports(
    patient_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await get_patient_or_404(db, patient_id)
    res = await db.execute(
        select(Report).where(Report.patient_id == patient_id).order_by(Report.generated_at.desc())
    )
    return {"data": [report_to_out(r) for r in res.scalars().all()]}


@router.post("/{patient_id}/insights", response_model=DataResp[PatientInsightsOut])
async def generate_insights(
    patient_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """완료된 세션 전체를 분석해 인사이트를 생성하고 환자당 1건으로 저장(덮어쓰기)"""
    await get_patient_or_404(db, patient_id)
    try:
        result = await generate_patient_insights(db, patient_id)
    except SummaryError as e:
        raise HTTPException(500, f"Insight generation failed: {e}")

    values = {k: v for k, v in result.items() if k != "patient_id"}
    values["saved_at"] = utcnow()
    try:
        existing = (
            await db.execute(select(PatientInsight).where(PatientInsight.patient_id == patient_id))
        ).scalar_one_or_none()
        if existing:
            await db.execute(
                update(PatientInsight).where(PatientInsight.id == existing.id).values(**values)
            )
        else:
            await db.execute(insert(PatientInsight).values(patient_id=patient_id, **values))
        await db.commit()
    except Exception as e:
        await db.rollback()
        raise HTTPException(500, f"Insight save failed: {e}")

    saved = (
        await db.execute(select(PatientInsight).where(PatientInsight.patient_id == patient_id))
    ).scalar_one()
    await db.refresh(saved)
    return {"data": PatientInsightsOut.model_validate(saved)}


@router.get("/{patient_id}/insights", response_model=DataResp[PatientInsightsOut])
async def get_insights(
    patient_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    saved = (
        await db.execute(select(PatientInsight).where(PatientInsight.patient_id == patient_id))
    ).scalar_one_or_none()
    if not saved:
        raise HTTPException(404, "No insights found for this patient")
    return {"data": PatientInsightsOut.model_validate(saved)}
