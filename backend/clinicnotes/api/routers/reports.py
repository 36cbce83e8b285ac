from __future__ import annotations
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, insert, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from clinicnotes.db import get_db
from clinicnotes.models import Report, Patient, Session, TreatmentGoal, User, utcnow
from clinicnotes.schemas import (
    DataResp, MessageResp, ReportCreate, ReportUpdate, ReportOut, ReportGenerateReq,
)
from clinicnotes.services.auth_service import get_current_user
from clinicnotes.services.patient_records import patient_display_name
from clinicnotes.services.reports import build_multidisciplinary_report

router = APIRouter(prefix="/reports", tags=["reports"])


def report_to_out(report: Report) -> ReportOut:
    return ReportOut(
        id=report.id,
        patient_id=report.patient_id,
        report_type=report.report_type,
        generated_by=report.generated_by,
        generated_at=report.generated_at,
        date_range={"start": report.date_start, "end": report.date_end},
        content=report.content or {"summary": ""},
        status=report.status,
        signed_by=report.signed_by,
        signed_at=report.signed_at,
    )


async def get_report_or_404(db: AsyncSession, report_id: str) -> Report:
    report = await db.get(Report, report_id)
    if not report:
        raise HTTPException(404, "Report not found")
    return report


@router.get("", response_model=DataResp[List[ReportOut]])
async def list_reports(
    patient_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    q = select(Report).order_by(Report.generated_at.desc())
    if patient_id:
        q = q.where(Report.patient_id == patient_id)
    res = await db.execute(q)
    return {"data": [report_to_out(r) for r in res.scalars().all()]}


@router.post("", response_model=DataResp[ReportOut], status_code=201)
async def create_report(
    payload: ReportCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not await db.get(Patient, payload.patient_id):
        raise HTTPException(404, "Patient not found")
    try:
        res = await db.execute(
            insert(Report)
            .values(
                patient_id=payload.patient_id,
                report_type=payload.report_type,
                generated_by=payload.generated_by,
                date_start=payload.date_range.start,
                date_end=payload.date_range.end,
                content=payload.content.model_dump(mode="json"),
                status=payload.status,
            )
            .returning(Report.id)
        )
        report_id = res.scalar_one()
        await db.commit()
    except Exception as e:
        await db.rollback()
        raise HTTPException(500, f"Report creation failed: {e}")
    return {"data": report_to_out(await get_report_or_404(db, report_id))}


@router.post("/generate", response_model=DataResp[ReportOut], status_code=201)
async def generate_report(
    req: ReportGenerateReq,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """기간 내 완료 세션(분야별)과 치료 목표로 다학제 보고서 초안 생성"""
    patient = await db.get(Patient, req.patient_id)
    if not patient:
        raise HTTPException(404, "Patient not found")

    sessions = (
        await db.execute(select(Session).where(Session.patient_id == req.patient_id))
    ).scalars().all()
    goals = (
        await db.execute(
            select(TreatmentGoal)
            .where(TreatmentGoal.patient_id == req.patient_id)
            .order_by(TreatmentGoal.created_at.asc())
        )
    ).scalars().all()

    content = build_multidisciplinary_report(
        sessions, goals, patient_display_name(patient), req.date_range.start, req.date_range.end,
    )
    try:
        res = await db.execute(
            insert(Report)
            .values(
                patient_id=req.patient_id,
                report_type=req.report_type,
                generated_by=current_user.id,
                date_start=req.date_range.start,
                date_end=req.date_range.end,
                content={**content, "sessions_summary": [
                    {**s, "date": s["date"].isoformat()} for s in content["sessions_summary"]
                ]},
                status="draft",
            )
            .returning(Report.id)
        )
        report_id = res.scalar_one()
        await db.commit()
    except Exception as e:
        await db.rollback()
        raise HTTPException(500, f"Report generation failed: {e}")
    return {"data": report_to_out(await get_report_or_404(db, report_id))}


@router.get("/{report_id}", response_model=DataResp[ReportOut])
async def get_report(
    report_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return {"data": report_to_out(await get_report_or_404(db, report_id))}


@router.put("/{report_id}", response_model=DataResp[ReportOut])
async def update_report(
    report_id: str,
    payload: ReportUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    report = await get_report_or_404(db, report_id)
    data = payload.model_dump(mode="json", exclude_unset=True)
    values = {}
    if "report_type" in data:
        values["report_type"] = data["report_type"]
    if payload.content is not None:
        values["content"] = data["content"]
    if payload.date_range is not None:
        values["date_start"] = payload.date_range.start
        values["date_end"] = payload.date_range.end
    if payload.status is not None:
        values["status"] = payload.status
        if payload.status == "signed" and not report.signed_at:
            values["signed_at"] = utcnow()
            values["signed_by"] = current_user.id

    if values:
        try:
            await db.execute(update(Report).where(Report.id == report_id).values(**values, updated_at=utcnow()))
            await db.commit()
        except Exception as e:
            await db.rollback()
            raise HTTPException(500, f"Report update failed: {e}")
        await db.refresh(report)
    return {"data": report_to_out(report)}


@router.delete("/{report_id}", response_model=MessageResp)
async def delete_report(
    report_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await get_report_or_404(db, report_id)
    await db.execute(delete(Report).where(Report.id == report_id))
    await db.commit()
    return MessageResp(message="Report deleted")
