# /backend/clinicnotes/main.py

from __future__ import annotations
import logging
import os
from dotenv import load_dotenv
load_dotenv(dotenv_path=os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), ".env"))

from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from clinicnotes.config import CORS_ORIGINS, LOG_LEVEL, SEED_ON_STARTUP
from clinicnotes.db import get_db, init_models, SessionLocal
from clinicnotes.kafka import start_kafka, stop_kafka
from clinicnotes.reminders.registry import ReminderRegistry
from clinicnotes.services.security import RateLimiter
from clinicnotes.services.seed import seed_if_empty
from clinicnotes.api.routers import (
    auth, users, patients, sessions, treatment_goals, reports, voice_recordings,
    transcribe, reminders, notifications, seed,
)

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 앱 시작 시
    await init_models()
    await start_kafka()
    app.state.login_limiter = RateLimiter()
    app.state.reminders = ReminderRegistry(SessionLocal)
    if SEED_ON_STARTUP:
        async with SessionLocal() as db:
            await seed_if_empty(db)
    try:
        yield
    finally:
        # 앱 종료 시
        await app.state.reminders.shutdown()
        await stop_kafka()

app = FastAPI(
    title="ClinicNotes API",
    lifespan=lifespan,
)

# CORS 미들웨어를 가장 먼저 등록
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(patients.router)
app.include_router(sessions.router)
app.include_router(treatment_goals.router)
app.include_router(reports.router)
app.include_router(voice_recordings.router)
app.include_router(transcribe.router)
app.include_router(reminders.router)
app.include_router(notifications.router)
app.include_router(seed.router)


@app.get("/health")
async def health():
    return {"ok": True}

@app.get("/db-health")
async def db_health(db: AsyncSession = Depends(get_db)):
    result = await db.execute(text("SELECT 1"))
    return {"db": "ok", "result": result.scalar_one()}
