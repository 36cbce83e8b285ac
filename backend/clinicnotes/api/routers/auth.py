from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import insert, select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from clinicnotes.config import DEFAULT_ORGANIZATION
from clinicnotes.db import get_db
from clinicnotes.models import User, utcnow
from clinicnotes.schemas import UserCreate, Token, UserPublic
from clinicnotes.services.auth_service import (
    create_access_token, verify_password, hash_password, get_current_user, client_ip,
)
from clinicnotes.services.security import audit

router = APIRouter(prefix="/auth", tags=["auth"])

async def get_user_by_email(db: AsyncSession, email: str):
    q = select(User).where(func.lower(User.email) == email.strip().lower())
    res = await db.execute(q)
    return res.scalar_one_or_none()

@router.post("/signup", response_model=Token, status_code=201)
async def signup(user_in: UserCreate, db: AsyncSession = Depends(get_db)):
    existing_user = await get_user_by_email(db, user_in.email)
    if existing_user:
        raise HTTPException(status_code=400, detail="Email already registered.")

    try:
        res = await db.execute(
            insert(User)
            .values(
                email=user_in.email.strip().lower(),
                password_hash=hash_password(user_in.password),
                name=user_in.name.strip(),
                role="therapist",
                therapist_role="psychologist",
                organization=DEFAULT_ORGANIZATION,
            )
            .returning(User.id, User.role)
        )
        user_id, role = res.one()
        await db.commit()
    except Exception as e:
        await db.rollback()
        raise HTTPException(status_code=500, detail=f"User creation failed: {e}")

    await audit(user_id, "signup", "user", user_id)
    return Token(access_token=create_access_token(data={"sub": user_id, "role": role}))

@router.post("/login", response_model=Token)
async def login_for_access_token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    ip = client_ip(request)
    if not request.app.state.login_limiter.check(ip):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Please try again later.",
        )

    user = await get_user_by_email(db, form_data.username)
    if not user or not user.password_hash or not verify_password(form_data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    await db.execute(update(User).where(User.id == user.id).values(last_login=utcnow()))
    await db.commit()
    await audit(user.id, "login", "user", user.id, ip_address=ip)

    access_token = create_access_token(data={"sub": user.id, "role": user.role})
    return Token(access_token=access_token, token_type="bearer")

@router.get("/me", response_model=UserPublic)
async def get_my_info(current_user: User = Depends(get_current_user)):
    """현재 인증된 사용자 정보 (JWT 토큰 기반)"""
    return current_user
