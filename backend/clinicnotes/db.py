import os
from dotenv import load_dotenv

load_dotenv()

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

ASYNC_DB_URL = os.getenv("ASYNC_DATABASE_URL", "sqlite+aiosqlite:///./clinicnotes.db")

class Base(DeclarativeBase):
    pass

# sqlite 파일 DB는 이벤트 루프마다 새 연결을 쓰도록 NullPool
if ASYNC_DB_URL.startswith("sqlite"):
    engine = create_async_engine(ASYNC_DB_URL, echo=False, poolclass=NullPool)
else:
    engine = create_async_engine(ASYNC_DB_URL, echo=False, pool_pre_ping=True)

SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

async def get_db():
    async with SessionLocal() as session:
        yield session

async def init_models():
    # 테이블이 없으면 생성 (운영 Postgres는 alembic 사용)
    import clinicnotes.models  # noqa: F401
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
