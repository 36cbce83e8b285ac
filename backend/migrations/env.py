import asyncio
import os
import sys
from logging.config import fileConfig

from alembic import context
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

# backend/ 를 import 경로에 추가 (clinicnotes 패키지)
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import clinicnotes.models  # noqa: E402,F401
from clinicnotes.db import Base, ASYNC_DB_URL  # noqa: E402

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_db_url() -> str:
    """
    ALEMBIC_DB_URL 이 있으면 그대로, 없으면 앱과 같은 ASYNC_DATABASE_URL 사용.
    (sqlite+aiosqlite / postgresql+asyncpg)
    """
    return os.getenv("ALEMBIC_DB_URL") or ASYNC_DB_URL


def _configure_kwargs(url: str) -> dict:
    # sqlite는 ALTER 지원이 약해서 batch 모드로 렌더링
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """SQL 스크립트만 출력"""
    url = get_db_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_sync(connection, url: str) -> None:
    context.configure(connection=connection, **_configure_kwargs(url))
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    url = get_db_url()
    engine = create_async_engine(url, poolclass=NullPool)
    async with engine.connect() as connection:
        await connection.run_sync(_run_sync, url)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
