"""
数据库引擎与会话工厂

订单状态变更依赖条件 UPDATE 的 rowcount，因此只支持能返回准确 rowcount 的
异步驱动：PostgreSQL（asyncpg）与 SQLite（aiosqlite，开发/测试）。
"""
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from core.config import settings
from infrastructure.models import Base


_ASYNC_DRIVERS = {
    "postgresql": "postgresql+asyncpg",
    "postgres": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}


def _build_async_url(database_url: str) -> str:
    """确保数据库URL使用异步驱动"""
    url = make_url(database_url)
    if "+" in url.drivername:
        return database_url
    if url.drivername not in _ASYNC_DRIVERS:
        raise ValueError(f"不支持的数据库驱动: {url.drivername}. 请使用 async 驱动或更新 DATABASE__URL")
    return url.set(drivername=_ASYNC_DRIVERS[url.drivername]).render_as_string(hide_password=False)


def _engine_options(async_url: str) -> dict[str, Any]:
    url = make_url(async_url)
    if url.get_backend_name() != "sqlite":
        return {"pool_pre_ping": True}
    options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        # 内存库只存在于单个连接上
        options["poolclass"] = StaticPool
    return options


def build_engine(database_url: str) -> AsyncEngine:
    async_url = _build_async_url(database_url)
    return create_async_engine(async_url, echo=settings.database.echo, **_engine_options(async_url))


engine = build_engine(settings.database.url)

AsyncSessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)


async def create_tables() -> None:
    """按模型建表（仅开发环境；生产使用 alembic upgrade head）"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
