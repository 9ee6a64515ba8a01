"""
数据库引擎与会话工厂

生产使用 PostgreSQL（asyncpg），订单与卖家行锁依赖 SELECT ... FOR UPDATE；
SQLite（aiosqlite）仅用于本地开发与测试，不支持行锁。
"""
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from core.config import settings
from infrastructure.models import Base


_ASYNC_DRIVERS = {
    "postgresql": "postgresql+asyncpg",
    "postgres": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}


def _build_async_url(database_url: str) -> str:
    """补全异步驱动，例如 postgresql:// -> postgresql+asyncpg://"""
    url = make_url(database_url)
    if "+" in url.drivername:
        return database_url
    if url.drivername not in _ASYNC_DRIVERS:
        raise ValueError(f"不支持的数据库驱动: {url.drivername}. 请使用 async 驱动或更新 DATABASE__URL")
    return url.set(drivername=_ASYNC_DRIVERS[url.drivername]).render_as_string(hide_password=False)


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.database.pool_size,
        "max_overflow": settings.database.max_overflow,
    }


_url = _build_async_url(settings.database.url)
engine = create_async_engine(_url, echo=settings.database.echo, **_engine_options(_url))

AsyncSessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)


async def create_tables():
    """开发环境建表；生产环境表结构由 DBA 管理的迁移脚本维护"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
