"""
数据库配置和连接管理
"""
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from core.config import settings
from infrastructure.models import Base


_ASYNC_DRIVERS = {
    "postgresql": "postgresql+asyncpg",
    "postgres": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}


def build_async_url(database_url: str) -> str:
    """确保数据库URL使用异步驱动"""
    url = make_url(database_url)
    if "+" in url.drivername:
        return database_url
    if url.drivername not in _ASYNC_DRIVERS:
        raise ValueError(f"Unsupported database driver: {url.drivername}. Use an async driver URL.")
    return url.set(drivername=_ASYNC_DRIVERS[url.drivername]).render_as_string(hide_password=False)


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    return create_async_engine(build_async_url(database_url), echo=echo, future=True)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # 提交后对象仍可读取，存储层在会话关闭后才转换为领域实体
    return async_sessionmaker(bind=bind, expire_on_commit=False)


engine = create_engine(settings.database.url, echo=settings.database.echo or settings.DEBUG)
AsyncSessionLocal = create_session_factory(engine)


async def create_tables(bind: AsyncEngine = engine) -> None:
    """根据 models 中定义的模型创建数据表"""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables(bind: AsyncEngine = engine) -> None:
    """删除所有表（仅用于测试环境）"""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
