"""数据库连接与会话工厂。"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator


class Base(DeclarativeBase):
    """SQLAlchemy 基类。"""

    pass


def as_utc(value: datetime) -> datetime:
    """统一为 UTC；不带时区的时间视为 UTC。"""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    """以 UTC 存储、读取时带回 UTC 时区的时间列。

    SQLite 不保存时区偏移，直接使用 ``DateTime(timezone=True)`` 会把
    ``10:00+08:00`` 存成墙上时间 10:00。
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        return as_utc(value).replace(tzinfo=None)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        return as_utc(value)


def build_engine(database_url: str) -> Engine:
    """根据 URL 创建引擎。

    内存 SQLite 需要 ``StaticPool`` 让所有会话共享同一个连接，否则每个
    会话都会看到一个空库；``check_same_thread=False`` 以支持多线程。
    """

    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)
    if ":memory:" in database_url or database_url in {"sqlite://", "sqlite:///"}:
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, connect_args={"check_same_thread": False})


def build_session_factory(engine: Engine) -> sessionmaker:
    # 提交后不过期属性，返回给调用方的实体在会话关闭后仍可读取
    return sessionmaker(
        bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
    )
