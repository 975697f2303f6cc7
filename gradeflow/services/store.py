"""实体存储：所有实体的唯一拥有者。

提供 create/get/update 原语与事务范围的 Session。所有工作单元都在同一把
可重入写锁内执行，单写者纪律下 id 分配天然无竞争；同一线程内嵌套的
``transaction()`` 复用外层 Session，使多步写入成为一个原子单元。
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, List, Mapping, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, inspect, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gradeflow.db import Base, build_engine, build_session_factory
from gradeflow.exceptions import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Base)

# 由存储层维护的字段，调用方不可写入
SERVER_FIELDS = frozenset({"id", "created_at", "updated_at", "submitted_at"})


class EntityStore:
    """基于 SQLAlchemy 的实体存储。"""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._session_factory = build_session_factory(engine)
        self._lock = threading.RLock()
        self._local = threading.local()

    @classmethod
    def from_url(cls, database_url: str) -> "EntityStore":
        store = cls(build_engine(database_url))
        store.create_schema()
        return store

    def create_schema(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """提供事务范围的 Session，嵌套调用复用外层事务。"""

        with self._lock:
            active: Optional[Session] = getattr(self._local, "session", None)
            if active is not None:
                yield active
                return

            session: Session = self._session_factory()
            self._local.session = session
            try:
                yield session
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("写入违反唯一性约束", {"reason": str(exc.orig)}) from exc
            except Exception:
                session.rollback()
                raise
            finally:
                self._local.session = None
                session.close()

    # === 基本原语 ===

    def create(self, model: Type[T], data: Mapping[str, Any]) -> T:
        """创建实体，id 与时间戳由存储层分配。"""

        self._check_fields(model, data)
        with self.transaction() as session:
            instance = model(**dict(data))
            session.add(instance)
            session.flush()
            logger.debug("created %s id=%s", model.__name__, instance.id)
            return instance

    def get(self, model: Type[T], entity_id: int) -> Optional[T]:
        """按 id 读取，不存在时返回 ``None``。"""

        with self.transaction() as session:
            return session.get(model, entity_id)

    def require(self, model: Type[T], entity_id: int) -> T:
        """按 id 读取，不存在时抛出 NotFoundError。"""

        instance = self.get(model, entity_id)
        if instance is None:
            raise NotFoundError(model.__name__, entity_id)
        return instance

    def update(self, model: Type[T], entity_id: int, partial: Mapping[str, Any]) -> Optional[T]:
        """浅合并部分字段，刷新 ``updated_at``；不存在时返回 ``None``。"""

        self._check_fields(model, partial)
        with self.transaction() as session:
            instance = session.get(model, entity_id)
            if instance is None:
                return None
            for key, value in partial.items():
                setattr(instance, key, value)
            touch(instance)
            session.flush()
            return instance

    # === 查询 ===

    def find(
        self,
        model: Type[T],
        *criteria: Any,
        order_by: Sequence[Any] = (),
        limit: Optional[int] = None,
    ) -> List[T]:
        stmt = select(model).where(*criteria)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        with self.transaction() as session:
            return list(session.scalars(stmt).all())

    def first(self, model: Type[T], *criteria: Any) -> Optional[T]:
        found = self.find(model, *criteria, limit=1)
        return found[0] if found else None

    def count(self, model: Type[T], *criteria: Any) -> int:
        stmt = select(func.count()).select_from(model).where(*criteria)
        with self.transaction() as session:
            return int(session.scalar(stmt) or 0)

    def _check_fields(self, model: Type[T], data: Mapping[str, Any]) -> None:
        columns = {attr.key for attr in inspect(model).column_attrs}
        violations = []
        for key in data:
            if key in SERVER_FIELDS:
                violations.append({"field": key, "message": "该字段由服务端维护，不可写入"})
            elif key not in columns:
                violations.append({"field": key, "message": f"{model.__name__} 没有该字段"})
        if violations:
            raise ValidationError("写入字段不合法", violations)


def touch(instance: Any) -> None:
    """刷新实体的 ``updated_at``（若该实体定义了此字段）。"""

    if hasattr(instance, "updated_at"):
        instance.updated_at = datetime.now(timezone.utc)
