"""服务层组装。

``build_services`` 显式构造存储并注入到各个组件，不存在全局单例；
FastAPI 应用把返回的容器挂在 ``app.state.services`` 上。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from gradeflow.config import Settings
from gradeflow.services.aggregates import AggregateViews
from gradeflow.services.classroom import ClassroomService
from gradeflow.services.grading import GradingOracle, build_grading_oracle
from gradeflow.services.lifecycle import SubmissionLifecycle
from gradeflow.services.policy import AccessPolicy
from gradeflow.services.relationships import RelationshipIndex
from gradeflow.services.store import EntityStore


@dataclass
class Services:
    settings: Settings
    store: EntityStore
    index: RelationshipIndex
    policy: AccessPolicy
    lifecycle: SubmissionLifecycle
    views: AggregateViews
    classroom: ClassroomService

    def close(self) -> None:
        self.store.dispose()


def build_services(settings: Settings, oracle: Optional[GradingOracle] = None) -> Services:
    store = EntityStore.from_url(settings.database_url)
    index = RelationshipIndex(store)
    policy = AccessPolicy(store, index)
    views = AggregateViews(store, index)
    lifecycle = SubmissionLifecycle(
        store, index, policy, oracle or build_grading_oracle(settings)
    )
    return Services(
        settings=settings,
        store=store,
        index=index,
        policy=policy,
        lifecycle=lifecycle,
        views=views,
        classroom=ClassroomService(store, index, policy, views),
    )
